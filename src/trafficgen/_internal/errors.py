"""Custom exception hierarchy for trafficgen."""

from __future__ import annotations


class TrafficGenError(Exception):
    """Base exception for all trafficgen errors.

    Catch this to handle any trafficgen-specific failure with a single
    except clause. Per-request network errors are never raised; workers
    record them instead.
    """


class ConfigError(TrafficGenError):
    """Raised when configuration is invalid or missing.

    Examples:
        - The target URL has no host or an unsupported scheme.
        - Worker count is zero or negative.
        - An environment variable cannot be parsed.
    """


class EngineError(TrafficGenError):
    """Raised when the worker pool cannot be started or driven.

    Examples:
        - ``start()`` called twice on the same pool.
        - The controller is run a second time.
    """
