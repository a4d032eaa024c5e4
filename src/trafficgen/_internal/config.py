"""Run configuration for trafficgen.

Values come from three layers, highest precedence first: explicit
overrides (CLI flags), ``TRAFFICGEN_*`` environment variables, defaults.
Everything is validated before a single worker is spawned.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from trafficgen._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

DEFAULT_WORKERS = 15
# ~15 requests/sec per worker
DEFAULT_DELAY = 0.0667
DEFAULT_TIMEOUT = 10.0
DEFAULT_GRACE_PERIOD = 5.0
DEFAULT_REPORT_INTERVAL = 1.0

_DEFAULT_PORTS = {"http": 80, "https": 443}


class SuccessPolicy(str, Enum):
    """How a completed HTTP response is classified.

    ``ANY_RESPONSE`` counts every response as a success regardless of
    status code. ``STATUS`` counts status >= 400 as a failure.
    """

    ANY_RESPONSE = "any"
    STATUS = "status"


@dataclass(frozen=True)
class Target:
    """Immutable request target.

    Attributes:
        scheme: ``http`` or ``https``.
        host: Hostname or IP literal.
        port: TCP port, defaulted from the scheme when the URL omits it.
        path: Request path including any query string; ``/`` when empty.
    """

    scheme: str
    host: str
    port: int
    path: str = "/"

    @classmethod
    def parse(cls, url: str) -> Target:
        """Parse and validate a URL.

        Raises:
            ConfigError: If the scheme is not http(s), the host is missing,
                the port is malformed, or the URL carries
                credentials.
        """
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        if scheme not in _DEFAULT_PORTS:
            msg = f"target URL must use http or https, got: {url!r}"
            raise ConfigError(msg)
        if not parts.hostname:
            msg = f"target URL has no host: {url!r}"
            raise ConfigError(msg)
        try:
            port = parts.port
        except ValueError:
            msg = f"target URL has an invalid port: {url!r}"
            raise ConfigError(msg) from None
        if parts.username is not None or parts.password is not None:
            msg = "target URL must not contain credentials"
            raise ConfigError(msg)

        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"

        return cls(
            scheme=scheme,
            host=parts.hostname,
            port=port if port is not None else _DEFAULT_PORTS[scheme],
            path=path,
        )

    @property
    def url(self) -> str:
        """Return the full URL string."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{self.scheme}://{host}:{self.port}{self.path}"

    def __str__(self) -> str:
        return self.url


def _require_positive(name: str, value: float) -> None:
    # NaN fails every comparison
    if not math.isfinite(value) or value <= 0:
        msg = f"{name} must be a positive finite number, got: {value}"
        raise ConfigError(msg)


@dataclass(frozen=True)
class WorkerConfig:
    """Immutable per-run worker configuration.

    Attributes:
        target: Where every request goes.
        worker_count: Number of concurrent workers (>= 1).
        request_interval: Seconds each worker waits between requests.
        request_timeout: Per-request timeout in seconds.
        success_policy: Classification of completed responses.
    """

    target: Target
    worker_count: int = DEFAULT_WORKERS
    request_interval: float = DEFAULT_DELAY
    request_timeout: float = DEFAULT_TIMEOUT
    success_policy: SuccessPolicy = SuccessPolicy.ANY_RESPONSE

    def __post_init__(self) -> None:
        if self.worker_count < 1:
            msg = f"worker count must be >= 1, got: {self.worker_count}"
            raise ConfigError(msg)
        _require_positive("request interval", self.request_interval)
        _require_positive("request timeout", self.request_timeout)


@dataclass(frozen=True)
class GeneratorConfig:
    """Everything a run needs: worker settings plus lifecycle bounds.

    Attributes:
        workers: Worker pool configuration.
        grace_period: Seconds allowed for workers to exit after a stop.
        duration: Optional auto-stop after this many seconds; None runs
            until interrupted.
        report_interval: Seconds between live statistics callbacks.
    """

    workers: WorkerConfig
    grace_period: float = DEFAULT_GRACE_PERIOD
    duration: float | None = None
    report_interval: float = DEFAULT_REPORT_INTERVAL

    def __post_init__(self) -> None:
        if not math.isfinite(self.grace_period) or self.grace_period < 0:
            msg = f"grace period must be a finite number >= 0, got: {self.grace_period}"
            raise ConfigError(msg)
        if self.duration is not None:
            _require_positive("duration", self.duration)
        _require_positive("report interval", self.report_interval)


def _env_value(
    env: Mapping[str, str],
    name: str,
    convert: Callable[[str], object],
    kind: str,
) -> object | None:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return convert(raw)
    except ValueError:
        msg = f"{name} must be {kind}, got: {raw!r}"
        raise ConfigError(msg) from None


def load_config(
    url: str | None = None,
    *,
    workers: int | None = None,
    delay: float | None = None,
    timeout: float | None = None,
    grace_period: float | None = None,
    duration: float | None = None,
    success_policy: str | SuccessPolicy | None = None,
    report_interval: float | None = None,
    env: Mapping[str, str] | None = None,
) -> GeneratorConfig:
    """Build a validated configuration from overrides, environment and defaults.

    Environment variables:
        TRAFFICGEN_URL: Target URL (required if ``url`` is not given).
        TRAFFICGEN_WORKERS: Worker count (default: 15).
        TRAFFICGEN_DELAY: Inter-request delay in seconds (default: 0.0667).
        TRAFFICGEN_TIMEOUT: Request timeout in seconds (default: 10.0).
        TRAFFICGEN_GRACE_PERIOD: Shutdown grace period (default: 5.0).
        TRAFFICGEN_DURATION: Optional auto-stop in seconds.
        TRAFFICGEN_SUCCESS_POLICY: ``any`` or ``status`` (default: any).
        TRAFFICGEN_REPORT_INTERVAL: Live statistics interval (default: 1.0).

    Args:
        url: Target URL override.
        workers: Worker count override.
        delay: Inter-request delay override.
        timeout: Request timeout override.
        grace_period: Grace period override.
        duration: Run duration override.
        success_policy: Success policy override.
        report_interval: Live report interval override.
        env: Environment mapping; defaults to ``os.environ``.

    Returns:
        A validated GeneratorConfig.

    Raises:
        ConfigError: If any value is missing, malformed or out of range.
    """
    env = os.environ if env is None else env

    if url is None:
        url = env.get("TRAFFICGEN_URL")
    if not url:
        msg = "a target URL is required (argument or TRAFFICGEN_URL)"
        raise ConfigError(msg)

    if workers is None:
        workers = _env_value(env, "TRAFFICGEN_WORKERS", int, "an integer")  # type: ignore[assignment]
    if delay is None:
        delay = _env_value(env, "TRAFFICGEN_DELAY", float, "a number")  # type: ignore[assignment]
    if timeout is None:
        timeout = _env_value(env, "TRAFFICGEN_TIMEOUT", float, "a number")  # type: ignore[assignment]
    if grace_period is None:
        grace_period = _env_value(env, "TRAFFICGEN_GRACE_PERIOD", float, "a number")  # type: ignore[assignment]
    if duration is None:
        duration = _env_value(env, "TRAFFICGEN_DURATION", float, "a number")  # type: ignore[assignment]
    if report_interval is None:
        report_interval = _env_value(env, "TRAFFICGEN_REPORT_INTERVAL", float, "a number")  # type: ignore[assignment]
    if success_policy is None:
        success_policy = env.get("TRAFFICGEN_SUCCESS_POLICY") or SuccessPolicy.ANY_RESPONSE

    try:
        policy = SuccessPolicy(success_policy)
    except ValueError:
        choices = ", ".join(p.value for p in SuccessPolicy)
        msg = f"success policy must be one of: {choices}, got: {success_policy!r}"
        raise ConfigError(msg) from None

    worker_config = WorkerConfig(
        target=Target.parse(url),
        worker_count=workers if workers is not None else DEFAULT_WORKERS,
        request_interval=delay if delay is not None else DEFAULT_DELAY,
        request_timeout=timeout if timeout is not None else DEFAULT_TIMEOUT,
        success_policy=policy,
    )
    return GeneratorConfig(
        workers=worker_config,
        grace_period=grace_period if grace_period is not None else DEFAULT_GRACE_PERIOD,
        duration=duration,
        report_interval=(
            report_interval if report_interval is not None else DEFAULT_REPORT_INTERVAL
        ),
    )
