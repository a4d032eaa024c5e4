"""trafficgen: bounded concurrent HTTP traffic generator."""

from __future__ import annotations

__version__ = "0.1.0"

from trafficgen._internal.config import (  # noqa: E402
    GeneratorConfig,
    SuccessPolicy,
    Target,
    WorkerConfig,
    load_config,
)
from trafficgen._internal.logging import setup_logging  # noqa: E402
from trafficgen.engine.cancellation import CancellationToken  # noqa: E402
from trafficgen.engine.controller import (  # noqa: E402
    ControllerState,
    LifecycleController,
    RunReport,
    run_generator,
)
from trafficgen.engine.pool import WorkerPool, start_pool  # noqa: E402
from trafficgen.engine.protocol import JoinOutcome, JoinResult  # noqa: E402
from trafficgen.metrics.models import AggregateStats  # noqa: E402

__all__ = [
    "AggregateStats",
    "CancellationToken",
    "ControllerState",
    "GeneratorConfig",
    "JoinOutcome",
    "JoinResult",
    "LifecycleController",
    "RunReport",
    "SuccessPolicy",
    "Target",
    "WorkerConfig",
    "WorkerPool",
    "load_config",
    "run_generator",
    "setup_logging",
    "start_pool",
]
