"""Drive a worker pool from your own asyncio code instead of the CLI.

Run with::

    python examples/embedded_run.py http://localhost:8000/
"""

from __future__ import annotations

import asyncio
import sys

from trafficgen import Target, WorkerConfig, setup_logging, start_pool


async def main(url: str) -> int:
    setup_logging()
    pool = start_pool(
        WorkerConfig(
            target=Target.parse(url),
            worker_count=5,
            request_interval=0.1,
            request_timeout=2.0,
        )
    )

    for _ in range(5):
        await asyncio.sleep(1.0)
        stats = pool.stats()
        print(f"sent={stats.sent} ok={stats.succeeded} failed={stats.failed}")

    result = await pool.shutdown(timeout=3.0)
    print(f"shutdown: {result.outcome.value}")
    return 0 if result.clean else 3


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000/")))
