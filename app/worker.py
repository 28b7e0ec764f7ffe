"""
Render job worker.

Long-polls the job queue and runs every received job through the render
pipeline. Stop with Ctrl-C or SIGTERM; the batch in flight finishes first.

Usage:
    python worker.py [--once] [--concurrency N]
"""

import argparse
import logging
import signal
import sys

from configs.config import get_config
from logging_config import setup_logging
from src.jobs.consumer import QueueConsumer
from src.jobs.orchestrator import build_orchestrator
from src.jobs.queue import SQSQueuePoller

logger = logging.getLogger(__name__)
cfg = get_config()


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the render job worker")
    parser.add_argument("--once", action="store_true", help="Process a single batch and exit")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=cfg.WORKER_MAX_CONCURRENCY,
        help=f"Jobs rendered in parallel per batch (default: {cfg.WORKER_MAX_CONCURRENCY})",
    )
    args = parser.parse_args()

    setup_logging()

    try:
        consumer = QueueConsumer(build_orchestrator(), max_concurrency=args.concurrency)
        poller = SQSQueuePoller(consumer)
    except ValueError as exc:
        logger.error("Worker misconfigured: %s", exc)
        return 1

    if args.once:
        count = poller.poll_once()
        logger.info("Processed %d messages", count)
        return 0

    signal.signal(signal.SIGTERM, lambda *_: poller.stop())
    try:
        poller.run_forever()
    except KeyboardInterrupt:
        poller.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
