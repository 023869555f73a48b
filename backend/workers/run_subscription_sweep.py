import argparse

from common.workers.launcher import WorkerLauncher
from packages.subscriptions.workers.sweep_worker import SweepWorker


def setup_cli():
    parser = argparse.ArgumentParser(description="Subscription sweep worker")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep and exit (for cron)",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between sweeps (defaults to SWEEP_INTERVAL_SECONDS)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    args = parser.parse_args()
    return args, (), {"run_once": args.once, "interval_seconds": args.interval}


if __name__ == "__main__":
    WorkerLauncher().run_with_cli(
        worker_factory=SweepWorker,
        worker_name="Subscription Sweep Worker",
        cli_setup_func=setup_cli,
    )
