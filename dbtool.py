import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from colorama import init
from dotenv import load_dotenv

from cli.validateconfig import database_count, load_databases, load_object_store_config, parse_bool
from console_utils import configure_messenger
from custom_logging import BackupLogger
from factory import build_registry
from services.backup.core import DEFAULT_WORK_DIR
from services.backup_services import BackupJob
from services.errors import ConfigurationError
from services.scheduling.cron import BackupScheduler, run_all_once


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Database Backup Worker - scheduled MySQL, PostgreSQL and ClickHouse backups to S3",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the scheduler with the configuration from .env
  python dbtool.py serve

  # Back up every configured database once and exit
  python dbtool.py once
    """
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=["serve", "once"],
        help="serve: keep running and follow the cron patterns (default); once: run every backup now and exit",
    )
    parser.add_argument("--env-file", default=None, help="Path to a .env file (default: ./.env)")
    parser.add_argument("--no-color", action="store_true", help="Disable colored console output")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    init(autoreset=True)
    load_dotenv(args.env_file)
    messenger = configure_messenger(enable_colors=not args.no_color)

    try:
        s3_config = load_object_store_config(os.environ)
        database_count(os.environ)
    except ConfigurationError as e:
        messenger.error(f"{e}. Check documentation and try again.")
        return 1

    log_dir = os.getenv("BACKUP_LOG_DIR") or None
    log_level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO
    work_dir = Path(os.getenv("BACKUP_WORK_DIR") or DEFAULT_WORK_DIR)

    registry = build_registry(s3_config, work_dir=work_dir)
    databases = load_databases(os.environ, registry.supported_types(), messenger)
    if not databases:
        messenger.error("No valid database configuration found. Nothing to back up.")
        return 1

    messenger.section_header("Database Backup Worker")
    messenger.config_item("S3 endpoint", s3_config.endpoint_url)
    messenger.config_item("S3 bucket", s3_config.bucket)
    messenger.config_item("S3 access key", s3_config.access_key, mask_value=True)
    messenger.config_item("Work directory", str(work_dir))
    messenger.config_item("Log directory", log_dir)

    jobs = [
        BackupJob(entry, registry, BackupLogger.for_database(
            entry.database_type, entry.database.name, log_dir=log_dir, level=log_level
        ))
        for entry in databases
    ]

    if args.command == "once":
        results = asyncio.run(run_all_once(job.run for job in jobs))
        failed = [job.name for job, ok in zip(jobs, results) if not ok]
        if failed:
            messenger.error(f"Backups failed: {', '.join(failed)}")
            return 1
        messenger.success(f"{len(jobs)} backups finished")
        return 0

    scheduler = BackupScheduler(BackupLogger(name="backup.scheduler", log_dir=log_dir, level=log_level))
    for job in jobs:
        trigger = scheduler.add_job(job.entry.cron_pattern, job.run, name=job.name)
        messenger.info(
            f'Starting backup worker. Cron set to "{trigger.pattern}" for database '
            f'{job.entry.database_type}:"{job.entry.database.name}" and S3 bucket: "{s3_config.bucket}". '
            f"Next backup at {trigger.next_date():%Y-%m-%d %H:%M:%S}"
        )

    try:
        asyncio.run(scheduler.serve(run_on_start=parse_bool(os.getenv("RUN_ON_START"))))
    except KeyboardInterrupt:
        messenger.info("Interrupted by user. Exiting...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
