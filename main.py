"""
RetailSync Entry Point.

Bootstraps the dependency graph via constructor injection, initialises the
local SQLite schema, runs one download sync (plus a retry of parked
records) and prints a JSON report.  With ``--worker`` the background sync
worker keeps running until interrupted instead.

Usage::

    python main.py                # incremental sync
    python main.py --full         # wipe the cache and download everything
    python main.py --worker       # periodic background sync
"""

from __future__ import annotations

import argparse
import atexit
import json
import sys
import threading
import traceback

from retailsync.api_client import ApiClient
from retailsync.config import get_config
from retailsync.database import DatabaseManager
from retailsync.logger import StructuredLogger, get_logger
from retailsync.schema import initialize_schema
from retailsync.services import create_services


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync the local retail cache with the server.")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--full", action="store_true", help="clear the cache and resync from scratch")
    mode.add_argument("--worker", action="store_true", help="run the periodic sync worker")
    return parser.parse_args(argv)


def main(argv: list[str]) -> int:
    """Wire dependencies, sync, and report.  Returns the process exit code."""
    args = _parse_args(argv)
    logger: StructuredLogger = get_logger("retailsync.main")
    logger.info("Starting RetailSync...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Local store + schema
    # ------------------------------------------------------------------
    db = DatabaseManager(
        sqlite_path=config.sqlite_path,
        logger=get_logger("retailsync.database"),
    )
    atexit.register(db.close)
    initialize_schema(db.sqlite, get_logger("retailsync.schema"))

    # ------------------------------------------------------------------
    # 3. Remote client + services
    # ------------------------------------------------------------------
    api = ApiClient.from_config(config, get_logger("retailsync.api"))
    services = create_services(db=db, api=api, config=config)
    orchestrator = services["sync_orchestrator"]

    try:
        if not config.is_remote_configured:
            logger.error("API_BASE_URL is not set; nothing to sync.")
            return 2

        if args.worker:
            worker = services["sync_worker"]
            worker.start()
            try:
                threading.Event().wait()
            except KeyboardInterrupt:
                pass
            finally:
                worker.stop()
            return 0

        synced = orchestrator.sync_all(full_resync=args.full)
        retried = orchestrator.retry_failed()

        sync_report = synced.data or orchestrator.last_report
        report = {
            "success": synced.success,
            "sync": sync_report.model_dump(mode="json") if sync_report else None,
            "retry": retried.data.model_dump(mode="json") if retried.data else None,
            "failure": synced.failure.model_dump(mode="json") if synced.failure else None,
            "failed_records": db.get_failed_sync_count(),
        }
        print(json.dumps(report, indent=2, ensure_ascii=False))
        return 0 if synced.success else 1
    finally:
        api.close()
        db.close()
        logger.info("RetailSync shut down.")


if __name__ == "__main__":
    try:
        sys.exit(main(sys.argv[1:]))
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        detail = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        sys.stderr.write(f"FATAL: {type(exc).__name__}: {exc}\n{detail}")
        sys.exit(1)
