#!/usr/bin/env python3
"""Run a single auth inspection from the command line and print the final status.

Usage:
    python backend/scripts/run_inspection.py [--auth-dir DIR] [--provider codex] [--auto-delete-invalid]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from auth_inspector.config import settings
from auth_inspector.inspection.config_store import InspectionConfigStore
from auth_inspector.inspection.scheduler import InspectionScheduler
from auth_inspector.inspection.verifier import BatchVerifier
from auth_inspector.store.manager import CredentialManager

logger = logging.getLogger("run_inspection")


async def run(auth_dir: str, provider: str, auto_delete_invalid: bool) -> dict:
    manager = CredentialManager()
    manager.load_directory(auth_dir)

    scheduler = InspectionScheduler(
        verifier=BatchVerifier(manager),
        config_store=InspectionConfigStore(),
        auth_dir=auth_dir,
        provider=provider,
    )
    await scheduler.run_inspection("manual", auto_delete_invalid)
    return scheduler.tracker.snapshot().model_dump(mode="json")


def main() -> None:
    parser = argparse.ArgumentParser(description="One-shot auth inspection")
    parser.add_argument("--auth-dir", default=settings.auth_dir, help="Auth file directory")
    parser.add_argument("--provider", default=settings.inspection_provider, help="Provider filter")
    parser.add_argument(
        "--auto-delete-invalid",
        action="store_true",
        help="Delete auth files found invalid (only inside --auth-dir)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s %(message)s",
    )

    status = asyncio.run(run(args.auth_dir, args.provider, args.auto_delete_invalid))
    print(json.dumps(status, indent=2))
    if status.get("last_error"):
        logger.error("Inspection finished with error: %s", status["last_error"])
        sys.exit(1)


if __name__ == "__main__":
    main()
