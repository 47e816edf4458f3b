#!/usr/bin/env python3
"""Recompute every device status from its timestamps using the configured thresholds."""
import argparse
import logging
import sys

from dotenv import load_dotenv

from fleetmon.app.init import SystemInitializer
from fleetmon.config.settings import Settings
from fleetmon.db.session import session_scope
from fleetmon.services.status_lifecycle import StatusLifecycleEngine


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--database-url", help="Override FLEETMON_DATABASE_URL")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    load_dotenv()
    settings = Settings(database_url=args.database_url) if args.database_url else Settings()
    system = SystemInitializer(settings).initialize()
    try:
        with session_scope(system.session_factory) as session:
            corrected = StatusLifecycleEngine(session, system.thresholds).recompute_all()
        print(f"Recompute finished: {corrected} devices adjusted")
        return 0
    finally:
        system.shutdown()


if __name__ == "__main__":
    sys.exit(main())
