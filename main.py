from __future__ import annotations

import argparse
import logging
from datetime import datetime
from functools import partial
from pathlib import Path

from lectio_sync.abbreviations import load_abbreviations
from lectio_sync.blacklist import load_blacklist
from lectio_sync.browser import lectio_session
from lectio_sync.config import ConfigError, FetchError, get_settings
from lectio_sync.gcal import build_service, clear_managed_events, sync_modules
from lectio_sync.parser import ExtractionConfig
from lectio_sync.schedule import assemble_schedule, fetch_schedule_for_week, week_window
from lectio_sync.storage import modules_to_json


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync a Lectio schedule to Google Calendar")
    parser.add_argument("--weeks", type=int, default=2, help="Number of weeks to sync, starting with the current one")
    parser.add_argument("--headful", action="store_true", help="Open the browser headful for debugging the login")
    parser.add_argument("--dry-run", action="store_true", help="Show actions without modifying the calendar")
    parser.add_argument("--hide-cancelled", action="store_true", help="Hide cancelled classes from the calendar")
    parser.add_argument("--decode-groups", action="store_true", help="Replace group abbreviations with their real title")
    parser.add_argument("--delete-extra", action="store_true", help="Delete synced events no longer in the schedule")
    parser.add_argument("--dump-json", type=str, default=None, help="Write the parsed schedule to this JSON file")
    parser.add_argument("--artifacts", type=str, default=None, help="Directory to save fetched schedule markup in")
    parser.add_argument("--clear", action="store_true", help="Delete every synced event from the calendar and exit")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        settings = get_settings()
        settings.validate()
        if args.weeks < 1:
            raise ConfigError("--weeks must be at least 1")
        config = ExtractionConfig(
            timezone=settings.timezone,
            blacklist=load_blacklist(settings.blacklist_file),
            abbreviations=load_abbreviations(settings.abbreviations_file) if args.decode_groups else {},
        )
        service = build_service(settings.google_client_secrets, settings.google_token_file)
    except ConfigError as exc:
        logging.error("Configuration error: %s", exc)
        return 1

    try:
        if args.clear:
            clear_managed_events(service, settings.calendar_id)
            return 0

        today = datetime.now(settings.timezone).date()
        artifacts = Path(args.artifacts) if args.artifacts else None
        with lectio_session(settings, headful=args.headful) as page:
            fetch_week = partial(fetch_schedule_for_week, page, settings.school_id, artifacts_dir=artifacts)
            modules = assemble_schedule(fetch_week, args.weeks, config, today=today)
        logging.info("Assembled %d modules over %d weeks", len(modules), args.weeks)

        if args.dump_json:
            modules_to_json(modules, args.dump_json)

        time_min, time_max = week_window(today, args.weeks, settings.timezone)
        sync_modules(
            service=service,
            calendar_id=settings.calendar_id,
            modules=modules,
            time_min=time_min,
            time_max=time_max,
            dry_run=args.dry_run,
            hide_cancelled=args.hide_cancelled,
            delete_extra=args.delete_extra,
            timezone_name=str(settings.timezone),
        )
    except FetchError as exc:
        logging.error("Sync aborted: %s", exc)
        return 1

    logging.info("Done")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
