from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from .config import FetchError
from .models import Module
from .parser import ExtractionConfig, parse_modules_from_html

BASE_URL = "https://www.lectio.dk/lectio"
SCHEDULE_TABLE = "#s_m_Content_Content_SkemaNyMedNavigation_skema_skematabel"


def week_numbers(today: date, weeks: int) -> List[tuple[int, int]]:
    """Return ``(iso_year, iso_week)`` for ``weeks`` weeks starting at ``today``'s week."""
    monday = today - timedelta(days=today.weekday())
    numbers: List[tuple[int, int]] = []
    for i in range(weeks):
        iso = (monday + timedelta(days=7 * i)).isocalendar()
        numbers.append((iso[0], iso[1]))
    return numbers


def schedule_url(school_id: str, year: int, week: int) -> str:
    return f"{BASE_URL}/{school_id}/SkemaNy.aspx?week={week:02d}{year}"


def fetch_schedule_for_week(
    page: Page,
    school_id: str,
    year: int,
    week: int,
    artifacts_dir: Optional[Path] = None,
) -> str:
    url = schedule_url(school_id, year, week)
    logging.info("Fetching schedule for week %d/%d: %s", week, year, url)
    try:
        page.goto(url, wait_until="networkidle")
        page.wait_for_selector(SCHEDULE_TABLE, timeout=10_000)
        html = page.inner_html(SCHEDULE_TABLE)
    except PlaywrightError as exc:
        raise FetchError(f"Could not fetch schedule for week {week}/{year}: {exc}") from exc

    if artifacts_dir is not None:
        artifacts_dir.mkdir(parents=True, exist_ok=True)
        artifact_path = artifacts_dir / f"{year}-W{week:02d}.html"
        artifact_path.write_text(html, encoding="utf-8")
        logging.debug("Saved schedule markup to %s", artifact_path)
    return html


def assemble_schedule(
    fetch_week: Callable[[int, int], str],
    weeks: int,
    config: ExtractionConfig,
    today: Optional[date] = None,
) -> dict[str, Module]:
    """Fetch and parse ``weeks`` consecutive weeks into one id-keyed map.

    ``fetch_week(year, week)`` returns the markup for a week. The first
    failing week aborts the whole assembly.
    """
    today = today or date.today()
    modules: dict[str, Module] = {}
    for year, week in week_numbers(today, weeks):
        html = fetch_week(year, week)
        week_modules = parse_modules_from_html(html, config)
        logging.info("Parsed %d modules for week %d/%d", len(week_modules), week, year)
        modules.update(week_modules)
    return modules


def week_window(today: date, weeks: int, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Return the ``[start, end)`` range covering the weeks ``assemble_schedule`` fetches."""
    monday = today - timedelta(days=today.weekday())
    start = datetime.combine(monday, time.min, tzinfo=tz)
    return start, start + timedelta(days=7 * weeks)
