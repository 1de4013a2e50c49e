from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Tuple

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from .config import FetchError, Settings
from .schedule import BASE_URL

USERNAME_INPUT = "#username"
PASSWORD_INPUT = "#password"
SUBMIT_BUTTON = "#m_Content_submitbtn2"


def login_url(school_id: str) -> str:
    return f"{BASE_URL}/{school_id}/login.aspx"


def create_context(settings: Settings, headful: bool = False) -> Tuple[Playwright, Browser, BrowserContext]:
    try:
        playwright = sync_playwright().start()
    except PlaywrightError as exc:
        raise FetchError(f"Could not start Playwright: {exc}") from exc
    try:
        browser = playwright.chromium.launch(headless=not headful)
        storage_state = Path(settings.storage_state_path)
        context = browser.new_context(
            storage_state=str(storage_state) if storage_state.exists() else None,
            locale="da-DK",
            timezone_id=str(settings.timezone),
        )
    except PlaywrightError as exc:
        playwright.stop()
        raise FetchError(f"Could not launch the browser: {exc}") from exc
    return playwright, browser, context


def ensure_login(settings: Settings, context: BrowserContext) -> Page:
    url = login_url(settings.school_id)
    try:
        page = context.new_page()
        page.goto(url)
        if page.url.startswith(url):
            logging.info("Logging in to Lectio as %s", settings.lectio_username)
            page.wait_for_selector(USERNAME_INPUT, state="visible")
            page.fill(USERNAME_INPUT, settings.lectio_username)
            page.fill(PASSWORD_INPUT, settings.lectio_password)
            page.click(SUBMIT_BUTTON)
            page.wait_for_load_state("networkidle")
    except PlaywrightError as exc:
        raise FetchError(f"Could not log in to Lectio: {exc}") from exc

    if page.url.startswith(url):
        raise FetchError("Still on the login page after submitting credentials")

    context.storage_state(path=settings.storage_state_path)
    logging.info("Login successful, session stored at %s", settings.storage_state_path)
    return page


@contextmanager
def lectio_session(settings: Settings, headful: bool = False) -> Iterator[Page]:
    playwright, browser, context = create_context(settings, headful=headful)
    try:
        yield ensure_login(settings, context)
    finally:
        context.close()
        browser.close()
        playwright.stop()
        logging.info("Browser session closed")
