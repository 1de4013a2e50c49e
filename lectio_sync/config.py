from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

load_dotenv()

DEFAULT_TIMEZONE = "Europe/Copenhagen"
EVENT_NAMESPACE = "lec"


class ConfigError(Exception):
    pass


class FetchError(Exception):
    pass


@dataclass
class Settings:
    lectio_username: str
    lectio_password: str
    school_id: str
    calendar_id: str
    timezone: ZoneInfo
    google_client_secrets: str
    google_token_file: str
    blacklist_file: str = "blacklist.json"
    abbreviations_file: str = "abbreviations.json"
    storage_state_path: str = "storage_state.json"

    def validate(self) -> None:
        missing = [
            name
            for name, value in (
                ("LECTIO_USERNAME", self.lectio_username),
                ("LECTIO_PASSWORD", self.lectio_password),
                ("LECTIO_SCHOOL_ID", self.school_id),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")
        if not os.path.exists(self.google_client_secrets) and not os.path.exists(self.google_token_file):
            raise ConfigError(
                f"Neither {self.google_client_secrets} nor {self.google_token_file} exists"
            )


def get_timezone() -> ZoneInfo:
    tz_name = os.getenv("TIMEZONE", DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"Invalid TIMEZONE {tz_name!r}") from exc


def get_settings() -> Settings:
    settings = Settings(
        lectio_username=os.getenv("LECTIO_USERNAME", ""),
        lectio_password=os.getenv("LECTIO_PASSWORD", ""),
        school_id=os.getenv("LECTIO_SCHOOL_ID", ""),
        calendar_id=os.getenv("CALENDAR_ID", "primary"),
        timezone=get_timezone(),
        google_client_secrets=os.getenv("GOOGLE_CLIENT_SECRETS", "credentials.json"),
        google_token_file=os.getenv("GOOGLE_TOKEN_FILE", "token.json"),
        blacklist_file=os.getenv("BLACKLIST_FILE", "blacklist.json"),
        abbreviations_file=os.getenv("ABBREVIATIONS_FILE", "abbreviations.json"),
        storage_state_path=os.getenv("STORAGE_STATE_PATH", "storage_state.json"),
    )
    if settings.calendar_id == "primary":
        logging.warning("CALENDAR_ID is not set, syncing into the primary calendar")
    return settings
