"""Time-gated suppression of unwanted schedule entries.

A rule suppresses a module when the module starts at or after the rule's
threshold time of day and its title either contains one of the rule's
keywords (case-insensitive) or equals one of the rule's exact titles.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, time
from pathlib import Path
from typing import Iterable, List

from .config import ConfigError


@dataclass(frozen=True)
class BlacklistRule:
    after: time
    keywords: frozenset = field(default_factory=frozenset)
    titles: frozenset = field(default_factory=frozenset)

    def matches(self, title: str, start: datetime) -> bool:
        if start.time() < self.after:
            return False
        lowered = title.lower()
        return any(keyword.lower() in lowered for keyword in self.keywords) or title in self.titles


def is_blacklisted(title: str, start: datetime, rules: Iterable[BlacklistRule]) -> bool:
    return any(rule.matches(title, start) for rule in rules)


def parse_threshold(value: str) -> time:
    try:
        hour, minute = [int(x) for x in value.split(":", 1)]
        return time(hour, minute)
    except ValueError as exc:
        raise ConfigError(f"Invalid blacklist threshold {value!r}, expected HH:MM") from exc


def rules_from_config(raw: list) -> List[BlacklistRule]:
    if not isinstance(raw, list):
        raise ConfigError("Blacklist must be a list of rules")
    rules: List[BlacklistRule] = []
    for entry in raw:
        if not isinstance(entry, dict) or "after" not in entry:
            raise ConfigError(f"Invalid blacklist rule: {entry!r}")
        rules.append(
            BlacklistRule(
                after=parse_threshold(str(entry["after"])),
                keywords=frozenset(k.lower() for k in entry.get("keywords", [])),
                titles=frozenset(entry.get("titles", [])),
            )
        )
    return rules


def load_blacklist(path: str) -> List[BlacklistRule]:
    blacklist_path = Path(path)
    if not blacklist_path.exists():
        logging.info("No blacklist file at %s, nothing will be filtered", blacklist_path)
        return []
    try:
        raw = json.loads(blacklist_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read blacklist {blacklist_path}: {exc}") from exc
    rules = rules_from_config(raw)
    logging.info("Loaded %d blacklist rules from %s", len(rules), blacklist_path)
    return rules
