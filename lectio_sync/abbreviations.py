from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Mapping

from .config import ConfigError


def resolve_group(raw: str, title: str, mapping: Mapping[str, str]) -> tuple[str, str]:
    """Return the ``(group, title)`` pair for a raw group code.

    A known code becomes the group and prefixes any title captured so far.
    An unknown code is kept as the group and appended to the title instead.
    """
    if raw in mapping:
        display = mapping[raw]
        return display, f"{display}: {title}" if title else display
    return raw, f"{title} - {raw}" if title else raw


def load_abbreviations(path: str) -> dict[str, str]:
    abbreviations_path = Path(path)
    try:
        raw = json.loads(abbreviations_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Could not read abbreviations {abbreviations_path}: {exc}") from exc
    if not isinstance(raw, dict) or not all(isinstance(v, str) for v in raw.values()):
        raise ConfigError(f"Abbreviations in {abbreviations_path} must map codes to names")
    logging.info("Loaded %d group abbreviations from %s", len(raw), abbreviations_path)
    return {str(k): v for k, v in raw.items()}
