from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator, List, Optional
from urllib.parse import parse_qs, urlparse
from zoneinfo import ZoneInfo

from bs4 import BeautifulSoup, Tag

from .abbreviations import resolve_group
from .blacklist import BlacklistRule, is_blacklisted
from .config import DEFAULT_TIMEZONE
from .models import STATUS_MARKERS, Module, ModuleStatus
from .utils import TIME_SPAN_REGEX, ParseError, parse_time_span

ID_PARAM = "absid"
INFO_ATTR = "data-additionalinfo"
ANCHOR_ATTR_COUNT = 4

TEACHER_PREFIXES = ("Lærer: ", "Lærere: ")
ROOM_PREFIXES = ("Lokale: ", "Lokaler: ")
GROUP_PREFIX = "Hold: "
ROSTER_PREFIXES = ("Elev: ", "Elever: ")
HOMEWORK_MARKER = "Lektier:"
NOTES_MARKER = "Note:"
TITLE_LINES = 2


@dataclass
class ExtractionConfig:
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo(DEFAULT_TIMEZONE))
    blacklist: List[BlacklistRule] = field(default_factory=list)
    abbreviations: dict = field(default_factory=dict)


class _State(Enum):
    SCANNING = "scanning"
    HOMEWORK = "homework"
    NOTES = "notes"
    DONE = "done"


@dataclass
class _Draft:
    id: str
    title: str = ""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    location: str = ""
    teacher: str = ""
    group: str = ""
    homework: str = ""
    notes: str = ""
    status: ModuleStatus = ModuleStatus.NONE


def _set_time_span(draft: _Draft, line: str, config: ExtractionConfig) -> _State:
    match = TIME_SPAN_REGEX.search(line)
    draft.start, draft.end = parse_time_span(match.group(0), config.timezone)
    return _State.SCANNING


def _set_status(draft: _Draft, line: str, config: ExtractionConfig) -> _State:
    draft.status = STATUS_MARKERS[line]
    return _State.SCANNING


def _set_teacher(draft: _Draft, line: str, config: ExtractionConfig) -> _State:
    draft.teacher = line
    return _State.SCANNING


def _set_room(draft: _Draft, line: str, config: ExtractionConfig) -> _State:
    draft.location = line
    return _State.SCANNING


def _set_group(draft: _Draft, line: str, config: ExtractionConfig) -> _State:
    raw = line[len(GROUP_PREFIX):].strip()
    draft.group, draft.title = resolve_group(raw, draft.title, config.abbreviations)
    return _State.SCANNING


def _set_title(draft: _Draft, line: str, config: ExtractionConfig) -> _State:
    # The group line already composed the title
    if draft.group:
        logging.debug("Ignoring title line %r after group %r", line, draft.group)
        return _State.SCANNING
    draft.title = line
    return _State.SCANNING


def _is_title(line: str, index: int) -> bool:
    return bool(line) and index < TITLE_LINES and not line.startswith(ROSTER_PREFIXES)


# First matching rule wins. Each predicate gets (line, index in the blob).
FIELD_RULES: List[tuple[Callable[[str, int], bool], Callable[[_Draft, str, ExtractionConfig], _State]]] = [
    (lambda line, _: TIME_SPAN_REGEX.search(line) is not None, _set_time_span),
    (lambda line, _: line in STATUS_MARKERS, _set_status),
    (lambda line, _: line.startswith(TEACHER_PREFIXES), _set_teacher),
    (lambda line, _: line.startswith(ROOM_PREFIXES), _set_room),
    (lambda line, _: line.startswith(GROUP_PREFIX), _set_group),
    (lambda line, _: line.startswith(HOMEWORK_MARKER), lambda *_: _State.HOMEWORK),
    (lambda line, _: line == NOTES_MARKER, lambda *_: _State.NOTES),
    (_is_title, _set_title),
]


def _scan_field(draft: _Draft, line: str, index: int, config: ExtractionConfig) -> _State:
    for matches, apply in FIELD_RULES:
        if matches(line, index):
            return apply(draft, line, config)
    return _State.SCANNING


def _consume_block(lines: List[str], cursor: int, stop_prefix: Optional[str]) -> tuple[str, int]:
    block = ""
    while cursor < len(lines):
        if stop_prefix and lines[cursor].startswith(stop_prefix):
            break
        block += lines[cursor] + "\n"
        cursor += 1
    return block, cursor


def parse_module_fields(module_id: str, lines: List[str], config: ExtractionConfig) -> Module:
    draft = _Draft(id=module_id)
    state = _State.SCANNING
    cursor = 0
    while state is not _State.DONE:
        if state is _State.HOMEWORK:
            block, cursor = _consume_block(lines, cursor, NOTES_MARKER)
            draft.homework += block
            state = _State.SCANNING
        elif state is _State.NOTES:
            block, cursor = _consume_block(lines, cursor, None)
            draft.notes += block
            state = _State.DONE
        elif cursor >= len(lines):
            state = _State.DONE
        else:
            state = _scan_field(draft, lines[cursor], cursor, config)
            cursor += 1

    if draft.start is None or draft.end is None:
        raise ParseError("no date/time span found")

    return Module(
        id=draft.id,
        title=draft.title,
        start=draft.start,
        end=draft.end,
        location=draft.location,
        teacher=draft.teacher,
        group=draft.group,
        homework=draft.homework,
        notes=draft.notes,
        status=draft.status,
    )


def module_id_from_href(href: str) -> Optional[str]:
    values = parse_qs(urlparse(href).query).get(ID_PARAM)
    if not values or not values[0]:
        return None
    return values[0]


def iter_module_anchors(root: Tag) -> Iterator[Tag]:
    """Yield candidate schedule links in document (pre-order) order.

    Schedule entries are the only anchors carrying exactly four attributes
    (href, class, style and the info blob); everything else on the page is
    navigation or decoration.
    """
    for node in root.descendants:
        if isinstance(node, Tag) and node.name == "a" and len(node.attrs) == ANCHOR_ATTR_COUNT:
            yield node


def parse_module_anchor(anchor: Tag, config: ExtractionConfig) -> Optional[Module]:
    module_id = module_id_from_href(anchor.get("href", ""))
    if module_id is None:
        return None
    lines = anchor.get(INFO_ATTR, "").split("\n")
    try:
        return parse_module_fields(module_id, lines, config)
    except ParseError as exc:
        raise type(exc)(f"module {module_id}: {exc}") from exc


def parse_modules_from_html(html: str, config: ExtractionConfig) -> dict[str, Module]:
    soup = BeautifulSoup(html, "lxml")
    modules: dict[str, Module] = {}
    for anchor in iter_module_anchors(soup):
        try:
            module = parse_module_anchor(anchor, config)
        except ParseError as exc:
            logging.warning("Skipping module: %s", exc)
            continue
        if module is None:
            continue
        if is_blacklisted(module.title, module.start, config.blacklist):
            logging.debug("Blacklisted module %s (%s)", module.id, module.title)
            continue
        modules[module.id] = module
    return modules
