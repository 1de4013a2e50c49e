from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .config import DEFAULT_TIMEZONE, EVENT_NAMESPACE


class ModuleStatus(str, Enum):
    NONE = "none"
    CHANGED = "changed"
    CANCELLED = "cancelled"


STATUS_MARKERS = {
    "Ændret!": ModuleStatus.CHANGED,
    "Aflyst!": ModuleStatus.CANCELLED,
}

# Google Calendar event colors: 4 is "Flamingo" (red), 2 is "Sage" (green)
STATUS_COLORS = {
    ModuleStatus.CANCELLED: "4",
    ModuleStatus.CHANGED: "2",
}


@dataclass
class Module:
    id: str
    title: str
    start: datetime
    end: datetime
    location: str = ""
    teacher: str = ""
    group: str = ""
    homework: str = ""
    notes: str = ""
    status: ModuleStatus = ModuleStatus.NONE

    @property
    def color_id(self) -> Optional[str]:
        return STATUS_COLORS.get(self.status)

    def description(self) -> str:
        description = self.teacher + "\n"
        if self.notes:
            description += f"Noter: {self.notes}"
        if self.homework:
            description += f"Lektier:\n{self.homework}"
        return description

    def event_id(self, namespace: str = EVENT_NAMESPACE) -> str:
        return namespace + self.id

    def to_gcal_body(
        self,
        namespace: str = EVENT_NAMESPACE,
        timezone_name: str = DEFAULT_TIMEZONE,
        status: str = "confirmed",
    ) -> dict:
        body = {
            "id": self.event_id(namespace),
            "summary": self.title,
            "description": self.description(),
            "start": {"dateTime": self.start.isoformat(), "timeZone": timezone_name},
            "end": {"dateTime": self.end.isoformat(), "timeZone": timezone_name},
            "status": status,
        }
        if self.location:
            body["location"] = self.location
        if self.color_id:
            body["colorId"] = self.color_id
        return body

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "startDate": self.start.isoformat(),
            "endDate": self.end.isoformat(),
            "location": self.location,
            "teacher": self.teacher,
            "group": self.group,
            "homework": self.homework,
            "description": self.notes,
            "status": self.status.value,
        }
