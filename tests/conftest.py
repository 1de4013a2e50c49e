import copy
import os
import sys
from zoneinfo import ZoneInfo

import httplib2
import pytest
from googleapiclient.errors import HttpError

# Make the project root importable when running pytest from a checkout
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


class _Request:
    def __init__(self, fn):
        self._fn = fn

    def execute(self):
        return self._fn()


def http_error(status: int) -> HttpError:
    return HttpError(httplib2.Response({"status": str(status)}), b"error")


class FakeEvents:
    def __init__(self, service):
        self.service = service

    def list(self, calendarId, showDeleted=False, pageToken=None, **kwargs):
        def run():
            items = [
                copy.deepcopy(event)
                for event in self.service.store.values()
                if showDeleted or event.get("status") != "cancelled"
            ]
            return {"items": items}

        return _Request(run)

    def get(self, calendarId, eventId):
        def run():
            if eventId not in self.service.store:
                raise http_error(404)
            return copy.deepcopy(self.service.store[eventId])

        return _Request(run)

    def insert(self, calendarId, body):
        def run():
            self.service.record("insert", body["id"])
            self.service.store[body["id"]] = copy.deepcopy(body)
            return body

        return _Request(run)

    def update(self, calendarId, eventId, body):
        def run():
            self.service.record("update", eventId)
            self.service.store[eventId] = copy.deepcopy(body)
            return body

        return _Request(run)

    def delete(self, calendarId, eventId):
        def run():
            self.service.record("delete", eventId)
            self.service.store[eventId]["status"] = "cancelled"

        return _Request(run)


class FakeCalendarService:
    """In-memory stand-in for the Google Calendar v3 service object."""

    def __init__(self, events=None, fail_on=None):
        self.store = {event["id"]: copy.deepcopy(event) for event in events or []}
        self.calls = []
        self.fail_on = fail_on

    def record(self, action, event_id):
        if self.fail_on == action:
            raise http_error(500)
        self.calls.append((action, event_id))

    def events(self):
        return FakeEvents(self)


@pytest.fixture
def tz():
    return ZoneInfo("Europe/Copenhagen")


@pytest.fixture
def fake_service():
    return FakeCalendarService
