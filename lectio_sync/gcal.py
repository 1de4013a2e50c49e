from __future__ import annotations

import datetime as dt
import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import DEFAULT_TIMEZONE, EVENT_NAMESPACE, ConfigError, FetchError
from .models import Module, ModuleStatus
from .utils import events_equal

SCOPES = ["https://www.googleapis.com/auth/calendar.events"]

# Raised by the HTTP stack when the API cannot be reached at all
TRANSPORT_ERRORS = (OSError, httplib2.HttpLib2Error, TransportError)


def _load_credentials(client_secrets_file: str, token_file: str) -> Credentials:
    creds = None
    if token_file and os.path.exists(token_file):
        try:
            creds = Credentials.from_authorized_user_file(token_file, SCOPES)
        except ValueError as exc:
            logging.warning("Ignoring unreadable token file %s: %s", token_file, exc)
            creds = None
    if not creds or not creds.valid:
        if creds and creds.expired and creds.refresh_token:
            try:
                creds.refresh(Request())
            except (RefreshError, TransportError) as exc:
                raise ConfigError(f"Could not refresh the token in {token_file}: {exc}") from exc
        else:
            if not os.path.exists(client_secrets_file):
                raise ConfigError(f"Client secrets file {client_secrets_file} not found")
            flow = InstalledAppFlow.from_client_secrets_file(client_secrets_file, SCOPES)
            creds = flow.run_local_server(port=0)
        with open(token_file, "w") as token:
            token.write(creds.to_json())
    return creds


def build_service(client_secrets_file: str, token_file: str):
    creds = _load_credentials(client_secrets_file, token_file)
    return build("calendar", "v3", credentials=creds)


def _execute(request, action: str):
    try:
        return request.execute()
    except HttpError as exc:
        raise FetchError(f"{action} failed: {exc}") from exc
    except TRANSPORT_ERRORS as exc:
        raise FetchError(f"{action} failed, calendar API unreachable: {exc}") from exc


def is_managed(event: dict, namespace: str = EVENT_NAMESPACE) -> bool:
    return event.get("id", "").startswith(namespace)


def fetch_existing_events(
    service,
    calendar_id: str,
    time_min: dt.datetime,
    time_max: dt.datetime,
    namespace: str = EVENT_NAMESPACE,
) -> dict[str, dict]:
    logging.info("Fetching existing events from %s to %s", time_min, time_max)
    events: dict[str, dict] = {}
    page_token = None
    while True:
        events_result = _execute(
            service.events().list(
                calendarId=calendar_id,
                timeMin=time_min.isoformat(),
                timeMax=time_max.isoformat(),
                singleEvents=True,
                showDeleted=True,
                maxResults=2500,
                pageToken=page_token,
            ),
            f"Listing events of calendar {calendar_id}",
        )
        for event in events_result.get("items", []):
            if is_managed(event, namespace):
                events[event["id"]] = event
        page_token = events_result.get("nextPageToken")
        if not page_token:
            break
    logging.info("Found %d existing managed events", len(events))
    return events


def get_event(service, calendar_id: str, event_id: str) -> Optional[dict]:
    try:
        return service.events().get(calendarId=calendar_id, eventId=event_id).execute()
    except HttpError as exc:
        if exc.resp.status in (404, 410):
            return None
        raise FetchError(f"Getting event {event_id} failed: {exc}") from exc
    except TRANSPORT_ERRORS as exc:
        raise FetchError(f"Getting event {event_id} failed, calendar API unreachable: {exc}") from exc


@dataclass
class SyncPlan:
    inserts: List[dict] = field(default_factory=list)
    restores: List[dict] = field(default_factory=list)
    updates: List[dict] = field(default_factory=list)
    extras: List[dict] = field(default_factory=list)


def plan_sync(
    source: dict[str, Module],
    existing: dict[str, dict],
    hide_cancelled: bool = False,
    namespace: str = EVENT_NAMESPACE,
    timezone_name: str = DEFAULT_TIMEZONE,
) -> SyncPlan:
    """Work out which remote operations make ``existing`` match ``source``.

    ``existing`` holds the managed remote events keyed by event id, including
    soft-deleted ones. A source module whose event is soft-deleted is restored
    in place rather than inserted again under the same id.
    """
    plan = SyncPlan()
    wanted: set[str] = set()
    for module in source.values():
        hidden = hide_cancelled and module.status == ModuleStatus.CANCELLED
        body = module.to_gcal_body(
            namespace=namespace,
            timezone_name=timezone_name,
            status="cancelled" if hidden else "confirmed",
        )
        wanted.add(body["id"])
        remote = existing.get(body["id"])
        if remote is None:
            if not hidden:
                plan.inserts.append(body)
        elif remote.get("status") == "cancelled":
            if not hidden:
                plan.restores.append(body)
        elif not events_equal(body, remote):
            plan.updates.append(body)

    for event_id, event in existing.items():
        if event_id not in wanted and event.get("status") != "cancelled":
            plan.extras.append(event)
    return plan


def apply_plan(
    service,
    calendar_id: str,
    plan: SyncPlan,
    dry_run: bool = False,
    delete_extra: bool = False,
) -> int:
    operations = 0

    for body in plan.inserts:
        current = get_event(service, calendar_id, body["id"])
        if current is None:
            logging.info("INSERT %s %s %s-%s", body["id"], body["summary"], body["start"]["dateTime"], body["end"]["dateTime"])
            if not dry_run:
                _execute(service.events().insert(calendarId=calendar_id, body=body), f"Inserting event {body['id']}")
        elif current.get("status") == "cancelled":
            logging.info("RESTORE %s %s (deleted outside sync window)", body["id"], body["summary"])
            if not dry_run:
                _execute(
                    service.events().update(calendarId=calendar_id, eventId=body["id"], body=body),
                    f"Restoring event {body['id']}",
                )
        else:
            logging.info("Event %s already exists, leaving it alone", body["id"])
            continue
        operations += 1

    for action, bodies in (("RESTORE", plan.restores), ("UPDATE", plan.updates)):
        for body in bodies:
            logging.info("%s %s %s %s-%s", action, body["id"], body["summary"], body["start"]["dateTime"], body["end"]["dateTime"])
            if not dry_run:
                _execute(
                    service.events().update(calendarId=calendar_id, eventId=body["id"], body=body),
                    f"Updating event {body['id']}",
                )
            operations += 1

    for event in plan.extras:
        start = event.get("start", {}).get("dateTime")
        logging.info("EXTRA %s %s %s", event["id"], event.get("summary", ""), start)
        if delete_extra:
            logging.info("DELETE %s", event["id"])
            if not dry_run:
                _execute(
                    service.events().delete(calendarId=calendar_id, eventId=event["id"]),
                    f"Deleting event {event['id']}",
                )
            operations += 1

    logging.info("Sync complete. %d operations%s", operations, " (dry run)" if dry_run else "")
    return operations


def sync_modules(
    service,
    calendar_id: str,
    modules: dict[str, Module],
    time_min: dt.datetime,
    time_max: dt.datetime,
    dry_run: bool = False,
    hide_cancelled: bool = False,
    delete_extra: bool = False,
    timezone_name: str = DEFAULT_TIMEZONE,
) -> int:
    existing = fetch_existing_events(service, calendar_id, time_min, time_max)
    plan = plan_sync(modules, existing, hide_cancelled=hide_cancelled, timezone_name=timezone_name)
    logging.info(
        "Planned %d inserts, %d restores, %d updates; %d extra events",
        len(plan.inserts),
        len(plan.restores),
        len(plan.updates),
        len(plan.extras),
    )
    return apply_plan(service, calendar_id, plan, dry_run=dry_run, delete_extra=delete_extra)


def clear_managed_events(service, calendar_id: str, namespace: str = EVENT_NAMESPACE) -> int:
    deleted = 0
    page_token = None
    while True:
        result = _execute(
            service.events().list(calendarId=calendar_id, maxResults=250, pageToken=page_token),
            f"Listing events of calendar {calendar_id}",
        )
        for event in result.get("items", []):
            if is_managed(event, namespace):
                _execute(
                    service.events().delete(calendarId=calendar_id, eventId=event["id"]),
                    f"Deleting event {event['id']}",
                )
                deleted += 1
        page_token = result.get("nextPageToken")
        if not page_token:
            break
    logging.info("Deleted %d managed events from %s", deleted, calendar_id)
    return deleted
