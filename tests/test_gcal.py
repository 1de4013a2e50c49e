import socket
from datetime import datetime

import httplib2
import pytest
from google.auth.exceptions import RefreshError, TransportError

from lectio_sync import gcal
from lectio_sync.config import ConfigError, FetchError
from lectio_sync.gcal import (
    apply_plan,
    clear_managed_events,
    fetch_existing_events,
    get_event,
    plan_sync,
    sync_modules,
)
from lectio_sync.models import Module, ModuleStatus


@pytest.fixture
def window(tz):
    return datetime(2024, 1, 8, tzinfo=tz), datetime(2024, 1, 15, tzinfo=tz)


def make_module(tz, id="123", status=ModuleStatus.NONE, title="2a MA"):
    return Module(
        id=id,
        title=title,
        start=datetime(2024, 1, 8, 9, 55, tzinfo=tz),
        end=datetime(2024, 1, 8, 11, 25, tzinfo=tz),
        location="Lokale: 22",
        teacher="Lærer: AH",
        status=status,
    )


def user_event():
    return {
        "id": "abc987",
        "summary": "Tandlæge",
        "status": "confirmed",
        "start": {"dateTime": "2024-01-09T10:00:00+01:00"},
        "end": {"dateTime": "2024-01-09T11:00:00+01:00"},
    }


def test_missing_module_is_inserted_without_color(tz, fake_service, window):
    service = fake_service()
    source = {"123": make_module(tz)}

    plan = plan_sync(source, {})
    assert [body["id"] for body in plan.inserts] == ["lec123"]
    assert "colorId" not in plan.inserts[0]

    apply_plan(service, "cal", plan)
    assert service.calls == [("insert", "lec123")]
    assert service.store["lec123"]["start"]["dateTime"] == "2024-01-08T09:55:00+01:00"


def test_soft_deleted_event_is_restored_not_inserted(tz, fake_service, window):
    existing = {"lec123": {"id": "lec123", "status": "cancelled"}}
    service = fake_service(existing.values())
    source = {"123": make_module(tz, status=ModuleStatus.CANCELLED)}

    plan = plan_sync(source, existing)
    assert plan.inserts == []
    assert len(plan.restores) == 1
    assert plan.restores[0]["colorId"] == "4"

    apply_plan(service, "cal", plan)
    assert service.calls == [("update", "lec123")]
    assert service.store["lec123"]["status"] == "confirmed"


def test_deleted_event_outside_window_is_restored(tz, fake_service):
    service = fake_service([{"id": "lec123", "status": "cancelled"}])

    plan = plan_sync({"123": make_module(tz)}, {})
    apply_plan(service, "cal", plan)

    assert service.calls == [("update", "lec123")]


def test_live_event_found_on_insert_is_left_alone(tz, fake_service):
    service = fake_service([make_module(tz).to_gcal_body()])

    operations = apply_plan(service, "cal", plan_sync({"123": make_module(tz)}, {}))

    assert operations == 0
    assert service.calls == []


def test_changed_module_is_updated(tz, fake_service, window):
    service = fake_service([make_module(tz).to_gcal_body()])
    source = {"123": make_module(tz, status=ModuleStatus.CHANGED)}

    sync_modules(service, "cal", source, *window)

    assert service.calls == [("update", "lec123")]
    assert service.store["lec123"]["colorId"] == "2"


def test_sync_is_idempotent(tz, fake_service, window):
    service = fake_service([user_event()])
    source = {
        "123": make_module(tz),
        "124": make_module(tz, id="124", status=ModuleStatus.CANCELLED),
    }

    assert sync_modules(service, "cal", source, *window) == 2
    calls_after_first = list(service.calls)

    assert sync_modules(service, "cal", source, *window) == 0
    assert service.calls == calls_after_first


def test_foreign_events_are_never_touched(tz, fake_service, window):
    service = fake_service([user_event(), dict(make_module(tz, id="999").to_gcal_body())])

    existing = fetch_existing_events(service, "cal", *window)
    assert set(existing) == {"lec999"}

    sync_modules(service, "cal", {}, *window, delete_extra=True)
    assert service.calls == [("delete", "lec999")]
    assert service.store["abc987"]["status"] == "confirmed"


def test_extras_are_only_reported_by_default(tz, fake_service, window):
    service = fake_service([make_module(tz, id="999").to_gcal_body()])

    plan = plan_sync({}, fetch_existing_events(service, "cal", *window))
    assert [event["id"] for event in plan.extras] == ["lec999"]

    assert apply_plan(service, "cal", plan) == 0
    assert service.calls == []


def test_dry_run_issues_no_writes(tz, fake_service, window):
    service = fake_service()

    operations = sync_modules(service, "cal", {"123": make_module(tz)}, *window, dry_run=True)

    assert operations == 1
    assert service.calls == []
    assert service.store == {}


def test_hide_cancelled_hides_live_event(tz, fake_service, window):
    service = fake_service([make_module(tz).to_gcal_body()])
    source = {"123": make_module(tz, status=ModuleStatus.CANCELLED)}

    sync_modules(service, "cal", source, *window, hide_cancelled=True)
    assert service.calls == [("update", "lec123")]
    assert service.store["lec123"]["status"] == "cancelled"

    assert sync_modules(service, "cal", source, *window, hide_cancelled=True) == 0


def test_hide_cancelled_never_inserts(tz, fake_service, window):
    service = fake_service()
    source = {"123": make_module(tz, status=ModuleStatus.CANCELLED)}

    assert sync_modules(service, "cal", source, *window, hide_cancelled=True) == 0
    assert service.store == {}


def test_failing_operation_raises_fetch_error(tz, fake_service, window):
    service = fake_service(fail_on="insert")
    with pytest.raises(FetchError, match="lec123"):
        sync_modules(service, "cal", {"123": make_module(tz)}, *window)


def test_clear_managed_events(tz, fake_service):
    service = fake_service([user_event(), make_module(tz).to_gcal_body(), make_module(tz, id="2").to_gcal_body()])

    assert clear_managed_events(service, "cal") == 2
    assert sorted(service.calls) == [("delete", "lec123"), ("delete", "lec2")]


class _FailingRequest:
    def __init__(self, exc):
        self.exc = exc

    def execute(self):
        raise self.exc


class _UnreachableEvents:
    def __init__(self, exc):
        self.exc = exc

    def list(self, **kwargs):
        return _FailingRequest(self.exc)

    def get(self, **kwargs):
        return _FailingRequest(self.exc)


class UnreachableService:
    def __init__(self, exc):
        self.exc = exc

    def events(self):
        return _UnreachableEvents(self.exc)


@pytest.mark.parametrize(
    "exc",
    [
        socket.timeout("timed out"),
        ConnectionResetError("reset"),
        httplib2.ServerNotFoundError("no such host"),
        TransportError("connection aborted"),
    ],
)
def test_transport_failure_on_list_raises_fetch_error(window, exc):
    with pytest.raises(FetchError, match="cal-1"):
        sync_modules(UnreachableService(exc), "cal-1", {}, *window)


def test_transport_failure_on_get_raises_fetch_error():
    with pytest.raises(FetchError, match="lec123"):
        get_event(UnreachableService(socket.timeout("timed out")), "cal", "lec123")


def test_plan_with_only_extras_is_truthy(tz):
    plan = plan_sync({}, {"lec999": make_module(tz, id="999").to_gcal_body()})
    assert plan
    assert len(plan.extras) == 1


class _ExpiredCredentials:
    valid = False
    expired = True
    refresh_token = "refresh"

    def refresh(self, request):
        raise RefreshError("invalid_grant: Token has been expired or revoked.")


def test_revoked_token_raises_config_error(tmp_path, monkeypatch):
    token_file = tmp_path / "token.json"
    token_file.write_text("{}", encoding="utf-8")
    monkeypatch.setattr(
        gcal.Credentials, "from_authorized_user_file", lambda *args, **kwargs: _ExpiredCredentials()
    )

    with pytest.raises(ConfigError, match="token.json"):
        gcal._load_credentials(str(tmp_path / "credentials.json"), str(token_file))
