"""
Tests for the account and tracker flows.

Flows run on the JSON backend in a temporary directory; the storage
contract itself is covered by test_storage.py. Audit events are
checked with structlog's capture_logs.
"""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
import structlog
from structlog.testing import capture_logs

from expense_tracker.config import Settings, StorageSettings, get_settings, validate_all_settings
from expense_tracker.models.expense import Currency
from expense_tracker.orchestrator import (
    AccountFlow,
    AuthenticationError,
    TrackerFlow,
    create_app_components,
    status_for_error,
)
from expense_tracker.services.storage import (
    ConflictError,
    JsonFileTrackerStorage,
    NotFoundError,
    SqlTrackerStorage,
    StorageError,
    create_storage,
)
from expense_tracker.validation import ValidationError


class BrokenDiskStorage(JsonFileTrackerStorage):
    """JSON storage whose writes always fail."""

    async def create_expense(self, data):
        raise StorageError("disk full")


@pytest.fixture
def json_storage(tmp_path):
    return JsonFileTrackerStorage(tmp_path / "data.json")


@pytest.fixture
def flows(json_storage):
    return AccountFlow(json_storage), TrackerFlow(json_storage)


@pytest.fixture
def account(flows):
    account_flow, _ = flows
    return asyncio.run(account_flow.register({"pin": "1234"}))


def _audit_events(logs):
    return [entry["event_type"] for entry in logs if entry.get("event") == "audit_event"]


class TestAccountFlow:
    """Tests for registration and login."""

    def test_register_then_login(self, flows):
        """Test that the registered PIN logs in as the same user."""
        account_flow, _ = flows
        user = asyncio.run(account_flow.register({"pin": "4321", "preferredCurrency": "INR"}))

        logged_in = asyncio.run(account_flow.login("4321"))

        assert logged_in.id == user.id
        assert logged_in.preferred_currency == Currency.INR

    def test_duplicate_registration(self, flows, account):
        account_flow, _ = flows
        with pytest.raises(ConflictError) as exc:
            asyncio.run(account_flow.register({"pin": "1234"}))
        assert str(exc.value) == "This PIN is already in use"

    def test_malformed_registration(self, flows):
        account_flow, _ = flows
        with pytest.raises(ValidationError):
            asyncio.run(account_flow.register({"pin": "12"}))

    @pytest.mark.parametrize("pin", ["12", "abcd", None, 1234])
    def test_login_with_malformed_pin(self, flows, pin):
        account_flow, _ = flows
        with pytest.raises(ValidationError) as exc:
            asyncio.run(account_flow.login(pin))
        assert str(exc.value) == "Invalid PIN format"

    def test_login_with_unknown_pin(self, flows, account):
        account_flow, _ = flows
        with pytest.raises(AuthenticationError) as exc:
            asyncio.run(account_flow.login("9999"))
        assert str(exc.value) == "Invalid PIN"


class TestTrackerFlow:
    """Tests for tracker and expense handling."""

    def test_create_and_list_trackers(self, flows, account):
        _, tracker_flow = flows
        created = asyncio.run(tracker_flow.create_tracker(
            account.id, {"name": " Groceries ", "currency": "USD"}
        ))

        assert created.name == "Groceries"
        assert asyncio.run(tracker_flow.list_trackers(account.id)) == [created]
        assert asyncio.run(tracker_flow.get_tracker(created.id)) == created

    def test_create_tracker_for_unknown_user(self, flows):
        _, tracker_flow = flows
        with pytest.raises(NotFoundError) as exc:
            asyncio.run(tracker_flow.create_tracker("ghost", {"name": "X", "currency": "USD"}))
        assert str(exc.value) == "User not found"

    def test_list_trackers_requires_user_id(self, flows):
        _, tracker_flow = flows
        with pytest.raises(ValidationError) as exc:
            asyncio.run(tracker_flow.list_trackers(""))
        assert str(exc.value) == "User ID required"

    def test_list_expenses_requires_tracker_id(self, flows):
        _, tracker_flow = flows
        with pytest.raises(ValidationError) as exc:
            asyncio.run(tracker_flow.list_expenses("  "))
        assert str(exc.value) == "Tracker ID required"

    def test_add_expense_to_unknown_tracker(self, flows):
        _, tracker_flow = flows
        with pytest.raises(NotFoundError) as exc:
            asyncio.run(tracker_flow.add_expense({
                "tracker_id": "missing",
                "amount": 5,
                "category": "Food",
                "date": "2024-03-01",
            }))
        assert str(exc.value) == "Tracker not found"

    def test_summary_of_a_tracker(self, flows, account):
        """Test the worked example: Food 15.75, Transport 3.00, total 18.75."""
        _, tracker_flow = flows
        tracker = asyncio.run(tracker_flow.create_tracker(
            account.id, {"name": "March", "currency": "USD"}
        ))
        for amount, category in [(10.50, "Food"), (5.25, "Food"), (3.00, "Transport")]:
            asyncio.run(tracker_flow.add_expense({
                "tracker_id": tracker.id,
                "amount": amount,
                "category": category,
                "date": "2024-03-01",
            }))

        summary = asyncio.run(tracker_flow.summarize(tracker.id))

        assert summary.as_dict() == {"Food": Decimal("15.75"), "Transport": Decimal("3.00")}
        assert summary.grand_total == Decimal("18.75")

    def test_delete_tracker_and_expense(self, flows, account):
        _, tracker_flow = flows
        tracker = asyncio.run(tracker_flow.create_tracker(
            account.id, {"name": "Trip", "currency": "INR"}
        ))
        expense = asyncio.run(tracker_flow.add_expense({
            "tracker_id": tracker.id,
            "amount": 100,
            "category": "Train",
            "date": date(2024, 5, 1),
        }))

        assert asyncio.run(tracker_flow.delete_expense(expense.id)) is True
        assert asyncio.run(tracker_flow.delete_expense(expense.id)) is False
        assert asyncio.run(tracker_flow.delete_tracker(tracker.id)) is True
        assert asyncio.run(tracker_flow.delete_tracker(tracker.id)) is False
        assert asyncio.run(tracker_flow.get_tracker(tracker.id)) is None


class TestAuditTrail:
    """Tests that flows emit the expected audit events."""

    def test_registration_and_login_events(self, json_storage):
        with capture_logs() as logs:
            account_flow = AccountFlow(json_storage)
            asyncio.run(account_flow.register({"pin": "1234"}))
            asyncio.run(account_flow.login("1234"))
            with pytest.raises(AuthenticationError):
                asyncio.run(account_flow.login("0000"))
            with pytest.raises(ConflictError):
                asyncio.run(account_flow.register({"pin": "1234"}))

        assert _audit_events(logs) == [
            "user_registered",
            "login_succeeded",
            "login_failed",
            "registration_conflict",
        ]

    def test_pin_is_never_logged(self, json_storage):
        with capture_logs() as logs:
            account_flow = AccountFlow(json_storage)
            asyncio.run(account_flow.register({"pin": "7391"}))
            asyncio.run(account_flow.login("7391"))

        audit = [e for e in logs if e.get("event") == "audit_event"]
        assert len(audit) == 2
        for entry in audit:
            assert "pin" not in entry["details"]
            assert "7391" not in repr(entry["details"])
            assert "7391" not in entry["description"]

    def test_cascade_delete_reports_removed_expenses(self, json_storage, account):
        with capture_logs() as logs:
            tracker_flow = TrackerFlow(json_storage)
            tracker = asyncio.run(tracker_flow.create_tracker(
                account.id, {"name": "Food", "currency": "USD"}
            ))
            for n in range(3):
                asyncio.run(tracker_flow.add_expense({
                    "tracker_id": tracker.id,
                    "amount": n + 1,
                    "category": "Food",
                    "date": "2024-03-01",
                }))
            asyncio.run(tracker_flow.delete_tracker(tracker.id))

        deleted = [e for e in logs if e.get("event_type") == "tracker_deleted"]
        assert len(deleted) == 1
        assert deleted[0]["details"] == {"removed_expenses": 3}
        assert _audit_events(logs).count("expense_created") == 3

    def test_validation_failure_is_audited(self, json_storage):
        correlation_id = uuid4()
        with capture_logs() as logs:
            tracker_flow = TrackerFlow(json_storage)
            with pytest.raises(ValidationError):
                asyncio.run(tracker_flow.add_expense({"amount": -1}, correlation_id))

        [event] = [e for e in logs if e.get("event_type") == "validation_failed"]
        assert event["entity_type"] == "expense"
        assert event["correlation_id"] == str(correlation_id)
        assert event["log_level"] == "warning"

    def test_storage_failure_is_audited_and_raised(self, tmp_path, account):
        storage = BrokenDiskStorage(tmp_path / "data.json")
        with capture_logs() as logs:
            tracker_flow = TrackerFlow(storage)
            tracker = asyncio.run(tracker_flow.create_tracker(
                account.id, {"name": "Food", "currency": "USD"}
            ))
            with pytest.raises(StorageError):
                asyncio.run(tracker_flow.add_expense({
                    "tracker_id": tracker.id,
                    "amount": 1,
                    "category": "Food",
                    "date": "2024-03-01",
                }))

        [event] = [e for e in logs if e.get("event_type") == "storage_error"]
        assert event["log_level"] == "error"
        assert event["error_message"] == "disk full"

    def test_not_found_is_not_a_storage_error(self, json_storage):
        with capture_logs() as logs:
            tracker_flow = TrackerFlow(json_storage)
            with pytest.raises(NotFoundError):
                asyncio.run(tracker_flow.create_tracker("ghost", {"name": "X", "currency": "USD"}))

        assert "storage_error" not in _audit_events(logs)


class TestStatusForError:
    """Tests for mapping flow errors to HTTP statuses."""

    @pytest.mark.parametrize(
        "error, status",
        [
            (ValidationError([]), 400),
            (AuthenticationError("Invalid PIN"), 401),
            (NotFoundError("Tracker not found"), 404),
            (ConflictError("This PIN is already in use"), 409),
            (StorageError("disk full"), 500),
            (RuntimeError("boom"), 500),
        ],
    )
    def test_mapping(self, error, status):
        assert status_for_error(error) == status


class TestSettings:
    """Tests for configuration and component wiring."""

    @pytest.fixture(autouse=True)
    def isolated_env(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        for name in (
            "TRACKER_STORAGE_BACKEND",
            "TRACKER_STORAGE_DATA_FILE",
            "TRACKER_STORAGE_DATABASE_URL",
            "LOG_LEVEL",
            "LOG_JSON",
            "DEFAULT_CURRENCY",
        ):
            monkeypatch.delenv(name, raising=False)
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        structlog.reset_defaults()

    def test_defaults(self):
        settings = Settings()
        assert settings.storage.backend == "json"
        assert settings.storage.data_file.name == "data.json"
        assert settings.app.log_level == "INFO"
        assert settings.app.default_currency == "USD"

    def test_backend_from_environment(self, monkeypatch):
        monkeypatch.setenv("TRACKER_STORAGE_BACKEND", " SQL ")
        assert StorageSettings().backend == "sql"

    def test_unknown_backend_is_rejected(self, monkeypatch):
        monkeypatch.setenv("TRACKER_STORAGE_BACKEND", "mongo")
        status = validate_all_settings()
        assert status["storage"] is False
        assert "storage_error" in status
        assert status["app"] is True

    def test_log_level_is_normalized(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert Settings().app.log_level == "DEBUG"

    def test_create_storage_picks_backend(self, tmp_path):
        json_backend = create_storage(StorageSettings(data_file=tmp_path / "d.json"))
        sql_backend = create_storage(StorageSettings(
            backend="sql", database_url=f"sqlite:///{tmp_path / 't.db'}"
        ))
        try:
            assert isinstance(json_backend, JsonFileTrackerStorage)
            assert isinstance(sql_backend, SqlTrackerStorage)
        finally:
            sql_backend.close()

    def test_create_app_components(self, tmp_path, monkeypatch):
        """Test that the factory wires both flows to one storage."""
        monkeypatch.setenv("TRACKER_STORAGE_DATA_FILE", str(tmp_path / "app.json"))
        monkeypatch.setenv("LOG_JSON", "true")

        account_flow, tracker_flow, storage = create_app_components(Settings())

        assert isinstance(storage, JsonFileTrackerStorage)
        user = asyncio.run(account_flow.register({"pin": "2468"}))
        tracker = asyncio.run(tracker_flow.create_tracker(
            user.id, {"name": "Home", "currency": "INR"}
        ))
        assert (tmp_path / "app.json").exists()
        assert asyncio.run(storage.get_tracker_by_id(tracker.id)) == tracker
