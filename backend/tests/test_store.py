"""
Unit tests for the response store.
"""

import threading
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from response_tracker.db import session_scope
from response_tracker.errors import DataError, DataStoreError
from response_tracker.schemas import Emergency, Response
from response_tracker.services import settings


class TestEmergencies:
    """Adding, renaming and deleting categories."""

    def test_add_emergency(self, store, make_response):
        """New categories are persisted with their initial responses in order."""
        result = store.add_emergency(
            "Fire",
            [
                make_response(datetime(2024, 2, 1), "F1"),
                make_response(datetime(2024, 1, 1), "F2"),
            ],
        )

        assert result.success is True
        assert result.error is None
        created = result.value
        assert created.id is not None
        assert created.type == "Fire"
        assert [r.incident_number for r in created.responses] == ["F1", "F2"]
        assert all(r.id is not None for r in created.responses)

        stored = store.get_emergency("Fire")
        assert stored == created

    def test_duplicate_type_is_rejected(self, store, make_response):
        """A second category with the same type fails and changes nothing."""
        store.add_emergency("Fire", [make_response(datetime(2024, 2, 1))])

        result = store.add_emergency("Fire", [make_response(datetime(2024, 2, 2))])

        assert result.success is False
        assert result.error == DataError.ALREADY_EXISTS
        assert result.error.message == "Emergency type already exists"
        emergencies = store.list_emergencies()
        assert len(emergencies) == 1
        assert emergencies[0].responses_count == 1

    def test_type_uniqueness_is_case_sensitive(self, store):
        """Types differing only by case are distinct categories."""
        assert store.add_emergency("Fire")
        assert store.add_emergency("fire")

        assert {e.type for e in store.list_emergencies()} == {"Fire", "fire"}

    def test_empty_type_is_rejected(self, store):
        """A category needs a name."""
        result = store.add_emergency("")

        assert result.error == DataError.WRITE_FAILED
        assert store.list_emergencies() == []

    def test_rename_emergency(self, store):
        """Renaming updates both the stored record and the caller's entity."""
        fire = store.add_emergency("Fire").value

        result = store.rename_emergency(fire, "Structure fire")

        assert result.success is True
        assert fire.type == "Structure fire"
        assert store.get_emergency("Fire") is None
        assert store.get_emergency("Structure fire").id == fire.id

    def test_rename_to_existing_type_fails(self, store):
        """Renaming onto another category's type is a write failure."""
        store.add_emergency("Fire")
        medical = store.add_emergency("Medical").value

        result = store.rename_emergency(medical, "Fire")

        assert result.error == DataError.WRITE_FAILED
        assert medical.type == "Medical"
        assert store.get_emergency("Medical") is not None

    def test_rename_unknown_emergency_fails(self, store):
        """Only stored categories can be renamed."""
        ghost = Emergency(id=999, type="Ghost")

        assert store.rename_emergency(ghost, "Other").error == DataError.WRITE_FAILED

    def test_delete_emergency_cascades(self, store, make_response):
        """Deleting a category removes every response it owned."""
        fire = store.add_emergency(
            "Fire",
            [make_response(datetime(2024, 2, 1)), make_response(datetime(2024, 2, 2))],
        ).value
        store.add_emergency("Medical", [make_response(datetime(2024, 2, 3), "M1")])
        assert store.get_points().all == 3

        result = store.delete_emergency(fire)

        assert result.success is True
        assert store.get_emergency("Fire") is None
        assert store.get_points().all == 1
        assert store.last_response().incident_number == "M1"

    def test_delete_unknown_emergency_fails(self, store):
        """Deleting a category that is not stored reports a clear failure."""
        ghost = Emergency(id=999, type="Ghost")

        assert store.delete_emergency(ghost).error == DataError.CLEAR_FAILED


class TestResponses:
    """Adding, removing and editing responses."""

    def test_add_response(self, store, make_response):
        """Responses are appended in entry order, not date order."""
        fire = store.add_emergency("Fire").value

        first = make_response(datetime(2024, 2, 10), "F1")
        second = make_response(datetime(2024, 2, 1), "F2")
        assert store.add_response(first, fire)
        assert store.add_response(second, fire)

        assert first.id is not None
        assert second.id is not None
        assert [r.incident_number for r in fire.responses] == ["F1", "F2"]
        stored = store.get_emergency("Fire")
        assert [r.incident_number for r in stored.responses] == ["F1", "F2"]

    def test_add_response_with_aware_date(self, store):
        """Timezone-aware dates are kept as naive local time on both sides."""
        fire = store.add_emergency("Fire").value
        aware = datetime(2024, 2, 10, 12, tzinfo=timezone.utc)
        response = Response(incident_number="F1", date=aware)

        assert store.add_response(response, fire)

        assert response.date.tzinfo is None
        assert response.date == aware.astimezone().replace(tzinfo=None)
        assert store.get_emergency("Fire").responses[0].date == response.date
        points = store.emergency_points(fire)
        assert points.current_month == 1
        assert points.all == 1
        assert [e.type for e in store.list_emergencies()] == ["Fire"]

    def test_add_response_to_unknown_emergency_fails(self, store, make_response):
        """A response needs an owning category."""
        ghost = Emergency(id=999, type="Ghost")

        result = store.add_response(make_response(datetime(2024, 2, 1)), ghost)

        assert result.error == DataError.WRITE_FAILED
        assert store.last_response() is None

    def test_remove_response(self, store, make_response):
        """The response is detached from its category and deleted."""
        fire = store.add_emergency("Fire").value
        keep = make_response(datetime(2024, 2, 1), "F1")
        drop = make_response(datetime(2024, 2, 2), "F2")
        store.add_response(keep, fire)
        store.add_response(drop, fire)

        result = store.remove_response(drop, fire)

        assert result.success is True
        assert [r.id for r in fire.responses] == [keep.id]
        assert [r.id for r in store.get_emergency("Fire").responses] == [keep.id]
        assert store.last_response().id == keep.id

    def test_remove_response_not_in_category_is_noop(self, store, make_response):
        """Removing a response owned by another category changes nothing."""
        fire = store.add_emergency("Fire").value
        medical = store.add_emergency("Medical").value
        other = make_response(datetime(2024, 2, 1), "M1")
        store.add_response(other, medical)

        result = store.remove_response(other, fire)

        assert result.success is True
        assert store.get_emergency("Medical").responses_count == 1

    def test_update_response(self, store, make_response):
        """Updated fields read back exactly; identity is unchanged."""
        fire = store.add_emergency("Fire").value
        response = make_response(datetime(2024, 2, 1), "F1", "kitchen")
        store.add_response(response, fire)
        original_id = response.id

        new_values = Response(
            incident_number="F1-B",
            details="garage",
            date=datetime(2024, 2, 3, 8, 30),
        )
        result = store.update_response(response, new_values)

        assert result.success is True
        assert response.id == original_id
        stored = store.get_emergency("Fire").responses[0]
        assert stored.id == original_id
        assert stored.incident_number == "F1-B"
        assert stored.details == "garage"
        assert stored.date == datetime(2024, 2, 3, 8, 30)

    def test_update_unknown_response_fails(self, store, make_response):
        """Only stored responses can be updated."""
        orphan = make_response(datetime(2024, 2, 1))

        result = store.update_response(orphan, make_response(datetime(2024, 2, 2)))

        assert result.error == DataError.WRITE_FAILED

    def test_last_response_across_categories(self, store, make_response):
        """The most recently entered response wins, whatever its date."""
        assert store.last_response() is None

        fire = store.add_emergency("Fire").value
        medical = store.add_emergency("Medical").value
        store.add_response(make_response(datetime(2024, 2, 15), "F1"), fire)
        store.add_response(make_response(datetime(2024, 1, 2), "M1"), medical)

        assert store.last_response().incident_number == "M1"


class TestListing:
    """Category ordering."""

    def test_sorted_by_current_month_descending(self, store, make_response):
        """Busiest category this month comes first."""
        store.add_emergency("Fire", [make_response(datetime(2024, 2, 1))])
        store.add_emergency(
            "Medical",
            [make_response(datetime(2024, 2, 2)), make_response(datetime(2024, 2, 3))],
        )
        store.add_emergency("Rescue")

        assert [e.type for e in store.list_emergencies()] == ["Medical", "Fire", "Rescue"]

    def test_ties_keep_insertion_order(self, store, make_response):
        """Equal current-month counts keep the order categories were added."""
        store.add_emergency("Alarm", [make_response(datetime(2023, 5, 1))])
        store.add_emergency("Fire", [make_response(datetime(2024, 2, 1))])
        store.add_emergency("Hazmat")
        store.add_emergency("Medical", [make_response(datetime(2024, 2, 4))])

        assert [e.type for e in store.list_emergencies()] == ["Fire", "Medical", "Alarm", "Hazmat"]


class TestResets:
    """Manual points, point resets and full clears."""

    def test_add_manual_points_creates_separate_entries(self, store):
        """Manual additions are never merged."""
        before = store.get_points().all

        store.add_manual_points(5)
        store.add_manual_points(5)

        entries = store.manual_point_entries()
        assert [e.points for e in entries] == [5, 5]
        assert all(e.date_added == datetime(2024, 2, 20, 12, 0) for e in entries)
        assert store.get_points().all == before + 10

    def test_negative_manual_points_rejected(self, store):
        """Point credits cannot be negative."""
        result = store.add_manual_points(-3)

        assert result.error == DataError.WRITE_FAILED
        assert store.manual_point_entries() == []

    def test_clear_points(self, store, clock, make_response):
        """Manual entries go away and the reset marker is set; responses stay."""
        store.add_emergency("Fire", [make_response(datetime(2024, 2, 1))])
        store.add_manual_points(4)

        result = store.clear_points()

        assert result.success is True
        assert store.last_reset() == clock.now
        assert store.manual_point_entries() == []
        assert store.get_emergency("Fire").responses_count == 1

    def test_clear_all_data(self, store, clock, make_response):
        """Everything is removed and the reset marker is set."""
        store.add_emergency("Fire", [make_response(datetime(2024, 2, 1))])
        store.add_manual_points(2)

        result = store.clear_all_data()

        assert result.success is True
        assert store.list_emergencies() == []
        assert store.last_response() is None
        assert store.manual_point_entries() == []
        assert store.last_reset() == clock.now
        assert store.get_points().all == 0


class TestFailures:
    """Storage faults roll back and surface as error kinds."""

    def test_manual_points_write_failure(self, store):
        """A failed save leaves the entries untouched."""
        store.add_manual_points(1)

        with patch.object(settings, "save_manual_entries", side_effect=SQLAlchemyError("disk full")):
            result = store.add_manual_points(7)

        assert result.success is False
        assert result.error == DataError.WRITE_FAILED
        assert [e.points for e in store.manual_point_entries()] == [1]

    def test_clear_all_data_is_atomic(self, store, make_response):
        """If the last step fails, the deletes before it are rolled back."""
        store.add_emergency("Fire", [make_response(datetime(2024, 2, 1))])
        store.add_manual_points(3)

        with patch.object(settings, "set_last_reset", side_effect=OperationalError("UPDATE", {}, Exception("locked"))):
            result = store.clear_all_data()

        assert result.error == DataError.CLEAR_FAILED
        assert store.get_emergency("Fire").responses_count == 1
        assert [e.points for e in store.manual_point_entries()] == [3]
        assert store.last_reset() is None

    def test_corrupt_settings_raise_read_failed(self, store):
        """An unreadable manual points document is a read failure."""
        with session_scope(store._factory) as db:
            settings.set_setting(db, settings.MANUAL_POINTS_KEY, "not json")

        with pytest.raises(DataStoreError) as exc_info:
            store.get_points()

        assert exc_info.value.kind == DataError.READ_FAILED

    def test_concurrent_manual_additions_are_not_lost(self, store):
        """Transactions from several threads serialize instead of clobbering."""
        threads = [threading.Thread(target=store.add_manual_points, args=(1,)) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store.manual_point_entries()) == 10
