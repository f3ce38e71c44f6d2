# Overview: Pytest coverage for row locking and conflict-free inserts.

from datetime import date

import pytest
from sqlalchemy.dialects import postgresql

from shopledger.extensions import db
from shopledger.models import ActionDefinition, Movement
from shopledger.services import aggregation_service, concurrency
from shopledger.services.concurrency import insert_ignore_conflicts, lock_for_update

D = date(2024, 3, 6)


def _row(name):
    return {
        "name": name,
        "description": None,
        "category": "OTHER",
        "default_type": "ENTRY",
        "impacts_total_default": True,
        "uses_shift": False,
        "uses_name": False,
        "is_active": True,
    }


class TestLockForUpdate:
    def test_query_selects_for_update(self, db_session):
        query = lock_for_update(db_session.query(Movement).filter(Movement.location_id == 1))
        sql = str(query.statement.compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in sql

    def test_day_slot_save_locks_slot_rows(self, db_session, location, admin_user, catalog, monkeypatch):
        calls = []

        def spy(query):
            calls.append(query)
            return concurrency.lock_for_update(query)

        monkeypatch.setattr(aggregation_service, "lock_for_update", spy)

        aggregation_service.save_day_slots(location.id, D, {catalog["Deposit payment"].id: "10"}, admin_user.id)
        assert len(calls) == 1

        aggregation_service.get_day_slots(location.id, D)
        assert len(calls) == 1


class TestInsertIgnoreConflicts:
    def test_existing_names_are_skipped(self, db_session, catalog):
        inserted = insert_ignore_conflicts(
            ActionDefinition,
            [_row("Night shift"), _row("Tips jar")],
            conflict_columns=["name"],
        )
        db_session.commit()
        assert inserted == 1
        assert db_session.query(ActionDefinition).filter_by(name="Tips jar").count() == 1

    def test_empty_batch(self, db_session):
        assert insert_ignore_conflicts(ActionDefinition, [], conflict_columns=["name"]) == 0

    def test_unsupported_backend_is_refused(self, db_session, monkeypatch):
        monkeypatch.setattr(db.session.get_bind().dialect, "name", "mysql")
        with pytest.raises(RuntimeError):
            insert_ignore_conflicts(ActionDefinition, [_row("Tips jar")], conflict_columns=["name"])
        monkeypatch.undo()
        assert db_session.query(ActionDefinition).filter_by(name="Tips jar").count() == 0
