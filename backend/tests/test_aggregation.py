# Overview: Pytest coverage for movement aggregation, the ledger view and the day editor.

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from shopledger.extensions import db
from shopledger.models import Location, Movement
from shopledger.services import action_config_service, aggregation_service
from shopledger.services.aggregation_service import aggregate
from shopledger.validation import ConflictError, ValidationError

D = date(2024, 3, 6)


def _mv(id_, d, action_id, type_, amount):
    return SimpleNamespace(id=id_, date=d, action_id=action_id, type=type_, amount=Decimal(amount))


class TestAggregate:
    def test_single_entry_without_override_row(self):
        summary = aggregate([_mv(1, D, 10, "ENTRY", "1000")], {}, {10: True})
        assert summary.total_entries == Decimal("1000")
        assert summary.total_exits == Decimal("0")
        assert summary.net_result == Decimal("1000")
        assert summary.total_impacted == Decimal("1000")

    def test_impacting_exit_subtracts_and_non_impacting_is_ignored(self):
        movements = [
            _mv(1, D, 1, "ENTRY", "500"),
            _mv(2, D, 2, "EXIT", "200"),
            _mv(3, D, 3, "EXIT", "50"),
        ]
        summary = aggregate(movements, {1: True, 2: True, 3: False})
        assert summary.total_exits == Decimal("250")
        assert summary.net_result == Decimal("250")
        assert summary.total_impacted == Decimal("300")

    def test_override_row_beats_catalog_default(self):
        summary = aggregate([_mv(1, D, 1, "ENTRY", "100")], {1: False}, {1: True})
        assert summary.total_impacted == Decimal("0")

    def test_days_most_recent_first_movements_by_id(self):
        movements = [
            _mv(5, date(2024, 3, 4), 1, "ENTRY", "1"),
            _mv(3, date(2024, 3, 6), 1, "ENTRY", "2"),
            _mv(2, date(2024, 3, 6), 1, "EXIT", "3"),
        ]
        summary = aggregate(movements, {})
        assert [d.date for d in summary.days] == [date(2024, 3, 6), date(2024, 3, 4)]
        assert [m.id for m in summary.days[0].movements] == [2, 3]
        assert summary.movement_count == 3

    def test_bounds_are_half_open(self):
        movements = [_mv(1, date(2024, 3, 3), 1, "ENTRY", "10"), _mv(2, date(2024, 3, 10), 1, "ENTRY", "20")]
        summary = aggregate(movements, {}, start=date(2024, 3, 3), end=date(2024, 3, 10))
        assert summary.total_entries == Decimal("10")

    def test_net_equals_entries_minus_exits_everywhere(self):
        movements = [
            _mv(i, date(2024, 3, 1 + i % 9), i % 3, "ENTRY" if i % 2 else "EXIT", f"{i * 7}.{i % 100:02d}")
            for i in range(1, 60)
        ]
        summary = aggregate(movements, {0: True, 1: False})
        assert summary.net_result == summary.total_entries - summary.total_exits
        for day in summary.days:
            assert day.net_result == day.total_entries - day.total_exits

    def test_empty(self):
        summary = aggregate([], {})
        assert summary.days == []
        assert summary.net_result == Decimal("0")


def _add(location, user, action, d, amount, type_="ENTRY", shift=None, person_name=None):
    mv = Movement(
        location_id=location.id,
        date=d,
        action_id=action.id,
        type=type_,
        amount=Decimal(amount),
        shift=shift,
        person_name=person_name,
        created_by_user_id=user.id,
    )
    db.session.add(mv)
    db.session.commit()
    return mv


class TestLedgerView:
    def test_scenario_single_shift_entry(self, db_session, catalog, admin_user):
        bare = Location(name="Sin overrides")
        db_session.add(bare)
        db_session.commit()
        _add(bare, admin_user, catalog["Morning shift"], D, "1000")

        view = aggregation_service.ledger_view(bare.id, "day", D)
        assert view["summary"]["total_entries"] == "1000.00"
        assert view["summary"]["total_exits"] == "0.00"
        assert view["summary"]["net_result"] == "1000.00"
        assert view["summary"]["total_impacted"] == "1000.00"

    def test_week_view_groups_days(self, db_session, location, admin_user, catalog):
        _add(location, admin_user, catalog["Night shift"], date(2024, 3, 4), "100")
        _add(location, admin_user, catalog["Deposit payment"], date(2024, 3, 6), "40", "EXIT")
        _add(location, admin_user, catalog["Night shift"], date(2024, 3, 11), "999")

        view = aggregation_service.ledger_view(location.id, "week", D)
        assert [d["date"] for d in view["days"]] == ["2024-03-06", "2024-03-04"]
        assert view["summary"]["net_result"] == "60.00"
        assert len(view["weeks"]) == 1
        assert view["weeks"][0]["start"] == "2024-03-03"
        assert view["meta"]["last_movement_date"] == "2024-03-11"

    def test_non_impacting_override_excluded_from_impacted(self, db_session, location, admin_user, catalog):
        action_config_service.save_overrides(location.id, [{"action_id": catalog["Virtual payments"].id, "impacts_total": False}])
        _add(location, admin_user, catalog["Night shift"], D, "300")
        _add(location, admin_user, catalog["Virtual payments"], D, "100", "EXIT")

        summary = aggregation_service.ledger_view(location.id, "day", D)["summary"]
        assert summary["net_result"] == "200.00"
        assert summary["total_impacted"] == "300.00"

    def test_all_scope_needs_no_date(self, db_session, location, admin_user, catalog):
        _add(location, admin_user, catalog["Night shift"], date(2023, 1, 1), "5")
        _add(location, admin_user, catalog["Night shift"], D, "5")
        view = aggregation_service.ledger_view(location.id, "all", None)
        assert view["summary"]["movement_count"] == 2
        assert view["date"] is None

    def test_date_required_unless_all(self, db_session, location):
        with pytest.raises(ValidationError) as exc:
            aggregation_service.ledger_view(location.id, "week", None)
        assert exc.value.code == "DATE_REQUIRED"

    def test_unknown_scope(self, db_session, location):
        with pytest.raises(ValidationError) as exc:
            aggregation_service.ledger_view(location.id, "decade", D)
        assert exc.value.code == "SCOPE_INVALID"

    def test_other_location_movements_are_invisible(self, db_session, location, other_location, other_admin, catalog):
        _add(other_location, other_admin, catalog["Night shift"], D, "700")
        view = aggregation_service.ledger_view(location.id, "day", D)
        assert view["days"] == []
        assert view["meta"]["last_movement_date"] is None


class TestDaySlots:
    def test_creates_only_non_zero_values(self, db_session, location, admin_user, catalog):
        electronic = catalog["Electronic payments"].id
        deposit = catalog["Deposit payment"].id

        result = aggregation_service.save_day_slots(location.id, D, {str(electronic): "1.500,50", str(deposit): "0"}, admin_user.id)
        assert result == {"created": 1, "updated": 0}
        assert aggregation_service.get_day_slots(location.id, D) == {electronic: Decimal("1500.50")}

    def test_existing_slot_is_updated_even_to_zero(self, db_session, location, admin_user, catalog):
        electronic = catalog["Electronic payments"].id
        aggregation_service.save_day_slots(location.id, D, {electronic: "100"}, admin_user.id)

        result = aggregation_service.save_day_slots(location.id, D, {electronic: "0"}, admin_user.id)
        assert result == {"created": 0, "updated": 1}
        assert aggregation_service.get_day_slots(location.id, D) == {electronic: Decimal("0.00")}

    def test_update_recaptures_current_type(self, db_session, location, admin_user, catalog):
        electronic = catalog["Electronic payments"].id
        aggregation_service.save_day_slots(location.id, D, {electronic: "100"}, admin_user.id)
        action_config_service.save_overrides(location.id, [{"action_id": electronic, "type_override": "EXIT"}])

        aggregation_service.save_day_slots(location.id, D, {electronic: "120"}, admin_user.id)
        mv = db_session.query(Movement).filter_by(location_id=location.id, action_id=electronic).one()
        assert mv.type == "EXIT"
        assert mv.amount == Decimal("120.00")

    def test_tagged_movements_are_not_slots(self, db_session, location, admin_user, catalog):
        night = catalog["Night shift"]
        _add(location, admin_user, night, D, "800", shift="NIGHT")
        assert aggregation_service.get_day_slots(location.id, D) == {}

        result = aggregation_service.save_day_slots(location.id, D, {night.id: "50"}, admin_user.id)
        assert result == {"created": 1, "updated": 0}
        assert db_session.query(Movement).filter_by(location_id=location.id, action_id=night.id).count() == 2

    def test_partner_and_disabled_actions_rejected(self, db_session, location, admin_user, catalog):
        with pytest.raises(ConflictError) as exc:
            aggregation_service.save_day_slots(location.id, D, {catalog["Partner"].id: "10"}, admin_user.id)
        assert exc.value.code == "PARTNER_DISABLED"

        action_config_service.save_overrides(location.id, [{"action_id": catalog["Deposit payment"].id, "is_enabled": False}])
        with pytest.raises(ConflictError) as exc:
            aggregation_service.save_day_slots(location.id, D, {catalog["Deposit payment"].id: "10"}, admin_user.id)
        assert exc.value.code == "ACTION_NOT_ENABLED"

    def test_negative_rejected_and_nothing_written(self, db_session, location, admin_user, catalog):
        electronic = catalog["Electronic payments"].id
        with pytest.raises(ValidationError) as exc:
            aggregation_service.save_day_slots(location.id, D, {electronic: "10", catalog["Deposit payment"].id: "-5"}, admin_user.id)
        assert exc.value.code == "AMOUNT_INVALID"
        assert aggregation_service.get_day_slots(location.id, D) == {}
