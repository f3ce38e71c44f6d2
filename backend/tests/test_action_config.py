# Overview: Pytest coverage for action config resolution, ensure and batch override saves.

from types import SimpleNamespace

import pytest

from shopledger.extensions import db
from shopledger.models import ActionDefinition, Location, LocationActionOverride
from shopledger.services import action_config_service
from shopledger.services.action_config_service import resolve_effective
from shopledger.validation import ConflictError, NotFoundError, ValidationError


def _action(**kw):
    defaults = dict(
        id=1,
        name="Morning shift",
        category="SHIFT",
        default_type="ENTRY",
        uses_shift=True,
        uses_name=False,
        impacts_total_default=True,
    )
    defaults.update(kw)
    return SimpleNamespace(**defaults)


def _override(**kw):
    defaults = dict(
        is_enabled=True,
        display_order=0,
        type_override=None,
        uses_shift_override=None,
        uses_name_override=None,
        impacts_total=True,
    )
    defaults.update(kw)
    return SimpleNamespace(**defaults)


class TestResolveEffective:
    def test_missing_row_uses_every_default(self):
        eff = resolve_effective(_action(impacts_total_default=False), None)
        assert eff.type == "ENTRY"
        assert eff.uses_shift is True
        assert eff.uses_name is False
        assert eff.impacts_total is False
        assert eff.is_enabled is True
        assert eff.has_override is False

    def test_null_field_falls_back_one_field_at_a_time(self):
        eff = resolve_effective(_action(), _override(type_override="EXIT"))
        assert eff.type == "EXIT"
        assert eff.uses_shift is True
        assert eff.uses_name is False

    def test_present_row_always_wins_on_impacts_total(self):
        eff = resolve_effective(_action(impacts_total_default=True), _override(impacts_total=False))
        assert eff.impacts_total is False

    def test_false_override_is_not_treated_as_missing(self):
        eff = resolve_effective(_action(uses_shift=True), _override(uses_shift_override=False, is_enabled=False))
        assert eff.uses_shift is False
        assert eff.is_enabled is False


class TestCatalogAndEnsure:
    def test_seed_is_idempotent(self, db_session, catalog):
        assert action_config_service.seed_action_catalog() == 0
        db_session.commit()
        assert db_session.query(ActionDefinition).count() == len(action_config_service.ACTION_CATALOG)

    def test_seed_leaves_existing_rows_alone(self, db_session, catalog):
        catalog["Night shift"].uses_shift = True
        db_session.commit()
        action_config_service.seed_action_catalog()
        db_session.commit()
        assert db_session.query(ActionDefinition).filter_by(name="Night shift").one().uses_shift is True

    def test_location_onboarding_creates_one_row_per_action(self, db_session, location, catalog):
        rows = db_session.query(LocationActionOverride).filter_by(location_id=location.id).all()
        assert len(rows) == len(catalog)
        assert all(r.is_enabled and r.display_order == 0 for r in rows)

    def test_ensure_is_idempotent_and_keeps_edits(self, db_session, location, catalog):
        row = db_session.query(LocationActionOverride).filter_by(
            location_id=location.id, action_id=catalog["Morning shift"].id
        ).one()
        row.is_enabled = False
        db_session.commit()

        assert action_config_service.ensure_location_overrides(location.id) == 0
        db_session.commit()

        db_session.refresh(row)
        assert row.is_enabled is False
        assert db_session.query(LocationActionOverride).filter_by(location_id=location.id).count() == len(catalog)

    def test_ensure_picks_up_new_catalog_actions(self, db_session, location, catalog):
        db_session.add(ActionDefinition(name="Card fees", category="OTHER", default_type="EXIT", impacts_total_default=False))
        db_session.commit()

        assert action_config_service.ensure_location_overrides(location.id) == 1
        db_session.commit()

        eff = action_config_service.get_effective_action(location.id, db_session.query(ActionDefinition).filter_by(name="Card fees").one().id)
        assert eff.has_override is True
        assert eff.impacts_total is False

    def test_reads_do_not_create_rows(self, db_session, catalog, admin_user):
        bare = Location(name="Sin filas")
        db_session.add(bare)
        db_session.commit()

        actions = action_config_service.list_effective_actions(bare.id)
        assert {a.name for a in actions} == {n for n in catalog if n != "Partner"}
        assert db_session.query(LocationActionOverride).filter_by(location_id=bare.id).count() == 0

    def test_ensure_unknown_location(self, db_session, catalog):
        with pytest.raises(NotFoundError):
            action_config_service.ensure_location_overrides(9999)


class TestLookups:
    def test_unknown_action(self, db_session, location):
        with pytest.raises(NotFoundError) as exc:
            action_config_service.get_effective_action(location.id, 9999)
        assert exc.value.code == "ACTION_NOT_FOUND"

    def test_partner_is_never_listed_or_usable(self, db_session, location, catalog):
        listed = action_config_service.list_effective_actions(location.id, enabled_only=False)
        assert "Partner" not in {a.name for a in listed}
        with pytest.raises(ConflictError) as exc:
            action_config_service.require_enabled_action(location.id, catalog["Partner"].id)
        assert exc.value.code == "PARTNER_DISABLED"

    def test_disabled_action_is_rejected_for_writes(self, db_session, location, catalog):
        action_config_service.save_overrides(location.id, [{"action_id": catalog["Virtual payments"].id, "is_enabled": False}])
        with pytest.raises(ConflictError) as exc:
            action_config_service.require_enabled_action(location.id, catalog["Virtual payments"].id)
        assert exc.value.code == "ACTION_NOT_ENABLED"
        assert "Virtual payments" not in {a.name for a in action_config_service.list_effective_actions(location.id)}

    def test_listing_follows_display_order(self, db_session, location, catalog):
        action_config_service.save_overrides(location.id, [
            {"action_id": catalog["Virtual payments"].id, "display_order": 1},
            {"action_id": catalog["Night shift"].id, "display_order": 2},
        ])
        names = [a.name for a in action_config_service.list_effective_actions(location.id)]
        assert names[-2:] == ["Virtual payments", "Night shift"]


class TestSaveOverrides:
    def test_impacts_total_since_moves_only_on_change(self, db_session, location, catalog):
        action_id = catalog["Electronic payments"].id

        action_config_service.save_overrides(location.id, [{"action_id": action_id, "impacts_total": True}])
        row = db_session.query(LocationActionOverride).filter_by(location_id=location.id, action_id=action_id).one()
        assert row.impacts_total_since is None

        action_config_service.save_overrides(location.id, [{"action_id": action_id, "impacts_total": False}])
        db_session.refresh(row)
        assert row.impacts_total is False
        first_change = row.impacts_total_since
        assert first_change is not None

        action_config_service.save_overrides(location.id, [{"action_id": action_id, "is_enabled": True}])
        db_session.refresh(row)
        assert row.impacts_total_since == first_change

    def test_null_clears_a_nullable_override(self, db_session, location, catalog):
        action_id = catalog["Owner withdrawal"].id
        action_config_service.save_overrides(location.id, [{"action_id": action_id, "type_override": "ENTRY", "uses_name_override": True}])
        assert action_config_service.get_effective_action(location.id, action_id).type == "ENTRY"

        action_config_service.save_overrides(location.id, [{"action_id": action_id, "type_override": None}])
        eff = action_config_service.get_effective_action(location.id, action_id)
        assert eff.type == "EXIT"
        assert eff.uses_name is True

    def test_one_bad_row_aborts_the_batch(self, db_session, location, catalog):
        good = catalog["Morning shift"].id
        with pytest.raises(ValidationError):
            action_config_service.save_overrides(location.id, [
                {"action_id": good, "is_enabled": False},
                {"action_id": catalog["Night shift"].id, "type_override": "SIDEWAYS"},
            ])
        assert action_config_service.get_effective_action(location.id, good).is_enabled is True

    def test_unknown_action_aborts_the_batch(self, db_session, location, catalog):
        good = catalog["Morning shift"].id
        with pytest.raises(NotFoundError):
            action_config_service.save_overrides(location.id, [
                {"action_id": good, "is_enabled": False},
                {"action_id": 9999, "is_enabled": False},
            ])
        db.session.expire_all()
        assert action_config_service.get_effective_action(location.id, good).is_enabled is True

    def test_partner_cannot_be_configured(self, db_session, location, catalog):
        with pytest.raises(ConflictError) as exc:
            action_config_service.save_overrides(location.id, [{"action_id": catalog["Partner"].id, "is_enabled": True}])
        assert exc.value.code == "PARTNER_DISABLED"

    def test_config_screen_shows_defaults_and_overrides(self, db_session, location, catalog):
        action_id = catalog["Deposit payment"].id
        action_config_service.save_overrides(location.id, [{"action_id": action_id, "uses_shift_override": True}])
        rows = {r["action_id"]: r for r in action_config_service.list_override_config(location.id)}

        assert catalog["Partner"].id not in rows
        row = rows[action_id]
        assert row["defaults"]["uses_shift"] is False
        assert row["overrides"]["uses_shift_override"] is True
        assert row["effective"]["uses_shift"] is True
