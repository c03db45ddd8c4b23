import pytest

from booking_engine.core.enums import IndustryType
from booking_engine.models.constraint import ConstraintRule, TenantConstraintOverride
from booking_engine.models.resource import BookableResource
from booking_engine.repositories.factory import RepositoryFactory
from booking_engine.services.constraints.catalog import (
    DEFAULT_INDUSTRY_RULES,
    RuleCatalog,
    load_rule_catalog,
)


class TestDefaultRegistry:
    def test_every_industry_has_rules(self):
        assert set(DEFAULT_INDUSTRY_RULES) == {industry.value for industry in IndustryType}

    def test_restaurant_rules(self):
        catalog = RuleCatalog.defaults_for("restaurant")
        assert catalog.get("table_capacity") is not None
        assert catalog.get("resource_capacity") is None
        assert catalog.get("restaurant_policy").param("max_party_size") == 12
        assert catalog.get("table_efficiency").mandatory is False
        assert catalog.get("advance_booking_window").param("max_advance_days") == 14
        assert catalog.get("cancellation_policy").param("free_cancellation_hours") == 2

    def test_salon_rules(self):
        catalog = RuleCatalog.defaults_for("salon")
        policy = catalog.get("cancellation_policy")
        assert policy.param("fee_structure") == "percentage"
        assert policy.param("fee_percentage") == 50.0
        assert policy.mandatory is False
        assert catalog.get("no_show_policy").param("grace_period_minutes") == 15
        assert catalog.get("working_days").param("weekdays") == [6]

    def test_unknown_industry_uses_common_rules(self):
        catalog = RuleCatalog.defaults_for("spaceport")
        assert catalog.get("resource_capacity") is not None

    def test_rules_for_operation(self):
        catalog = RuleCatalog.defaults_for("salon")
        assert [rule.name for rule in catalog.rules_for("cancel")] == ["cancellation_policy"]
        assert [rule.name for rule in catalog.rules_for("reschedule")].count("reschedule_policy") == 1
        assert "reschedule_policy" not in [rule.name for rule in catalog.rules_for("create")]
        assert [rule.name for rule in catalog.rules_for("no_show")] == ["no_show_policy"]

    def test_parameters_are_read_only(self):
        rule = RuleCatalog.defaults_for("salon").get("time_range")
        with pytest.raises(TypeError):
            rule.parameters["max_duration_minutes"] = 1


class TestOverrides:
    def test_with_override_merges_parameters(self):
        catalog = RuleCatalog.defaults_for("salon").with_override(
            "time_range", parameters={"max_duration_minutes": 60}, priority=2
        )
        rule = catalog.get("time_range")
        assert rule.param("max_duration_minutes") == 60
        assert rule.param("min_duration_minutes") == 15
        assert rule.priority == 2

    def test_with_override_can_disable(self):
        catalog = RuleCatalog.defaults_for("salon").with_override("working_days", enabled=False)
        assert catalog.get("working_days") is None

    def test_original_catalog_untouched(self):
        base = RuleCatalog.defaults_for("salon")
        base.with_override("time_range", parameters={"max_duration_minutes": 60})
        assert base.get("time_range").param("max_duration_minutes") == 480

    def test_buffer_minutes_for(self):
        resource = BookableResource(buffer_minutes=10)
        catalog = RuleCatalog.defaults_for("salon")
        assert catalog.buffer_minutes_for(resource) == 10
        overridden = catalog.with_override(
            "time_slot_availability", parameters={"buffer_minutes": 30}
        )
        assert overridden.buffer_minutes_for(resource) == 30


class TestLoadRuleCatalog:
    def test_falls_back_to_defaults(self, unit_db, salon):
        catalog = load_rule_catalog(unit_db, salon)
        assert catalog.source == "defaults"
        assert catalog.get("working_days") is not None

    def test_stored_rules_with_tenant_overrides(self, unit_db, salon, make_tenant):
        repository = RepositoryFactory.create_constraint_repository(unit_db)
        repository.upsert_rules("salon", DEFAULT_INDUSTRY_RULES["salon"])
        unit_db.flush()

        def rule(name):
            return unit_db.query(ConstraintRule).filter_by(industry_type="salon", name=name).one()

        rule("advance_booking_window").is_active = False
        unit_db.add_all(
            [
                TenantConstraintOverride(
                    tenant_id=salon.id,
                    constraint_id=rule("time_range").id,
                    custom_parameters={"max_duration_minutes": 90},
                    custom_priority=6,
                ),
                TenantConstraintOverride(
                    tenant_id=salon.id,
                    constraint_id=rule("working_days").id,
                    is_enabled=False,
                ),
                TenantConstraintOverride(
                    tenant_id=salon.id,
                    constraint_id=rule("daily_assignment_cap").id,
                    custom_mandatory=False,
                ),
            ]
        )
        unit_db.commit()

        catalog = load_rule_catalog(unit_db, salon)
        assert catalog.source == "store"
        assert catalog.get("advance_booking_window") is None
        assert catalog.get("working_days") is None
        assert catalog.get("time_range").param("max_duration_minutes") == 90
        assert catalog.get("time_range").param("min_duration_minutes") == 15
        assert catalog.get("time_range").priority == 6
        assert catalog.get("daily_assignment_cap").mandatory is False

        # Overrides belong to one tenant only
        other = make_tenant(name="Other salon")
        assert load_rule_catalog(unit_db, other).get("working_days") is not None
