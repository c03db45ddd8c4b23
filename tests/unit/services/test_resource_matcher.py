from types import SimpleNamespace

import pytest

from booking_engine.models.resource import BookableResource
from booking_engine.services.constraints.catalog import RuleCatalog
from booking_engine.services.resource_matcher import (
    DEFAULT_WEIGHTS,
    EVENT_WEIGHTS,
    ResourceMatcher,
    is_capable,
    score_resource,
    weights_for,
)
from booking_engine.utils.time_window import TimeWindow

from .._calendar import TUESDAY, at

WINDOW = TimeWindow(at(TUESDAY, 10), at(TUESDAY, 11))


class TestScoring:
    def test_weights_by_request_type(self):
        assert weights_for("styling") == DEFAULT_WEIGHTS
        assert weights_for("EVENT") == EVENT_WEIGHTS
        assert weights_for(None) == DEFAULT_WEIGHTS

    def test_score(self):
        resource = BookableResource(rating=5.0, experience_years=10, commission_rate=20.0)
        assert score_resource(resource, DEFAULT_WEIGHTS) == pytest.approx(0.81)
        assert score_resource(resource, EVENT_WEIGHTS) == pytest.approx(0.8)

    def test_missing_signals_score_zero(self):
        assert score_resource(BookableResource(), DEFAULT_WEIGHTS) == 0.0

    def test_experience_is_capped(self):
        veteran = BookableResource(experience_years=45)
        assert score_resource(veteran, EVENT_WEIGHTS) == pytest.approx(0.4)


class TestCapability:
    def test_tag_intersection(self):
        resource = BookableResource(specializations=["Color", "cut"], role="stylist")
        assert is_capable(resource, None, ["color"])
        assert not is_capable(resource, None, ["bridal"])

    def test_role_mapping(self):
        stylist = BookableResource(role="stylist")
        fitter = BookableResource(role="fitter")
        assert is_capable(stylist, "styling", [])
        assert not is_capable(fitter, "styling", [])
        assert is_capable(fitter, "alteration", [])

    def test_unknown_request_type_without_tags(self):
        assert is_capable(BookableResource(role="anything"), "walk-in", [])


class TestResourceMatcher:
    @pytest.fixture
    def team(self, salon, make_resource):
        return SimpleNamespace(
            senior=make_resource(
                salon, id="res-b", name="Senior", rating=5.0, experience_years=20, commission_rate=40.0
            ),
            junior=make_resource(
                salon, id="res-c", name="Junior", rating=3.0, experience_years=1, commission_rate=10.0
            ),
            twin=make_resource(
                salon, id="res-a", name="Twin", rating=5.0, experience_years=20, commission_rate=40.0
            ),
            fitter=make_resource(salon, id="res-d", name="Fitter", role="fitter", rating=5.0),
        )

    def test_ranks_by_score_then_id(self, unit_db, salon, team):
        result = ResourceMatcher(unit_db).match_resources(salon.id, "styling", WINDOW)

        assert result.resource_ids == ["res-a", "res-b", "res-c"]
        assert result.best.resource_id == "res-a"
        assert not result.preferred_resource_unavailable

    def test_preferred_resource_first(self, unit_db, salon, team):
        result = ResourceMatcher(unit_db).match_resources(
            salon.id, "styling", WINDOW, preferred_resource_id="res-c"
        )
        assert result.resource_ids[0] == "res-c"
        assert result.ranked[0].is_preferred

    def test_busy_preferred_resource_falls_back(self, unit_db, salon, team, make_booking):
        make_booking(team.junior, at(TUESDAY, 10, 30), at(TUESDAY, 11, 30))

        result = ResourceMatcher(unit_db).match_resources(
            salon.id, "styling", WINDOW, preferred_resource_id="res-c"
        )
        assert "res-c" not in result.resource_ids
        assert result.preferred_resource_unavailable
        assert result.best.resource_id == "res-a"

    def test_excludes_unavailable_and_non_reservable(self, unit_db, salon, make_resource):
        make_resource(salon, id="res-a", name="Off today", weekdays=[0])
        make_resource(salon, id="res-b", name="Walk-in only", is_reservable=False)
        make_resource(salon, id="res-c", name="Capped", max_concurrent_assignments=0)
        make_resource(salon, id="res-d", name="Free")

        result = ResourceMatcher(unit_db).match_resources(salon.id, "styling", WINDOW)
        assert result.resource_ids == ["res-d"]

    def test_outside_working_hours_excluded(self, unit_db, salon, team):
        late = TimeWindow(at(TUESDAY, 17, 30), at(TUESDAY, 18, 30))
        assert ResourceMatcher(unit_db).match_resources(salon.id, "styling", late).ranked == []

    def test_catalog_buffer_used_for_availability(self, unit_db, salon, make_resource, make_booking):
        resource = make_resource(salon, id="res-a")
        make_booking(resource, at(TUESDAY, 9), at(TUESDAY, 9, 50))
        catalog = RuleCatalog.defaults_for("salon").with_override(
            "time_slot_availability", parameters={"buffer_minutes": 15}
        )
        matcher = ResourceMatcher(unit_db)

        assert matcher.match_resources(salon.id, "styling", WINDOW).resource_ids == ["res-a"]
        assert matcher.match_resources(salon.id, "styling", WINDOW, catalog=catalog).ranked == []

    def test_capability_tags(self, unit_db, salon, make_resource):
        make_resource(salon, id="res-a", specializations=["bridal"], role="stylist")
        make_resource(salon, id="res-b", specializations=["cut"], role="stylist")

        result = ResourceMatcher(unit_db).match_resources(salon.id, None, WINDOW, ["Bridal"])
        assert result.resource_ids == ["res-a"]
