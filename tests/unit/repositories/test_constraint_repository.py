from booking_engine.repositories.factory import RepositoryFactory
from booking_engine.services.constraints.catalog import DEFAULT_INDUSTRY_RULES


def test_upsert_rules_inserts_only_missing(unit_db):
    repository = RepositoryFactory.create_constraint_repository(unit_db)
    rules = DEFAULT_INDUSTRY_RULES["restaurant"]

    assert repository.upsert_rules("restaurant", rules) == len(rules)
    unit_db.commit()
    assert repository.upsert_rules("restaurant", rules) == 0

    stored = repository.list_rules_for_industry("restaurant")
    assert {rule.name for rule in stored} == {rule["name"] for rule in rules}
    assert [rule.priority for rule in stored] == sorted(rule.priority for rule in stored)
    assert repository.list_rules_for_industry("salon") == []
