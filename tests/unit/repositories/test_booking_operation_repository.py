from booking_engine.models.booking_operation import BookingOperation
from booking_engine.repositories.factory import RepositoryFactory


def _op(booking_id, operation_type="create", tenant_id="t1"):
    return BookingOperation.from_attempt(
        operation_type=operation_type,
        actor_role="customer",
        outcome="succeeded",
        booking_id=booking_id,
        tenant_id=tenant_id,
    )


def test_write_and_query(unit_db):
    repository = RepositoryFactory.create_booking_operation_repository(unit_db)
    repository.write(_op("b1"))
    repository.write(_op("b1", "confirm"))
    repository.write(_op("b2"))
    unit_db.commit()

    assert repository.count_for_booking("b1") == 2
    assert {op.operation_type for op in repository.list_for_booking("b1")} == {"create", "confirm"}
    assert len(repository.list_for_tenant("t1")) == 3
    assert len(repository.list_for_tenant("t1", operation_type="confirm")) == 1
    assert repository.list_for_booking("missing") == []
