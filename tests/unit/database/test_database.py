from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from booking_engine import database
from booking_engine.database import get_db, with_db_retry
from booking_engine.database.session_utils import get_dialect_name, supports_row_locks


def _operational(message: str) -> OperationalError:
    return OperationalError("SELECT 1", {}, Exception(message))


class TestWithDbRetry:
    def test_retries_transient_errors(self):
        func = MagicMock(side_effect=[_operational("database is locked"), "ok"])
        with patch.object(database.time, "sleep") as sleep:
            assert with_db_retry("lookup", func) == "ok"
        assert func.call_count == 2
        sleep.assert_called_once()

    def test_other_errors_are_raised_immediately(self):
        func = MagicMock(side_effect=_operational("no such table: bookings"))
        with pytest.raises(OperationalError):
            with_db_retry("lookup", func)
        assert func.call_count == 1

    def test_gives_up_after_max_attempts(self):
        func = MagicMock(side_effect=_operational("server closed the connection unexpectedly"))
        with patch.object(database.time, "sleep"):
            with pytest.raises(OperationalError):
                with_db_retry("lookup", func, max_attempts=2)
        assert func.call_count == 2


class TestGetDb:
    def test_commits_and_closes(self):
        session = MagicMock()
        with patch.object(database, "SessionLocal", return_value=session):
            gen = get_db()
            assert next(gen) is session
            with pytest.raises(StopIteration):
                next(gen)
        session.commit.assert_called_once()
        session.close.assert_called_once()

    def test_rolls_back_on_error(self):
        session = MagicMock()
        with patch.object(database, "SessionLocal", return_value=session):
            gen = get_db()
            next(gen)
            with pytest.raises(RuntimeError):
                gen.throw(RuntimeError("handler failed"))
        session.rollback.assert_called_once()
        session.commit.assert_not_called()
        session.close.assert_called_once()


def test_dialect_helpers(unit_db):
    assert get_dialect_name(unit_db) == "sqlite"
    assert supports_row_locks(unit_db) is False
