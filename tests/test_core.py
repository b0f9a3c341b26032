import pytest
from sqlalchemy.exc import OperationalError

from autoshop.models import Customer
from autoshop.services.errors import StorageError


def _customers(core):
    with core.unit_of_work("test") as db:
        return [c.phone for c in db.query(Customer).all()]


class TestUnitOfWork:
    def test_commits_on_success(self, core, clock):
        with core.unit_of_work("create") as db:
            db.add(Customer(phone="5511", total_interactions=0, created_at=clock()))
        assert _customers(core) == ["5511"]

    def test_database_error_is_wrapped_and_rolled_back(self, core, clock):
        cause = OperationalError("INSERT", {}, Exception("disk full"))
        with pytest.raises(StorageError) as exc_info:
            with core.unit_of_work("create") as db:
                db.add(Customer(phone="5511", total_interactions=0, created_at=clock()))
                db.flush()
                raise cause

        assert exc_info.value.operation == "create"
        assert exc_info.value.__cause__ is cause
        assert _customers(core) == []

    def test_other_errors_propagate_unchanged(self, core, clock):
        with pytest.raises(KeyError):
            with core.unit_of_work("create") as db:
                db.add(Customer(phone="5511", total_interactions=0, created_at=clock()))
                db.flush()
                raise KeyError("boom")
        assert _customers(core) == []

    def test_outer_session_is_joined(self, core, clock):
        with core.unit_of_work("outer") as outer:
            with core.unit_of_work("inner", outer) as inner:
                assert inner is outer
                inner.add(Customer(phone="5511", total_interactions=0, created_at=clock()))
            outer.rollback()
        assert _customers(core) == []

    def test_now_uses_injected_clock(self, core, clock):
        before = core.now()
        clock.advance(minutes=1)
        assert (core.now() - before).total_seconds() == 60
