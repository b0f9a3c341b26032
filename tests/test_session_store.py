import pytest

from autoshop.models import ChatSession
from autoshop.services.errors import ProtectedStateError

PHONE = "5511999990000"


class TestGet:
    def test_absent_session_is_created_idle(self, sessions, clock):
        session = sessions.get(PHONE)
        assert session.phone == PHONE
        assert session.state == "idle"
        assert session.data == {}
        assert session.ai_context == []
        assert session.expires_at == clock.current.replace(minute=30)

    def test_get_does_not_extend_expiry(self, sessions, clock):
        first = sessions.get(PHONE)
        clock.advance(minutes=10)
        assert sessions.get(PHONE).expires_at == first.expires_at

    def test_expired_session_comes_back_fresh(self, sessions, clock):
        sessions.touch(PHONE, state="scheduling", data={"plate": "ABC1D23"})
        sessions.append_context(PHONE, "user", "hello")
        clock.advance(minutes=31)

        session = sessions.get(PHONE)
        assert session.state == "idle"
        assert session.data == {}
        assert session.ai_context == []
        assert session.created_at == clock.current

    def test_session_alive_until_expiry_instant(self, sessions, clock):
        sessions.touch(PHONE, state="menu")
        clock.advance(minutes=30)
        assert sessions.get(PHONE).state == "menu"


class TestTouch:
    def test_merges_data_shallowly(self, sessions):
        sessions.touch(PHONE, data={"name": "Ana", "car": {"model": "Gol"}})
        session = sessions.touch(PHONE, data={"car": {"year": 2012}, "plate": "ABC"})
        assert session.data == {"name": "Ana", "car": {"year": 2012}, "plate": "ABC"}

    def test_state_change_and_expiry_extension(self, sessions, clock):
        sessions.get(PHONE)
        clock.advance(minutes=20)
        session = sessions.touch(PHONE, state="scheduling")
        assert session.state == "scheduling"
        assert session.expires_at == clock.current.replace(minute=50)

    def test_none_state_keeps_current(self, sessions):
        sessions.touch(PHONE, state="menu")
        assert sessions.touch(PHONE, data={"x": 1}).state == "menu"

    @pytest.mark.parametrize("state", ["waiting_human", "in_attendance"])
    def test_rejects_attendance_states(self, sessions, state):
        with pytest.raises(ProtectedStateError):
            sessions.touch(PHONE, state=state)
        assert sessions.get(PHONE).state == "idle"

    def test_cannot_leave_attendance_state(self, sessions, orchestrator):
        orchestrator.enqueue(PHONE, "talk to a mechanic")
        session = sessions.touch(PHONE, state="menu", data={"note": "kept"})
        assert session.state == "waiting_human"
        assert session.data == {"note": "kept"}


class TestClear:
    def test_clear_resets_everything(self, sessions):
        sessions.touch(PHONE, state="quote", data={"service": "oil"})
        sessions.append_context(PHONE, "user", "how much?")
        assert sessions.clear(PHONE) is True

        session = sessions.get(PHONE)
        assert session.state == "idle"
        assert session.data == {}
        assert session.ai_context == []

    def test_clear_is_idempotent(self, sessions):
        assert sessions.clear(PHONE) is True
        first = sessions.get(PHONE)
        assert sessions.clear(PHONE) is True
        second = sessions.get(PHONE)
        assert (first.state, first.data, first.ai_context) == (second.state, second.data, second.ai_context)

    def test_clear_refused_during_attendance(self, sessions, orchestrator):
        orchestrator.enqueue(PHONE)
        assert sessions.clear(PHONE) is False
        assert sessions.get(PHONE).state == "waiting_human"


class TestAppendContext:
    def test_keeps_last_ten_turns(self, sessions):
        for i in range(12):
            sessions.append_context(PHONE, "user", f"m{i}")
        context = sessions.get(PHONE).ai_context
        assert len(context) == 10
        assert context[0]["content"] == "m2"
        assert context[-1] == {"role": "user", "content": "m11"}

    def test_does_not_extend_expiry(self, sessions, clock):
        before = sessions.get(PHONE).expires_at
        clock.advance(minutes=5)
        sessions.append_context(PHONE, "assistant", "hi")
        assert sessions.get(PHONE).expires_at == before


class TestSweepExpired:
    def _rows(self, core):
        with core.unit_of_work("test") as db:
            return {row.phone: row.state for row in db.query(ChatSession).all()}

    def test_removes_only_expired_bot_sessions(self, core, sessions, orchestrator, clock):
        sessions.touch("1111", state="menu")
        orchestrator.enqueue("2222")
        orchestrator.enqueue("3333")
        orchestrator.claim("3333", "op-1", "Ana")
        clock.advance(minutes=31)
        sessions.touch("4444", state="menu")

        assert sessions.sweep_expired() == 1
        assert self._rows(core) == {"2222": "waiting_human", "3333": "in_attendance", "4444": "menu"}

    def test_nothing_to_sweep(self, sessions):
        sessions.get(PHONE)
        assert sessions.sweep_expired() == 0

    def test_swept_session_is_recreated_on_next_get(self, sessions, clock):
        sessions.touch(PHONE, state="menu")
        clock.advance(hours=1)
        sessions.sweep_expired()
        assert sessions.get(PHONE).state == "idle"


class TestAttendanceWriters:
    def test_set_and_release_inside_caller_transaction(self, core, sessions):
        sessions.touch(PHONE, state="menu", data={"plate": "ABC"})

        with core.unit_of_work("test") as db:
            row = sessions.set_attendance_state(db, PHONE, "waiting_human")
            assert row.state == "waiting_human"
            assert row.data == {"plate": "ABC"}
        assert sessions.get(PHONE).state == "waiting_human"

        with core.unit_of_work("test") as db:
            sessions.release_attendance(db, PHONE)
        session = sessions.get(PHONE)
        assert (session.state, session.data, session.ai_context) == ("idle", {}, [])
