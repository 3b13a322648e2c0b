from dataclasses import replace

from models import OperationStatus
from services.sync_queue import SyncOperation
from services.tentative import TentativeState


def _result(op_id, status, error=None):
    op = SyncOperation.new("update", "dog", {})
    return replace(op, id=op_id, status=status, last_error=error)


def test_completed_change_is_confirmed():
    state = TentativeState()
    state.seed("dogs", {"rex": {"id": "rex", "name": "Rex"}})

    state.apply("op1", "dogs", "rex", {"id": "rex", "name": "Rex Jr"})
    assert state.is_pending("dogs", "rex")

    state.on_result(_result("op1", OperationStatus.COMPLETED))
    assert not state.is_pending("dogs", "rex")
    assert state.get("dogs", "rex")["name"] == "Rex Jr"


def test_failed_change_rolls_back_and_notifies():
    state = TentativeState()
    state.seed("dogs", {"rex": {"id": "rex", "name": "Rex"}})
    failures = []
    state.failures.subscribe(failures.append)

    state.apply("op1", "dogs", "rex", {"id": "rex", "name": "Broken"})
    state.on_result(_result("op1", OperationStatus.FAILED, "disk full"))

    assert state.get("dogs", "rex")["name"] == "Rex"
    assert state.pending_count == 0
    assert [(f.op_id, f.error) for f in failures] == [("op1", "disk full")]


def test_failed_create_and_delete_roll_back():
    state = TentativeState()
    state.seed("dogs", {"rex": {"id": "rex", "name": "Rex"}})

    state.apply("create", "dogs", "milo", {"id": "milo", "name": "Milo"})
    state.apply("delete", "dogs", "rex", None)
    assert state.get("dogs", "rex") is None

    state.rollback("create", "nope")
    state.rollback("delete", "nope")

    assert state.get("dogs", "milo") is None
    assert state.get("dogs", "rex")["name"] == "Rex"


def test_rollback_hands_baseline_to_later_change():
    state = TentativeState()
    state.seed("dogs", {"rex": {"id": "rex", "name": "Rex"}})

    state.apply("op1", "dogs", "rex", {"id": "rex", "name": "One"})
    state.apply("op2", "dogs", "rex", {"id": "rex", "name": "Two"})

    state.rollback("op1", "failed")
    assert state.get("dogs", "rex")["name"] == "Two"

    state.rollback("op2", "failed")
    assert state.get("dogs", "rex")["name"] == "Rex"


def test_unknown_result_and_discard():
    state = TentativeState()
    state.on_result(_result("ghost", OperationStatus.FAILED))
    assert state.rollback("ghost") is None

    state.apply("op1", "dogs", "rex", {"id": "rex"})
    assert state.discard_pending() == 1
    assert state.get("dogs", "rex") is None
    assert state.items("dogs") == []

    state.seed("dogs", {"rex": {"id": "rex", "name": "Rex"}})
    state.apply("op2", "dogs", "rex", {"id": "rex", "name": "Max"})
    state.apply("op3", "dogs", "rex", None)
    assert state.discard_pending() == 2
    assert state.get("dogs", "rex") == {"id": "rex", "name": "Rex"}
    assert state.pending_count == 0
