import pytest

from npcbrain.blackboard import (
    KEY_LAST_EVENT_TYPE,
    KEY_MOVE_STATE,
    KEY_NPC_POS_X,
    KEY_NPC_POS_Z,
    KEY_THREAT_LEVEL,
    Blackboard,
    set_dynamic,
)
from npcbrain.bt_leaves import (
    CheckBBFloat,
    CheckBBString,
    SetBBValue,
    StubAction,
    check_bb_float_factory,
    check_bb_string_factory,
    flee_from_factory,
    move_to_factory,
    move_toward,
    set_bb_value_factory,
    stub_action_factory,
)
from npcbrain.bt_nodes import BTError, Context, Status


def make_bb(x=0.0, z=0.0):
    bb = Blackboard()
    bb.set(KEY_NPC_POS_X, x)
    bb.set(KEY_NPC_POS_Z, z)
    return bb


# --- stub_action ---


def test_stub_action_default_success():
    node = stub_action_factory('{"name":"play_anim"}')
    assert node.tick(Context(bb=Blackboard())) is Status.SUCCESS


@pytest.mark.parametrize(
    "result,expected",
    [("success", Status.SUCCESS), ("failure", Status.FAILURE), ("running", Status.RUNNING)],
)
def test_stub_action_explicit_results(result, expected):
    node = stub_action_factory({"name": "x", "result": result})
    assert node.tick(Context(bb=Blackboard())) is expected


def test_stub_action_keeps_name():
    assert stub_action_factory({"name": "wave"}) == StubAction(name="wave", result=Status.SUCCESS)


def test_stub_action_unknown_result():
    with pytest.raises(BTError, match="unknown result"):
        stub_action_factory('{"name":"x","result":"weird"}')


def test_stub_action_missing_name():
    with pytest.raises(BTError, match="name is required"):
        stub_action_factory('{"result":"success"}')


def test_stub_action_invalid_json():
    with pytest.raises(BTError):
        stub_action_factory("{bad")


# --- check_bb_float / check_bb_string ---


@pytest.mark.parametrize(
    "op,value,expected",
    [
        (">=", 50, Status.SUCCESS),
        (">=", 90, Status.FAILURE),
        ("<", 10, Status.FAILURE),
        ("==", 75, Status.SUCCESS),
        ("!=", 75, Status.FAILURE),
        ("~=", 75, Status.FAILURE),
    ],
)
def test_check_bb_float(op, value, expected):
    bb = Blackboard()
    bb.set(KEY_THREAT_LEVEL, 75.0)
    node = check_bb_float_factory({"key": "threat_level", "op": op, "value": value})
    assert node.tick(Context(bb=bb)) is expected


def test_check_bb_float_missing_key_fails():
    node = CheckBBFloat(key="threat_level", op=">=", value=50.0)
    assert node.tick(Context(bb=Blackboard())) is Status.FAILURE


def test_check_bb_float_non_numeric_fails():
    bb = Blackboard()
    bb.set(KEY_LAST_EVENT_TYPE, "E01")
    node = CheckBBFloat(key="last_event_type", op="==", value=0.0)
    assert node.tick(Context(bb=bb)) is Status.FAILURE


def test_check_bb_float_requires_key_and_op():
    with pytest.raises(BTError, match="key and op are required"):
        check_bb_float_factory({"key": "threat_level"})


def test_check_bb_float_rejects_string_value():
    with pytest.raises(BTError):
        check_bb_float_factory({"key": "threat_level", "op": ">=", "value": "high"})


@pytest.mark.parametrize(
    "op,value,expected",
    [
        ("==", "E01", Status.SUCCESS),
        ("==", "E99", Status.FAILURE),
        ("!=", "E99", Status.SUCCESS),
        (">", "A", Status.FAILURE),
    ],
)
def test_check_bb_string(op, value, expected):
    bb = Blackboard()
    bb.set(KEY_LAST_EVENT_TYPE, "E01")
    node = check_bb_string_factory({"key": "last_event_type", "op": op, "value": value})
    assert node.tick(Context(bb=bb)) is expected


def test_check_bb_string_non_string_fails():
    bb = Blackboard()
    bb.set(KEY_THREAT_LEVEL, 1.0)
    node = CheckBBString(key="threat_level", op="==", value="1")
    assert node.tick(Context(bb=bb)) is Status.FAILURE


def test_check_bb_string_requires_op():
    with pytest.raises(BTError):
        check_bb_string_factory({"key": "last_event_type"})


# --- set_bb_value ---


def test_set_bb_value_writes_and_succeeds():
    bb = Blackboard()
    node = set_bb_value_factory({"key": "threat_level", "value": 99.9})
    assert node.tick(Context(bb=bb)) is Status.SUCCESS
    assert bb.get_raw("threat_level") == (99.9, True)


def test_set_bb_value_unregistered_key_rejected():
    with pytest.raises(BTError, match="not registered"):
        set_bb_value_factory({"key": "totally_unregistered_key_abc", "value": 42})


def test_set_bb_value_requires_key():
    with pytest.raises(BTError, match="key is required"):
        set_bb_value_factory({"value": 1})


def test_set_bb_value_dataclass_fields():
    assert set_bb_value_factory('{"key":"fsm_state","value":"Flee"}') == SetBBValue("fsm_state", "Flee")


# --- move_to ---


def test_move_to_factory_missing_target_key():
    with pytest.raises(BTError):
        move_to_factory('{"speed": 3.0}')


def test_move_to_factory_invalid_json():
    with pytest.raises(BTError):
        move_to_factory("{not json")


def test_move_to_default_speed():
    node = move_to_factory('{"target_key_x":"tx","target_key_z":"tz"}')
    bb = make_bb()
    set_dynamic(bb, "tx", 100.0)
    set_dynamic(bb, "tz", 0.0)
    assert node.tick(Context(bb=bb, delta_time=1.0)) is Status.RUNNING
    assert bb.get(KEY_NPC_POS_X) == pytest.approx(3.0)


def test_move_to_target_key_missing():
    node = move_to_factory({"target_key_x": "mx_missing", "target_key_z": "mz_missing", "speed": 5})
    assert node.tick(Context(bb=make_bb(), delta_time=0.1)) is Status.FAILURE


def test_move_to_target_non_numeric():
    node = move_to_factory({"target_key_x": "tx", "target_key_z": "tz", "speed": 5})
    bb = make_bb()
    ctx = Context(bb=bb, delta_time=0.1)
    set_dynamic(bb, "tx", "not_a_number")
    set_dynamic(bb, "tz", 10.0)
    assert node.tick(ctx) is Status.FAILURE
    set_dynamic(bb, "tx", 10.0)
    set_dynamic(bb, "tz", "nope")
    assert node.tick(ctx) is Status.FAILURE


def test_move_to_arrived():
    node = move_to_factory({"target_key_x": "tx", "target_key_z": "tz", "speed": 5})
    bb = make_bb(10.0, 10.0)
    set_dynamic(bb, "tx", 10.3)
    set_dynamic(bb, "tz", 10.2)
    assert node.tick(Context(bb=bb, delta_time=0.1)) is Status.SUCCESS
    assert bb.get(KEY_MOVE_STATE) == "arrived"


def test_move_to_moving():
    node = move_to_factory({"target_key_x": "tx", "target_key_z": "tz", "speed": 10})
    bb = make_bb()
    set_dynamic(bb, "tx", 100.0)
    set_dynamic(bb, "tz", 0.0)
    assert node.tick(Context(bb=bb, delta_time=0.5)) is Status.RUNNING
    assert bb.get(KEY_NPC_POS_X) == pytest.approx(5.0)
    assert bb.get(KEY_MOVE_STATE) == "moving"


def test_move_to_non_positive_delta_fallback():
    node = move_to_factory({"target_key_x": "tx", "target_key_z": "tz", "speed": 10})
    bb = make_bb()
    set_dynamic(bb, "tx", 100.0)
    set_dynamic(bb, "tz", 0.0)
    assert node.tick(Context(bb=bb, delta_time=0)) is Status.RUNNING
    assert bb.get(KEY_NPC_POS_X) == pytest.approx(1.0)


def test_move_to_snaps_to_target_within_step():
    node = move_to_factory({"target_key_x": "tx", "target_key_z": "tz", "speed": 100})
    bb = make_bb()
    set_dynamic(bb, "tx", 5.0)
    set_dynamic(bb, "tz", 0.0)
    assert node.tick(Context(bb=bb, delta_time=1.0)) is Status.RUNNING
    assert bb.get(KEY_NPC_POS_X) == pytest.approx(5.0)


# --- flee_from ---


def test_flee_from_factory_missing_source_key():
    with pytest.raises(BTError):
        flee_from_factory('{"distance": 50}')


def test_flee_from_factory_invalid_json():
    with pytest.raises(BTError):
        flee_from_factory("{bad")


def test_flee_from_factory_defaults():
    node = flee_from_factory('{"source_key_x":"sx","source_key_z":"sz"}')
    assert (node.distance, node.speed) == (100.0, 5.0)
    bb = make_bb()
    set_dynamic(bb, "sx", 5.0)
    set_dynamic(bb, "sz", 0.0)
    assert node.tick(Context(bb=bb, delta_time=1.0)) is Status.RUNNING


def test_flee_from_source_key_missing():
    node = flee_from_factory({"source_key_x": "fx_missing", "source_key_z": "fz_missing", "distance": 50})
    assert node.tick(Context(bb=make_bb(), delta_time=0.1)) is Status.FAILURE


def test_flee_from_source_non_numeric():
    node = flee_from_factory({"source_key_x": "sx", "source_key_z": "sz", "distance": 50, "speed": 5})
    bb = make_bb()
    ctx = Context(bb=bb, delta_time=0.1)
    set_dynamic(bb, "sx", "bad")
    set_dynamic(bb, "sz", 10.0)
    assert node.tick(ctx) is Status.FAILURE
    set_dynamic(bb, "sx", 10.0)
    set_dynamic(bb, "sz", "bad")
    assert node.tick(ctx) is Status.FAILURE


def test_flee_from_far_enough():
    node = flee_from_factory({"source_key_x": "sx", "source_key_z": "sz", "distance": 50, "speed": 5})
    bb = make_bb(100.0, 0.0)
    set_dynamic(bb, "sx", 0.0)
    set_dynamic(bb, "sz", 0.0)
    assert node.tick(Context(bb=bb, delta_time=0.1)) is Status.SUCCESS
    assert bb.get(KEY_MOVE_STATE) == "arrived"


def test_flee_from_moving():
    node = flee_from_factory({"source_key_x": "sx", "source_key_z": "sz", "distance": 50, "speed": 10})
    bb = make_bb(10.0, 0.0)
    set_dynamic(bb, "sx", 0.0)
    set_dynamic(bb, "sz", 0.0)
    assert node.tick(Context(bb=bb, delta_time=0.2)) is Status.RUNNING
    assert bb.get(KEY_NPC_POS_X) == pytest.approx(12.0)
    assert bb.get(KEY_MOVE_STATE) == "moving"


def test_flee_from_coincide_fallback_x():
    node = flee_from_factory({"source_key_x": "sx", "source_key_z": "sz", "distance": 50, "speed": 10})
    bb = make_bb()
    set_dynamic(bb, "sx", 0.0)
    set_dynamic(bb, "sz", 0.0)
    assert node.tick(Context(bb=bb, delta_time=0.1)) is Status.RUNNING
    assert bb.get(KEY_NPC_POS_X) > 0


def test_flee_from_non_positive_delta_fallback():
    node = flee_from_factory({"source_key_x": "sx", "source_key_z": "sz", "distance": 50, "speed": 10})
    bb = make_bb(10.0, 0.0)
    set_dynamic(bb, "sx", 0.0)
    set_dynamic(bb, "sz", 0.0)
    assert node.tick(Context(bb=bb, delta_time=0)) is Status.RUNNING
    assert bb.get(KEY_NPC_POS_X) == pytest.approx(11.0)


# --- move_toward ---


def test_move_toward_snaps_within_reach():
    assert move_toward(0.0, 0.0, 3.0, 4.0, 5.0) == (3.0, 4.0)


def test_move_toward_same_point():
    assert move_toward(2.0, 2.0, 2.0, 2.0, 0.0) == (2.0, 2.0)


def test_move_toward_partial_step():
    x, z = move_toward(0.0, 0.0, 6.0, 8.0, 5.0)
    assert (x, z) == (pytest.approx(3.0), pytest.approx(4.0))