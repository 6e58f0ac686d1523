"""Leaf nodes: blackboard checks and writes, stub actions and movement."""

from __future__ import annotations

import json
import math
import operator
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .blackboard import KEY_MOVE_STATE, KEY_NPC_POS_X, KEY_NPC_POS_Z, is_registered
from .bt_nodes import BTError, Context, Node, Status

_DEFAULT_DELTA = 0.1

_FLOAT_OPS: dict[str, Callable[[float, float], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

_STRING_OPS: dict[str, Callable[[str, str], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
}


def _parse_params(node: str, params: Any) -> Mapping[str, Any]:
    """Turn a node's params (JSON text or an already decoded object) into a mapping."""
    if isinstance(params, (bytes, bytearray, str)):
        try:
            params = json.loads(params)
        except ValueError as exc:
            raise BTError(f"{node}: {exc}") from exc
    if params is None:
        return {}
    if not isinstance(params, Mapping):
        raise BTError(f"{node}: params must be an object")
    return params


def _text(cfg: Mapping[str, Any], name: str, node: str) -> str:
    value = cfg.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise BTError(f"{node}: field {name!r} must be a string")
    return value


def _number(cfg: Mapping[str, Any], name: str, node: str) -> float:
    value = cfg.get(name)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BTError(f"{node}: field {name!r} must be a number")
    return float(value)


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _read_point(ctx: Context, key_x: str, key_z: str) -> Optional[tuple[float, float]]:
    raw_x, ok_x = ctx.bb.get_raw(key_x)
    raw_z, ok_z = ctx.bb.get_raw(key_z)
    if not ok_x or not ok_z:
        return None
    x, z = _to_float(raw_x), _to_float(raw_z)
    if x is None or z is None:
        return None
    return x, z


def _npc_position(ctx: Context) -> tuple[float, float]:
    return float(ctx.bb.get(KEY_NPC_POS_X)), float(ctx.bb.get(KEY_NPC_POS_Z))


def _delta(ctx: Context) -> float:
    return ctx.delta_time if ctx.delta_time > 0 else _DEFAULT_DELTA


@dataclass
class CheckBBFloat(Node):
    """Succeeds when a numeric blackboard value compares true against a constant."""

    key: str
    op: str
    value: float

    def tick(self, ctx: Context) -> Status:
        raw, found = ctx.bb.get_raw(self.key)
        if not found:
            return Status.FAILURE
        number = _to_float(raw)
        if number is None:
            return Status.FAILURE
        compare = _FLOAT_OPS.get(self.op)
        if compare is not None and compare(number, self.value):
            return Status.SUCCESS
        return Status.FAILURE


def check_bb_float_factory(params: Any) -> CheckBBFloat:
    cfg = _parse_params("check_bb_float", params)
    key = _text(cfg, "key", "check_bb_float")
    op = _text(cfg, "op", "check_bb_float")
    value = _number(cfg, "value", "check_bb_float")
    if not key or not op:
        raise BTError("check_bb_float: key and op are required")
    return CheckBBFloat(key=key, op=op, value=value)


@dataclass
class CheckBBString(Node):
    """Succeeds when a string blackboard value is (or is not) equal to a constant."""

    key: str
    op: str
    value: str

    def tick(self, ctx: Context) -> Status:
        raw, found = ctx.bb.get_raw(self.key)
        if not found or not isinstance(raw, str):
            return Status.FAILURE
        compare = _STRING_OPS.get(self.op)
        if compare is not None and compare(raw, self.value):
            return Status.SUCCESS
        return Status.FAILURE


def check_bb_string_factory(params: Any) -> CheckBBString:
    cfg = _parse_params("check_bb_string", params)
    key = _text(cfg, "key", "check_bb_string")
    op = _text(cfg, "op", "check_bb_string")
    value = _text(cfg, "value", "check_bb_string")
    if not key or not op:
        raise BTError("check_bb_string: key and op are required")
    return CheckBBString(key=key, op=op, value=value)


@dataclass
class SetBBValue(Node):
    """Writes a constant to a registered blackboard key and succeeds."""

    key: str
    value: Any

    def tick(self, ctx: Context) -> Status:
        ctx.bb.set_raw(self.key, self.value)
        return Status.SUCCESS


def set_bb_value_factory(params: Any) -> SetBBValue:
    cfg = _parse_params("set_bb_value", params)
    key = _text(cfg, "key", "set_bb_value")
    if not key:
        raise BTError("set_bb_value: key is required")
    if not is_registered(key):
        raise BTError(f"set_bb_value: key {key!r} is not registered in blackboard")
    return SetBBValue(key=key, value=cfg.get("value"))


_STUB_RESULTS = {
    "": Status.SUCCESS,
    "success": Status.SUCCESS,
    "failure": Status.FAILURE,
    "running": Status.RUNNING,
}


@dataclass
class StubAction(Node):
    """A named placeholder action that always returns the same status."""

    name: str
    result: Status

    def tick(self, ctx: Context) -> Status:
        return self.result


def stub_action_factory(params: Any) -> StubAction:
    cfg = _parse_params("stub_action", params)
    name = _text(cfg, "name", "stub_action")
    result = _text(cfg, "result", "stub_action")
    if not name:
        raise BTError("stub_action: name is required")
    if result not in _STUB_RESULTS:
        raise BTError(f"stub_action: unknown result {result!r}")
    return StubAction(name=name, result=_STUB_RESULTS[result])


@dataclass
class MoveTo(Node):
    """Walks the NPC toward the point held in two blackboard keys."""

    target_key_x: str
    target_key_z: str
    speed: float

    def tick(self, ctx: Context) -> Status:
        target = _read_point(ctx, self.target_key_x, self.target_key_z)
        if target is None:
            return Status.FAILURE
        target_x, target_z = target
        npc_x, npc_z = _npc_position(ctx)

        if math.hypot(target_x - npc_x, target_z - npc_z) < 1.0:
            ctx.bb.set(KEY_MOVE_STATE, "arrived")
            return Status.SUCCESS

        new_x, new_z = move_toward(npc_x, npc_z, target_x, target_z, self.speed * _delta(ctx))
        ctx.bb.set(KEY_NPC_POS_X, new_x)
        ctx.bb.set(KEY_NPC_POS_Z, new_z)
        ctx.bb.set(KEY_MOVE_STATE, "moving")
        return Status.RUNNING


def move_to_factory(params: Any) -> MoveTo:
    cfg = _parse_params("move_to", params)
    key_x = _text(cfg, "target_key_x", "move_to")
    key_z = _text(cfg, "target_key_z", "move_to")
    speed = _number(cfg, "speed", "move_to")
    if not key_x or not key_z:
        raise BTError("move_to: target_key_x and target_key_z are required")
    if speed <= 0:
        speed = 3.0
    return MoveTo(target_key_x=key_x, target_key_z=key_z, speed=speed)


@dataclass
class FleeFrom(Node):
    """Runs the NPC directly away from a threat point until far enough."""

    source_key_x: str
    source_key_z: str
    distance: float
    speed: float

    def tick(self, ctx: Context) -> Status:
        source = _read_point(ctx, self.source_key_x, self.source_key_z)
        if source is None:
            return Status.FAILURE
        src_x, src_z = source
        npc_x, npc_z = _npc_position(ctx)

        if math.hypot(src_x - npc_x, src_z - npc_z) >= self.distance:
            ctx.bb.set(KEY_MOVE_STATE, "arrived")
            return Status.SUCCESS

        dx, dz = npc_x - src_x, npc_z - src_z
        if dx == 0 and dz == 0:
            dx = 1.0  # standing on the threat: run toward +X
        norm = math.hypot(dx, dz)
        step = self.speed * _delta(ctx)

        ctx.bb.set(KEY_NPC_POS_X, npc_x + dx / norm * step)
        ctx.bb.set(KEY_NPC_POS_Z, npc_z + dz / norm * step)
        ctx.bb.set(KEY_MOVE_STATE, "moving")
        return Status.RUNNING


def flee_from_factory(params: Any) -> FleeFrom:
    cfg = _parse_params("flee_from", params)
    key_x = _text(cfg, "source_key_x", "flee_from")
    key_z = _text(cfg, "source_key_z", "flee_from")
    distance = _number(cfg, "distance", "flee_from")
    speed = _number(cfg, "speed", "flee_from")
    if not key_x or not key_z:
        raise BTError("flee_from: source_key_x and source_key_z are required")
    if distance <= 0:
        distance = 100.0
    if speed <= 0:
        speed = 5.0
    return FleeFrom(source_key_x=key_x, source_key_z=key_z, distance=distance, speed=speed)


def move_toward(
    pos_x: float, pos_z: float, target_x: float, target_z: float, max_dist: float
) -> tuple[float, float]:
    """Step from a position toward a target by at most max_dist, snapping when in reach."""
    dx, dz = target_x - pos_x, target_z - pos_z
    dist = math.hypot(dx, dz)
    if dist == 0 or dist <= max_dist:
        return target_x, target_z
    ratio = max_dist / dist
    return pos_x + dx * ratio, pos_z + dz * ratio