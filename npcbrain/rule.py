"""Condition trees evaluated against a blackboard."""

from __future__ import annotations

import operator
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from .blackboard import Blackboard, UnknownKeyError, validate_key_name


class ConditionError(ValueError):
    """A condition is malformed or refers to unknown keys or operators."""


_ORDERING: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

_VALID_OPS = frozenset(_ORDERING) | {"in"}


@dataclass
class Condition:
    """A leaf (key, op, value or ref_key) or a composite (all_of / any_of)."""

    key: str = ""
    op: str = ""
    value: Any = None
    ref_key: str = ""
    all_of: list[Condition] = field(default_factory=list)
    any_of: list[Condition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Condition:
        """Build a condition from its JSON object form."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConditionError(f"condition: expected an object, got {type(data).__name__}")
        return cls(
            key=_string_field(data, "key"),
            op=_string_field(data, "op"),
            value=data.get("value"),
            ref_key=_string_field(data, "ref_key"),
            all_of=_children(data, "and"),
            any_of=_children(data, "or"),
        )

    def is_empty(self) -> bool:
        """An empty condition always holds."""
        return not self.key and not self.all_of and not self.any_of

    def evaluate(self, bb: Blackboard) -> bool:
        if self.is_empty():
            return True
        if self.all_of:
            return all(child.evaluate(bb) for child in self.all_of)
        if self.any_of:
            return any(child.evaluate(bb) for child in self.any_of)
        return self._evaluate_leaf(bb)

    def _evaluate_leaf(self, bb: Blackboard) -> bool:
        current, found = bb.get_raw(self.key)
        if not found:
            return False
        if self.ref_key:
            target, ref_found = bb.get_raw(self.ref_key)
            if not ref_found:
                return False
        else:
            target = self.value
        if self.op == "in":
            return _compare_in(current, target)
        return _compare_values(current, self.op, target)

    def validate(self) -> None:
        """Check keys and operators; raise ConditionError on the first problem."""
        if self.is_empty():
            return
        if self.key and (self.all_of or self.any_of):
            raise ConditionError(
                f"condition cannot have both key {self.key!r} and and/or composite fields"
            )
        if self.all_of or self.any_of:
            for child in self.all_of or self.any_of:
                child.validate()
            return
        try:
            validate_key_name(self.key)
        except UnknownKeyError as exc:
            raise ConditionError(f"condition key: {exc}") from exc
        if self.ref_key:
            try:
                validate_key_name(self.ref_key)
            except UnknownKeyError as exc:
                raise ConditionError(f"condition ref_key: {exc}") from exc
        if self.op not in _VALID_OPS:
            raise ConditionError(
                f"condition: unknown operator {self.op!r}, supported: "
                + ", ".join(sorted(_VALID_OPS))
            )


def _string_field(data: Mapping[str, Any], name: str) -> str:
    value = data.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConditionError(f"condition: field {name!r} must be a string")
    return value


def _children(data: Mapping[str, Any], name: str) -> list[Condition]:
    items = data.get(name)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ConditionError(f"condition: field {name!r} must be a list")
    return [Condition.from_dict(item) for item in items]


def _to_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _compare_values(a: Any, op: str, b: Any) -> bool:
    fa, fb = _to_float(a), _to_float(b)
    if fa is not None and fb is not None:
        compare = _ORDERING.get(op)
        return compare is not None and compare(fa, fb)
    if isinstance(a, str) and isinstance(b, str):
        compare = _ORDERING.get(op)
        return compare is not None and compare(a, b)
    if isinstance(a, bool) and isinstance(b, bool):
        if op == "==":
            return a == b
        if op == "!=":
            return a != b
    return False


def _compare_in(value: Any, target: Any) -> bool:
    if not isinstance(target, (list, tuple)):
        return False
    number = _to_float(value)
    if number is not None:
        return any(_to_float(item) == number for item in target)
    if isinstance(value, str):
        return any(isinstance(item, str) and item == value for item in target)
    return False