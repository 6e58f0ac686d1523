"""Typed key registry and the per-NPC blackboard shared by FSM, rules and behaviour trees."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_MISSING = object()


class BlackboardError(Exception):
    """Base class for blackboard failures."""


class DuplicateKeyError(BlackboardError):
    """A static key name was registered twice."""


class UnknownKeyError(BlackboardError):
    """A key name is not present in the registry."""


_registry_lock = threading.RLock()
_registry: dict[str, str] = {}


def _register(name: str, type_name: str) -> None:
    with _registry_lock:
        existing = _registry.get(name)
        if existing is not None:
            raise DuplicateKeyError(
                f"blackboard: duplicate key registration: {name!r} "
                f"(existing type: {existing}, new type: {type_name})"
            )
        _registry[name] = type_name


def register_dynamic(name: str, type_name: str) -> None:
    """Register a key at runtime; repeated registration of a name is ignored."""
    with _registry_lock:
        _registry.setdefault(name, type_name)


def is_registered(name: str) -> bool:
    """Tell whether a key name is known to the registry."""
    with _registry_lock:
        return name in _registry


def validate_key_name(name: str) -> None:
    """Raise UnknownKeyError unless the name is registered."""
    if not is_registered(name):
        raise UnknownKeyError(f"blackboard: unknown key {name!r}, not in registry")


def registered_keys() -> list[str]:
    """Return the names of all registered keys."""
    with _registry_lock:
        return list(_registry)


@dataclass(frozen=True)
class BBKey(Generic[T]):
    """A named blackboard key bound to a value type."""

    name: str
    value_type: type

    def zero(self) -> T:
        """The value a missing entry reads as."""
        return self.value_type()


def new_key(name: str, value_type: type) -> BBKey:
    """Create and register a static key; a duplicate name raises DuplicateKeyError."""
    _register(name, value_type.__name__)
    return BBKey(name, value_type)


class Blackboard:
    """Thread-safe key/value store for one NPC."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._data: dict[str, Any] = {}

    def get(self, key: BBKey[T]) -> T:
        """Return the stored value, or the key's zero value when absent."""
        value, found = self.lookup(key)
        return value

    def lookup(self, key: BBKey[T]) -> tuple[T, bool]:
        """Return (value, found); a missing entry yields the key's zero value."""
        with self._lock:
            value = self._data.get(key.name, _MISSING)
        if value is _MISSING:
            return key.zero(), False
        return value, True

    def set(self, key: BBKey[T], value: T) -> None:
        with self._lock:
            self._data[key.name] = value

    def has(self, key: BBKey) -> bool:
        with self._lock:
            return key.name in self._data

    def delete(self, key: BBKey) -> None:
        with self._lock:
            self._data.pop(key.name, None)

    def get_raw(self, name: str) -> tuple[Any, bool]:
        """Read by name: return (value, found), with None when absent."""
        with self._lock:
            value = self._data.get(name, _MISSING)
        if value is _MISSING:
            return None, False
        return value, True

    def set_raw(self, name: str, value: Any) -> None:
        """Write by name; the name must be registered."""
        if not is_registered(name):
            raise UnknownKeyError(f"blackboard: set_raw with unregistered key {name!r}")
        self._write(name, value)

    def dump(self) -> dict[str, Any]:
        """Return a copy of every stored entry."""
        with self._lock:
            return dict(self._data)

    def _write(self, name: str, value: Any) -> None:
        with self._lock:
            self._data[name] = value


def set_dynamic(bb: Blackboard, name: str, value: Any) -> None:
    """Write a value by name, registering the name first if needed."""
    type_name = "nil" if value is None else type(value).__name__
    register_dynamic(name, type_name)
    bb._write(name, value)


# Threat
KEY_THREAT_LEVEL = new_key("threat_level", float)
KEY_THREAT_SOURCE = new_key("threat_source", str)
KEY_THREAT_EXPIRE_AT = new_key("threat_expire_at", int)

# Events
KEY_LAST_EVENT_TYPE = new_key("last_event_type", str)
KEY_CURRENT_TIME = new_key("current_time", int)

# FSM
KEY_FSM_STATE = new_key("fsm_state", str)

# NPC instance
KEY_NPC_TYPE = new_key("npc_type", str)
KEY_NPC_POS_X = new_key("npc_pos_x", float)
KEY_NPC_POS_Z = new_key("npc_pos_z", float)

# Behaviour tracking
KEY_CURRENT_ACTION = new_key("current_action", str)
KEY_ALERT_START_TICK = new_key("alert_start_tick", int)
KEY_EXIT_CLEANUP_DONE = new_key("exit_cleanup_done", str)

# Needs
KEY_NEED_LOWEST = new_key("need_lowest", str)
KEY_NEED_LOWEST_VAL = new_key("need_lowest_val", float)

# Emotion
KEY_EMOTION_DOMINANT = new_key("emotion_dominant", str)
KEY_EMOTION_DOMINANT_VAL = new_key("emotion_dominant_val", float)

# Memory
KEY_MEMORY_COUNT = new_key("memory_count", int)
KEY_MEMORY_THREAT_VALUE = new_key("memory_threat_value", float)

# Social
KEY_GROUP_ID = new_key("group_id", str)
KEY_SOCIAL_ROLE = new_key("social_role", str)
KEY_LEADER_LOST = new_key("leader_lost", bool)
KEY_GROUP_ALERT = new_key("group_alert", bool)
KEY_FOLLOW_TARGET_X = new_key("follow_target_x", float)
KEY_FOLLOW_TARGET_Z = new_key("follow_target_z", float)

# Decision
KEY_DECISION_WINNER = new_key("decision_winner", str)
KEY_THREAT_SCORE = new_key("threat_score", float)
KEY_NEED_SCORE = new_key("need_score", float)
KEY_EMOTION_SCORE = new_key("emotion_score", float)

# Movement
KEY_MOVE_STATE = new_key("move_state", str)
KEY_MOVE_TARGET_X = new_key("move_target_x", float)
KEY_MOVE_TARGET_Z = new_key("move_target_z", float)