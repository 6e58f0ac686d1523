"""Configuration-driven finite state machine reading conditions from a blackboard."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .blackboard import KEY_FSM_STATE, Blackboard
from .rule import Condition, ConditionError

TransitionCallback = Callable[[str, str], None]
StateCallback = Callable[[str], None]


class FSMError(ValueError):
    """The FSM configuration is invalid."""


@dataclass
class StateConfig:
    name: str


@dataclass
class TransitionConfig:
    from_state: str
    to: str
    priority: int = 0
    condition: Condition = field(default_factory=Condition)


@dataclass
class FSMConfig:
    initial_state: str = ""
    states: list[StateConfig] = field(default_factory=list)
    transitions: list[TransitionConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FSMConfig:
        """Build a configuration from its JSON object form."""
        if not isinstance(data, Mapping):
            raise FSMError("fsm: config must be an object")
        try:
            states = [StateConfig(name=_text(s, "name")) for s in _list(data, "states")]
            transitions = [
                TransitionConfig(
                    from_state=_text(t, "from"),
                    to=_text(t, "to"),
                    priority=_priority(t),
                    condition=Condition.from_dict(t.get("condition")),
                )
                for t in _list(data, "transitions")
            ]
        except ConditionError as exc:
            raise FSMError(f"fsm: {exc}") from exc
        return cls(
            initial_state=_text(data, "initial_state"),
            states=states,
            transitions=transitions,
        )


def _list(data: Mapping[str, Any], name: str) -> list[Mapping[str, Any]]:
    items = data.get(name)
    if items is None:
        return []
    if not isinstance(items, list) or not all(isinstance(i, Mapping) for i in items):
        raise FSMError(f"fsm: field {name!r} must be a list of objects")
    return items


def _text(data: Mapping[str, Any], name: str) -> str:
    value = data.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise FSMError(f"fsm: field {name!r} must be a string")
    return value


def _priority(data: Mapping[str, Any]) -> int:
    value = data.get("priority", 0)
    if isinstance(value, bool) or not isinstance(value, int):
        raise FSMError("fsm: field 'priority' must be an integer")
    return value


class FSM:
    """A state machine whose transitions fire on blackboard conditions, highest priority first."""

    def __init__(self, config: Optional[FSMConfig], bb: Optional[Blackboard]) -> None:
        if config is None:
            raise FSMError("fsm: config is nil")
        if bb is None:
            raise FSMError("fsm: blackboard is nil")
        if not config.states:
            raise FSMError("fsm: no states defined")

        state_set: set[str] = set()
        for state in config.states:
            if not state.name:
                raise FSMError("fsm: empty state name")
            if state.name in state_set:
                raise FSMError(f"fsm: duplicate state name {state.name!r}")
            state_set.add(state.name)

        if config.initial_state not in state_set:
            raise FSMError(f"fsm: initial state {config.initial_state!r} not in state set")

        transitions: dict[str, list[TransitionConfig]] = {}
        for t in config.transitions:
            if t.from_state not in state_set:
                raise FSMError(f"fsm: transition from unknown state {t.from_state!r}")
            if t.to not in state_set:
                raise FSMError(f"fsm: transition to unknown state {t.to!r}")
            try:
                t.condition.validate()
            except ConditionError as exc:
                raise FSMError(f"fsm: transition {t.from_state}→{t.to}: {exc}") from exc
            transitions.setdefault(t.from_state, []).append(t)

        for options in transitions.values():
            options.sort(key=lambda t: t.priority, reverse=True)

        self._lock = threading.RLock()
        self._current = config.initial_state
        self._states = frozenset(state_set)
        self._transitions = transitions
        self._on_transition: Optional[TransitionCallback] = None
        self._on_enter: Optional[StateCallback] = None
        self._on_exit: Optional[StateCallback] = None

        bb.set(KEY_FSM_STATE, config.initial_state)

    def on_transition(self, callback: TransitionCallback) -> None:
        self._on_transition = callback

    def on_enter(self, callback: StateCallback) -> None:
        self._on_enter = callback

    def on_exit(self, callback: StateCallback) -> None:
        self._on_exit = callback

    @property
    def current(self) -> str:
        with self._lock:
            return self._current

    def tick(self, bb: Blackboard) -> None:
        """Fire the first transition out of the current state whose condition holds."""
        with self._lock:
            for t in self._transitions.get(self._current, ()):
                if t.condition.evaluate(bb):
                    self._transition_to(t.to, bb)
                    return

    def _transition_to(self, to: str, bb: Blackboard) -> None:
        previous = self._current
        if self._on_exit is not None:
            self._on_exit(previous)
        self._current = to
        bb.set(KEY_FSM_STATE, to)
        if self._on_enter is not None:
            self._on_enter(to)
        if self._on_transition is not None:
            self._on_transition(previous, to)

    def states(self) -> list[str]:
        """All valid state names."""
        return list(self._states)