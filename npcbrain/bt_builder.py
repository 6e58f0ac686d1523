"""Node-type registry and construction of behaviour trees from JSON configuration."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .bt_leaves import (
    _parse_params,
    check_bb_float_factory,
    check_bb_string_factory,
    flee_from_factory,
    move_to_factory,
    set_bb_value_factory,
    stub_action_factory,
)
from .bt_nodes import BTError, Inverter, Node, Parallel, ParallelPolicy, Selector, Sequence

NodeFactory = Callable[[Any], Node]


@dataclass
class TreeConfig:
    """One node of a tree configuration; `child` is used by decorators."""

    type: str = ""
    params: Any = None
    children: list[TreeConfig] = field(default_factory=list)
    child: Optional[TreeConfig] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TreeConfig:
        """Build a tree configuration from its JSON object form."""
        if not isinstance(data, Mapping):
            raise BTError("bt: tree config must be an object")
        node_type = data.get("type", "")
        if node_type is None:
            node_type = ""
        if not isinstance(node_type, str):
            raise BTError("bt: field 'type' must be a string")
        children = data.get("children") or []
        if not isinstance(children, list):
            raise BTError("bt: field 'children' must be a list")
        child = data.get("child")
        return cls(
            type=node_type,
            params=data.get("params"),
            children=[cls.from_dict(c) for c in children],
            child=None if child is None else cls.from_dict(child),
        )


class Registry:
    """Maps node type names to factories that build nodes from their params."""

    def __init__(self) -> None:
        self._factories: dict[str, NodeFactory] = {}

    def register(self, type_name: str, factory: NodeFactory) -> None:
        self._factories[type_name] = factory

    def get(self, type_name: str) -> NodeFactory:
        try:
            return self._factories[type_name]
        except KeyError:
            raise BTError(f"bt: unknown node type {type_name!r}") from None


def _parallel_factory(params: Any) -> Parallel:
    if params is None or params == "" or params == b"":
        return Parallel()
    try:
        cfg = _parse_params("parallel", params)
    except BTError as exc:
        raise BTError(f"bt: parallel params: {exc}") from exc
    policy = ParallelPolicy.REQUIRE_ONE if cfg.get("policy") == "require_one" else ParallelPolicy.REQUIRE_ALL
    return Parallel(policy=policy)


def default_registry() -> Registry:
    """A registry holding every built-in node type."""
    registry = Registry()
    registry.register("sequence", lambda params: Sequence())
    registry.register("selector", lambda params: Selector())
    registry.register("parallel", _parallel_factory)
    registry.register("inverter", lambda params: Inverter())
    registry.register("check_bb_float", check_bb_float_factory)
    registry.register("check_bb_string", check_bb_string_factory)
    registry.register("set_bb_value", set_bb_value_factory)
    registry.register("stub_action", stub_action_factory)
    registry.register("move_to", move_to_factory)
    registry.register("flee_from", flee_from_factory)
    return registry


def build(config: Optional[TreeConfig], registry: Registry) -> Node:
    """Recursively build a node tree from its configuration."""
    if config is None:
        raise BTError("bt: tree config is nil")

    factory = registry.get(config.type)
    try:
        node = factory(config.params)
    except ValueError as exc:
        raise BTError(f"bt: create node {config.type!r}: {exc}") from exc

    if isinstance(node, (Sequence, Selector, Parallel)):
        node.children = [build(child, registry) for child in config.children]
    elif isinstance(node, Inverter):
        if config.child is None:
            raise BTError("bt: inverter requires a child node")
        node.child = build(config.child, registry)
    return node


def build_from_json(data: str | bytes, registry: Registry) -> Node:
    """Parse a tree configuration from JSON text and build it."""
    try:
        raw = json.loads(data)
    except ValueError as exc:
        raise BTError(f"bt: parse tree config: {exc}") from exc
    try:
        config = TreeConfig.from_dict(raw)
    except BTError as exc:
        raise BTError(f"bt: parse tree config: {exc}") from exc
    return build(config, registry)