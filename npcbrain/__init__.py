"""Config-driven NPC behaviour: blackboard, rule conditions, state machines, behaviour trees, config sources and a config sync command."""

__version__ = "0.1.0"

__all__ = [
    "blackboard",
    "rule",
    "fsm",
    "bt_nodes",
    "bt_leaves",
    "bt_builder",
    "source",
    "http_source",
    "mongo_source",
    "sync",
]