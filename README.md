# npcbrain

The decision-making core for a game server's NPCs, driven by configuration:

- **Blackboard** (`npcbrain.blackboard`) – a thread-safe, per-NPC key/value
  store. Keys are registered once, globally, so configuration can be checked
  against them before anything runs. The built-in keys (`KEY_THREAT_LEVEL`,
  `KEY_FSM_STATE`, `KEY_NPC_POS_X`, …) are defined in this module.
- **Rule conditions** (`npcbrain.rule`) – condition trees (`and`, `or`, and
  leaf comparisons with `==`, `!=`, `>`, `>=`, `<`, `<=`, `in`, optionally
  against another blackboard key via `ref_key`) evaluated against a blackboard.
- **Finite state machines** (`npcbrain.fsm`) – states and prioritised
  transitions whose conditions are rule conditions, with enter, exit and
  transition callbacks.
- **Behaviour trees** (`npcbrain.bt_nodes`, `npcbrain.bt_leaves`,
  `npcbrain.bt_builder`) – sequence, selector, parallel and inverter nodes,
  plus leaves for checking and setting blackboard values, stub actions and
  simple `move_to` / `flee_from` movement, all buildable from JSON.
- **Config sources** (`npcbrain.source`, `npcbrain.http_source`,
  `npcbrain.mongo_source`) – a local directory, an admin HTTP API or a MongoDB
  database behind one `Source` interface.
- **`npcbrain-sync`** – a command that copies the admin API's configuration to
  local JSON files.

## Installation

```
pip install npcbrain
```

To run the tests:

```
pip install "npcbrain[test]"
pytest
```

## Blackboard

```python
from npcbrain.blackboard import Blackboard, KEY_THREAT_LEVEL, new_key, is_registered

mood = new_key("mood", str)          # registers "mood"; a second new_key("mood", ...) raises DuplicateKeyError
bb = Blackboard()
bb.set(mood, "calm")
assert bb.get(mood) == "calm"
assert bb.lookup(KEY_THREAT_LEVEL) == (0.0, False)   # absent: the key's zero value

# Name-based access for configuration-driven code. get_raw returns
# (value, found); set_raw raises UnknownKeyError for an unregistered name.
bb.set_raw("threat_level", 75.0)
assert bb.get_raw("threat_level") == (75.0, True)
assert is_registered("threat_level")
```

`set_dynamic(bb, name, value)` writes a value by name and registers the name
first if it is new; `register_dynamic` registers without writing, and ignores
names that are already known.

## State machines

```python
from npcbrain.blackboard import Blackboard
from npcbrain.fsm import FSM, FSMConfig

config = FSMConfig.from_dict({
    "initial_state": "Idle",
    "states": [{"name": "Idle"}, {"name": "Alarmed"}],
    "transitions": [
        {"from": "Idle", "to": "Alarmed", "priority": 10,
         "condition": {"key": "last_event_type", "op": "!=", "value": ""}},
    ],
})

bb = Blackboard()
machine = FSM(config, bb)            # writes "Idle" to the fsm_state key
machine.on_transition(lambda old, new: print(f"{old} -> {new}"))

bb.set_raw("last_event_type", "explosion")
machine.tick(bb)
assert machine.current == "Alarmed"
```

On each `tick` the transitions out of the current state are tried from the
highest priority down, and the first whose condition holds fires. An empty
condition always holds. Creating an `FSM` raises `FSMError` for a missing
config, no states, an empty or duplicate state name, an unknown initial state,
a transition naming an unknown state, or a condition with an unregistered key
or an unknown operator.

## Behaviour trees

```python
from npcbrain.blackboard import Blackboard
from npcbrain.bt_builder import build_from_json, default_registry
from npcbrain.bt_nodes import Context

tree = build_from_json(b"""
{
  "type": "sequence",
  "children": [
    {"type": "check_bb_float", "params": {"key": "threat_level", "op": ">=", "value": 50}},
    {"type": "set_bb_value",   "params": {"key": "fsm_state", "value": "Flee"}}
  ]
}
""", default_registry())

bb = Blackboard()
bb.set_raw("threat_level", 75.0)
status = tree.tick(Context(bb=bb))
print(status)                        # Success
```

Built-in node types: `sequence`, `selector`, `parallel` (params
`{"policy": "require_one"}`, otherwise all must succeed), `inverter` (takes a
`child`), `check_bb_float`, `check_bb_string`, `set_bb_value`, `stub_action`
(`result` is `success`, `failure` or `running`), `move_to` (default speed 3.0)
and `flee_from` (default distance 100, speed 5.0). Movement nodes use
`Context.delta_time`, falling back to 0.1 s when it is not positive.

Custom node types are added with `Registry.register(type_name, factory)`, where
the factory takes the node's `params` and returns a `Node`. Construction
problems raise `BTError`.

## Config sources

```python
from npcbrain.source import JSONSource
from npcbrain.http_source import HTTPSource
from npcbrain.mongo_source import MongoSource

local = JSONSource("configs")        # configs/fsm, bt_trees, events, npc_types, npc_templates, regions
remote = HTTPSource.from_api("http://localhost:3000", timeout=10.0)
stored = MongoSource.from_database("mongodb://localhost:27017", "npc_ai", timeout=10.0)

fsm_config = local.load_fsm_config("civilian")
tree_json = remote.load_bt_tree("civilian/idle")    # raw JSON bytes
```

Every source raises `ConfigError` when a configuration is missing or is not
valid JSON. `JSONSource` rejects names containing `..`; a missing
`npc_templates` or `regions` directory reads as empty, a missing `events`
directory is an error.

`HTTPSource` and `MongoSource` load everything up front; afterwards the server
or database may go away and lookups keep working. `MemorySource` serves
tables passed to it directly. When the admin API answers with its
dangling-reference errors (code 45016 for NPC templates, 47011 for regions),
each reference is logged and loading fails with the reported count. An empty
region list is accepted; the other endpoints must return at least one item.
MongoDB holds no regions: `MongoSource.load_all_region_configs()` is empty and
`load_region_config` raises `ConfigError`.

## Syncing configuration to disk

`npcbrain-sync` pulls event types, FSM configs, behaviour trees and NPC
templates from the admin API and writes them as pretty-printed JSON under an
output directory (default `configs`), creating sub-directories for names such
as `guard/idle`. The whole run has a 30-second deadline; it exits with status
1 when `--api` is missing or a fetch or write fails.

```
npcbrain-sync --api http://localhost:3000
npcbrain-sync --api http://localhost:3000 --out configs
```

The same is available as `fetch_items(url, timeout)` and
`write_items(items, out_dir, sub_dir)` in `npcbrain.sync`.

## What this package does not do

It is the behaviour core and its configuration loading only. It runs no game
server: there is no tick scheduler, no network gateway or snapshot broadcast,
no NPC registry, spawning or zones, and no needs, emotion, memory or social
systems. Those are left to the program that uses these pieces.