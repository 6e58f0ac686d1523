"""Configuration sources for FSM, behaviour-tree, event, NPC and region configs."""

from __future__ import annotations

import json
import os
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Any, Optional, Union

from .fsm import FSMConfig

RawJSON = Union[bytes, str]


class ConfigError(Exception):
    """A configuration could not be found, read or parsed."""


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def loads_json(data: RawJSON) -> Any:
    """Decode strict JSON text (NaN and Infinity are rejected)."""
    return json.loads(data, parse_constant=_reject_constant)


def is_valid_json(data: RawJSON) -> bool:
    """Tell whether the text is one well-formed JSON value."""
    try:
        loads_json(data)
    except ValueError:
        return False
    return True


def parse_fsm_config(name: str, data: RawJSON) -> FSMConfig:
    """Decode raw JSON into an FSM configuration."""
    try:
        return FSMConfig.from_dict(loads_json(data))
    except ValueError as exc:
        raise ConfigError(f"config: parse FSM {name!r}: {exc}") from exc


class Source(ABC):
    """Where configuration comes from; raw JSON is returned as bytes."""

    @abstractmethod
    def load_fsm_config(self, npc_type: str) -> FSMConfig:
        """The parsed FSM configuration with this name."""

    @abstractmethod
    def load_bt_tree(self, tree_name: str) -> bytes:
        """Raw JSON of a behaviour tree."""

    @abstractmethod
    def load_event_config(self, event_type: str) -> bytes:
        """Raw JSON of an event type."""

    @abstractmethod
    def load_all_event_configs(self) -> dict[str, bytes]:
        """Every event type: name to raw JSON."""

    @abstractmethod
    def load_npc_type_config(self, npc_type: str) -> bytes:
        """Raw JSON of a legacy NPC type."""

    @abstractmethod
    def load_npc_template(self, name: str) -> bytes:
        """Raw JSON of an NPC template."""

    @abstractmethod
    def load_all_npc_templates(self) -> dict[str, bytes]:
        """Every NPC template: name to raw JSON."""

    @abstractmethod
    def load_region_config(self, region_id: str) -> bytes:
        """Raw JSON of a region."""

    @abstractmethod
    def load_all_region_configs(self) -> dict[str, bytes]:
        """Every region: id to raw JSON."""


def _check_safe(name: str) -> None:
    if ".." in name:
        raise ConfigError(f"config: path traversal rejected: {name!r}")


class JSONSource(Source):
    """Reads configuration files from a directory tree such as ``configs/``."""

    def __init__(self, base_path: Union[str, os.PathLike]) -> None:
        self.base_path = Path(base_path)

    def _path(self, subdir: str, name: str) -> Path:
        return self.base_path / subdir / (name + ".json").lstrip("/\\")

    def _read(self, subdir: str, name: str, what: str) -> bytes:
        _check_safe(name)
        try:
            return self._path(subdir, name).read_bytes()
        except OSError as exc:
            raise ConfigError(f"config: load {what} {name!r}: {exc}") from exc

    def _read_valid(self, subdir: str, name: str, what: str) -> bytes:
        data = self._read(subdir, name, what)
        if not is_valid_json(data):
            raise ConfigError(f"config: {what} {name!r} is not valid JSON")
        return data

    @staticmethod
    def _json_files(directory: Path) -> Iterator[tuple[str, Path]]:
        """Yield (name, path) of the .json files in a directory, sorted by file name."""
        with os.scandir(directory) as entries:
            found = sorted(entries, key=lambda e: e.name)
        for entry in found:
            if entry.is_dir(follow_symlinks=False) or not entry.name.endswith(".json"):
                continue
            yield entry.name[: -len(".json")], Path(entry.path)

    def load_fsm_config(self, npc_type: str) -> FSMConfig:
        return parse_fsm_config(npc_type, self._read("fsm", npc_type, "FSM"))

    def load_bt_tree(self, tree_name: str) -> bytes:
        return self._read_valid("bt_trees", tree_name, "BT tree")

    def load_event_config(self, event_type: str) -> bytes:
        return self._read_valid("events", event_type, "event")

    def load_all_event_configs(self) -> dict[str, bytes]:
        directory = self.base_path / "events"
        try:
            files = list(self._json_files(directory))
        except OSError as exc:
            raise ConfigError(f"config: read events dir: {exc}") from exc
        return {name: self.load_event_config(name) for name, _ in files}

    def load_npc_template(self, name: str) -> bytes:
        return self._read_valid("npc_templates", name, "NPC template")

    def load_all_npc_templates(self) -> dict[str, bytes]:
        try:
            files = list(self._json_files(self.base_path / "npc_templates"))
        except OSError:
            return {}
        result: dict[str, bytes] = {}
        for name, path in files:
            try:
                data = path.read_bytes()
            except OSError as exc:
                raise ConfigError(f"config: load NPC template {name!r}: {exc}") from exc
            if not is_valid_json(data):
                raise ConfigError(f"config: NPC template {name!r} is not valid JSON")
            result[name] = data
        return result

    def load_region_config(self, region_id: str) -> bytes:
        return self._read_valid("regions", region_id, "region")

    def load_all_region_configs(self) -> dict[str, bytes]:
        try:
            files = list(self._json_files(self.base_path / "regions"))
        except OSError:
            return {}
        return {name: self.load_region_config(name) for name, _ in files}

    def load_npc_type_config(self, npc_type: str) -> bytes:
        return self._read_valid("npc_types", npc_type, "NPC type")


def _as_bytes_map(table: Optional[Mapping[str, RawJSON]]) -> dict[str, bytes]:
    if not table:
        return {}
    return {
        name: data.encode("utf-8") if isinstance(data, str) else bytes(data)
        for name, data in table.items()
    }


class MemorySource(Source):
    """Serves configuration held in memory; ``origin`` names where it was loaded from."""

    def __init__(
        self,
        origin: str = "in memory",
        event_types: Optional[Mapping[str, RawJSON]] = None,
        fsm_configs: Optional[Mapping[str, RawJSON]] = None,
        bt_trees: Optional[Mapping[str, RawJSON]] = None,
        npc_types: Optional[Mapping[str, RawJSON]] = None,
        npc_templates: Optional[Mapping[str, RawJSON]] = None,
        regions: Optional[Mapping[str, RawJSON]] = None,
    ) -> None:
        self.origin = origin
        self._event_types = _as_bytes_map(event_types)
        self._fsm_configs = _as_bytes_map(fsm_configs)
        self._bt_trees = _as_bytes_map(bt_trees)
        self._npc_types = _as_bytes_map(npc_types)
        self._npc_templates = _as_bytes_map(npc_templates)
        self._regions = _as_bytes_map(regions)

    def _find(self, table: dict[str, bytes], name: str, what: str) -> bytes:
        try:
            return table[name]
        except KeyError:
            raise ConfigError(f"config: {what} {name!r} not found {self.origin}") from None

    @staticmethod
    def _valid(data: bytes, name: str, what: str) -> bytes:
        if not is_valid_json(data):
            raise ConfigError(f"config: {what} {name!r} is not valid JSON")
        return data

    def load_fsm_config(self, npc_type: str) -> FSMConfig:
        return parse_fsm_config(npc_type, self._find(self._fsm_configs, npc_type, "FSM"))

    def load_bt_tree(self, tree_name: str) -> bytes:
        data = self._find(self._bt_trees, tree_name, "BT tree")
        return self._valid(data, tree_name, "BT tree")

    def load_event_config(self, event_type: str) -> bytes:
        data = self._find(self._event_types, event_type, "event")
        return self._valid(data, event_type, "event")

    def load_all_event_configs(self) -> dict[str, bytes]:
        return dict(self._event_types)

    def load_npc_type_config(self, npc_type: str) -> bytes:
        data = self._find(self._npc_types, npc_type, "NPC type")
        return self._valid(data, npc_type, "NPC type")

    def load_npc_template(self, name: str) -> bytes:
        data = self._find(self._npc_templates, name, "NPC template")
        return self._valid(data, name, "NPC template")

    def load_all_npc_templates(self) -> dict[str, bytes]:
        return dict(self._npc_templates)

    def load_region_config(self, region_id: str) -> bytes:
        try:
            data = self._regions[region_id]
        except KeyError:
            raise ConfigError(f"config: region {region_id!r} not found") from None
        return self._valid(data, region_id, "region")

    def load_all_region_configs(self) -> dict[str, bytes]:
        return dict(self._regions)