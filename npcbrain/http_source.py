"""Configuration fetched in full from the admin platform's HTTP API and served from memory."""

from __future__ import annotations

import http.client
import json
import logging
import urllib.error
import urllib.request
from typing import Any, Optional

from .source import ConfigError, MemorySource, loads_json

logger = logging.getLogger(__name__)

EVENT_TYPES_PATH = "/api/configs/event_types"
FSM_CONFIGS_PATH = "/api/configs/fsm_configs"
BT_TREES_PATH = "/api/configs/bt_trees"
NPC_TEMPLATES_PATH = "/api/configs/npc_templates"
REGIONS_PATH = "/api/configs/regions"

NPC_TEMPLATES_DANGLING_CODE = 45016
REGIONS_DANGLING_CODE = 47011


def _get(url: str, timeout: float) -> tuple[int, bytes]:
    """Issue a GET and return (status, body) for any HTTP response."""
    request = urllib.request.Request(url, method="GET")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return response.status, response.read()
    except urllib.error.HTTPError as exc:
        with exc:
            try:
                return exc.code, exc.read()
            except OSError as read_exc:
                raise ConfigError(f"config: http read {url}: {read_exc}") from read_exc
    except (OSError, http.client.HTTPException) as exc:
        raise ConfigError(f"config: http request {url}: {exc}") from exc
    except ValueError as exc:
        raise ConfigError(f"config: http create request {url}: {exc}") from exc


def _parse_items(url: str, body: bytes) -> dict[str, bytes]:
    """Decode an ``{"items": [{"name", "config"}]}`` body; items without a name are dropped."""
    try:
        payload = loads_json(body)
    except ValueError as exc:
        raise ConfigError(f"config: http parse {url}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"config: http parse {url}: response is not an object")
    items = payload.get("items") or []
    if not isinstance(items, list):
        raise ConfigError(f"config: http parse {url}: items is not a list")

    result: dict[str, bytes] = {}
    for item in items:
        if item is None:
            continue
        if not isinstance(item, dict):
            raise ConfigError(f"config: http parse {url}: item is not an object")
        name = item.get("name") or ""
        if not isinstance(name, str):
            raise ConfigError(f"config: http parse {url}: item name is not a string")
        if not name:
            continue
        if "config" in item:
            result[name] = json.dumps(item["config"], ensure_ascii=False).encode("utf-8")
        else:
            result[name] = b""
    return result


def _dangling_refs(body: bytes, code: int) -> Optional[tuple[str, list[dict[str, str]]]]:
    """Return (message, details) when the body is the business error with this code."""
    try:
        payload = loads_json(body)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    found = payload.get("code")
    if isinstance(found, bool) or not isinstance(found, int) or found != code:
        return None
    message = payload.get("message") or ""
    details = payload.get("details") or []
    if not isinstance(message, str) or not isinstance(details, list):
        return None
    if not all(isinstance(d, dict) for d in details):
        return None

    def text(entry: dict[str, Any], name: str) -> str:
        value = entry.get(name)
        return value if isinstance(value, str) else ""

    fields = ("npc_name", "ref_type", "ref_value", "reason", "state")
    return message, [{f: text(d, f) for f in fields} for d in details]


def _status_error(url: str, status: int, body: bytes) -> ConfigError:
    text = body.decode("utf-8", errors="replace")
    return ConfigError(f"config: http request {url}: status {status} body={text}")


def _fetch_required(url: str, timeout: float) -> dict[str, bytes]:
    status, body = _get(url, timeout)
    if status != 200:
        raise ConfigError(f"config: http request {url}: status {status}")
    items = _parse_items(url, body)
    if not items:
        raise ConfigError(f"config: http endpoint {url} returned empty items")
    return items


def _fetch_npc_templates(url: str, timeout: float) -> dict[str, bytes]:
    status, body = _get(url, timeout)
    if status == 500:
        dangling = _dangling_refs(body, NPC_TEMPLATES_DANGLING_CODE)
        if dangling is not None:
            message, details = dangling
            for d in details:
                parts = [
                    f"npc_name={d['npc_name']}",
                    f"ref_type={d['ref_type']}",
                    f"ref_value={d['ref_value']}",
                    f"reason={d['reason']}",
                ]
                if d["state"]:
                    parts.append(f"state={d['state']}")
                logger.error("config.http.npc_templates.dangling %s", " ".join(parts))
            raise ConfigError(
                f"config: npc_templates export dangling refs "
                f"(code={NPC_TEMPLATES_DANGLING_CODE}, count={len(details)}): {message}"
            )
    if status != 200:
        raise _status_error(url, status, body)
    items = _parse_items(url, body)
    if not items:
        raise ConfigError(f"config: http endpoint {url} returned empty items")
    return items


def _fetch_regions(url: str, timeout: float) -> dict[str, bytes]:
    status, body = _get(url, timeout)
    if status == 500:
        dangling = _dangling_refs(body, REGIONS_DANGLING_CODE)
        if dangling is not None:
            message, details = dangling
            for d in details:
                # The admin side reuses the NPC export record: npc_name carries the region id.
                logger.error(
                    "config.http.regions.dangling region_id=%s ref_type=%s ref_value=%s reason=%s",
                    d["npc_name"], d["ref_type"], d["ref_value"], d["reason"],
                )
            raise ConfigError(
                f"config: regions export dangling refs "
                f"(code={REGIONS_DANGLING_CODE}, count={len(details)}): {message}"
            )
    if status != 200:
        raise _status_error(url, status, body)
    return _parse_items(url, body)


class HTTPSource(MemorySource):
    """Configuration pulled once from the admin API; later reads never touch the network."""

    ORIGIN = "via ADMIN API"

    @classmethod
    def from_api(cls, base_url: str, timeout: float = 10.0) -> HTTPSource:
        """Fetch every endpoint; raise ConfigError on the first failure."""
        tables: dict[str, dict[str, bytes]] = {}
        for key, path in (
            ("event_types", EVENT_TYPES_PATH),
            ("fsm_configs", FSM_CONFIGS_PATH),
            ("bt_trees", BT_TREES_PATH),
        ):
            tables[key] = _fetch_required(base_url + path, timeout)
            logger.info("config.http.loaded endpoint=%s count=%d", path, len(tables[key]))

        npc_templates = _fetch_npc_templates(base_url + NPC_TEMPLATES_PATH, timeout)
        logger.info("config.http.loaded endpoint=%s count=%d", NPC_TEMPLATES_PATH, len(npc_templates))

        regions = _fetch_regions(base_url + REGIONS_PATH, timeout)
        logger.info("config.http.loaded endpoint=%s count=%d", REGIONS_PATH, len(regions))

        return cls(
            origin=cls.ORIGIN,
            event_types=tables["event_types"],
            fsm_configs=tables["fsm_configs"],
            bt_trees=tables["bt_trees"],
            npc_templates=npc_templates,
            regions=regions,
        )