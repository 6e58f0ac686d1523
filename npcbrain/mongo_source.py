"""Configuration loaded in full from MongoDB at start-up and served from memory."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from bson import json_util
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from .source import ConfigError, MemorySource

logger = logging.getLogger(__name__)

# (collection name, optional): an optional collection may be missing or empty.
_COLLECTIONS: tuple[tuple[str, bool], ...] = (
    ("event_types", False),
    ("npc_types", False),
    ("fsm_configs", False),
    ("bt_trees", False),
    ("npc_templates", True),
)


def _document_json(collection: str, name: str, config: Any) -> bytes:
    """Render a stored config document as relaxed extended JSON."""
    if not isinstance(config, Mapping):
        raise ConfigError(
            f"config: mongo marshal {collection}/{name}: config is not a document"
        )
    try:
        text = json_util.dumps(config, json_options=json_util.RELAXED_JSON_OPTIONS)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"config: mongo marshal {collection}/{name}: {exc}") from exc
    return text.encode("utf-8")


def _load_collection(db: Any, name: str) -> dict[str, bytes]:
    """Read every ``{name, config}`` document of a collection; an empty result is an error."""
    try:
        cursor = db[name].find({})
    except PyMongoError as exc:
        raise ConfigError(f"config: mongo find {name}: {exc}") from exc

    target: dict[str, bytes] = {}
    try:
        for doc in cursor:
            doc_name = doc.get("name") or ""
            if not isinstance(doc_name, str):
                raise ConfigError(f"config: mongo decode {name}: name is not a string")
            if not doc_name:
                continue
            target[doc_name] = _document_json(name, doc_name, doc.get("config"))
    except PyMongoError as exc:
        raise ConfigError(f"config: mongo cursor {name}: {exc}") from exc

    if not target:
        raise ConfigError(f"config: mongo collection {name} is empty")
    return target


class MongoSource(MemorySource):
    """Configuration read once from MongoDB; the connection is closed after loading."""

    ORIGIN = "in MongoDB"

    @classmethod
    def from_database(cls, uri: str, database: str, timeout: float = 10.0) -> MongoSource:
        """Connect, load every collection into memory and disconnect."""
        try:
            client = MongoClient(uri, serverSelectionTimeoutMS=int(timeout * 1000))
        except (PyMongoError, ValueError, TypeError) as exc:
            raise ConfigError(f"config: mongo connect: {exc}") from exc

        try:
            try:
                client.admin.command("ping")
            except PyMongoError as exc:
                raise ConfigError(f"config: mongo ping: {exc}") from exc

            db = client[database]
            tables: dict[str, dict[str, bytes]] = {}
            for name, optional in _COLLECTIONS:
                try:
                    tables[name] = _load_collection(db, name)
                except ConfigError as exc:
                    if not optional:
                        raise
                    logger.warning(
                        "config.mongo.optional_collection_skipped collection=%s err=%s", name, exc
                    )
                    tables[name] = {}
                    continue
                logger.info("config.mongo.loaded collection=%s count=%d", name, len(tables[name]))
        finally:
            client.close()

        return cls(
            origin=cls.ORIGIN,
            event_types=tables["event_types"],
            fsm_configs=tables["fsm_configs"],
            bt_trees=tables["bt_trees"],
            npc_types=tables["npc_types"],
            npc_templates=tables["npc_templates"],
        )

    def load_region_config(self, region_id: str) -> bytes:
        """Regions are not stored in MongoDB; asking for one is an error."""
        raise ConfigError("config: region loading via MongoDB is not supported")