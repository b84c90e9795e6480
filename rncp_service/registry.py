"""Copy-on-write registries for contracts and actions.

Lookups happen on every request, registrations rarely. Writers serialize on a
lock and publish a fresh read-only mapping; readers grab the current mapping
without locking and never observe a half-applied change.

Duplicate registration replaces the previous entry (last write wins) and is
logged at WARNING.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict, Generic, Iterator, List, Optional, TypeVar, Union

from .errors import ContractNotFoundError, SchemaDefinitionError
from .schemas import Contract, Node, NODE_TYPES, node_from_json_schema

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Registry(Generic[T]):
    kind = "entry"

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Mapping = MappingProxyType({})

    def _put(self, key: str, value: T) -> Optional[T]:
        if not isinstance(key, str) or not key:
            raise ValueError(f"{self.kind} id must be a non-empty string")
        with self._lock:
            previous = self._entries.get(key)
            updated = dict(self._entries)
            updated[key] = value
            self._entries = MappingProxyType(updated)
        if previous is not None:
            logger.warning("%s %s re-registered; previous definition replaced", self.kind, key)
        else:
            logger.debug("%s %s registered", self.kind, key)
        return previous

    def _remove(self, key: str) -> bool:
        with self._lock:
            if key not in self._entries:
                return False
            updated = dict(self._entries)
            del updated[key]
            self._entries = MappingProxyType(updated)
        logger.debug("%s %s unregistered", self.kind, key)
        return True

    def register(self, key: str, value: T) -> Optional[T]:
        """Store ``value`` under ``key``; returns the replaced entry, if any."""
        return self._put(key, value)

    def unregister(self, key: str) -> bool:
        return self._remove(key)

    def lookup(self, key: str) -> Optional[T]:
        return self._entries.get(key)

    def snapshot(self) -> Mapping:
        """Read-only view of the current entries; unaffected by later writes."""
        return self._entries

    def ids(self) -> List[str]:
        return list(self._entries.keys())

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids())


class SchemaRegistry(Registry[Contract]):
    kind = "contract"

    def register(self, contract_id: str, schema: Union[Contract, Node, Mapping], description: Optional[str] = None) -> Contract:
        """Register a contract from a node, a Contract or the dictionary form."""
        if isinstance(schema, Contract):
            contract = schema if schema.name == contract_id else Contract(contract_id, schema.root, description or schema.description)
        elif isinstance(schema, NODE_TYPES):
            contract = Contract(contract_id, schema, description)
        elif isinstance(schema, Mapping):
            contract = Contract(contract_id, node_from_json_schema(schema), description or schema.get("description"))
        else:
            raise SchemaDefinitionError(f"cannot build contract {contract_id} from {type(schema).__name__}")
        self._put(contract_id, contract)
        return contract

    def get(self, contract_id: str) -> Contract:
        contract = self.lookup(contract_id)
        if contract is None:
            raise ContractNotFoundError(contract_id)
        return contract

    def load_mapping(self, definitions: Mapping) -> List[Contract]:
        """Register every ``contract_id -> schema dict`` entry of ``definitions``."""
        return [self.register(cid, schema) for cid, schema in definitions.items()]

    def load_json_file(self, path: str) -> List[Contract]:
        with open(path, "r", encoding="utf-8") as fh:
            definitions: Dict[str, Any] = json.load(fh)
        if not isinstance(definitions, dict):
            raise SchemaDefinitionError(f"{path} must contain an object mapping contract ids to schemas")
        contracts = self.load_mapping(definitions)
        logger.info("loaded %d contract(s) from %s", len(contracts), path)
        return contracts


class ActionRegistry(Registry):
    """Action definitions keyed by identifier."""

    kind = "action"

    def add(self, action) -> Optional[Any]:
        return self._put(action.identifier, action)
