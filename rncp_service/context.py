"""Context injection: turns registered data sources into a system preamble.

Each requested source is connected, described through its schema and metadata
with a prompt template, and disconnected again. Templates are chosen by source
type, then the ``default`` template, then a built-in one. Supported
placeholders: ``{{id}}``, ``{{type}}``, ``{{schema}}``, ``{{metadata}}``.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .errors import DataSourceError, DataSourceNotFoundError
from .registry import Registry

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "Data source: {{id}}\nType: {{type}}\nSchema: {{schema}}\nMetadata: {{metadata}}"
TASK_INSTRUCTION = (
    "Your task is to understand the data sources and the user query, "
    "then generate a response that fulfills the user request."
)


class DataConnection(ABC):
    @abstractmethod
    async def close(self) -> None:
        pass


class DataSource(ABC):
    """A store the producer should know about."""

    id: str
    type: str

    @abstractmethod
    async def connect(self) -> DataConnection:
        pass

    @abstractmethod
    async def get_schema(self) -> Mapping[str, Any]:
        pass

    @abstractmethod
    async def get_metadata(self) -> Mapping[str, Any]:
        pass


class _NullConnection(DataConnection):
    async def close(self) -> None:
        return None


class StaticDataSource(DataSource):
    """Source whose schema and metadata are known up front (config files, fixtures)."""

    def __init__(self, source_id: str, source_type: str, schema: Optional[Mapping[str, Any]] = None, metadata: Optional[Mapping[str, Any]] = None):
        self.id = source_id
        self.type = source_type
        self._schema = dict(schema or {})
        self._metadata = dict(metadata or {})

    async def connect(self) -> DataConnection:
        return _NullConnection()

    async def get_schema(self) -> Mapping[str, Any]:
        return self._schema

    async def get_metadata(self) -> Mapping[str, Any]:
        return self._metadata


class DataSourceRegistry(Registry[DataSource]):
    kind = "data source"


class PromptTemplateRegistry(Registry[str]):
    kind = "prompt template"


class ContextInjector:
    def __init__(self, prompt_templates: Optional[Mapping[str, str]] = None):
        self.sources = DataSourceRegistry()
        self._templates = PromptTemplateRegistry()
        for key, value in (prompt_templates or {}).items():
            self._templates.register(key, value)

    def register_data_source(self, source: DataSource):
        return self.sources.register(source.id, source)

    def unregister_data_source(self, source_id: str) -> bool:
        return self.sources.unregister(source_id)

    def set_prompt_template(self, key: str, template: str):
        return self._templates.register(key, template)

    def _template_for(self, source_type: str) -> str:
        return self._templates.lookup(source_type) or self._templates.lookup("default") or DEFAULT_TEMPLATE

    async def build_context(self, source_ids: Iterable[str], user_query: str) -> str:
        """Raises DataSourceNotFoundError before touching any source if an id is unknown."""
        ids = list(source_ids or [])
        sources: List[DataSource] = []
        for sid in ids:
            source = self.sources.lookup(sid)
            if source is None:
                raise DataSourceNotFoundError(sid)
            sources.append(source)

        parts: List[str] = []
        for source in sources:
            parts.append(await self._describe(source))

        context = "".join(part + "\n\n" for part in parts)
        context += f"User query: {user_query}\n\n"
        context += TASK_INSTRUCTION
        logger.debug("built context from %d source(s), %d chars", len(sources), len(context))
        return context

    async def _describe(self, source: DataSource) -> str:
        try:
            connection = await source.connect()
        except Exception as exc:
            raise DataSourceError(f"Data source {source.id} connect failed: {exc}") from exc
        try:
            schema = await source.get_schema()
            metadata = await source.get_metadata()
        except Exception as exc:
            raise DataSourceError(f"Data source {source.id} could not be described: {exc}") from exc
        finally:
            try:
                await connection.close()
            except Exception:
                logger.exception("closing connection to data source %s failed", source.id)

        template = self._template_for(source.type)
        return (
            template
            .replace("{{id}}", source.id)
            .replace("{{type}}", source.type)
            .replace("{{schema}}", _dump(schema))
            .replace("{{metadata}}", _dump(metadata))
        )


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def data_source_from_config(entry: Dict[str, Any]) -> StaticDataSource:
    """Build a StaticDataSource from ``{"id", "type", "schema"?, "metadata"?}``."""
    try:
        return StaticDataSource(entry["id"], entry["type"], entry.get("schema"), entry.get("metadata"))
    except KeyError as exc:
        raise DataSourceError(f"data source entry is missing {exc}") from exc
