import pytest

from rncp_service.context import (
    TASK_INSTRUCTION, ContextInjector, DataConnection, DataSource, StaticDataSource,
    data_source_from_config,
)
from rncp_service.errors import DataSourceError, DataSourceNotFoundError


class TrackingConnection(DataConnection):
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class FlakySource(DataSource):
    """Connects fine but fails while describing itself."""

    def __init__(self):
        self.id = "flaky"
        self.type = "postgres"
        self.connection = TrackingConnection()
        self.connected = 0

    async def connect(self):
        self.connected += 1
        return self.connection

    async def get_schema(self):
        raise RuntimeError("permission denied for table users")

    async def get_metadata(self):
        return {}


class UnreachableSource(FlakySource):
    async def connect(self):
        raise ConnectionError("host unreachable")


@pytest.mark.asyncio
async def test_context_lists_sources_then_query():
    injector = ContextInjector()
    injector.register_data_source(StaticDataSource("users", "postgres", {"id": "int"}, {"rows": 3}))
    context = await injector.build_context(["users"], "how many users?")
    assert context.startswith("Data source: users\nType: postgres\nSchema: {")
    assert '"rows": 3' in context
    assert context.endswith("User query: how many users?\n\n" + TASK_INSTRUCTION)


@pytest.mark.asyncio
async def test_context_without_sources():
    context = await ContextInjector().build_context([], "hello")
    assert context == "User query: hello\n\n" + TASK_INSTRUCTION


@pytest.mark.asyncio
async def test_template_selection_by_type_then_default():
    injector = ContextInjector({"default": "DEFAULT {{id}}", "s3": "BUCKET {{id}} {{type}}"})
    injector.register_data_source(StaticDataSource("logs", "s3"))
    injector.register_data_source(StaticDataSource("db", "postgres"))
    context = await injector.build_context(["logs", "db"], "q")
    assert context.startswith("BUCKET logs s3\n\nDEFAULT db\n\n")


@pytest.mark.asyncio
async def test_set_prompt_template_replaces_previous():
    injector = ContextInjector({"default": "old {{id}}"})
    injector.set_prompt_template("default", "new {{id}}")
    injector.register_data_source(StaticDataSource("a", "csv"))
    assert (await injector.build_context(["a"], "q")).startswith("new a")


@pytest.mark.asyncio
async def test_unknown_source_fails_before_touching_others():
    injector = ContextInjector()
    flaky = FlakySource()
    injector.register_data_source(flaky)
    with pytest.raises(DataSourceNotFoundError) as ei:
        await injector.build_context(["flaky", "missing"], "q")
    assert ei.value.code == "DATA_SOURCE_NOT_FOUND"
    assert flaky.connected == 0


@pytest.mark.asyncio
async def test_describe_failure_closes_connection():
    injector = ContextInjector()
    flaky = FlakySource()
    injector.register_data_source(flaky)
    with pytest.raises(DataSourceError) as ei:
        await injector.build_context(["flaky"], "q")
    assert "permission denied" in str(ei.value)
    assert flaky.connection.closed is True


@pytest.mark.asyncio
async def test_connect_failure_is_data_source_error():
    injector = ContextInjector()
    injector.register_data_source(UnreachableSource())
    with pytest.raises(DataSourceError):
        await injector.build_context(["flaky"], "q")


@pytest.mark.asyncio
async def test_unregister_data_source():
    injector = ContextInjector()
    injector.register_data_source(StaticDataSource("a", "csv"))
    assert injector.unregister_data_source("a") is True
    with pytest.raises(DataSourceNotFoundError):
        await injector.build_context(["a"], "q")


def test_data_source_from_config():
    source = data_source_from_config({"id": "orders", "type": "mysql", "metadata": {"owner": "ops"}})
    assert source.id == "orders"
    assert source.type == "mysql"
    with pytest.raises(DataSourceError):
        data_source_from_config({"id": "orders"})
