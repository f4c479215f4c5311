"""Tests for the task store backends and backend selection."""

import json
import logging
from pathlib import Path

import httpx
import pytest
from sqlmodel import create_engine
from sqlmodel.pool import StaticPool

from tasktracker.config import Settings
from tasktracker.database import SqlTaskStore
from tasktracker.main import build_store
from tasktracker.models import Task, TaskCategory, TaskPriority
from tasktracker.store import (
    JsonFileTaskStore,
    MemoryTaskStore,
    RemoteConfigTaskStore,
    StoreError,
    fallback_tasks,
    parse_tasks,
)

FALLBACK_IDS = ["fallback-1", "fallback-2", "fallback-3"]


def make_task(task_id: str, **fields) -> Task:
    defaults = {
        "title": f"Task {task_id}",
        "priority": TaskPriority.low,
        "category": TaskCategory.personal,
        "created_at": "2024-05-01T08:00:00.000Z",
        "updated_at": "2024-05-01T08:00:00.000Z",
    }
    defaults.update(fields)
    return Task(id=task_id, **defaults)


def ids(tasks: list[Task]) -> list[str]:
    return [t.id for t in tasks]


class TestParseTasks:
    def test_accepts_bare_array(self):
        """A JSON array of tasks loads."""
        raw = [make_task("a").to_json()]
        assert ids(parse_tasks(raw)) == ["a"]

    def test_accepts_tasks_object(self):
        """An object with a tasks array loads."""
        raw = {"tasks": [make_task("a").to_json(), make_task("b").to_json()]}
        assert ids(parse_tasks(raw)) == ["a", "b"]

    def test_rejects_other_shapes(self):
        """Anything else is malformed."""
        with pytest.raises(ValueError):
            parse_tasks({"items": []})
        with pytest.raises(ValueError):
            parse_tasks("tasks")

    def test_rejects_invalid_enum_value(self):
        """A priority outside the enum makes the payload malformed."""
        record = {**make_task("a").to_json(), "priority": "critical"}
        with pytest.raises(ValueError, match="invalid task record"):
            parse_tasks([record])

    def test_rejects_duplicate_ids(self):
        """Two records with one id make the payload malformed."""
        record = make_task("a").to_json()
        with pytest.raises(ValueError, match="duplicate"):
            parse_tasks([record, record])


class TestMemoryTaskStore:
    def test_defaults_to_fallback_tasks(self):
        """A store without initial tasks starts from the fallback set."""
        assert ids(MemoryTaskStore().load_all()) == FALLBACK_IDS

    def test_append_keeps_insertion_order(self):
        """Appended tasks are listed in insertion order."""
        store = MemoryTaskStore([])
        store.append(make_task("a"))
        store.append(make_task("b"))
        assert ids(store.load_all()) == ["a", "b"]

    def test_append_rejects_duplicate_id(self):
        """A task id already in memory is rejected."""
        store = MemoryTaskStore([make_task("a")])
        with pytest.raises(StoreError, match="already exists"):
            store.append(make_task("a"))

    def test_load_all_returns_copy(self):
        """Mutating a returned list does not change the store."""
        store = MemoryTaskStore([])
        store.load_all().append(make_task("x"))
        assert store.load_all() == []


class TestJsonFileTaskStore:
    def test_missing_file_falls_back(self, tmp_path: Path, caplog):
        """A missing file serves fallback tasks and logs a warning."""
        store = JsonFileTaskStore(tmp_path / "tasks.json")
        with caplog.at_level(logging.WARNING):
            assert ids(store.load_all()) == FALLBACK_IDS
        assert "not found" in caplog.text

    def test_malformed_file_falls_back(self, tmp_path: Path):
        """Unparseable JSON serves fallback tasks."""
        path = tmp_path / "tasks.json"
        path.write_text("{oops")
        assert ids(JsonFileTaskStore(path).load_all()) == FALLBACK_IDS

    def test_reads_file_on_every_call(self, tmp_path: Path):
        """External edits to the file show up on the next read."""
        path = tmp_path / "tasks.json"
        path.write_text(json.dumps([make_task("a").to_json()]))
        store = JsonFileTaskStore(path)
        assert ids(store.load_all()) == ["a"]
        path.write_text(json.dumps([make_task("b").to_json()]))
        assert ids(store.load_all()) == ["b"]

    def test_append_rewrites_whole_file(self, tmp_path: Path):
        """The file is rewritten in full with camelCase keys and no leftover temp file."""
        path = tmp_path / "tasks.json"
        path.write_text(json.dumps([make_task("a").to_json()]))
        store = JsonFileTaskStore(path)
        store.append(make_task("b", description="second"))

        written = json.loads(path.read_text())
        assert [t["id"] for t in written] == ["a", "b"]
        assert written[1]["description"] == "second"
        assert written[1]["createdAt"] == "2024-05-01T08:00:00.000Z"
        assert "dueDate" not in written[1]
        assert list(tmp_path.iterdir()) == [path]

    def test_append_to_missing_file_starts_from_fallback(self, tmp_path: Path):
        """The first write keeps the fallback tasks that were visible."""
        path = tmp_path / "nested" / "tasks.json"
        store = JsonFileTaskStore(path)
        store.append(make_task("a"))
        assert ids(store.load_all()) == [*FALLBACK_IDS, "a"]

    def test_append_to_malformed_file_raises(self, tmp_path: Path):
        """A malformed file is never overwritten."""
        path = tmp_path / "tasks.json"
        path.write_text("[{\"id\": 1}]")
        store = JsonFileTaskStore(path)
        with pytest.raises(StoreError):
            store.append(make_task("a"))
        assert path.read_text() == "[{\"id\": 1}]"

    def test_append_rejects_duplicate_id(self, tmp_path: Path):
        """A task id already in the file is rejected."""
        path = tmp_path / "tasks.json"
        path.write_text(json.dumps([make_task("a").to_json()]))
        with pytest.raises(StoreError, match="already exists"):
            JsonFileTaskStore(path).append(make_task("a"))


def remote_store(handler) -> RemoteConfigTaskStore:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RemoteConfigTaskStore("https://config.example/item/tasks", token="secret", client=client)


class TestRemoteConfigTaskStore:
    def test_loads_tasks_object_and_sends_token(self):
        """The bearer token is sent and a tasks object loads."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"tasks": [make_task("r1").to_json()]})

        store = remote_store(handler)
        assert ids(store.load_all()) == ["r1"]
        assert seen[0].headers["Authorization"] == "Bearer secret"

    def test_fetches_once(self):
        """A successful fetch is cached."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=[make_task("r1").to_json()])

        store = remote_store(handler)
        store.load_all()
        store.load_all()
        assert len(calls) == 1

    def test_http_error_falls_back(self):
        """A 5xx response serves fallback tasks."""
        store = remote_store(lambda request: httpx.Response(503))
        assert ids(store.load_all()) == FALLBACK_IDS

    def test_connection_error_falls_back(self):
        """A transport error serves fallback tasks."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert ids(remote_store(handler).load_all()) == FALLBACK_IDS

    def test_unexpected_shape_falls_back(self):
        """An object without tasks serves fallback tasks."""
        store = remote_store(lambda request: httpx.Response(200, json={"greeting": "hi"}))
        assert ids(store.load_all()) == FALLBACK_IDS

    def test_append_is_kept_in_process(self):
        """Appended tasks are listed without touching the remote item."""
        store = remote_store(lambda request: httpx.Response(200, json=[]))
        store.append(make_task("new"))
        assert ids(store.load_all()) == ["new"]

    def test_retries_after_failed_fetch(self):
        """A transient failure serves fallback tasks once, then the remote tasks."""
        responses = [httpx.Response(503), httpx.Response(200, json=[make_task("r1").to_json()])]
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return responses[len(calls) - 1]

        store = remote_store(handler)
        assert ids(store.load_all()) == FALLBACK_IDS
        assert ids(store.load_all()) == ["r1"]
        assert ids(store.load_all()) == ["r1"]
        assert len(calls) == 2

    def test_appended_tasks_survive_recovery(self):
        """Tasks appended while on fallback data stay listed once the remote item loads."""
        responses = [httpx.Response(503), httpx.Response(200, json=[make_task("r1").to_json()])]
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return responses[len(calls) - 1]

        store = remote_store(handler)
        store.append(make_task("local"))
        assert ids(store.load_all()) == ["r1", "local"]


@pytest.fixture(name="sql_store")
def sql_store_fixture():
    """Create a store over a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return SqlTaskStore(engine)


class TestSqlTaskStore:
    def test_starts_empty(self, sql_store: SqlTaskStore):
        """A new database holds no tasks."""
        assert sql_store.load_all() == []

    def test_round_trips_in_insertion_order(self, sql_store: SqlTaskStore):
        """Tasks come back equal and in insertion order."""
        first = make_task("z", due_date="2024-06-01", completed=True)
        second = make_task("a", description="note", category=TaskCategory.health)
        sql_store.append(first)
        sql_store.append(second)
        assert sql_store.load_all() == [first, second]

    def test_duplicate_id_raises(self, sql_store: SqlTaskStore):
        """The unique id column rejects a second task with the same id."""
        sql_store.append(make_task("a"))
        with pytest.raises(StoreError, match="already exists"):
            sql_store.append(make_task("a"))


class TestBuildStore:
    def test_memory_is_default(self):
        """Default settings build the in-memory store."""
        assert isinstance(build_store(Settings()), MemoryTaskStore)

    def test_file_backend(self, tmp_path: Path):
        """The file backend uses the configured path."""
        store = build_store(Settings(backend="file", tasks_file=str(tmp_path / "t.json")))
        assert isinstance(store, JsonFileTaskStore)
        assert store.path == tmp_path / "t.json"

    def test_remote_backend(self):
        """The remote backend is built from its URL."""
        store = build_store(Settings(backend="remote", remote_url="https://config.example/x"))
        assert isinstance(store, RemoteConfigTaskStore)

    def test_sqlite_backend(self, tmp_path: Path):
        """The sqlite backend creates the database directory."""
        store = build_store(
            Settings(backend="sqlite", database_url=f"sqlite:///{tmp_path / 'db' / 'tasks.db'}")
        )
        assert isinstance(store, SqlTaskStore)
        assert (tmp_path / "db").is_dir()


def test_fallback_tasks_are_fresh_copies():
    """Each call returns a new list."""
    first = fallback_tasks()
    first.pop()
    assert len(fallback_tasks()) == 3
