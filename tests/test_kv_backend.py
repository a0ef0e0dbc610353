import json
import os

import pytest

from authenticator_core.exceptions import PersistenceError
from authenticator_db.kv_backend import (
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    open_backend,
)


@pytest.fixture(params=["memory", "sqlite", "json"])
def kv(request, tmp_path):
    if request.param == "memory":
        return MemoryKeyValueStore()
    if request.param == "sqlite":
        return SqliteKeyValueStore(str(tmp_path / "kv.db"))
    return JsonFileKeyValueStore(str(tmp_path / "kv.json"))


class TestBackends:
    def test_missing_key(self, kv):
        assert kv.get("nothing") is None

    def test_set_get(self, kv):
        kv.set("savedAccounts", b"[]")
        assert kv.get("savedAccounts") == b"[]"

    def test_overwrite(self, kv):
        kv.set("k", b"one")
        kv.set("k", b"two")
        assert kv.get("k") == b"two"

    def test_binary_values(self, kv):
        kv.set("k", bytes(range(256)))
        assert kv.get("k") == bytes(range(256))

    def test_delete(self, kv):
        kv.set("k", b"v")
        kv.delete("k")
        assert kv.get("k") is None

    def test_delete_missing_is_noop(self, kv):
        kv.delete("never-set")
        assert kv.get("never-set") is None


class TestSqlite:
    def test_survives_new_instance(self, tmp_path):
        path = str(tmp_path / "kv.db")
        SqliteKeyValueStore(path).set("k", b"v")
        assert SqliteKeyValueStore(path).get("k") == b"v"

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "kv.db"
        SqliteKeyValueStore(str(path))
        assert path.exists()

    def test_unusable_path(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(PersistenceError):
            SqliteKeyValueStore(str(blocker / "kv.db"))


class TestJsonFile:
    def test_document_layout(self, tmp_path):
        path = tmp_path / "kv.json"
        JsonFileKeyValueStore(str(path)).set("selectedAccountId", b"abc")
        assert json.loads(path.read_text()) == {"selectedAccountId": "YWJj"}

    def test_backup_holds_previous_version(self, tmp_path):
        path = tmp_path / "kv.json"
        kv = JsonFileKeyValueStore(str(path))
        kv.set("k", b"one")
        kv.set("k", b"two")
        assert JsonFileKeyValueStore(str(path) + ".bak").get("k") == b"one"

    def test_no_temp_files_left(self, tmp_path):
        kv = JsonFileKeyValueStore(str(tmp_path / "kv.json"))
        kv.set("a", b"1")
        kv.set("b", b"2")
        assert sorted(os.listdir(tmp_path)) == ["kv.json", "kv.json.bak"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "kv.json"
        path.write_text("{broken")
        with pytest.raises(PersistenceError):
            JsonFileKeyValueStore(str(path)).get("k")

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "kv.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(PersistenceError):
            JsonFileKeyValueStore(str(path)).get("k")

    def test_value_not_base64(self, tmp_path):
        path = tmp_path / "kv.json"
        path.write_text('{"k": "***"}')
        with pytest.raises(PersistenceError):
            JsonFileKeyValueStore(str(path)).get("k")


class TestOpenBackend:
    @pytest.mark.parametrize("name", ["a.db", "a.sqlite", "A.SQLITE3"])
    def test_sqlite_suffixes(self, tmp_path, name):
        assert isinstance(open_backend(str(tmp_path / name)), SqliteKeyValueStore)

    @pytest.mark.parametrize("name", ["a.json", "accounts", "a.db.txt"])
    def test_json_otherwise(self, tmp_path, name):
        assert isinstance(open_backend(str(tmp_path / name)), JsonFileKeyValueStore)
