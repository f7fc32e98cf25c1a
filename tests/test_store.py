from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from pymongo.errors import DuplicateKeyError

from crm_backend.core.store import (
    DuplicateRecordError,
    LocalCollection,
    MongoCollection,
    matches,
)


def _people() -> LocalCollection:
    collection = LocalCollection("people", unique_fields=("id",))
    for row in [
        {"id": "1", "name": "Alice Smith", "age": 31, "team": "a"},
        {"id": "2", "name": "Bob Stone", "age": 25, "team": "b"},
        {"id": "3", "name": "Carol Alison", "age": 42, "team": "a"},
    ]:
        collection.insert_one(row)
    return collection


def test_matches_supports_operators() -> None:
    row = {"name": "Alice", "age": 30, "team": "a"}

    assert matches(row, {"age": {"$gte": 30, "$lt": 31}})
    assert matches(row, {"team": {"$in": ["a", "c"]}})
    assert matches(row, {"team": {"$ne": "b"}})
    assert matches(row, {"name": {"$regex": "ali", "$options": "i"}})
    assert not matches(row, {"name": {"$regex": "ali"}})
    assert matches(row, {"$or": [{"team": "z"}, {"age": 30}]})
    assert not matches(row, {"missing": {"$lt": 5}})


def test_matches_rejects_unknown_operator() -> None:
    with pytest.raises(ValueError):
        matches({"a": 1}, {"a": {"$where": "1"}})


def test_local_collection_find_sort_skip_limit() -> None:
    collection = _people()

    names = [row["name"] for row in collection.find({"team": "a"}, sort=("name", 1))]
    page = collection.find({}, sort=("id", -1), skip=1, limit=1)

    assert names == ["Alice Smith", "Carol Alison"]
    assert [row["id"] for row in page] == ["2"]
    assert collection.count({"team": "a"}) == 2


def test_local_collection_returns_copies() -> None:
    collection = _people()

    row = collection.find_one({"id": "1"})
    assert row is not None
    row["name"] = "changed"

    assert collection.find_one({"id": "1"})["name"] == "Alice Smith"  # type: ignore[index]


def test_local_collection_enforces_unique_fields() -> None:
    collection = _people()

    with pytest.raises(DuplicateRecordError) as inserted:
        collection.insert_one({"id": "1", "name": "dup"})
    with pytest.raises(DuplicateRecordError):
        collection.update_one({"id": "2"}, {"id": "1"})

    assert inserted.value.field == "id"


def test_find_one_and_update_is_compare_and_set() -> None:
    collection = LocalCollection("tokens")
    collection.insert_one({"token_id": "t1", "revoked": False})

    first = collection.find_one_and_update(
        {"token_id": "t1", "revoked": False}, {"revoked": True}
    )
    second = collection.find_one_and_update(
        {"token_id": "t1", "revoked": False}, {"revoked": True}
    )

    assert first == {"token_id": "t1", "revoked": False}
    assert second is None
    assert collection.find_one({"token_id": "t1"}) == {"token_id": "t1", "revoked": True}


def test_update_many_and_delete_many_return_counts() -> None:
    collection = _people()

    assert collection.update_many({"team": "a"}, {"team": "c"}) == 2
    assert collection.delete_many({"age": {"$lt": 40}}) == 2
    assert collection.delete_one({"id": "3"}) is True
    assert collection.delete_one({"id": "3"}) is False


def test_local_collection_persists_to_file(tmp_path: Path) -> None:
    path = tmp_path / "people.json"
    collection = LocalCollection("people", path=path)
    collection.insert_one({"id": "1", "name": "Alice"})

    reloaded = LocalCollection("people", path=path)

    assert reloaded.find_one({"id": "1"}) == {"id": "1", "name": "Alice"}


def test_local_collection_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "people.json"
    path.write_text("{not json", encoding="utf-8")

    assert LocalCollection("people", path=path).count({}) == 0


def test_local_collection_keeps_memory_when_write_fails(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    collection = LocalCollection("people", path=tmp_path / "people.json")
    collection.insert_one({"id": "1", "name": "Alice"})

    def _disk_full(*_args: object, **_kwargs: object) -> None:
        raise OSError("No space left on device")

    monkeypatch.setattr(Path, "replace", _disk_full)

    with pytest.raises(OSError):
        collection.insert_one({"id": "2", "name": "Bob"})
    with pytest.raises(OSError):
        collection.update_one({"id": "1"}, {"name": "Alicia"})
    with pytest.raises(OSError):
        collection.delete_many({})

    assert collection.find({}) == [{"id": "1", "name": "Alice"}]


class _RaisingMongoCollection:
    name = "users"

    def insert_one(self, _doc: dict[str, Any]) -> None:
        raise DuplicateKeyError(
            "E11000 duplicate key", 11000, {"keyPattern": {"email": 1}}
        )


def test_mongo_collection_maps_duplicate_key_error() -> None:
    collection = MongoCollection(_RaisingMongoCollection())

    with pytest.raises(DuplicateRecordError) as exc:
        collection.insert_one({"email": "a@example.com"})

    assert exc.value.field == "email"
