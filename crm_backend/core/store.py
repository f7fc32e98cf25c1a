"""Record collections with MongoDB primary and local JSON-file fallback.

Both backends accept the same small query dialect so repositories can be
written once:

- ``{"field": value}`` equality
- ``{"field": {"$in": [...]}}``, ``$ne``, ``$lt``, ``$lte``, ``$gt``, ``$gte``
- ``{"field": {"$regex": "...", "$options": "i"}}``
- ``{"$or": [query, ...]}`` at the top level

Updates are plain ``$set`` documents.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from pathlib import Path
from threading import RLock
from typing import Any, Iterable, Protocol

import pymongo
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

LOGGER = logging.getLogger(__name__)

Query = dict[str, Any]
Record = dict[str, Any]


class DuplicateRecordError(ValueError):
    """Raised when an insert or update violates a unique field."""

    def __init__(self, message: str, *, field: str = "") -> None:
        super().__init__(message)
        self.field = field


def _from_duplicate_key(exc: DuplicateKeyError) -> DuplicateRecordError:
    key_pattern = (exc.details or {}).get("keyPattern") or {}
    return DuplicateRecordError(str(exc), field=next(iter(key_pattern), ""))


class Collection(Protocol):
    """Protocol describing collection methods used by repositories."""

    name: str

    def find_one(self, query: Query) -> Record | None:
        """Return the first matching record or ``None``."""

    def find(
        self,
        query: Query,
        *,
        sort: tuple[str, int] | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Record]:
        """Return matching records."""

    def count(self, query: Query) -> int:
        """Count matching records."""

    def insert_one(self, record: Record) -> None:
        """Insert one record."""

    def update_one(self, query: Query, values: Record) -> Record | None:
        """Apply ``values`` to the first match and return the updated record."""

    def find_one_and_update(self, query: Query, values: Record) -> Record | None:
        """Atomically apply ``values`` to the first match and return it as it was before."""

    def update_many(self, query: Query, values: Record) -> int:
        """Apply ``values`` to all matches and return the modified count."""

    def delete_one(self, query: Query) -> bool:
        """Delete first match."""

    def delete_many(self, query: Query) -> int:
        """Delete all matches and return the count."""


def _match_condition(value: Any, condition: Any) -> bool:
    if not isinstance(condition, dict) or not any(
        str(key).startswith("$") for key in condition
    ):
        return value == condition

    for operator, operand in condition.items():
        if operator == "$in":
            if value not in operand:
                return False
        elif operator == "$ne":
            if value == operand:
                return False
        elif operator in {"$lt", "$lte", "$gt", "$gte"}:
            if value is None:
                return False
            if operator == "$lt" and not value < operand:
                return False
            if operator == "$lte" and not value <= operand:
                return False
            if operator == "$gt" and not value > operand:
                return False
            if operator == "$gte" and not value >= operand:
                return False
        elif operator == "$regex":
            flags = re.IGNORECASE if "i" in str(condition.get("$options", "")) else 0
            if not isinstance(value, str) or not re.search(operand, value, flags):
                return False
        elif operator == "$options":
            continue
        else:
            raise ValueError(f"Unsupported query operator: {operator}")
    return True


def matches(record: Record, query: Query) -> bool:
    """Return whether a record satisfies a query in the shared dialect."""
    for key, condition in query.items():
        if key == "$or":
            if not any(matches(record, sub) for sub in condition):
                return False
            continue
        if not _match_condition(record.get(key), condition):
            return False
    return True


class LocalCollection:
    """Lock-guarded in-process collection, optionally persisted to a JSON file."""

    def __init__(
        self,
        name: str,
        *,
        path: Path | None = None,
        unique_fields: Iterable[str] = (),
    ) -> None:
        """Load existing rows from ``path`` when it is given."""
        self.name = name
        self._path = path
        self._unique_fields = tuple(unique_fields)
        self._lock = RLock()
        self._rows: list[Record] = self._load()

    def _load(self) -> list[Record]:
        if self._path is None or not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.exception("Failed reading local collection file: %s", self._path)
            return []
        if not isinstance(payload, list):
            return []
        return [row for row in payload if isinstance(row, dict)]

    def _commit(self, rows: list[Record]) -> None:
        """Persist ``rows`` and only then make them the live table."""
        if self._path is not None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(
                json.dumps(rows, ensure_ascii=False, indent=2), encoding="utf-8"
            )
            tmp_path.replace(self._path)
        self._rows = rows

    def _check_unique(self, candidate: Record, *, skip: Record | None = None) -> None:
        for field in self._unique_fields:
            value = candidate.get(field)
            if value in (None, ""):
                continue
            for row in self._rows:
                if row is skip:
                    continue
                if row.get(field) == value:
                    raise DuplicateRecordError(
                        f"Duplicate value for {self.name}.{field}: {value}",
                        field=field,
                    )

    def find_one(self, query: Query) -> Record | None:
        with self._lock:
            for row in self._rows:
                if matches(row, query):
                    return copy.deepcopy(row)
        return None

    def find(
        self,
        query: Query,
        *,
        sort: tuple[str, int] | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Record]:
        with self._lock:
            rows = [copy.deepcopy(row) for row in self._rows if matches(row, query)]
        if sort is not None:
            field, direction = sort
            rows.sort(key=lambda row: str(row.get(field) or ""), reverse=direction < 0)
        if skip:
            rows = rows[skip:]
        if limit:
            rows = rows[:limit]
        return rows

    def count(self, query: Query) -> int:
        with self._lock:
            return sum(1 for row in self._rows if matches(row, query))

    def insert_one(self, record: Record) -> None:
        with self._lock:
            self._check_unique(record)
            self._commit([*self._rows, copy.deepcopy(record)])

    def _replace_first(self, query: Query, values: Record) -> tuple[Record, Record] | None:
        """Swap the first match for an updated copy; return (before, after)."""
        for index, row in enumerate(self._rows):
            if matches(row, query):
                updated = {**row, **copy.deepcopy(values)}
                self._check_unique(updated, skip=row)
                rows = list(self._rows)
                rows[index] = updated
                self._commit(rows)
                return row, updated
        return None

    def update_one(self, query: Query, values: Record) -> Record | None:
        with self._lock:
            replaced = self._replace_first(query, values)
            return copy.deepcopy(replaced[1]) if replaced else None

    def find_one_and_update(self, query: Query, values: Record) -> Record | None:
        with self._lock:
            replaced = self._replace_first(query, values)
            return copy.deepcopy(replaced[0]) if replaced else None

    def update_many(self, query: Query, values: Record) -> int:
        with self._lock:
            rows = [
                {**row, **copy.deepcopy(values)} if matches(row, query) else row
                for row in self._rows
            ]
            modified = sum(1 for new, old in zip(rows, self._rows) if new is not old)
            if modified:
                self._commit(rows)
        return modified

    def delete_one(self, query: Query) -> bool:
        with self._lock:
            for index, row in enumerate(self._rows):
                if matches(row, query):
                    self._commit(self._rows[:index] + self._rows[index + 1 :])
                    return True
        return False

    def delete_many(self, query: Query) -> int:
        with self._lock:
            kept = [row for row in self._rows if not matches(row, query)]
            removed = len(self._rows) - len(kept)
            if removed:
                self._commit(kept)
        return removed


class MongoCollection:
    """Thin pymongo wrapper speaking the shared collection dialect."""

    def __init__(self, collection: Any) -> None:
        """Wrap an existing ``pymongo`` collection object."""
        self._collection = collection
        self.name = str(getattr(collection, "name", "collection"))

    def find_one(self, query: Query) -> Record | None:
        return self._collection.find_one(query, {"_id": 0})

    def find(
        self,
        query: Query,
        *,
        sort: tuple[str, int] | None = None,
        skip: int = 0,
        limit: int = 0,
    ) -> list[Record]:
        cursor = self._collection.find(query, {"_id": 0})
        if sort is not None:
            cursor = cursor.sort(sort[0], sort[1])
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def count(self, query: Query) -> int:
        return int(self._collection.count_documents(query))

    def insert_one(self, record: Record) -> None:
        try:
            self._collection.insert_one(dict(record))
        except DuplicateKeyError as exc:
            raise _from_duplicate_key(exc) from exc

    def update_one(self, query: Query, values: Record) -> Record | None:
        try:
            return self._collection.find_one_and_update(
                query,
                {"$set": values},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as exc:
            raise _from_duplicate_key(exc) from exc

    def find_one_and_update(self, query: Query, values: Record) -> Record | None:
        return self._collection.find_one_and_update(
            query,
            {"$set": values},
            projection={"_id": 0},
            return_document=ReturnDocument.BEFORE,
        )

    def update_many(self, query: Query, values: Record) -> int:
        result = self._collection.update_many(query, {"$set": values})
        return int(result.modified_count)

    def delete_one(self, query: Query) -> bool:
        return bool(self._collection.delete_one(query).deleted_count)

    def delete_many(self, query: Query) -> int:
        return int(self._collection.delete_many(query).deleted_count)


class StoreFactory:
    """Open named collections on MongoDB when configured, local files otherwise."""

    def __init__(
        self,
        *,
        mongo_uri: str,
        mongo_db: str,
        data_dir: Path,
        strict: bool = False,
    ) -> None:
        """Connect to MongoDB eagerly so a bad URI surfaces at startup."""
        self._data_dir = data_dir
        self._db: Any | None = None
        self._client: Any | None = None
        if not mongo_uri:
            LOGGER.warning("MONGODB_URI is not set. Using local JSON record store.")
            return
        try:
            client: Any = pymongo.MongoClient(mongo_uri, serverSelectionTimeoutMS=3000)
            client.admin.command("ping")
        except pymongo.errors.PyMongoError:
            if strict:
                raise
            LOGGER.exception("MongoDB connection failed. Falling back to local record store.")
            return
        self._client = client
        self._db = client[mongo_db]
        LOGGER.info("Record store using MongoDB: db=%s", mongo_db)

    @property
    def mongo_enabled(self) -> bool:
        return self._db is not None

    @property
    def database(self) -> Any | None:
        return self._db

    def collection(self, name: str, *, unique_fields: Iterable[str] = ()) -> Collection:
        """Return persistent collection ``name``."""
        if self._db is not None:
            return MongoCollection(self._db[name])
        return LocalCollection(
            name,
            path=self._data_dir / f"{name}.json",
            unique_fields=unique_fields,
        )

    def process_collection(
        self, name: str, *, unique_fields: Iterable[str] = ()
    ) -> Collection:
        """Return a collection shared by all requests of this deployment.

        Uses MongoDB when it is available so multiple processes see the same
        state; otherwise an in-memory table local to this process.
        """
        if self._db is not None:
            return MongoCollection(self._db[name])
        return LocalCollection(name, unique_fields=unique_fields)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
