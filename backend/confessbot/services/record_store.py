"""
Record store: uniform document operations over the collection tables.

Every bot component reads and writes through this adapter; nothing else opens
a session. Documents are plain dicts keyed by column name.

CONCURRENCY:
- run_atomic_increment executes `col = col + n` in SQL before reading, so
  concurrent callers are serialized by the database row lock.
- mutate / array_append / array_remove are optimistic: read the row, compute
  the change, write it back only if `version` is unchanged, retry otherwise.
- compare_and_update is a single conditional UPDATE (guarded transitions).
"""
import copy
import logging
import operator
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from confessbot.core.exceptions import StoreConflictError
from confessbot.db.session import SessionLocal
from confessbot.models import (
    CommentThread,
    Confession,
    ConversationState,
    Cooldown,
    Counter,
    RateLimit,
    UserProfile,
)

logger = logging.getLogger(__name__)

COLLECTIONS = {
    "users": UserProfile,
    "confessions": Confession,
    "comments": CommentThread,
    "cooldowns": Cooldown,
    "rate_limits": RateLimit,
    "counters": Counter,
    "user_states": ConversationState,
}

_OPERATORS = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

Filter = Tuple[str, str, Any]
Filters = Union[Dict[str, Any], Sequence[Filter], None]


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, IntegrityError):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in ("locked", "deadlock", "could not serialize"))


class RecordStore:
    """Key-addressed document store backed by SQLAlchemy."""

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        max_retries: int = 8,
        retry_backoff: float = 0.01,
    ):
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _model(collection: str):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}")

    @staticmethod
    def _pk(model):
        return model.__mapper__.primary_key[0]

    @staticmethod
    def _check_fields(model, fields: Iterable[str]) -> None:
        columns = set(model.__table__.columns.keys())
        unknown = [name for name in fields if name not in columns]
        if unknown:
            raise ValueError(f"Unknown fields for {model.__tablename__}: {unknown}")

    def _where(self, model, filters: Filters) -> list:
        if not filters:
            return []
        if isinstance(filters, dict):
            filters = [(name, "==", value) for name, value in filters.items()]
        clauses = []
        for name, op, value in filters:
            column = getattr(model, name)
            if op == "in":
                clauses.append(column.in_(list(value)))
            elif value is None and op == "==":
                clauses.append(column.is_(None))
            elif value is None and op == "!=":
                clauses.append(column.is_not(None))
            elif op in _OPERATORS:
                clauses.append(_OPERATORS[op](column, value))
            else:
                raise ValueError(f"Unsupported filter operator: {op}")
        return clauses

    def _retry(self, attempt: int, what: str, exc: Exception) -> None:
        logger.info(f"[Store] conflict on {what} (attempt {attempt + 1}/{self.max_retries}): {exc}")
        time.sleep(self.retry_backoff * (attempt + 1))

    # ------------------------------------------------------------------
    # plain document operations
    # ------------------------------------------------------------------

    def get(self, collection: str, key: Any) -> Optional[dict]:
        model = self._model(collection)
        db: Session = self.session_factory()
        try:
            row = db.get(model, key)
            return row.to_document() if row is not None else None
        finally:
            db.close()

    def set(self, collection: str, key: Any, document: Dict[str, Any]) -> dict:
        """Create or overwrite the document stored under `key`."""
        model = self._model(collection)
        pk = self._pk(model)
        fields = {name: value for name, value in document.items() if name not in (pk.name, "version")}
        self._check_fields(model, fields)

        db: Session = self.session_factory()
        try:
            row = db.get(model, key)
            if row is None:
                row = model(**{pk.name: key}, **fields)
                db.add(row)
            else:
                for name, value in fields.items():
                    setattr(row, name, value)
                row.version = (row.version or 0) + 1
            db.commit()
            return row.to_document()
        except IntegrityError as exc:
            db.rollback()
            raise StoreConflictError(f"set {collection}/{key} conflicted: {exc}") from exc
        finally:
            db.close()

    def update(self, collection: str, key: Any, fields: Dict[str, Any]) -> bool:
        """Partial update. Returns False when no document exists under `key`."""
        return self.compare_and_update(collection, key, {}, fields)

    def compare_and_update(
        self,
        collection: str,
        key: Any,
        expected: Dict[str, Any],
        fields: Dict[str, Any],
    ) -> bool:
        """
        Apply `fields` only if every `expected` column still holds its value.

        Single UPDATE statement, so the precondition and the write are atomic.
        """
        model = self._model(collection)
        pk = self._pk(model)
        self._check_fields(model, list(fields) + list(expected))

        db: Session = self.session_factory()
        try:
            touched = (
                db.query(model)
                .filter(pk == key, *self._where(model, expected))
                .update({**fields, "version": model.version + 1}, synchronize_session=False)
            )
            db.commit()
            return touched == 1
        except IntegrityError as exc:
            db.rollback()
            raise StoreConflictError(f"update {collection}/{key} conflicted: {exc}") from exc
        finally:
            db.close()

    def delete(self, collection: str, key: Any, expected: Optional[Dict[str, Any]] = None) -> bool:
        """Delete the document, optionally only while `expected` columns still match."""
        model = self._model(collection)
        pk = self._pk(model)
        db: Session = self.session_factory()
        try:
            removed = (
                db.query(model)
                .filter(pk == key, *self._where(model, expected))
                .delete(synchronize_session=False)
            )
            db.commit()
            return removed == 1
        finally:
            db.close()

    def query(
        self,
        collection: str,
        filters: Filters = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        model = self._model(collection)
        db: Session = self.session_factory()
        try:
            q = db.query(model).filter(*self._where(model, filters))
            if order_by:
                column = getattr(model, order_by)
                q = q.order_by(column.desc() if descending else column.asc())
            if limit is not None:
                q = q.limit(limit)
            return [row.to_document() for row in q.all()]
        finally:
            db.close()

    def count(self, collection: str, filters: Filters = None) -> int:
        model = self._model(collection)
        db: Session = self.session_factory()
        try:
            return db.query(model).filter(*self._where(model, filters)).count()
        finally:
            db.close()

    def total(self, collection: str, field: str, filters: Filters = None) -> int:
        """SUM of a numeric column over the matching documents."""
        model = self._model(collection)
        self._check_fields(model, [field])
        db: Session = self.session_factory()
        try:
            value = db.query(func.sum(getattr(model, field))).filter(*self._where(model, filters)).scalar()
            return int(value or 0)
        finally:
            db.close()

    # ------------------------------------------------------------------
    # atomic primitives
    # ------------------------------------------------------------------

    def run_atomic_increment(
        self,
        collection: str,
        key: Any,
        field: str,
        amount: int = 1,
        create_missing: bool = False,
    ) -> Optional[int]:
        """
        Increment `field` and return the new value.

        A missing document yields None, or, with `create_missing`, is created
        holding `amount` (a fresh counter therefore starts at 1).
        """
        model = self._model(collection)
        pk = self._pk(model)
        self._check_fields(model, [field])
        column = getattr(model, field)

        for attempt in range(self.max_retries):
            db: Session = self.session_factory()
            try:
                touched = (
                    db.query(model)
                    .filter(pk == key)
                    .update({field: column + amount, "version": model.version + 1}, synchronize_session=False)
                )
                if touched == 0:
                    if not create_missing:
                        db.rollback()
                        return None
                    db.add(model(**{pk.name: key, field: amount}))
                    db.commit()
                    return amount
                value = db.query(column).filter(pk == key).scalar()
                db.commit()
                return value
            except (IntegrityError, OperationalError) as exc:
                db.rollback()
                if not _is_transient(exc):
                    raise
                self._retry(attempt, f"increment {collection}/{key}.{field}", exc)
            finally:
                db.close()

        raise StoreConflictError(f"increment {collection}/{key}.{field} gave up after {self.max_retries} attempts")

    def mutate(
        self,
        collection: str,
        key: Any,
        change: Callable[[dict], Dict[str, Any]],
        default: Optional[Dict[str, Any]] = None,
    ) -> Optional[dict]:
        """
        Optimistic read-modify-write.

        `change` receives a private copy of the current document (or of
        `default` when the row is missing) and returns the fields to write.
        An empty result means "nothing to do". The write only lands if the
        row version is unchanged since the read; otherwise it is retried.
        Returns the resulting document, or None when the row is missing and
        no default was supplied.
        """
        model = self._model(collection)
        pk = self._pk(model)

        for attempt in range(self.max_retries):
            db: Session = self.session_factory()
            try:
                row = db.get(model, key)
                if row is None:
                    if default is None:
                        return None
                    document = copy.deepcopy(default)
                    changes = change(copy.deepcopy(document))
                    fields = {**document, **(changes or {})}
                    self._check_fields(model, fields)
                    db.add(model(**{pk.name: key}, **fields))
                    db.commit()
                    return db.get(model, key).to_document()

                document = row.to_document()
                changes = change(copy.deepcopy(document))
                if not changes:
                    return document
                self._check_fields(model, changes)
                touched = (
                    db.query(model)
                    .filter(pk == key, model.version == document["version"])
                    .update({**changes, "version": document["version"] + 1}, synchronize_session=False)
                )
                if touched == 1:
                    db.commit()
                    document.update(changes)
                    document["version"] += 1
                    return document
                db.rollback()
                self._retry(attempt, f"mutate {collection}/{key}", RuntimeError("version moved"))
            except (IntegrityError, OperationalError) as exc:
                db.rollback()
                if not _is_transient(exc):
                    raise
                self._retry(attempt, f"mutate {collection}/{key}", exc)
            finally:
                db.close()

        raise StoreConflictError(f"mutate {collection}/{key} gave up after {self.max_retries} attempts")

    def array_append(
        self,
        collection: str,
        key: Any,
        field: str,
        value: Any,
        unique: bool = False,
        keep: Optional[Callable[[Any], bool]] = None,
        create_missing: bool = False,
    ) -> bool:
        """
        Append `value` to a JSON list column.

        `unique` gives set semantics (no duplicate entries); `keep` prunes the
        existing entries before appending. Returns True if `value` was added.
        """
        outcome = {"added": False}

        def _append(document: dict) -> Dict[str, Any]:
            outcome["added"] = False
            items = list(document.get(field) or [])
            pruned = [item for item in items if keep(item)] if keep else items
            if unique and value in pruned:
                return {field: pruned} if len(pruned) != len(items) else {}
            outcome["added"] = True
            return {field: pruned + [value]}

        result = self.mutate(collection, key, _append, default={} if create_missing else None)
        # retries re-run _append, so the flag reflects the attempt that landed
        return result is not None and outcome["added"]

    def array_remove(self, collection: str, key: Any, field: str, value: Any) -> bool:
        """Remove every occurrence of `value`. Returns True if anything was removed."""
        outcome = {"removed": False}

        def _remove(document: dict) -> Dict[str, Any]:
            outcome["removed"] = False
            items = list(document.get(field) or [])
            kept = [item for item in items if item != value]
            if len(kept) == len(items):
                return {}
            outcome["removed"] = True
            return {field: kept}

        result = self.mutate(collection, key, _remove)
        return result is not None and outcome["removed"]
