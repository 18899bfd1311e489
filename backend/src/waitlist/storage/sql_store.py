"""SQLAlchemy-backed document store."""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from waitlist.errors import StoreUnavailable
from waitlist.logging_config import get_logger
from waitlist.storage.db import Database
from waitlist.storage.models import Base, PendingReferral, ReferralCodeClaim, VerifiedUser
from waitlist.storage.store import (
    PENDING_REFERRALS,
    REFERRAL_CODES,
    USERS,
    Document,
    DocumentStore,
    key_field,
)

logger = get_logger(__name__)

MODELS: dict[str, type[Base]] = {
    USERS: VerifiedUser,
    PENDING_REFERRALS: PendingReferral,
    REFERRAL_CODES: ReferralCodeClaim,
}

# Dialects with a native INSERT ... ON CONFLICT DO NOTHING
_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _model(collection: str) -> type[Base]:
    try:
        return MODELS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None


def _column(model: type[Base], field: str):
    if field not in model.__table__.columns:
        raise ValueError(f"Unknown field for {model.__tablename__}: {field}")
    return getattr(model, field)


def _to_document(row: Base | None) -> Document | None:
    if row is None:
        return None
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


class SessionDocumentStore(DocumentStore):
    """Store operations bound to one open session.

    Nothing is committed here; the owner of the session decides.
    """

    def __init__(self, session: Session, dialect: str):
        self.session = session
        self.dialect = dialect

    def get(self, collection: str, key: str) -> Document | None:
        return _to_document(self.session.get(_model(collection), key))

    def query(self, collection: str, field: str, value: Any, limit: int = 1) -> list[Document]:
        model = _model(collection)
        stmt = select(model).where(_column(model, field) == value).limit(limit)
        return [_to_document(row) for row in self.session.scalars(stmt)]

    def set(self, collection: str, key: str, fields: Document) -> None:
        model = _model(collection)
        row = self.session.get(model, key)
        if row is None:
            row = model(**{key_field(collection): key, **fields})
            self.session.add(row)
        else:
            for field, value in fields.items():
                _column(model, field)
                setattr(row, field, value)
        self.session.flush()

    def update(self, collection: str, key: str, fields: Document) -> bool:
        model = _model(collection)
        pk = _column(model, key_field(collection))
        for field in fields:
            _column(model, field)
        result = self.session.execute(
            update(model)
            .where(pk == key)
            .values(**fields)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1

    def delete(self, collection: str, key: str) -> bool:
        model = _model(collection)
        pk = _column(model, key_field(collection))
        result = self.session.execute(
            delete(model).where(pk == key).execution_options(synchronize_session="evaluate")
        )
        return result.rowcount > 0

    def increment(self, collection: str, key: str, field: str, delta: int = 1) -> bool:
        model = _model(collection)
        pk = _column(model, key_field(collection))
        column = _column(model, field)
        result = self.session.execute(
            update(model)
            .where(pk == key)
            .values({field: column + delta})
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount == 1

    def create_if_absent(self, collection: str, key: str, fields: Document) -> bool:
        model = _model(collection)
        pk_name = key_field(collection)
        values = {pk_name: key, **fields}

        insert = _UPSERT_DIALECTS.get(self.dialect)
        if insert is not None:
            # Only a key conflict means "already there"; other unique violations still raise
            stmt = insert(model.__table__).values(**values).on_conflict_do_nothing(index_elements=[pk_name])
            result = self.session.execute(stmt)
            return result.rowcount == 1

        try:
            with self.session.begin_nested():
                self.session.add(model(**values))
        except IntegrityError:
            if self.session.get(model, key) is None:
                raise
            return False
        return True

    def top(self, collection: str, field: str, limit: int) -> list[Document]:
        model = _model(collection)
        stmt = (
            select(model)
            .order_by(_column(model, field).desc(), model.created_at.asc())
            .limit(limit)
        )
        return [_to_document(row) for row in self.session.scalars(stmt)]

    def count(self, collection: str) -> int:
        model = _model(collection)
        return self.session.scalar(select(func.count()).select_from(model)) or 0

    @contextmanager
    def transaction(self) -> Generator[DocumentStore, None, None]:
        # Already inside the owner's transaction
        yield self


class SqlDocumentStore(DocumentStore):
    """Document store over a relational database.

    Every call runs in its own session; ``transaction()`` shares one session
    across calls and commits once at the end.
    """

    def __init__(self, database: Database):
        self.database = database

    def setup(self) -> None:
        self.database.create_tables()

    @contextmanager
    def transaction(self) -> Generator[DocumentStore, None, None]:
        try:
            with self.database.session() as session:
                yield SessionDocumentStore(session, self.database.dialect)
        except SQLAlchemyError as e:
            logger.error("store_call_failed", error=str(e))
            raise StoreUnavailable(str(e)) from e

    def get(self, collection: str, key: str) -> Document | None:
        with self.transaction() as tx:
            return tx.get(collection, key)

    def query(self, collection: str, field: str, value: Any, limit: int = 1) -> list[Document]:
        with self.transaction() as tx:
            return tx.query(collection, field, value, limit)

    def set(self, collection: str, key: str, fields: Document) -> None:
        with self.transaction() as tx:
            tx.set(collection, key, fields)

    def update(self, collection: str, key: str, fields: Document) -> bool:
        with self.transaction() as tx:
            return tx.update(collection, key, fields)

    def delete(self, collection: str, key: str) -> bool:
        with self.transaction() as tx:
            return tx.delete(collection, key)

    def increment(self, collection: str, key: str, field: str, delta: int = 1) -> bool:
        with self.transaction() as tx:
            return tx.increment(collection, key, field, delta)

    def create_if_absent(self, collection: str, key: str, fields: Document) -> bool:
        with self.transaction() as tx:
            return tx.create_if_absent(collection, key, fields)

    def top(self, collection: str, field: str, limit: int) -> list[Document]:
        with self.transaction() as tx:
            return tx.top(collection, field, limit)

    def count(self, collection: str) -> int:
        with self.transaction() as tx:
            return tx.count(collection)
