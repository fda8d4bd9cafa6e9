"""
Document store abstraction for MongoDB, SQLAlchemy and an in-memory test implementation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError
from sqlalchemy import JSON, Column, DateTime, String, Text, create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

REQUIRED_INQUIRY_FIELDS = ("name", "phone", "email", "message")
LOCALES = ("id", "en")


class StoreError(Exception):
    """The store is unreachable or rejected a read/write."""


class BootstrapError(StoreError):
    """The store could not be reached while the process was starting."""


class InquiryValidationError(ValueError):
    """One or more required inquiry fields are missing or empty."""

    def __init__(self, missing: list[str]):
        super().__init__(f"missing required fields: {', '.join(missing)}")
        self.missing = missing


class DocumentStore(Protocol):
    """Interface for inquiry and category persistence."""

    def connect(self) -> None:
        ...

    def save_inquiry(
        self, name: str, phone: str, email: str, message: str
    ) -> "InquiryRecord":
        ...

    def list_inquiries(self) -> list["InquiryRecord"]:
        ...

    def list_categories(self) -> Dict[str, dict]:
        ...

    def replace_categories(self, raw_mapping: Any) -> list["CategoryRecord"]:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class InquiryRecord:
    name: str
    phone: str
    email: str
    message: str
    created_at: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "message": self.message,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, doc: dict) -> "InquiryRecord":
        created_at = doc["createdAt"]
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(
            name=doc["name"],
            phone=doc["phone"],
            email=doc["email"],
            message=doc["message"],
            created_at=created_at,
        )


@dataclass
class CategoryRecord:
    key: str
    id: list[str]
    en: list[str]

    def as_payload(self) -> dict:
        return {"id": list(self.id), "en": list(self.en)}

    def as_dict(self) -> dict:
        return {"key": self.key, **self.as_payload()}


def build_inquiry(
    name: Optional[str],
    phone: Optional[str],
    email: Optional[str],
    message: Optional[str],
) -> InquiryRecord:
    """Validate the required fields and return an unsaved record."""
    values = {"name": name, "phone": phone, "email": email, "message": message}
    missing = [
        key
        for key in REQUIRED_INQUIRY_FIELDS
        if not isinstance(values[key], str) or not values[key].strip()
    ]
    if missing:
        raise InquiryValidationError(missing)
    return InquiryRecord(name=name, phone=phone, email=email, message=message)


def parse_categories(raw_mapping: Any) -> list[CategoryRecord]:
    """
    Turn a seeding payload ``{key: {"id": [...], "en": [...]}}`` into records.

    Raises StoreError on any malformed entry so nothing is deleted for a bad
    payload.
    """
    if not isinstance(raw_mapping, dict):
        raise StoreError("category payload must be an object keyed by category")
    records: list[CategoryRecord] = []
    for key, entry in raw_mapping.items():
        if not isinstance(entry, dict):
            raise StoreError(f"category {key!r} must be an object")
        products = {}
        for locale in LOCALES:
            names = entry.get(locale)
            if not isinstance(names, list) or not all(
                isinstance(name, str) for name in names
            ):
                raise StoreError(
                    f"category {key!r} needs a list of strings under {locale!r}"
                )
            products[locale] = names
        records.append(CategoryRecord(key=key, id=products["id"], en=products["en"]))
    return records


class InMemoryDocumentStore:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self.inquiries: list[InquiryRecord] = []
        self.categories: Dict[str, CategoryRecord] = {}

    def connect(self) -> None:
        return None

    def save_inquiry(
        self, name: str, phone: str, email: str, message: str
    ) -> InquiryRecord:
        record = build_inquiry(name, phone, email, message)
        self.inquiries.append(record)
        return record

    def list_inquiries(self) -> list[InquiryRecord]:
        return list(self.inquiries)

    def list_categories(self) -> Dict[str, dict]:
        return {key: cat.as_payload() for key, cat in self.categories.items()}

    def replace_categories(self, raw_mapping: Any) -> list[CategoryRecord]:
        records = parse_categories(raw_mapping)
        self.categories.clear()
        for record in records:
            self.categories[record.key] = record
        return records

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.inquiries.clear()
        self.categories.clear()


class MongoDocumentStore:
    """
    pymongo-backed implementation.

    The client is created on first use, since ``MongoClient`` validates the URI
    and resolves ``mongodb+srv://`` records in its constructor. ``connect``
    forces a round trip so startup can report an unreachable server; until a
    client exists every request fails with StoreError and retries creation.
    """

    def __init__(
        self,
        uri: str,
        db_name: Optional[str] = None,
        timeout_ms: int = 5000,
    ):
        if not uri:
            raise ValueError("MONGO_URI is required for MongoDocumentStore")
        self.uri = uri
        self.db_name = db_name
        self.timeout_ms = timeout_ms
        self.client: Optional[MongoClient] = None
        self._database = None

    def _get_database(self):
        if self._database is None:
            try:
                client = MongoClient(
                    self.uri, serverSelectionTimeoutMS=self.timeout_ms, tz_aware=True
                )
                if self.db_name:
                    database = client.get_database(self.db_name)
                else:
                    database = client.get_default_database(default="pasokari")
            except PyMongoError as exc:
                raise StoreError(f"cannot create MongoDB client: {exc}") from exc
            self.client, self._database = client, database
        return self._database

    @property
    def inquiries(self):
        return self._get_database()["inquiries"]

    @property
    def categories(self):
        return self._get_database()["categories"]

    def connect(self) -> None:
        try:
            categories = self.categories
            self.client.admin.command("ping")
            categories.create_index("key", unique=True)
        except (StoreError, PyMongoError) as exc:
            raise BootstrapError(f"MongoDB unreachable: {exc}") from exc

    def save_inquiry(
        self, name: str, phone: str, email: str, message: str
    ) -> InquiryRecord:
        record = build_inquiry(name, phone, email, message)
        try:
            self.inquiries.insert_one(record.as_dict())
        except PyMongoError as exc:
            raise StoreError(f"failed to save inquiry: {exc}") from exc
        return record

    def list_inquiries(self) -> list[InquiryRecord]:
        try:
            docs = list(
                self.inquiries.find({}, {"_id": 0}).sort("createdAt", ASCENDING)
            )
        except PyMongoError as exc:
            raise StoreError(f"failed to list inquiries: {exc}") from exc
        return [InquiryRecord.from_dict(doc) for doc in docs]

    def list_categories(self) -> Dict[str, dict]:
        try:
            docs = list(self.categories.find({}, {"_id": 0}))
        except PyMongoError as exc:
            raise StoreError(f"failed to list categories: {exc}") from exc
        return {
            doc["key"]: {"id": doc.get("id") or [], "en": doc.get("en") or []}
            for doc in docs
        }

    def replace_categories(self, raw_mapping: Any) -> list[CategoryRecord]:
        records = parse_categories(raw_mapping)
        # Delete and insert are separate writes; a failed insert leaves the
        # collection empty.
        try:
            self.categories.delete_many({})
            if records:
                self.categories.insert_many([record.as_dict() for record in records])
        except PyMongoError as exc:
            raise StoreError(f"failed to replace categories: {exc}") from exc
        return records


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, timeout_ms: int = 5000):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDocumentStore")
        connect_args = {}
        if not database_url.startswith("sqlite"):
            connect_args["connect_timeout"] = max(1, timeout_ms // 1000)
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
            connect_args=connect_args,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )

    def connect(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise BootstrapError(f"database unreachable: {exc}") from exc

    def save_inquiry(
        self, name: str, phone: str, email: str, message: str
    ) -> InquiryRecord:
        record = build_inquiry(name, phone, email, message)
        try:
            with self.Session() as session:
                session.add(
                    InquiryRow(
                        id=uuid.uuid4().hex,
                        name=record.name,
                        phone=record.phone,
                        email=record.email,
                        message=record.message,
                        created_at=record.created_at,
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to save inquiry: {exc}") from exc
        return record

    def list_inquiries(self) -> list[InquiryRecord]:
        try:
            with self.Session() as session:
                rows = session.execute(
                    select(InquiryRow).order_by(InquiryRow.created_at.asc())
                ).scalars()
                return [
                    InquiryRecord.from_dict(
                        {
                            "name": row.name,
                            "phone": row.phone,
                            "email": row.email,
                            "message": row.message,
                            "createdAt": row.created_at,
                        }
                    )
                    for row in rows
                ]
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to list inquiries: {exc}") from exc

    def list_categories(self) -> Dict[str, dict]:
        try:
            with self.Session() as session:
                rows = session.execute(
                    select(CategoryRow).order_by(CategoryRow.key.asc())
                ).scalars()
                return {
                    row.key: {"id": row.products_id or [], "en": row.products_en or []}
                    for row in rows
                }
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to list categories: {exc}") from exc

    def replace_categories(self, raw_mapping: Any) -> list[CategoryRecord]:
        records = parse_categories(raw_mapping)
        try:
            with self.Session() as session:
                session.execute(delete(CategoryRow))
                session.add_all(
                    CategoryRow(key=r.key, products_id=r.id, products_en=r.en)
                    for r in records
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(f"failed to replace categories: {exc}") from exc
        return records


Base = declarative_base()


class InquiryRow(Base):
    __tablename__ = "inquiries"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    email = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)


class CategoryRow(Base):
    __tablename__ = "categories"

    key = Column(String, primary_key=True)
    products_id = Column("id", JSON, nullable=False)
    products_en = Column("en", JSON, nullable=False)
