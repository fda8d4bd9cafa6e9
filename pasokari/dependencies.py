"""
Dependency wiring for the FastAPI app.

Services are built once per application and kept on ``app.state`` so route
handlers receive them through ``Depends`` instead of module globals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from pasokari.config import Settings
from pasokari.db import (
    DocumentStore,
    InMemoryDocumentStore,
    MongoDocumentStore,
    SqlDocumentStore,
)
from pasokari.mailer import (
    InMemoryTransport,
    MailTransport,
    Notifier,
    ResendTransport,
    SmtpTransport,
)

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: DocumentStore
    notifier: Notifier


def build_store(settings: Settings) -> DocumentStore:
    if settings.use_in_memory_backends:
        return InMemoryDocumentStore()
    if settings.mongo_uri:
        return MongoDocumentStore(
            settings.mongo_uri,
            db_name=settings.mongo_db_name,
            timeout_ms=settings.store_timeout_ms,
        )
    if settings.database_url:
        return SqlDocumentStore(
            settings.database_url, timeout_ms=settings.store_timeout_ms
        )
    logger.warning("No MONGO_URI or DATABASE_URL set; using in-memory store")
    return InMemoryDocumentStore()


def build_transport(settings: Settings) -> MailTransport:
    kind = settings.resolved_mail_transport()
    if kind == "resend":
        if not settings.resend_api_key:
            raise ValueError("RESEND_API_KEY is required for the resend transport")
        return ResendTransport(
            api_key=settings.resend_api_key,
            api_url=settings.resend_api_url,
            timeout=settings.mail_timeout_seconds,
        )
    if kind == "smtp":
        if not (settings.email_user and settings.email_pass):
            raise ValueError("EMAIL_USER and EMAIL_PASS are required for the smtp transport")
        return SmtpTransport(
            username=settings.email_user,
            password=settings.email_pass,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            timeout=settings.mail_timeout_seconds,
        )
    if not settings.use_in_memory_backends:
        logger.warning("No mail credentials configured; notifications are kept in memory")
    return InMemoryTransport()


def build_services(settings: Settings) -> Services:
    notifier = Notifier(
        build_transport(settings),
        sender=settings.sender_address,
        recipient=settings.recipient_address,
    )
    return Services(store=build_store(settings), notifier=notifier)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_store(request: Request) -> DocumentStore:
    return get_services(request).store


def get_notifier(request: Request) -> Notifier:
    return get_services(request).notifier
