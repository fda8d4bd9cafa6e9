"""
HTTP routes for the Pasokari backend API.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from pasokari.db import DocumentStore, InquiryValidationError
from pasokari.dependencies import get_notifier, get_store
from pasokari.mailer import Notifier
from pasokari.schemas import ContactRequest, LocalizedProducts, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter()

MSG_INCOMPLETE = "Data tidak lengkap!"
MSG_SAVED = "Pesan berhasil disimpan!"
MSG_SERVER_ERROR = "Terjadi kesalahan server."
MSG_FETCH_FAILED = "Gagal mengambil data."
MSG_SEEDED = "Database berhasil diisi!"
MSG_SEED_FAILED = "Gagal seeding."


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=MessageResponse(success=False, message=message).model_dump(),
    )


@router.get("/", response_class=PlainTextResponse)
def read_root(notifier: Notifier = Depends(get_notifier)):
    return f"Halo! Server Backend Pasokari Siap ({notifier.transport.name} Version) 🚀"


@router.post("/api/contact", response_model=MessageResponse, status_code=201)
def submit_contact(
    background_tasks: BackgroundTasks,
    payload: Optional[ContactRequest] = None,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Persist a contact-form inquiry and schedule the notification email.

    The email goes out after the response is sent; its outcome never changes
    the response.
    """
    if payload is None or not (payload.name and payload.email and payload.message):
        return _failure(400, MSG_INCOMPLETE)

    try:
        inquiry = store.save_inquiry(
            payload.name, payload.phone, payload.email, payload.message
        )
    except InquiryValidationError as exc:
        logger.info("Rejected inquiry: %s", exc)
        return _failure(400, MSG_INCOMPLETE)
    except Exception:
        logger.exception("Failed to save inquiry")
        return _failure(500, MSG_SERVER_ERROR)

    logger.info("Inquiry from %s saved", inquiry.name)
    background_tasks.add_task(notifier.send_inquiry_notification, inquiry)
    return MessageResponse(success=True, message=MSG_SAVED)


@router.get("/api/products", response_model=dict[str, LocalizedProducts])
def list_products(store: DocumentStore = Depends(get_store)):
    try:
        return store.list_categories()
    except Exception:
        logger.exception("Failed to fetch products")
        return _failure(500, MSG_FETCH_FAILED)


@router.post("/api/products/seed", response_model=MessageResponse)
def seed_products(
    payload: Any = Body(...),
    store: DocumentStore = Depends(get_store),
):
    # TODO: gate behind an admin token once the site has one; this wipes the catalog.
    try:
        records = store.replace_categories(payload)
    except Exception:
        logger.exception("Product seeding failed")
        return _failure(500, MSG_SEED_FAILED)
    logger.info("Seeded %d product categories", len(records))
    return MessageResponse(success=True, message=MSG_SEEDED)


# Bodies FastAPI cannot parse never reach the handlers above; answer them with
# the same envelope the handler would have used.
_VALIDATION_FAILURES = {
    "/api/contact": (400, MSG_INCOMPLETE),
    "/api/products/seed": (500, MSG_SEED_FAILED),
}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        status_code, message = _VALIDATION_FAILURES.get(
            request.url.path, (400, MSG_INCOMPLETE)
        )
        logger.info("Rejected %s body: %s", request.url.path, exc.errors())
        return _failure(status_code, message)
