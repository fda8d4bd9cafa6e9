"""
Pydantic schemas for the Pasokari FastAPI backend.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class ContactRequest(BaseModel):
    # Presence is checked by the route so missing fields get the 400 envelope
    # instead of FastAPI's 422.
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None


class MessageResponse(BaseModel):
    success: bool
    message: str


class LocalizedProducts(BaseModel):
    id: list[str]
    en: list[str]
