"""
Quotation record.

``artifact_pointer`` is the only column the artifact subsystem writes, and
only from the rebuild that owns the record at that moment.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Float, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, generate_record_number, new_identifier, utcnow


DEFAULT_TERMS = "Standard manufacturing terms apply. Payment required before production begins."


class QuotationStatus(Enum):
    """
    Workflow state of a quotation.

    Lifecycle:
        DRAFT -> CREATED | UPLOADED -> SENT -> (ACCEPTED -> ORDER_CREATED | REJECTED)
    """

    DRAFT = "draft"
    CREATED = "created"
    UPLOADED = "uploaded"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ORDER_CREATED = "order_created"


class Quotation(Base):
    """One priced response to an inquiry."""

    __tablename__ = "quotations"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_identifier)
    quotation_number: Mapped[Optional[str]] = mapped_column(String(32), unique=True, index=True)
    inquiry_ref: Mapped[str] = mapped_column(String(64), index=True)
    customer_info: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    items: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    total_amount: Mapped[float] = mapped_column(Float, default=0.0)
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    terms: Mapped[str] = mapped_column(Text, default=DEFAULT_TERMS)
    notes: Mapped[str] = mapped_column(Text, default="")
    artifact_pointer: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default=QuotationStatus.DRAFT.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Quotation {self.quotation_number} id={self.id} pdf={self.artifact_pointer}>"


@event.listens_for(Quotation, "before_insert")
def _assign_quotation_number(mapper, connection, target: Quotation) -> None:
    # Set once at creation; never regenerated afterwards.
    if not target.quotation_number:
        target.quotation_number = generate_record_number("QUO")
