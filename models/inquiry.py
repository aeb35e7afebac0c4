"""
Inquiry record and the reference type quotations use to point at it.

A quotation's ``inquiry_ref`` has historically been stored in two shapes:
the inquiry's identifier, or its human-readable inquiry number. InquiryRef
tags the raw value once so lookups never need two parallel code paths.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import JSON, DateTime, Float, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, generate_record_number, is_identifier, new_identifier, utcnow


class Inquiry(Base):
    """Originating customer request; its parts are the pricing fallback."""

    __tablename__ = "inquiries"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_identifier)
    inquiry_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")
    customer_name: Mapped[str] = mapped_column(String(200), default="")
    parts: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, default=list)
    total_amount: Mapped[float] = mapped_column(Float, default=0.0)
    currency: Mapped[str] = mapped_column(String(8), default="USD")
    delivery_address: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    special_instructions: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Inquiry {self.inquiry_number} id={self.id}>"


@event.listens_for(Inquiry, "before_insert")
def _assign_inquiry_number(mapper, connection, target: Inquiry) -> None:
    if not target.inquiry_number:
        target.inquiry_number = generate_record_number("INQ")


class InquiryRefKind(Enum):
    """Which shape a stored inquiry reference has."""

    ID = "id"
    """Reference is the inquiry's identifier."""

    NUMBER = "number"
    """Reference is the human-readable inquiry number."""


@dataclass(frozen=True)
class InquiryRef:
    """
    Tagged inquiry reference.

    Built with InquiryRef.parse(), which asks one question: is this value a
    valid identifier? If yes it is looked up by id, otherwise by number.
    """

    kind: InquiryRefKind
    value: str

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["InquiryRef"]:
        if raw is None:
            return None
        raw = str(raw).strip()
        if not raw:
            return None
        if is_identifier(raw):
            return cls(InquiryRefKind.ID, raw)
        return cls(InquiryRefKind.NUMBER, raw)

    @staticmethod
    def candidates(inquiry: Inquiry) -> Tuple[str, str]:
        """Every stored form that may refer to this inquiry."""
        return (inquiry.id, inquiry.inquiry_number)
