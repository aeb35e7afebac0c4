"""
Artifact data models.

Value objects passed between the regeneration service, the document
builder and the routes. All are frozen so a rebuild thread can hand the
same instance to every waiting request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple


class ArtifactSource(Enum):
    """Where the served bytes came from."""

    EXISTING = "existing"
    """File was already in the artifact store."""

    REGENERATED = "regenerated"
    """File was rebuilt from the database record."""


@dataclass(frozen=True)
class PricingRow:
    """One line on the quotation document."""

    part_ref: str
    material: str
    thickness: str
    quantity: int
    price: float
    remarks: str = ""

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)


@dataclass(frozen=True)
class PricingView:
    """
    Flattened pricing input for the document builder.

    Derived from a quotation (and its inquiry when the quotation has no
    line items of its own).
    """

    parts: Tuple[PricingRow, ...]
    """Rows printed on the document."""

    total_amount: float
    """Quoted total, printed verbatim."""

    currency: str
    """Currency code, e.g. 'USD'."""

    valid_until: datetime
    """End of the quotation's validity."""

    terms: str
    """Commercial terms text."""

    quotation_number: str = ""
    """Human-readable quotation code."""

    customer: Dict[str, str] = field(default_factory=dict)
    """Customer contact block (name, company, email, phone)."""

    from_inquiry_parts: bool = False
    """True when rows fell back to the inquiry's part list."""


@dataclass(frozen=True)
class BuiltDocument:
    """Output of the document builder."""

    content: bytes
    filename: str
    page_count: int = 1


@dataclass(frozen=True)
class ServedArtifact:
    """
    Result of an artifact request.

    Thread Safety:
        Created once by the serving path or the rebuild thread and then
        only read, so every waiter may share it.
    """

    filename: str
    """Name the bytes are served under (may differ from the request)."""

    content: bytes
    """PDF payload."""

    source: ArtifactSource
    """Whether the file already existed or was rebuilt."""

    quotation_id: Optional[str] = None
    """Resolved record, None on the fast path."""

    @property
    def size(self) -> int:
        return len(self.content)
