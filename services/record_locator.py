"""
Record locator: map an artifact filename to its Quotation.

Quotation PDF names have changed shape several times, and the pointer
column on the record has been rewritten along the way, so a filename is a
weak key. The locator tries a fixed cascade of matchers and stops at the
first hit:

    1. exact      - artifact_pointer == filename
    2. fuzzy      - stem of a quotation-shaped name appears in artifact_pointer
                    (case-insensitive); generic names never match
    3. inquiry    - quotation_<inquiryNumber>_<ts>: inquiry -> its quotation
    4. timestamp  - creation time near the <ts> embedded in the name
                    quotation-<ts>-<rand>  within +/- 5 s
                    quotation_<ref>_<ts>   within +/- 10 s

Every matcher is a plain function ``(session, filename) -> Quotation | None``.
Nothing here writes to the database.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import Inquiry, InquiryRef, InquiryRefKind, Quotation
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

# quotation-1700000000000-7421.pdf
RANDOM_SUFFIX_RE = re.compile(
    r"^quotation-(?P<ts>\d{10,13})-(?P<rand>[A-Za-z0-9]+)(?:\.pdf)?$", re.IGNORECASE
)
# quotation_INQ251019042_1700000000000.pdf
EMBEDDED_REF_RE = re.compile(
    r"^quotation_(?P<ref>.+)_(?P<ts>\d{10,13})(?:\.pdf)?$", re.IGNORECASE
)

RANDOM_SUFFIX_TOLERANCE = timedelta(seconds=5)
EMBEDDED_REF_TOLERANCE = timedelta(seconds=10)

Matcher = Callable[[Session, str], Optional[Quotation]]


@dataclass(frozen=True)
class LocatorMatch:
    """A resolved quotation and the matcher that found it."""

    quotation: Quotation
    strategy: str


# =============================================================================
# FILENAME PARSING
# =============================================================================

def _strip_extension(filename: str) -> str:
    if filename.lower().endswith(".pdf"):
        return filename[:-4]
    return filename


def parse_timestamp(raw: str) -> Optional[datetime]:
    """
    Parse an embedded epoch timestamp as a naive UTC datetime.

    Thirteen digits are milliseconds; ten or fewer are seconds.
    """
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    if len(raw) <= 10:
        value *= 1000
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    except (OverflowError, OSError, ValueError):
        return None


def parse_embedded_reference(filename: str) -> Optional[str]:
    """Inquiry token from ``quotation_<ref>_<ts>`` names, else None."""
    match = EMBEDDED_REF_RE.match(filename)
    return match.group("ref") if match else None


def parse_generation_time(filename: str) -> Optional[Tuple[datetime, timedelta]]:
    """
    Generation time embedded in the filename and the tolerance for it.

    Returns:
        (timestamp, tolerance) or None if the name carries no timestamp
    """
    match = RANDOM_SUFFIX_RE.match(filename)
    if match:
        ts = parse_timestamp(match.group("ts"))
        return (ts, RANDOM_SUFFIX_TOLERANCE) if ts else None

    match = EMBEDDED_REF_RE.match(filename)
    if match:
        ts = parse_timestamp(match.group("ts"))
        return (ts, EMBEDDED_REF_TOLERANCE) if ts else None

    return None


# =============================================================================
# INQUIRY RESOLUTION
# =============================================================================

def find_inquiry(session: Session, ref: Optional[InquiryRef]) -> Optional[Inquiry]:
    """Look up an inquiry by a tagged reference."""
    if ref is None:
        return None

    if ref.kind is InquiryRefKind.ID:
        inquiry = session.get(Inquiry, ref.value)
        if inquiry is not None:
            return inquiry

    return session.scalars(
        select(Inquiry).where(Inquiry.inquiry_number == ref.value)
    ).first()


def resolve_inquiry(session: Session, quotation: Quotation) -> Optional[Inquiry]:
    """Inquiry a quotation was priced for, whichever form its ref is stored in."""
    return find_inquiry(session, InquiryRef.parse(quotation.inquiry_ref))


# =============================================================================
# MATCHERS
# =============================================================================

def match_exact_pointer(session: Session, filename: str) -> Optional[Quotation]:
    return session.scalars(
        select(Quotation).where(Quotation.artifact_pointer == filename)
    ).first()


def match_fuzzy_pointer(session: Session, filename: str) -> Optional[Quotation]:
    # Only names with a quotation shape; "q.pdf" must not hit any pointer containing "q"
    stem = _strip_extension(filename).strip()
    if not (RANDOM_SUFFIX_RE.match(stem) or EMBEDDED_REF_RE.match(stem)):
        return None

    return session.scalars(
        select(Quotation)
        .where(Quotation.artifact_pointer.is_not(None))
        .where(func.lower(Quotation.artifact_pointer).contains(stem.lower(), autoescape=True))
        .order_by(Quotation.created_at.desc())
    ).first()


def match_embedded_inquiry(session: Session, filename: str) -> Optional[Quotation]:
    token = parse_embedded_reference(filename)
    if not token:
        return None

    inquiry = find_inquiry(session, InquiryRef.parse(token))
    if inquiry is None:
        return None

    return session.scalars(
        select(Quotation)
        .where(Quotation.inquiry_ref.in_(InquiryRef.candidates(inquiry)))
        .order_by(Quotation.created_at.desc())
    ).first()


def match_creation_window(session: Session, filename: str) -> Optional[Quotation]:
    parsed = parse_generation_time(filename)
    if parsed is None:
        return None

    generated_at, tolerance = parsed
    return session.scalars(
        select(Quotation)
        .where(Quotation.created_at >= generated_at - tolerance)
        .where(Quotation.created_at <= generated_at + tolerance)
        .order_by(Quotation.created_at.desc())
    ).first()


DEFAULT_MATCHERS: Tuple[Tuple[str, Matcher], ...] = (
    ("exact", match_exact_pointer),
    ("fuzzy", match_fuzzy_pointer),
    ("inquiry", match_embedded_inquiry),
    ("timestamp", match_creation_window),
)


# =============================================================================
# LOCATOR
# =============================================================================

class RecordLocator:
    """
    Ordered cascade of matchers.

    The order is the tie-break: when two matchers would pick different
    records, the earlier one wins.
    """

    def __init__(self, matchers: Sequence[Tuple[str, Matcher]] = DEFAULT_MATCHERS):
        self._matchers = tuple(matchers)

    @property
    def strategies(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self._matchers)

    def locate(self, session: Session, filename: str) -> Optional[LocatorMatch]:
        """
        Resolve a filename to a quotation.

        Returns:
            LocatorMatch, or None if no matcher succeeds
        """
        for name, matcher in self._matchers:
            quotation = matcher(session, filename)
            if quotation is not None:
                logger.info(
                    f"Resolved {filename} -> quotation {quotation.quotation_number} "
                    f"via '{name}' match"
                )
                return LocatorMatch(quotation=quotation, strategy=name)
            logger.debug(f"'{name}' match found nothing for {filename}")

        logger.warning(f"No quotation resolves for {filename}")
        return None

