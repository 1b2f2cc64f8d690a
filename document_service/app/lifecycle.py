"""
Document lifecycle: the type enumeration and status derivation.

The stored record only keeps an explicit status override (``Renewed``).
Every other status is derived from the expiry date relative to "today",
both when a record is serialized and when the list/analytics queries
filter or count by status, so the two can never disagree.
"""

from datetime import date, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy import and_

from . import models


class DocumentType(str, Enum):
    CONTRACT = "Contract"
    LICENSE = "License"
    CERTIFICATE = "Certificate"
    INSURANCE = "Insurance"
    LEASE = "Lease"
    PERMIT = "Permit"
    OTHER = "Other"


class DocumentStatus(str, Enum):
    ACTIVE = "Active"
    EXPIRING_SOON = "Expiring Soon"
    EXPIRED = "Expired"
    RENEWED = "Renewed"


# Statuses a client may set explicitly
EXPLICIT_STATUSES = {DocumentStatus.RENEWED}


def override_for(status: Optional[DocumentStatus]) -> Optional[str]:
    """Map a submitted status to the stored override (None clears it)."""
    if status in EXPLICIT_STATUSES:
        return status.value
    return None


def derive_status(expiry_date: date, override: Optional[str], today: date, window_days: int) -> DocumentStatus:
    if override == DocumentStatus.RENEWED.value:
        return DocumentStatus.RENEWED
    if expiry_date < today:
        return DocumentStatus.EXPIRED
    if expiry_date <= today + timedelta(days=window_days):
        return DocumentStatus.EXPIRING_SOON
    return DocumentStatus.ACTIVE


def status_clause(status: DocumentStatus, today: date, window_days: int):
    """SQL predicate selecting the documents whose derived status is ``status``."""
    doc = models.Document
    horizon = today + timedelta(days=window_days)
    not_overridden = doc.status_override.is_(None)

    if status == DocumentStatus.RENEWED:
        return doc.status_override == DocumentStatus.RENEWED.value
    if status == DocumentStatus.EXPIRED:
        return and_(not_overridden, doc.expiry_date < today)
    if status == DocumentStatus.EXPIRING_SOON:
        return and_(not_overridden, doc.expiry_date >= today, doc.expiry_date <= horizon)
    return and_(not_overridden, doc.expiry_date > horizon)


def get_today() -> date:
    return date.today()
