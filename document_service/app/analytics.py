from datetime import date, timedelta
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import case, func
from sqlalchemy.orm import Query as OrmQuery
from sqlalchemy.orm import Session

from . import config, models, schemas
from .access import scoped_documents
from .auth import get_current_user
from .database import get_db
from .documents import serialize_document
from .lifecycle import DocumentStatus, DocumentType, get_today, status_clause

router = APIRouter(prefix="/analytics", tags=["analytics"])


def count_by_status(query: OrmQuery, today: date, window_days: int) -> Dict[DocumentStatus, int]:
    """Count every status in one pass, using the same predicates as the list filter."""
    columns = [
        func.coalesce(func.sum(case((status_clause(status, today, window_days), 1), else_=0)), 0)
        for status in DocumentStatus
    ]
    row = query.with_entities(*columns).one()
    return {status: int(count) for status, count in zip(DocumentStatus, row)}


def count_by_type(query: OrmQuery) -> Dict[str, int]:
    counts = {doc_type.value: 0 for doc_type in DocumentType}
    rows = (
        query.with_entities(models.Document.document_type, func.count(models.Document.id))
        .group_by(models.Document.document_type)
        .all()
    )
    for doc_type, count in rows:
        counts[doc_type] = count
    return counts


def expiring_documents(query: OrmQuery, today: date, days: int):
    horizon = today + timedelta(days=days)
    return (
        query.filter(
            models.Document.status_override.is_(None),
            models.Document.expiry_date >= today,
            models.Document.expiry_date <= horizon,
        )
        .order_by(models.Document.expiry_date.asc(), models.Document.id.asc())
        .all()
    )


# GET /analytics/dashboard
@router.get("/dashboard", response_model=schemas.DashboardResponse)
def dashboard(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    counts = count_by_status(scoped_documents(db, current_user), today, config.EXPIRING_SOON_DAYS)
    return schemas.DashboardResponse(analytics=schemas.DashboardSummary(
        total_documents=sum(counts.values()),
        active=counts[DocumentStatus.ACTIVE],
        expiring_soon=counts[DocumentStatus.EXPIRING_SOON],
        expired=counts[DocumentStatus.EXPIRED],
        renewed=counts[DocumentStatus.RENEWED],
    ))


# GET /analytics/expiring?days=30
@router.get("/expiring", response_model=schemas.ExpiringResponse)
def expiring(
    days: Optional[int] = Query(None, ge=1, le=365),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    days = days or config.EXPIRING_SOON_DAYS
    docs = expiring_documents(scoped_documents(db, current_user), today, days)
    return schemas.ExpiringResponse(
        days=days,
        count=len(docs),
        documents=[serialize_document(doc, today) for doc in docs],
    )


# GET /analytics/stats
@router.get("/stats", response_model=schemas.StatsResponse)
def stats(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    query = scoped_documents(db, current_user)
    by_status = count_by_status(query, today, config.EXPIRING_SOON_DAYS)
    return schemas.StatsResponse(stats=schemas.StatsSummary(
        total=sum(by_status.values()),
        by_type=count_by_type(query),
        by_status={status.value: count for status, count in by_status.items()},
    ))
