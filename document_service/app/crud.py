from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.exc import StaleDataError

from . import models, schemas
from .exceptions import ConflictError, StorageError, ValidationError
from .lifecycle import DocumentStatus, DocumentType, override_for, status_clause
from .storage import StoredFile

# API sort keys -> columns
SORT_FIELDS = {
    "title": models.Document.title,
    "documentType": models.Document.document_type,
    "documentNumber": models.Document.document_number,
    "issuer": models.Document.issuer,
    "issueDate": models.Document.issue_date,
    "expiryDate": models.Document.expiry_date,
    "createdAt": models.Document.created_at,
    "updatedAt": models.Document.updated_at,
}


def _commit(db: Session, message: str):
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(message, e)


# ---- Users ----

def get_user(db: Session, user_id: str):
    return db.query(models.User).filter(models.User.id == user_id).first()

def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()

def create_user(db: Session, name: str, email: str, password_hash: str, role: str = "user", department: str = None):
    db_user = models.User(name=name, email=email, password_hash=password_hash, role=role, department=department)
    db.add(db_user)
    _commit(db, "Error creating user")
    db.refresh(db_user)
    return db_user

def list_users(db: Session):
    return db.query(models.User).order_by(models.User.created_at.desc(), models.User.name).all()


# ---- Documents ----

def get_document(db: Session, doc_id: str):
    return db.query(models.Document).filter(models.Document.id == doc_id).first()


def create_document(db: Session, owner_id: str, data: schemas.DocumentCreate, stored: Optional[StoredFile] = None):
    db_doc = models.Document(
        title=data.title,
        document_type=data.document_type.value,
        document_number=data.document_number,
        issuer=data.issuer,
        description=data.description,
        issue_date=data.issue_date,
        expiry_date=data.expiry_date,
        status_override=override_for(data.status),
        uploaded_by=owner_id,
    )
    if stored is not None:
        db_doc.file_path = stored.path
        db_doc.file_name = stored.original_name
        db_doc.file_size = stored.size
    db.add(db_doc)
    _commit(db, "Error creating document")
    db.refresh(db_doc)
    return db_doc


def update_document(db: Session, db_doc: models.Document, changes: dict,
                    stored: Optional[StoredFile] = None, expected_version: Optional[int] = None):
    """Apply column ``changes`` (and a replacement file) to ``db_doc``.

    ``expected_version`` is the version the client last saw; a mismatch means
    someone else wrote in between. The mapper's version column catches the
    same race between load and flush.
    """
    if expected_version is not None and expected_version != db_doc.version:
        raise ConflictError(
            f"Document was modified by another request (version {db_doc.version}, expected {expected_version})"
        )
    for column, value in changes.items():
        setattr(db_doc, column, value)
    if stored is not None:
        db_doc.file_path = stored.path
        db_doc.file_name = stored.original_name
        db_doc.file_size = stored.size
    _commit(db, "Error updating document")
    db.refresh(db_doc)
    return db_doc


def delete_document(db: Session, db_doc: models.Document):
    db.delete(db_doc)
    _commit(db, "Error deleting document")


def parse_sort(sort_by: str) -> list:
    """Turn ``-expiryDate,title`` into ORDER BY clauses."""
    clauses = []
    for part in sort_by.replace(" ", ",").split(","):
        part = part.strip()
        if not part:
            continue
        descending = part.startswith("-")
        name = part.lstrip("+-")
        column = SORT_FIELDS.get(name)
        if column is None:
            raise ValidationError.for_field("sortBy", f"Cannot sort by '{name}'")
        clauses.append(column.desc() if descending else column.asc())
    # Stable pages for equal sort keys
    clauses.append(models.Document.id.asc())
    return clauses


def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def filter_documents(query: Query, today: date, window_days: int, status: Optional[DocumentStatus] = None,
                     document_type: Optional[DocumentType] = None, search: Optional[str] = None) -> Query:
    if status is not None:
        query = query.filter(status_clause(status, today, window_days))
    if document_type is not None:
        query = query.filter(models.Document.document_type == document_type.value)
    if search:
        pattern = _like(search)
        query = query.filter(or_(
            models.Document.title.ilike(pattern, escape="\\"),
            models.Document.document_number.ilike(pattern, escape="\\"),
            models.Document.issuer.ilike(pattern, escape="\\"),
        ))
    return query


def get_documents(query: Query, sort_by: str, skip: int = 0, limit: int = 10) -> Tuple[List[models.Document], int]:
    """Page through an already scoped and filtered query."""
    order = parse_sort(sort_by)
    total = query.order_by(None).count()
    docs = query.order_by(*order).offset(skip).limit(limit).all()
    return docs, total
