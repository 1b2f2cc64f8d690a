import math
import mimetypes
import os
from datetime import date
from typing import Optional

import pydantic
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from . import config, crud, models, schemas
from .access import get_owned_document, scoped_documents
from .auth import get_current_user
from .database import get_db
from .exceptions import StoredFileNotFoundError, ValidationError, field_errors
from .lifecycle import DocumentStatus, DocumentType, derive_status, get_today, override_for
from .logger import get_logger
from .storage import UploadHandler, get_upload_handler, has_file

logger = get_logger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])

FIELD_MESSAGES = {
    "title": "Title is required",
    "documentType": "Document type is required",
    "issueDate": "Valid issue date is required",
    "expiryDate": "Valid expiry date is required",
}


def serialize_document(doc: models.Document, today: date) -> schemas.DocumentResponse:
    owner = schemas.OwnerResponse.model_validate(doc.owner) if doc.owner is not None else None
    return schemas.DocumentResponse(
        id=doc.id,
        title=doc.title,
        document_type=doc.document_type,
        document_number=doc.document_number,
        issuer=doc.issuer,
        description=doc.description,
        issue_date=doc.issue_date,
        expiry_date=doc.expiry_date,
        status=derive_status(doc.expiry_date, doc.status_override, today, config.EXPIRING_SOON_DAYS),
        file_name=doc.file_name,
        file_size=doc.file_size,
        has_file=bool(doc.file_path),
        version=doc.version,
        uploaded_by=owner,
        created_at=doc.created_at,
        updated_at=doc.updated_at,
    )


def parse_form(model, values: dict):
    submitted = {key: value for key, value in values.items() if value is not None}
    try:
        return model.model_validate(submitted)
    except pydantic.ValidationError as e:
        raise ValidationError(field_errors(e.errors(), FIELD_MESSAGES))


def check_date_order(issue_date: date, expiry_date: date):
    if expiry_date < issue_date:
        raise ValidationError.for_field("expiryDate", "Expiry date must be on or after the issue date")


def parse_choice(enum_cls, value: Optional[str], field: str):
    """Empty query values mean "no filter"."""
    if value is None or not value.strip():
        return None
    try:
        return enum_cls(value.strip())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError.for_field(field, f"Must be one of: {allowed}")


# POST /documents
@router.post("", status_code=201, response_model=schemas.DocumentEnvelope)
def create_document(
    title: Optional[str] = Form(None),
    document_type: Optional[str] = Form(None, alias="documentType"),
    document_number: Optional[str] = Form(None, alias="documentNumber"),
    issuer: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    issue_date: Optional[str] = Form(None, alias="issueDate"),
    expiry_date: Optional[str] = Form(None, alias="expiryDate"),
    status: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    uploads: UploadHandler = Depends(get_upload_handler),
    today: date = Depends(get_today),
):
    stored = uploads.save(file) if has_file(file) else None

    with uploads.guard(stored):
        data = parse_form(schemas.DocumentCreate, {
            "title": title,
            "documentType": document_type,
            "documentNumber": document_number,
            "issuer": issuer,
            "description": description,
            "issueDate": issue_date,
            "expiryDate": expiry_date,
            "status": status,
        })
        check_date_order(data.issue_date, data.expiry_date)
        doc = crud.create_document(db, current_user.id, data, stored)

    logger.info(f"Document {doc.id} created by {current_user.email}")
    return schemas.DocumentEnvelope(document=serialize_document(doc, today))


# GET /documents?status=&documentType=&search=&sortBy=&page=&limit=
@router.get("", response_model=schemas.DocumentListResponse)
def list_documents(
    status: Optional[str] = Query(None),
    document_type: Optional[str] = Query(None, alias="documentType"),
    search: Optional[str] = Query(None),
    sort_by: str = Query("-expiryDate", alias="sortBy"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    limit = limit or config.DEFAULT_PAGE_SIZE
    if limit > config.MAX_PAGE_SIZE:
        raise ValidationError.for_field("limit", f"Page size cannot exceed {config.MAX_PAGE_SIZE}")

    query = crud.filter_documents(
        scoped_documents(db, current_user),
        today,
        config.EXPIRING_SOON_DAYS,
        status=parse_choice(DocumentStatus, status, "status"),
        document_type=parse_choice(DocumentType, document_type, "documentType"),
        search=search.strip() if search else None,
    )
    docs, total = crud.get_documents(query, sort_by or "-expiryDate", skip=(page - 1) * limit, limit=limit)

    return schemas.DocumentListResponse(
        count=len(docs),
        total=total,
        page=page,
        pages=math.ceil(total / limit),
        documents=[serialize_document(doc, today) for doc in docs],
    )


# GET /documents/download/{doc_id}
@router.get("/download/{doc_id}")
def download_document(
    document: models.Document = Depends(get_owned_document),
    uploads: UploadHandler = Depends(get_upload_handler),
):
    if not uploads.exists(document.file_path):
        raise StoredFileNotFoundError()

    filename = document.file_name or os.path.basename(document.file_path)
    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return FileResponse(document.file_path, filename=filename, media_type=media_type)


# GET /documents/{doc_id}
@router.get("/{doc_id}", response_model=schemas.DocumentEnvelope)
def read_document(
    document: models.Document = Depends(get_owned_document),
    today: date = Depends(get_today),
):
    return schemas.DocumentEnvelope(document=serialize_document(document, today))


# PUT /documents/{doc_id}
@router.put("/{doc_id}", response_model=schemas.DocumentEnvelope)
def update_document(
    title: Optional[str] = Form(None),
    document_type: Optional[str] = Form(None, alias="documentType"),
    document_number: Optional[str] = Form(None, alias="documentNumber"),
    issuer: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    issue_date: Optional[str] = Form(None, alias="issueDate"),
    expiry_date: Optional[str] = Form(None, alias="expiryDate"),
    status: Optional[str] = Form(None),
    version: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    document: models.Document = Depends(get_owned_document),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    uploads: UploadHandler = Depends(get_upload_handler),
    today: date = Depends(get_today),
):
    stored = uploads.save(file) if has_file(file) else None
    previous_path = document.file_path

    with uploads.guard(stored):
        data = parse_form(schemas.DocumentUpdate, {
            "title": title,
            "documentType": document_type,
            "documentNumber": document_number,
            "issuer": issuer,
            "description": description,
            "issueDate": issue_date,
            "expiryDate": expiry_date,
            "status": status,
            "version": version,
        })

        supplied = data.model_fields_set - {"version"}
        changes = data.model_dump(include=supplied)
        if "document_type" in changes:
            changes["document_type"] = changes["document_type"].value
        if "status" in changes:
            changes["status_override"] = override_for(changes.pop("status"))

        check_date_order(
            changes.get("issue_date", document.issue_date),
            changes.get("expiry_date", document.expiry_date),
        )
        doc = crud.update_document(db, document, changes, stored, expected_version=data.version)

    # The old file goes only once the record points at the new one
    if stored is not None and previous_path and previous_path != doc.file_path:
        uploads.discard(previous_path)

    logger.info(f"Document {doc.id} updated by {current_user.email}")
    return schemas.DocumentEnvelope(document=serialize_document(doc, today))


# DELETE /documents/{doc_id}
@router.delete("/{doc_id}", response_model=schemas.MessageResponse)
def delete_document(
    document: models.Document = Depends(get_owned_document),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    uploads: UploadHandler = Depends(get_upload_handler),
):
    doc_id, file_path = document.id, document.file_path
    crud.delete_document(db, document)
    uploads.discard(file_path)

    logger.info(f"Document {doc_id} deleted by {current_user.email}")
    return schemas.MessageResponse(message="Document deleted successfully")
