from datetime import date, datetime
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .lifecycle import DocumentStatus, DocumentType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def blank_to_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


OptionalText = Annotated[Optional[str], BeforeValidator(blank_to_none)]
OptionalStatus = Annotated[Optional[DocumentStatus], BeforeValidator(blank_to_none)]


# ---- Users / auth ----

class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=6, max_length=128)
    department: OptionalText = None

    @field_validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator('email')
    def validate_email(cls, v):
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("Valid email is required")
        return v


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator('email')
    def normalize_email(cls, v):
        return v.strip().lower()


class OwnerResponse(CamelModel):
    id: str
    name: str
    email: str
    department: Optional[str] = None


class UserResponse(OwnerResponse):
    role: str
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    success: bool = True
    token: str
    user: UserResponse


class UserEnvelope(CamelModel):
    success: bool = True
    user: UserResponse


class UserListResponse(CamelModel):
    success: bool = True
    count: int
    users: List[UserResponse]


# ---- Documents ----

class DocumentCreate(CamelModel):
    title: str
    document_type: DocumentType
    document_number: OptionalText = None
    issuer: OptionalText = None
    description: OptionalText = None
    issue_date: date
    expiry_date: date
    status: OptionalStatus = None

    @field_validator('title')
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError("Title is required")
        return v.strip()


class DocumentUpdate(CamelModel):
    """Partial update; only fields present in ``model_fields_set`` are applied."""

    title: Optional[str] = None
    document_type: Optional[DocumentType] = None
    document_number: OptionalText = None
    issuer: OptionalText = None
    description: OptionalText = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    status: OptionalStatus = None
    version: Optional[int] = Field(None, ge=1)

    @field_validator('title')
    def validate_title(cls, v):
        if v is None or not v.strip():
            raise ValueError("Title is required")
        return v.strip()


class DocumentResponse(CamelModel):
    id: str
    title: str
    document_type: str
    document_number: Optional[str] = None
    issuer: Optional[str] = None
    description: Optional[str] = None
    issue_date: date
    expiry_date: date
    status: DocumentStatus
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    has_file: bool = False
    version: int
    uploaded_by: Optional[OwnerResponse] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DocumentEnvelope(CamelModel):
    success: bool = True
    document: DocumentResponse


class DocumentListResponse(CamelModel):
    success: bool = True
    count: int
    total: int
    page: int
    pages: int
    documents: List[DocumentResponse]


class MessageResponse(CamelModel):
    success: bool = True
    message: str


# ---- Analytics ----

class DashboardSummary(CamelModel):
    total_documents: int
    active: int
    expiring_soon: int
    expired: int
    renewed: int


class DashboardResponse(CamelModel):
    success: bool = True
    analytics: DashboardSummary


class ExpiringResponse(CamelModel):
    success: bool = True
    days: int
    count: int
    documents: List[DocumentResponse]


class StatsSummary(CamelModel):
    total: int
    by_type: Dict[str, int]
    by_status: Dict[str, int]


class StatsResponse(CamelModel):
    success: bool = True
    stats: StatsSummary
