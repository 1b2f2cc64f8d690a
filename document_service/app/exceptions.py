from fastapi import HTTPException
from typing import Any, Dict, List, Optional

class DocumentServiceException(HTTPException):
    """Base exception for document service errors"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str = None,
        details: Any = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code or f"DOCUMENT_{status_code}"
        self.details = details

class AuthenticationError(DocumentServiceException):
    """Authentication related errors"""

    def __init__(self, detail: str = "Not authorized, invalid or missing token"):
        super().__init__(
            status_code=401,
            detail=detail,
            error_code="AUTH_ERROR",
            headers={"WWW-Authenticate": "Bearer"}
        )

class AuthorizationError(DocumentServiceException):
    """Authorization related errors"""

    def __init__(self, detail: str = "Not authorized to access this document"):
        super().__init__(status_code=403, detail=detail, error_code="AUTHZ_ERROR")

class ValidationError(DocumentServiceException):
    """Input validation errors, one entry per offending field"""

    def __init__(self, errors: List[Dict[str, str]], detail: str = "Validation failed"):
        super().__init__(status_code=400, detail=detail, error_code="VALIDATION_ERROR", details=errors)

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls([{"field": field, "message": message}])

class DocumentNotFoundError(DocumentServiceException):
    """Document not found errors"""

    def __init__(self, doc_id: str):
        super().__init__(
            status_code=404,
            detail=f"Document '{doc_id}' not found",
            error_code="DOCUMENT_NOT_FOUND"
        )

class StoredFileNotFoundError(DocumentServiceException):
    """The record has no file, or the file is gone from storage"""

    def __init__(self, detail: str = "File not found"):
        super().__init__(status_code=404, detail=detail, error_code="FILE_NOT_FOUND")

class ConflictError(DocumentServiceException):
    """Concurrent modification of the same record"""

    def __init__(self, detail: str = "Document was modified by another request"):
        super().__init__(status_code=409, detail=detail, error_code="CONFLICT")

class PayloadTooLargeError(DocumentServiceException):
    """Upload exceeds the configured size limit"""

    def __init__(self, limit: int):
        super().__init__(
            status_code=413,
            detail=f"File too large, maximum size is {limit} bytes",
            error_code="PAYLOAD_TOO_LARGE"
        )

class UnsupportedMediaError(DocumentServiceException):
    """Rejected file type"""

    def __init__(self, detail: str = "Only PDF, DOC, DOCX, JPG, JPEG, and PNG files are allowed"):
        super().__init__(status_code=415, detail=detail, error_code="UNSUPPORTED_MEDIA")

class StorageError(DocumentServiceException):
    """File system or database operation failed"""

    def __init__(self, detail: str, cause: Exception = None):
        super().__init__(
            status_code=500,
            detail=detail,
            error_code="STORAGE_ERROR",
            details={"error": str(cause)} if cause is not None else None
        )

def field_errors(errors: List[Dict[str, Any]], messages: Optional[Dict[str, str]] = None) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into ``[{field, message}]``, one per field."""
    messages = messages or {}
    result = []
    seen = set()
    for err in errors:
        names = [part for part in err.get("loc", ()) if isinstance(part, str) and part not in ("body", "query", "path")]
        field = names[-1] if names else "__all__"
        if field in seen:
            continue
        seen.add(field)
        message = messages.get(field) or str(err.get("msg", "Invalid value")).replace("Value error, ", "")
        result.append({"field": field, "message": message})
    return result
