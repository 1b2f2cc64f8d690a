"""
HTTP client for the document service.

Mirrors the service layer of the browser UI: one ``ApiClient`` holding the
base URL and bearer token, with ``auth``, ``documents`` and ``analytics``
sub-clients. A 401 on a call that sent the token drops the stored session.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote

import requests

logger = logging.getLogger(__name__)

API_URL = os.getenv("DOCUMENT_API_URL", "http://localhost:8000/api")

# Content types the service accepts, keyed by extension
FILE_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or []


class SessionExpired(ApiError):
    """The token was rejected; the caller has to log in again."""


def _json(resp: requests.Response) -> Dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _filename_from(resp: requests.Response, fallback: str) -> str:
    disposition = resp.headers.get("content-disposition", "")
    match = re.search(r"filename\*=utf-8''([^;]+)", disposition, re.IGNORECASE)
    if match:
        return unquote(match.group(1))
    match = re.search(r'filename="?([^";]+)"?', disposition)
    return match.group(1) if match else fallback


class ApiClient:
    def __init__(self, base_url: str = None, token: str = None, session: requests.Session = None, timeout: float = 30):
        self.base_url = (base_url or API_URL).rstrip("/")
        self.token = token
        self.user: Optional[Dict[str, Any]] = None
        self.session = session or requests.Session()
        self.timeout = timeout

        self.auth = AuthAPI(self)
        self.documents = DocumentAPI(self)
        self.analytics = AnalyticsAPI(self)

    @property
    def authenticated(self) -> bool:
        return self.token is not None

    def clear_session(self):
        self.token = None
        self.user = None

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", None) or {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            resp = self.session.request(method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(0, f"Could not reach the document service: {e}")

        if resp.status_code == 401 and "Authorization" in headers:
            self.clear_session()
            raise SessionExpired(401, _json(resp).get("message") or "Session expired, please log in again")
        if not resp.ok:
            body = _json(resp)
            details = body.get("details")
            raise ApiError(
                resp.status_code,
                body.get("message") or resp.reason or "Request failed",
                details if isinstance(details, list) else None,
            )
        return resp


class AuthAPI:
    def __init__(self, client: ApiClient):
        self.client = client

    def _start_session(self, body: Dict[str, Any]) -> Dict[str, Any]:
        self.client.token = body["token"]
        self.client.user = body["user"]
        return body["user"]

    def register(self, name: str, email: str, password: str, department: str = None) -> Dict[str, Any]:
        payload = {"name": name, "email": email, "password": password}
        if department:
            payload["department"] = department
        return self._start_session(self.client.request("POST", "/auth/register", json=payload).json())

    def login(self, email: str, password: str) -> Dict[str, Any]:
        resp = self.client.request("POST", "/auth/login", json={"email": email, "password": password})
        return self._start_session(resp.json())

    def me(self) -> Dict[str, Any]:
        return self.client.request("GET", "/auth/me").json()["user"]

    def users(self) -> List[Dict[str, Any]]:
        return self.client.request("GET", "/auth/users").json()["users"]


class DocumentAPI:
    def __init__(self, client: ApiClient):
        self.client = client

    def _send(self, method: str, path: str, fields: Dict[str, Any], file_path: Optional[str]) -> Dict[str, Any]:
        data = {key: value for key, value in fields.items() if value is not None}
        if not file_path:
            return self.client.request(method, path, data=data).json()["document"]

        path_obj = Path(file_path)
        content_type = FILE_TYPES.get(path_obj.suffix.lower(), "application/octet-stream")
        with open(path_obj, "rb") as fh:
            files = {"file": (path_obj.name, fh, content_type)}
            return self.client.request(method, path, data=data, files=files).json()["document"]

    def get_all(self, **params) -> Dict[str, Any]:
        # Unset filters are sent as empty strings by the views; leave them off
        query = {key: value for key, value in params.items() if value not in (None, "")}
        return self.client.request("GET", "/documents", params=query).json()

    def get_by_id(self, doc_id: str) -> Dict[str, Any]:
        return self.client.request("GET", f"/documents/{doc_id}").json()["document"]

    def create(self, fields: Dict[str, Any], file_path: str = None) -> Dict[str, Any]:
        return self._send("POST", "/documents", fields, file_path)

    def update(self, doc_id: str, fields: Dict[str, Any], file_path: str = None) -> Dict[str, Any]:
        return self._send("PUT", f"/documents/{doc_id}", fields, file_path)

    def delete(self, doc_id: str) -> Dict[str, Any]:
        return self.client.request("DELETE", f"/documents/{doc_id}").json()

    def download(self, doc_id: str) -> Tuple[bytes, str]:
        resp = self.client.request("GET", f"/documents/download/{doc_id}")
        return resp.content, _filename_from(resp, fallback=doc_id)


class AnalyticsAPI:
    def __init__(self, client: ApiClient):
        self.client = client

    def dashboard(self) -> Dict[str, int]:
        return self.client.request("GET", "/analytics/dashboard").json()["analytics"]

    def expiring(self, days: int = None) -> Dict[str, Any]:
        params = {"days": days} if days else None
        return self.client.request("GET", "/analytics/expiring", params=params).json()

    def stats(self) -> Dict[str, Any]:
        return self.client.request("GET", "/analytics/stats").json()["stats"]
