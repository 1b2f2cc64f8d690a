"""
View state for the document tracker UI.

Each view owns the state one screen renders (filters, current page, form
fields, stat cards) and talks to the service through ``ApiClient``. The
dashboard owns the refresh signal: adding or deleting a document bumps it
and both the list and the stat cards re-fetch.
"""

import logging
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .api import ApiClient, ApiError

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = ["Contract", "License", "Certificate", "Insurance", "Lease", "Permit", "Other"]
STATUSES = ["Active", "Expiring Soon", "Expired", "Renewed"]

STATUS_STYLES = {
    "Active": {"background": "#D1FAE5", "color": "#065F46"},
    "Expiring Soon": {"background": "#FEF3C7", "color": "#92400E"},
    "Expired": {"background": "#FEE2E2", "color": "#991B1B"},
    "Renewed": {"background": "#DBEAFE", "color": "#1E40AF"},
}


def _as_date(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def format_date(value) -> str:
    d = _as_date(value)
    return f"{d:%b} {d.day}, {d.year}"


def days_until_expiry(expiry_date, today: date = None) -> int:
    return (_as_date(expiry_date) - (today or date.today())).days


class Notifier:
    """Collects the toasts a UI would show."""

    def __init__(self):
        self.messages: List[tuple] = []

    def success(self, message: str):
        logger.info(message)
        self.messages.append(("success", message))

    def error(self, message: str):
        logger.error(message)
        self.messages.append(("error", message))

    @property
    def last(self) -> Optional[tuple]:
        return self.messages[-1] if self.messages else None


@dataclass
class DocumentRow:
    id: str
    title: str
    document_type: str
    document_number: str
    issuer: str
    issue_date: str
    expiry_date: str
    days_until_expiry: int
    status: str
    status_style: Dict[str, str]
    file_name: Optional[str]
    owner: str


@dataclass
class StatCard:
    label: str
    value: int
    accent: str


class DocumentListView:
    def __init__(self, api: ApiClient, notifier: Notifier = None,
                 on_update: Callable[[], None] = None, page_size: int = 10):
        self.api = api
        self.notifier = notifier or Notifier()
        self.on_update = on_update
        self.page_size = page_size

        self.filters = {"status": "", "documentType": "", "search": ""}
        self.current_page = 1
        self.total_pages = 1
        self.total = 0
        self.documents: List[Dict[str, Any]] = []
        self.loading = False

    def fetch(self):
        self.loading = True
        try:
            data = self.api.documents.get_all(**self.filters, page=self.current_page, limit=self.page_size)
            self.documents = data["documents"]
            self.total_pages = data["pages"]
            self.total = data["total"]
        except ApiError as e:
            logger.warning(f"Document list fetch failed: {e.message}")
            self.notifier.error("Error loading documents")
        finally:
            self.loading = False

    # External refresh signal
    def refresh(self):
        self.fetch()

    def set_filter(self, name: str, value: str):
        if name not in self.filters:
            raise KeyError(f"Unknown filter: {name}")
        if self.filters[name] == value:
            return
        self.filters[name] = value
        self.current_page = 1
        self.fetch()

    def go_to_page(self, page: int):
        page = max(1, min(page, max(self.total_pages, 1)))
        if page == self.current_page:
            return
        self.current_page = page
        self.fetch()

    def next_page(self):
        self.go_to_page(self.current_page + 1)

    def previous_page(self):
        self.go_to_page(self.current_page - 1)

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    def delete(self, doc_id: str, confirm: Callable[[str], bool] = None) -> bool:
        if confirm is not None and not confirm("Are you sure you want to delete this document?"):
            return False
        try:
            self.api.documents.delete(doc_id)
        except ApiError:
            self.notifier.error("Error deleting document")
            return False

        self.notifier.success("Document deleted successfully")
        if self.on_update:
            self.on_update()
        return True

    def download(self, doc_id: str, dest_dir) -> Optional[Path]:
        try:
            content, filename = self.api.documents.download(doc_id)
        except ApiError:
            self.notifier.error("Error downloading file")
            return None

        target = Path(dest_dir) / Path(filename).name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        return target

    def rows(self, today: date = None) -> List[DocumentRow]:
        rows = []
        for doc in self.documents:
            owner = doc.get("uploadedBy") or {}
            rows.append(DocumentRow(
                id=doc["id"],
                title=doc["title"],
                document_type=doc["documentType"],
                document_number=doc.get("documentNumber") or "-",
                issuer=doc.get("issuer") or "-",
                issue_date=format_date(doc["issueDate"]),
                expiry_date=format_date(doc["expiryDate"]),
                days_until_expiry=days_until_expiry(doc["expiryDate"], today),
                status=doc["status"],
                status_style=STATUS_STYLES.get(doc["status"], {}),
                file_name=doc.get("fileName"),
                owner=owner.get("name", ""),
            ))
        return rows


class DocumentFormView:
    REQUIRED = {
        "title": "Title is required",
        "documentType": "Document type is required",
        "issueDate": "Valid issue date is required",
        "expiryDate": "Valid expiry date is required",
    }

    def __init__(self, api: ApiClient, notifier: Notifier = None,
                 on_success: Callable[[Dict[str, Any]], None] = None, on_cancel: Callable[[], None] = None):
        self.api = api
        self.notifier = notifier or Notifier()
        self.on_success = on_success
        self.on_cancel = on_cancel
        self.reset()

    def reset(self):
        self.fields = {
            "title": "",
            "documentType": "",
            "documentNumber": "",
            "issuer": "",
            "description": "",
            "issueDate": "",
            "expiryDate": "",
        }
        self.file_path: Optional[str] = None
        self.errors: Dict[str, str] = {}
        self.submitting = False

    def set_field(self, name: str, value: str):
        if name not in self.fields:
            raise KeyError(f"Unknown field: {name}")
        self.fields[name] = value
        self.errors.pop(name, None)

    def attach_file(self, path: Optional[str]):
        self.file_path = path

    def validate(self) -> Dict[str, str]:
        errors = {name: message for name, message in self.REQUIRED.items() if not str(self.fields[name]).strip()}
        if not errors and self.fields["expiryDate"] < self.fields["issueDate"]:
            errors["expiryDate"] = "Expiry date must be on or after the issue date"
        return errors

    def submit(self) -> Optional[Dict[str, Any]]:
        self.errors = self.validate()
        if self.errors:
            return None

        self.submitting = True
        try:
            fields = {name: value for name, value in self.fields.items() if value != ""}
            document = self.api.documents.create(fields, self.file_path)
        except ApiError as e:
            self.errors = {err["field"]: err["message"] for err in e.errors if "field" in err}
            self.notifier.error(e.message or "Error creating document")
            return None
        finally:
            self.submitting = False

        self.reset()
        if self.on_success:
            self.on_success(document)
        return document

    def cancel(self):
        self.reset()
        if self.on_cancel:
            self.on_cancel()


class AnalyticsView:
    def __init__(self, api: ApiClient, notifier: Notifier = None, days: int = None):
        self.api = api
        self.notifier = notifier or Notifier()
        self.days = days
        self.stats: Optional[Dict[str, Any]] = None
        self.expiring: List[Dict[str, Any]] = []

    def load(self):
        try:
            self.stats = self.api.analytics.stats()
            data = self.api.analytics.expiring(self.days)
            self.expiring = data["documents"]
            self.days = data["days"]
        except ApiError:
            self.notifier.error("Error loading analytics")


class DashboardView:
    TABS = ("documents", "analytics")

    def __init__(self, api: ApiClient, notifier: Notifier = None):
        self.api = api
        self.notifier = notifier or Notifier()
        self.active_tab = "documents"
        self.analytics: Optional[Dict[str, int]] = None
        self.show_form = False
        self.form: Optional[DocumentFormView] = None
        self.refresh_trigger = 0

        self.document_list = DocumentListView(api, self.notifier, on_update=self.trigger_refresh)
        self.analytics_view = AnalyticsView(api, self.notifier)

    def load(self):
        self.fetch_analytics()
        self.document_list.fetch()

    def fetch_analytics(self):
        try:
            self.analytics = self.api.analytics.dashboard()
        except ApiError:
            self.notifier.error("Error loading analytics")

    def trigger_refresh(self):
        self.refresh_trigger += 1
        self.fetch_analytics()
        self.document_list.refresh()
        if self.active_tab == "analytics":
            self.analytics_view.load()

    def stat_cards(self) -> List[StatCard]:
        data = self.analytics or {}
        return [
            StatCard("Total Documents", data.get("totalDocuments", 0), "#3B82F6"),
            StatCard("Expiring Soon", data.get("expiringSoon", 0), "#F59E0B"),
            StatCard("Expired", data.get("expired", 0), "#EF4444"),
            StatCard("Active", data.get("active", 0), "#10B981"),
        ]

    def select_tab(self, tab: str):
        if tab not in self.TABS:
            raise ValueError(f"Unknown tab: {tab}")
        self.active_tab = tab
        if tab == "analytics":
            self.analytics_view.load()

    def toggle_form(self):
        if self.show_form:
            self.close_form()
            return
        self.show_form = True
        self.form = DocumentFormView(
            self.api, self.notifier, on_success=self.handle_document_added, on_cancel=self.close_form
        )

    def close_form(self):
        self.show_form = False
        self.form = None

    def handle_document_added(self, document: Dict[str, Any]):
        self.close_form()
        self.trigger_refresh()
        self.notifier.success("Document added successfully!")
