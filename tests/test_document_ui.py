import json
from datetime import date
from unittest.mock import MagicMock

import pytest
import requests

from document_ui.app.api import ApiClient, ApiError, SessionExpired
from document_ui.app.views import (
    DashboardView,
    DocumentFormView,
    DocumentListView,
    Notifier,
    days_until_expiry,
    format_date,
)


def make_response(status=200, body=None, content=b"", headers=None):
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(body).encode() if body is not None else content
    resp.headers.update(headers or {})
    resp.reason = "OK" if status < 400 else "Error"
    return resp


def page(documents, total=None, pages=1, page_no=1):
    return {
        "success": True,
        "documents": documents,
        "count": len(documents),
        "total": len(documents) if total is None else total,
        "page": page_no,
        "pages": pages,
    }


DOC = {
    "id": "d1",
    "title": "Business License",
    "documentType": "License",
    "documentNumber": None,
    "issuer": "City",
    "issueDate": "2024-01-01",
    "expiryDate": "2024-01-10",
    "status": "Expired",
    "fileName": "license.pdf",
    "uploadedBy": {"id": "u1", "name": "Alice", "email": "alice@example.com"},
}


# ---- ApiClient ----

@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


def test_login_stores_token_and_sends_it(session):
    session.request.side_effect = [
        make_response(body={"success": True, "token": "tok", "user": {"name": "Alice"}}),
        make_response(body={"success": True, "user": {"name": "Alice"}}),
    ]
    client = ApiClient("http://api.test/api", session=session)

    client.auth.login("alice@example.com", "secret123")
    assert client.token == "tok"
    assert client.authenticated

    client.auth.me()
    method, url = session.request.call_args.args
    assert (method, url) == ("GET", "http://api.test/api/auth/me")
    assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"


def test_unauthorized_response_clears_session(session):
    session.request.return_value = make_response(401, {"message": "Not authorized, token expired"})
    client = ApiClient("http://api.test/api", token="stale", session=session)

    with pytest.raises(SessionExpired) as exc:
        client.documents.get_all()
    assert exc.value.message == "Not authorized, token expired"
    assert client.token is None


def test_validation_errors_are_exposed(session):
    errors = [{"field": "title", "message": "Title is required"}]
    session.request.return_value = make_response(
        400, {"success": False, "error_code": "VALIDATION_ERROR", "message": "Validation failed", "details": errors}
    )
    client = ApiClient("http://api.test/api", token="tok", session=session)

    with pytest.raises(ApiError) as exc:
        client.documents.create({"title": ""})
    assert exc.value.status_code == 400
    assert exc.value.errors == errors


def test_network_failure_becomes_api_error(session):
    session.request.side_effect = requests.ConnectionError("refused")
    client = ApiClient("http://api.test/api", token="tok", session=session)

    with pytest.raises(ApiError) as exc:
        client.analytics.dashboard()
    assert exc.value.status_code == 0


def test_get_all_drops_empty_filters(session):
    session.request.return_value = make_response(body=page([]))
    client = ApiClient("http://api.test/api", token="tok", session=session)

    client.documents.get_all(status="", documentType="Lease", search=None, page=2, limit=10)
    assert session.request.call_args.kwargs["params"] == {"documentType": "Lease", "page": 2, "limit": 10}


def test_create_uploads_file_with_its_content_type(session, tmp_path):
    path = tmp_path / "scan.png"
    path.write_bytes(b"\x89PNG")
    session.request.return_value = make_response(201, {"success": True, "document": DOC})
    client = ApiClient("http://api.test/api", token="tok", session=session)

    client.documents.create({"title": "Scan", "documentNumber": None}, str(path))
    kwargs = session.request.call_args.kwargs
    assert kwargs["data"] == {"title": "Scan"}
    name, _, content_type = kwargs["files"]["file"]
    assert (name, content_type) == ("scan.png", "image/png")


def test_download_reads_filename_from_headers(session):
    session.request.return_value = make_response(
        content=b"%PDF", headers={"content-disposition": "attachment; filename*=utf-8''permit%202024.pdf"}
    )
    client = ApiClient("http://api.test/api", token="tok", session=session)

    content, filename = client.documents.download("d1")
    assert content == b"%PDF"
    assert filename == "permit 2024.pdf"


def test_wrong_credentials_are_not_a_session_expiry(session):
    session.request.return_value = make_response(401, {"message": "Invalid credentials"})
    client = ApiClient("http://api.test/api", session=session)

    with pytest.raises(ApiError) as exc:
        client.auth.login("alice@example.com", "wrong-pass")
    assert not isinstance(exc.value, SessionExpired)
    assert exc.value.status_code == 401
    assert exc.value.message == "Invalid credentials"


def test_get_by_id_unwraps_document(session):
    session.request.return_value = make_response(body={"success": True, "document": DOC})
    client = ApiClient("http://api.test/api", token="tok", session=session)

    assert client.documents.get_by_id("d1") == DOC
    assert session.request.call_args.args == ("GET", "http://api.test/api/documents/d1")


def test_update_sends_multipart_put(session, tmp_path):
    path = tmp_path / "renewal.pdf"
    path.write_bytes(b"%PDF")
    updated = {**DOC, "title": "Renewed License", "version": 2}
    session.request.return_value = make_response(body={"success": True, "document": updated})
    client = ApiClient("http://api.test/api", token="tok", session=session)

    result = client.documents.update("d1", {"title": "Renewed License", "version": 1, "issuer": None}, str(path))
    assert result == updated
    assert session.request.call_args.args == ("PUT", "http://api.test/api/documents/d1")
    kwargs = session.request.call_args.kwargs
    assert kwargs["data"] == {"title": "Renewed License", "version": 1}
    name, _, content_type = kwargs["files"]["file"]
    assert (name, content_type) == ("renewal.pdf", "application/pdf")


def test_update_without_file_sends_fields_only(session):
    session.request.return_value = make_response(body={"success": True, "document": DOC})
    client = ApiClient("http://api.test/api", token="tok", session=session)

    client.documents.update("d1", {"status": "Renewed"})
    kwargs = session.request.call_args.kwargs
    assert kwargs["data"] == {"status": "Renewed"}
    assert "files" not in kwargs


def test_users_unwraps_user_list(session):
    users = [{"id": "u1", "name": "Alice", "email": "alice@example.com", "role": "user"}]
    session.request.return_value = make_response(body={"success": True, "count": 1, "users": users})
    client = ApiClient("http://api.test/api", token="tok", session=session)

    assert client.auth.users() == users
    assert session.request.call_args.args == ("GET", "http://api.test/api/auth/users")
    assert session.request.call_args.kwargs["headers"]["Authorization"] == "Bearer tok"


# ---- helpers ----

def test_format_date():
    assert format_date("2024-01-10") == "Jan 10, 2024"


def test_days_until_expiry():
    assert days_until_expiry("2025-06-11", today=date(2025, 6, 1)) == 10
    assert days_until_expiry("2025-05-30", today=date(2025, 6, 1)) == -2


# ---- list view ----

@pytest.fixture
def api():
    return MagicMock()


def test_list_fetches_with_filters_and_page(api):
    api.documents.get_all.return_value = page([DOC], total=25, pages=3)
    view = DocumentListView(api)
    view.fetch()

    api.documents.get_all.assert_called_with(status="", documentType="", search="", page=1, limit=10)
    assert view.total_pages == 3
    assert view.documents == [DOC]
    assert view.loading is False


def test_filter_change_refetches_from_first_page(api):
    api.documents.get_all.return_value = page([DOC], total=25, pages=3)
    view = DocumentListView(api)
    view.fetch()
    view.go_to_page(3)

    view.set_filter("search", "license")
    assert view.current_page == 1
    assert api.documents.get_all.call_args.kwargs["search"] == "license"


def test_unchanged_filter_does_not_refetch(api):
    api.documents.get_all.return_value = page([])
    view = DocumentListView(api)
    view.set_filter("status", "")
    api.documents.get_all.assert_not_called()


def test_page_controls_clamp_to_bounds(api):
    api.documents.get_all.return_value = page([DOC], total=25, pages=3)
    view = DocumentListView(api)
    view.fetch()

    view.go_to_page(10)
    assert view.current_page == 3
    view.next_page()
    assert view.current_page == 3
    assert not view.has_next

    view.go_to_page(-4)
    assert view.current_page == 1
    view.previous_page()
    assert view.current_page == 1
    assert not view.has_previous


def test_page_controls_with_no_results(api):
    api.documents.get_all.return_value = page([], total=0, pages=0)
    view = DocumentListView(api)
    view.fetch()
    view.next_page()
    assert view.current_page == 1


def test_fetch_error_is_reported(api):
    api.documents.get_all.side_effect = ApiError(500, "boom")
    notifier = Notifier()
    view = DocumentListView(api, notifier)
    view.fetch()

    assert notifier.last == ("error", "Error loading documents")
    assert view.loading is False


def test_delete_requires_confirmation(api):
    on_update = MagicMock()
    view = DocumentListView(api, on_update=on_update)

    assert view.delete("d1", confirm=lambda message: False) is False
    api.documents.delete.assert_not_called()

    assert view.delete("d1", confirm=lambda message: True) is True
    api.documents.delete.assert_called_once_with("d1")
    on_update.assert_called_once()


def test_download_writes_file(api, tmp_path):
    api.documents.download.return_value = (b"%PDF", "license.pdf")
    view = DocumentListView(api)

    target = view.download("d1", tmp_path)
    assert target == tmp_path / "license.pdf"
    assert target.read_bytes() == b"%PDF"


def test_rows_are_formatted(api):
    api.documents.get_all.return_value = page([DOC])
    view = DocumentListView(api)
    view.fetch()

    row = view.rows(today=date(2024, 1, 1))[0]
    assert row.expiry_date == "Jan 10, 2024"
    assert row.days_until_expiry == 9
    assert row.document_number == "-"
    assert row.status_style == {"background": "#FEE2E2", "color": "#991B1B"}
    assert row.owner == "Alice"


# ---- form ----

def test_form_validates_before_submitting(api):
    form = DocumentFormView(api)
    assert form.submit() is None
    assert form.errors["title"] == "Title is required"
    api.documents.create.assert_not_called()


def test_form_submit_success(api, tmp_path):
    api.documents.create.return_value = DOC
    on_success = MagicMock()
    form = DocumentFormView(api, on_success=on_success)
    for name, value in (("title", "Business License"), ("documentType", "License"),
                        ("issueDate", "2024-01-01"), ("expiryDate", "2024-01-10")):
        form.set_field(name, value)
    form.attach_file(str(tmp_path / "license.pdf"))

    assert form.submit() == DOC
    fields, file_path = api.documents.create.call_args.args
    assert fields == {
        "title": "Business License", "documentType": "License",
        "issueDate": "2024-01-01", "expiryDate": "2024-01-10",
    }
    assert file_path == str(tmp_path / "license.pdf")
    on_success.assert_called_once_with(DOC)
    assert form.fields["title"] == ""


def test_form_keeps_server_field_errors(api):
    api.documents.create.side_effect = ApiError(
        400, "Validation failed", [{"field": "expiryDate", "message": "Valid expiry date is required"}]
    )
    form = DocumentFormView(api)
    for name, value in (("title", "T"), ("documentType", "Other"), ("issueDate", "2024-01-01"),
                        ("expiryDate", "2024-13-40")):
        form.set_field(name, value)

    assert form.submit() is None
    assert form.errors == {"expiryDate": "Valid expiry date is required"}
    assert form.fields["title"] == "T"


# ---- dashboard ----

def test_dashboard_stat_cards(api):
    api.analytics.dashboard.return_value = {
        "totalDocuments": 6, "active": 2, "expiringSoon": 1, "expired": 2, "renewed": 1
    }
    api.documents.get_all.return_value = page([])
    dashboard = DashboardView(api)
    dashboard.load()

    assert [(card.label, card.value) for card in dashboard.stat_cards()] == [
        ("Total Documents", 6), ("Expiring Soon", 1), ("Expired", 2), ("Active", 2),
    ]


def test_stat_cards_default_to_zero(api):
    api.analytics.dashboard.side_effect = ApiError(500, "down")
    dashboard = DashboardView(api)
    dashboard.fetch_analytics()
    assert all(card.value == 0 for card in dashboard.stat_cards())


def test_document_added_closes_form_and_refreshes(api):
    api.analytics.dashboard.return_value = {"totalDocuments": 1}
    api.documents.get_all.return_value = page([DOC])
    api.documents.create.return_value = DOC
    dashboard = DashboardView(api)

    dashboard.toggle_form()
    assert dashboard.show_form
    form = dashboard.form
    for name, value in (("title", "T"), ("documentType", "Other"), ("issueDate", "2024-01-01"),
                        ("expiryDate", "2024-02-01")):
        form.set_field(name, value)
    form.submit()

    assert dashboard.show_form is False
    assert dashboard.form is None
    assert dashboard.refresh_trigger == 1
    api.analytics.dashboard.assert_called_once()
    api.documents.get_all.assert_called_once()
    assert dashboard.notifier.last == ("success", "Document added successfully!")


def test_delete_from_list_refreshes_dashboard(api):
    api.analytics.dashboard.return_value = {"totalDocuments": 0}
    api.documents.get_all.return_value = page([])
    dashboard = DashboardView(api)

    dashboard.document_list.delete("d1")
    assert dashboard.refresh_trigger == 1
    api.analytics.dashboard.assert_called_once()


def test_analytics_tab_loads_breakdown(api):
    api.analytics.stats.return_value = {"total": 1, "byType": {}, "byStatus": {}}
    api.analytics.expiring.return_value = {"days": 30, "count": 1, "documents": [DOC]}
    dashboard = DashboardView(api)

    dashboard.select_tab("analytics")
    assert dashboard.analytics_view.stats["total"] == 1
    assert dashboard.analytics_view.expiring == [DOC]

    with pytest.raises(ValueError):
        dashboard.select_tab("settings")
