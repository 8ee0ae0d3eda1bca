from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import PDF_BYTES, VALID_CUSTOMER
from printflow import main as printflow_main
from printflow.api.deps import get_client, get_engine, get_store
from printflow.main import app
from printflow.models.order import CustomerInfo, Order, OrderStatus, PaymentState
from printflow.services.assembly import OrderAssembly, SessionStore
from printflow.services.errors import BackendError


@pytest.fixture
def store(engine, shop, released):
    return SessionStore(lambda: OrderAssembly(engine, shop, on_release=released.append))


@pytest.fixture
def http(engine, shop, store):
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_client] = lambda: shop
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def start_session(http):
    resp = http.post("/ordering/sessions")
    assert resp.status_code == 201
    return resp.json()["sessionId"]


def upload(http, session_id, name="thesis.pdf", content=PDF_BYTES, content_type="application/pdf"):
    return http.post(f"/ordering/sessions/{session_id}/document", files={"file": (name, content, content_type)})


def test_health(http):
    assert http.get("/").json()["status"] == "ok"


def test_quote_uniform_monochrome(http):
    resp = http.post("/ordering/quote", json={
        "mode": "uniform", "pageCount": 10, "printColor": "monochrome", "binding": "none", "campusDelivery": False,
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["breakdown"]["totalCost"] == 10
    assert body["display"]["totalCost"] == "GHC 10.00"


def test_quote_split_with_extras(http):
    resp = http.post("/ordering/quote", json={
        "mode": "split", "colorPages": 3, "monochromePages": 7, "binding": "comb", "campusDelivery": True,
    })
    assert resp.json()["display"] == {
        "baseCost": "GHC 13.00",
        "bindingCost": "GHC 5.00",
        "deliveryCost": "GHC 2.00",
        "totalCost": "GHC 20.00",
    }


def test_quote_rejects_unknown_mode(http):
    resp = http.post("/ordering/quote", json={"mode": "bulk", "pageCount": 10})
    assert resp.status_code == 422


def test_quote_rejects_negative_pages(http):
    resp = http.post("/ordering/quote", json={"mode": "uniform", "pageCount": -1, "printColor": "colored"})
    assert resp.status_code == 400
    assert "page_count" in resp.json()["detail"]["fields"]


def test_full_ordering_flow(http, shop):
    session_id = start_session(http)
    base = f"/ordering/sessions/{session_id}"

    view = upload(http, session_id).json()
    assert view["step"] == "upload"
    assert view["price"]["totalCost"] == "GHC 10.00"

    view = http.put(f"{base}/options", json={"printColor": "colored", "binding": "comb"}).json()
    assert view["price"]["totalCost"] == "GHC 18.00"

    assert http.post(f"{base}/continue").json()["step"] == "user_info"
    assert http.post(f"{base}/customer", json=VALID_CUSTOMER).json()["step"] == "review"

    view = http.post(f"{base}/confirm").json()
    assert view["step"] == "payment"
    assert view["order"]["orderNumber"] == "PRN-0001"
    assert shop.submitted[0]["totalPrice"] == 18.0

    shop.payment_results = [PaymentState.PENDING, PaymentState.COMPLETED]
    first = http.post(f"{base}/payment/check").json()
    assert (first["payment"]["status"], first["step"]) == ("pending", "payment")
    second = http.post(f"{base}/payment/check").json()
    assert second["step"] == "confirmation"

    receipt = http.get(f"{base}/receipt").json()
    assert receipt["order_number"] == "PRN-0001"
    assert receipt["binding"] == "Comb Binding"
    assert Decimal(str(receipt["total_amount"])) == Decimal("18")


def test_unknown_session_is_404(http):
    assert http.get("/ordering/sessions/nope").status_code == 404


def test_non_pdf_upload_is_rejected(http):
    session_id = start_session(http)
    resp = upload(http, session_id, name="notes.txt", content=b"hello", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == "File must be a PDF document"


def test_invalid_customer_info_reports_fields(http):
    session_id = start_session(http)
    base = f"/ordering/sessions/{session_id}"
    upload(http, session_id)
    http.post(f"{base}/continue")

    resp = http.post(f"{base}/customer", json={**VALID_CUSTOMER, "email": "not-an-email"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["fields"] == {"email": "Please enter a valid email address"}
    assert http.get(base).json()["step"] == "user_info"


def test_out_of_order_transition_is_conflict(http):
    session_id = start_session(http)
    resp = http.post(f"/ordering/sessions/{session_id}/continue")
    assert resp.status_code == 409


def test_options_locked_during_payment(http):
    session_id = start_session(http)
    base = f"/ordering/sessions/{session_id}"
    upload(http, session_id)
    http.post(f"{base}/continue")
    http.post(f"{base}/customer", json=VALID_CUSTOMER)
    http.post(f"{base}/confirm")

    resp = http.put(f"{base}/options", json={"binding": "slide"})
    assert resp.status_code == 409
    assert http.get(base).json()["order"]["totalCost"] == "GHC 10.00"


def test_discard_session_releases_document(http, store, released):
    session_id = start_session(http)
    upload(http, session_id)
    assert http.delete(f"/ordering/sessions/{session_id}").status_code == 204
    assert len(store) == 0
    assert [d.file_id for d in released] == ["file-123"]


def test_track_order(http, shop):
    shop.orders = [Order(order_number="PRN-9", total_price=Decimal("12.5"), order_status=OrderStatus.PROCESSING)]
    body = http.get("/track/orders/PRN-9").json()
    assert body["order"]["order_status"] == "processing"
    assert body["display"]["totalPrice"] == "GHC 12.50"
    assert body["display"]["createdAt"] == "N/A"


def test_track_missing_order(http):
    assert http.get("/track/orders/PRN-404").status_code == 404


@pytest.fixture
def admin_orders(shop):
    now = datetime.now()
    shop.orders = [
        Order(order_number="PRN-1", file_name="a.pdf", created_at=now - timedelta(hours=3),
              order_status=OrderStatus.PENDING, total_price=Decimal("5"),
              user_info=CustomerInfo(name="Ama", email="ama@campus.edu")),
        Order(order_number="PRN-2", file_name="b.pdf", created_at=now - timedelta(hours=1),
              order_status=OrderStatus.COMPLETED, total_price=Decimal("15"),
              user_info=CustomerInfo(name="Kofi", email="kofi@campus.edu")),
    ]
    return shop.orders


def test_admin_orders_filter_and_sort(http, admin_orders):
    rows = http.get("/admin/orders").json()
    assert [r["order_number"] for r in rows] == ["PRN-2", "PRN-1"]

    rows = http.get("/admin/orders", params={"status": "pending"}).json()
    assert [r["order_number"] for r in rows] == ["PRN-1"]

    rows = http.get("/admin/orders", params={"search": "KOFI", "sort": "total_price", "direction": "asc"}).json()
    assert [r["display"]["totalPrice"] for r in rows] == ["GHC 15.00"]


def test_admin_orders_bad_filter(http, admin_orders):
    assert http.get("/admin/orders", params={"dateRange": "someday"}).status_code == 400
    assert http.get("/admin/orders", params={"sort": "colour"}).status_code == 400


def test_admin_summary_json_and_html(http, admin_orders):
    body = http.get("/admin/summary").json()
    assert body["completedOrders"] == 1
    assert len(body["recentOrders"]) == 2

    resp = http.get("/admin/summary", headers={"accept": "text/html"})
    assert resp.headers["content-type"].startswith("text/html")
    assert "PRN-2" in resp.text


def test_admin_print_queue(http, admin_orders):
    rows = http.get("/admin/print-queue").json()
    assert [r["order_number"] for r in rows] == ["PRN-1"]


def test_admin_update_status(http, shop):
    resp = http.put("/admin/orders/PRN-1/status", json={"status": "completed"})
    assert resp.status_code == 200
    assert shop.status_updates == [("PRN-1", OrderStatus.COMPLETED)]
    assert http.put("/admin/orders/PRN-1/status", json={"status": "lost"}).status_code == 422


def test_backend_outage_is_bad_gateway(http, shop, monkeypatch):
    def down(limit=None):
        raise BackendError("Could not reach the print shop service")
    monkeypatch.setattr(shop, "list_orders", down)
    resp = http.get("/admin/orders")
    assert resp.status_code == 502
    assert resp.json()["detail"]["message"] == "Could not reach the print shop service"


def test_admin_summary_html_escapes_customer_text(http, shop):
    shop.orders = [
        Order(order_number="PRN-7", file_name="<script>alert(1)</script>.pdf", created_at=datetime.now(),
              user_info=CustomerInfo(name='Ama "<b>" Mensah', email="ama@campus.edu")),
    ]
    page = http.get("/admin/summary", headers={"accept": "text/html"}).text
    assert "<script>" not in page
    assert "&lt;script&gt;alert(1)&lt;/script&gt;.pdf" in page
    assert "&lt;b&gt;" in page


def test_back_refused_after_cancelling_payment(http, shop):
    session_id = start_session(http)
    base = f"/ordering/sessions/{session_id}"
    upload(http, session_id)
    http.post(f"{base}/continue")
    http.post(f"{base}/customer", json=VALID_CUSTOMER)
    http.post(f"{base}/confirm")

    assert http.post(f"{base}/payment/cancel").json()["step"] == "review"
    assert http.post(f"{base}/back").status_code == 409
    view = http.post(f"{base}/confirm").json()
    assert (view["step"], view["order"]["orderNumber"]) == ("payment", "PRN-0001")
    assert len(shop.submitted) == 1


def test_main_serves_app_with_uvicorn(monkeypatch):
    calls = []
    monkeypatch.setattr(printflow_main.uvicorn, "run", lambda target, **kw: calls.append((target, kw)))
    printflow_main.main()
    target, kw = calls[0]
    assert target is app
    assert kw["port"] == printflow_main.PORT
    assert kw["log_level"] == printflow_main.LOG_LEVEL.lower()
