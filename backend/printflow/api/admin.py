import html
import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from starlette.responses import HTMLResponse

from printflow.api.deps import get_client, to_http
from printflow.models.order import DashboardStats, Order, OrderFilters, OrderSorting, OrderStatus
from printflow.services.api_client import PrintShopClient
from printflow.services.errors import PrintFlowError
from printflow.services.order_view import apply_view, print_queue, summarize
from printflow.utils.formatting import format_currency, format_date

logger = logging.getLogger(__name__)
router = APIRouter()


class StatusUpdate(BaseModel):
    status: OrderStatus


def _order_row(o: Order) -> dict:
    return {
        **o.model_dump(mode="json", by_alias=True),
        "display": {
            "totalPrice": format_currency(o.total_price),
            "createdAt": format_date(o.created_at),
        },
    }


def _render_summary_html(stats: DashboardStats) -> str:
    rows_html = "".join(
        f"<tr><td>{html.escape(o.order_number)}</td><td>{html.escape(format_date(o.created_at))}</td>"
        f"<td>{html.escape(o.user_info.name if o.user_info else '')}</td><td>{html.escape(o.file_name)}</td>"
        f"<td>{html.escape(format_currency(o.total_price))}</td><td>{html.escape(o.order_status.value)}</td></tr>"
        for o in stats.recent_orders
    )
    return f"""
<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Dashboard Summary</title>
  <style>
    body {{ font-family: Inter, system-ui, -apple-system, 'Segoe UI', Roboto, 'Helvetica Neue', Arial; background:#f3f4f6; padding:24px; }}
    .container {{ max-width:1100px; margin:0 auto; }}
    .cards {{ display:flex; gap:16px; margin-bottom:20px; }}
    .card {{ background:white;padding:20px;border-radius:8px; box-shadow:0 1px 3px rgba(0,0,0,0.06); flex:1 }}
    .title {{ color:#6b7280; font-size:13px }}
    .value {{ font-size:28px; font-weight:700; margin-top:6px }}
    table {{ width:100%; border-collapse:collapse; margin-top:12px; background:white; border-radius:8px; overflow:hidden }}
    th, td {{ padding:12px; text-align:left; border-bottom:1px solid #eef2f7 }}
    thead {{ background:#f9fafb }}
  </style>
</head>
<body>
  <div class="container">
    <h1>Dashboard Summary</h1>
    <div class="cards">
      <div class="card"><div class="title">Today's Orders</div><div class="value">{stats.today_orders}</div></div>
      <div class="card"><div class="title">Pending Prints</div><div class="value">{stats.pending_prints}</div></div>
      <div class="card"><div class="title">Completed</div><div class="value">{stats.completed_orders}</div></div>
      <div class="card"><div class="title">Revenue</div><div class="value">{html.escape(format_currency(stats.total_revenue))}</div></div>
    </div>
    <h2>Recent Orders</h2>
    <table>
      <thead><tr><th>Order</th><th>Date</th><th>Customer</th><th>File</th><th>Price</th><th>Status</th></tr></thead>
      <tbody>{rows_html}</tbody>
    </table>
  </div>
</body>
</html>
"""


@router.get("/orders")
def orders(
    status: str = "all",
    date_range: str = Query("all", alias="dateRange"),
    search: str = "",
    sort: str = "created_at",
    direction: str = "desc",
    client: PrintShopClient = Depends(get_client),
) -> List[dict]:
    try:
        fetched = client.list_orders()
    except PrintFlowError as e:
        raise to_http(e)
    try:
        filters = OrderFilters(status=status, date_range=date_range, search=search)
        sorting = OrderSorting(field=sort, direction=direction)
        result = apply_view(fetched, filters, sorting)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"message": str(e)})
    logger.debug("Admin orders view status=%s range=%s search=%r => %s of %s", status, date_range, search, len(result), len(fetched))
    return [_order_row(o) for o in result]


@router.get("/orders/stats")
def stats(client: PrintShopClient = Depends(get_client)):
    try:
        order_stats = client.get_stats()
    except PrintFlowError as e:
        raise to_http(e)
    return {
        **order_stats.model_dump(mode="json", by_alias=True),
        "display": {"totalRevenue": format_currency(order_stats.total_revenue)},
    }


@router.get("/summary")
def summary(request: Request, client: PrintShopClient = Depends(get_client)) -> Any:
    try:
        dashboard = summarize(client.list_orders())
    except PrintFlowError as e:
        logger.exception("Failed to compute summary: %s", e)
        raise to_http(e)

    accept = request.headers.get("accept", "")
    if "text/html" in accept:
        return HTMLResponse(content=_render_summary_html(dashboard))
    return dashboard.model_dump(mode="json", by_alias=True)


@router.get("/print-queue")
def queue(client: PrintShopClient = Depends(get_client)):
    try:
        jobs = client.pending_prints()
    except PrintFlowError as e:
        raise to_http(e)
    return [_order_row(o) for o in print_queue(jobs)]


@router.put("/orders/{order_number}/status")
def update_status(order_number: str, update: StatusUpdate, client: PrintShopClient = Depends(get_client)):
    try:
        client.update_order_status(order_number, update.status)
    except PrintFlowError as e:
        raise to_http(e)
    return {"ok": True, "order_number": order_number, "status": update.status.value}
