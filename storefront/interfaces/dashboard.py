from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from storefront.domain.messages import format_price
from storefront.interfaces.admin_api import require_admin

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))
templates.env.filters["rupiah"] = format_price

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/admin/orders", response_class=HTMLResponse)
def read_orders(request: Request):
    # Latest 20 orders
    result = request.app.state.order_service.list_orders(page=1, limit=20)
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {"orders": result["orders"], "total": result["pagination"]["total"]},
    )
