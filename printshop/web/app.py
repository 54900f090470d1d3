"""FastAPI-based web interface for the print-shop back office."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Mapping, Optional
from urllib.parse import urlencode

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates

from ..config import Settings, configure_logging
from ..domain import (
    CustomerTier,
    EmployeePosition,
    ItemDraft,
    Material,
    PaymentStatus,
    ProductionStatus,
    ValidationError,
    WorkflowStatus,
)
from ..pricing import item_area, item_subtotal, price_for
from ..repository import RecordNotFoundError
from ..services import OrderSummary, PrintShopService
from ..storage import PrintShopDatabase

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def format_currency(value: int) -> str:
    return "Rp " + f"{int(value):,}".replace(",", ".")


def format_quantity(value: Decimal) -> str:
    return format(Decimal(value).normalize(), "f")


templates.env.filters["currency"] = format_currency
templates.env.filters["quantity"] = format_quantity


def create_app(
    settings: Optional[Settings] = None, *, database_path: Optional[str] = None
) -> FastAPI:
    settings = settings or Settings.from_env()
    if database_path is not None:
        settings = replace(settings, database_path=database_path)
    configure_logging(settings)

    database = PrintShopDatabase(settings.database_path)
    service = PrintShopService(
        customer_repo=database.customers,
        material_repo=database.materials,
        order_repo=database.orders,
        expense_repo=database.expenses,
        employee_repo=database.employees,
    )
    if settings.load_demo_data:
        ensure_demo_data(service)

    app = FastAPI(title=settings.shop_name)
    app.state.service = service
    app.state.database = database
    app.state.settings = settings

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        database.close()

    def render(request: Request, template: str, context: Dict) -> object:
        context.setdefault("shop_name", settings.shop_name)
        context.setdefault("error", request.query_params.get("error"))
        return templates.TemplateResponse(request, template, context)

    def summary_or_404(service: PrintShopService, order_id: str) -> OrderSummary:
        try:
            return service.order_summary(order_id)
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.get("/")
    async def dashboard(request: Request):
        service: PrintShopService = request.app.state.service
        recent = sorted(
            service.orders.list(),
            key=lambda order: (order.order_date, order.created_at),
            reverse=True,
        )[:10]
        return render(
            request,
            "dashboard.html",
            {
                "stats": service.dashboard_stats(),
                "today": service.daily_stats(),
                "finance": service.finance_summary(),
                "recent": [service.summarize(order) for order in recent],
                "production": service.production_overview(),
            },
        )

    @app.get("/orders")
    async def order_overview(request: Request):
        service: PrintShopService = request.app.state.service
        query = request.query_params
        try:
            start = parse_date(query.get("start"))
            end = parse_date(query.get("end"))
        except ValidationError as exc:
            return redirect("/orders", error=str(exc))
        orders = service.list_orders(
            customer_id=query.get("customer_id") or None,
            start=start,
            end=end,
            payment_status=parse_enum(PaymentStatus, query.get("status")),
            workflow_status=parse_enum(WorkflowStatus, query.get("workflow")),
        )
        return render(
            request,
            "orders.html",
            {
                "summaries": [service.summarize(order) for order in orders],
                "customers": service.customers.list(),
                "materials": service.materials.list(),
                "filters": dict(query),
                "payment_statuses": PaymentStatus,
                "today": date.today(),
            },
        )

    @app.post("/orders")
    async def create_order(
        request: Request,
        invoice_number: str = Form(""),
        customer_id: str = Form(""),
        order_date: str = Form(""),
        items: str = Form(""),
    ):
        service: PrintShopService = request.app.state.service
        try:
            order = service.create_order(
                invoice_number,
                customer_id,
                parse_item_definitions(items, service.materials.mapping()),
                order_date=parse_date(order_date),
            )
        except (ValidationError, RecordNotFoundError) as exc:
            return redirect("/orders", error=str(exc))
        return redirect(f"/orders/{order.id}")

    @app.get("/orders/{order_id}")
    async def order_detail(order_id: str, request: Request):
        service: PrintShopService = request.app.state.service
        summary = summary_or_404(service, order_id)
        return render(
            request,
            "order_detail.html",
            {
                "summary": summary,
                "order": summary.order,
                "materials": service.materials.mapping(),
                "material_list": service.materials.list(),
                "employees": service.employees.list(),
                "worker_name": service.worker_name,
                "production_statuses": ProductionStatus,
                "today": date.today(),
            },
        )

    @app.get("/api/orders/{order_id}")
    async def order_summary_api(order_id: str, request: Request):
        service: PrintShopService = request.app.state.service
        summary = summary_or_404(service, order_id)
        order = summary.order
        return {
            "id": order.id,
            "invoice_number": order.invoice_number,
            "order_date": order.order_date.isoformat(),
            "customer_id": order.customer_id,
            "assigned_worker_id": order.assigned_worker_id,
            "workflow_status": order.workflow_status.value,
            "payment_status": summary.payment_status.value,
            "total": summary.total,
            "amount_paid": summary.amount_paid,
            "balance": summary.balance,
            "item_count": summary.item_count,
            "items_done": summary.items_done,
        }

    @app.post("/orders/{order_id}/items")
    async def add_item(
        order_id: str,
        request: Request,
        material_id: str = Form(""),
        description: str = Form(""),
        length: str = Form("0"),
        width: str = Form("0"),
        quantity: str = Form("1"),
        finishing: str = Form(""),
    ):
        service: PrintShopService = request.app.state.service
        draft = ItemDraft(
            material_id=material_id or None,
            description=description,
            length=length,
            width=width,
            quantity=quantity,
            finishing=finishing,
        )
        try:
            service.add_item(order_id, draft)
        except (ValidationError, RecordNotFoundError) as exc:
            return redirect(f"/orders/{order_id}", error=str(exc))
        return redirect(f"/orders/{order_id}")

    @app.post("/orders/{order_id}/items/{item_id}/delete")
    async def remove_item(order_id: str, item_id: str, request: Request):
        service: PrintShopService = request.app.state.service
        try:
            service.remove_item(order_id, item_id)
        except (ValidationError, RecordNotFoundError) as exc:
            return redirect(f"/orders/{order_id}", error=str(exc))
        return redirect(f"/orders/{order_id}")

    @app.post("/orders/{order_id}/items/{item_id}/status")
    async def change_item_status(
        order_id: str, item_id: str, request: Request, status: str = Form(...)
    ):
        service: PrintShopService = request.app.state.service
        target = parse_enum(ProductionStatus, status)
        if target is None:
            return redirect(f"/orders/{order_id}", error=f"Unknown production status {status!r}")
        try:
            service.update_item_production(order_id, item_id, target)
        except (ValidationError, RecordNotFoundError) as exc:
            return redirect(f"/orders/{order_id}", error=str(exc))
        return redirect(f"/orders/{order_id}")

    @app.post("/orders/{order_id}/payments")
    async def add_payment(
        order_id: str,
        request: Request,
        amount: str = Form(""),
        payment_date: str = Form(""),
        cashier_id: str = Form(""),
    ):
        service: PrintShopService = request.app.state.service
        try:
            service.record_payment(
                order_id,
                amount,
                payment_date=parse_date(payment_date),
                cashier_id=cashier_id or None,
            )
        except (ValidationError, RecordNotFoundError) as exc:
            return redirect(f"/orders/{order_id}", error=str(exc))
        return redirect(f"/orders/{order_id}")

    @app.post("/orders/{order_id}/claim")
    async def claim_order(order_id: str, request: Request, worker_id: str = Form("")):
        service: PrintShopService = request.app.state.service
        try:
            service.claim_order(order_id, worker_id)
        except (ValidationError, RecordNotFoundError) as exc:
            return redirect(f"/orders/{order_id}", error=str(exc))
        return redirect(f"/orders/{order_id}")

    @app.post("/orders/{order_id}/release")
    async def release_order(order_id: str, request: Request, worker_id: str = Form("")):
        service: PrintShopService = request.app.state.service
        try:
            service.release_order(order_id, worker_id or None)
        except (ValidationError, RecordNotFoundError) as exc:
            return redirect(f"/orders/{order_id}", error=str(exc))
        return redirect(f"/orders/{order_id}")

    @app.post("/orders/{order_id}/delete")
    async def delete_order(order_id: str, request: Request):
        service: PrintShopService = request.app.state.service
        try:
            service.delete_order(order_id)
        except RecordNotFoundError as exc:
            return redirect("/orders", error=str(exc))
        return redirect("/orders")

    @app.get("/orders/{order_id}/invoice")
    async def invoice(order_id: str, request: Request):
        service: PrintShopService = request.app.state.service
        summary = summary_or_404(service, order_id)
        return render(
            request,
            "invoice.html",
            {
                "summary": summary,
                "order": summary.order,
                "lines": invoice_lines(service, summary),
                "worker_name": service.worker_name,
            },
        )

    @app.get("/orders/{order_id}/job-ticket")
    async def job_ticket(order_id: str, request: Request):
        service: PrintShopService = request.app.state.service
        summary = summary_or_404(service, order_id)
        return render(
            request,
            "job_ticket.html",
            {
                "summary": summary,
                "order": summary.order,
                "materials": service.materials.mapping(),
                "worker_name": service.worker_name(summary.order.assigned_worker_id),
            },
        )

    @app.get("/catalog")
    async def catalog(request: Request):
        service: PrintShopService = request.app.state.service
        return render(
            request,
            "catalog.html",
            {
                "customers": sorted(service.customers.list(), key=lambda c: c.name.lower()),
                "materials": sorted(service.materials.list(), key=lambda m: m.name.lower()),
                "employees": sorted(service.employees.list(), key=lambda e: e.name.lower()),
                "expenses": sorted(
                    service.expenses.list(), key=lambda e: e.expense_date, reverse=True
                ),
                "tiers": CustomerTier,
                "positions": EmployeePosition,
                "today": date.today(),
            },
        )

    @app.post("/customers")
    async def create_customer(
        request: Request,
        name: str = Form(""),
        tier: str = Form(...),
        email: str = Form(""),
        phone: str = Form(""),
        address: str = Form(""),
    ):
        service: PrintShopService = request.app.state.service
        try:
            service.create_customer(name, tier, email=email, phone=phone, address=address)
        except ValidationError as exc:
            return redirect("/catalog", error=str(exc))
        return redirect("/catalog")

    @app.post("/customers/{customer_id}/tier")
    async def change_customer_tier(customer_id: str, request: Request, tier: str = Form(...)):
        service: PrintShopService = request.app.state.service
        try:
            service.update_customer(customer_id, tier=tier)
        except (ValidationError, RecordNotFoundError) as exc:
            return redirect("/catalog", error=str(exc))
        return redirect("/catalog")

    @app.post("/materials")
    async def create_material(
        request: Request,
        name: str = Form(""),
        price_end_customer: int = Form(...),
        price_retail: int = Form(...),
        price_wholesale: int = Form(...),
        price_reseller: int = Form(...),
        price_corporate: int = Form(...),
    ):
        service: PrintShopService = request.app.state.service
        try:
            service.register_material(
                name,
                price_end_customer=price_end_customer,
                price_retail=price_retail,
                price_wholesale=price_wholesale,
                price_reseller=price_reseller,
                price_corporate=price_corporate,
            )
        except ValidationError as exc:
            return redirect("/catalog", error=str(exc))
        return redirect("/catalog")

    @app.post("/materials/{material_id}/prices")
    async def change_material_prices(
        material_id: str,
        request: Request,
        price_end_customer: str = Form(""),
        price_retail: str = Form(""),
        price_wholesale: str = Form(""),
        price_reseller: str = Form(""),
        price_corporate: str = Form(""),
    ):
        service: PrintShopService = request.app.state.service
        submitted = {
            "price_end_customer": price_end_customer,
            "price_retail": price_retail,
            "price_wholesale": price_wholesale,
            "price_reseller": price_reseller,
            "price_corporate": price_corporate,
        }
        try:
            prices = parse_prices(submitted)
            service.update_material_prices(material_id, **prices)
        except (ValidationError, RecordNotFoundError) as exc:
            return redirect("/catalog", error=str(exc))
        return redirect("/catalog")

    @app.post("/employees")
    async def create_employee(
        request: Request,
        name: str = Form(""),
        position: str = Form(...),
        email: str = Form(""),
        phone: str = Form(""),
    ):
        service: PrintShopService = request.app.state.service
        try:
            service.register_employee(name, position, email=email, phone=phone)
        except ValidationError as exc:
            return redirect("/catalog", error=str(exc))
        return redirect("/catalog")

    @app.post("/expenses")
    async def create_expense(
        request: Request,
        kind: str = Form(""),
        quantity: str = Form("1"),
        unit_price: str = Form("0"),
        expense_date: str = Form(""),
    ):
        service: PrintShopService = request.app.state.service
        try:
            service.record_expense(
                kind,
                quantity=quantity,
                unit_price=unit_price,
                expense_date=parse_date(expense_date),
            )
        except ValidationError as exc:
            return redirect("/catalog", error=str(exc))
        return redirect("/catalog")

    @app.get("/reports")
    async def report_overview(request: Request):
        service: PrintShopService = request.app.state.service
        query = request.query_params
        try:
            start = parse_date(query.get("start"))
            end = parse_date(query.get("end")) or date.today()
        except ValidationError as exc:
            return redirect("/reports", error=str(exc))
        return render(
            request,
            "reports.html",
            {
                "start": start,
                "end": end,
                "sales": service.sales_report(start=start, end=end),
                "expenses": service.expense_report(start=start, end=end),
                "top_customers": service.top_customers(start=start, end=end),
                "best_materials": service.best_materials(start=start, end=end),
            },
        )

    return app


def redirect(path: str, **params: str) -> RedirectResponse:
    target = path
    if params:
        target += "?" + urlencode(params)
    return RedirectResponse(target, status_code=303)


def parse_date(value: Optional[str]) -> Optional[date]:
    """Read a ``YYYY-MM-DD`` form value; blank means no date was given."""

    if not value or not value.strip():
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError as exc:
        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def parse_prices(submitted: Mapping[str, str]) -> Dict[str, int]:
    """Whole-number prices from a form; blank fields keep their stored value."""

    prices: Dict[str, int] = {}
    for field_name, raw in submitted.items():
        raw = raw.strip()
        if not raw:
            continue
        try:
            prices[field_name] = int(raw)
        except ValueError as exc:
            raise ValidationError(f"{field_name} must be a whole number, got {raw!r}") from exc
    if not prices:
        raise ValidationError("No price was changed")
    return prices


def parse_enum(enum_type, value: Optional[str]):
    if not value or value == "all":
        return None
    for member in enum_type:
        if value.lower() in {member.value.lower(), member.name.lower()}:
            return member
    return None


def resolve_material(token: str, materials: Mapping[str, Material]) -> Optional[str]:
    token = token.strip()
    if not token:
        return None
    if token in materials:
        return token
    for material in materials.values():
        if material.name.lower() == token.lower():
            return material.id
    return token


def parse_item_definitions(definitions: str, materials: Mapping[str, Material]) -> List[ItemDraft]:
    """Parse ``material|description|length|width|quantity|finishing`` lines.

    The material may be given by id or by name. Blank lines are skipped; a
    line with fewer than five fields raises :class:`ValidationError`.
    """

    drafts: List[ItemDraft] = []
    for number, line in enumerate(definitions.splitlines(), start=1):
        if not line.strip():
            continue
        parts = [part.strip() for part in line.split("|")]
        if len(parts) < 5:
            raise ValidationError(
                f"Item line {number} needs material|description|length|width|quantity"
            )
        material, description, length, width, quantity = parts[:5]
        finishing = parts[5] if len(parts) > 5 else ""
        drafts.append(
            ItemDraft(
                material_id=resolve_material(material, materials),
                description=description,
                length=length or "0",
                width=width or "0",
                quantity=quantity or "1",
                finishing=finishing,
            )
        )
    return drafts


def invoice_lines(service: PrintShopService, summary: OrderSummary) -> List[Dict]:
    """Invoice rows priced with the same functions as the order total."""

    materials = service.materials.mapping()
    tier = summary.customer.tier if summary.customer else None
    lines = []
    for item in summary.order.items:
        material = materials.get(item.material_id) if item.material_id else None
        lines.append(
            {
                "item": item,
                "material_name": material.name if material else "-",
                "area": item_area(item),
                "unit_price": price_for(material, tier) if material else 0,
                "subtotal": item_subtotal(item, material, tier),
            }
        )
    return lines


def ensure_demo_data(service: PrintShopService) -> None:
    if len(service.customers) > 0:
        return

    cashier = service.register_employee(
        name="Dewi Lestari", position=EmployeePosition.CASHIER, email="dewi@example.com"
    )
    operator = service.register_employee(
        name="Budi Santoso", position=EmployeePosition.PRODUCTION, phone="+62 812 5550 1122"
    )
    service.register_employee(name="Rina Putri", position=EmployeePosition.DESIGNER)

    walk_in = service.create_customer(
        name="Andi Wijaya",
        tier=CustomerTier.END_CUSTOMER,
        phone="+62 813 4411 2200",
        address="Jl. Merdeka 12, Bandung",
    )
    agency = service.create_customer(
        name="CV Kreasi Media",
        tier=CustomerTier.RESELLER,
        email="order@kreasimedia.example",
        address="Jl. Asia Afrika 88, Bandung",
    )
    corporate = service.create_customer(
        name="PT Sinar Abadi",
        tier=CustomerTier.CORPORATE,
        email="procurement@sinarabadi.example",
    )

    flexi = service.register_material(
        name="Flexi 280gr",
        price_end_customer=25000,
        price_retail=23000,
        price_wholesale=20000,
        price_reseller=18000,
        price_corporate=22000,
    )
    sticker = service.register_material(
        name="Sticker Vinyl",
        price_end_customer=65000,
        price_retail=60000,
        price_wholesale=55000,
        price_reseller=50000,
        price_corporate=58000,
    )
    cards = service.register_material(
        name="Kartu Nama Art Carton 260",
        price_end_customer=35000,
        price_retail=32000,
        price_wholesale=30000,
        price_reseller=27000,
        price_corporate=31000,
    )

    today = date.today()
    banner = service.create_order(
        invoice_number="NL-0001",
        customer_id=agency.id,
        order_date=today - timedelta(days=2),
        items=[
            ItemDraft(
                material_id=flexi.id,
                description="Spanduk promo toko",
                length=Decimal("3"),
                width=Decimal("1"),
                quantity=2,
                finishing="Mata ayam",
            ),
            ItemDraft(
                material_id=sticker.id,
                description="Sticker etalase",
                length=Decimal("1.5"),
                width=Decimal("0.5"),
                quantity=1,
            ),
        ],
    )
    service.record_payment(
        banner.id, 100000, payment_date=today - timedelta(days=2), cashier_id=cashier.id
    )
    service.claim_order(banner.id, operator.id)

    business_cards = service.create_order(
        invoice_number="NL-0002",
        customer_id=walk_in.id,
        order_date=today,
        items=[ItemDraft(material_id=cards.id, description="Kartu nama 1 box", quantity=2)],
    )
    service.record_payment(business_cards.id, 70000, payment_date=today, cashier_id=cashier.id)

    service.create_order(
        invoice_number="NL-0003",
        customer_id=corporate.id,
        order_date=today,
        items=[
            ItemDraft(
                material_id=flexi.id,
                description="Backdrop acara",
                length=Decimal("4"),
                width=Decimal("3"),
                quantity=1,
                finishing="Lipat pinggir",
            )
        ],
    )

    service.record_expense("Tinta eco solvent", quantity=4, unit_price=150000, expense_date=today)
    service.record_expense("Listrik", quantity=1, unit_price=850000, expense_date=today - timedelta(days=1))
    logger.info("[Demo] Loaded demo catalog and orders")


__all__ = [
    "create_app",
    "ensure_demo_data",
    "format_currency",
    "invoice_lines",
    "parse_date",
    "parse_enum",
    "parse_item_definitions",
    "parse_prices",
]
