# backend/backoffice/routes/invoices.py
"""Invoice routes: draft a billed sale, list/read invoices, pay by invoice number, resend."""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import BackOfficeError, MissingRequiredField
from ..services import invoice_service, payment_plan_service, sales_service
from ..validation import (
    PAYMENT_FREQUENCIES,
    PAYMENT_METHODS,
    parse_cents,
    parse_choice,
    parse_datetime,
    require_fields,
)
from ..decorators import require_context
from .payloads import parse_bank, parse_customer, parse_sale_lines

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _invoice_detail(invoice) -> dict:
    data = invoice.to_dict()
    plan = invoice.transaction.payment_plan
    data["balance_owed_cents"] = payment_plan_service.current_balance(plan) if plan else None
    data["transaction"] = invoice.transaction.to_dict()
    return data


@invoices_bp.post("")
@require_context
def create_invoice_route():
    """
    Draft an invoice for goods handed over unpaid.

    Body: {"items": [...], "customer": {...}, "payment_date"?, "method"?, "frequency"?, "vat_cents"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, ("items", "customer"))
        customer = parse_customer(payload)
        if customer is None:
            raise MissingRequiredField.for_fields(["customer"])
        result = sales_service.draft_invoice(
            g.ctx,
            lines=parse_sale_lines(payload),
            customer=customer,
            payment_date=parse_datetime(payload.get("payment_date"), "payment_date"),
            method=parse_choice(payload.get("method"), "method", PAYMENT_METHODS, default="CASH"),
            frequency=parse_choice(payload.get("frequency"), "frequency", PAYMENT_FREQUENCIES, default="ONE_TIME"),
            vat_cents=parse_cents(payload.get("vat_cents", 0), "vat_cents"),
        )
        return jsonify(result.to_dict()), 201
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to draft invoice")
        return jsonify({"error": "InternalError", "message": "Internal server error", "details": {}}), 500


@invoices_bp.get("")
@require_context
def list_invoices_route():
    """Query params: status (DRAFT|PART_PAID|PAID|OVERDUE), limit, offset."""
    try:
        invoices = invoice_service.list_invoices(
            g.ctx,
            status=request.args.get("status"),
            limit=request.args.get("limit", default=100, type=int),
            offset=request.args.get("offset", default=0, type=int),
        )
        return jsonify({"invoices": [i.to_dict() for i in invoices], "count": len(invoices)}), 200
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status


@invoices_bp.get("/<invoice_no>")
@require_context
def get_invoice_route(invoice_no: str):
    try:
        invoice = invoice_service.get_invoice(g.ctx, invoice_no)
        return jsonify({"invoice": _invoice_detail(invoice)}), 200
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status


@invoices_bp.post("/<invoice_no>/payments")
@require_context
def pay_invoice_route(invoice_no: str):
    """Body: {"amount_cents", "method"?, "bank"?: {...}}"""
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, ("amount_cents",))
        bank = payload.get("bank")
        result = sales_service.record_invoice_payment(
            g.ctx,
            invoice_no=invoice_no,
            amount_cents=parse_cents(payload["amount_cents"], "amount_cents", minimum=1),
            method=parse_choice(payload.get("method"), "method", PAYMENT_METHODS, default="CASH"),
            bank=parse_bank(bank if isinstance(bank, dict) else None),
        )
        return jsonify(result.to_dict()), 201
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record invoice payment")
        return jsonify({"error": "InternalError", "message": "Internal server error", "details": {}}), 500


@invoices_bp.post("/<invoice_no>/resend")
@require_context
def resend_invoice_route(invoice_no: str):
    """Notify the invoice's customer again."""
    try:
        invoice = sales_service.resend_invoice(g.ctx, invoice_no=invoice_no)
        return jsonify({"invoice": invoice.to_dict(), "resent": True}), 200
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to resend invoice")
        return jsonify({"error": "InternalError", "message": "Internal server error", "details": {}}), 500
