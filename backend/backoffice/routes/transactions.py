# backend/backoffice/routes/transactions.py
"""
Transaction routes: sell, bulk sell, swap, buyback, installments and
price corrections, plus read access to recorded transactions.

Every write goes through sales_service, which runs it as one unit of
work; a failure at any step leaves stock, transactions, plans and
invoices untouched.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import BackOfficeError, InvalidValue
from ..services import invoice_service, payment_plan_service, sales_service, transaction_service
from ..services.sales_service import PaymentInput
from ..services.transaction_service import SOLD_KINDS, TransactionKind
from ..validation import PAYMENT_METHODS, parse_cents, parse_choice, parse_int, require_fields
from ..decorators import require_context
from .payloads import (
    parse_bank,
    parse_customer,
    parse_incoming_item,
    parse_incoming_items,
    parse_payment,
    parse_sale_lines,
)

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "InternalError", "message": "Internal server error", "details": {}}), 500


def _transaction_detail(txn) -> dict:
    data = txn.to_dict()
    plan = txn.payment_plan
    if plan is not None:
        data["payment_plan"] = plan.to_dict()
        data["balance_owed_cents"] = payment_plan_service.current_balance(plan)
        data["plan_state"] = payment_plan_service.plan_state(plan)
    else:
        data["payment_plan"] = None
    invoice = invoice_service.get_invoice_for_transaction(txn.id)
    data["invoice"] = invoice.to_dict() if invoice else None
    return data


@transactions_bp.post("/sell/<sku>")
@require_context
def sell_route(sku: str):
    """
    Sell one product.

    Body: {"quantity", "price_per_unit_cents", "payment"?: {...}, "customer"?: {"name", "phone", "email"?}}
    Without a payment object the sale is fully paid in cash.
    """
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, ("quantity", "price_per_unit_cents"))
        result = sales_service.sell(
            g.ctx,
            sku=sku,
            quantity=parse_int(payload["quantity"], "quantity", minimum=1),
            price_per_unit_cents=parse_cents(payload["price_per_unit_cents"], "price_per_unit_cents"),
            payment=parse_payment(payload) or PaymentInput(),
            customer=parse_customer(payload),
        )
        return jsonify(result.to_dict()), 201
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        return _internal_error("Failed to sell product")


@transactions_bp.post("/bulk-sell")
@require_context
def bulk_sell_route():
    """Body: {"items": [{"sku", "quantity", "price_per_unit_cents"}, ...], "payment"?, "customer"?}"""
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, ("items",))
        result = sales_service.bulk_sell(
            g.ctx,
            lines=parse_sale_lines(payload),
            payment=parse_payment(payload) or PaymentInput(),
            customer=parse_customer(payload),
        )
        return jsonify(result.to_dict()), 201
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        return _internal_error("Failed to record bulk sale")


@transactions_bp.post("/swap/<sku>")
@require_context
def swap_route(sku: str):
    """
    Swap the product at <sku> for incoming items.

    Body: {"outgoing": {"quantity", "price_per_unit_cents"?},
           "incoming": [{"quantity", "sku"? | "name", "brand", "type", ...}],
           "payment"?, "customer"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, ("outgoing", "incoming"))
        outgoing = payload["outgoing"]
        if not isinstance(outgoing, dict):
            raise InvalidValue("outgoing must be an object", details={"field": "outgoing"})
        require_fields(outgoing, ("quantity",))
        out_price = outgoing.get("price_per_unit_cents")
        result = sales_service.swap(
            g.ctx,
            outgoing_sku=sku,
            outgoing_quantity=parse_int(outgoing["quantity"], "outgoing.quantity", minimum=1),
            outgoing_price_per_unit_cents=parse_cents(out_price, "outgoing.price_per_unit_cents") if out_price is not None else None,
            incoming=parse_incoming_items(payload),
            payment=parse_payment(payload),
            customer=parse_customer(payload),
        )
        return jsonify(result.to_dict()), 201
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        return _internal_error("Failed to swap product")


@transactions_bp.post("/buyback")
@require_context
def buyback_route():
    """Body: {"item": {...}, "seller": {"name", "phone", "email"?}, "price_per_unit_cents"?}"""
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, ("item", "seller"))
        price = payload.get("price_per_unit_cents", 0)
        result = sales_service.buyback(
            g.ctx,
            item=parse_incoming_item(payload["item"]),
            seller=parse_customer(payload, key="seller"),
            price_per_unit_cents=parse_cents(price, "price_per_unit_cents"),
        )
        return jsonify(result.to_dict()), 201
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        return _internal_error("Failed to record buyback")


@transactions_bp.get("/sold")
@require_context
def list_sold_route():
    limit = request.args.get("limit", default=100, type=int)
    offset = request.args.get("offset", default=0, type=int)
    txns = transaction_service.list_transactions(g.ctx, SOLD_KINDS, limit=limit, offset=offset)
    return jsonify({"transactions": [t.to_dict() for t in txns], "count": len(txns)}), 200


@transactions_bp.get("/swaps")
@require_context
def list_swaps_route():
    limit = request.args.get("limit", default=100, type=int)
    offset = request.args.get("offset", default=0, type=int)
    txns = transaction_service.list_transactions(g.ctx, (TransactionKind.SWAP,), limit=limit, offset=offset)
    return jsonify({"transactions": [t.to_dict() for t in txns], "count": len(txns)}), 200


@transactions_bp.get("/<int:transaction_id>")
@require_context
def get_transaction_route(transaction_id: int):
    try:
        txn = transaction_service.get_transaction(g.ctx, transaction_id)
        return jsonify({"transaction": _transaction_detail(txn)}), 200
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status


@transactions_bp.get("/items/<int:item_id>")
@require_context
def get_item_route(item_id: int):
    try:
        item = transaction_service.get_item(g.ctx, item_id)
        return jsonify({"item": item.to_dict(), "transaction": _transaction_detail(item.transaction)}), 200
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status


@transactions_bp.patch("/items/<int:item_id>/balance")
@require_context
def pay_balance_route(item_id: int):
    """
    Record an installment against the plan of the item's transaction.

    Body: {"amount_cents", "method"?, "bank"?: {...}}
    """
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, ("amount_cents",))
        item = transaction_service.get_item(g.ctx, item_id)
        bank = payload.get("bank")
        result = sales_service.record_payment(
            g.ctx,
            transaction_id=item.transaction_id,
            amount_cents=parse_cents(payload["amount_cents"], "amount_cents", minimum=1),
            method=parse_choice(payload.get("method"), "method", PAYMENT_METHODS, default="CASH"),
            bank=parse_bank(bank if isinstance(bank, dict) else None),
        )
        return jsonify(result.to_dict()), 200
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        return _internal_error("Failed to record payment")


@transactions_bp.patch("/items/<int:item_id>/price")
@require_context
def correct_price_route(item_id: int):
    """Body: {"total_price_cents"}; only allowed once the plan is settled."""
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, ("total_price_cents",))
        item = sales_service.correct_price(
            g.ctx,
            item_id=item_id,
            new_total_price_cents=parse_cents(payload["total_price_cents"], "total_price_cents"),
        )
        return jsonify({"item": item.to_dict()}), 200
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        return _internal_error("Failed to correct price")
