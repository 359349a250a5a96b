# backend/backoffice/routes/products.py
"""
Product routes: inbound supply, lookup, restock and soft delete.

MULTI-TENANT: All product operations are scoped to g.ctx (set by
@require_context); a SKU is only ever resolved inside the caller's company.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import BackOfficeError
from ..services import sales_service, stock_service
from ..services.stock_service import ProductKey
from ..validation import parse_int, require_fields
from ..decorators import require_context
from .payloads import parse_incoming_item

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("")
@require_context
def create_product_route():
    """
    Create a product from inbound supply.

    Body: {"name", "quantity", "sku"?, "brand"?, "type"?, "condition"?,
           "price_per_unit_cents"?, "cost_price_cents"?, "supplier"?: {"name", "phone"}}
    A missing sku is generated from the product type.
    """
    payload = request.get_json(silent=True) or {}
    try:
        require_fields(payload, ("name", "quantity"))
        item = parse_incoming_item({"condition": "NEW", **payload}, minimum_quantity=0)
        product = sales_service.receive_product(g.ctx, item=item)
        return jsonify({"product": product.to_dict()}), 201
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "InternalError", "message": "Internal server error", "details": {}}), 500


@products_bp.get("/<sku>")
@require_context
def get_product_route(sku: str):
    try:
        product = stock_service.get_product(ProductKey(sku, g.ctx.company_id, g.ctx.tenant_id))
        return jsonify({"product": product.to_dict()}), 200
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status


@products_bp.post("/<sku>/restock")
@require_context
def restock_product_route(sku: str):
    """Body: {"quantity": int > 0}"""
    payload = request.get_json(silent=True) or {}
    try:
        quantity = parse_int(payload.get("quantity"), "quantity", minimum=1)
        product = sales_service.restock_product(g.ctx, sku=sku, quantity=quantity)
        return jsonify({"product": product.to_dict()}), 200
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return jsonify({"error": "InternalError", "message": "Internal server error", "details": {}}), 500


@products_bp.delete("/<sku>")
@require_context
def delete_product_route(sku: str):
    """Soft delete: the product stays referenced by past transactions."""
    try:
        product = sales_service.remove_product(g.ctx, sku=sku)
        return jsonify({"product": product.to_dict()}), 200
    except BackOfficeError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "InternalError", "message": "Internal server error", "details": {}}), 500
