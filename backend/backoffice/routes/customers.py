# backend/backoffice/routes/customers.py
"""Customer routes."""

from flask import Blueprint, jsonify, g

from ..services import customer_service
from ..decorators import require_context

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/debtors")
@require_context
def list_debtors_route():
    """Customers with an outstanding balance on any payment plan."""
    debtors = customer_service.list_debtors(company_id=g.ctx.company_id, tenant_id=g.ctx.tenant_id)
    return jsonify({"customers": [c.to_dict() for c in debtors], "count": len(debtors)}), 200
