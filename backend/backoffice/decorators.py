# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import TenantScopeError
from .services.tenant_service import resolve_company_context

TENANT_HEADER = "X-Tenant-Id"
COMPANY_HEADER = "X-Company-Id"
USER_HEADER = "X-User-Id"
EMAIL_HEADER = "X-User-Email"


def _header_int(name: str) -> int | None:
    raw = request.headers.get(name)
    if raw is None or not raw.strip():
        return None
    raw = raw.strip()
    if not raw.isdigit():
        raise ValueError(name)
    return int(raw)


def require_context(f):
    """
    Establish the company context for the request.

    MULTI-TENANT: The identity layer in front of this service authenticates
    the caller and forwards X-Tenant-Id, X-Company-Id, X-User-Id and
    X-User-Email. Sets:
    - g.ctx: CompanyContext(tenant_id, company_id, user_id, email)

    Returns 401 when tenant or company is missing, 400 when a header is
    malformed, and 403 when the company is not part of the tenant.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            tenant_id = _header_int(TENANT_HEADER)
            company_id = _header_int(COMPANY_HEADER)
            user_id = _header_int(USER_HEADER)
        except ValueError as e:
            return jsonify({"error": "InvalidValue", "message": f"{e} must be an integer", "details": {}}), 400

        if tenant_id is None or company_id is None:
            return jsonify({"error": "Unauthenticated", "message": "Company context required", "details": {}}), 401

        try:
            g.ctx = resolve_company_context(
                tenant_id=tenant_id,
                company_id=company_id,
                user_id=user_id,
                email=request.headers.get(EMAIL_HEADER),
            )
        except TenantScopeError as e:
            return jsonify(e.to_dict()), e.http_status

        return f(*args, **kwargs)

    return decorated_function
