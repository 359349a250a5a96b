"""
Multi-Tenant Service: company context resolution and scoping helpers.

Every engine operation runs for exactly one (tenant, company) pair. The
identity layer upstream hands us {user_id, company_id, tenant_id, email};
the only check made here is that the company belongs to the tenant.

SECURITY INVARIANTS:
1. Every scoped read and write filters by tenant_id AND company_id
2. A company id from client input is never trusted without its tenant
3. Cross-tenant access attempts are logged and rejected
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import NotFound, TenantScopeError
from ..extensions import db
from ..models import Company, Tenant


@dataclass(frozen=True)
class CompanyContext:
    tenant_id: int
    company_id: int
    user_id: int | None = None
    email: str | None = None


def resolve_company_context(
    *,
    tenant_id: int,
    company_id: int,
    user_id: int | None = None,
    email: str | None = None,
) -> CompanyContext:
    """
    Validate that company_id belongs to tenant_id and build the context.

    Raises TenantScopeError for unknown, foreign or inactive companies.
    """
    company = db.session.query(Company).filter_by(id=company_id).first()
    if company is None or company.tenant_id != tenant_id:
        current_app.logger.warning(
            "Rejected company context tenant_id=%s company_id=%s user_id=%s",
            tenant_id,
            company_id,
            user_id,
        )
        raise TenantScopeError(
            "Company not found in tenant",
            details={"tenant_id": tenant_id, "company_id": company_id},
        )
    if not company.is_active:
        raise TenantScopeError("Company is inactive", details={"company_id": company_id})

    return CompanyContext(tenant_id=tenant_id, company_id=company_id, user_id=user_id, email=email)


def get_company(ctx: CompanyContext) -> Company:
    company = (
        db.session.query(Company)
        .filter_by(id=ctx.company_id, tenant_id=ctx.tenant_id)
        .first()
    )
    if company is None:
        raise NotFound("Company not found", details={"company_id": ctx.company_id})
    return company


def create_tenant(name: str) -> Tenant:
    tenant = Tenant(name=name)
    db.session.add(tenant)
    db.session.flush()
    return tenant


def create_company(*, tenant_id: int, name: str, email: str | None = None) -> Company:
    if db.session.query(Tenant).filter_by(id=tenant_id).first() is None:
        raise NotFound("Tenant not found", details={"tenant_id": tenant_id})
    company = Company(tenant_id=tenant_id, name=name, email=email, is_active=True)
    db.session.add(company)
    db.session.flush()
    return company
