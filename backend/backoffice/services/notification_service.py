# Overview: Post-commit "send invoice" notifications over a blinker signal.

from __future__ import annotations

from blinker import Namespace
from flask import current_app

_signals = Namespace()

# Sent with sender=app and keyword args invoice_no, email, tenant_id, company_id.
invoice_issued = _signals.signal("invoice-issued")


def _log_invoice_issued(sender, **kwargs):
    current_app.logger.info(
        "Invoice %s queued for delivery to %s",
        kwargs.get("invoice_no"),
        kwargs.get("email"),
    )


invoice_issued.connect(_log_invoice_issued)


def dispatch_invoice_issued(*, invoice_no: str, email: str | None, tenant_id: int, company_id: int) -> int:
    """
    Fire-and-forget: call only after the unit of work has committed.

    Each receiver runs in isolation; a failing receiver is logged and never
    reaches the caller. Returns the number of receivers that succeeded.
    """
    if not email:
        return 0

    app = current_app._get_current_object()
    delivered = 0
    for receiver in invoice_issued.receivers_for(app):
        try:
            receiver(app, invoice_no=invoice_no, email=email, tenant_id=tenant_id, company_id=company_id)
            delivered += 1
        except Exception:
            current_app.logger.exception("Invoice notification receiver failed for %s", invoice_no)
    return delivered
