# Overview: JSON body parsing shared by the API routes.

from __future__ import annotations

from ..errors import InvalidValue
from ..services.sales_service import (
    BankDetails,
    CustomerInput,
    IncomingItem,
    PaymentInput,
    SaleLine,
    SupplierInput,
)
from ..validation import (
    PAYMENT_FREQUENCIES,
    PAYMENT_METHODS,
    optional_str,
    parse_cents,
    parse_choice,
    parse_datetime,
    parse_int,
    require_fields,
)


def _object(payload: dict, key: str) -> dict | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise InvalidValue(f"{key} must be an object", details={"field": key})
    return value


def _list(payload: dict, key: str) -> list:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidValue(f"{key} must be a list", details={"field": key})
    return value


def parse_customer(payload: dict, key: str = "customer") -> CustomerInput | None:
    data = _object(payload, key)
    if data is None:
        return None
    require_fields(data, ("name", "phone"))
    return CustomerInput(
        name=str(data["name"]).strip(),
        phone=str(data["phone"]).strip(),
        email=optional_str(data.get("email")),
        address=optional_str(data.get("address")),
    )


def parse_bank(data: dict | None) -> BankDetails | None:
    if data is None:
        return None
    return BankDetails(
        bank_name=optional_str(data.get("bank_name")) or "",
        account_number=optional_str(data.get("account_number")) or "",
        account_name=optional_str(data.get("account_name")),
    )


def parse_payment(payload: dict, key: str = "payment") -> PaymentInput | None:
    """
    {"balance_owed_cents", "method", "frequency", "vat_cents",
     "amount_cents", "total_pay_cents", "paid_at", "bank": {...}}
    """
    data = _object(payload, key)
    if data is None:
        return None

    amount = data.get("amount_cents")
    total_pay = data.get("total_pay_cents")
    return PaymentInput(
        balance_owed_cents=parse_cents(data.get("balance_owed_cents", 0), "balance_owed_cents"),
        method=parse_choice(data.get("method"), "method", PAYMENT_METHODS, default="CASH"),
        frequency=parse_choice(data.get("frequency"), "frequency", PAYMENT_FREQUENCIES, default="ONE_TIME"),
        vat_cents=parse_cents(data.get("vat_cents", 0), "vat_cents"),
        amount_cents=parse_cents(amount, "amount_cents") if amount is not None else None,
        total_pay_cents=parse_cents(total_pay, "total_pay_cents") if total_pay is not None else None,
        bank=parse_bank(_object(data, "bank")),
        paid_at=parse_datetime(data.get("paid_at"), "paid_at"),
    )


def parse_sale_lines(payload: dict, key: str = "items") -> list[SaleLine]:
    lines = []
    for index, raw in enumerate(_list(payload, key)):
        if not isinstance(raw, dict):
            raise InvalidValue(f"{key}[{index}] must be an object", details={"position": index})
        require_fields(raw, ("sku", "quantity", "price_per_unit_cents"))
        lines.append(
            SaleLine(
                sku=str(raw["sku"]).strip(),
                quantity=parse_int(raw["quantity"], "quantity", minimum=1),
                price_per_unit_cents=parse_cents(raw["price_per_unit_cents"], "price_per_unit_cents"),
            )
        )
    return lines


def parse_supplier(data: dict | None) -> SupplierInput | None:
    if data is None:
        return None
    require_fields(data, ("name", "phone"))
    return SupplierInput(
        name=str(data["name"]).strip(),
        phone=str(data["phone"]).strip(),
        email=optional_str(data.get("email")),
    )


def parse_incoming_item(raw: dict, *, minimum_quantity: int = 1) -> IncomingItem:
    """
    Product fields for swaps, buybacks and inbound supply. Product details
    (name, brand, type) are only checked when a new product is created.
    """
    if not isinstance(raw, dict):
        raise InvalidValue("item must be an object")
    require_fields(raw, ("quantity",))
    price = raw.get("price_per_unit_cents")
    return IncomingItem(
        quantity=parse_int(raw["quantity"], "quantity", minimum=minimum_quantity),
        sku=optional_str(raw.get("sku")),
        name=optional_str(raw.get("name")),
        brand=optional_str(raw.get("brand")),
        product_type=optional_str(raw.get("type")),
        description=optional_str(raw.get("description")),
        serial_no=optional_str(raw.get("serial_no")),
        condition=parse_choice(raw.get("condition"), "condition", ("NEW", "USED"), default="USED"),
        price_per_unit_cents=parse_cents(price, "price_per_unit_cents") if price is not None else None,
        cost_price_cents=parse_cents(raw.get("cost_price_cents", 0), "cost_price_cents"),
        supplier=parse_supplier(_object(raw, "supplier")),
    )


def parse_incoming_items(payload: dict, key: str = "incoming") -> list[IncomingItem]:
    return [parse_incoming_item(raw) for raw in _list(payload, key)]
