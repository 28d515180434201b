# quotedesk/quotations/service.py
"""
Quotation document operations used by the HTTP layer and the CLI.

Totals are always recomputed from the line items being saved; a stored
total is never used as an input.
"""

import logging
from collections import namedtuple
from datetime import date, timedelta

from flask import current_app

from .. import db
from ..errors import EmptyQuotation, InvalidLineValue, QuotationLocked, ValidationError
from ..models import CatalogItem, Quotation, QuotationItem, QuotationStatusHistory
from ..utils import clean, parse_date
from . import status as st
from .calculator import LineItem, compute_lines, totals_from_amounts
from .numbering import RetryPolicy, allocate_and_persist
from .store import QuotationNumberStore, commit_or_collide

log = logging.getLogger(__name__)

# a line ready to be computed, plus the catalog snapshot stored with it
DraftLine = namedtuple("DraftLine", "item name description")

ADDRESS_FIELDS = (
    ("street", "customer_street"),
    ("city", "customer_city"),
    ("state", "customer_state"),
    ("zipCode", "customer_zip_code"),
    ("country", "customer_country"),
)


def _prefix(business):
    return business.quotation_prefix or current_app.config.get("DEFAULT_QUOTATION_PREFIX", "QT")


def _policy():
    return RetryPolicy.from_config(current_app.config)


def _line_tax(raw, cat, business):
    if raw.get("tax") is not None:
        tax = raw["tax"]
        return tax.get("rate") if isinstance(tax, dict) else tax
    if cat.has_tax:
        return cat.tax_rate
    return business.tax_rate or 0


def build_lines(business, raw_items):
    """
    Resolve posted lines against the business catalog.
    Catalog refs belonging to another business are treated as unknown.
    """
    if raw_items is None:
        raw_items = []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    lines = []
    for idx, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            raise InvalidLineValue("Each item must be an object", line=idx)

        ref = raw.get("item_id", raw.get("item"))
        cat = None
        if str(ref).isdigit():
            cat = CatalogItem.query.filter_by(id=int(ref), business_id=business.id).first()
        if not cat:
            raise InvalidLineValue(f"Unknown catalog item '{ref}'", line=idx)

        unit_price = raw.get("unit_price")
        if unit_price is None:
            unit_price = cat.price

        lines.append(DraftLine(
            item=LineItem(
                catalog_item_ref=cat.id,
                quantity=raw.get("quantity"),
                unit_price=unit_price,
                discount_percent=raw.get("discount", 0),
                tax_percent=_line_tax(raw, cat, business),
            ),
            name=cat.name,
            description=cat.description,
        ))
    return lines


def _lines_from_items(q: Quotation):
    return [
        DraftLine(
            item=LineItem(
                catalog_item_ref=it.catalog_item_id,
                quantity=it.quantity,
                unit_price=it.unit_price,
                discount_percent=it.discount_percent,
                tax_percent=it.tax_percent,
            ),
            name=it.item_name,
            description=it.description,
        )
        for it in q.items
    ]


def _compute(lines):
    """Validate and price the lines. Raises before anything is written."""
    if not lines:
        raise EmptyQuotation("A quotation needs at least one item")
    amounts = compute_lines([ln.item for ln in lines])
    return amounts, totals_from_amounts(amounts)


def _apply_lines(q: Quotation, lines, amounts, totals):
    q.items = [
        QuotationItem(
            catalog_item_id=amt.item.catalog_item_ref,
            item_name=ln.name,
            description=ln.description,
            quantity=amt.item.quantity,
            unit_price=amt.item.unit_price,
            discount_percent=amt.item.discount_percent,
            tax_percent=amt.item.tax_percent,
            subtotal=amt.rounded_subtotal,
            tax_amount=amt.rounded_tax_amount,
            sort_order=idx,
        )
        for idx, (ln, amt) in enumerate(zip(lines, amounts), start=1)
    ]
    q.subtotal = totals.subtotal
    q.tax_total = totals.tax_total
    q.discount_total = totals.discount_total
    q.total = totals.total


def _apply_customer(q: Quotation, customer):
    if not isinstance(customer, dict):
        raise ValidationError("customer must be an object")

    if "name" in customer or not q.customer_name:
        name = clean(customer.get("name"), 200, "Customer name")
        if not name:
            raise ValidationError("Customer name is required")
        q.customer_name = name

    if "email" in customer:
        q.customer_email = clean(customer.get("email"), 120, "Customer email")
    if "phone" in customer:
        q.customer_phone = clean(customer.get("phone"), 50, "Customer phone")

    address = customer.get("address")
    if isinstance(address, dict):
        for key, attr in ADDRESS_FIELDS:
            if key in address:
                setattr(q, attr, clean(address.get(key), 200, key))


def _apply_fields(q: Quotation, payload):
    if "customer" in payload:
        _apply_customer(q, payload.get("customer") or {})
    if "notes" in payload:
        q.notes = clean(payload.get("notes"))
    if "terms" in payload:
        q.terms = clean(payload.get("terms"))
    if payload.get("currency"):
        q.currency = str(payload["currency"]).strip().upper()[:10]
    if "valid_until" in payload:
        valid_until = parse_date(payload.get("valid_until"), "valid_until")
        if not valid_until:
            raise ValidationError("valid_until is required")
        q.valid_until = valid_until


def _record_status(q: Quotation, status, user=None):
    q.status_history.append(QuotationStatusHistory(
        status=status,
        changed_by_id=user.id if user is not None else None,
    ))


def _create(business, user, lines, amounts, totals, fill):
    business_id = business.id
    user_id = user.id if user is not None else None

    def persist(number):
        q = Quotation(
            quotation_number=number,
            business_id=business_id,
            status=st.DRAFT,
            currency=business.currency,
            created_by_id=user_id,
        )
        fill(q)
        _apply_lines(q, lines, amounts, totals)
        _record_status(q, st.DRAFT, user)
        db.session.add(q)
        commit_or_collide()
        return q

    q = allocate_and_persist(QuotationNumberStore(), business_id, persist,
                             prefix=_prefix(business), policy=_policy())
    log.info("Created quotation %s for business %s (total %s)", q.quotation_number, business_id, q.total)
    return q


# -------------------------
# Operations
# -------------------------
def create_quotation(business, user, payload):
    lines = build_lines(business, payload.get("items"))
    amounts, totals = _compute(lines)

    if not isinstance(payload.get("customer"), dict):
        raise ValidationError("Customer name is required")

    valid_days = current_app.config.get("DEFAULT_VALIDITY_DAYS", 30)

    def fill(q):
        _apply_fields(q, {k: v for k, v in payload.items() if k != "valid_until"})
        q.valid_until = (parse_date(payload.get("valid_until"), "valid_until")
                         or date.today() + timedelta(days=valid_days))

    # validate the document fields once before touching the numbering sequence
    fill(Quotation())

    return _create(business, user, lines, amounts, totals, fill)


def update_quotation(q: Quotation, payload):
    if st.is_final(q.status):
        raise QuotationLocked(f"Quotation {q.quotation_number} is {q.status} and can no longer be edited")

    if "items" in payload:
        lines = build_lines(q.business, payload.get("items"))
        amounts, totals = _compute(lines)
        _apply_fields(q, payload)
        _apply_lines(q, lines, amounts, totals)
    else:
        _apply_fields(q, payload)

    db.session.commit()
    return q


def change_status(q: Quotation, new_status, user=None):
    old = q.status
    q.status = st.check_transition(old, new_status)
    _record_status(q, q.status, user)
    db.session.commit()
    log.info("Quotation %s status %s -> %s", q.quotation_number, old, q.status)
    return q


def duplicate_quotation(q: Quotation, user=None):
    lines = _lines_from_items(q)
    amounts, totals = _compute(lines)

    source = {
        "customer_name": q.customer_name,
        "customer_email": q.customer_email,
        "customer_phone": q.customer_phone,
        "customer_street": q.customer_street,
        "customer_city": q.customer_city,
        "customer_state": q.customer_state,
        "customer_zip_code": q.customer_zip_code,
        "customer_country": q.customer_country,
        "currency": q.currency,
        "valid_until": q.valid_until,
        "notes": q.notes,
        "terms": q.terms,
    }

    def fill(nq):
        for key, val in source.items():
            setattr(nq, key, val)

    return _create(q.business, user, lines, amounts, totals, fill)


def delete_quotation(q: Quotation):
    number = q.quotation_number
    db.session.delete(q)
    db.session.commit()
    log.info("Deleted quotation %s", number)


def expire_overdue(today=None, business_id=None):
    """Move open quotations past valid_until to expired. Returns the number changed."""
    today = today or date.today()
    qs = (Quotation.query
          .filter(Quotation.status.in_(st.OPEN_STATUSES))
          .filter(Quotation.valid_until < today))
    if business_id is not None:
        qs = qs.filter(Quotation.business_id == business_id)

    count = 0
    for q in qs.all():
        if st.is_past_validity(q.valid_until, today):
            q.status = st.EXPIRED
            _record_status(q, st.EXPIRED)
            count += 1

    db.session.commit()
    log.info("Expired %d quotation(s) past validity as of %s", count, today)
    return count
