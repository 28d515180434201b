# quotedesk/quotations/routes.py

from io import BytesIO

from flask import Blueprint, request, send_file
from flask_login import login_required, current_user

from .. import db
from ..errors import ValidationError
from ..models import Business, Quotation, Template
from ..utils import json_payload, money_str, ok
from . import service
from . import status as st
from .pdf import render_quotation_pdf

quotations_bp = Blueprint("quotations", __name__)


# -------------------------
# Serialization
# -------------------------
def quotation_summary(q: Quotation):
    return {
        "id": q.id,
        "quotation_number": q.quotation_number,
        "status": q.status,
        "customer": {"name": q.customer_name},
        "currency": q.currency,
        "total": money_str(q.total),
        "valid_until": q.valid_until.isoformat() if q.valid_until else None,
        "item_count": q.item_count,
        "created_at": q.created_at.isoformat() if q.created_at else None,
    }


def quotation_detail(q: Quotation):
    data = quotation_summary(q)
    data.update({
        "customer": {
            "name": q.customer_name,
            "email": q.customer_email,
            "phone": q.customer_phone,
            "address": {
                "street": q.customer_street,
                "city": q.customer_city,
                "state": q.customer_state,
                "zipCode": q.customer_zip_code,
                "country": q.customer_country,
            },
        },
        "items": [{
            "id": it.id,
            "item_id": it.catalog_item_id,
            "name": it.item_name,
            "description": it.description,
            "quantity": it.quantity,
            "unit_price": money_str(it.unit_price),
            "discount": money_str(it.discount_percent),
            "tax": money_str(it.tax_percent),
            "subtotal": money_str(it.subtotal),
            "tax_amount": money_str(it.tax_amount),
        } for it in q.items],
        "subtotal": money_str(q.subtotal),
        "tax_total": money_str(q.tax_total),
        "discount_total": money_str(q.discount_total),
        "notes": q.notes,
        "terms": q.terms,
        "days_until_expiry": q.days_until_expiry(),
        "status_history": [{
            "status": h.status,
            "date": h.changed_at.isoformat() if h.changed_at else None,
            "updated_by": h.changed_by_id,
        } for h in q.status_history],
        "updated_at": q.updated_at.isoformat() if q.updated_at else None,
    })
    return data


# -------------------------
# Helpers
# -------------------------
def _business():
    return db.get_or_404(Business, current_user.business_id)


def _get_quotation(quotation_id) -> Quotation:
    return (Quotation.query
            .filter_by(id=quotation_id, business_id=current_user.business_id)
            .first_or_404(description="Quotation not found"))


# -------------------------
# CRUD
# -------------------------
@quotations_bp.route("", methods=["GET"])
@login_required
def list_quotations():
    qs = (Quotation.query
          .filter_by(business_id=current_user.business_id)
          .order_by(Quotation.created_at.desc(), Quotation.id.desc()))

    status = st.normalize(request.args.get("status"))
    if status:
        if status not in st.STATUSES:
            raise ValidationError(f"Unknown status '{status}'")
        qs = qs.filter(Quotation.status == status)

    return ok([quotation_summary(q) for q in qs.all()])


@quotations_bp.route("", methods=["POST"])
@login_required
def create_quotation():
    q = service.create_quotation(_business(), current_user, json_payload())
    return ok(quotation_detail(q), 201)


@quotations_bp.route("/<int:quotation_id>", methods=["GET"])
@login_required
def get_quotation(quotation_id):
    return ok(quotation_detail(_get_quotation(quotation_id)))


@quotations_bp.route("/<int:quotation_id>", methods=["PUT"])
@login_required
def update_quotation(quotation_id):
    q = service.update_quotation(_get_quotation(quotation_id), json_payload())
    return ok(quotation_detail(q))


@quotations_bp.route("/<int:quotation_id>", methods=["DELETE"])
@login_required
def delete_quotation(quotation_id):
    service.delete_quotation(_get_quotation(quotation_id))
    return ok({})


# -------------------------
# Status / duplicate / PDF
# -------------------------
@quotations_bp.route("/<int:quotation_id>/status", methods=["PUT"])
@login_required
def update_status(quotation_id):
    q = _get_quotation(quotation_id)
    new_status = json_payload().get("status")
    if not new_status:
        raise ValidationError("status is required")
    q = service.change_status(q, new_status, current_user)
    return ok(quotation_detail(q))


@quotations_bp.route("/<int:quotation_id>/duplicate", methods=["POST"])
@login_required
def duplicate_quotation(quotation_id):
    nq = service.duplicate_quotation(_get_quotation(quotation_id), current_user)
    return ok(quotation_detail(nq), 201)


@quotations_bp.route("/<int:quotation_id>/pdf", methods=["POST"])
@login_required
def generate_pdf(quotation_id):
    q = _get_quotation(quotation_id)
    business = _business()

    template_id = json_payload().get("template_id")
    if template_id:
        template = (Template.query
                    .filter_by(id=template_id, business_id=business.id)
                    .first_or_404(description="Template not found"))
    else:
        template = (Template.query
                    .filter_by(business_id=business.id, type="quotation", is_default=True)
                    .first())

    pdf = render_quotation_pdf(q, business, template)

    filename = f"quotation-{q.quotation_number}.pdf"
    return send_file(BytesIO(pdf), as_attachment=True, download_name=filename, mimetype="application/pdf")
