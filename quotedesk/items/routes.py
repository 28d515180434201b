from decimal import Decimal

from flask import Blueprint, request
from flask_login import login_required, current_user

from .. import db
from ..errors import ValidationError
from ..models import Business, CatalogItem, QuotationItem
from ..utils import clean, json_payload, money_str, ok, to_amount

items_bp = Blueprint("items", __name__)

ITEM_TYPES = ("product", "service")
TAX_NAMES = ("VAT", "Custom")


def item_json(it: CatalogItem):
    return {
        "id": it.id,
        "name": it.name,
        "type": it.type,
        "description": it.description,
        "price": money_str(it.price),
        "currency": it.currency,
        "tax": {
            "name": it.tax_name,
            "rate": money_str(it.tax_rate),
            "description": it.tax_description,
        } if it.has_tax else None,
        "price_with_tax": money_str(it.price_with_tax.quantize(Decimal("0.01"))),
        "is_active": bool(it.is_active),
    }


def _apply(it: CatalogItem, data, creating=False):
    if creating or "name" in data:
        name = clean(data.get("name"), 100, "Name")
        if not name:
            raise ValidationError("Please add a name")
        it.name = name

    if creating or "type" in data:
        item_type = str(data.get("type") or "product").strip().lower()
        if item_type not in ITEM_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(ITEM_TYPES)}")
        it.type = item_type

    if "description" in data:
        it.description = clean(data.get("description"), 500, "Description")

    if creating or "price" in data:
        if data.get("price") is None:
            raise ValidationError("Please add a price")
        price = to_amount(data.get("price"), "Price")
        if price < 0:
            raise ValidationError("Price cannot be negative")
        it.price = price

    if "currency" in data and data.get("currency"):
        it.currency = str(data["currency"]).strip().upper()[:10]

    if "tax" in data:
        tax = data.get("tax")
        if not tax:
            it.tax_name = it.tax_rate = it.tax_description = None
        else:
            if not isinstance(tax, dict):
                raise ValidationError("tax must be an object")
            tax_name = str(tax.get("name") or "").strip()
            if tax_name not in TAX_NAMES:
                raise ValidationError(f"tax.name must be one of: {', '.join(TAX_NAMES)}")
            rate = to_amount(tax.get("rate"), "Tax rate")
            if rate < 0 or rate > 100:
                raise ValidationError("Tax rate must be between 0 and 100")
            it.tax_name = tax_name
            it.tax_rate = rate
            it.tax_description = clean(tax.get("description"), 250, "Tax description")

    if "is_active" in data:
        it.is_active = bool(data.get("is_active"))

    # services are not charged VAT
    if it.type == "service" and it.tax_name == "VAT":
        it.tax_name = it.tax_rate = it.tax_description = None


def _get_item(item_id) -> CatalogItem:
    return (CatalogItem.query
            .filter_by(id=item_id, business_id=current_user.business_id)
            .first_or_404(description="Item not found"))


@items_bp.route("", methods=["GET"])
@login_required
def list_items():
    qs = CatalogItem.query.filter_by(business_id=current_user.business_id)

    item_type = (request.args.get("type") or "").strip().lower()
    if item_type:
        qs = qs.filter(CatalogItem.type == item_type)

    items = qs.order_by(CatalogItem.name.asc(), CatalogItem.id.asc()).all()
    return ok([item_json(it) for it in items])


@items_bp.route("", methods=["POST"])
@login_required
def create_item():
    business = db.session.get(Business, current_user.business_id)
    it = CatalogItem(business_id=business.id, currency=business.currency, is_active=True)
    _apply(it, json_payload(), creating=True)

    db.session.add(it)
    db.session.commit()
    return ok(item_json(it), 201)


@items_bp.route("/<int:item_id>", methods=["GET"])
@login_required
def get_item(item_id):
    return ok(item_json(_get_item(item_id)))


@items_bp.route("/<int:item_id>", methods=["PUT"])
@login_required
def update_item(item_id):
    it = _get_item(item_id)
    _apply(it, json_payload())
    db.session.commit()
    return ok(item_json(it))


@items_bp.route("/<int:item_id>", methods=["DELETE"])
@login_required
def delete_item(item_id):
    it = _get_item(item_id)

    # quotation lines keep their name/price snapshot
    (QuotationItem.query
     .filter_by(catalog_item_id=it.id)
     .update({"catalog_item_id": None}, synchronize_session=False))

    db.session.delete(it)
    db.session.commit()
    return ok({})
