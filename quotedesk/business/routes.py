from flask import Blueprint
from flask_login import login_required, current_user

from .. import db
from ..errors import ValidationError
from ..models import Business
from ..quotations.numbering import is_valid_prefix
from ..utils import clean, json_object, json_payload, money_str, ok, to_amount

business_bp = Blueprint("business", __name__)

ADDRESS_FIELDS = (
    ("street", "street"),
    ("city", "city"),
    ("state", "state"),
    ("zipCode", "zip_code"),
    ("country", "country"),
)


def business_json(b: Business):
    return {
        "id": b.id,
        "name": b.name,
        "description": b.description,
        "email": b.email,
        "phone": b.phone,
        "logo": b.logo_url,
        "address": {key: getattr(b, attr) for key, attr in ADDRESS_FIELDS},
        "settings": {
            "theme": b.theme,
            "quotationPrefix": b.quotation_prefix,
            "taxRate": money_str(b.tax_rate),
            "currency": b.currency,
        },
    }


def apply_business(b: Business, data, creating=False):
    if creating or "name" in data:
        name = clean(data.get("name"), 50, "Name")
        if not name:
            raise ValidationError("Please add a business name")
        b.name = name

    if creating or "email" in data:
        email = clean(data.get("email"), 120, "Email")
        if not email:
            raise ValidationError("Please add an email")
        b.email = email.lower()

    if "description" in data:
        b.description = clean(data.get("description"), 500, "Description")
    if "phone" in data:
        b.phone = clean(data.get("phone"), 50, "Phone")

    address = data.get("address")
    if isinstance(address, dict):
        for key, attr in ADDRESS_FIELDS:
            if key in address:
                setattr(b, attr, clean(address.get(key), 200, key))

    settings = json_object(data, "settings")
    if "quotationPrefix" in settings:
        prefix = str(settings.get("quotationPrefix") or "").strip().upper()
        if not is_valid_prefix(prefix):
            raise ValidationError("quotationPrefix must be 1-10 letters or digits")
        b.quotation_prefix = prefix
    if "taxRate" in settings:
        rate = to_amount(settings.get("taxRate"), "taxRate")
        if rate < 0 or rate > 100:
            raise ValidationError("taxRate must be between 0 and 100")
        b.tax_rate = rate
    if settings.get("currency"):
        b.currency = str(settings["currency"]).strip().upper()[:10]
    if settings.get("theme"):
        b.theme = clean(settings.get("theme"), 50, "theme")


@business_bp.route("", methods=["GET"])
@login_required
def get_business():
    return ok(business_json(db.get_or_404(Business, current_user.business_id)))


@business_bp.route("", methods=["PUT"])
@login_required
def update_business():
    b = db.get_or_404(Business, current_user.business_id)
    apply_business(b, json_payload())
    db.session.commit()
    return ok(business_json(b))
