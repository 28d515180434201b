import re

from flask import Blueprint, request
from flask_login import login_required, current_user

from .. import db
from ..errors import ValidationError
from ..models import Template
from ..utils import clean, json_object, json_payload, ok

templates_bp = Blueprint("templates", __name__)

TEMPLATE_TYPES = ("quotation", "invoice")
LAYOUTS = ("modern", "classic", "professional", "minimal")
POSITIONS = ("left", "right")
_HEX_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

# request section -> {request key: column}
BOOL_SECTIONS = {
    "header": {
        "showLogo": "show_logo",
        "showBusinessInfo": "show_business_info",
        "showQuotationNumber": "show_quotation_number",
    },
    "footer": {
        "showTerms": "show_terms",
        "showSignature": "show_signature",
    },
}


def template_json(t: Template):
    return {
        "id": t.id,
        "name": t.name,
        "description": t.description,
        "type": t.type,
        "layout": t.layout,
        "is_default": bool(t.is_default),
        "style": {
            "primaryColor": t.primary_color,
            "fontFamily": t.font_family,
            "fontSize": t.font_size,
        },
        "sections": {
            "header": {
                "showLogo": bool(t.show_logo),
                "showBusinessInfo": bool(t.show_business_info),
                "showQuotationNumber": bool(t.show_quotation_number),
            },
            "customerInfo": {"position": t.customer_info_position},
            "footer": {
                "showTerms": bool(t.show_terms),
                "showSignature": bool(t.show_signature),
                "customText": t.footer_text,
            },
        },
    }


def _choice(val, allowed, field):
    val = str(val or "").strip().lower()
    if val not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(allowed)}")
    return val


def _apply(t: Template, data, creating=False):
    if creating or "name" in data:
        name = clean(data.get("name"), 120, "Name")
        if not name:
            raise ValidationError("Please provide a template name")
        t.name = name

    if "description" in data:
        t.description = clean(data.get("description"), 500, "Description")
    if "type" in data:
        t.type = _choice(data.get("type"), TEMPLATE_TYPES, "type")
    if "layout" in data:
        t.layout = _choice(data.get("layout"), LAYOUTS, "layout")
    if "is_default" in data:
        t.is_default = bool(data.get("is_default"))

    style = json_object(data, "style")
    if "primaryColor" in style:
        color = str(style.get("primaryColor") or "").strip()
        if not _HEX_RE.match(color):
            raise ValidationError("style.primaryColor must be a hex color like #1a73e8")
        t.primary_color = color
    if "fontFamily" in style:
        t.font_family = clean(style.get("fontFamily"), 50, "fontFamily") or "Arial"
    if "fontSize" in style:
        t.font_size = clean(style.get("fontSize"), 10, "fontSize") or "12px"

    sections = json_object(data, "sections")
    for section, fields in BOOL_SECTIONS.items():
        part = json_object(sections, section)
        for key, column in fields.items():
            if key in part:
                setattr(t, column, bool(part.get(key)))

    customer = json_object(sections, "customerInfo")
    if "position" in customer:
        t.customer_info_position = _choice(customer.get("position"), POSITIONS, "customerInfo.position")

    footer = json_object(sections, "footer")
    if "customText" in footer:
        t.footer_text = clean(footer.get("customText"), 500, "customText")


def _clear_other_defaults(t: Template):
    """Only one default template per business and type."""
    if not t.is_default:
        return
    (Template.query
     .filter(Template.business_id == t.business_id)
     .filter(Template.type == t.type)
     .filter(Template.id != t.id)
     .update({"is_default": False}, synchronize_session=False))


def _get_template(template_id) -> Template:
    return (Template.query
            .filter_by(id=template_id, business_id=current_user.business_id)
            .first_or_404(description="Template not found"))


@templates_bp.route("", methods=["GET"])
@login_required
def list_templates():
    qs = Template.query.filter_by(business_id=current_user.business_id)

    t_type = (request.args.get("type") or "").strip().lower()
    if t_type:
        qs = qs.filter(Template.type == t_type)

    rows = qs.order_by(Template.is_default.desc(), Template.name.asc()).all()
    return ok([template_json(t) for t in rows])


@templates_bp.route("", methods=["POST"])
@login_required
def create_template():
    t = Template(business_id=current_user.business_id, created_by_id=current_user.id,
                 type="quotation", layout="modern", is_default=False)
    _apply(t, json_payload(), creating=True)

    db.session.add(t)
    db.session.flush()
    _clear_other_defaults(t)
    db.session.commit()
    return ok(template_json(t), 201)


@templates_bp.route("/<int:template_id>", methods=["GET"])
@login_required
def get_template(template_id):
    return ok(template_json(_get_template(template_id)))


@templates_bp.route("/<int:template_id>", methods=["PUT"])
@login_required
def update_template(template_id):
    t = _get_template(template_id)
    _apply(t, json_payload())
    db.session.flush()
    _clear_other_defaults(t)
    db.session.commit()
    return ok(template_json(t))


@templates_bp.route("/<int:template_id>", methods=["DELETE"])
@login_required
def delete_template(template_id):
    db.session.delete(_get_template(template_id))
    db.session.commit()
    return ok({})
