from flask import Blueprint
from flask_login import login_user, logout_user, login_required, current_user

from .. import db
from ..business.routes import apply_business, business_json
from ..errors import ValidationError
from ..models import Business, User
from ..utils import clean, json_object, json_payload, ok

auth_bp = Blueprint("auth", __name__)


def user_json(user: User):
    return {"id": user.id, "email": user.email, "name": user.name, "business_id": user.business_id}


@auth_bp.route("/register", methods=["POST"])
def register():
    data = json_payload()

    email = (clean(data.get("email"), 120, "Email") or "").lower()
    password = str(data.get("password") or "")
    name = clean(data.get("name"), 120, "Name")
    if not email or not name:
        raise ValidationError("name and email are required")
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")
    if User.query.filter_by(email=email).first():
        raise ValidationError("A user with this email already exists")

    business = Business()
    apply_business(business, json_object(data, "business"), creating=True)
    db.session.add(business)
    db.session.flush()

    user = User(email=email, name=name, business_id=business.id, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    login_user(user)
    return ok({"user": user_json(user), "business": business_json(business)}, 201)


@auth_bp.route("/login", methods=["POST"])
def login():
    data = json_payload()
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")

    user = User.query.filter_by(email=email, is_active=True).first()
    if not user or not user.check_password(password):
        return {"success": False, "error": "invalid_credentials", "message": "Invalid credentials"}, 401

    login_user(user)
    return ok(user_json(user))


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return ok({})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return ok(user_json(current_user))
