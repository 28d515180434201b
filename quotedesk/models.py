from datetime import date, datetime
from decimal import Decimal
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from . import db, login_manager


# -------------------------
# Business (tenant) + Users
# -------------------------
class Business(db.Model):
    __tablename__ = "businesses"
    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(500))
    email = db.Column(db.String(120), nullable=False)
    phone = db.Column(db.String(50))

    # branding
    logo_url = db.Column(db.String(255))

    street = db.Column(db.String(200))
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    zip_code = db.Column(db.String(20))
    country = db.Column(db.String(100))

    # settings
    theme = db.Column(db.String(50), nullable=False, default="default")
    quotation_prefix = db.Column(db.String(10), nullable=False, default="QT")
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    currency = db.Column(db.String(10), nullable=False, default="USD")

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = db.relationship("User", backref="business", lazy="dynamic")


class User(db.Model, UserMixin):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    password_hash = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, default=True)

    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(
            password,
            method="pbkdf2:sha256",
            salt_length=16
        )

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


# -------------------------
# Catalog (products + services)
# -------------------------
class CatalogItem(db.Model):
    __tablename__ = "catalog_items"
    id = db.Column(db.Integer, primary_key=True)

    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    business = db.relationship("Business")

    name = db.Column(db.String(100), nullable=False)
    # product | service
    type = db.Column(db.String(20), nullable=False, default="product")
    description = db.Column(db.String(500))
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    currency = db.Column(db.String(10), default="USD")

    # VAT | Custom (no tax when NULL)
    tax_name = db.Column(db.String(20))
    tax_rate = db.Column(db.Numeric(5, 2))
    tax_description = db.Column(db.String(250))

    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def has_tax(self):
        return bool(self.tax_name) and self.tax_rate is not None

    @property
    def price_with_tax(self) -> Decimal:
        price = Decimal(str(self.price or 0))
        if not self.has_tax:
            return price
        return price + price * Decimal(str(self.tax_rate)) / Decimal("100")


# -------------------------
# Quotations
# -------------------------
class Quotation(db.Model):
    __tablename__ = "quotations"
    __table_args__ = (
        db.UniqueConstraint("business_id", "quotation_number", name="uq_business_quotation_number"),
    )

    id = db.Column(db.Integer, primary_key=True)

    quotation_number = db.Column(db.String(30), nullable=False, index=True)

    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    business = db.relationship("Business", backref=db.backref("quotations", lazy="dynamic"))

    customer_name = db.Column(db.String(200), nullable=False)
    customer_email = db.Column(db.String(120))
    customer_phone = db.Column(db.String(50))
    customer_street = db.Column(db.String(200))
    customer_city = db.Column(db.String(100))
    customer_state = db.Column(db.String(100))
    customer_zip_code = db.Column(db.String(20))
    customer_country = db.Column(db.String(100))

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # draft | sent | accepted | rejected | expired
    status = db.Column(db.String(20), nullable=False, default="draft", index=True)
    currency = db.Column(db.String(10), default="USD")
    valid_until = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text)
    terms = db.Column(db.Text)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_by = db.relationship("User", foreign_keys=[created_by_id])

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship(
        "QuotationItem",
        backref="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.sort_order.asc()",
    )
    status_history = db.relationship(
        "QuotationStatusHistory",
        backref="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationStatusHistory.id.asc()",
    )

    @property
    def item_count(self):
        return len(self.items)

    def days_until_expiry(self, today=None):
        if not self.valid_until:
            return 0
        today = today or date.today()
        return (self.valid_until - today).days


class QuotationItem(db.Model):
    __tablename__ = "quotation_items"
    id = db.Column(db.Integer, primary_key=True)

    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=False, index=True)

    catalog_item_id = db.Column(db.Integer, db.ForeignKey("catalog_items.id", ondelete="SET NULL"), nullable=True)
    catalog_item = db.relationship("CatalogItem")

    # snapshot so the document survives catalog edits
    item_name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))

    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sort_order = db.Column(db.Integer, default=0)


class QuotationStatusHistory(db.Model):
    __tablename__ = "quotation_status_history"
    id = db.Column(db.Integer, primary_key=True)

    quotation_id = db.Column(db.Integer, db.ForeignKey("quotations.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False)

    changed_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    changed_by = db.relationship("User")

    changed_at = db.Column(db.DateTime, default=datetime.utcnow)


# -------------------------
# Document templates
# -------------------------
class Template(db.Model):
    __tablename__ = "templates"
    id = db.Column(db.Integer, primary_key=True)

    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(500))
    # quotation | invoice
    type = db.Column(db.String(20), nullable=False, default="quotation")
    # modern | classic | professional | minimal
    layout = db.Column(db.String(20), nullable=False, default="modern")
    is_default = db.Column(db.Boolean, default=False)

    primary_color = db.Column(db.String(20), default="#1a73e8")
    font_family = db.Column(db.String(50), default="Arial")
    font_size = db.Column(db.String(10), default="12px")

    show_logo = db.Column(db.Boolean, default=True)
    show_business_info = db.Column(db.Boolean, default=True)
    show_quotation_number = db.Column(db.Boolean, default=True)
    # left | right
    customer_info_position = db.Column(db.String(10), default="left")
    show_terms = db.Column(db.Boolean, default=True)
    show_signature = db.Column(db.Boolean, default=True)
    footer_text = db.Column(db.String(500))

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
