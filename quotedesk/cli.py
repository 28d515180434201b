import click

from . import db
from .errors import ValidationError
from .models import Business, User
from .quotations.numbering import is_valid_prefix
from .quotations.service import expire_overdue
from .utils import parse_date


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        import quotedesk.models  # noqa: F401

        db.create_all()
        click.echo("Tables created.")

    @app.cli.command("create-business")
    @click.option("--name", required=True, help="Business name")
    @click.option("--email", required=True, help="Business contact email")
    @click.option("--admin-email", required=True, help="First user's login email")
    @click.option("--admin-name", default="Admin", show_default=True)
    @click.option("--admin-password", required=True, help="First user's password")
    @click.option("--prefix", default=None, help="Quotation number prefix (e.g. QT)")
    def create_business(name, email, admin_email, admin_name, admin_password, prefix):
        """Register a business and its first user."""
        prefix = (prefix or app.config.get("DEFAULT_QUOTATION_PREFIX", "QT")).strip().upper()
        if not is_valid_prefix(prefix):
            raise click.ClickException("Prefix must be 1-10 letters or digits")

        admin_email = admin_email.strip().lower()
        if User.query.filter_by(email=admin_email).first():
            raise click.ClickException(f"User already exists: {admin_email}")

        business = Business(name=name.strip(), email=email.strip().lower(), quotation_prefix=prefix)
        db.session.add(business)
        db.session.flush()

        user = User(email=admin_email, name=admin_name, business_id=business.id, is_active=True)
        user.set_password(admin_password)
        db.session.add(user)
        db.session.commit()

        click.echo(f"Business #{business.id} '{business.name}' created (prefix {prefix}).")

    @app.cli.command("expire-quotations")
    @click.option("--business-id", type=int, default=None, help="Only this business")
    @click.option("--today", default=None, help="Reference date YYYY-MM-DD (default: today)")
    def expire_quotations(business_id, today):
        """Mark draft/sent quotations past their validity date as expired."""
        try:
            ref_date = parse_date(today, "today")
        except ValidationError as e:
            raise click.ClickException(e.message)

        count = expire_overdue(today=ref_date, business_id=business_id)
        click.echo(f"Expired {count} quotation(s).")
