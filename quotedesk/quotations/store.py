from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from .. import db
from ..models import Quotation
from .numbering import NumberCollision


class QuotationNumberStore:
    """Reads the numbering state of a business straight from the quotations table."""

    def last_number(self, business_id, prefix):
        # longer suffix first, so QT-10000 sorts after QT-9999
        row = (db.session.query(Quotation.quotation_number)
               .filter(Quotation.business_id == business_id)
               .filter(Quotation.quotation_number.like(f"{prefix}-%"))
               .order_by(func.length(Quotation.quotation_number).desc(),
                         Quotation.quotation_number.desc())
               .first())
        return row[0] if row else None

    def exists(self, business_id, number):
        return db.session.query(
            Quotation.query
            .filter_by(business_id=business_id, quotation_number=number)
            .exists()
        ).scalar()


def commit_or_collide():
    """Commit the pending quotation; a uniqueness failure becomes NumberCollision."""
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        if "uq_business_quotation_number" in str(e.orig) or "quotation_number" in str(e.orig):
            raise NumberCollision(str(e.orig))
        raise
