from decimal import Decimal

from flask import Blueprint
from flask_login import login_required, current_user
from sqlalchemy import func

from .. import db
from ..models import CatalogItem, Quotation
from ..quotations import status as st
from ..quotations.calculator import money
from ..quotations.routes import quotation_summary
from ..utils import money_str, ok

dashboard_bp = Blueprint("dashboard", __name__)


@dashboard_bp.route("/stats", methods=["GET"])
@login_required
def stats():
    business_id = current_user.business_id

    by_status = dict(
        db.session.query(Quotation.status, func.count(Quotation.id))
        .filter(Quotation.business_id == business_id)
        .group_by(Quotation.status)
        .all()
    )

    item_counts = dict(
        db.session.query(CatalogItem.type, func.count(CatalogItem.id))
        .filter(CatalogItem.business_id == business_id)
        .group_by(CatalogItem.type)
        .all()
    )

    accepted_value = (db.session.query(func.coalesce(func.sum(Quotation.total), 0))
                      .filter(Quotation.business_id == business_id)
                      .filter(Quotation.status == st.ACCEPTED)
                      .scalar())

    recent = (Quotation.query
              .filter_by(business_id=business_id)
              .order_by(Quotation.created_at.desc(), Quotation.id.desc())
              .limit(5)
              .all())

    total = sum(by_status.values())

    return ok({
        "totalQuotations": total,
        "totalProducts": item_counts.get("product", 0),
        "totalServices": item_counts.get("service", 0),
        "activeQuotations": total - by_status.get(st.REJECTED, 0),
        "byStatus": {s: by_status.get(s, 0) for s in st.STATUSES},
        "acceptedValue": money_str(money(Decimal(str(accepted_value)))),
        "recentQuotations": [quotation_summary(q) for q in recent],
    })
