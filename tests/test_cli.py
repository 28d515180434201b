from datetime import date

from quotedesk.models import Business, Quotation, User
from quotedesk.quotations.service import expire_overdue


def _create_with_validity(client, payload, valid_until):
    payload = dict(payload, valid_until=valid_until)
    return client.post("/quotations", json=payload).get_json()["data"]["id"]


def test_expire_quotations(app, client, quotation_payload):
    overdue = _create_with_validity(client, quotation_payload, "2026-01-31")
    sent = _create_with_validity(client, quotation_payload, "2026-02-15")
    current = _create_with_validity(client, quotation_payload, "2026-03-31")
    accepted = _create_with_validity(client, quotation_payload, "2026-01-01")
    client.put(f"/quotations/{sent}/status", json={"status": "sent"})
    client.put(f"/quotations/{accepted}/status", json={"status": "accepted"})

    result = app.test_cli_runner().invoke(args=["expire-quotations", "--today", "2026-03-01"])
    assert result.exit_code == 0, result.output
    assert "Expired 2 quotation(s)." in result.output

    with app.app_context():
        statuses = {q.id: q.status for q in Quotation.query.all()}
    assert statuses == {overdue: "expired", sent: "expired", current: "draft", accepted: "accepted"}

    history = client.get(f"/quotations/{sent}").get_json()["data"]["status_history"]
    assert [h["status"] for h in history] == ["draft", "sent", "expired"]

    # expired quotations are final
    resp = client.put(f"/quotations/{overdue}/status", json={"status": "sent"})
    assert resp.status_code == 409


def test_expire_quotations_for_one_business(app, client, quotation_payload):
    mine = _create_with_validity(client, quotation_payload, "2026-01-31")

    result = app.test_cli_runner().invoke(args=["expire-quotations", "--today", "2026-03-01",
                                                "--business-id", "999"])
    assert result.exit_code == 0, result.output
    assert "Expired 0 quotation(s)." in result.output
    assert client.get(f"/quotations/{mine}").get_json()["data"]["status"] == "draft"


def test_expire_quotations_bad_date(app):
    result = app.test_cli_runner().invoke(args=["expire-quotations", "--today", "01/03/2026"])
    assert result.exit_code != 0
    assert "YYYY-MM-DD" in result.output


def test_create_business(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "create-business", "--name", "Acme", "--email", "Billing@Acme.test",
        "--admin-email", "Admin@Acme.test", "--admin-password", "secret123", "--prefix", "ac",
    ])
    assert result.exit_code == 0, result.output

    with app.app_context():
        business = Business.query.one()
        assert business.quotation_prefix == "AC"
        assert business.email == "billing@acme.test"
        admin = User.query.filter_by(email="admin@acme.test").one()
        assert admin.business_id == business.id
        assert admin.check_password("secret123")

    again = runner.invoke(args=[
        "create-business", "--name", "Acme 2", "--email", "x@acme.test",
        "--admin-email", "admin@acme.test", "--admin-password", "secret123",
    ])
    assert again.exit_code != 0
    assert "already exists" in again.output


def test_create_business_rejects_bad_prefix(app, count):
    result = app.test_cli_runner().invoke(args=[
        "create-business", "--name", "Acme", "--email", "a@acme.test",
        "--admin-email", "b@acme.test", "--admin-password", "secret123", "--prefix", "A-1",
    ])
    assert result.exit_code != 0
    assert count(Business) == 0


def test_expire_overdue_defaults_to_today(app, client, quotation_payload):
    _create_with_validity(client, quotation_payload, date(2020, 1, 1).isoformat())

    with app.app_context():
        assert expire_overdue() == 1
        assert expire_overdue() == 0
