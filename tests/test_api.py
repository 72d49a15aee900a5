"""
Routes HTTP des échéances, ventes, reçus et authentification.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.infra.models import InstallmentORM, InstallmentStatus
from app.services.errors import PersistenceError
from app.services.sales_service import payment_slot

TEST_PASSWORD = "motdepasse123"


def _fresh(db, inst_id):
    db.expire_all()
    return db.get(InstallmentORM, inst_id)


class TestInstallmentLists:
    def test_all_sorted_with_labels(self, client, installment_sale):
        resp = client.get("/installments")
        assert resp.status_code == 200
        rows = resp.json()
        assert [r["due_date"] for r in rows] == ["2024-02-15", "2024-03-15", "2024-04-15"]
        assert all(r["display_state"] == "overdue" for r in rows)
        assert rows[0]["label"].startswith("En retard (")
        assert rows[0]["buyer_name"] == "Moussa Ndiaye"
        assert rows[0]["property_title"] == "Villa Almadies"

    def test_month_filter(self, client, installment_sale):
        rows = client.get("/installments", params={"month": "2024-03"}).json()
        assert [r["number"] for r in rows] == [2]

    def test_invalid_month(self, client, installment_sale):
        resp = client.get("/installments", params={"month": "mars"})
        assert resp.status_code == 400

    @pytest.mark.parametrize("q, count", [("almadies", 3), ("0771234567", 3), ("850000", 3), ("inconnu", 0)])
    def test_query(self, client, installment_sale, q, count):
        assert len(client.get("/installments", params={"q": q}).json()) == count

    def test_filter_by_sale(self, client, installment_sale):
        rows = client.get("/installments", params={"sale_id": installment_sale.id + 1}).json()
        assert rows == []

    def test_upcoming(self, client, installment_sale, add_installment):
        today = date.today()
        due_today = add_installment(installment_sale, today, amount=Decimal("100000"))
        in_five = add_installment(installment_sale, today + timedelta(days=5), amount=Decimal("200000"))
        add_installment(installment_sale, today + timedelta(days=30))
        add_installment(installment_sale, today + timedelta(days=2), status=InstallmentStatus.PAID)

        body = client.get("/installments/upcoming").json()
        assert [r["id"] for r in body["items"]] == [due_today.id, in_five.id]
        assert body["items"][0]["label"] == "Aujourd'hui"
        assert body["items"][1]["urgency"] == "warning"
        assert body["stats"]["total"] == 2
        assert body["stats"]["today_count"] == 1
        assert body["stats"]["due_soon_count"] == 2
        assert Decimal(str(body["stats"]["total_amount"])) == Decimal("300000")

    def test_upcoming_countdown_label(self, client, installment_sale, add_installment):
        add_installment(installment_sale, date.today() + timedelta(days=20))
        row = client.get("/installments/upcoming").json()["items"][0]
        assert row["display_state"] == "pending"
        assert row["label"] == "Dans 20j"
        assert row["urgency"] == "normal"

    def test_late(self, client, installment_sale, add_installment):
        today = date.today()
        yesterday = add_installment(installment_sale, today - timedelta(days=1))
        add_installment(installment_sale, today)

        body = client.get("/installments/late").json()
        ids = [r["id"] for r in body["items"]]
        assert len(ids) == 4
        assert ids[-1] == yesterday.id
        assert body["items"][-1]["days_late"] == 1
        assert body["stats"]["total"] == 4
        # les trois échéances de 2024 ont plus de 30 jours de retard
        assert body["stats"]["critical_count"] == 3

    def test_late_query(self, client, installment_sale):
        body = client.get("/installments/late", params={"q": "fatou"}).json()
        assert body["items"] == []
        assert body["stats"]["total"] == 0
        assert body["stats"]["avg_days_late"] == 0


class TestPay:
    def test_pay_partial_amount(self, client, db, installment_sale):
        inst = installment_sale.installments[0]
        resp = client.post(f"/installments/{inst.id}/pay", json={"paid_amount": "500000", "payment_method": "especes"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "paid"
        assert Decimal(str(body["paid_amount"])) == Decimal("500000")
        assert body["receipt_number"].startswith("REC-")

        stored = _fresh(db, inst.id)
        assert stored.status == InstallmentStatus.PAID
        assert stored.sale.paid_installments == 1

    def test_pay_twice_conflicts(self, client, installment_sale):
        inst = installment_sale.installments[0]
        assert client.post(f"/installments/{inst.id}/pay", json={}).status_code == 200
        resp = client.post(f"/installments/{inst.id}/pay", json={})
        assert resp.status_code == 409

    def test_pay_while_in_flight(self, client, db, installment_sale):
        inst = installment_sale.installments[0]
        with payment_slot(inst.id):
            resp = client.post(f"/installments/{inst.id}/pay", json={})
        assert resp.status_code == 409
        assert _fresh(db, inst.id).status == InstallmentStatus.PENDING

    def test_unknown_installment(self, client, installment_sale):
        assert client.post("/installments/9999/pay", json={}).status_code == 404

    def test_storage_failure_leaves_installment_pending(self, client, db, installment_sale, monkeypatch):
        def failing_commit(session):
            session.rollback()
            raise PersistenceError("Erreur lors de l'enregistrement. Réessayez.")

        monkeypatch.setattr("app.api.routers.installments.commit_or_raise", failing_commit)

        inst = installment_sale.installments[0]
        resp = client.post(f"/installments/{inst.id}/pay", json={})
        assert resp.status_code == 503

        stored = _fresh(db, inst.id)
        assert stored.status == InstallmentStatus.PENDING
        assert stored.paid_date is None
        assert stored.sale.paid_installments == 0

        monkeypatch.undo()
        assert client.post(f"/installments/{inst.id}/pay", json={}).status_code == 200

    def test_version_conflict(self, client, installment_sale, monkeypatch):
        def conflicting_commit(session):
            session.rollback()
            raise PersistenceError("L'échéance a été modifiée entre-temps.", conflict=True)

        monkeypatch.setattr("app.api.routers.installments.commit_or_raise", conflicting_commit)
        inst = installment_sale.installments[0]
        assert client.post(f"/installments/{inst.id}/pay", json={}).status_code == 409


class TestReminder:
    def test_late_reminder(self, client, installment_sale):
        inst = installment_sale.installments[0]
        body = client.get(f"/installments/{inst.id}/reminder").json()
        assert body["installment_id"] == inst.id
        assert body["is_late"] is True
        assert "est en retard" in body["message"]
        assert body["whatsapp_url"].startswith("https://wa.me/221771234567?text=")
        assert body["mailto_url"].startswith("mailto:moussa@example.sn")

    def test_upcoming_reminder(self, client, installment_sale, add_installment):
        inst = add_installment(installment_sale, date.today() + timedelta(days=3))
        body = client.get(f"/installments/{inst.id}/reminder").json()
        assert body["is_late"] is False
        assert body["subject"].startswith("Rappel : Échéance de paiement à venir")

    def test_paid_installment_has_no_reminder(self, client, installment_sale):
        inst = installment_sale.installments[0]
        client.post(f"/installments/{inst.id}/pay", json={})
        assert client.get(f"/installments/{inst.id}/reminder").status_code == 400

    def test_unknown(self, client, installment_sale):
        assert client.get("/installments/9999/reminder").status_code == 404


class TestReceipt:
    def test_unpaid_has_no_receipt(self, client, installment_sale):
        inst = installment_sale.installments[0]
        assert client.get(f"/installments/{inst.id}/receipt").status_code == 400

    def test_builtin_template(self, client, installment_sale):
        inst = installment_sale.installments[0]
        client.post(f"/installments/{inst.id}/pay", json={"receipt_number": "R-2024-001"})

        body = client.get(f"/installments/{inst.id}/receipt").json()
        assert body["title"] == "REÇU DE PAIEMENT"
        assert body["reference"] == "R-2024-001"
        assert "Awa Diop" in body["declaration"]
        assert "15/02/2024" in body["declaration"]
        assert body["amount"] == "850 000 F CFA"

    def test_default_user_template(self, client, installment_sale):
        resp = client.post(
            "/receipt-templates",
            json={"name": "Agence", "is_default": True, "config": {"title": "Quittance", "watermark_enabled": True}},
        )
        assert resp.status_code == 201

        inst = installment_sale.installments[0]
        client.post(f"/installments/{inst.id}/pay", json={})
        body = client.get(f"/installments/{inst.id}/receipt").json()
        assert body["title"] == "Quittance"
        assert body["watermark"] == "PAYÉ"

    def test_unknown_template(self, client, installment_sale):
        inst = installment_sale.installments[0]
        client.post(f"/installments/{inst.id}/pay", json={})
        resp = client.get(f"/installments/{inst.id}/receipt", params={"template_id": 999})
        assert resp.status_code == 404


class TestReceiptTemplates:
    def test_single_default(self, client, admin_user):
        client.post("/receipt-templates", json={"name": "Premier", "is_default": True})
        client.post("/receipt-templates", json={"name": "Second", "is_default": True})

        rows = client.get("/receipt-templates").json()
        assert [(r["name"], r["is_default"]) for r in rows] == [("Second", True), ("Premier", False)]
        assert client.get("/receipt-templates/default").json()["schema_version"] == 1

    def test_builtin_default(self, client, admin_user):
        assert client.get("/receipt-templates/default").json()["title"] == "REÇU DE PAIEMENT"

    def test_newer_schema_rejected(self, client, admin_user):
        resp = client.post("/receipt-templates", json={"name": "Futur", "config": {"schema_version": 2}})
        assert resp.status_code == 400


class TestSales:
    def test_create_and_list(self, client, buyer, make_property):
        prop = make_property("Appartement Plateau", Decimal("1700000"))
        resp = client.post(
            "/sales",
            json={
                "property_id": prop.id,
                "buyer_id": buyer.id,
                "total_price": "1700000",
                "payment_type": "echelonne",
                "total_installments": 2,
                "sale_date": "2024-05-10",
            },
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["sale"]["status"] == "en_cours"
        assert [i["due_date"] for i in body["installments"]] == ["2024-06-10", "2024-07-10"]

        listing = client.get("/sales", params={"status": "en_cours"}).json()
        assert listing["total"] == 1

        sale_id = body["sale"]["id"]
        assert client.get(f"/sales/{sale_id}").json()["public_id"].startswith("VEN-")

    def test_sold_property_rejected(self, client, buyer, installment_sale):
        resp = client.post(
            "/sales",
            json={"property_id": installment_sale.property_id, "buyer_id": buyer.id, "total_price": "1000"},
        )
        assert resp.status_code == 400

    def test_cancel(self, client, installment_sale):
        resp = client.patch(f"/sales/{installment_sale.id}/status", json={"status": "annule"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "annule"

        inst = installment_sale.installments[0]
        assert client.post(f"/installments/{inst.id}/pay", json={}).status_code == 400

    def test_canceled_sale_leaves_late_and_upcoming_views(self, client, installment_sale, add_installment):
        add_installment(installment_sale, date.today() + timedelta(days=3))
        client.patch(f"/sales/{installment_sale.id}/status", json={"status": "annule"})

        late = client.get("/installments/late").json()
        assert late["items"] == []
        assert late["stats"]["total"] == 0
        assert late["stats"]["critical_count"] == 0
        assert client.get("/installments/upcoming").json()["items"] == []

        inst = installment_sale.installments[0]
        assert client.get(f"/installments/{inst.id}/reminder").status_code == 400
        # toujours visible dans la liste complète
        assert len(client.get("/installments", params={"sale_id": installment_sale.id}).json()) == 4

    def test_unknown_sale(self, client, admin_user):
        assert client.get("/sales/9999").status_code == 404


class TestAuth:
    def test_login_then_call(self, anonymous_client, admin_user):
        resp = anonymous_client.post("/auth/login", json={"email": "ADMIN@agence.sn", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        token = resp.json()["access_token"]

        resp = anonymous_client.get("/installments", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200

    def test_wrong_password(self, anonymous_client, admin_user):
        resp = anonymous_client.post("/auth/login", json={"email": "admin@agence.sn", "password": "faux"})
        assert resp.status_code == 401

    @pytest.mark.parametrize("path", ["/installments", "/installments/late", "/sales", "/receipt-templates"])
    def test_token_required(self, anonymous_client, path):
        assert anonymous_client.get(path).status_code == 401

    def test_bad_token(self, anonymous_client):
        resp = anonymous_client.get("/installments", headers={"Authorization": "Bearer abc"})
        assert resp.status_code == 401


def test_health(anonymous_client):
    body = anonymous_client.get("/health").json()
    assert body["ok"] is True
    assert body["db"]["ok"] is True


class TestBuyersAndProperties:
    def test_buyer_crud(self, client, admin_user):
        resp = client.post("/buyers", json={"name": "Fatou Sall", "phone": "+221 78 111 22 33", "email": "Fatou@Example.sn"})
        assert resp.status_code == 201
        buyer = resp.json()
        assert buyer["phone"] == "+221781112233"
        assert buyer["email"] == "fatou@example.sn"

        assert [b["name"] for b in client.get("/buyers", params={"q": "fatou"}).json()] == ["Fatou Sall"]

        resp = client.put(f"/buyers/{buyer['id']}", json={"phone": "78 000 00 00"})
        assert resp.json()["phone"] == "780000000"
        assert client.get("/buyers/9999").status_code == 404

    def test_property_status_filter(self, client, installment_sale, make_property):
        make_property("Terrain Diamniadio")
        sold = client.get("/properties", params={"status": "vendu"}).json()
        assert [p["title"] for p in sold] == ["Villa Almadies"]
        assert client.get("/properties", params={"status": "loue"}).status_code == 400
