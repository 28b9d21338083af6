"""
Tests for the obligation / projection / transaction API endpoints
"""
import pytest
from datetime import date, timedelta
from decimal import Decimal
from fastapi.testclient import TestClient

from famfin.api.deps import get_db
from famfin.main import app


HEADERS = {"X-Account-Id": "1"}


@pytest.fixture
def client(db_session):
    """Test client bound to the sqlite test session"""
    app.dependency_overrides[get_db] = lambda: db_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def january_budget(client):
    response = client.post("/api/v1/obligations/", headers=HEADERS, json={
        "kind": "BUDGET",
        "name": "Groceries",
        "amount": "500",
        "frequency": "MONTHLY",
        "start_date": "2025-01-01",
        "end_date": "2025-01-31",
    })
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def lattice_2025(client):
    response = client.post("/api/v1/source-periods/generate", headers=HEADERS, json={
        "start_date": "2025-01-01",
        "end_date": "2025-12-31",
    })
    assert response.status_code == 200
    return response.json()


def test_requires_account_header(client):
    response = client.get("/api/v1/obligations/1")
    assert response.status_code == 401


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "ok"


class TestObligationsApi:
    def test_create_budget_materializes_views(self, client, january_budget):
        assert january_budget["kind"] == "BUDGET"
        assert january_budget["version"] == 1

        response = client.get(f"/api/v1/obligations/{january_budget['id']}/projections", headers=HEADERS)
        assert response.status_code == 200
        assert len(response.json()) == 8

        response = client.get(
            f"/api/v1/obligations/{january_budget['id']}/projections",
            params={"period_type": "MONTHLY"},
            headers=HEADERS,
        )
        monthly = response.json()
        assert [p["source_period_id"] for p in monthly] == ["2025M01"]
        assert Decimal(monthly[0]["allocated_amount"]) == Decimal("500.00")

    def test_materialize_again_creates_nothing(self, client, january_budget):
        response = client.post(f"/api/v1/obligations/{january_budget['id']}/materialize", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["created"] == 0

    def test_fill_gap_after_end_is_skipped(self, client, january_budget):
        response = client.post(
            f"/api/v1/obligations/{january_budget['id']}/fill-gap",
            headers=HEADERS,
            json={"period_id": "2025M05"},
        )
        assert response.status_code == 200
        assert response.json() == {
            "status": "skipped",
            "projection_id": f"{january_budget['id']}_2025M05",
            "reason": "after_end",
        }

    def test_invalid_kind_returns_code(self, client):
        response = client.post("/api/v1/obligations/", headers=HEADERS, json={
            "kind": "LOAN", "name": "Car", "amount": "100", "frequency": "MONTHLY",
        })
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_kind"

    def test_other_account_cannot_see_obligation(self, client, january_budget):
        response = client.get(f"/api/v1/obligations/{january_budget['id']}", headers={"X-Account-Id": "2"})
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "obligation_not_found"

    def test_update_bumps_version(self, client, january_budget):
        response = client.patch(
            f"/api/v1/obligations/{january_budget['id']}", headers=HEADERS, json={"name": "Food"},
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Food"
        assert response.json()["version"] == 2


class TestSourcePeriodsApi:
    def test_generate_year(self, lattice_2025):
        assert lattice_2025["MONTHLY"] == {"created": 12, "existing": 0}
        assert lattice_2025["WEEKLY"]["created"] == 53

    def test_current_period_around_today(self, client):
        start = date.today().replace(day=1)
        client.post("/api/v1/source-periods/generate", headers=HEADERS, json={
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=62)).isoformat(),
        })

        response = client.get("/api/v1/source-periods/current/MONTHLY", headers=HEADERS)
        assert response.status_code == 200
        body = response.json()
        assert body["id"] == f"{start.year}M{start.month:02d}"
        assert body["is_current"] is True

    def test_current_period_missing(self, client):
        response = client.get("/api/v1/source-periods/current/MONTHLY", headers=HEADERS)
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "period_not_found"


class TestPaymentsApi:
    @pytest.fixture
    def bill(self, client, lattice_2025):
        response = client.post("/api/v1/obligations/", headers=HEADERS, json={
            "kind": "OUTFLOW",
            "name": "Internet",
            "amount": "89.99",
            "frequency": "MONTHLY",
            "start_date": "2025-01-15",
            "end_date": "2025-06-30",
        })
        assert response.status_code == 201
        return response.json()

    def _pay(self, client, bill):
        response = client.post("/api/v1/transactions/", headers=HEADERS, json={
            "amount": "89.99",
            "transaction_type": "EXPENSE",
            "transaction_date": "2025-01-15",
            "splits": [{"amount": "89.99", "obligation_id": bill["id"]}],
        })
        assert response.status_code == 201
        return response.json()

    def test_payment_marks_projection_paid(self, client, bill):
        tx = self._pay(client, bill)
        assert len(tx["splits"]) == 1

        response = client.get(f"/api/v1/projections/{bill['id']}_2025M01", headers=HEADERS)
        body = response.json()
        assert body["is_fully_paid"] is True
        assert body["status"] == "paid"
        assert Decimal(body["total_amount_paid"]) == Decimal("89.99")
        assert body["occurrence_paid_flags"] == [True]

    def test_recompute_endpoint(self, client, bill):
        self._pay(client, bill)
        response = client.post(f"/api/v1/projections/{bill['id']}_2025M01/recompute", headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["is_fully_paid"] is True

    def test_delete_reverts_projection(self, client, bill):
        tx = self._pay(client, bill)

        response = client.delete(f"/api/v1/transactions/{tx['id']}", headers=HEADERS)
        assert response.status_code == 204
        assert client.get(f"/api/v1/transactions/{tx['id']}", headers=HEADERS).status_code == 404

        body = client.get(f"/api/v1/projections/{bill['id']}_2025M01", headers=HEADERS).json()
        assert body["is_fully_paid"] is False
        assert Decimal(body["total_amount_paid"]) == Decimal("0")

    def test_unknown_projection(self, client):
        response = client.post("/api/v1/projections/999_2025M01/recompute", headers=HEADERS)
        assert response.status_code == 404
