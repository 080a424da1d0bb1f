"""
Tests for the budget API endpoints.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_engine.services.posting_service import PostingService


@pytest.fixture
def posted(db_session, chart, make_draft):
    """A 1,500 cash sale and 700 of rent in January 2024."""
    service = PostingService(db_session)
    for lines, day in [
        ([(chart["cash"], 1500, 0), (chart["revenue"], 0, 1500)], 10),
        ([(chart["rent"], 700, 0), (chart["cash"], 0, 700)], 20),
    ]:
        entry_id = make_draft(db_session, lines, entry_date=date(2024, 1, day))
        service.post("acme", entry_id, "alice")
    return chart


def budget_payload(chart, **overrides):
    payload = {
        "name": "Q1 plan",
        "year": 2024,
        "period": "QUARTERLY",
        "start_date": "2024-01-01",
        "end_date": "2024-03-31",
        "items": [
            {"account_id": chart["revenue"], "planned_amount": "1400"},
            {"account_id": chart["rent"], "planned_amount": "500", "notes": "Office"},
        ],
    }
    payload.update(overrides)
    return payload


class TestCreateBudget:

    def test_create_budget(self, client, headers, chart):
        response = client.post("/budgets", json=budget_payload(chart), headers=headers)

        assert response.status_code == 201
        data = response.json()
        assert data["tenant_id"] == "acme"
        assert data["status"] == "DRAFT"
        assert data["created_by"] == "alice"
        assert Decimal(data["total_planned"]) == Decimal("1900")
        assert [item["notes"] for item in data["items"]] == [None, "Office"]

    def test_bad_date_range_returns_422(self, client, headers, chart):
        response = client.post(
            "/budgets",
            json=budget_payload(chart, start_date="2024-04-01"),
            headers=headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidDateRange"

    def test_unknown_account_returns_404(self, client, headers, chart):
        payload = budget_payload(
            chart, items=[{"account_id": 99999, "planned_amount": "10"}]
        )
        response = client.post("/budgets", json=payload, headers=headers)
        assert response.status_code == 404

    def test_duplicate_name_returns_422(self, client, headers, chart):
        client.post("/budgets", json=budget_payload(chart), headers=headers)
        response = client.post("/budgets", json=budget_payload(chart), headers=headers)

        assert response.status_code == 422
        assert response.json()["error"] == "DuplicateBudget"


class TestReadBudgets:

    def test_list_and_get(self, client, headers, chart):
        created = client.post(
            "/budgets", json=budget_payload(chart), headers=headers
        ).json()

        listed = client.get("/budgets?year=2024", headers=headers).json()
        assert [b["id"] for b in listed] == [created["id"]]
        assert client.get("/budgets?year=2023", headers=headers).json() == []

        response = client.get(f"/budgets/{created['id']}", headers=headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Q1 plan"

    def test_budget_of_other_tenant_returns_404(self, client, headers, chart):
        created = client.post(
            "/budgets", json=budget_payload(chart), headers=headers
        ).json()

        response = client.get(
            f"/budgets/{created['id']}", headers={"X-Tenant-ID": "globex"}
        )
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"


class TestMaintainBudgets:

    def test_patch_status(self, client, headers, chart):
        created = client.post(
            "/budgets", json=budget_payload(chart), headers=headers
        ).json()

        response = client.patch(
            f"/budgets/{created['id']}", json={"status": "APPROVED"}, headers=headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "APPROVED"
        assert response.json()["name"] == "Q1 plan"

    def test_patch_null_name_returns_422(self, client, headers, chart):
        created = client.post(
            "/budgets", json=budget_payload(chart), headers=headers
        ).json()

        response = client.patch(
            f"/budgets/{created['id']}", json={"name": None}, headers=headers
        )
        assert response.status_code == 422

    def test_delete(self, client, headers, chart):
        created = client.post(
            "/budgets", json=budget_payload(chart), headers=headers
        ).json()

        response = client.delete(f"/budgets/{created['id']}", headers=headers)

        assert response.status_code == 204
        assert client.get(
            f"/budgets/{created['id']}", headers=headers
        ).status_code == 404


class TestVariances:

    def test_variance_report(self, client, headers, posted):
        created = client.post(
            "/budgets", json=budget_payload(posted), headers=headers
        ).json()

        response = client.get(
            f"/budgets/{created['id']}/variances", headers=headers
        )

        assert response.status_code == 200
        data = response.json()
        lines = {line["account_number"]: line for line in data["lines"]}
        assert Decimal(lines["4000"]["actual_amount"]) == Decimal("1500")
        assert Decimal(lines["4000"]["variance_percent"]) == Decimal("7.14")
        assert lines["4000"]["status"] == "OK"
        assert Decimal(lines["5000"]["variance"]) == Decimal("200")
        assert Decimal(lines["5000"]["variance_percent"]) == Decimal("40")
        assert lines["5000"]["status"] == "ALERT"
        assert Decimal(data["total_planned"]) == Decimal("1900")
        assert Decimal(data["total_actual"]) == Decimal("2200")
        assert Decimal(data["total_variance"]) == Decimal("300")

    def test_unknown_budget_returns_404(self, client, headers, chart):
        response = client.get("/budgets/99999/variances", headers=headers)
        assert response.status_code == 404
