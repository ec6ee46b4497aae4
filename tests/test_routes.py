"""Tests for the HTTP routes."""
import datetime
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routes import api_router, get_pipeline, get_store
from app.schemas.finance import FinancialSnapshot
from app.services.exceptions import (
    DecodeError,
    ExtractionParseError,
    PersistenceError,
    ServiceConfigError,
    ServiceUnavailable,
    SourceUnavailable,
    UnsupportedFormat,
)
from app.services.financial_store import FinancialDataStore
from app.services.pipeline import FinancialPipeline

SUBJECT = {"X-Subject-Id": "user-123"}

DOCUMENT_REQUEST = {
    "file_url": "https://files.example.com/w2.pdf",
    "file_name": "w2.pdf",
    "file_type": "application/pdf",
}


@pytest.fixture
def store():
    store = MagicMock(spec=FinancialDataStore)
    store.replace_singletons = AsyncMock()
    store.insert = AsyncMock(return_value=str(uuid.uuid4()))
    store.insert_with_children = AsyncMock(return_value=str(uuid.uuid4()))
    store.fetch_snapshot = AsyncMock(return_value=FinancialSnapshot(subject_id="user-123"))
    return store


@pytest.fixture
def extractor():
    extractor = MagicMock()
    extractor.extract = AsyncMock(return_value={"salary_income": "$80,000"})
    return extractor


@pytest.fixture
def file_handler():
    handler = MagicMock()
    handler.process_url = AsyncMock(
        return_value=MagicMock(text_content="Wages 80,000", section_count=1, character_count=12)
    )
    return handler


@pytest.fixture
def client(store, file_handler, extractor):
    app = FastAPI()
    app.include_router(api_router)
    pipeline = FinancialPipeline(file_handler=file_handler, extractor=extractor)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    return TestClient(app)


class TestIdentity:
    def test_missing_subject_header(self, client):
        response = client.post("/api/ai-insights", json={})

        assert response.status_code == 401

    def test_blank_subject_header(self, client):
        response = client.get("/api/financial-data/summary", headers={"X-Subject-Id": "  "})

        assert response.status_code == 401

    def test_mismatched_user_id(self, client):
        response = client.post(
            "/api/tax-optimization", json={"user_id": "someone-else"}, headers=SUBJECT
        )

        assert response.status_code == 403


class TestProcessDocument:
    def test_extracts_and_stores(self, client, store):
        response = client.post("/api/process-document", json=DOCUMENT_REQUEST, headers=SUBJECT)

        assert response.status_code == 200
        body = response.json()
        assert body["financial_data"]["personal_finances"]["salary_income"] == 80000
        assert body["financial_data"]["source"]["method"] == "upload"
        assert body["persisted"] is True
        store.replace_singletons.assert_awaited_once()

    @pytest.mark.parametrize(
        "error, status_code",
        [
            (UnsupportedFormat("image/png"), 415),
            (DecodeError("corrupt"), 422),
            (SourceUnavailable("404"), 502),
        ],
    )
    def test_format_errors(self, client, file_handler, error, status_code):
        file_handler.process_url.side_effect = error

        response = client.post("/api/process-document", json=DOCUMENT_REQUEST, headers=SUBJECT)

        assert response.status_code == status_code

    @pytest.mark.parametrize(
        "error, status_code",
        [
            (ExtractionParseError("no json"), 422),
            (ServiceUnavailable("timeout"), 502),
            (ServiceConfigError("no key"), 503),
        ],
    )
    def test_extraction_errors(self, client, extractor, store, error, status_code):
        extractor.extract.side_effect = error

        response = client.post("/api/process-document", json=DOCUMENT_REQUEST, headers=SUBJECT)

        assert response.status_code == status_code
        store.replace_singletons.assert_not_called()

    def test_storage_failure_still_returns_data(self, client, store):
        store.replace_singletons.side_effect = PersistenceError("Failed to replace personal_finances")

        response = client.post("/api/process-document", json=DOCUMENT_REQUEST, headers=SUBJECT)

        assert response.status_code == 200
        assert response.json()["persisted"] is False
        assert response.json()["persistence_error"]


def test_ocr_and_crm_provenance(client):
    ocr = client.post(
        "/api/ocr", json={"raw_data": {"medical_expenses": "1,200"}, "reference": "img-7"}, headers=SUBJECT
    )
    crm = client.post(
        "/api/crm", json={"raw_data": {"revenue": 5000}, "provider": "xero"}, headers=SUBJECT
    )

    assert ocr.json()["financial_data"]["source"]["method"] == "ocr"
    assert ocr.json()["financial_data"]["personal_finances"]["medical_expenses"] == 1200
    assert crm.json()["financial_data"]["source"]["provider"] == "xero"
    assert crm.json()["financial_data"]["business_finances"]["revenue"] == 5000


def test_financial_summary_storage_failure(client, store):
    store.fetch_snapshot.side_effect = PersistenceError("Failed to fetch budgets")

    response = client.get("/api/financial-data/summary", headers=SUBJECT)

    assert response.status_code == 500


def test_tax_optimization_with_inline_data(client, store):
    response = client.post(
        "/api/tax-optimization",
        json={
            "user_id": "user-123",
            "personal_finances": {"salary_income": 100000},
            "business_finances": {},
            "budget_data": [],
            "investment_data": [],
        },
        headers=SUBJECT,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["result"]["current_tax"] == 18100
    assert body["result"]["potential_savings"] == 4103
    assert body["persisted"] is True
    store.fetch_snapshot.assert_not_called()


def test_tax_optimization_falls_back_to_stored_data(client, store, snapshot):
    store.fetch_snapshot.return_value = snapshot

    response = client.post("/api/tax-optimization", json={}, headers=SUBJECT)

    assert response.status_code == 200
    store.fetch_snapshot.assert_awaited_once_with("user-123")


def test_tax_optimization_storage_failure_keeps_result(client, store):
    store.insert_with_children.side_effect = PersistenceError("Failed to insert tax_optimization_results")

    response = client.post(
        "/api/tax-optimization",
        json={
            "personal_finances": {"salary_income": 50000},
            "business_finances": {},
            "budget_data": [],
            "investment_data": [],
        },
        headers=SUBJECT,
    )

    assert response.status_code == 200
    assert response.json()["persisted"] is False
    assert response.json()["result"]["current_tax"] > 0


def test_tax_analysis(client):
    response = client.post(
        "/api/tax-analysis",
        json={
            "analysis_type": "combined",
            "personal_finances": {"salary_income": 75000, "freelance_income": 5000, "other_deductions": 12000},
            "business_finances": {"revenue": 100000, "other_expenses": 30000},
            "total_credits": 2000,
        },
        headers=SUBJECT,
    )

    assert response.status_code == 200
    result = response.json()["result"]
    assert result["estimated_tax_liability"] == 32460
    assert result["tax_impact"]["tax_cut_savings"] == 12500


def test_tax_analysis_rejects_unknown_mode(client):
    response = client.post("/api/tax-analysis", json={"analysis_type": "estate"}, headers=SUBJECT)

    assert response.status_code == 422


def test_ai_insights(client, store, snapshot):
    store.fetch_snapshot.return_value = snapshot

    response = client.post("/api/ai-insights", json={"insight_type": "investment"}, headers=SUBJECT)

    assert response.status_code == 200
    body = response.json()
    assert body["insights"]
    assert {insight["type"] for insight in body["insights"]} == {"investment"}
    assert body["summary"]["total_insights"] == len(body["insights"])


def test_full_analysis(client, store, snapshot):
    store.fetch_snapshot.return_value = snapshot

    response = client.post("/api/full-analysis", headers=SUBJECT)

    assert response.status_code == 200
    body = response.json()
    assert body["subject_id"] == "user-123"
    assert body["optimization"]["persisted"] is True
    assert body["summary"]["budgets"]["total_income"] == 5000


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_amounts_are_rejected(client, store, literal):
    body = (
        '{"personal_finances": {"salary_income": %s}, "business_finances": {}, '
        '"budget_data": [], "investment_data": []}' % literal
    )

    response = client.post(
        "/api/tax-optimization",
        content=body,
        headers={**SUBJECT, "Content-Type": "application/json"},
    )

    assert response.status_code == 422
    store.insert_with_children.assert_not_called()


def test_non_finite_credits_are_rejected(client):
    response = client.post(
        "/api/tax-analysis",
        content='{"analysis_type": "personal", "total_credits": Infinity}',
        headers={**SUBJECT, "Content-Type": "application/json"},
    )

    assert response.status_code == 422


def optimization_row(**overrides):
    row = {
        "id": uuid.uuid4(),
        "user_id": "user-123",
        "current_tax": 18100.0,
        "optimized_tax": 13997.0,
        "potential_savings": 4103.0,
        "recommendations": ["Maximize retirement contributions up to $15,000"],
        "chart_data": {"tax_breakdown": []},
        "analysis_data": {"tax_bracket": "22%"},
        "confidence_score": 0.85,
        "created_at": datetime.datetime(2024, 3, 1, tzinfo=datetime.timezone.utc),
    }
    row.update(overrides)
    return row


def suggestion_row(optimization_id):
    return {
        "id": uuid.uuid4(),
        "user_id": "user-123",
        "optimization_id": optimization_id,
        "suggestion_type": "deduction",
        "title": "Maximize Itemized Deductions",
        "description": "Review your expenses.",
        "potential_savings": 1641.2,
        "difficulty_level": "medium",
        "time_to_implement": "2-4 weeks",
        "is_actionable": True,
        "action_url": "/profile",
        "created_at": datetime.datetime(2024, 3, 1, tzinfo=datetime.timezone.utc),
    }


class TestStoredData:
    def test_create_budget(self, client, store):
        response = client.post(
            "/api/financial-data/budgets",
            json={"category": "Legal", "type": "expense", "amount": 1500, "deductible": True},
            headers=SUBJECT,
        )

        assert response.status_code == 201
        assert response.json() == {"id": store.insert.return_value, "kind": "budgets"}
        kind, row = store.insert.await_args.args
        assert kind == "budgets"
        assert row["user_id"] == "user-123"
        assert row["type"] == "expense"
        assert row["deductible_expenses"] is True

    def test_create_investment(self, client, store):
        response = client.post(
            "/api/financial-data/investments",
            json={"asset_type": "stocks", "amount_invested": 1000, "current_value": 1100, "risk_level": "high"},
            headers=SUBJECT,
        )

        assert response.status_code == 201
        kind, row = store.insert.await_args.args
        assert kind == "investments"
        assert row["risk_level"] == "high"
        assert row["current_value"] == 1100

    def test_create_for_another_subject(self, client, store):
        response = client.post(
            "/api/financial-data/investments",
            json={"user_id": "someone-else", "asset_type": "bonds"},
            headers=SUBJECT,
        )

        assert response.status_code == 403
        store.insert.assert_not_called()

    def test_create_storage_failure(self, client, store):
        store.insert.side_effect = PersistenceError("Failed to insert budgets")

        response = client.post(
            "/api/financial-data/budgets",
            json={"category": "Rent", "type": "expense", "amount": 900},
            headers=SUBJECT,
        )

        assert response.status_code == 500

    def test_optimization_history(self, client, store):
        store.fetch_history = AsyncMock(return_value=[optimization_row(), optimization_row()])

        response = client.get("/api/tax-optimization/history?limit=5", headers=SUBJECT)

        assert response.status_code == 200
        assert len(response.json()) == 2
        assert response.json()[0]["potential_savings"] == 4103
        store.fetch_history.assert_awaited_once_with(
            "user-123", "tax_optimization_results", limit=5
        )

    def test_history_limit_is_bounded(self, client):
        response = client.get("/api/tax-optimization/history?limit=0", headers=SUBJECT)

        assert response.status_code == 422

    def test_latest_optimization_includes_suggestions(self, client, store):
        row = optimization_row()
        store.fetch_latest_optimization = AsyncMock(
            return_value={**row, "suggestions": [suggestion_row(row["id"])]}
        )

        response = client.get("/api/tax-optimization/latest", headers=SUBJECT)

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == str(row["id"])
        assert body["suggestions"][0]["title"] == "Maximize Itemized Deductions"

    def test_latest_optimization_missing(self, client, store):
        store.fetch_latest_optimization = AsyncMock(return_value=None)

        response = client.get("/api/tax-optimization/latest", headers=SUBJECT)

        assert response.status_code == 404

    def test_optimization_suggestions(self, client, store):
        optimization_id = uuid.uuid4()
        store.fetch_history = AsyncMock(return_value=[suggestion_row(optimization_id)])

        response = client.get(f"/api/tax-optimization/{optimization_id}/suggestions", headers=SUBJECT)

        assert response.status_code == 200
        assert response.json()[0]["optimization_id"] == str(optimization_id)
        store.fetch_history.assert_awaited_once_with(
            "user-123", "tax_suggestions", optimization_id=optimization_id
        )

    def test_analysis_history_filtered_by_mode(self, client, store):
        store.fetch_history = AsyncMock(
            return_value=[
                {
                    "id": uuid.uuid4(),
                    "user_id": "user-123",
                    "analysis_type": "business",
                    "analysis_data": {},
                    "estimated_tax_liability": 17500.0,
                    "estimated_savings": 3500.0,
                    "recommendations": [],
                    "created_at": datetime.datetime(2024, 3, 1, tzinfo=datetime.timezone.utc),
                }
            ]
        )

        response = client.get("/api/tax-analysis?type=business", headers=SUBJECT)

        assert response.status_code == 200
        assert response.json()[0]["analysis_type"] == "business"
        store.fetch_history.assert_awaited_once_with(
            "user-123", "analysis_results", analysis_type="business"
        )

    def test_analysis_history_storage_failure(self, client, store):
        store.fetch_history = AsyncMock(side_effect=PersistenceError("Failed to fetch analysis_results"))

        response = client.get("/api/tax-analysis", headers=SUBJECT)

        assert response.status_code == 500
