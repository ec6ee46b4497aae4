"""Tests for the SQLAlchemy-backed financial data store."""
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.models.db_models import (
    Budget,
    BusinessFinance,
    Investment,
    PersonalFinance,
    TaxOptimizationRecord,
    TaxSuggestionRecord,
)
from app.schemas.finance import BudgetType, RiskLevel
from app.services.exceptions import PersistenceError
from app.services.financial_store import FinancialDataStore


def scalar_result(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


@pytest.fixture
def session():
    session = MagicMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()

    async def assign_ids():
        for row in session.add_all.call_args.args[0]:
            row.id = uuid.uuid4()

    session.flush = AsyncMock(side_effect=assign_ids)
    return session


@pytest.fixture
def store(session):
    return FinancialDataStore(session)


@pytest.mark.asyncio
async def test_fetch_returns_row_dicts(store, session):
    session.execute.return_value = scalar_result(
        [Budget(user_id="user-123", category="Rent", type="expense", amount=950.0)]
    )

    rows = await store.fetch("user-123", "budgets")

    assert len(rows) == 1
    assert rows[0]["category"] == "Rent"
    assert rows[0]["amount"] == 950.0
    assert rows[0]["user_id"] == "user-123"


@pytest.mark.asyncio
async def test_fetch_unknown_kind(store):
    with pytest.raises(ValueError):
        await store.fetch("user-123", "credit_cards")


@pytest.mark.asyncio
async def test_database_error_becomes_persistence_error(store, session):
    session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))

    with pytest.raises(PersistenceError):
        await store.fetch("user-123", "investments")

    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_fetch_snapshot(store, session):
    session.execute.side_effect = [
        scalar_result(
            [
                Budget(user_id="u", category="Salary", type="income", amount=4000.0),
                Budget(
                    user_id="u", category="Rent", type="expense", amount=1500.0, deductible_expenses=True
                ),
            ]
        ),
        scalar_result(
            [
                Investment(
                    user_id="u",
                    asset_type="stocks",
                    amount_invested=1000.0,
                    current_value=1200.0,
                    risk_level="high",
                )
            ]
        ),
        scalar_result([PersonalFinance(user_id="u", salary_income=48000.0)]),
        scalar_result([]),
    ]

    snapshot = await store.fetch_snapshot("u")

    assert snapshot.subject_id == "u"
    assert [b.type for b in snapshot.budgets] == [BudgetType.INCOME, BudgetType.EXPENSE]
    assert snapshot.budgets[1].deductible is True
    assert snapshot.investments[0].risk_level == RiskLevel.HIGH
    assert snapshot.investments[0].tax_saving_potential == 0
    assert snapshot.personal_finances.salary_income == 48000
    assert snapshot.personal_finances.mortgage_interest == 0
    assert snapshot.business_finances.revenue == 0


@pytest.mark.asyncio
async def test_insert_many_returns_ids(store, session):
    ids = await store.insert_many(
        "budgets",
        [
            {"user_id": "u", "category": "Rent", "type": "expense", "amount": 1.0},
            {"user_id": "u", "category": "Food", "type": "expense", "amount": 2.0},
        ],
    )

    assert len(ids) == 2
    assert all(uuid.UUID(value) for value in ids)
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_failure_rolls_back(store, session):
    session.flush.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

    with pytest.raises(PersistenceError):
        await store.insert("analysis_results", {"user_id": "u", "analysis_type": "personal"})

    session.rollback.assert_awaited_once()
    session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_and_delete_return_row_counts(store, session):
    session.execute.return_value = MagicMock(rowcount=3)

    assert await store.update("budgets", "u", {"notes": "reviewed"}) == 3
    assert await store.delete("budgets", "u") == 3
    assert session.commit.await_count == 2


@pytest.mark.asyncio
async def test_upsert_inserts_when_nothing_updated(store, session):
    session.execute.return_value = MagicMock(rowcount=0)

    await store.upsert("business_finances", "u", {"revenue": 500.0})

    inserted = session.add_all.call_args.args[0][0]
    assert isinstance(inserted, BusinessFinance)
    assert inserted.user_id == "u"
    assert inserted.revenue == 500.0


@pytest.mark.asyncio
async def test_upsert_updates_existing_row(store, session):
    session.execute.return_value = MagicMock(rowcount=1)

    await store.upsert("personal_finances", "u", {"salary_income": 1.0})

    session.add_all.assert_not_called()


@pytest.mark.asyncio
async def test_upsert_rejects_list_kinds(store):
    with pytest.raises(ValueError):
        await store.upsert("budgets", "u", {})


@pytest.mark.asyncio
async def test_replace_singletons_commits_once(store, session):
    session.execute.side_effect = [MagicMock(rowcount=1), MagicMock(rowcount=0)]

    await store.replace_singletons(
        "u",
        {"personal_finances": {"salary_income": 1.0}, "business_finances": {"revenue": 2.0}},
    )

    assert session.execute.await_count == 2
    inserted = session.add_all.call_args.args[0][0]
    assert isinstance(inserted, BusinessFinance)
    assert inserted.user_id == "u"
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_replace_singletons_second_write_failure_keeps_neither(store, session):
    session.execute.side_effect = [
        MagicMock(rowcount=1),
        OperationalError("UPDATE", {}, Exception("connection lost")),
    ]

    with pytest.raises(PersistenceError):
        await store.replace_singletons(
            "u",
            {"personal_finances": {"salary_income": 1.0}, "business_finances": {"revenue": 2.0}},
        )

    session.commit.assert_not_awaited()
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_replace_singletons_rejects_list_kinds(store, session):
    with pytest.raises(ValueError):
        await store.replace_singletons("u", {"personal_finances": {}, "investments": {}})

    session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_insert_with_children_links_children(store, session):
    optimization_id = await store.insert_with_children(
        "tax_optimization_results",
        {"user_id": "u", "current_tax": 100.0},
        "tax_suggestions",
        [
            {"user_id": "u", "title": "Open a SEP-IRA"},
            {"user_id": "u", "title": "Track home office"},
        ],
        parent_key="optimization_id",
    )

    parent_call, child_call = session.add_all.call_args_list
    [parent] = parent_call.args[0]
    children = child_call.args[0]
    assert isinstance(parent, TaxOptimizationRecord)
    assert optimization_id == str(parent.id)
    assert all(isinstance(child, TaxSuggestionRecord) for child in children)
    assert [child.optimization_id for child in children] == [parent.id, parent.id]
    session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_with_children_failure_keeps_nothing(store, session):
    async def fail_on_children():
        rows = session.add_all.call_args.args[0]
        if isinstance(rows[0], TaxSuggestionRecord):
            raise OperationalError("INSERT", {}, Exception("constraint violated"))
        for row in rows:
            row.id = uuid.uuid4()

    session.flush.side_effect = fail_on_children

    with pytest.raises(PersistenceError):
        await store.insert_with_children(
            "tax_optimization_results",
            {"user_id": "u"},
            "tax_suggestions",
            [{"user_id": "u", "title": "Open a SEP-IRA"}],
            parent_key="optimization_id",
        )

    session.commit.assert_not_awaited()
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_fetch_history_returns_row_dicts(store, session):
    session.execute.return_value = scalar_result(
        [TaxOptimizationRecord(user_id="u", current_tax=120.0, potential_savings=20.0)]
    )

    rows = await store.fetch_history("u", "tax_optimization_results", limit=5)

    assert rows[0]["current_tax"] == 120.0
    assert rows[0]["potential_savings"] == 20.0
    session.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_fetch_latest_optimization_when_none_stored(store, session):
    session.execute.return_value = scalar_result([])

    assert await store.fetch_latest_optimization("u") is None
    session.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_fetch_latest_optimization_attaches_suggestions(store, session):
    optimization_id = uuid.uuid4()
    session.execute.side_effect = [
        scalar_result([TaxOptimizationRecord(id=optimization_id, user_id="u", current_tax=1.0)]),
        scalar_result(
            [TaxSuggestionRecord(user_id="u", optimization_id=optimization_id, title="Open a SEP-IRA")]
        ),
    ]

    latest = await store.fetch_latest_optimization("u")

    assert latest["id"] == optimization_id
    assert [s["title"] for s in latest["suggestions"]] == ["Open a SEP-IRA"]
