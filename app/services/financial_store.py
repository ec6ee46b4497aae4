"""SQLAlchemy-backed storage for subjects' financial data and results."""
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import (
    AnalysisResultRecord,
    Budget,
    BusinessFinance,
    Investment,
    PersonalFinance,
    TaxOptimizationRecord,
    TaxSuggestionRecord,
)
from app.schemas.finance import (
    BUSINESS_FIELDS,
    PERSONAL_FIELDS,
    BudgetEntry,
    BusinessFinanceRecord,
    FinancialSnapshot,
    InvestmentPosition,
    PersonalFinanceRecord,
)
from app.services.exceptions import PersistenceError

logger = logging.getLogger(__name__)

KIND_MODELS = {
    "budgets": Budget,
    "investments": Investment,
    "personal_finances": PersonalFinance,
    "business_finances": BusinessFinance,
    "tax_optimization_results": TaxOptimizationRecord,
    "tax_suggestions": TaxSuggestionRecord,
    "analysis_results": AnalysisResultRecord,
}

# One row per subject
SINGLETON_KINDS = {"personal_finances", "business_finances"}


def _model_for(kind: str):
    try:
        return KIND_MODELS[kind]
    except KeyError:
        raise ValueError(f"Unknown data kind: {kind}") from None


def _row_to_dict(row) -> Dict[str, Any]:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


def budget_from_row(row: Mapping[str, Any]) -> BudgetEntry:
    return BudgetEntry(
        category=row["category"],
        type=row["type"],
        amount=row["amount"] or 0.0,
        date=row.get("date"),
        deductible=bool(row.get("deductible_expenses")),
        notes=row.get("notes"),
    )


def investment_from_row(row: Mapping[str, Any]) -> InvestmentPosition:
    return InvestmentPosition(
        asset_type=row["asset_type"],
        amount_invested=row["amount_invested"] or 0.0,
        current_value=row["current_value"] or 0.0,
        risk_level=row.get("risk_level") or "medium",
        tax_saving_potential=row.get("tax_saving_potential") or 0.0,
        symbol=row.get("symbol"),
        purchase_date=row.get("purchase_date"),
    )


def budget_to_row(subject_id: str, entry: BudgetEntry) -> Dict[str, Any]:
    return {
        "user_id": subject_id,
        "category": entry.category,
        "type": entry.type.value,
        "amount": entry.amount,
        "date": entry.date,
        "deductible_expenses": entry.deductible,
        "notes": entry.notes,
    }


def investment_to_row(subject_id: str, position: InvestmentPosition) -> Dict[str, Any]:
    return {
        "user_id": subject_id,
        "asset_type": position.asset_type,
        "symbol": position.symbol,
        "amount_invested": position.amount_invested,
        "current_value": position.current_value,
        "risk_level": position.risk_level.value,
        "tax_saving_potential": position.tax_saving_potential,
        "purchase_date": position.purchase_date,
    }


class FinancialDataStore:
    """
    Read and write financial data for one request's session.

    Every database failure surfaces as PersistenceError; writes are rolled
    back before raising.
    """

    def __init__(self, session: AsyncSession):
        self.db = session

    async def _fail(self, action: str, kind: str, error: SQLAlchemyError) -> PersistenceError:
        logger.error(f"Failed to {action} {kind}: {error}", exc_info=True)
        await self.db.rollback()
        return PersistenceError(f"Failed to {action} {kind}: {error}")

    async def fetch(self, subject_id: str, kind: str) -> List[Dict[str, Any]]:
        """Return every row of a kind belonging to the subject, as dicts."""
        model = _model_for(kind)
        try:
            result = await self.db.execute(select(model).where(model.user_id == subject_id))
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise await self._fail("fetch", kind, e) from e
        return [_row_to_dict(row) for row in rows]

    async def fetch_snapshot(self, subject_id: str) -> FinancialSnapshot:
        """Assemble the subject's budgets, investments and finance singletons."""
        budgets = await self.fetch(subject_id, "budgets")
        investments = await self.fetch(subject_id, "investments")
        personal_rows = await self.fetch(subject_id, "personal_finances")
        business_rows = await self.fetch(subject_id, "business_finances")

        personal = PersonalFinanceRecord()
        if personal_rows:
            personal = PersonalFinanceRecord(
                **{name: personal_rows[0].get(name) or 0.0 for name in PERSONAL_FIELDS}
            )

        business = BusinessFinanceRecord()
        if business_rows:
            business = BusinessFinanceRecord(
                **{name: business_rows[0].get(name) or 0.0 for name in BUSINESS_FIELDS}
            )

        logger.info(
            f"Loaded snapshot for {subject_id}: {len(budgets)} budgets, "
            f"{len(investments)} investments"
        )
        return FinancialSnapshot(
            subject_id=subject_id,
            budgets=[budget_from_row(row) for row in budgets],
            investments=[investment_from_row(row) for row in investments],
            personal_finances=personal,
            business_finances=business,
        )

    async def fetch_history(
        self, subject_id: str, kind: str, limit: Optional[int] = None, **filters: Any
    ) -> List[Dict[str, Any]]:
        """Return the subject's rows of a kind, newest first, matching ``filters``."""
        model = _model_for(kind)
        query = select(model).where(model.user_id == subject_id)
        for column, value in filters.items():
            query = query.where(getattr(model, column) == value)
        query = query.order_by(model.created_at.desc())
        if limit is not None:
            query = query.limit(limit)
        try:
            result = await self.db.execute(query)
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise await self._fail("fetch", kind, e) from e
        return [_row_to_dict(row) for row in rows]

    async def fetch_latest_optimization(self, subject_id: str) -> Optional[Dict[str, Any]]:
        """Newest stored optimization with its suggestions, or None."""
        latest = await self.fetch_history(subject_id, "tax_optimization_results", limit=1)
        if not latest:
            return None
        optimization = latest[0]
        optimization["suggestions"] = await self.fetch_history(
            subject_id, "tax_suggestions", optimization_id=optimization["id"]
        )
        return optimization

    async def _add_rows(self, model, payloads: Sequence[Mapping[str, Any]]) -> list:
        rows = [model(**dict(payload)) for payload in payloads]
        self.db.add_all(rows)
        await self.db.flush()
        return rows

    async def _update_rows(self, model, subject_id: str, payload: Mapping[str, Any]) -> int:
        result = await self.db.execute(
            update(model).where(model.user_id == subject_id).values(**dict(payload))
        )
        return result.rowcount

    async def insert(self, kind: str, payload: Mapping[str, Any]) -> str:
        """Insert one row and return its id."""
        ids = await self.insert_many(kind, [payload])
        return ids[0]

    async def insert_many(self, kind: str, payloads: Sequence[Mapping[str, Any]]) -> List[str]:
        """Insert rows in one transaction and return their ids."""
        model = _model_for(kind)
        try:
            rows = await self._add_rows(model, payloads)
            ids = [str(row.id) for row in rows]
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._fail("insert", kind, e) from e
        logger.info(f"Inserted {len(ids)} {kind} row(s)")
        return ids

    async def insert_with_children(
        self,
        kind: str,
        payload: Mapping[str, Any],
        child_kind: str,
        children: Sequence[Mapping[str, Any]],
        parent_key: str,
    ) -> str:
        """
        Insert a row and the rows that reference it in one transaction.

        Each child gets the new row's id under ``parent_key``. Nothing is
        kept if any insert fails.
        """
        model = _model_for(kind)
        child_model = _model_for(child_kind)
        try:
            [parent] = await self._add_rows(model, [payload])
            if children:
                await self._add_rows(
                    child_model, [{**child, parent_key: parent.id} for child in children]
                )
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._fail("insert", f"{kind} and {child_kind}", e) from e
        logger.info(f"Inserted {kind} {parent.id} with {len(children)} {child_kind} row(s)")
        return str(parent.id)

    async def update(self, kind: str, subject_id: str, payload: Mapping[str, Any]) -> int:
        """Update the subject's rows of a kind; returns the number of rows changed."""
        model = _model_for(kind)
        try:
            updated = await self._update_rows(model, subject_id, payload)
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._fail("update", kind, e) from e
        return updated

    async def delete(self, kind: str, subject_id: str) -> int:
        """Delete the subject's rows of a kind; returns the number of rows removed."""
        model = _model_for(kind)
        try:
            result = await self.db.execute(delete(model).where(model.user_id == subject_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._fail("delete", kind, e) from e
        logger.info(f"Deleted {result.rowcount} {kind} row(s) for {subject_id}")
        return result.rowcount

    async def replace_singletons(
        self, subject_id: str, payloads: Mapping[str, Mapping[str, Any]]
    ) -> None:
        """
        Replace several per-subject rows in one transaction.

        Each row is updated in place or inserted when the subject has none.
        Either every row is written or none is.
        """
        unknown = [kind for kind in payloads if kind not in SINGLETON_KINDS]
        if unknown:
            raise ValueError(f"{', '.join(unknown)} is not a per-subject singleton")

        kinds = ", ".join(payloads)
        try:
            for kind, payload in payloads.items():
                model = KIND_MODELS[kind]
                if not await self._update_rows(model, subject_id, payload):
                    await self._add_rows(model, [{**payload, "user_id": subject_id}])
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._fail("replace", kinds, e) from e
        logger.info(f"Replaced {kinds} for {subject_id}")

    async def upsert(self, kind: str, subject_id: str, payload: Mapping[str, Any]) -> None:
        """Replace a singleton row, inserting it when the subject has none."""
        await self.replace_singletons(subject_id, {kind: payload})
