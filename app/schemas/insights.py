"""Pydantic schemas for generated financial insights."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class InsightType(str, Enum):
    BUDGET = "budget"
    INVESTMENT = "investment"
    GENERAL = "general"


class InsightCategory(str, Enum):
    """Which insight families to generate."""
    BUDGET = "budget"
    INVESTMENT = "investment"
    GENERAL = "general"
    ALL = "all"


class InsightPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class Insight(BaseModel):
    """A prioritized, human-readable observation."""
    type: InsightType
    priority: InsightPriority
    title: str
    description: str
    recommendation: str
    impact: str


class InsightSummary(BaseModel):
    total_insights: int = 0
    high_priority: int = 0
    medium_priority: int = 0
    low_priority: int = 0


class InsightReport(BaseModel):
    """Ordered insights with counts by priority."""
    insights: List[Insight] = []
    summary: InsightSummary


class InsightRequest(BaseModel):
    user_id: Optional[str] = None
    insight_type: InsightCategory = InsightCategory.ALL
