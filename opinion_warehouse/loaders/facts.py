"""
Fact Loaders

Every fact table is rebuilt on each run: cleared, then reloaded from the
normalized opinions with all dimension keys resolved through the run's
DimensionSet. Records whose keys cannot be resolved are skipped and
counted; storage errors propagate.
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Sequence, Tuple, Type
import random

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from opinion_warehouse.database.models import (
    Base,
    FactEngagement,
    FactOpinion,
    FactSurveyResponse,
)
from opinion_warehouse.ingestion.records import NormalizedOpinion, SourceKind
from .base import CatalogNotInitializedError, CommitBatcher, DimensionResolutionError
from .dimensions import DimensionSet

logger = structlog.get_logger(__name__)


@dataclass
class FactLoadStats:
    """Outcome of one fact table reload"""
    table: str
    inserted: int = 0
    skipped: int = 0
    cleared: int = 0


def engagement_measures(likes: int, shares: int) -> Dict[str, Any]:
    """
    Derived engagement measures of a social comment.

    Example:
        >>> engagement_measures(12, 3)["views_count"]
        150
    """
    interactions = likes + shares
    return {
        "likes_count": likes,
        "shares_count": shares,
        "comments_count": 1,
        "views_count": interactions * 10,
        "replies_count": max(0, likes // 5),
        "engagement_rate": interactions / 10 if interactions > 0 else 0.0,
    }


class FactLoader:
    """
    Clear-and-reload protocol shared by all fact tables.

    Subclasses set ``model`` and implement ``build_row``; ``units`` turns
    the input records into the units that become rows (filtering by source
    kind, or aggregating).
    """

    model: ClassVar[Type[Base]]

    def __init__(
        self,
        session: AsyncSession,
        dimensions: DimensionSet,
        batch_key: int = 1,
        commit_every: int = 50,
    ):
        self.session = session
        self.dimensions = dimensions
        self.batch_key = batch_key
        self.commit_every = commit_every

    @property
    def table(self) -> str:
        return self.model.__tablename__

    async def clear(self) -> int:
        """Delete every row of the fact table."""
        result = await self.session.execute(delete(self.model))
        await self.session.commit()
        cleared = result.rowcount or 0
        logger.info("Fact table cleared", table=self.table, rows=cleared)
        return cleared

    async def prepare(self) -> None:
        """Hook run before the table is cleared; raise to abort the load."""

    def units(self, records: Iterable[NormalizedOpinion]) -> Sequence[Any]:
        return list(records)

    def describe(self, unit: Any) -> Dict[str, Any]:
        return {"record_id": getattr(unit, "record_id", None)}

    async def build_row(self, unit: Any) -> Base:
        raise NotImplementedError

    async def load(self, records: Iterable[NormalizedOpinion]) -> FactLoadStats:
        await self.prepare()
        units = self.units(records)
        stats = FactLoadStats(table=self.table, cleared=await self.clear())

        batcher = CommitBatcher(self.session, self.commit_every, self.table)
        for unit in units:
            try:
                row = await self.build_row(unit)
            except DimensionResolutionError as e:
                stats.skipped += 1
                logger.warning(
                    "Fact record skipped",
                    table=self.table,
                    reason=str(e),
                    **self.describe(unit),
                )
                continue

            self.session.add(row)
            stats.inserted += 1
            await batcher.step()
        await batcher.commit()

        logger.info(
            "Fact table loaded",
            table=self.table,
            inserted=stats.inserted,
            skipped=stats.skipped,
        )
        return stats

    async def _opinion_keys(self, opinion: NormalizedOpinion) -> Dict[str, int]:
        """Keys of the dimensions every opinion-grained fact references"""
        dims = self.dimensions
        return {
            "customer_key": await dims.customers.key_for(opinion.customer),
            "product_key": await dims.products.key_for(opinion.product),
            "date_key": await dims.dates.get_or_create_key(opinion.opinion_date),
            "source_key": await dims.sources.get_or_create_key(opinion.source_name),
            "channel_key": await dims.channels.get_or_create_key(opinion.channel_name),
            "etl_batch_key": self.batch_key,
        }


class OpinionFactLoader(FactLoader):
    """One fact_opinion row per normalized opinion from all three sources."""

    model = FactOpinion

    async def build_row(self, opinion: NormalizedOpinion) -> FactOpinion:
        keys = await self._opinion_keys(opinion)
        return FactOpinion(
            **keys,
            sentiment_key=await self.dimensions.sentiments.get_key(opinion.sentiment),
            sentiment_score=opinion.sentiment_score,
            satisfaction_score=opinion.satisfaction,
            comment_text=opinion.comment,
        )


class EngagementFactLoader(FactLoader):
    """Engagement metrics of social comments."""

    model = FactEngagement

    def units(self, records):
        return [r for r in records if r.kind is SourceKind.SOCIAL]

    async def build_row(self, opinion: NormalizedOpinion) -> FactEngagement:
        keys = await self._opinion_keys(opinion)
        return FactEngagement(**keys, **engagement_measures(opinion.likes, opinion.shares))


class SurveyResponseFactLoader(FactLoader):
    """
    Survey answers, one row per survey record.

    The source carries no question or answer timing, so each response is
    attributed to a question picked at random from the catalog and given a
    synthetic response time. Pass ``seed`` for reproducible loads.
    """

    model = FactSurveyResponse

    def __init__(
        self,
        session: AsyncSession,
        dimensions: DimensionSet,
        batch_key: int = 1,
        commit_every: int = 50,
        response_time_range: Tuple[int, int] = (10, 300),
        seed: Optional[int] = None,
    ):
        super().__init__(session, dimensions, batch_key, commit_every)
        self.response_time_range = response_time_range
        self.rng = random.Random(seed)
        self._question_keys: List[int] = []

    async def prepare(self) -> None:
        self._question_keys = await self.dimensions.questions.question_keys()
        if not self._question_keys:
            raise CatalogNotInitializedError("Survey question catalog is empty")

    def units(self, records):
        return [r for r in records if r.kind is SourceKind.SURVEY]

    async def build_row(self, opinion: NormalizedOpinion) -> FactSurveyResponse:
        keys = await self._opinion_keys(opinion)
        low, high = self.response_time_range
        return FactSurveyResponse(
            **keys,
            survey_question_key=self.rng.choice(self._question_keys),
            response_value=opinion.satisfaction,
            response_time_sec=self.rng.randint(low, high),
            is_valid_response=1 <= opinion.satisfaction <= 5,
        )
