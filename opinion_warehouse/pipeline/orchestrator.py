"""
Warehouse Load Orchestrator

Runs one full warehouse load over an OpinionBatch:

1. Catalogs and run metadata: sentiment, survey questions, ETL batch
2. Dimension pre-load: source, channel, date range, product, customer
3. Fact reload: Opinion, Engagement, SurveyResponse, ProductSummary

Phases run strictly in this order on a single session. Any error rolls
back the open transaction and ends the run with a failed report; facts
already reloaded stay in place until the next run clears them.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Optional

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from opinion_warehouse.config import Settings, get_settings
from opinion_warehouse.config.logging import enter_phase, warehouse_log_context
from opinion_warehouse.database.connection import get_db
from opinion_warehouse.ingestion.normalizer import OpinionBatch, SourceNormalizer
from opinion_warehouse.ingestion.records import ReviewRecord, SocialCommentRecord, SurveyRecord
from opinion_warehouse.loaders.dimensions import DimensionSet, EtlBatchRegistry
from opinion_warehouse.loaders.facts import (
    EngagementFactLoader,
    FactLoader,
    FactLoadStats,
    OpinionFactLoader,
    SurveyResponseFactLoader,
)
from opinion_warehouse.loaders.summary import ProductSummaryLoader

logger = structlog.get_logger(__name__)


class LoadStatus(str, Enum):
    """Warehouse load status"""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FactCounts(BaseModel):
    inserted: int = 0
    skipped: int = 0


class WarehouseLoadReport(BaseModel):
    """Result of a warehouse load run"""
    etl_batch_key: int
    status: LoadStatus = LoadStatus.RUNNING
    records_received: int = 0
    dimensions: Dict[str, int] = Field(default_factory=dict)
    facts: Dict[str, FactCounts] = Field(default_factory=dict)
    failed_phase: Optional[str] = None
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0

    @property
    def succeeded(self) -> bool:
        return self.status == LoadStatus.COMPLETED


class WarehouseLoader:
    """
    Loads normalized opinions into the star schema.

    Example:
        async with get_db() as db:
            report = await WarehouseLoader(db).run(batch)
            print(report.facts["fact_opinion"].inserted)
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.etl = self.settings.etl
        self.dimensions = DimensionSet.for_session(session, self.etl.commit_every)
        self.batches = EtlBatchRegistry(session)
        self._phase: Optional[str] = None

    def _enter_phase(self, phase: str) -> None:
        self._phase = phase
        enter_phase(phase)

    def _fact_loaders(self) -> Dict[str, FactLoader]:
        common = dict(
            session=self.session,
            dimensions=self.dimensions,
            batch_key=self.etl.batch_key,
            commit_every=self.etl.commit_every,
        )
        return {
            "opinion": OpinionFactLoader(**common),
            "engagement": EngagementFactLoader(**common),
            "survey_response": SurveyResponseFactLoader(
                **common,
                response_time_range=self.etl.response_time_range,
                seed=self.etl.random_seed,
            ),
            "product_summary": ProductSummaryLoader(**common),
        }

    async def load_dimensions(self, batch: OpinionBatch, report: WarehouseLoadReport) -> None:
        dims = self.dimensions

        self._enter_phase("sentiment")
        report.dimensions["sentiment"] = await dims.sentiments.initialize_catalog()

        self._enter_phase("survey_question")
        report.dimensions["survey_question"] = await dims.questions.initialize_catalog()

        self._enter_phase("etl_batch")
        await self.batches.ensure(
            self.etl.batch_key,
            self.etl.batch_name,
            source_description=", ".join(self.etl.source_names),
        )

        self._enter_phase("source")
        report.dimensions["source"] = await dims.sources.load_names(self.etl.source_names)

        self._enter_phase("channel")
        report.dimensions["channel"] = await dims.channels.load_names(
            [*self.etl.channel_names, *batch.channel_names()]
        )

        self._enter_phase("date")
        span = batch.date_range()
        report.dimensions["date"] = await dims.dates.load_date_range(*span) if span else 0

        self._enter_phase("product")
        report.dimensions["product"] = await dims.products.load_products(batch.products())

        self._enter_phase("customer")
        report.dimensions["customer"] = await dims.customers.load_customers(batch.customers())

    async def load_facts(self, batch: OpinionBatch, report: WarehouseLoadReport) -> None:
        sources: Dict[str, Iterable] = {
            "opinion": batch.all(),
            "engagement": batch.social,
            "survey_response": batch.surveys,
            "product_summary": batch.all(),
        }
        for name, loader in self._fact_loaders().items():
            self._enter_phase(loader.table)
            stats: FactLoadStats = await loader.load(sources[name])
            report.facts[stats.table] = FactCounts(inserted=stats.inserted, skipped=stats.skipped)

    async def run(self, batch: OpinionBatch) -> WarehouseLoadReport:
        """
        Run every phase; never raises.

        Returns:
            WarehouseLoadReport with per-phase counts, COMPLETED or FAILED
        """
        report = WarehouseLoadReport(
            etl_batch_key=self.etl.batch_key,
            records_received=len(batch),
            started_at=datetime.now(),
        )
        with warehouse_log_context(self.etl.batch_key, self.etl.batch_name):
            logger.info("Warehouse load started", records=len(batch))

            try:
                await self.load_dimensions(batch, report)
                await self.load_facts(batch, report)
                report.status = LoadStatus.COMPLETED

            except Exception as e:
                report.status = LoadStatus.FAILED
                report.failed_phase = self._phase
                report.error_message = str(e)
                await self.session.rollback()
                logger.error(
                    "Warehouse load failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

            report.completed_at = datetime.now()
            report.duration_seconds = (report.completed_at - report.started_at).total_seconds()

            if report.succeeded:
                logger.info(
                    "Warehouse load completed",
                    phase=None,
                    dimensions=report.dimensions,
                    facts={table: counts.model_dump() for table, counts in report.facts.items()},
                    duration_seconds=report.duration_seconds,
                )
        return report


async def run_warehouse_load(
    surveys: Iterable[SurveyRecord] = (),
    reviews: Iterable[ReviewRecord] = (),
    comments: Iterable[SocialCommentRecord] = (),
    settings: Optional[Settings] = None,
) -> WarehouseLoadReport:
    """
    Normalize the three sources and load them in one session.

    The database must have been initialized with ``init_database()``.
    """
    settings = settings or get_settings()
    batch = SourceNormalizer(settings.etl).normalize(surveys, reviews, comments)
    async with get_db() as db:
        return await WarehouseLoader(db, settings).run(batch)
