"""
Prefect Workflow Orchestration - Opinions Warehouse ETL

Extract the three opinion sources, enrich them with master data and load
the star schema:
- Extraction tasks retry on transient failures
- The load itself runs once; a failed load is reported, then raised
"""

from pathlib import Path
from typing import List, Optional

from prefect import flow, task, get_run_logger
from sqlalchemy.ext.asyncio import create_async_engine

from opinion_warehouse.config import get_settings
from opinion_warehouse.config.logging import configure_logging
from opinion_warehouse.database.connection import close_database, create_tables, init_database
from opinion_warehouse.ingestion.extractors import (
    MasterData,
    ReviewExtractor,
    fetch_master_data,
    read_social_comments_json,
    read_survey_csv,
)
from opinion_warehouse.ingestion.records import ReviewRecord, SocialCommentRecord, SurveyRecord
from opinion_warehouse.pipeline.orchestrator import run_warehouse_load

settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="extract_surveys",
    description="Read the survey CSV file",
    retries=3,
    retry_delay_seconds=30,
)
def extract_surveys(path: str, delimiter: str = ",") -> List[SurveyRecord]:
    logger = get_run_logger()
    if not Path(path).exists():
        logger.warning(f"Survey file not found, skipping: {path}")
        return []
    surveys = read_survey_csv(path, delimiter)
    logger.info(f"Extracted {len(surveys)} survey records")
    return surveys


@task(
    name="extract_reviews",
    description="Page through the web reviews database",
    retries=3,
    retry_delay_seconds=60,
)
async def extract_reviews(db_url: Optional[str], page_size: int = 1000) -> List[ReviewRecord]:
    logger = get_run_logger()
    if not db_url:
        logger.warning("No review database configured, skipping reviews")
        return []

    engine = create_async_engine(db_url)
    try:
        reviews = await ReviewExtractor(engine, page_size=page_size).extract()
    finally:
        await engine.dispose()

    logger.info(f"Extracted {len(reviews)} review records")
    return reviews


@task(
    name="extract_social_comments",
    description="Read the social comments feed dump",
    retries=3,
    retry_delay_seconds=30,
)
def extract_social_comments(path: str) -> List[SocialCommentRecord]:
    logger = get_run_logger()
    if not Path(path).exists():
        logger.warning(f"Social comments file not found, skipping: {path}")
        return []
    comments = read_social_comments_json(path)
    logger.info(f"Extracted {len(comments)} social comments")
    return comments


@task(
    name="fetch_master_data",
    description="Load customer and product master tables",
    retries=2,
    retry_delay_seconds=30,
)
async def load_master_data(db_url: Optional[str]) -> MasterData:
    if not db_url:
        return MasterData()
    engine = create_async_engine(db_url)
    try:
        return await fetch_master_data(engine)
    finally:
        await engine.dispose()


@task(
    name="load_warehouse",
    description="Load dimensions and rebuild the fact tables",
)
async def load_warehouse(
    surveys: List[SurveyRecord],
    reviews: List[ReviewRecord],
    comments: List[SocialCommentRecord],
) -> dict:
    logger = get_run_logger()

    await init_database()
    try:
        await create_tables()
        report = await run_warehouse_load(surveys, reviews, comments, settings=settings)
    finally:
        await close_database()

    logger.info(
        f"Warehouse load {report.status.value}: "
        f"{sum(f.inserted for f in report.facts.values())} fact rows inserted, "
        f"{sum(f.skipped for f in report.facts.values())} skipped"
    )
    return report.model_dump(mode="json")


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="opinion_warehouse_etl",
    description="Load customer opinions from surveys, reviews and social media",
)
async def opinion_warehouse_etl(
    survey_csv_path: Optional[str] = None,
    reviews_db_url: Optional[str] = None,
    social_comments_path: Optional[str] = None,
) -> dict:
    """
    Full warehouse reload.

    Steps:
    1. Extract surveys, reviews and social comments
    2. Enrich them with customer/product master data
    3. Load dimensions and facts
    """
    logger = get_run_logger()
    sources = settings.sources

    reviews_db_url = reviews_db_url or sources.reviews_db_url

    surveys = extract_surveys(survey_csv_path or sources.survey_csv_path, sources.survey_csv_delimiter)
    reviews = await extract_reviews(reviews_db_url, sources.reviews_page_size)
    comments = extract_social_comments(social_comments_path or sources.social_comments_path)

    master = await load_master_data(reviews_db_url)
    surveys = master.enrich(surveys)
    reviews = master.enrich(reviews)
    comments = master.enrich(comments)

    result = await load_warehouse(surveys, reviews, comments)

    if result["status"] != "completed":
        logger.error(f"Warehouse load failed in phase {result['failed_phase']}: {result['error_message']}")
        raise RuntimeError(f"Warehouse load failed: {result['error_message']}")

    return result


if __name__ == "__main__":
    import asyncio

    configure_logging()
    asyncio.run(opinion_warehouse_etl())
