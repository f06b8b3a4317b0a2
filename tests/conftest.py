"""
Test Suite Configuration
"""
from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator, List

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from opinion_warehouse.config import Settings
from opinion_warehouse.config.settings import EtlSettings
from opinion_warehouse.database.connection import create_session_factory
from opinion_warehouse.database.models import Base
from opinion_warehouse.ingestion.normalizer import OpinionBatch, SourceNormalizer
from opinion_warehouse.ingestion.records import ReviewRecord, SocialCommentRecord, SurveyRecord
from opinion_warehouse.loaders.dimensions import DimensionSet


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(etl=EtlSettings(commit_every=2, random_seed=42))


@pytest.fixture
async def test_engine():
    """Create an in-memory warehouse shared by every session of a test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session"""
    session_factory = create_session_factory(test_engine)

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def dimensions(test_db) -> DimensionSet:
    return DimensionSet.for_session(test_db, commit_every=2)


@pytest.fixture
def sample_surveys() -> List[SurveyRecord]:
    """Survey rows for two customers and two products"""
    return [
        SurveyRecord(
            opinion_id=1,
            customer_id=10,
            product_id=100,
            opinion_date=datetime(2024, 3, 15, 9, 30),
            comment="Great battery life",
            classification="Positiva",
            satisfaction=5,
            customer_name="Ana Pérez",
            gender="F",
            age_range="25-34",
            country="Dominican Republic",
            product_name="Phone X",
            brand="Acme",
            category="Electronics",
            price=Decimal("499.99"),
        ),
        SurveyRecord(
            opinion_id=2,
            customer_id=11,
            product_id=100,
            opinion_date=datetime(2024, 3, 15, 14, 0),
            comment="It is fine",
            classification="Neutra",
            satisfaction=3,
            customer_name="Luis Gómez",
            product_name="Phone X",
            brand="Acme",
            category="Electronics",
        ),
        SurveyRecord(
            opinion_id=3,
            customer_id=10,
            product_id=101,
            opinion_date=datetime(2024, 3, 17),
            comment="Broke after a week",
            classification="Negativa",
            satisfaction=1,
            customer_name="Ana Pérez",
            product_name="Headphones Z",
            brand="Acme",
            category="Audio",
        ),
    ]


@pytest.fixture
def sample_reviews() -> List[ReviewRecord]:
    return [
        ReviewRecord(
            review_id=501,
            customer_id=11,
            product_id=100,
            review_date=datetime(2024, 3, 16, 18, 45),
            comment="Love it",
            classification="positive",
            rating=4,
            customer_name="Luis Gómez",
            product_name="Phone X",
            brand="Acme",
            category="Electronics",
        ),
    ]


@pytest.fixture
def sample_comments() -> List[SocialCommentRecord]:
    return [
        SocialCommentRecord(
            comment_id=9001,
            customer_id=12,
            product_id=100,
            comment_date=datetime(2024, 3, 15, 20, 10),
            comment="Anyone else got this phone?",
            likes=12,
            shares=3,
            platform="Instagram",
            customer_name="Customer 12",
            product_name="Phone X",
            brand="Acme",
            category="Electronics",
        ),
        SocialCommentRecord(
            comment_id=9002,
            customer_id=13,
            product_id=101,
            comment_date=datetime(2024, 3, 16, 8, 0),
            comment="",
            likes=0,
            shares=0,
            platform="Twitter",
            customer_name="Customer 13",
            product_name="Headphones Z",
            brand="Acme",
            category="Audio",
        ),
    ]


@pytest.fixture
def sample_batch(test_settings, sample_surveys, sample_reviews, sample_comments) -> OpinionBatch:
    return SourceNormalizer(test_settings.etl).normalize(
        sample_surveys, sample_reviews, sample_comments
    )
