"""
Dimension Resolvers

One resolver per warehouse dimension:
- CustomerResolver, ProductResolver: natural keys from the sources
- SourceResolver, ChannelResolver: names classified into a type on creation
- DateResolver: deterministic YYYYMMDD keys and date-range back-fill
- SentimentResolver: fixed Positive / Negative / Neutral catalog
- SurveyQuestionResolver: standard survey question catalog
- EtlBatchRegistry: the run row every fact references
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opinion_warehouse.database.models import (
    DimChannel,
    DimCustomer,
    DimDate,
    DimETLBatch,
    DimProduct,
    DimSentiment,
    DimSource,
    DimSurveyQuestion,
)
from opinion_warehouse.ingestion.records import CustomerRef, ProductRef, Sentiment
from .base import CatalogNotInitializedError, CommitBatcher, DimensionResolver, merge_type1

logger = structlog.get_logger(__name__)

UNKNOWN = "Unknown"
GENERIC_BRAND = "Generic Brand"
GENERAL_CATEGORY = "General Category"

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# (keywords, type) pairs, checked in order, first match wins
CHANNEL_TYPES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("facebook", "twitter", "instagram", "social"), "Red Social"),
    (("web", "site", "sitio"), "Sitio Web"),
    (("survey", "encuesta"), "Encuesta"),
    (("email", "correo"), "Email"),
    (("mobile", "móvil", "movil", "app"), "Aplicación Móvil"),
)
OTHER_CHANNEL_TYPE = "Otro"

SOURCE_TYPES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("csv", "survey", "encuesta"), "CSV File"),
    (("web", "review"), "Database"),
    (("api", "social"), "REST API"),
)
UNKNOWN_SOURCE_TYPE = "Unknown"

STANDARD_QUESTIONS: Tuple[Dict[str, object], ...] = (
    {"question_text": "How satisfied are you with the product?",
     "question_type": "Scale", "scale_min": 1, "scale_max": 5},
    {"question_text": "How likely are you to recommend the product?",
     "question_type": "Scale", "scale_min": 1, "scale_max": 5},
    {"question_text": "How would you rate the product quality?",
     "question_type": "Scale", "scale_min": 1, "scale_max": 5},
    {"question_text": "How would you rate the value for money?",
     "question_type": "Scale", "scale_min": 1, "scale_max": 5},
)


def _classify(name: Optional[str], rules, fallback: str) -> str:
    lowered = (name or "").lower()
    for keywords, kind in rules:
        if any(keyword in lowered for keyword in keywords):
            return kind
    return fallback


def classify_channel(name: Optional[str]) -> str:
    """
    Channel type from a channel name.

    Example:
        >>> classify_channel("Instagram")
        'Red Social'
    """
    return _classify(name, CHANNEL_TYPES, OTHER_CHANNEL_TYPE)


def classify_source(name: Optional[str]) -> str:
    """Source type from a source name"""
    return _classify(name, SOURCE_TYPES, UNKNOWN_SOURCE_TYPE)


# =============================================================================
# NATURAL-KEY DIMENSIONS
# =============================================================================

class CustomerResolver(DimensionResolver):
    """Customers keyed by name; gender, age range and country default to Unknown."""

    model = DimCustomer
    key_attr = "customer_key"
    natural_key = ("customer_name",)
    attributes = ("gender", "age_range", "country")
    defaults = {"gender": UNKNOWN, "age_range": UNKNOWN, "country": UNKNOWN}

    async def get_or_create_key(
        self,
        customer_name: str,
        gender: Optional[str] = None,
        age_range: Optional[str] = None,
        country: Optional[str] = None,
    ) -> int:
        return await self.resolve(
            {
                "customer_name": customer_name,
                "gender": gender,
                "age_range": age_range,
                "country": country,
            }
        )

    async def key_for(self, customer: CustomerRef) -> int:
        return await self.resolve(customer.as_attributes())

    async def load_customers(self, customers: Iterable[CustomerRef]) -> int:
        return await self.bulk_load(c.as_attributes() for c in customers)


class ProductResolver(DimensionResolver):
    """
    Products keyed by (name, brand, category).

    A missing brand or category falls back to the generic placeholders, so
    the same product is found whether or not the source carried them.
    """

    model = DimProduct
    key_attr = "product_key"
    natural_key = ("product_name", "brand", "category")
    attributes = ("price", "is_active")
    defaults = {
        "brand": GENERIC_BRAND,
        "category": GENERAL_CATEGORY,
        "price": Decimal("0"),
        "is_active": True,
    }

    async def get_or_create_key(
        self,
        product_name: str,
        brand: Optional[str] = None,
        category: Optional[str] = None,
        price: Optional[Decimal] = None,
    ) -> int:
        return await self.resolve(
            {
                "product_name": product_name,
                "brand": brand,
                "category": category,
                "price": price,
            }
        )

    async def key_for(self, product: ProductRef) -> int:
        return await self.resolve(product.as_attributes())

    async def load_products(self, products: Iterable[ProductRef]) -> int:
        return await self.bulk_load(p.as_attributes() for p in products)


class SourceResolver(DimensionResolver):
    model = DimSource
    key_attr = "source_key"
    natural_key = ("source_name",)
    attributes = ("source_type",)

    def prepare(self, values):
        attrs = super().prepare(values)
        if not attrs.get("source_type"):
            attrs["source_type"] = classify_source(attrs.get("source_name"))
        return attrs

    async def get_or_create_key(self, source_name: str) -> int:
        return await self.resolve({"source_name": source_name})

    async def load_names(self, names: Iterable[str]) -> int:
        return await self.bulk_load({"source_name": name} for name in dict.fromkeys(names))


class ChannelResolver(DimensionResolver):
    model = DimChannel
    key_attr = "channel_key"
    natural_key = ("channel_name",)
    attributes = ("channel_type",)

    def prepare(self, values):
        attrs = super().prepare(values)
        if not attrs.get("channel_type"):
            attrs["channel_type"] = classify_channel(attrs.get("channel_name"))
        return attrs

    async def get_or_create_key(self, channel_name: str) -> int:
        return await self.resolve({"channel_name": channel_name})

    async def load_names(self, names: Iterable[str]) -> int:
        return await self.bulk_load({"channel_name": name} for name in dict.fromkeys(names))


class SurveyQuestionResolver(DimensionResolver):
    """Survey question catalog keyed by question text."""

    model = DimSurveyQuestion
    key_attr = "survey_question_key"
    natural_key = ("question_text",)
    attributes = ("question_type", "scale_min", "scale_max")
    defaults = {"question_type": "Text", "scale_min": 1, "scale_max": 5}

    async def get_or_create_key(self, question_text: str) -> int:
        return await self.resolve({"question_text": question_text})

    async def initialize_catalog(
        self, questions: Sequence[Dict[str, object]] = STANDARD_QUESTIONS
    ) -> int:
        """Insert the standard questions that are missing; safe to repeat."""
        changed = await self.bulk_load(questions)
        logger.info("Survey question catalog ready", changed=changed)
        return changed

    async def question_keys(self) -> List[int]:
        return sorted(await self.keys())


# =============================================================================
# DATE DIMENSION
# =============================================================================

def date_key(value: Union[date, datetime]) -> int:
    """
    Surrogate key of a calendar day.

    Example:
        >>> date_key(date(2024, 3, 15))
        20240315
    """
    if isinstance(value, datetime):
        value = value.date()
    return value.year * 10000 + value.month * 100 + value.day


def date_attributes(value: date) -> Dict[str, object]:
    return {
        "date_key": date_key(value),
        "full_date": value,
        "day": value.day,
        "month": value.month,
        "month_name": MONTH_NAMES[value.month - 1],
        "quarter": (value.month - 1) // 3 + 1,
        "year": value.year,
    }


class DateResolver:
    """
    Date dimension with keys computed from the date itself.

    Example:
        dates = DateResolver(session)
        await dates.load_date_range(date(2024, 1, 1), date(2024, 1, 31))
        key = await dates.get_or_create_key(date(2024, 1, 15))  # 20240115
    """

    def __init__(self, session: AsyncSession, commit_every: int = 100):
        self.session = session
        self.commit_every = commit_every
        self._known: Set[int] = set()

    async def get_or_create_key(self, value: Union[date, datetime]) -> int:
        if isinstance(value, datetime):
            value = value.date()
        key = date_key(value)
        if key in self._known:
            return key

        if await self.session.get(DimDate, key) is None:
            self.session.add(DimDate(**date_attributes(value)))
            await self.session.flush()
            logger.info("Date row created", date_key=key)

        self._known.add(key)
        return key

    async def load_date_range(self, start: date, end: date) -> int:
        """
        Insert every missing day of ``[start, end]``.

        Returns:
            Number of rows inserted
        """
        if isinstance(start, datetime):
            start = start.date()
        if isinstance(end, datetime):
            end = end.date()
        if start > end:
            raise ValueError(f"Invalid date range: {start} > {end}")

        result = await self.session.execute(
            select(DimDate.date_key).where(DimDate.date_key.between(date_key(start), date_key(end)))
        )
        existing = set(result.scalars().all())

        batcher = CommitBatcher(self.session, self.commit_every, DimDate.__tablename__)
        inserted = 0
        current = start
        while current <= end:
            key = date_key(current)
            if key not in existing:
                self.session.add(DimDate(**date_attributes(current)))
                inserted += 1
                await batcher.step()
            self._known.add(key)
            current += timedelta(days=1)
        await batcher.commit()

        logger.info("Date range loaded", start=str(start), end=str(end), inserted=inserted)
        return inserted


# =============================================================================
# CATALOGS
# =============================================================================

class SentimentResolver:
    """
    Fixed sentiment catalog.

    Unknown names resolve to Neutral; without a Neutral row the catalog is
    unusable and CatalogNotInitializedError is raised.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self._keys: Dict[str, int] = {}

    async def _refresh(self) -> None:
        result = await self.session.execute(select(DimSentiment))
        self._keys = {row.sentiment_name: row.sentiment_key for row in result.scalars().all()}

    async def initialize_catalog(self) -> int:
        """Insert missing catalog rows; returns how many were inserted."""
        await self._refresh()
        inserted = 0
        for sentiment in Sentiment:
            if sentiment.value not in self._keys:
                self.session.add(
                    DimSentiment(sentiment_name=sentiment.value, polarity=sentiment.polarity)
                )
                inserted += 1
        if inserted:
            await self.session.commit()
            await self._refresh()

        logger.info("Sentiment catalog ready", inserted=inserted)
        return inserted

    async def get_key(self, name: Union[str, Sentiment]) -> int:
        name = name.value if isinstance(name, Sentiment) else (name or "").strip()
        if name not in self._keys:
            await self._refresh()

        key = self._keys.get(name)
        if key is not None:
            return key

        logger.warning("Unknown sentiment, using Neutral", sentiment=name)
        neutral = self._keys.get(Sentiment.NEUTRAL.value)
        if neutral is None:
            raise CatalogNotInitializedError("Sentiment catalog has no Neutral row")
        return neutral


class EtlBatchRegistry:
    """Keeps the dim_etl_batch row of the current run up to date."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def ensure(self, batch_key: int, batch_name: str, source_description: str = "") -> int:
        row = await self.session.get(DimETLBatch, batch_key)
        incoming = {
            "etl_batch_key": batch_key,
            "batch_name": batch_name,
            "load_date": datetime.now(),
            "source_description": source_description,
        }
        current = None if row is None else {
            "etl_batch_key": row.etl_batch_key,
            "batch_name": row.batch_name,
            "load_date": row.load_date,
            "source_description": row.source_description,
        }
        merged, created = merge_type1(current, incoming, ("etl_batch_key",))

        if created:
            self.session.add(DimETLBatch(**merged))
        else:
            for name, value in merged.items():
                setattr(row, name, value)
        await self.session.commit()

        logger.info("ETL batch registered", etl_batch_key=batch_key, created=created)
        return batch_key


@dataclass
class DimensionSet:
    """The resolvers of one run; their key caches live as long as the set."""
    customers: CustomerResolver
    products: ProductResolver
    dates: DateResolver
    sources: SourceResolver
    channels: ChannelResolver
    sentiments: SentimentResolver
    questions: SurveyQuestionResolver

    @classmethod
    def for_session(cls, session: AsyncSession, commit_every: int = 50) -> "DimensionSet":
        return cls(
            customers=CustomerResolver(session, commit_every),
            products=ProductResolver(session, commit_every),
            dates=DateResolver(session, commit_every),
            sources=SourceResolver(session, commit_every),
            channels=ChannelResolver(session, commit_every),
            sentiments=SentimentResolver(session),
            questions=SurveyQuestionResolver(session, commit_every),
        )
