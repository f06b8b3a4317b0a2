"""
Product Summary Aggregation

Groups normalized opinions by product, day, source and channel with Polars
and loads one fact_product_summary row per group. Sentiment is not part of
the grouping; each row references the predominant sentiment of its group.
"""

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

import polars as pl
import structlog

from opinion_warehouse.database.models import FactProductSummary
from opinion_warehouse.ingestion.records import NormalizedOpinion, Sentiment
from .dimensions import GENERAL_CATEGORY, GENERIC_BRAND
from .facts import FactLoader

logger = structlog.get_logger(__name__)

GROUP_COLUMNS = ["product_name", "brand", "category", "opinion_date", "source_name", "channel_name"]

OPINION_SCHEMA = {
    "product_name": pl.Utf8,
    "brand": pl.Utf8,
    "category": pl.Utf8,
    "opinion_date": pl.Date,
    "source_name": pl.Utf8,
    "channel_name": pl.Utf8,
    "sentiment_score": pl.Float64,
    "satisfaction": pl.Float64,
}


def sentiment_percentages(total: int, positive: int, negative: int, neutral: int) -> Dict[str, float]:
    """Share of each polarity in percent, 2 decimals; all zero for an empty group"""
    if total <= 0:
        return {"positive_percent": 0.0, "negative_percent": 0.0, "neutral_percent": 0.0}
    return {
        "positive_percent": round(positive / total * 100, 2),
        "negative_percent": round(negative / total * 100, 2),
        "neutral_percent": round(neutral / total * 100, 2),
    }


def predominant_sentiment(positive: int, negative: int, neutral: int) -> Sentiment:
    """
    Sentiment with a strict plurality; any tie at the top is Neutral.

    Example:
        >>> predominant_sentiment(2, 1, 1)
        <Sentiment.POSITIVE: 'Positive'>
        >>> predominant_sentiment(2, 2, 0)
        <Sentiment.NEUTRAL: 'Neutral'>
    """
    if positive > negative and positive > neutral:
        return Sentiment.POSITIVE
    if negative > positive and negative > neutral:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL


@dataclass(frozen=True)
class OpinionGroup:
    """Aggregated opinions of one product on one day from one source and channel"""
    product_name: str
    brand: str
    category: str
    opinion_date: date
    source_name: str
    channel_name: str
    total: int
    avg_sentiment_score: float
    avg_satisfaction: float
    positive: int
    negative: int
    neutral: int

    @property
    def percentages(self) -> Dict[str, float]:
        return sentiment_percentages(self.total, self.positive, self.negative, self.neutral)

    @property
    def predominant(self) -> Sentiment:
        return predominant_sentiment(self.positive, self.negative, self.neutral)


def _opinion_row(opinion: NormalizedOpinion) -> Dict[str, object]:
    # Placeholders applied here too, so groups line up with product rows
    return {
        "product_name": opinion.product.name.strip(),
        "brand": (opinion.product.brand or "").strip() or GENERIC_BRAND,
        "category": (opinion.product.category or "").strip() or GENERAL_CATEGORY,
        "opinion_date": opinion.opinion_date,
        "source_name": opinion.source_name.strip(),
        "channel_name": opinion.channel_name.strip(),
        "sentiment_score": opinion.sentiment_score,
        "satisfaction": opinion.satisfaction,
    }


def aggregate_opinions(opinions: Iterable[NormalizedOpinion]) -> List[OpinionGroup]:
    """
    Group opinions by (product, brand, category, day, source, channel).

    Returns:
        Groups sorted by their grouping columns
    """
    rows = [_opinion_row(opinion) for opinion in opinions]
    if not rows:
        return []

    df = pl.from_dicts(rows, schema=OPINION_SCHEMA)
    grouped = (
        df.group_by(GROUP_COLUMNS, maintain_order=True)
        .agg(
            pl.len().alias("total"),
            pl.col("sentiment_score").mean().round(2).alias("avg_sentiment_score"),
            pl.col("satisfaction").mean().round(2).alias("avg_satisfaction"),
            (pl.col("sentiment_score") > 0).sum().alias("positive"),
            (pl.col("sentiment_score") < 0).sum().alias("negative"),
            (pl.col("sentiment_score") == 0).sum().alias("neutral"),
        )
        .sort(GROUP_COLUMNS)
    )

    return [
        OpinionGroup(
            product_name=row["product_name"],
            brand=row["brand"],
            category=row["category"],
            opinion_date=row["opinion_date"],
            source_name=row["source_name"],
            channel_name=row["channel_name"],
            total=int(row["total"]),
            avg_sentiment_score=float(row["avg_sentiment_score"]),
            avg_satisfaction=float(row["avg_satisfaction"]),
            positive=int(row["positive"]),
            negative=int(row["negative"]),
            neutral=int(row["neutral"]),
        )
        for row in grouped.iter_rows(named=True)
    ]


class ProductSummaryLoader(FactLoader):
    """
    Pre-aggregated product summary fact.

    Example:
        loader = ProductSummaryLoader(session, dimensions, batch_key=1)
        stats = await loader.load(batch.all())
    """

    model = FactProductSummary

    def units(self, records: Iterable[NormalizedOpinion]) -> List[OpinionGroup]:
        groups = aggregate_opinions(records)
        logger.info("Opinions aggregated", groups=len(groups))
        return groups

    def describe(self, group: OpinionGroup) -> Dict[str, Optional[object]]:
        return {
            "product": group.product_name,
            "date": str(group.opinion_date),
            "source": group.source_name,
            "channel": group.channel_name,
        }

    async def build_row(self, group: OpinionGroup) -> FactProductSummary:
        dims = self.dimensions
        return FactProductSummary(
            product_key=await dims.products.get_or_create_key(
                group.product_name, group.brand, group.category
            ),
            date_key=await dims.dates.get_or_create_key(group.opinion_date),
            source_key=await dims.sources.get_or_create_key(group.source_name),
            channel_key=await dims.channels.get_or_create_key(group.channel_name),
            sentiment_key=await dims.sentiments.get_key(group.predominant),
            etl_batch_key=self.batch_key,
            total_opinions=group.total,
            avg_sentiment_score=group.avg_sentiment_score,
            avg_satisfaction=group.avg_satisfaction,
            **group.percentages,
        )
