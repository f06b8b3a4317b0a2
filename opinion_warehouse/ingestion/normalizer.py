"""
Source Record Normalizer

Maps survey rows, review rows and social comments into NormalizedOpinion
records, and keeps the normalized working set of a run in an OpinionBatch.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple
import unicodedata

import structlog

from opinion_warehouse.config import get_settings
from opinion_warehouse.config.settings import EtlSettings
from .records import (
    CustomerRef,
    MasterDataFields,
    NormalizedOpinion,
    ProductRef,
    ReviewRecord,
    Sentiment,
    SocialCommentRecord,
    SourceKind,
    SurveyRecord,
)

logger = structlog.get_logger(__name__)

# Satisfaction assigned to social comments, which carry no rating
SOCIAL_SATISFACTION = 3.0

_CLASSIFICATION_VOCABULARY: Dict[str, Sentiment] = {
    "positiva": Sentiment.POSITIVE,
    "positive": Sentiment.POSITIVE,
    "neutra": Sentiment.NEUTRAL,
    "neutral": Sentiment.NEUTRAL,
    "neutro": Sentiment.NEUTRAL,
    "negativa": Sentiment.NEGATIVE,
    "negative": Sentiment.NEGATIVE,
}


def _fold(text: str) -> str:
    """Lowercase and strip accents"""
    decomposed = unicodedata.normalize("NFKD", text.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def map_classification(classification: Optional[str]) -> Sentiment:
    """
    Map a free-text classification onto the sentiment catalog.

    Matching ignores case and accents; unknown or empty text is Neutral.

    Example:
        >>> map_classification("Positiva")
        <Sentiment.POSITIVE: 'Positive'>
    """
    if not classification:
        return Sentiment.NEUTRAL
    return _CLASSIFICATION_VOCABULARY.get(_fold(classification), Sentiment.NEUTRAL)


def _customer_of(record: MasterDataFields) -> CustomerRef:
    return CustomerRef(
        name=(record.customer_name or "").strip(),
        gender=record.gender or None,
        age_range=record.age_range or None,
        country=record.country or None,
    )


def _product_of(record: MasterDataFields) -> ProductRef:
    return ProductRef(
        name=(record.product_name or "").strip(),
        brand=record.brand or None,
        category=record.category or None,
        price=record.price or None,
    )


def normalize_survey(record: SurveyRecord, source_name: str, channel_name: str) -> NormalizedOpinion:
    """Survey row: mapped classification, satisfaction as provided"""
    sentiment = map_classification(record.classification)
    return NormalizedOpinion(
        kind=SourceKind.SURVEY,
        record_id=record.opinion_id,
        source_name=source_name,
        channel_name=channel_name,
        customer=_customer_of(record),
        product=_product_of(record),
        opinion_date=record.opinion_date.date(),
        classification=record.classification,
        sentiment=sentiment,
        sentiment_score=sentiment.score,
        satisfaction=float(record.satisfaction),
        comment=record.comment or "",
    )


def normalize_review(record: ReviewRecord, source_name: str, channel_name: str) -> NormalizedOpinion:
    """Review row: mapped classification, rating used as satisfaction"""
    sentiment = map_classification(record.classification)
    return NormalizedOpinion(
        kind=SourceKind.REVIEW,
        record_id=record.review_id,
        source_name=source_name,
        channel_name=channel_name,
        customer=_customer_of(record),
        product=_product_of(record),
        opinion_date=record.review_date.date(),
        classification=record.classification,
        sentiment=sentiment,
        sentiment_score=sentiment.score,
        satisfaction=float(record.rating),
        comment=record.comment or "",
    )


def normalize_social(record: SocialCommentRecord, source_name: str) -> NormalizedOpinion:
    """
    Social comment: no sentiment in the source, so Neutral with score 0 and
    the midpoint satisfaction. The platform is the channel.
    """
    return NormalizedOpinion(
        kind=SourceKind.SOCIAL,
        record_id=record.comment_id,
        source_name=source_name,
        channel_name=record.platform.strip(),
        customer=_customer_of(record),
        product=_product_of(record),
        opinion_date=record.comment_date.date(),
        classification="",
        sentiment=Sentiment.NEUTRAL,
        sentiment_score=0.0,
        satisfaction=SOCIAL_SATISFACTION,
        comment=record.comment or "",
        likes=record.likes,
        shares=record.shares,
    )


@dataclass
class OpinionBatch:
    """
    Normalized working set of one run, kept per source kind.

    The dimension views (dates, customers, products, channels) are derived
    from the records so every dimension value a fact needs can be pre-loaded.
    """
    surveys: List[NormalizedOpinion] = field(default_factory=list)
    reviews: List[NormalizedOpinion] = field(default_factory=list)
    social: List[NormalizedOpinion] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.surveys) + len(self.reviews) + len(self.social)

    def all(self) -> List[NormalizedOpinion]:
        """Every opinion, surveys first, then reviews, then social comments"""
        return [*self.surveys, *self.reviews, *self.social]

    def date_range(self) -> Optional[Tuple[date, date]]:
        dates = [opinion.opinion_date for opinion in self.all()]
        if not dates:
            return None
        return min(dates), max(dates)

    def customers(self) -> List[CustomerRef]:
        """Customers in first-seen order; duplicates kept as update candidates"""
        return [opinion.customer for opinion in self.all()]

    def products(self) -> List[ProductRef]:
        return [opinion.product for opinion in self.all()]

    def channel_names(self) -> List[str]:
        seen: Dict[str, None] = {}
        for opinion in self.all():
            if opinion.channel_name:
                seen.setdefault(opinion.channel_name, None)
        return list(seen)


class SourceNormalizer:
    """
    Normalizes the three source sequences of a run into an OpinionBatch.

    Example:
        normalizer = SourceNormalizer()
        batch = normalizer.normalize(surveys, reviews, comments)
    """

    def __init__(self, etl_settings: Optional[EtlSettings] = None):
        self.etl = etl_settings or get_settings().etl

    def normalize(
        self,
        surveys: Iterable[SurveyRecord] = (),
        reviews: Iterable[ReviewRecord] = (),
        comments: Iterable[SocialCommentRecord] = (),
    ) -> OpinionBatch:
        batch = OpinionBatch(
            surveys=[
                normalize_survey(r, self.etl.survey_source_name, self.etl.survey_channel_name)
                for r in surveys
            ],
            reviews=[
                normalize_review(r, self.etl.review_source_name, self.etl.review_channel_name)
                for r in reviews
            ],
            social=[normalize_social(r, self.etl.social_source_name) for r in comments],
        )

        logger.info(
            "Source records normalized",
            surveys=len(batch.surveys),
            reviews=len(batch.reviews),
            social=len(batch.social),
        )
        return batch
