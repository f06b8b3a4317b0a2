"""
Source and Normalized Records

Pydantic models for the three source shapes handed over by the extractors,
and the normalized opinion record every fact loader consumes.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class Sentiment(str, Enum):
    """Sentiment catalog"""
    POSITIVE = "Positive"
    NEGATIVE = "Negative"
    NEUTRAL = "Neutral"

    @property
    def polarity(self) -> int:
        return {"Positive": 1, "Negative": -1, "Neutral": 0}[self.value]

    @property
    def score(self) -> float:
        """Sentiment score stored on opinion facts"""
        return float(self.polarity)


class SourceKind(str, Enum):
    """Origin of a normalized opinion"""
    SURVEY = "survey"
    REVIEW = "review"
    SOCIAL = "social"


# =============================================================================
# SOURCE RECORDS
# =============================================================================

class MasterDataFields(BaseModel):
    """Customer and product attributes added by master-data enrichment"""
    customer_name: str = ""
    gender: Optional[str] = None
    age_range: Optional[str] = None
    country: Optional[str] = None

    product_name: str = ""
    brand: Optional[str] = None
    category: Optional[str] = None
    price: Decimal = Decimal("0")

    @field_validator("customer_name", "product_name", mode="before")
    @classmethod
    def null_name_to_empty(cls, v):
        return "" if v is None else v


class SurveyRecord(MasterDataFields):
    """Row of the survey CSV file"""
    opinion_id: int
    customer_id: int
    product_id: int
    opinion_date: datetime
    comment: str = ""
    classification: str = ""
    satisfaction: float = 0
    source: str = ""

    @field_validator("comment", "classification", "source", mode="before")
    @classmethod
    def null_text_to_empty(cls, v):
        return "" if v is None else v


class ReviewRecord(MasterDataFields):
    """Row of the web reviews database"""
    review_id: int
    opinion_id: int = 0
    customer_id: int
    product_id: int
    review_date: datetime
    comment: str = ""
    classification: str = ""
    rating: int = 0
    source: str = ""

    @field_validator("comment", "classification", "source", mode="before")
    @classmethod
    def null_text_to_empty(cls, v):
        """NULL text columns come through as empty strings"""
        return "" if v is None else v


class SocialCommentRecord(MasterDataFields):
    """Comment from the social comments feed"""
    comment_id: int
    customer_id: int
    product_id: int
    comment_date: datetime
    comment: str = ""
    likes: int = Field(default=0, ge=0)
    shares: int = Field(default=0, ge=0)
    platform: str = ""

    @field_validator("comment", "platform", mode="before")
    @classmethod
    def null_text_to_empty(cls, v):
        return "" if v is None else v


# =============================================================================
# NORMALIZED RECORDS
# =============================================================================

@dataclass(frozen=True)
class CustomerRef:
    """Customer natural key plus descriptive attributes"""
    name: str
    gender: Optional[str] = None
    age_range: Optional[str] = None
    country: Optional[str] = None

    def as_attributes(self) -> dict:
        return {
            "customer_name": self.name,
            "gender": self.gender,
            "age_range": self.age_range,
            "country": self.country,
        }


@dataclass(frozen=True)
class ProductRef:
    """Product natural key (name, brand, category) plus descriptive attributes"""
    name: str
    brand: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Decimal] = None

    @property
    def natural_key(self) -> Tuple[str, Optional[str], Optional[str]]:
        return self.name, self.brand, self.category

    def as_attributes(self) -> dict:
        return {
            "product_name": self.name,
            "brand": self.brand,
            "category": self.category,
            "price": self.price,
        }


@dataclass(frozen=True)
class NormalizedOpinion:
    """
    Common currency produced by the normalizer from all three sources.

    ``opinion_date`` is already truncated to the day.
    """
    kind: SourceKind
    record_id: int
    source_name: str
    channel_name: str
    customer: CustomerRef
    product: ProductRef
    opinion_date: date
    classification: str
    sentiment: Sentiment
    sentiment_score: float
    satisfaction: float
    comment: str = ""
    likes: int = 0
    shares: int = 0
