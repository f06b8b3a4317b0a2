"""
Database Models - Opinions Star Schema

Dimension Tables:
- DimCustomer: customers, keyed by name
- DimProduct: products, keyed by name + brand + category
- DimDate: calendar days, keyed by YYYYMMDD
- DimSource: data sources (survey file, review database, social API)
- DimChannel: channels the opinion arrived through
- DimSentiment: fixed Positive / Negative / Neutral catalog
- DimSurveyQuestion: survey question catalog
- DimETLBatch: load runs

Fact Tables:
- FactOpinion: one row per opinion from any source
- FactEngagement: social engagement metrics
- FactSurveyResponse: survey answers
- FactProductSummary: pre-aggregated opinions per product/day/source/channel

Dimension rows follow SCD Type 1. Fact tables are cleared and reloaded on
every run.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# DIMENSION TABLES
# =============================================================================

class DimCustomer(Base):
    """Customer dimension, one row per customer name."""
    __tablename__ = "dim_customer"

    customer_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    gender: Mapped[str] = mapped_column(String(30), nullable=False, default="Unknown")
    age_range: Mapped[str] = mapped_column(String(30), nullable=False, default="Unknown")
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="Unknown")

    __table_args__ = (
        UniqueConstraint("customer_name", name="uq_dim_customer_name"),
    )


class DimProduct(Base):
    """
    Product Dimension Table

    The combination of name, brand and category identifies a product.
    """
    __tablename__ = "dim_product"

    product_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("product_name", "brand", "category", name="uq_dim_product_natural"),
        Index("ix_dim_product_category", "category"),
    )


class DimDate(Base):
    """
    Date Dimension Table

    The surrogate key is the calendar date encoded as YYYYMMDD, so it can be
    computed without a lookup.
    """
    __tablename__ = "dim_date"

    date_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)  # YYYYMMDD format
    full_date: Mapped[date] = mapped_column(Date, unique=True, nullable=False)
    day: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    month_name: Mapped[str] = mapped_column(String(20), nullable=False)
    quarter: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_dim_date_year_month", "year", "month"),
    )


class DimSource(Base):
    """Data source dimension."""
    __tablename__ = "dim_source"

    source_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_name: Mapped[str] = mapped_column(String(100), nullable=False)
    source_type: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint("source_name", name="uq_dim_source_name"),
    )


class DimChannel(Base):
    """Channel dimension (web, survey, social networks, ...)."""
    __tablename__ = "dim_channel"

    channel_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel_name: Mapped[str] = mapped_column(String(100), nullable=False)
    channel_type: Mapped[str] = mapped_column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint("channel_name", name="uq_dim_channel_name"),
    )


class DimSentiment(Base):
    __tablename__ = "dim_sentiment"

    sentiment_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sentiment_name: Mapped[str] = mapped_column(String(20), nullable=False)
    polarity: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("sentiment_name", name="uq_dim_sentiment_name"),
    )


class DimSurveyQuestion(Base):
    """Survey question catalog."""
    __tablename__ = "dim_survey_question"

    survey_question_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    question_text: Mapped[str] = mapped_column(String(500), nullable=False)
    question_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Text")
    scale_min: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    scale_max: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    __table_args__ = (
        UniqueConstraint("question_text", name="uq_dim_survey_question_text"),
    )


class DimETLBatch(Base):
    """ETL load runs referenced by every fact row."""
    __tablename__ = "dim_etl_batch"

    etl_batch_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    batch_name: Mapped[str] = mapped_column(String(100), nullable=False)
    load_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    source_description: Mapped[str] = mapped_column(String(500), nullable=False, default="")


# =============================================================================
# FACT TABLES
# =============================================================================

class FactOpinion(Base):
    """
    Opinion Fact Table

    Grain: one opinion from the survey file, the review database or the
    social comments feed.
    """
    __tablename__ = "fact_opinion"

    opinion_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Dimension foreign keys
    customer_key: Mapped[int] = mapped_column(ForeignKey("dim_customer.customer_key"), nullable=False)
    product_key: Mapped[int] = mapped_column(ForeignKey("dim_product.product_key"), nullable=False)
    date_key: Mapped[int] = mapped_column(ForeignKey("dim_date.date_key"), nullable=False)
    source_key: Mapped[int] = mapped_column(ForeignKey("dim_source.source_key"), nullable=False)
    channel_key: Mapped[int] = mapped_column(ForeignKey("dim_channel.channel_key"), nullable=False)
    sentiment_key: Mapped[int] = mapped_column(ForeignKey("dim_sentiment.sentiment_key"), nullable=False)
    etl_batch_key: Mapped[int] = mapped_column(ForeignKey("dim_etl_batch.etl_batch_key"), nullable=False)

    # Measures
    sentiment_score: Mapped[float] = mapped_column(Float, nullable=False)
    satisfaction_score: Mapped[float] = mapped_column(Float, nullable=False)
    comment_text: Mapped[str] = mapped_column(Text, nullable=False, default="")

    ingestion_timestamp: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_fact_opinion_product", "product_key"),
        Index("ix_fact_opinion_date", "date_key"),
        Index("ix_fact_opinion_customer", "customer_key"),
    )


class FactEngagement(Base):
    """
    Engagement Fact Table

    Grain: one social comment. Views, replies and rate are derived from
    likes and shares.
    """
    __tablename__ = "fact_engagement"

    engagement_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    customer_key: Mapped[int] = mapped_column(ForeignKey("dim_customer.customer_key"), nullable=False)
    product_key: Mapped[int] = mapped_column(ForeignKey("dim_product.product_key"), nullable=False)
    date_key: Mapped[int] = mapped_column(ForeignKey("dim_date.date_key"), nullable=False)
    source_key: Mapped[int] = mapped_column(ForeignKey("dim_source.source_key"), nullable=False)
    channel_key: Mapped[int] = mapped_column(ForeignKey("dim_channel.channel_key"), nullable=False)
    etl_batch_key: Mapped[int] = mapped_column(ForeignKey("dim_etl_batch.etl_batch_key"), nullable=False)

    likes_count: Mapped[int] = mapped_column(Integer, default=0)
    shares_count: Mapped[int] = mapped_column(Integer, default=0)
    comments_count: Mapped[int] = mapped_column(Integer, default=1)
    views_count: Mapped[int] = mapped_column(Integer, default=0)
    replies_count: Mapped[int] = mapped_column(Integer, default=0)
    engagement_rate: Mapped[float] = mapped_column(Float, default=0)

    ingestion_timestamp: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_fact_engagement_product", "product_key"),
        Index("ix_fact_engagement_date", "date_key"),
    )


class FactSurveyResponse(Base):
    """Survey response fact table, one row per survey record."""
    __tablename__ = "fact_survey_response"

    survey_response_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    survey_question_key: Mapped[int] = mapped_column(
        ForeignKey("dim_survey_question.survey_question_key"), nullable=False
    )
    customer_key: Mapped[int] = mapped_column(ForeignKey("dim_customer.customer_key"), nullable=False)
    product_key: Mapped[int] = mapped_column(ForeignKey("dim_product.product_key"), nullable=False)
    date_key: Mapped[int] = mapped_column(ForeignKey("dim_date.date_key"), nullable=False)
    source_key: Mapped[int] = mapped_column(ForeignKey("dim_source.source_key"), nullable=False)
    channel_key: Mapped[int] = mapped_column(ForeignKey("dim_channel.channel_key"), nullable=False)
    etl_batch_key: Mapped[int] = mapped_column(ForeignKey("dim_etl_batch.etl_batch_key"), nullable=False)

    response_value: Mapped[float] = mapped_column(Float, nullable=False)
    response_time_sec: Mapped[int] = mapped_column(Integer, nullable=False)
    is_valid_response: Mapped[bool] = mapped_column(Boolean, nullable=False)

    ingestion_timestamp: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_fact_survey_response_question", "survey_question_key"),
        Index("ix_fact_survey_response_date", "date_key"),
    )


# =============================================================================
# ANALYTICS AGGREGATES
# =============================================================================

class FactProductSummary(Base):
    """
    Product Summary Fact Table

    Grain: product x day x source x channel. Sentiment is not part of the
    grain; ``sentiment_key`` holds the predominant sentiment of the group.
    """
    __tablename__ = "fact_product_summary"

    product_summary_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    product_key: Mapped[int] = mapped_column(ForeignKey("dim_product.product_key"), nullable=False)
    date_key: Mapped[int] = mapped_column(ForeignKey("dim_date.date_key"), nullable=False)
    source_key: Mapped[int] = mapped_column(ForeignKey("dim_source.source_key"), nullable=False)
    channel_key: Mapped[int] = mapped_column(ForeignKey("dim_channel.channel_key"), nullable=False)
    sentiment_key: Mapped[int] = mapped_column(ForeignKey("dim_sentiment.sentiment_key"), nullable=False)
    etl_batch_key: Mapped[int] = mapped_column(ForeignKey("dim_etl_batch.etl_batch_key"), nullable=False)

    total_opinions: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_sentiment_score: Mapped[float] = mapped_column(Float, nullable=False)
    avg_satisfaction: Mapped[float] = mapped_column(Float, nullable=False)
    positive_percent: Mapped[float] = mapped_column(Float, nullable=False)
    negative_percent: Mapped[float] = mapped_column(Float, nullable=False)
    neutral_percent: Mapped[float] = mapped_column(Float, nullable=False)

    computed_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "product_key", "date_key", "source_key", "channel_key",
            name="uq_fact_product_summary_grain",
        ),
        Index("ix_fact_product_summary_product", "product_key"),
        Index("ix_fact_product_summary_date", "date_key"),
    )
