"""
Dimensional Loading Module
"""
from .base import (
    CatalogNotInitializedError,
    CommitBatcher,
    DimensionResolutionError,
    DimensionResolver,
    merge_type1,
)
from .dimensions import (
    ChannelResolver,
    CustomerResolver,
    DateResolver,
    DimensionSet,
    EtlBatchRegistry,
    ProductResolver,
    SentimentResolver,
    SourceResolver,
    SurveyQuestionResolver,
    classify_channel,
    classify_source,
    date_key,
)
from .facts import (
    EngagementFactLoader,
    FactLoader,
    FactLoadStats,
    OpinionFactLoader,
    SurveyResponseFactLoader,
    engagement_measures,
)
from .summary import ProductSummaryLoader, aggregate_opinions, predominant_sentiment

__all__ = [
    "CatalogNotInitializedError",
    "CommitBatcher",
    "DimensionResolutionError",
    "DimensionResolver",
    "merge_type1",
    "ChannelResolver",
    "CustomerResolver",
    "DateResolver",
    "DimensionSet",
    "EtlBatchRegistry",
    "ProductResolver",
    "SentimentResolver",
    "SourceResolver",
    "SurveyQuestionResolver",
    "classify_channel",
    "classify_source",
    "date_key",
    "EngagementFactLoader",
    "FactLoader",
    "FactLoadStats",
    "OpinionFactLoader",
    "SurveyResponseFactLoader",
    "engagement_measures",
    "ProductSummaryLoader",
    "aggregate_opinions",
    "predominant_sentiment",
]
