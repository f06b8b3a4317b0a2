"""
Source Ingestion Module
"""
from .records import (
    NormalizedOpinion,
    ReviewRecord,
    Sentiment,
    SocialCommentRecord,
    SourceKind,
    SurveyRecord,
)
from .normalizer import OpinionBatch, SourceNormalizer, map_classification
from .extractors import MasterData, ReviewExtractor, read_social_comments_json, read_survey_csv

__all__ = [
    "NormalizedOpinion",
    "ReviewRecord",
    "Sentiment",
    "SocialCommentRecord",
    "SourceKind",
    "SurveyRecord",
    "OpinionBatch",
    "SourceNormalizer",
    "map_classification",
    "MasterData",
    "ReviewExtractor",
    "read_social_comments_json",
    "read_survey_csv",
]
