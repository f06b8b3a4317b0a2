"""
Unit Tests - Source Record Normalizer
"""
from datetime import date, datetime

import pytest

from opinion_warehouse.ingestion.normalizer import (
    SOCIAL_SATISFACTION,
    map_classification,
    normalize_review,
    normalize_social,
    normalize_survey,
)
from opinion_warehouse.ingestion.records import (
    ReviewRecord,
    Sentiment,
    SocialCommentRecord,
    SourceKind,
)


class TestClassificationMapping:
    """Tests for map_classification"""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Positiva", Sentiment.POSITIVE),
            ("POSITIVE", Sentiment.POSITIVE),
            ("neutra", Sentiment.NEUTRAL),
            ("Neutro", Sentiment.NEUTRAL),
            ("negativa", Sentiment.NEGATIVE),
            ("  Negative ", Sentiment.NEGATIVE),
        ],
    )
    def test_vocabulary(self, text, expected):
        assert map_classification(text) is expected

    def test_unknown_and_empty_are_neutral(self):
        assert map_classification("excelente") is Sentiment.NEUTRAL
        assert map_classification("") is Sentiment.NEUTRAL
        assert map_classification(None) is Sentiment.NEUTRAL

    def test_sentiment_scores(self):
        assert Sentiment.POSITIVE.score == 1.0
        assert Sentiment.NEUTRAL.score == 0.0
        assert Sentiment.NEGATIVE.score == -1.0


class TestRecordNormalization:
    """Tests for per-source normalization"""

    def test_survey_keeps_satisfaction(self, sample_surveys):
        opinion = normalize_survey(sample_surveys[0], "Survey CSV", "Online Survey")

        assert opinion.kind is SourceKind.SURVEY
        assert opinion.sentiment is Sentiment.POSITIVE
        assert opinion.sentiment_score == 1.0
        assert opinion.satisfaction == 5.0
        assert opinion.opinion_date == date(2024, 3, 15)
        assert opinion.customer.name == "Ana Pérez"
        assert opinion.product.natural_key == ("Phone X", "Acme", "Electronics")

    def test_review_rating_is_satisfaction(self):
        record = ReviewRecord(
            review_id=7,
            customer_id=1,
            product_id=2,
            review_date=datetime(2024, 1, 2, 23, 59),
            classification="Negativa",
            rating=2,
            customer_name="Ana",
            product_name="Phone X",
        )

        opinion = normalize_review(record, "Web Reviews", "Web")

        assert opinion.kind is SourceKind.REVIEW
        assert opinion.record_id == 7
        assert opinion.sentiment is Sentiment.NEGATIVE
        assert opinion.satisfaction == 2.0
        assert opinion.channel_name == "Web"

    def test_social_is_neutral_midpoint(self):
        record = SocialCommentRecord(
            comment_id=3,
            customer_id=1,
            product_id=2,
            comment_date=datetime(2024, 1, 2),
            likes=4,
            shares=1,
            platform=" Facebook ",
        )

        opinion = normalize_social(record, "Social Media API")

        assert opinion.sentiment is Sentiment.NEUTRAL
        assert opinion.sentiment_score == 0.0
        assert opinion.satisfaction == SOCIAL_SATISFACTION
        assert opinion.channel_name == "Facebook"
        assert (opinion.likes, opinion.shares) == (4, 1)


class TestOpinionBatch:
    """Tests for the normalized working set"""

    def test_batch_views(self, sample_batch):
        assert len(sample_batch) == 6
        assert sample_batch.date_range() == (date(2024, 3, 15), date(2024, 3, 17))
        assert sample_batch.channel_names() == ["Online Survey", "Web", "Instagram", "Twitter"]
        assert len(sample_batch.customers()) == 6

    def test_empty_batch_has_no_range(self, test_settings):
        from opinion_warehouse.ingestion.normalizer import SourceNormalizer

        batch = SourceNormalizer(test_settings.etl).normalize()

        assert len(batch) == 0
        assert batch.date_range() is None
