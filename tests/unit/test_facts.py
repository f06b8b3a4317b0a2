"""
Unit Tests - Fact Loaders
"""

import pytest
from sqlalchemy import func, select

from opinion_warehouse.database.models import (
    DimSentiment,
    FactEngagement,
    FactOpinion,
    FactSurveyResponse,
)
from opinion_warehouse.ingestion.records import CustomerRef
from opinion_warehouse.loaders.base import CatalogNotInitializedError
from opinion_warehouse.loaders.dimensions import EtlBatchRegistry
from opinion_warehouse.loaders.facts import (
    EngagementFactLoader,
    OpinionFactLoader,
    SurveyResponseFactLoader,
    engagement_measures,
)


async def count_rows(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.fixture
async def catalogs(test_db, dimensions):
    """Catalogs and batch row every fact depends on"""
    await dimensions.sentiments.initialize_catalog()
    await dimensions.questions.initialize_catalog()
    await EtlBatchRegistry(test_db).ensure(1, "test")
    return dimensions


class TestEngagementMeasures:
    """Tests for derived engagement measures"""

    def test_measures(self):
        measures = engagement_measures(12, 3)

        assert measures["views_count"] == 150
        assert measures["replies_count"] == 2
        assert measures["engagement_rate"] == 1.5
        assert measures["comments_count"] == 1

    def test_no_interactions(self):
        measures = engagement_measures(0, 0)

        assert measures["views_count"] == 0
        assert measures["replies_count"] == 0
        assert measures["engagement_rate"] == 0


class TestOpinionFactLoader:
    """Tests for the opinion fact"""

    async def test_loads_every_opinion(self, test_db, catalogs, sample_batch):
        loader = OpinionFactLoader(test_db, catalogs, batch_key=1, commit_every=2)

        stats = await loader.load(sample_batch.all())

        assert stats.inserted == 6
        assert stats.skipped == 0
        assert await count_rows(test_db, FactOpinion) == 6

    async def test_scores_and_keys(self, test_db, catalogs, sample_batch):
        await OpinionFactLoader(test_db, catalogs).load(sample_batch.surveys[:1])

        row = (await test_db.execute(select(FactOpinion))).scalar_one()
        positive = (await test_db.execute(
            select(DimSentiment.sentiment_key).where(DimSentiment.sentiment_name == "Positive")
        )).scalar_one()
        assert row.sentiment_key == positive
        assert row.sentiment_score == 1.0
        assert row.satisfaction_score == 5.0
        assert row.date_key == 20240315
        assert row.etl_batch_key == 1

    async def test_reload_clears_previous_rows(self, test_db, catalogs, sample_batch):
        loader = OpinionFactLoader(test_db, catalogs)

        await loader.load(sample_batch.all())
        stats = await loader.load(sample_batch.all())

        assert stats.cleared == 6
        assert await count_rows(test_db, FactOpinion) == 6

    async def test_blank_customer_is_skipped(self, test_db, catalogs, sample_batch):
        from dataclasses import replace

        broken = replace(sample_batch.surveys[0], customer=CustomerRef(""))
        records = [broken, *sample_batch.surveys[1:]]

        stats = await OpinionFactLoader(test_db, catalogs).load(records)

        assert stats.inserted == 2
        assert stats.skipped == 1
        assert await count_rows(test_db, FactOpinion) == 2


class TestEngagementFactLoader:
    """Tests for the engagement fact"""

    async def test_only_social_comments(self, test_db, catalogs, sample_batch):
        stats = await EngagementFactLoader(test_db, catalogs).load(sample_batch.all())

        rows = (await test_db.execute(
            select(FactEngagement).order_by(FactEngagement.likes_count.desc())
        )).scalars().all()
        assert stats.inserted == 2
        assert (rows[0].views_count, rows[0].replies_count, rows[0].engagement_rate) == (150, 2, 1.5)
        assert (rows[1].views_count, rows[1].engagement_rate) == (0, 0)


class TestSurveyResponseFactLoader:
    """Tests for the survey response fact"""

    async def test_responses(self, test_db, catalogs, sample_batch):
        loader = SurveyResponseFactLoader(test_db, catalogs, seed=7)

        stats = await loader.load(sample_batch.all())

        rows = (await test_db.execute(select(FactSurveyResponse))).scalars().all()
        question_keys = set(await catalogs.questions.question_keys())
        assert stats.inserted == 3
        assert all(10 <= r.response_time_sec <= 300 for r in rows)
        assert all(r.survey_question_key in question_keys for r in rows)
        assert all(r.is_valid_response for r in rows)

    async def test_out_of_range_satisfaction_is_invalid(self, test_db, catalogs, sample_batch):
        from dataclasses import replace

        zero = replace(sample_batch.surveys[0], satisfaction=0.0)

        await SurveyResponseFactLoader(test_db, catalogs).load([zero])

        row = (await test_db.execute(select(FactSurveyResponse))).scalar_one()
        assert row.is_valid_response is False
        assert row.response_value == 0.0

    async def test_same_seed_same_rows(self, test_db, catalogs, sample_batch):
        async def load_once():
            await SurveyResponseFactLoader(test_db, catalogs, seed=11).load(sample_batch.surveys)
            rows = (await test_db.execute(
                select(FactSurveyResponse).order_by(FactSurveyResponse.survey_response_key)
            )).scalars().all()
            return [(r.survey_question_key, r.response_time_sec) for r in rows]

        assert await load_once() == await load_once()

    async def test_empty_question_catalog_is_fatal(self, test_db, dimensions, sample_batch):
        await dimensions.sentiments.initialize_catalog()

        with pytest.raises(CatalogNotInitializedError):
            await SurveyResponseFactLoader(test_db, dimensions).load(sample_batch.surveys)
