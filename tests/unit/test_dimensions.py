"""
Unit Tests - Dimension Resolvers
"""
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

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
from opinion_warehouse.loaders.base import (
    CatalogNotInitializedError,
    DimensionResolutionError,
    merge_type1,
)
from opinion_warehouse.loaders.dimensions import (
    DimensionSet,
    EtlBatchRegistry,
    classify_channel,
    classify_source,
    date_attributes,
    date_key,
)


async def count_rows(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


class TestMergeType1:
    """Tests for the SCD Type 1 merge"""

    def test_create_applies_defaults(self):
        merged, created = merge_type1(
            None,
            {"customer_name": "Ana", "gender": None, "country": "DO"},
            ["customer_name"],
            {"gender": "Unknown", "country": "Unknown"},
        )

        assert created is True
        assert merged == {"customer_name": "Ana", "gender": "Unknown", "country": "DO"}

    def test_update_overwrites_non_key_attributes(self):
        merged, created = merge_type1(
            {"customer_name": "Ana", "country": "DO", "gender": "F"},
            {"customer_name": "ANA", "country": "US", "gender": None},
            ["customer_name"],
        )

        assert created is False
        assert merged == {"customer_name": "Ana", "country": "US", "gender": "F"}


class TestClassification:
    """Tests for channel and source classification"""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Instagram", "Red Social"),
            ("Social Media", "Red Social"),
            ("Web", "Sitio Web"),
            ("Sitio oficial", "Sitio Web"),
            ("Online Survey", "Encuesta"),
            ("Correo", "Email"),
            ("Mobile", "Aplicación Móvil"),
            ("Tienda física", "Otro"),
            ("", "Otro"),
        ],
    )
    def test_classify_channel(self, name, expected):
        assert classify_channel(name) == expected

    def test_first_match_wins(self):
        # "web" would match the website rule, social is checked first
        assert classify_channel("Social Web") == "Red Social"

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Survey CSV", "CSV File"),
            ("Web Reviews", "Database"),
            ("Social Media API", "REST API"),
            ("Call center", "Unknown"),
        ],
    )
    def test_classify_source(self, name, expected):
        assert classify_source(name) == expected


class TestDateDimension:
    """Tests for DateResolver"""

    def test_date_key(self):
        assert date_key(date(2024, 3, 15)) == 20240315
        assert date_key(datetime(2024, 12, 31, 23, 59)) == 20241231

    def test_date_attributes(self):
        attrs = date_attributes(date(2024, 11, 5))

        assert attrs["month_name"] == "November"
        assert attrs["quarter"] == 4
        assert (attrs["day"], attrs["month"], attrs["year"]) == (5, 11, 2024)

    async def test_load_date_range(self, test_db, dimensions):
        inserted = await dimensions.dates.load_date_range(date(2024, 1, 1), date(2024, 1, 3))

        rows = (await test_db.execute(select(DimDate).order_by(DimDate.date_key))).scalars().all()
        assert inserted == 3
        assert [r.date_key for r in rows] == [20240101, 20240102, 20240103]
        assert all(r.quarter == 1 and r.month == 1 for r in rows)
        assert [r.day for r in rows] == [1, 2, 3]

    async def test_load_date_range_is_idempotent(self, test_db, dimensions):
        await dimensions.dates.load_date_range(date(2024, 1, 1), date(2024, 1, 3))
        inserted = await dimensions.dates.load_date_range(date(2024, 1, 2), date(2024, 1, 5))

        assert inserted == 2
        assert await count_rows(test_db, DimDate) == 5

    async def test_invalid_range(self, dimensions):
        with pytest.raises(ValueError):
            await dimensions.dates.load_date_range(date(2024, 2, 1), date(2024, 1, 1))

    async def test_get_or_create_key(self, test_db, dimensions):
        key = await dimensions.dates.get_or_create_key(datetime(2024, 3, 15, 18, 0))
        again = await dimensions.dates.get_or_create_key(date(2024, 3, 15))

        assert key == again == 20240315
        assert await count_rows(test_db, DimDate) == 1


class TestCustomerAndProduct:
    """Tests for natural-key resolvers"""

    async def test_get_or_create_is_idempotent(self, test_db, dimensions):
        first = await dimensions.customers.get_or_create_key("Ana Pérez", country="DO")
        second = await dimensions.customers.get_or_create_key("Ana Pérez", country="US")

        row = await test_db.get(DimCustomer, first)
        assert first == second
        assert row.country == "DO"
        assert row.gender == "Unknown"
        assert await count_rows(test_db, DimCustomer) == 1

    async def test_blank_name_raises(self, dimensions):
        with pytest.raises(DimensionResolutionError):
            await dimensions.customers.get_or_create_key("   ")

    async def test_bulk_load_merges_type1(self, test_db, dimensions):
        changed = await dimensions.customers.load_customers([
            CustomerRef("Ana", country="DO"),
            CustomerRef("Luis"),
            CustomerRef("Ana", gender="F"),
            CustomerRef(""),
        ])

        ana = (await test_db.execute(
            select(DimCustomer).where(DimCustomer.customer_name == "Ana")
        )).scalar_one()
        assert changed == 3
        assert (ana.country, ana.gender) == ("DO", "F")
        assert await count_rows(test_db, DimCustomer) == 2

    async def test_bulk_load_keeps_surrogate_keys(self, test_db, dimensions):
        await dimensions.customers.load_customers([CustomerRef("Ana", country="DO")])
        key = await dimensions.customers.get_or_create_key("Ana")

        changed = await dimensions.customers.load_customers([CustomerRef("Ana", country="US")])

        row = await test_db.get(DimCustomer, key)
        assert changed == 1
        assert row.country == "US"
        assert await dimensions.customers.get_or_create_key("Ana") == key

    async def test_product_placeholders_share_a_row(self, test_db, dimensions):
        await dimensions.products.load_products([ProductRef("Phone X", price=Decimal("10"))])
        key = await dimensions.products.get_or_create_key("Phone X", "Generic Brand", "General Category")

        row = await test_db.get(DimProduct, key)
        assert (row.brand, row.category) == ("Generic Brand", "General Category")
        assert row.is_active is True
        assert await count_rows(test_db, DimProduct) == 1

    async def test_product_natural_key_includes_brand(self, test_db, dimensions):
        a = await dimensions.products.get_or_create_key("Phone X", "Acme", "Electronics")
        b = await dimensions.products.get_or_create_key("Phone X", "Globex", "Electronics")

        assert a != b


class TestSourceAndChannel:
    """Tests for classified name dimensions"""

    async def test_load_names_classifies(self, test_db, dimensions):
        changed = await dimensions.channels.load_names(["Web", "Instagram", "Web", "Kiosk"])

        rows = (await test_db.execute(select(DimChannel))).scalars().all()
        assert changed == 3
        assert {r.channel_name: r.channel_type for r in rows} == {
            "Web": "Sitio Web",
            "Instagram": "Red Social",
            "Kiosk": "Otro",
        }

    async def test_lazy_creation(self, test_db, dimensions):
        key = await dimensions.sources.get_or_create_key("Social Media API")

        row = await test_db.get(DimSource, key)
        assert row.source_type == "REST API"


class TestCatalogs:
    """Tests for sentiment and survey question catalogs"""

    async def test_sentiment_catalog_is_idempotent(self, test_db, dimensions):
        assert await dimensions.sentiments.initialize_catalog() == 3
        assert await dimensions.sentiments.initialize_catalog() == 0

        rows = (await test_db.execute(select(DimSentiment))).scalars().all()
        assert {r.sentiment_name: r.polarity for r in rows} == {
            "Positive": 1,
            "Negative": -1,
            "Neutral": 0,
        }

    async def test_unknown_sentiment_falls_back_to_neutral(self, dimensions):
        await dimensions.sentiments.initialize_catalog()

        neutral = await dimensions.sentiments.get_key(Sentiment.NEUTRAL)

        assert await dimensions.sentiments.get_key("Mixed") == neutral

    async def test_missing_catalog_is_fatal(self, dimensions):
        with pytest.raises(CatalogNotInitializedError):
            await dimensions.sentiments.get_key("Positive")

    async def test_survey_question_catalog(self, test_db, dimensions):
        assert await dimensions.questions.initialize_catalog() == 4
        assert await dimensions.questions.initialize_catalog() == 0

        keys = await dimensions.questions.question_keys()
        rows = (await test_db.execute(select(DimSurveyQuestion))).scalars().all()
        assert len(keys) == 4
        assert all((r.scale_min, r.scale_max) == (1, 5) for r in rows)


class TestEtlBatchRegistry:
    """Tests for the ETL batch row"""

    async def test_ensure_creates_then_updates(self, test_db):
        registry = EtlBatchRegistry(test_db)

        await registry.ensure(1, "full-reload", "Survey CSV")
        await registry.ensure(1, "nightly", "Survey CSV, Web Reviews")

        row = await test_db.get(DimETLBatch, 1)
        assert row.batch_name == "nightly"
        assert row.source_description == "Survey CSV, Web Reviews"
        assert await count_rows(test_db, DimETLBatch) == 1


class TestDimensionSet:
    """Tests for the per-run resolver bundle"""

    async def test_commit_size_reaches_every_resolver(self, test_db):
        dims = DimensionSet.for_session(test_db, commit_every=7)

        assert dims.dates.commit_every == 7
        assert dims.customers.commit_every == 7
        assert dims.products.commit_every == 7
        assert dims.channels.commit_every == 7

    async def test_date_range_commits_in_batches(self, test_db, monkeypatch):
        commits = []
        real_commit = test_db.commit

        async def counting_commit():
            commits.append(1)
            await real_commit()

        monkeypatch.setattr(test_db, "commit", counting_commit)
        dims = DimensionSet.for_session(test_db, commit_every=2)

        inserted = await dims.dates.load_date_range(date(2024, 1, 1), date(2024, 1, 5))

        assert inserted == 5
        # two full batches of 2, then the final commit for the last row
        assert len(commits) == 3
