"""
Source Extractors

Thin I/O wrappers that hand the loading engine validated source records:
- Survey CSV file, read with Polars
- Web reviews database, paged with LIMIT/OFFSET over an async engine
- Social comments feed, read from its JSON dump

Records with a zero customer or product id are dropped here. Master-data
enrichment fills customer/product attributes, falling back to generic
placeholders when an id is unknown.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, TypeVar, Union
import json

import polars as pl
import structlog
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from .records import MasterDataFields, ReviewRecord, SocialCommentRecord, SurveyRecord

logger = structlog.get_logger(__name__)

RecordT = TypeVar("RecordT", bound=MasterDataFields)

# Survey CSV header -> SurveyRecord field
SURVEY_COLUMNS: Dict[str, str] = {
    "IdOpinion": "opinion_id",
    "IdCliente": "customer_id",
    "IdProducto": "product_id",
    "Fecha": "opinion_date",
    "Comentario": "comment",
    "Clasificación": "classification",
    "PuntajeSatisfacción": "satisfaction",
    "Fuente": "source",
    "NombreCliente": "customer_name",
    "Genero": "gender",
    "RangoEdad": "age_range",
    "Pais": "country",
    "NombreProducto": "product_name",
    "Marca": "brand",
    "Categoria": "category",
    "Precio": "price",
}

REVIEWS_QUERY = """
    SELECT id_review AS review_id, id_opinion AS opinion_id,
           id_cliente AS customer_id, id_producto AS product_id,
           fecha AS review_date, comentario AS comment,
           clasificacion AS classification, puntaje AS rating, fuente AS source
    FROM web_reviews
    ORDER BY id_review
    LIMIT :limit OFFSET :offset
"""


def _has_identity(record: Any) -> bool:
    return bool(record.customer_id) and bool(record.product_id)


def read_survey_csv(path: Union[str, Path], delimiter: str = ",") -> List[SurveyRecord]:
    """
    Read the survey CSV file.

    Known Spanish headers are renamed to record fields; rows failing
    validation or lacking a customer/product id are dropped.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Survey file not found: {path}")

    df = pl.read_csv(
        path,
        separator=delimiter,
        null_values=["", "NULL", "null", "None", "NA", "N/A"],
        infer_schema_length=0,
    )
    df = df.rename({src: dst for src, dst in SURVEY_COLUMNS.items() if src in df.columns})

    records: List[SurveyRecord] = []
    invalid = 0
    for row in df.iter_rows(named=True):
        try:
            record = SurveyRecord.model_validate({k: v for k, v in row.items() if v is not None})
        except ValidationError as e:
            invalid += 1
            logger.warning("Invalid survey row skipped", error=str(e).splitlines()[0])
            continue
        if record.opinion_id and _has_identity(record):
            records.append(record)

    logger.info(
        "Survey extraction completed",
        file=str(path),
        rows=len(df),
        records=len(records),
        invalid=invalid,
    )
    return records


class ReviewExtractor:
    """
    Pages through the web reviews database.

    Example:
        extractor = ReviewExtractor(engine, page_size=1000)
        reviews = await extractor.extract()
    """

    def __init__(self, engine: AsyncEngine, page_size: int = 1000, query: str = REVIEWS_QUERY):
        self.engine = engine
        self.page_size = page_size
        self.query = text(query)

    async def extract(self) -> List[ReviewRecord]:
        reviews: List[ReviewRecord] = []
        invalid = 0
        offset = 0

        async with self.engine.connect() as conn:
            while True:
                result = await conn.execute(
                    self.query, {"limit": self.page_size, "offset": offset}
                )
                rows = [dict(r._mapping) for r in result.fetchall()]

                for row in rows:
                    try:
                        record = ReviewRecord.model_validate(row)
                    except ValidationError as e:
                        invalid += 1
                        logger.warning(
                            "Invalid review row skipped",
                            review_id=row.get("review_id"),
                            error=str(e).splitlines()[0],
                        )
                        continue
                    if _has_identity(record):
                        reviews.append(record)

                logger.debug(f"Review page {offset // self.page_size + 1}: {len(rows)} rows")

                if len(rows) < self.page_size:
                    break
                offset += self.page_size

        logger.info("Review extraction completed", records=len(reviews), invalid=invalid)
        return reviews


def parse_social_comments(payload: Iterable[Dict[str, Any]]) -> List[SocialCommentRecord]:
    """Validate raw social-comment payload items; keys are matched case-insensitively."""
    comments: List[SocialCommentRecord] = []
    invalid = 0
    for item in payload:
        normalized = {str(k).lower(): v for k, v in item.items()}
        try:
            record = SocialCommentRecord.model_validate(_social_fields(normalized))
        except ValidationError as e:
            invalid += 1
            logger.warning("Invalid social comment skipped", error=str(e).splitlines()[0])
            continue
        if _has_identity(record):
            comments.append(record)

    if invalid:
        logger.warning("Social comments skipped", invalid=invalid, records=len(comments))
    return comments


def _social_fields(normalized: Dict[str, Any]) -> Dict[str, Any]:
    """Feed item to SocialCommentRecord fields, English or Spanish keys"""
    return {
        "comment_id": normalized.get("comment_id", normalized.get("idcomentario", 0)),
        "customer_id": normalized.get("customer_id", normalized.get("idcliente", 0)),
        "product_id": normalized.get("product_id", normalized.get("idproducto", 0)),
        "comment_date": normalized.get("comment_date", normalized.get("fecha")),
        "comment": normalized.get("comment", normalized.get("comentario")),
        "likes": normalized.get("likes", 0) or 0,
        "shares": normalized.get("shares", 0) or 0,
        "platform": normalized.get("platform", normalized.get("plataforma")),
    }


def read_social_comments_json(path: Union[str, Path]) -> List[SocialCommentRecord]:
    """Read the social comments feed from a JSON array dump."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)

    comments = parse_social_comments(payload)
    logger.info("Social comments extraction completed", file=str(path), records=len(comments))
    return comments


@dataclass
class MasterData:
    """
    Customer and product master data keyed by source id.

    ``customers`` values hold name/gender/age_range/country, ``products``
    values hold name/brand/category/price.
    """
    customers: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    products: Dict[int, Dict[str, Any]] = field(default_factory=dict)

    def enrich(self, records: Sequence[RecordT]) -> List[RecordT]:
        """Return copies of ``records`` with master attributes filled in."""
        enriched: List[RecordT] = []
        unknown_customers = 0
        unknown_products = 0

        for record in records:
            update: Dict[str, Any] = {}

            customer = self.customers.get(record.customer_id)
            if customer:
                update.update(
                    customer_name=customer["name"],
                    gender=customer.get("gender"),
                    age_range=customer.get("age_range"),
                    country=customer.get("country"),
                )
            elif not record.customer_name:
                unknown_customers += 1
                update.update(
                    customer_name=f"Customer {record.customer_id}",
                    gender="Unknown",
                    age_range="Unknown",
                    country="Unknown",
                )

            product = self.products.get(record.product_id)
            if product:
                update.update(
                    product_name=product["name"],
                    brand=product.get("brand"),
                    category=product.get("category"),
                    price=Decimal(str(product.get("price", 0))),
                )
            elif not record.product_name:
                unknown_products += 1
                update.update(
                    product_name=f"Product {record.product_id}",
                    brand="Generic Brand",
                    category="General Category",
                    price=Decimal("0"),
                )

            enriched.append(record.model_copy(update=update))

        if unknown_customers or unknown_products:
            logger.warning(
                "Master data missing, generic placeholders used",
                customers=unknown_customers,
                products=unknown_products,
            )
        return enriched


async def fetch_master_data(engine: AsyncEngine) -> MasterData:
    """Load customer and product master tables from a source database."""
    master = MasterData()
    async with engine.connect() as conn:
        customers = await conn.execute(text(
            "SELECT id_cliente, nombre, genero, rango_edad, pais FROM maestro_clientes"
        ))
        for row in customers.fetchall():
            master.customers[row[0]] = {
                "name": row[1], "gender": row[2], "age_range": row[3], "country": row[4],
            }

        products = await conn.execute(text(
            "SELECT id_producto, nombre, marca, categoria, precio FROM maestro_productos"
        ))
        for row in products.fetchall():
            master.products[row[0]] = {
                "name": row[1], "brand": row[2], "category": row[3], "price": row[4],
            }

    logger.info(
        "Master data loaded",
        customers=len(master.customers),
        products=len(master.products),
    )
    return master
