"""
Dimension Loading Primitives

Shared pieces of every loader:
- merge_type1: pure SCD Type 1 merge of incoming attributes into a row
- CommitBatcher: commits every N pending rows
- DimensionResolver: get-or-create surrogate keys and bulk pre-load for a
  dimension with a natural key
"""

from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Tuple, Type

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from opinion_warehouse.database.models import Base

logger = structlog.get_logger(__name__)

NaturalKey = Tuple[Any, ...]


class DimensionResolutionError(ValueError):
    """A dimension key could not be resolved or created for one record."""


class CatalogNotInitializedError(RuntimeError):
    """A catalog every fact depends on is missing; the run cannot continue."""


def merge_type1(
    existing: Optional[Mapping[str, Any]],
    incoming: Mapping[str, Any],
    key_fields: Iterable[str],
    defaults: Optional[Mapping[str, Any]] = None,
) -> Tuple[Dict[str, Any], bool]:
    """
    Merge incoming attributes into a dimension row (SCD Type 1).

    Args:
        existing: Current attributes of the row, or None if it does not exist
        incoming: Attributes seen in the source
        key_fields: Natural-key attributes, never overwritten
        defaults: Values for attributes missing on creation

    Returns:
        Tuple of the attributes to persist and whether the row is new.
        ``None`` incoming values never overwrite stored ones.

    Example:
        >>> merge_type1({"name": "Ana", "country": "DO"}, {"name": "Ana", "country": "US"}, ["name"])
        ({'name': 'Ana', 'country': 'US'}, False)
    """
    if existing is None:
        merged = dict(defaults or {})
        merged.update({k: v for k, v in incoming.items() if v is not None})
        return merged, True

    key_fields = set(key_fields)
    merged = dict(existing)
    for name, value in incoming.items():
        if name in key_fields or value is None:
            continue
        merged[name] = value
    return merged, False


class CommitBatcher:
    """
    Counts pending rows and commits the session every ``every`` rows.

    Example:
        batcher = CommitBatcher(session, every=50, table="fact_opinion")
        for row in rows:
            session.add(row)
            await batcher.step()
        await batcher.commit()
    """

    def __init__(self, session: AsyncSession, every: int, table: str):
        self.session = session
        self.every = max(1, every)
        self.table = table
        self.pending = 0
        self.total = 0

    async def step(self, rows: int = 1) -> None:
        self.pending += rows
        self.total += rows
        if self.pending >= self.every:
            await self.commit()
            logger.debug(f"{self.total} rows saved", table=self.table)

    async def commit(self) -> None:
        """Commit whatever is pending."""
        if self.pending:
            await self.session.commit()
            self.pending = 0


class DimensionResolver:
    """
    Generic get-or-create resolver for a dimension with a natural key.

    Subclasses declare the model, its surrogate key column, the natural-key
    attributes, the descriptive attributes and their defaults. Resolved
    keys are cached for the lifetime of the resolver, i.e. one run.

    Example:
        customers = CustomerResolver(session)
        key = await customers.get_or_create_key("Ana Pérez")
        assert key == await customers.get_or_create_key("Ana Pérez")
    """

    model: ClassVar[Type[Base]]
    key_attr: ClassVar[str]
    natural_key: ClassVar[Tuple[str, ...]]
    attributes: ClassVar[Tuple[str, ...]] = ()
    defaults: ClassVar[Dict[str, Any]] = {}

    def __init__(self, session: AsyncSession, commit_every: int = 50):
        self.session = session
        self.commit_every = commit_every
        self._keys: Dict[NaturalKey, int] = {}

    @property
    def label(self) -> str:
        return self.model.__tablename__

    # -------------------------------------------------------------------------
    # Attribute handling
    # -------------------------------------------------------------------------

    def prepare(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Keep known attributes, strip strings, default blank natural-key parts."""
        known = set(self.natural_key) | set(self.attributes)
        attrs: Dict[str, Any] = {}
        for name, value in values.items():
            if name not in known:
                continue
            attrs[name] = value.strip() if isinstance(value, str) else value

        for name in self.natural_key:
            if attrs.get(name) in (None, "") and name in self.defaults:
                attrs[name] = self.defaults[name]
        return attrs

    def validate(self, attrs: Mapping[str, Any]) -> None:
        missing = [name for name in self.natural_key if attrs.get(name) in (None, "")]
        if missing:
            raise DimensionResolutionError(
                f"{self.label}: missing natural key attribute(s) {', '.join(missing)}"
            )

    def key_of(self, attrs: Mapping[str, Any]) -> NaturalKey:
        return tuple(attrs.get(name) for name in self.natural_key)

    def _attributes_of(self, row: Base) -> Dict[str, Any]:
        return {name: getattr(row, name) for name in (*self.natural_key, *self.attributes)}

    # -------------------------------------------------------------------------
    # Storage access
    # -------------------------------------------------------------------------

    async def _find(self, key: NaturalKey) -> Optional[Base]:
        conditions = [
            getattr(self.model, name) == value for name, value in zip(self.natural_key, key)
        ]
        result = await self.session.execute(select(self.model).where(*conditions))
        return result.scalar_one_or_none()

    async def _load_existing(self) -> Dict[NaturalKey, Base]:
        result = await self.session.execute(select(self.model))
        rows = result.scalars().all()
        return {self.key_of(self._attributes_of(row)): row for row in rows}

    # -------------------------------------------------------------------------
    # Public contract
    # -------------------------------------------------------------------------

    async def resolve(self, values: Mapping[str, Any]) -> int:
        """
        Get-or-create by natural key.

        An existing row is returned untouched; descriptive values are only
        used when the row has to be created.

        Raises:
            DimensionResolutionError: If a natural-key attribute is blank
        """
        attrs = self.prepare(values)
        self.validate(attrs)
        key = self.key_of(attrs)

        cached = self._keys.get(key)
        if cached is not None:
            return cached

        row = await self._find(key)
        if row is None:
            merged, _ = merge_type1(None, attrs, self.natural_key, self.defaults)
            row = self.model(**merged)
            self.session.add(row)
            await self.session.flush()
            logger.info(
                "Dimension row created",
                dimension=self.label,
                natural_key=key,
                surrogate_key=getattr(row, self.key_attr),
            )

        surrogate = getattr(row, self.key_attr)
        self._keys[key] = surrogate
        return surrogate

    async def bulk_load(self, records: Iterable[Mapping[str, Any]]) -> int:
        """
        Pre-load a dimension from source records.

        New natural keys are inserted; existing rows get their descriptive
        attributes overwritten (Type 1) when they differ. Duplicate keys in
        the input are allowed: the first occurrence creates, later ones are
        update candidates. Blank natural keys are skipped with a warning.

        Returns:
            Number of rows inserted plus rows updated
        """
        records = list(records)
        if not records:
            logger.warning("No records to load", dimension=self.label)
            return 0

        logger.info(f"Loading {len(records)} records", dimension=self.label)

        existing = await self._load_existing()
        batcher = CommitBatcher(self.session, self.commit_every, self.label)
        inserted = updated = skipped = 0

        for values in records:
            attrs = self.prepare(values)
            try:
                self.validate(attrs)
            except DimensionResolutionError as e:
                skipped += 1
                logger.warning("Dimension record skipped", dimension=self.label, reason=str(e))
                continue

            key = self.key_of(attrs)
            row = existing.get(key)
            current = None if row is None else self._attributes_of(row)
            merged, created = merge_type1(current, attrs, self.natural_key, self.defaults)

            if created:
                row = self.model(**merged)
                self.session.add(row)
                existing[key] = row
                inserted += 1
            elif merged != current:
                for name, value in merged.items():
                    setattr(row, name, value)
                updated += 1
            else:
                continue

            await batcher.step()

        await batcher.commit()

        for key, row in existing.items():
            self._keys[key] = getattr(row, self.key_attr)

        logger.info(
            "Dimension loaded",
            dimension=self.label,
            inserted=inserted,
            updated=updated,
            skipped=skipped,
        )
        return inserted + updated

    async def keys(self) -> List[int]:
        """All surrogate keys currently stored in the dimension."""
        result = await self.session.execute(select(getattr(self.model, self.key_attr)))
        return list(result.scalars().all())
