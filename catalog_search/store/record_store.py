import logging
import threading
from datetime import timezone
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from catalog_search.search.matching import (
    DESCRIPTION_FIELD,
    NAME_FIELD,
    SLUG_FIELD,
    FieldCondition,
    MatchMode,
    MatchPredicate,
    ScoringRule,
    fold_case,
)
from catalog_search.utils.text_cleaning import normalize_query

from .database import Base, ProductRow, get_engine
from .schemas import ScoredRecord, SearchableRecord, coerce_datetime


logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    """Read interface the search service needs from a backing store.

    Every method orders by relevance desc, then `updated_at` desc, then id asc.
    """

    def query(
        self,
        predicate: MatchPredicate,
        rule: ScoringRule,
        *,
        offset: int = 0,
        limit: int,
    ) -> List[ScoredRecord]: ...

    def count(self, predicate: MatchPredicate) -> int: ...

    def search(
        self,
        predicate: MatchPredicate,
        rule: ScoringRule,
        *,
        offset: int = 0,
        limit: int,
    ) -> Tuple[List[ScoredRecord], int]: ...


class InMemoryRecordStore:
    """Local index that evaluates predicates and scoring rules directly."""

    def __init__(self, records: Iterable[SearchableRecord] = ()) -> None:
        self._records: Dict[str, SearchableRecord] = {}
        self._lock = threading.Lock()
        self.upsert(records)

    def upsert(self, records: Iterable[SearchableRecord]) -> None:
        with self._lock:
            for record in records:
                self._records[record.id] = record

    def __len__(self) -> int:
        return len(self._records)

    def _ranked(self, predicate: MatchPredicate, rule: ScoringRule) -> List[ScoredRecord]:
        with self._lock:
            snapshot = list(self._records.values())
        matched = [
            ScoredRecord(record=r, relevance=rule.score(r))
            for r in snapshot
            if predicate.matches(r)
        ]
        # Two stable passes: id asc, then (relevance, updated_at) desc.
        matched.sort(key=lambda s: s.record.id)
        matched.sort(key=lambda s: (s.relevance, s.record.updated_at), reverse=True)
        return matched

    def query(self, predicate, rule, *, offset=0, limit):
        return self._ranked(predicate, rule)[offset : offset + limit]

    def count(self, predicate):
        with self._lock:
            snapshot = list(self._records.values())
        return sum(1 for r in snapshot if predicate.matches(r))

    def search(self, predicate, rule, *, offset=0, limit):
        ranked = self._ranked(predicate, rule)
        return ranked[offset : offset + limit], len(ranked)


_COLUMNS = {
    NAME_FIELD: ProductRow.name_normalized,
    SLUG_FIELD: ProductRow.slug_search,
    DESCRIPTION_FIELD: ProductRow.description_search,
}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _condition_clause(cond: FieldCondition):
    try:
        column = _COLUMNS[cond.field]
    except KeyError:
        raise ValueError(f"Unsupported search field: {cond.field!r}") from None

    # Case-insensitive fields are compared against their pre-folded columns.
    term = cond.term if cond.case_sensitive else fold_case(cond.term)
    escaped = _escape_like(term)
    pattern = f"{escaped}%" if cond.mode is MatchMode.prefix else f"%{escaped}%"
    return column.like(pattern, escape="\\")


def _predicate_clause(predicate: MatchPredicate):
    return and_(
        ProductRow.visible == predicate.visible,
        or_(*[_condition_clause(c) for c in predicate.conditions]),
    )


def _relevance_column(rule: ScoringRule):
    return case(
        *[(_condition_clause(t.condition), t.score) for t in rule.tiers],
        else_=rule.default,
    ).label("relevance")


def _derived_columns(row: ProductRow) -> Dict[str, str]:
    return {
        "name_normalized": normalize_query(row.name),
        "slug_search": fold_case(row.slug or ""),
        "description_search": fold_case(row.description or ""),
    }


def _row_to_record(row: ProductRow) -> SearchableRecord:
    return SearchableRecord(
        id=row.id,
        name=row.name,
        slug=row.slug,
        visible=bool(row.visible),
        description=row.description or "",
        images=tuple(row.images or ()),
        banner=row.banner,
        updated_at=coerce_datetime(row.updated_at),
    )


class SqlRecordStore:
    """Product store on any SQLAlchemy-supported database.

    Predicates compile to escaped LIKE clauses over pre-folded columns and the
    scoring rule to a CASE expression, so filtering, ordering and windowing run in the database.
    """

    def __init__(self, engine: Optional[Engine] = None, *, create_schema: bool = False) -> None:
        self.engine = engine or get_engine()
        if create_schema:
            self.create_schema()

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()

    def upsert(self, records: Iterable[SearchableRecord]) -> int:
        written = 0
        with Session(self.engine) as session:
            for record in records:
                session.merge(
                    ProductRow(
                        id=record.id,
                        name=record.name,
                        name_normalized=record.name_normalized,
                        slug=record.slug,
                        slug_search=fold_case(record.slug),
                        visible=record.visible,
                        description=record.description,
                        description_search=fold_case(record.description),
                        images=list(record.images),
                        banner=record.banner,
                        # SQLite drops tzinfo; store UTC so reads can assume it.
                        updated_at=record.updated_at.astimezone(timezone.utc),
                    )
                )
                written += 1
            session.commit()
        logger.debug("Upserted %d product rows", written)
        return written

    def _window_stmt(self, predicate, rule, offset, limit):
        relevance = _relevance_column(rule)
        return (
            select(ProductRow, relevance)
            .where(_predicate_clause(predicate))
            .order_by(relevance.desc(), ProductRow.updated_at.desc(), ProductRow.id.asc())
            .offset(offset)
            .limit(limit)
        )

    def _count_stmt(self, predicate):
        return select(func.count()).select_from(ProductRow).where(_predicate_clause(predicate))

    def query(self, predicate, rule, *, offset=0, limit):
        with Session(self.engine) as session:
            rows = session.execute(self._window_stmt(predicate, rule, offset, limit)).all()
        return [ScoredRecord(_row_to_record(row), int(score)) for row, score in rows]

    def count(self, predicate):
        with Session(self.engine) as session:
            return int(session.execute(self._count_stmt(predicate)).scalar_one())

    def search(self, predicate, rule, *, offset=0, limit):
        # Window and total share one session/connection.
        with Session(self.engine) as session:
            rows = session.execute(self._window_stmt(predicate, rule, offset, limit)).all()
            total = int(session.execute(self._count_stmt(predicate)).scalar_one())
        items = [ScoredRecord(_row_to_record(row), int(score)) for row, score in rows]
        return items, total

    def backfill_search_columns(self, batch_size: int = 500) -> Tuple[int, int]:
        """Recompute the derived search columns for every row, walking ids in batches.

        Covers `name_normalized`, `slug_search` and `description_search`.
        Returns (processed, updated); a row counts once however many columns changed.
        """
        processed = 0
        updated = 0
        last_id = None
        while True:
            stmt = select(ProductRow).order_by(ProductRow.id.asc()).limit(batch_size)
            if last_id is not None:
                stmt = stmt.where(ProductRow.id > last_id)
            with Session(self.engine) as session:
                batch = list(session.execute(stmt).scalars())
                if not batch:
                    break
                for row in batch:
                    processed += 1
                    derived = _derived_columns(row)
                    stale = {k: v for k, v in derived.items() if getattr(row, k) != v}
                    for key, value in stale.items():
                        setattr(row, key, value)
                    if stale:
                        updated += 1
                session.commit()
                last_id = batch[-1].id
            logger.info("backfill processed=%d updated=%d", processed, updated)
        return processed, updated
