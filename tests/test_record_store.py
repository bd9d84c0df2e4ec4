"""Tests for the in-memory and SQL record stores.

Every ranking test runs against both backends to keep them interchangeable.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from catalog_search.search.matching import build_match_query, build_relevance_expression
from catalog_search.store.database import get_engine
from catalog_search.store.record_store import InMemoryRecordStore, SqlRecordStore
from catalog_search.store.schemas import SearchableRecord


def _sql_store(records):
    engine = get_engine(
        "sqlite://",
        wait_ready=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    store = SqlRecordStore(engine, create_schema=True)
    store.upsert(records)
    return store


@pytest.fixture(params=["memory", "sql"])
def make_store(request):
    created = []

    def factory(records):
        if request.param == "memory":
            return InMemoryRecordStore(records)
        store = _sql_store(records)
        created.append(store)
        return store

    yield factory
    for store in created:
        store.close()


def _query(store, q, offset=0, limit=10):
    return store.query(
        build_match_query(q), build_relevance_expression(q), offset=offset, limit=limit
    )


def _names(items):
    return [item.record.name for item in items]


class TestRanking:
    def test_prefix_before_contains(self, make_store, shoe_records):
        items = _query(make_store(shoe_records), "shoe", limit=8)
        assert _names(items) == ["Shoe Rack", "Red Shoe"]
        assert [i.relevance for i in items] == [300, 200]

    def test_full_tier_order(self, make_store, catalog_records):
        items = _query(make_store(catalog_records), "shoe")
        assert [(i.record.id, i.relevance) for i in items] == [
            ("2", 300),
            ("1", 200),
            ("3", 170),
            ("4", 120),
        ]

    def test_ties_break_on_updated_at_desc(self, make_store, record_factory):
        records = [
            record_factory("a", "Lamp Old", "x1", minutes=1),
            record_factory("b", "Lamp New", "x2", minutes=9),
            record_factory("c", "Lamp Mid", "x3", minutes=5),
        ]
        assert _names(_query(make_store(records), "lamp")) == ["Lamp New", "Lamp Mid", "Lamp Old"]

    def test_full_ties_break_on_id(self, make_store, record_factory):
        records = [
            record_factory("b", "Lamp B", "y1", minutes=1),
            record_factory("a", "Lamp A", "y2", minutes=1),
        ]
        assert [i.record.id for i in _query(make_store(records), "lamp")] == ["a", "b"]

    def test_hidden_records_excluded(self, make_store, catalog_records):
        assert "Shoe Polish" not in _names(_query(make_store(catalog_records), "shoe"))

    def test_diacritics_in_stored_names(self, make_store, record_factory):
        store = make_store([record_factory("1", "Café Olé", "cafe-ole")])
        assert [i.relevance for i in _query(store, "cafe")] == [300]


class TestCaseFolding:
    def test_non_ascii_description_matches_case_insensitively(self, make_store, record_factory):
        store = make_store([record_factory("1", "Cup", "cup", description="ΚΑΦΕ cup")])
        assert [(i.record.id, i.relevance) for i in _query(store, "καφε")] == [("1", 120)]

    def test_non_ascii_slug_matches_case_insensitively(self, make_store, record_factory):
        store = make_store([record_factory("1", "Kit", "ΩMEGA-kit")])
        assert [(i.record.id, i.relevance) for i in _query(store, "ωmega")] == [("1", 260)]

    def test_counts_agree_on_non_ascii_text(self, make_store, record_factory):
        store = make_store(
            [
                record_factory("1", "Cup", "cup", description="ΛΑΜΠΑ desk"),
                record_factory("2", "Mug", "mug", description="λαμπα"),
            ]
        )
        assert store.count(build_match_query("λαμπα")) == 2


class TestLiteralMatching:
    def test_regex_metacharacters(self, make_store, record_factory):
        store = make_store(
            [
                record_factory("1", "a.b*", "one"),
                record_factory("2", "aXbYYY", "two"),
            ]
        )
        assert _names(_query(store, "a.b*")) == ["a.b*"]

    @pytest.mark.parametrize("q,hit,miss", [("50%", "50% off", "500 off"), ("a_b", "a_b kit", "axb kit")])
    def test_like_wildcards(self, make_store, record_factory, q, hit, miss):
        store = make_store(
            [
                record_factory("1", hit, "one"),
                record_factory("2", miss, "two"),
            ]
        )
        assert _names(_query(store, q)) == [hit]


class TestWindowAndCount:
    def test_offset_and_limit(self, make_store, catalog_records):
        store = make_store(catalog_records)
        assert [i.record.id for i in _query(store, "shoe", offset=1, limit=2)] == ["1", "3"]

    def test_count_matches_predicate(self, make_store, catalog_records):
        store = make_store(catalog_records)
        assert store.count(build_match_query("shoe")) == 4
        assert store.count(build_match_query("nothing here")) == 0

    def test_search_returns_window_and_total(self, make_store, catalog_records):
        store = make_store(catalog_records)
        items, total = store.search(
            build_match_query("shoe"), build_relevance_expression("shoe"), offset=3, limit=2
        )
        assert [i.record.id for i in items] == ["4"]
        assert total == 4


class TestSqlRecordStore:
    def test_round_trip_fields(self, record_factory):
        original = record_factory(
            "1",
            "Red Shoe",
            "red-shoe",
            minutes=10,
            description="comfy",
            images=("https://img/1.jpg", "https://img/2.jpg"),
            banner="https://img/banner.jpg",
        )
        store = _sql_store([original])
        try:
            (item,) = _query(store, "red")
        finally:
            store.close()
        assert item.record == original
        assert item.record.updated_at.tzinfo is not None
        assert item.record.updated_at.astimezone(timezone.utc) == original.updated_at

    def test_upsert_replaces(self, record_factory):
        store = _sql_store([record_factory("1", "Red Shoe")])
        try:
            store.upsert([record_factory("1", "Blue Shoe")])
            assert _names(_query(store, "shoe")) == ["Blue Shoe"]
        finally:
            store.close()

    def test_backfill_restores_name_normalized(self, record_factory):
        from sqlalchemy import update
        from sqlalchemy.orm import Session

        from catalog_search.store.database import ProductRow

        store = _sql_store(
            [record_factory("1", "Café"), record_factory("2", "Lamp")]
        )
        try:
            with Session(store.engine) as session:
                session.execute(
                    update(ProductRow).where(ProductRow.id == "1").values(name_normalized="")
                )
                session.commit()
            assert _query(store, "cafe") == []

            assert store.backfill_search_columns(batch_size=1) == (2, 1)
            assert _names(_query(store, "cafe")) == ["Café"]
        finally:
            store.close()

    def test_backfill_restores_folded_columns(self, record_factory):
        from sqlalchemy import update
        from sqlalchemy.orm import Session

        from catalog_search.store.database import ProductRow

        store = _sql_store(
            [
                record_factory("1", "Cup", "ΚΑΦΕ-cup", description="Big ΚΑΦΕ"),
                record_factory("2", "Lamp"),
            ]
        )
        try:
            with Session(store.engine) as session:
                session.execute(
                    update(ProductRow)
                    .where(ProductRow.id == "1")
                    .values(slug_search="", description_search="")
                )
                session.commit()
            assert _query(store, "καφε") == []

            assert store.backfill_search_columns() == (2, 1)
            assert [i.relevance for i in _query(store, "καφε")] == [260]
        finally:
            store.close()


class TestGetEngine:
    def test_zero_retries_still_raises_when_unreachable(self):
        engine = Mock()
        engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("down"))
        with patch("catalog_search.store.database.create_engine", return_value=engine), patch(
            "catalog_search.store.database.time.sleep"
        ) as sleep:
            with pytest.raises(OperationalError):
                get_engine("sqlite://", retries=0)
        assert engine.connect.call_count == 1
        sleep.assert_not_called()

    def test_retries_until_ready(self):
        engine = MagicMock()
        engine.connect.side_effect = [OperationalError("SELECT 1", {}, Exception("down")), MagicMock()]
        with patch("catalog_search.store.database.create_engine", return_value=engine), patch(
            "catalog_search.store.database.time.sleep"
        ) as sleep:
            assert get_engine("sqlite://", retries=3, backoff_sec=0.5) is engine
        assert engine.connect.call_count == 2
        sleep.assert_called_once_with(0.5)

    def test_exhausted_retries_raise(self):
        engine = Mock()
        engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("down"))
        with patch("catalog_search.store.database.create_engine", return_value=engine), patch(
            "catalog_search.store.database.time.sleep"
        ):
            with pytest.raises(OperationalError):
                get_engine("sqlite://", retries=3)
        assert engine.connect.call_count == 3


class TestInMemoryRecordStore:
    def test_upsert_and_len(self, record_factory):
        store = InMemoryRecordStore([record_factory("1", "Lamp")])
        store.upsert([record_factory("1", "Lamp 2"), record_factory("2", "Desk")])
        assert len(store) == 2


class TestSearchableRecordFromMapping:
    def test_loose_document(self):
        record = SearchableRecord.from_mapping(
            {
                "_id": 42,
                "nameProduct": "Café Olé",
                "visibility": False,
                "images": [{"imgUrl": "https://img/a.jpg"}, {"imgUrl": ""}, "https://img/b.jpg"],
                "updatedAt": "2024-05-01T10:00:00Z",
            }
        )
        assert record.id == "42"
        assert record.slug == "cafe-ole"
        assert record.visible is False
        assert record.images == ("https://img/a.jpg", "https://img/b.jpg")
        assert record.thumbnail == "https://img/a.jpg"
        assert record.updated_at == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)

    def test_naive_timestamp_is_utc(self):
        record = SearchableRecord.from_mapping(
            {"id": "1", "name": "Lamp", "updated_at": "2024-05-01T10:00:00"}
        )
        assert record.updated_at.tzinfo is not None

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError):
            SearchableRecord.from_mapping({"name": "Lamp"})

    @pytest.mark.parametrize(
        "flag,expected",
        [
            ("false", False),
            ("False", False),
            ("0", False),
            ("no", False),
            ("true", True),
            ("1", True),
            (0, False),
            (1, True),
            (None, True),
        ],
    )
    def test_visible_flag_strings(self, flag, expected):
        record = SearchableRecord.from_mapping({"id": "1", "name": "Lamp", "visible": flag})
        assert record.visible is expected

    def test_visibility_string_false_hides_record(self, make_store):
        record = SearchableRecord.from_mapping(
            {"id": "1", "name": "Lamp", "visibility": "false"}
        )
        assert _query(make_store([record]), "lamp") == []

    def test_unknown_flag_string_rejected(self):
        with pytest.raises(ValueError):
            SearchableRecord.from_mapping({"id": "1", "name": "Lamp", "visible": "maybe"})
