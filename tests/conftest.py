"""Shared test fixtures and configuration."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from catalog_search.store.schemas import SearchableRecord  # noqa: E402


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_record(record_id, name, slug=None, *, minutes=0, **kwargs) -> SearchableRecord:
    """Record factory; `minutes` offsets updated_at from BASE_TIME."""
    return SearchableRecord(
        id=str(record_id),
        name=name,
        slug=slug if slug is not None else name.lower().replace(" ", "-"),
        updated_at=BASE_TIME + timedelta(minutes=minutes),
        **kwargs,
    )


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def shoe_records():
    return [
        make_record("1", "Red Shoe", "red-shoe", minutes=10),
        make_record("2", "Shoe Rack", "shoe-rack", minutes=1),
    ]


@pytest.fixture
def catalog_records():
    return [
        make_record("1", "Red Shoe", "red-shoe", minutes=10, images=("https://img/1.jpg",)),
        make_record(
            "2", "Shoe Rack", "shoe-rack", minutes=1, banner="https://img/banner-2.jpg"
        ),
        make_record("3", "Trainers", "running-shoe", minutes=5),
        make_record("4", "Hiking Boot", "hiking-boot", minutes=7, description="Great SHOE for trails"),
        make_record("5", "Shoe Polish", "shoe-polish", minutes=3, visible=False),
        make_record("6", "Blue Widget", "blue-widget", minutes=2),
    ]
