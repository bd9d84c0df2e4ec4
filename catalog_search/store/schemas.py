from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from catalog_search.utils.text_cleaning import normalize_query, slugify_text


def coerce_datetime(value: Any) -> datetime:
    if value is None or value == "":
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    # Naive timestamps are taken as UTC so they compare with aware ones.
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


_FALSE_STRINGS = frozenset({"false", "0", "no", "off", "n", "f", ""})
_TRUE_STRINGS = frozenset({"true", "1", "yes", "on", "y", "t"})


def coerce_bool(value: Any, default: bool = True) -> bool:
    """Read a flag from JSON/CSV/form input, where "false" is a string."""
    if value is None:
        return default
    if isinstance(value, str):
        flag = value.strip().lower()
        if flag in _FALSE_STRINGS:
            return False
        if flag in _TRUE_STRINGS:
            return True
        raise ValueError(f"not a boolean: {value!r}")
    return bool(value)


@dataclass(frozen=True)
class SearchableRecord:
    id: str
    name: str
    slug: str
    visible: bool = True
    description: str = ""
    images: Tuple[str, ...] = ()
    banner: Optional[str] = None
    updated_at: datetime = field(
        default_factory=lambda: datetime.fromtimestamp(0, tz=timezone.utc)
    )

    @property
    def name_normalized(self) -> str:
        return normalize_query(self.name)

    @property
    def thumbnail(self) -> Optional[str]:
        """Banner if set, else the first non-empty image, else None."""
        if self.banner:
            return self.banner
        return next((img for img in self.images if img), None)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SearchableRecord":
        """Build a record from a loosely-shaped document (JSON line, API payload).

        Accepts `images` as a list of URLs or of {"imgUrl": ...} objects and
        derives the slug from the name when missing.
        """
        record_id = data.get("id") or data.get("_id")
        if record_id is None or str(record_id).strip() == "":
            raise ValueError("record is missing an id")

        name = str(data.get("name") or data.get("nameProduct") or "")
        images = []
        for img in data.get("images") or []:
            url = img.get("imgUrl") if isinstance(img, dict) else img
            if url:
                images.append(str(url))

        return cls(
            id=str(record_id),
            name=name,
            slug=str(data.get("slug") or slugify_text(name)),
            visible=coerce_bool(data.get("visible", data.get("visibility"))),
            description=str(data.get("description") or ""),
            images=tuple(images),
            banner=data.get("banner") or None,
            updated_at=coerce_datetime(data.get("updated_at") or data.get("updatedAt")),
        )


@dataclass(frozen=True)
class ScoredRecord:
    record: SearchableRecord
    relevance: int

    def to_result(self) -> Dict[str, Any]:
        r = self.record
        return {
            "id": r.id,
            "name": r.name,
            "slug": r.slug,
            "description": r.description,
            "images": list(r.images),
            "banner": r.banner,
            "thumbnail": r.thumbnail,
            "updatedAt": r.updated_at.isoformat(),
            "relevance": self.relevance,
        }
