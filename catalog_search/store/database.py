import os
import time
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy import Boolean, Column, DateTime, Index, JSON, String, Text, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

load_dotenv(override=True)

Base = declarative_base()


class ProductRow(Base):
    """Searchable product row.

    `name_normalized` backs the name tiers; `slug_search` and `description_search`
    hold case-folded copies for the case-insensitive tiers, so matching never
    depends on the database collation.
    """

    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    name = Column(String(512), nullable=False)
    name_normalized = Column(String(512), nullable=False, index=True)
    slug = Column(String(512), nullable=False, index=True)
    slug_search = Column(String(512), nullable=False, default="", index=True)
    visible = Column(Boolean, nullable=False, default=True)
    description = Column(Text, nullable=False, default="")
    description_search = Column(Text, nullable=False, default="")
    images = Column(JSON, nullable=False, default=list)
    banner = Column(String(1024), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_products_visible_updated", "visible", "updated_at"),)


def get_engine(
    url: Optional[str] = None,
    echo: Optional[bool] = None,
    wait_ready: bool = True,
    retries: int = 10,
    backoff_sec: float = 1.0,
    **engine_kwargs,
) -> Engine:
    """Create a SQLAlchemy engine using env defaults if not provided and optionally wait for readiness.

    Env overrides:
      - CATALOG_DATABASE_URL (default sqlite:///catalog.db)
      - CATALOG_DB_ECHO (default false)
    """
    url = url or os.environ.get("CATALOG_DATABASE_URL", "sqlite:///catalog.db")
    if echo is None:
        echo = os.environ.get("CATALOG_DB_ECHO", "false").lower() in {"1", "true", "yes"}
    engine = create_engine(url, echo=echo, pool_pre_ping=True, **engine_kwargs)

    if wait_ready:
        attempts = max(1, retries)
        for i in range(attempts):
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                break
            except Exception:
                if i == attempts - 1:
                    raise
                time.sleep(backoff_sec)
    return engine
