"""Bring the moderation schema to the Alembic head on startup.

PostgreSQL deployments are migrated unless ``DISABLE_AUTO_MIGRATIONS`` is set.
SQLite databases are built from the ORM metadata by ``init_db`` instead,
unless ``AUTO_MIGRATE`` asks for Alembic explicitly.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine

from ..config import Settings, get_settings
from ..database import is_sqlite_url

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def should_run_migrations(config: Settings) -> bool:
    if config.disable_auto_migrations:
        return False
    if config.auto_migrate is not None:
        return config.auto_migrate
    return not is_sqlite_url(config.database_url)


def alembic_config(database_url: str) -> Config:
    alembic_ini = PROJECT_ROOT / "alembic.ini"
    cfg = Config(str(alembic_ini)) if alembic_ini.exists() else Config()
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def pending_head(database_url: str) -> str | None:
    """Return the head revision when the database is behind it, else ``None``."""

    head = ScriptDirectory.from_config(alembic_config(database_url)).get_current_head()
    check_engine = create_engine(database_url, future=True)
    try:
        with check_engine.connect() as connection:
            current = MigrationContext.configure(connection).get_current_revision()
    finally:
        check_engine.dispose()
    return None if current == head else head


def run_migrations_if_needed(config: Settings | None = None) -> bool:
    """Upgrade to head when enabled and behind; returns True if an upgrade ran."""

    config = config or get_settings()
    if not should_run_migrations(config):
        logger.info("Auto-migrations disabled for this database")
        return False

    head = pending_head(config.database_url)
    if head is None:
        logger.info("Moderation schema already at head")
        return False

    logger.info("Upgrading moderation schema to %s", head)
    command.upgrade(alembic_config(config.database_url), "head")
    logger.info("Alembic migrations completed")
    return True


__all__ = ["alembic_config", "pending_head", "run_migrations_if_needed", "should_run_migrations"]
