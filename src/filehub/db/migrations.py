import os
from pathlib import Path

from alembic.config import Config

from alembic import command

# Shipped inside the package so installed copies can migrate too.
SCRIPT_LOCATION = Path(__file__).resolve().parent.parent / "migrations"


def alembic_config(db_url: str, script_location: str | Path | None = None) -> Config:
    location = script_location or os.getenv("FILEHUB_MIGRATIONS_DIR") or SCRIPT_LOCATION
    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(location))
    alembic_cfg.set_main_option("sqlalchemy.url", db_url)
    return alembic_cfg


def run_migrations(db_url: str, script_location: str | Path | None = None) -> None:
    command.upgrade(alembic_config(db_url, script_location), "head")
