"""Alembic do fundflow: mesmo DATABASE_URL e mesmo metadata do app."""
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import engine_from_config, pool

from alembic import context
from fundflow.core.settings import settings
from fundflow.db import Base, import_all_models

import_all_models()

config = context.config

BACKEND_DIR = Path(__file__).resolve().parents[1]


def database_url() -> str:
    """sqlite relativo ("sqlite:///./x.db") é resolvido a partir de backend/."""
    url = settings.DATABASE_URL
    prefix = "sqlite:///./"
    if url.startswith(prefix):
        return "sqlite:///" + (BACKEND_DIR / url[len(prefix):]).resolve().as_posix()
    return url


config.set_main_option("sqlalchemy.url", database_url())

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        # batch mode: ALTER TABLE no sqlite
        context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
