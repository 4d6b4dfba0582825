from __future__ import annotations

import os
from logging.config import fileConfig
from urllib.parse import quote_plus

from alembic import context
from sqlalchemy import create_engine

from vidshare import models  # noqa: F401  (registers tables on Base.metadata)
from vidshare.db import Base, get_database_url

config = context.config

# In-process runs (app startup) keep the logging the app already configured
if config.config_file_name and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def get_admin_url() -> str:
    """Database URL for migrations; DDL may need a more privileged user than the API."""
    url = config.get_main_option("sqlalchemy.url") or os.getenv("DB_ADMIN_URL")
    if url:
        return url

    admin_user = os.getenv("DB_ADMIN_USER")
    admin_pass = os.getenv("DB_ADMIN_PASSWORD")
    db_name = os.getenv("DB_DATABASE")
    db_host = os.getenv("DB_HOST", "db")
    db_port = os.getenv("DB_PORT", "5432")

    if admin_user and admin_pass and db_name:
        return f"postgresql+psycopg://{admin_user}:{quote_plus(admin_pass)}@{db_host}:{db_port}/{db_name}"

    # Same credentials as the API
    return get_database_url()


def run_migrations_offline() -> None:
    context.configure(
        url=get_admin_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_admin_url()
    connectable = create_engine(url, pool_pre_ping=not url.startswith("sqlite"))

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
