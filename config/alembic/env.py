import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import create_engine, pool

# Make the src/ layout importable when alembic runs from a checkout
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root / "src"))

from solar_recon.config.settings import get_settings  # noqa: E402
from solar_recon.models import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    """Sync driver URL; SOLAR_RECON_DATABASE_URL_SYNC wins over alembic.ini."""
    settings = get_settings()
    if "database_url_sync" in settings.model_fields_set:
        return settings.database_url_sync
    return config.get_main_option("sqlalchemy.url") or settings.database_url_sync


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a live connection."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(_database_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
