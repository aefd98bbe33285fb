from logging.config import fileConfig

from dotenv import load_dotenv
from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context

from grant_notify.config import settings
from grant_notify.db.base import Base
from grant_notify.db.tables import ALL_TABLE_NAMES
import grant_notify.models  # noqa: F401  registers every model on Base.metadata

load_dotenv()

# Models and the migrated schema must describe the same tables.
_registered = set(Base.metadata.tables)
_expected = set(ALL_TABLE_NAMES)
assert _registered == _expected, (
    f"Model tables {_registered} must match grant_notify.db.tables.ALL_TABLE_NAMES {_expected}."
)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
config.set_main_option("sqlalchemy.url", settings.database_url)


def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
