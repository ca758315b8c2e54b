from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from inventa.core.config import settings
from inventa.database.database import Base

# Register every model on Base.metadata
import inventa.modules.auth.models
import inventa.modules.company.models
import inventa.modules.stores.models
import inventa.modules.subscriptions.models
import inventa.modules.products.models
import inventa.modules.contacts.models
import inventa.modules.inventory.models
import inventa.modules.sequences.models
import inventa.modules.invoices.models
import inventa.modules.pos.models
import inventa.modules.join_requests.models
import inventa.modules.notifications.models

config = context.config
config.set_main_option("sqlalchemy.url", settings.database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
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
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
