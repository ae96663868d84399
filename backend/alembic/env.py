import sys
import warnings
from pathlib import Path
from logging.config import fileConfig

from alembic import context
from sqlalchemy.exc import SAWarning
from sqlalchemy import engine_from_config, pool

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT_DIR))

from chorebank.db import Base, BuildAdminConnectionUrl
from chorebank.modules.ledger import models as ledger_models  # noqa: F401
from chorebank.modules.notifications import models as notifications_models  # noqa: F401
from chorebank.modules.tasks import models as tasks_models  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

warnings.filterwarnings(
    "ignore",
    message="Unrecognized server version info",
    category=SAWarning,
)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    url = BuildAdminConnectionUrl()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        include_schemas=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = BuildAdminConnectionUrl()
    configuration = config.get_section(config.config_ini_section)
    configuration["sqlalchemy.url"] = url
    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_schemas=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
