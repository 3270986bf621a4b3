"""
Alembic Environment
=====================
Migrations run against the same engine the app uses (config.database),
so DATABASE_URL only lives in .env. Every model module is imported below
so autogenerate sees the full AHSO schema: users, catalog, carts, orders.

SQLite gets batch mode because it cannot ALTER most constraints in place.
"""

import os
import sys
from logging.config import fileConfig

from alembic import context

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import Base, engine
from config.settings import DATABASE_URL

# ==========================================
# 🗂️ Model registry (autogenerate)
# ==========================================
import modules.user.models  # noqa: F401,E402
import modules.catalog.models  # noqa: F401,E402
import modules.cart.models  # noqa: F401,E402
import modules.order.models  # noqa: F401,E402

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def migrate_offline():
    """Emit SQL to stdout instead of touching the database."""
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
        render_as_batch=_is_sqlite(DATABASE_URL),
    )
    with context.begin_transaction():
        context.run_migrations()


def migrate_online():
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=_is_sqlite(str(engine.url)),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    migrate_offline()
else:
    migrate_online()
