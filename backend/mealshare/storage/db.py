from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine

from mealshare.config import settings
from mealshare.logging import get_logger

logger = get_logger(__name__)

engine = create_engine(settings.database_url, pool_pre_ping=True)

# Columns added after the first deployment of shopping_lists.
_SHOPPING_LIST_MIGRATIONS = (
    "ALTER TABLE shopping_lists ADD COLUMN IF NOT EXISTS status VARCHAR(16) DEFAULT 'ready'",
    "ALTER TABLE shopping_lists ADD COLUMN IF NOT EXISTS error VARCHAR DEFAULT NULL",
    "ALTER TABLE shopping_lists ADD COLUMN IF NOT EXISTS share_token VARCHAR DEFAULT NULL",
    "ALTER TABLE shopping_lists ADD COLUMN IF NOT EXISTS recipe_selections JSONB DEFAULT '[]'::jsonb",
)


def create_db_and_tables() -> None:
    SQLModel.metadata.create_all(engine)
    if engine.dialect.name == "postgresql":
        _migrate_shopping_list_status()


def _migrate_shopping_list_status() -> None:
    """Add job status columns to lists created before status tracking existed."""
    try:
        with engine.connect() as conn:
            for statement in _SHOPPING_LIST_MIGRATIONS:
                conn.execute(text(statement))
            # Rows without a blob were stuck generating before status existed.
            conn.execute(
                text(
                    "UPDATE shopping_lists SET status = 'failed', error = 'generation lost' "
                    "WHERE shopping_list IS NULL AND status = 'ready'"
                )
            )
            conn.commit()
    except SQLAlchemyError as exc:
        logger.warning("db.migrate.shopping_list_status_failed error=%s", exc)


def get_session() -> Session:
    return Session(engine)
