import logging
from datetime import datetime, timezone
from typing import Generator, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.domain import DuplicateIdError, DuplicateTitleError, Message

logger = logging.getLogger(__name__)

# check_same_thread=False is required for SQLite sessions used from FastAPI's threadpool
engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {},
    echo=False,
)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {settings.DATABASE_URL}")
    try:
        # Import models to register them with Base.metadata
        from app.models import MessageRecord  # noqa: F401

        logger.debug("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and schema exists, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
            logger.debug("Database connectivity OK")

        if not inspect(engine).has_table("messages"):
            logger.error("Database schema not applied: 'messages' table not found")
            return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Message Store
# =============================================================================

def _to_iso(value: datetime) -> str:
    """UTC ISO-8601 text, so string order on the column is chronological."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _to_domain(record) -> Message:
    return Message(
        id=record.id,
        organization_id=record.organization_id,
        title=record.title,
        content=record.content,
        is_active=record.is_active,
        created_at=datetime.fromisoformat(record.created_at),
        updated_at=datetime.fromisoformat(record.updated_at),
    )


class SqlMessageStore:
    """
    Message store backed by a SQLAlchemy session.

    Each mutating call commits on its own; there are no cross-call transactions.
    Title uniqueness among active messages is enforced by a partial unique
    index and surfaced as DuplicateTitleError.
    """

    def __init__(self, db: Session):
        self.db = db

    def _query(self, organization_id: str):
        from app.models import MessageRecord

        return self.db.query(MessageRecord).filter(
            MessageRecord.organization_id == organization_id
        )

    def find_by_title(self, organization_id: str, title: str) -> Optional[Message]:
        from app.models import MessageRecord

        logger.debug(f"Looking up title in organization {organization_id}")
        record = (
            self._query(organization_id)
            .filter(MessageRecord.title == title, MessageRecord.is_active.is_(True))
            .first()
        )
        return _to_domain(record) if record else None

    def get_by_id(self, organization_id: str, message_id: str) -> Optional[Message]:
        from app.models import MessageRecord

        record = self._query(organization_id).filter(MessageRecord.id == message_id).first()
        logger.debug(f"Message lookup {message_id}: {'found' if record else 'not found'}")
        return _to_domain(record) if record else None

    def list_by_organization(self, organization_id: str) -> list[Message]:
        from app.models import MessageRecord

        records = (
            self._query(organization_id)
            .order_by(MessageRecord.created_at.asc(), MessageRecord.id.asc())
            .all()
        )
        logger.debug(f"Retrieved {len(records)} messages for organization {organization_id}")
        return [_to_domain(r) for r in records]

    def insert(self, message: Message) -> None:
        from app.models import MessageRecord

        if self.db.get(MessageRecord, message.id) is not None:
            logger.error(f"Message id already exists: {message.id}")
            raise DuplicateIdError(message.id)

        record = MessageRecord(
            id=message.id,
            organization_id=message.organization_id,
            title=message.title,
            content=message.content,
            is_active=message.is_active,
            created_at=_to_iso(message.created_at),
            updated_at=_to_iso(message.updated_at),
        )
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if self.db.get(MessageRecord, message.id) is not None:
                logger.error(f"Message id already exists: {message.id}")
                raise DuplicateIdError(message.id)
            raise DuplicateTitleError(message.title)
        logger.debug(f"Inserted message {message.id}")

    def update(self, message: Message) -> Optional[Message]:
        from app.models import MessageRecord

        record = (
            self._query(message.organization_id)
            .filter(MessageRecord.id == message.id)
            .first()
        )
        if record is None:
            return None

        record.title = message.title
        record.content = message.content
        record.is_active = message.is_active
        record.updated_at = _to_iso(message.updated_at)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateTitleError(message.title)
        logger.debug(f"Updated message {message.id}")
        return _to_domain(record)

    def delete(self, organization_id: str, message_id: str) -> bool:
        from app.models import MessageRecord

        removed = (
            self._query(organization_id)
            .filter(MessageRecord.id == message_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.debug(f"Delete {message_id}: {removed} row(s) removed")
        return removed > 0
