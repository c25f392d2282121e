import logging
from typing import Generator, Optional, Protocol

from fastapi import Depends
from sqlalchemy import create_engine, func, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from janmitra.config import settings
from janmitra.errors import PersistenceFailure

logger = logging.getLogger(__name__)


def _connect_args(database_url: str) -> dict:
    # SQLite connections are handed between FastAPI's worker threads
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    echo=False,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {engine.url.render_as_string(hide_password=True)}")
    try:
        # Import models to register them with Base.metadata
        from janmitra.models import Issue  # noqa: F401

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
    Check if the database is reachable and the issues table exists.

    Returns:
        True if DB is healthy and schema exists, False otherwise.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            if not inspect(conn).has_table("issues"):
                logger.error("Database schema not applied: 'issues' table not found")
                return False
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Issue Repository
# =============================================================================

class IssueRepository(Protocol):
    """The persistence capabilities the services depend on."""

    def insert(
        self,
        filename: str,
        originalname: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
    ): ...

    def list_recent(self) -> list: ...

    def count(self) -> int: ...


class SqlIssueRepository:
    """
    SQLAlchemy-backed issue repository bound to one session.

    Every SQLAlchemy error is logged and re-raised as PersistenceFailure;
    the session is rolled back so it stays usable.
    """

    def __init__(self, db: Session):
        self.db = db

    def insert(
        self,
        filename: str,
        originalname: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        lat: Optional[float] = None,
        lon: Optional[float] = None,
    ):
        """
        Insert a new issue and return it with its generated id.

        Args:
            filename: Media store key of the uploaded image (required)
            originalname: Client-supplied file name
            description: Free text
            category: Free-form tag
            lat: Latitude, or None
            lon: Longitude, or None

        Returns:
            The persisted Issue
        """
        from janmitra.models import Issue

        logger.info(f"Inserting issue: filename={filename}, category={category}")

        issue = Issue(
            filename=filename,
            originalname=originalname,
            description=description,
            category=category,
            lat=lat,
            lon=lon,
        )
        try:
            self.db.add(issue)
            self.db.commit()
            self.db.refresh(issue)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to insert issue {filename}: {e}")
            raise PersistenceFailure("DB insert failed") from e

        logger.info(f"Issue created: id={issue.id}")
        return issue

    def list_recent(self) -> list:
        """All issues, most recent first; ties broken by id so order is stable."""
        from janmitra.models import Issue

        try:
            issues = (
                self.db.query(Issue)
                .order_by(Issue.created_at.desc(), Issue.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to list issues: {e}")
            raise PersistenceFailure("DB error") from e

        logger.debug(f"Retrieved {len(issues)} issues")
        return issues

    def count(self) -> int:
        from janmitra.models import Issue

        try:
            return self.db.query(func.count(Issue.id)).scalar() or 0
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to count issues: {e}")
            raise PersistenceFailure("DB error") from e


def get_issue_repository(db: Session = Depends(get_db)) -> IssueRepository:
    """Dependency providing the issue repository for the current request."""
    return SqlIssueRepository(db)
