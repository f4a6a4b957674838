"""
Conexión a base de datos (PostgreSQL en producción, SQLite en local/tests)

Este módulo centraliza el acceso a la base de datos:
- SQLAlchemy engine + SessionLocal (ORM)
- check_database_connection: ping con retry para /health

Author: TM3
Updated: 2026-10-19
"""
import time
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)


# ============================================================================
# SQLAlchemy Configuration
# ============================================================================

def create_db_engine(database_url: str):
    """
    Build an engine for the given URL.

    SQLite connections are shared across the threads of the validator pool,
    so the same-thread check is disabled there. Server databases get the
    pooled defaults.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verificar conexión antes de usar
        pool_size=10,  # Número de conexiones en el pool
        max_overflow=20,  # Conexiones extras si se necesitan
    )


# SQLAlchemy Engine
engine = create_db_engine(settings.DATABASE_URL)

# Session Factory
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)

# Base para modelos
Base = declarative_base()


# ============================================================================
# Connection check with retry logic
# ============================================================================

def check_database_connection(bind=None, max_retries=3, retry_delay=1.0):
    """
    Run ``SELECT 1`` against the database, retrying on connection failures

    Args:
        bind: Engine to check (default: module engine)
        max_retries: Maximum number of connection attempts (default: 3)
        retry_delay: Initial delay between retries in seconds (default: 1.0)

    Returns:
        Round-trip latency of the successful ping, in milliseconds

    Raises:
        sqlalchemy.exc.OperationalError: If all retry attempts fail
    """
    bind = bind if bind is not None else engine
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            logger.debug(f"Database connection attempt {attempt}/{max_retries}")
            start = time.time()
            with bind.connect() as conn:
                conn.execute(text("SELECT 1"))
            latency_ms = round((time.time() - start) * 1000, 2)
            logger.debug(f"Database connection successful on attempt {attempt}")
            return latency_ms

        except OperationalError as e:
            last_error = e
            logger.warning(f"Connection error on attempt {attempt}/{max_retries}: {e}")

            if attempt < max_retries:
                # Exponential backoff
                delay = retry_delay * (2 ** (attempt - 1))
                logger.info(f"Retrying in {delay:.2f} seconds...")
                time.sleep(delay)
            else:
                logger.error(f"All {max_retries} connection attempts failed")

    raise last_error
