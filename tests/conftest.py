import os
import tempfile
from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Must be set before hdns.config is imported
_tmp_dir = tempfile.mkdtemp(prefix="hdns-test-")
os.environ.setdefault("HDNS_LOGS_DIR", str(Path(_tmp_dir) / "logs"))
os.environ.setdefault("HDNS_DATABASE_URL", f"sqlite:///{Path(_tmp_dir) / 'hdns.db'}")
os.environ.setdefault("HDNS_CONFIG", str(Path(_tmp_dir) / "config.toml"))

from hdns.models import Base  # noqa: E402


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
async def test_database():
    """Create isolated test database, yielding its session factory."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False)
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )

    yield session_maker

    await engine.dispose()
    Path(db_path).unlink(missing_ok=True)
