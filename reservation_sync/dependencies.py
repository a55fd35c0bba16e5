"""
FastAPI dependency injection providers.

Routes receive the database engine through Depends(get_db_engine) so tests can
swap in an isolated engine with app.dependency_overrides.
"""

from __future__ import annotations

from typing import Generator

from sqlalchemy.engine import Engine

from reservation_sync.db.engine import engine


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide the application's SQLAlchemy engine.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> test_engine = create_engine("sqlite://", poolclass=StaticPool)
        >>> app.dependency_overrides[get_db_engine] = lambda: test_engine
        >>> client = TestClient(app)
        >>> client.get("/review-items")
    """
    yield engine
