"""
Crowslist Backend — Request Dependencies
==========================================

What:  FastAPI dependencies that hand route handlers their per-request
       collaborators: a database session, the session store, the caller's
       session, and the image store.
How:   Everything is looked up on `request.app.state`, which create_app()
       fills in. Tests build an app with their own database and session
       store and get fully isolated state without touching globals.
"""

import logging
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crowslist.config import settings
from crowslist.database import Database
from crowslist.exceptions import AuthRequiredError, DatabaseError
from crowslist.services.file_service import FileService
from crowslist.services.session_store import Session, SessionStore

logger = logging.getLogger(__name__)


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_db_session(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """
    Session-per-request.

    Routes declare it with `scope="function"`, so the commit runs when the
    handler returns and before the response is sent. A client that gets a 200
    can rely on the rows being there; a failed commit becomes a 500 instead.
    A handler that raises rolls back everything it wrote.
    """
    try:
        async with database.session_scope() as session:
            yield session
    except SQLAlchemyError as e:
        logger.error("Request transaction failed: %s", str(e), exc_info=True)
        raise DatabaseError(
            message="Failed to save changes",
            context={"error_type": type(e).__name__},
        )


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


def get_session_token(request: Request) -> Optional[str]:
    return request.cookies.get(settings.session_cookie_name)


def get_optional_session(
    token: Optional[str] = Depends(get_session_token),
    store: SessionStore = Depends(get_session_store),
) -> Optional[Session]:
    return store.get(token)


def require_session(session: Optional[Session] = Depends(get_optional_session)) -> Session:
    """Gate for user-scoped endpoints: no live session → 401."""
    if session is None:
        raise AuthRequiredError()
    return session
