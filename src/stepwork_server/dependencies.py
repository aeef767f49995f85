"""Request-scoped dependencies for the walk API.

  - ``get_db``: one ``AsyncSession`` per request, committed when the route
    returns and rolled back when it raises
  - ``get_walk_engine`` / ``get_store``: the singletons built by the lifespan
  - ``get_user_id``: the caller's identity from the gateway headers
"""

import hmac
import logging
from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from stepwork.engine import StepWorkEngine
from stepwork.script import QuestionScriptStore
from stepwork_db.engine import get_session_factory

from stepwork_server.config import ServerSettings

logger = logging.getLogger(__name__)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session and finalise its transaction.

    ``StepWorkEngine`` only flushes.  The commit here is where a lost
    optimistic-concurrency race on ``walk_sessions.version`` surfaces as
    ``StaleDataError``.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()


def get_walk_engine(request: Request) -> StepWorkEngine:
    return request.app.state.engine


def get_store(request: Request) -> QuestionScriptStore:
    return request.app.state.store


# ------------------------------------------------------------------
# Caller identity
# ------------------------------------------------------------------

def _verify_proxy_secret(settings: ServerSettings, presented: str | None) -> None:
    """Reject the request unless it carries the gateway's shared secret.

    No-op when ``TRUSTED_PROXY_SECRET`` is unset.
    """
    expected = settings.trusted_proxy_secret
    if not expected:
        return
    if not presented:
        raise HTTPException(status_code=403, detail="X-Proxy-Secret header is required")
    if not hmac.compare_digest(presented.encode(), expected.encode()):
        logger.warning("Rejected request with an invalid proxy secret")
        raise HTTPException(status_code=403, detail="Invalid proxy secret")


async def get_user_id(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> str:
    """Return the walker's user id from ``X-User-ID``.

    A missing or blank header is 401.  The proxy secret is checked after
    the identity so an anonymous request is always reported as 401.
    """
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")
    _verify_proxy_secret(request.app.state.settings, x_proxy_secret)
    return user_id
