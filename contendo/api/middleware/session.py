"""Cookie-backed session middleware.

The cookie carries only a signed session id; the payload lives in the
session store. A request gets ``request.session``, a dictionary that starts
out with the stored payload (or empty) and records every write.

After the response is produced:
- untouched sessions cause no store write and no cookie
- writes to an existing session are merged into its record; the cookie is
  not re-sent because the expiry is fixed at creation
- the first write without a live session creates a record and sets the
  cookie with the full lifetime as ``Max-Age``
- ``request.session.invalidate()`` destroys the record and expires the cookie
"""

from collections.abc import Awaitable, Callable
from typing import Literal

from fastapi import Request, Response
from itsdangerous import BadSignature, Signer
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from contendo.infrastructure.session_store import SessionData, SessionStore

SESSION_SIGNER_SALT = "contendo.session"


class SessionMiddleware(BaseHTTPMiddleware):
    """Attach a server-side session to each request.

    Args:
        app: The ASGI application to wrap.
        store: Session record storage.
        secret: Key used to sign session ids.
        cookie_name: Name of the session cookie.
        max_age_seconds: Fixed session lifetime.
        secure: Whether the cookie carries the Secure attribute.
        same_site: SameSite attribute of the cookie.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        store: SessionStore,
        secret: str,
        cookie_name: str,
        max_age_seconds: int,
        secure: bool,
        same_site: Literal["lax", "strict", "none"] = "lax",
    ) -> None:
        super().__init__(app)
        self.store = store
        self.signer = Signer(secret, salt=SESSION_SIGNER_SALT)
        self.cookie_name = cookie_name
        self.max_age_seconds = max_age_seconds
        self.secure = secure
        self.same_site = same_site

    def sign(self, session_id: str) -> str:
        """Return the cookie value for ``session_id``."""
        return self.signer.sign(session_id).decode("utf-8")

    def unsign(self, cookie_value: str) -> str | None:
        """Return the session id in a cookie value, or None if tampered with."""
        try:
            return self.signer.unsign(cookie_value).decode("utf-8")
        except BadSignature:
            return None

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Load the session, run the request, then persist any changes."""
        session_id: str | None = None
        cookie_value = request.cookies.get(self.cookie_name)
        if cookie_value:
            session_id = self.unsign(cookie_value)
            if session_id is None:
                logger.warning("Rejected session cookie with invalid signature")

        record = await self.store.get(session_id) if session_id else None
        session = SessionData(record.data if record else None)
        request.scope["session"] = session

        response = await call_next(request)

        if session.invalidated:
            if record is not None:
                await self.store.delete(record.session_id)
                logger.debug("Session invalidated")
            response.delete_cookie(
                self.cookie_name,
                path="/",
                secure=self.secure,
                httponly=True,
                samesite=self.same_site,
            )
            record = None

        if not session.modified:
            return response

        if record is not None:
            updated = await self.store.apply(
                record.session_id,
                session.changes.updates,
                session.changes.deletions,
            )
            if updated is not None:
                return response

        if session:
            created = await self.store.create(session)
            self._set_cookie(response, self.sign(created.session_id))
        return response

    def _set_cookie(self, response: Response, value: str) -> None:
        response.set_cookie(
            self.cookie_name,
            value,
            max_age=self.max_age_seconds,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite=self.same_site,
        )
