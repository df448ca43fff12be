import secrets

from fastapi import Request

from avidlearner.core.settings import settings

SESSION_HEADER = "x-session-id"


def new_session_id() -> str:
    return secrets.token_hex(16)


async def session_cookie_middleware(request: Request, call_next):
    """Resolve the caller's session id from cookie or header, minting one if absent."""
    sid = request.cookies.get(settings.session_cookie_name) or request.headers.get(SESSION_HEADER, "")
    minted = not sid
    if minted:
        sid = new_session_id()
    request.state.session_id = sid
    response = await call_next(request)
    if minted:
        response.set_cookie(
            settings.session_cookie_name,
            sid,
            max_age=settings.session_cookie_max_age_seconds,
            path="/",
            httponly=True,
            samesite="lax",
        )
    return response


def get_session_id(request: Request) -> str:
    """FastAPI dependency returning the session id resolved by the middleware."""
    sid = getattr(request.state, "session_id", "")
    if not sid:
        sid = new_session_id()
        request.state.session_id = sid
    return sid
