import hmac

from fastapi import Header, Request

from shortener.errors import UnauthorizedError


def check_admin_key(provided: str | None, expected: str) -> bool:
    # An unconfigured server key never matches
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def require_admin(request: Request, x_admin_key: str | None = Header(default=None)):
    if not check_admin_key(x_admin_key, request.app.state.settings.admin_api_key):
        raise UnauthorizedError()
