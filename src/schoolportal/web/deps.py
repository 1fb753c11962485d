from typing import Annotated, cast

from fastapi import Depends, Request
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer

from schoolportal.app import App
from schoolportal.core.modules.session.models import AuthToken
from schoolportal.errors import AuthenticationError

AUTH_COOKIE_NAME = "auth_token"

# Security schemes
bearer_scheme = HTTPBearer(auto_error=False)
cookie_scheme = APIKeyCookie(name=AUTH_COOKIE_NAME, auto_error=False)


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_presented_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)] = None,
    token_cookie: Annotated[str | None, Depends(cookie_scheme)] = None,
) -> AuthToken | None:
    """Session token from the Authorization Bearer header or cookie, unvalidated."""
    if credentials and credentials.scheme == "Bearer":
        return AuthToken(credentials.credentials)
    if token_cookie:
        return AuthToken(token_cookie)
    return None


async def get_auth_token(
    app: Annotated[App, Depends(get_app)],
    auth_token: Annotated[AuthToken | None, Depends(get_presented_token)],
) -> AuthToken:
    """Get and validate the presented session token."""
    if auth_token and await app.is_auth_token_valid(auth_token):
        return auth_token
    raise AuthenticationError


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
AuthTokenDep = Annotated[AuthToken, Depends(get_auth_token)]
OptionalAuthTokenDep = Annotated[AuthToken | None, Depends(get_presented_token)]
