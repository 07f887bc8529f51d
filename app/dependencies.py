import logging

from fastapi import Depends, Header, Query, Request

from app.errors import Forbidden, Unauthorized
from app.mailer import Mailer
from app.security import TokenService

logger = logging.getLogger(__name__)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


def bearer_token(authorization: str | None) -> str | None:
    """
    Return the token part of a ``Bearer <token>`` header value.

    The header is split on whitespace and the second element is taken, so
    the scheme word itself is not checked.
    """
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) < 2:
        return None
    return parts[1]


async def require_owner(
    email: str | None = Query(None, description="Owner email of the requested resources."),
    authorization: str | None = Header(None),
    tokens: TokenService = Depends(get_token_service),
) -> str:
    """
    Access Gate: only the owner of *email* may pass.

    Raises ``Unauthorized`` (401) when the bearer token is missing or does
    not verify, and ``Forbidden`` (403) when the verified email differs
    from the requested one, including when no email was requested.
    The token is checked first.  Returns the verified email.
    """
    verified = tokens.verify(bearer_token(authorization))
    if verified != email:
        logger.debug("Access gate: token for %s requested %s", verified, email)
        raise Forbidden()
    return verified
