"""
Identity tokens for the KnowHive API.

Tokens are stateless HS256 JWTs carrying the caller's email and a fixed
validity window.  There is no revocation list and no refresh flow.

``issue`` does not check that the email belongs to a known account: any
caller can mint a token for any address.  The Access Gate therefore only
proves that the caller asked for a token for that email, nothing more.
"""
import logging
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from app.config import settings
from app.errors import InvalidPayload, Unauthorized

logger = logging.getLogger(__name__)


class TokenService:
    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expires_in: timedelta = timedelta(days=7),
    ) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_in = expires_in

    def issue(self, email: str) -> str:
        """
        Create a signed token embedding *email*.

        Args:
            email: Address to embed in the ``email`` claim

        Returns:
            Encoded JWT expiring ``expires_in`` after issuance
        """
        if not email:
            raise InvalidPayload("Email is required to issue a token")

        now = datetime.now(UTC)
        claims = {"email": email, "iat": now, "exp": now + self.expires_in}
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str | None) -> str:
        """
        Decode *token* and return the embedded email.

        Raises:
            Unauthorized: If the token is missing, malformed, tampered
                with, expired, or has no email claim
        """
        if not token:
            raise Unauthorized()
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            raise Unauthorized() from exc

        email = payload.get("email")
        if not isinstance(email, str) or not email:
            raise Unauthorized()
        return email


def build_token_service() -> TokenService:
    return TokenService(
        secret_key=settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        expires_in=timedelta(days=settings.JWT_EXPIRE_DAYS),
    )
