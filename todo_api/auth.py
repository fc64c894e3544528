"""
Bearer token verification via JWKS.
Resolves the caller's Identity from the Authorization header; no authorization decisions here.
"""
import logging

import jwt

from todo_api.errors import AuthenticationFailure
from todo_api.identity import Identity
from todo_api.keys import SigningKeyCache

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def token_from_header(authorization: str | None) -> str:
    """
    Strip the Bearer prefix. A header without the prefix is taken whole as the token
    text; verification then decides whether it is acceptable.
    """
    if not authorization:
        return ""
    if authorization.startswith(BEARER_PREFIX):
        return authorization[len(BEARER_PREFIX):].strip()
    return authorization.strip()


class TokenVerifier:
    def __init__(self, keys: SigningKeyCache, audience: str, algorithms: list[str] | None = None):
        self.keys = keys
        self.audience = audience
        self.algorithms = list(algorithms or ["RS256"])

    def verify(self, token: str) -> dict:
        """
        Verify signature against the cached key set, aud and the time claims.
        Returns decoded claims. Raises AuthenticationFailure.
        """
        if not token:
            raise AuthenticationFailure("Authorization header missing")
        try:
            signing_key = self.keys.get_signing_key_from_jwt(token)
            return jwt.decode(
                token,
                signing_key.key,
                algorithms=self.algorithms,
                audience=self.audience,
            )
        except jwt.PyJWKClientError as e:
            logger.warning("Signing keys unavailable: %s", e)
            raise AuthenticationFailure() from e
        except jwt.ExpiredSignatureError as e:
            logger.info("Rejected expired token")
            raise AuthenticationFailure("Token expired") from e
        except jwt.InvalidAudienceError as e:
            logger.info("Rejected token with wrong audience")
            raise AuthenticationFailure("Invalid audience") from e
        except jwt.InvalidTokenError as e:
            logger.info("JWT verification failed: %s", e)
            raise AuthenticationFailure() from e

    def authenticate(self, authorization: str | None) -> Identity:
        """Authorization header value -> Identity of the token subject."""
        claims = self.verify(token_from_header(authorization))
        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            logger.info("Verified token carries no subject")
            raise AuthenticationFailure("Token has no subject")
        return Identity(subject=subject)
