"""
Password hashing and bearer-token primitives.

Hashing is delegated to ``bcrypt`` and token signing to ``python-jose``.
``TokenService`` holds the signing secret; it is built once from settings
when the application is created and handed to request handlers through the
``get_token_service`` dependency instead of being read from a global.
"""
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from blogapi.config import Settings, settings
from blogapi.exceptions import ExpiredToken, InvalidToken


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def hash_password(password: str, rounds: int | None = None) -> str:
    salt = bcrypt.gensalt(rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(candidate: str, password_hash: str) -> bool:
    """Return True when *candidate* matches *password_hash*; never raises."""
    try:
        return bcrypt.checkpw(candidate.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed or foreign hash format.
        return False


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

class TokenService:
    """Issues and verifies signed, expiring bearer tokens bound to a user id."""

    def __init__(self, secret_key: str, algorithm: str = "HS256",
                 expires_delta: timedelta = timedelta(days=30)) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.expires_delta = expires_delta

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenService":
        return cls(
            secret_key=config.SECRET_KEY,
            algorithm=config.JWT_ALGORITHM,
            expires_delta=timedelta(days=config.JWT_EXPIRES_DAYS),
        )

    def issue(self, user_id: int) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(user_id),
            "iat": now,
            "exp": now + self.expires_delta,
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> int:
        """
        Return the user id embedded in *token*.

        Raises ``ExpiredToken`` once the ``exp`` claim has passed and
        ``InvalidToken`` for a bad signature, a malformed token or a
        missing / non-numeric subject.
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise ExpiredToken()
        except JWTError:
            raise InvalidToken()

        subject = payload.get("sub")
        try:
            return int(subject)
        except (TypeError, ValueError):
            raise InvalidToken()
