import jwt
from passlib.context import CryptContext
from passlib.exc import MissingBackendError

from . import config
from .errors import CodecError, InvalidToken

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"


def create_access_token(claims: dict) -> str:
    # No exp claim: tokens stay valid until the signing secret rotates
    try:
        return jwt.encode(dict(claims), config.get_settings().jwt_secret, algorithm=ALGORITHM)
    except (TypeError, ValueError, jwt.PyJWTError) as e:
        raise CodecError("could not sign token") from e


def decode_access_token(token: str) -> dict:
    """Verify ``token`` and return its claims.

    Every failure (bad signature, wrong secret, garbage input) surfaces as the
    same InvalidToken so callers cannot tell the causes apart.
    """
    try:
        return jwt.decode(token, config.get_settings().jwt_secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError as e:
        raise InvalidToken(str(e)) from e


def hash_password(password: str) -> str:
    try:
        return pwd_context.hash(password)
    except (TypeError, ValueError, MissingBackendError) as e:
        raise CodecError("could not hash password") from e


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(plain, hashed)
    except (TypeError, ValueError, MissingBackendError) as e:
        raise CodecError("malformed password digest") from e
