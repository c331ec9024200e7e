import jwt

from timecapsule.config import Settings
from timecapsule.errors import AuthenticationError


class JWTTokenVerifier:
    """Turns a bearer token into a principal id. Issuing tokens happens elsewhere."""

    def __init__(self, settings: Settings):
        self._secret = settings.secret_key
        self._algorithm = settings.jwt_algorithm

    def verify(self, token) -> str:
        if not token:
            raise AuthenticationError("Access denied. No token provided or malformed token.")
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as e:
            raise AuthenticationError() from e
        principal_id = payload.get("id")
        if principal_id is None or principal_id == "":
            raise AuthenticationError()
        return str(principal_id)
