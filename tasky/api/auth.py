"""Bearer token authentication.

Credentials are checked by the identity provider in front of this service;
here a signed token only carries the user id it was issued for.
"""
from __future__ import annotations

from functools import wraps

from flask import current_app, g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from tasky.domain.errors import Unauthorized
from tasky.domain.principal import Principal

TOKEN_SALT = "tasky.auth"


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)


def issue_token(secret_key: str, user_id: str) -> str:
    return _serializer(secret_key).dumps({"uid": user_id})


def read_token(secret_key: str, token: str | None, max_age: int) -> Principal:
    if not token:
        raise Unauthorized("Authentication required")
    try:
        data = _serializer(secret_key).loads(token, max_age=max_age)
    except SignatureExpired as exc:
        raise Unauthorized("Token expired") from exc
    except BadSignature as exc:
        raise Unauthorized("Invalid token") from exc
    user_id = data.get("uid") if isinstance(data, dict) else None
    if not user_id:
        raise Unauthorized("Invalid token")
    return Principal(user_id=user_id)


def bearer_token() -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def principal_from_token(token: str | None) -> Principal:
    return read_token(
        current_app.config["SECRET_KEY"],
        token,
        current_app.config["TOKEN_MAX_AGE"],
    )


def require_principal(f):
    """Resolve the bearer token into ``g.principal`` before the view runs."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.principal = principal_from_token(bearer_token())
        return f(*args, **kwargs)

    return decorated_function


def current_principal() -> Principal:
    return g.principal
