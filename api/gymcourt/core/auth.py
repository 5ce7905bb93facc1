"""Verification of access tokens issued by the external identity provider.

Sign-up, login and password flows live with the provider. This service only
checks the signature and expiry of the bearer token and reads the subject.
"""

from jose import JWTError, jwt

from gymcourt.core.config import settings


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Raises JWTError on failure."""
    options = {"verify_aud": settings.jwt_audience is not None}
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options=options,
    )


def subject_from_token(token: str) -> str:
    """Return the user id (``sub`` claim) of a valid token.

    Raises JWTError on invalid/expired tokens or a missing subject.
    """
    payload = decode_token(token)
    subject = payload.get("sub")
    if not subject:
        raise JWTError("Token has no subject")
    return str(subject)
