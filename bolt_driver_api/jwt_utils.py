# bolt_driver_api/jwt_utils.py

import logging
import time

import jwt

from .config import DEFAULT_SESSION_TTL_MS
from .exceptions import AuthenticationError
from .models import SessionInfo, as_int

logger = logging.getLogger('bolt_driver.jwt')

_ID_CLAIMS = ('driver_id', 'partner_id', 'company_id', 'company_city_id', 'session_id')


def decode_token_claims(token):
    """
    Decode the payload of a JWT issued by the backend

    The signature is not verified: the token comes straight from the
    server we just authenticated against and is only read for ids.

    Args:
        token (str): Encoded JWT

    Returns:
        dict: Token payload

    Raises:
        AuthenticationError: If the token is not a decodable JWT
    """
    try:
        return jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError as e:
        logger.debug(f"Token is not a decodable JWT: {e}")
        raise AuthenticationError(f"Could not decode issued token: {e}")


def extract_driver_claims(claims):
    """
    Pull driver identity out of a token payload

    Ids may sit at the top level or nested under ``data``; nested values win.

    Returns:
        dict: Known id claims present in the payload, plus ``exp`` if set
    """
    merged = {key: claims[key] for key in _ID_CLAIMS if key in claims}
    nested = claims.get('data')
    if isinstance(nested, dict):
        merged.update({key: nested[key] for key in _ID_CLAIMS if key in nested})
    if 'exp' in claims:
        merged['exp'] = claims['exp']
    return merged


def build_session_info(access_token, refresh_token=None, token_type=None, expires_at=None):
    """
    Build a SessionInfo for a freshly issued token

    Args:
        access_token (str): Token attached to authenticated requests
        refresh_token (str, optional): Long-lived token the access token came from
        token_type (str, optional): Token type reported by the server
        expires_at (int, optional): Expiry in epoch ms; overrides the ``exp`` claim

    Returns:
        SessionInfo: The new session
    """
    try:
        claims = extract_driver_claims(decode_token_claims(access_token))
    except AuthenticationError:
        logger.warning("Issued token carries no readable claims, using empty driver identity")
        claims = {}

    if expires_at is None:
        exp = as_int(claims.get('exp'))
        if exp:
            expires_at = exp * 1000
        else:
            expires_at = int(time.time() * 1000) + DEFAULT_SESSION_TTL_MS

    return SessionInfo(
        session_id=str(claims.get('session_id') or ''),
        driver_id=as_int(claims.get('driver_id')),
        partner_id=as_int(claims.get('partner_id')),
        company_id=claims.get('company_id'),
        company_city_id=claims.get('company_city_id'),
        access_token=access_token,
        refresh_token=refresh_token or access_token,
        token_type=token_type,
        expires_at=expires_at,
    )
