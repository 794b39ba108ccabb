# bolt_driver_api/magic_link.py

import re
from urllib.parse import unquote, urlsplit

from .exceptions import MagicLinkParseError, ValidationError

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_PATTERN = re.compile(r'^\+[1-9]\d{1,14}$')

# Tracking redirectors (awstrack.me) put the encoded target after this path marker
_TRACKING_SEGMENT = re.compile(r'/L0/([^/]+)')


def validate_email(email):
    """Raise ValidationError unless ``email`` looks like an address"""
    if not email or not EMAIL_PATTERN.match(email):
        raise ValidationError(f"Invalid email address: {email!r}")
    return email


def validate_phone(phone):
    """Raise ValidationError unless ``phone`` is in international format"""
    if not phone or not PHONE_PATTERN.match(phone):
        raise ValidationError(
            "Invalid phone number format. Must be in international format (e.g., +48123456789)."
        )
    return phone


def validate_sms_code(code, length=6):
    """Raise ValidationError unless ``code`` is exactly ``length`` digits"""
    if not isinstance(code, str) or len(code) != length or not code.isdigit():
        raise ValidationError(f"SMS code must be exactly {length} digits")
    return code


def _token_from_query(url):
    # Values are taken verbatim; the token must not be decoded a second time
    for pair in urlsplit(url).query.split('&'):
        key, sep, value = pair.partition('=')
        if key == 'token' and sep and value:
            return value
    return None


def _unwrap_tracking_url(url):
    """Return the percent-decoded target of a tracking redirect, or None"""
    path = urlsplit(url).path
    match = _TRACKING_SEGMENT.search(path)
    if match:
        return unquote(match.group(1))

    for segment in path.split('/'):
        decoded = unquote(segment)
        if decoded != segment and '://' in decoded:
            return decoded
    return None


def extract_token_from_magic_link(magic_link_url):
    """
    Extract the authentication token from a magic link

    Accepts either the direct link (``...magic-login.html?token=...``) or an
    email tracking redirect whose path holds a percent-encoded copy of it.
    The wrapper is decoded once and the token is returned unchanged.

    Args:
        magic_link_url (str): URL copied from the email

    Returns:
        str: The token

    Raises:
        MagicLinkParseError: If no token is present in either form
    """
    if not magic_link_url or not isinstance(magic_link_url, str):
        raise MagicLinkParseError("Magic link URL is empty")

    url = magic_link_url.strip()
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise MagicLinkParseError(f"Invalid magic link URL: {magic_link_url!r}")

    target = _unwrap_tracking_url(url)
    if target:
        token = _token_from_query(target)
        if token:
            return token

    token = _token_from_query(url)
    if token:
        return token

    raise MagicLinkParseError("Token not found in magic link URL")
