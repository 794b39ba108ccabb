# bolt_driver_api/token_storage.py

import os
import json
import time
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from .config import DEFAULT_SESSION_TTL_MS, DEFAULT_TOKEN_FILE
from .exceptions import AuthenticationError, TokenStorageError
from .jwt_utils import decode_token_claims
from .models import SessionInfo, as_int, epoch_ms

logger = logging.getLogger('bolt_driver.token_storage')


def _now_ms():
    return int(time.time() * 1000)


def _resolve_expiry(expires_at, token):
    """
    Expiry of a stored token in epoch ms

    Documents without an expiry take it from the token's ``exp`` claim, or
    get the default session lifetime when the token is not a JWT.
    """
    if expires_at is not None:
        return epoch_ms(expires_at)
    try:
        exp = as_int(decode_token_claims(token).get('exp'))
    except AuthenticationError:
        exp = 0
    if exp:
        return epoch_ms(exp)
    return _now_ms() + DEFAULT_SESSION_TTL_MS


def _parse_canonical(document):
    """``{token, sessionInfo: {...camelCase}, savedAt, expiresAt}``"""
    token = document.get('token')
    session = document.get('sessionInfo')
    if not isinstance(token, str) or not isinstance(session, dict):
        return None
    if isinstance(session.get('token'), dict) or isinstance(session.get('data'), dict):
        return None
    session = dict(session)
    session['expiresAt'] = _resolve_expiry(session.get('expiresAt', document.get('expiresAt')), token)
    return token, SessionInfo.from_dict(session)


def _parse_nested_legacy(document):
    """``{token, sessionInfo: {token|data.token: {access_token, refresh_token}}}``"""
    session = document.get('sessionInfo')
    if not isinstance(session, dict):
        return None
    nested = session.get('token') or (session.get('data') or {}).get('token')
    if not isinstance(nested, dict):
        return None
    access_token = nested.get('access_token') or document.get('token')
    refresh_token = nested.get('refresh_token')
    token = access_token or refresh_token
    if not token:
        return None
    return token, SessionInfo(
        session_id=session.get('sessionId') or '',
        driver_id=as_int(session.get('driverId')),
        partner_id=as_int(session.get('partnerId')),
        company_id=session.get('companyId'),
        company_city_id=session.get('companyCityId'),
        access_token=token,
        refresh_token=refresh_token or token,
        token_type=session.get('tokenType'),
        expires_at=_resolve_expiry(session.get('expiresAt', document.get('expiresAt')), token),
    )


def _parse_flat_legacy(document):
    """``{access_token|refresh_token, driver_id, partner_id, ..., expires_at?}``"""
    access_token = document.get('access_token')
    refresh_token = document.get('refresh_token')
    token = access_token or refresh_token
    if not isinstance(token, str) or not token:
        return None
    expires_at = document.get('expiresAt', document.get('expires_at'))
    return token, SessionInfo(
        session_id=document.get('session_id') or '',
        driver_id=as_int(document.get('driver_id')),
        partner_id=as_int(document.get('partner_id')),
        company_id=document.get('company_id'),
        company_city_id=document.get('company_city_id'),
        access_token=token,
        refresh_token=refresh_token or token,
        token_type=document.get('token_type'),
        expires_at=_resolve_expiry(expires_at, token),
    )


# Tried in order; the first parser that recognizes the document wins
DOCUMENT_PARSERS = (
    ('canonical', _parse_canonical),
    ('nested_legacy', _parse_nested_legacy),
    ('flat_legacy', _parse_flat_legacy),
)


def normalize_document(document):
    """
    Convert a stored token document of any known layout

    Args:
        document (dict): Parsed JSON document

    Returns:
        tuple: ``(token, SessionInfo)``, or None if no layout matches
    """
    if not isinstance(document, dict):
        return None
    for name, parser in DOCUMENT_PARSERS:
        try:
            result = parser(document)
        except (AttributeError, TypeError, ValueError, KeyError) as e:
            logger.debug(f"Token document rejected by {name} parser: {e}")
            continue
        if result is not None:
            logger.debug(f"Token document matched {name} layout")
            return result
    return None


class TokenStorage(ABC):
    """
    Persistence contract for the bearer token and its session

    ``has_valid_token()`` is true exactly when ``load_token()`` returns a value.
    """

    @abstractmethod
    def save_token(self, token, session_info):
        pass

    @abstractmethod
    def load_token(self):
        pass

    @abstractmethod
    def clear_token(self):
        pass

    def has_valid_token(self):
        return self.load_token() is not None


class FileTokenStorage(TokenStorage):
    """
    Stores the token and session information in a JSON file

    Handles:
    - Writing the canonical document
    - Reading current and legacy documents
    - Deleting expired documents on load
    """

    def __init__(self, file_path=None):
        """
        Initialize the file storage

        Args:
            file_path (str, optional): Path to token file. Defaults to
                                       ``.bolt-token.json`` in the working directory.
        """
        self.file_path = file_path if file_path else os.path.join(os.getcwd(), DEFAULT_TOKEN_FILE)

    def save_token(self, token, session_info):
        """
        Save token and session information to file

        Raises:
            TokenStorageError: If the file cannot be written
        """
        document = {
            'token': token,
            'sessionInfo': session_info.to_dict(),
            'savedAt': datetime.now(timezone.utc).isoformat(),
            'expiresAt': session_info.expires_at,
        }
        try:
            # Make sure the directory exists
            directory = os.path.dirname(self.file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            with open(self.file_path, 'w') as f:
                logger.debug(f"Saving token to {self.file_path}")
                json.dump(document, f, indent=2)
        except OSError as e:
            raise TokenStorageError(f"Failed to save token: {e}")

    def load_token(self):
        """
        Load token and session information from file

        Returns:
            tuple: ``(token, SessionInfo)`` if a valid token is stored, None otherwise
        """
        if not os.path.exists(self.file_path):
            return None

        try:
            with open(self.file_path, 'r') as f:
                logger.debug(f"Loading token from {self.file_path}")
                document = json.load(f)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to load token: {e}")
            return None

        expires_at = document.get('expiresAt') if isinstance(document, dict) else None
        if isinstance(expires_at, (int, float)) and _now_ms() > epoch_ms(expires_at):
            logger.info("Stored token has expired, removing it")
            self.clear_token()
            return None

        result = normalize_document(document)
        if result is None:
            logger.warning(f"Unrecognized token document in {self.file_path}")
            return None

        token, session_info = result
        if session_info.is_expired(_now_ms()):
            logger.info("Stored token has expired, removing it")
            self.clear_token()
            return None
        return token, session_info

    def clear_token(self):
        """Delete the token file; a missing file is not an error"""
        try:
            os.remove(self.file_path)
            logger.debug(f"Removed token file {self.file_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove token file: {e}")


class MemoryTokenStorage(TokenStorage):
    """Process-local token storage for tests and short-lived sessions"""

    def __init__(self):
        self._token_data = None

    def save_token(self, token, session_info):
        self._token_data = (token, session_info)

    def load_token(self):
        if self._token_data is None:
            return None
        if self._token_data[1].is_expired(_now_ms()):
            self._token_data = None
            return None
        return self._token_data

    def clear_token(self):
        self._token_data = None
