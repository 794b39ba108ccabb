# bolt_driver_api/exceptions.py

class BoltApiError(Exception):
    """Base exception for Bolt Driver API errors"""

    def __init__(self, message, status_code=0, response=None):
        """
        Initialize with error details

        Args:
            message (str): Human readable error message
            status_code (int, optional): HTTP status code, 0 when unknown
            response (dict, optional): Raw server response body
        """
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(message)

    @property
    def code(self):
        """Application-level error code from the response body, if any"""
        if isinstance(self.response, dict):
            return self.response.get('code')
        return None

    @property
    def server_message(self):
        if isinstance(self.response, dict):
            return self.response.get('message')
        return None

    @property
    def error_text(self):
        """The ``error_data.text`` field the server attaches to failures"""
        if isinstance(self.response, dict):
            error_data = self.response.get('error_data') or {}
            if isinstance(error_data, dict):
                return error_data.get('text')
        return None


class ValidationError(BoltApiError):
    """Raised when input is rejected before (or by) the server"""

    def __init__(self, message, status_code=400, response=None):
        super().__init__(message, status_code, response)


class MagicLinkParseError(ValidationError):
    """Raised when no authentication token can be found in a magic link"""


class AuthenticationError(BoltApiError):
    """Raised when an authentication flow fails for an unclassified reason"""

    def __init__(self, message, status_code=401, response=None):
        super().__init__(message, status_code, response)


class NotAuthorizedError(BoltApiError):
    """Raised when the session token is missing, expired or revoked"""

    def __init__(self, message="Not authorized. Please authenticate first.", response=None,
                 status_code=503):
        super().__init__(message, status_code, response)


class SmsLimitError(BoltApiError):
    """Raised when the server rate-limits SMS verification codes"""

    def __init__(self, message, response=None):
        super().__init__(message, 200, response)


class InvalidSmsCodeError(BoltApiError):
    """Raised when the entered SMS code is wrong"""

    def __init__(self, message, response=None):
        super().__init__(message, 200, response)


class InvalidPhoneError(BoltApiError):
    """Raised when the server cannot parse the phone number"""

    def __init__(self, message, response=None):
        super().__init__(message, 200, response)


class DatabaseError(BoltApiError):
    """Raised on server-side failures unrelated to the request"""

    def __init__(self, message, response=None):
        super().__init__(message, 200, response)


class NetworkError(BoltApiError):
    """Raised when network communication fails"""


class TokenStorageError(BoltApiError):
    """Raised when a token cannot be persisted"""


SMS_LIMIT_CODE = 299
SMS_CODE_NOT_FOUND_CODE = 293
PARSING_PHONE_FAILED_CODE = 17500
DATABASE_ERROR_CODE = 1000
NOT_AUTHORIZED_CODE = 503

_ERRORS_BY_MESSAGE = {
    'SMS_LIMIT_REACHED': (SmsLimitError, "SMS limit reached"),
    'SMS_CODE_NOT_FOUND': (InvalidSmsCodeError, "Invalid SMS code"),
    'PARSING_PHONE_FAILED': (InvalidPhoneError, "Invalid phone number format"),
    'DATABASE_ERROR': (DatabaseError, "Server database error"),
    'NOT_AUTHORIZED': (NotAuthorizedError, "Not authorized"),
}

_ERRORS_BY_CODE = {
    SMS_LIMIT_CODE: 'SMS_LIMIT_REACHED',
    SMS_CODE_NOT_FOUND_CODE: 'SMS_CODE_NOT_FOUND',
    PARSING_PHONE_FAILED_CODE: 'PARSING_PHONE_FAILED',
    DATABASE_ERROR_CODE: 'DATABASE_ERROR',
    NOT_AUTHORIZED_CODE: 'NOT_AUTHORIZED',
}


def error_from_response(response_json, default=BoltApiError, context=None):
    """
    Build the typed error matching an application-level failure

    Args:
        response_json (dict): Body with a nonzero ``code``
        default (type, optional): Error class for unrecognized codes
        context (str, optional): Prefix describing the failed operation

    Returns:
        BoltApiError: The error instance, ready to raise
    """
    code = response_json.get('code')
    server_message = response_json.get('message') or 'Unknown error'
    error_data = response_json.get('error_data') or {}
    text = error_data.get('text') if isinstance(error_data, dict) else None

    key = server_message if server_message in _ERRORS_BY_MESSAGE else _ERRORS_BY_CODE.get(code)
    if key:
        error_class, summary = _ERRORS_BY_MESSAGE[key]
    else:
        error_class, summary = default, server_message

    message = f"{summary}: {text}" if text else summary
    if context:
        message = f"{context}: {message}"

    if error_class in (ValidationError, AuthenticationError, BoltApiError):
        return error_class(message, 200, response_json)
    return error_class(message, response=response_json)
