# bolt_driver_api/__init__.py

from .api import BoltDriverAPI
from .config import ApiConfig
from .exceptions import (
    BoltApiError,
    ValidationError,
    MagicLinkParseError,
    AuthenticationError,
    NotAuthorizedError,
    SmsLimitError,
    InvalidSmsCodeError,
    InvalidPhoneError,
    DatabaseError,
    NetworkError,
    TokenStorageError,
)
from .logger import LoggingConfig, setup_logging
from .magic_link import extract_token_from_magic_link
from .models import (
    DeviceInfo,
    AuthConfig,
    GpsInfo,
    Credentials,
    SessionInfo,
    AuthStatus,
    ApiResponse,
    StartAuthResponse,
    StartAuthResult,
    ConfirmAuthResponse,
    MagicLinkVerificationResponse,
    MapTileRequest,
    AccessTokenResponse,
    PhoneAuthOutcome,
    ScheduledRideGroupBy,
    ActivityRidesGroupBy,
    EarningsChartType,
)
from .retry import RetryPolicy, run_with_retry
from .token_storage import TokenStorage, FileTokenStorage, MemoryTokenStorage


__version__ = "0.1.0"
__license__ = "MIT"

# Export public classes and functions
__all__ = [
    'BoltDriverAPI',
    'ApiConfig',
    'LoggingConfig',
    'setup_logging',
    'extract_token_from_magic_link',
    'RetryPolicy',
    'run_with_retry',
    'TokenStorage',
    'FileTokenStorage',
    'MemoryTokenStorage',
    'BoltApiError',
    'ValidationError',
    'MagicLinkParseError',
    'AuthenticationError',
    'NotAuthorizedError',
    'SmsLimitError',
    'InvalidSmsCodeError',
    'InvalidPhoneError',
    'DatabaseError',
    'NetworkError',
    'TokenStorageError',
    'DeviceInfo',
    'AuthConfig',
    'GpsInfo',
    'Credentials',
    'SessionInfo',
    'AuthStatus',
    'ApiResponse',
    'StartAuthResponse',
    'StartAuthResult',
    'ConfirmAuthResponse',
    'MagicLinkVerificationResponse',
    'MapTileRequest',
    'AccessTokenResponse',
    'PhoneAuthOutcome',
    'ScheduledRideGroupBy',
    'ActivityRidesGroupBy',
    'EarningsChartType',
]
