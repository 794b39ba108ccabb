# bolt_driver_api/models.py

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


def as_int(value, default=0):
    """Integer form of an id or count the server may send as a string"""
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def epoch_ms(value):
    """Epoch timestamp in milliseconds"""
    ts = int(value)
    # Seconds and milliseconds both show up in the wild
    return ts * 1000 if ts < 10 ** 12 else ts


@dataclass(frozen=True)
class DeviceInfo:
    """Identity of the emulated mobile device, sent with every request"""
    device_id: str
    device_type: str
    device_name: str
    device_os_version: str
    app_version: str

    def __post_init__(self):
        if self.device_type not in ("iphone", "android"):
            raise ValueError(f"Unsupported device type: {self.device_type}")


@dataclass(frozen=True)
class AuthConfig:
    """Auth method plus the brand and locale parameters of every request"""
    auth_method: str = "phone"
    brand: str = "bolt"
    country: str = "pl"
    language: str = "en-GB"
    theme: str = "dark"

    def __post_init__(self):
        if self.auth_method not in ("phone", "email"):
            raise ValueError(f"Unsupported auth method: {self.auth_method}")
        if self.theme not in ("light", "dark"):
            raise ValueError(f"Unsupported theme: {self.theme}")


@dataclass(frozen=True)
class GpsInfo:
    latitude: float
    longitude: float
    accuracy: float = 0.0
    bearing: float = 0.0
    speed: float = 0.0
    timestamp: int = 0
    age: float = 0.0
    accuracy_meters: float = 0.0
    adjusted_bearing: float = 0.0
    bearing_accuracy_deg: float = 0.0
    speed_accuracy_mps: float = 0.0

    def to_params(self) -> Dict[str, Any]:
        return {
            'gps_lat': self.latitude,
            'gps_lng': self.longitude,
            'gps_accuracy_meters': self.accuracy_meters or self.accuracy,
            'gps_adjusted_bearing': self.adjusted_bearing or self.bearing,
            'gps_age': self.age,
            'gps_bearing': self.bearing,
            'gps_bearing_accuracy_deg': self.bearing_accuracy_deg,
            'gps_speed': self.speed,
            'gps_speed_accuracy_mps': self.speed_accuracy_mps,
            'gps_timestamp': self.timestamp or int(time.time()),
        }


@dataclass
class Credentials:
    """Scratch state of a single phone authentication attempt"""
    phone: str
    driver_id: str = ""
    session_id: str = ""
    verification_token: Optional[str] = None
    verification_code: Optional[str] = None
    verification_code_length: int = 6


@dataclass
class SessionInfo:
    session_id: str
    driver_id: int
    partner_id: int
    expires_at: int
    company_id: Optional[int] = None
    company_city_id: Optional[int] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: Optional[str] = None

    def is_expired(self, now_ms: Optional[int] = None) -> bool:
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return now_ms > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used in the token file"""
        return {
            'sessionId': self.session_id,
            'driverId': self.driver_id,
            'partnerId': self.partner_id,
            'companyId': self.company_id,
            'companyCityId': self.company_city_id,
            'accessToken': self.access_token,
            'refreshToken': self.refresh_token,
            'tokenType': self.token_type,
            'expiresAt': self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionInfo':
        return cls(
            session_id=data.get('sessionId') or '',
            driver_id=as_int(data.get('driverId')),
            partner_id=as_int(data.get('partnerId')),
            company_id=data.get('companyId'),
            company_city_id=data.get('companyCityId'),
            access_token=data.get('accessToken'),
            refresh_token=data.get('refreshToken'),
            token_type=data.get('tokenType'),
            expires_at=epoch_ms(data['expiresAt']),
        )


class AuthStatus(str, Enum):
    OK = "ok"
    SMS_LIMIT_REACHED = "sms_limit_reached"


class BaseResponse:
    """Base class for API responses"""

    def __init__(self, response_json):
        """
        Initialize with raw JSON response

        Args:
            response_json (dict): Raw JSON response from API
        """
        self.raw_response = response_json

    def __repr__(self):
        """String representation of the response object"""
        class_name = self.__class__.__name__
        attributes = ', '.join(f"{k}={v!r}" for k, v in self.__dict__.items()
                               if k != 'raw_response' and not k.startswith('_'))
        return f"{class_name}({attributes})"


class ApiResponse(BaseResponse):
    """Uniform ``{code, message, data, error_data}`` envelope"""

    def __init__(self, response_json):
        super().__init__(response_json)
        self.code = response_json.get('code', 0)
        self.message = response_json.get('message', '')
        self.data = response_json.get('data')
        self.error_data = response_json.get('error_data')

    @property
    def ok(self):
        return self.code == 0


class StartAuthResponse(BaseResponse):
    """Payload of a successful startAuthentication call"""

    def __init__(self, response_json):
        """
        Initialize with start authentication data

        Args:
            response_json (dict): The ``data`` object of the response
        """
        super().__init__(response_json)
        self.verification_token = response_json.get('verification_token')
        self.verification_code_channel = response_json.get('verification_code_channel')
        self.verification_code_target = response_json.get('verification_code_target')
        self.verification_code_length = as_int(response_json.get('verification_code_length')) or 6
        self.resend_wait_time_seconds = response_json.get('resend_wait_time_seconds')
        self.available_verification_code_channels: List[str] = \
            response_json.get('available_verification_code_channels', [])


@dataclass
class StartAuthResult:
    """Outcome of starting phone authentication"""
    status: AuthStatus
    response: ApiResponse
    auth: Optional[StartAuthResponse] = None

    @property
    def sms_limit_reached(self):
        return self.status is AuthStatus.SMS_LIMIT_REACHED


class ConfirmAuthResponse(ApiResponse):
    """Response from confirmAuthentication, with the issued token pulled out"""

    def __init__(self, response_json):
        super().__init__(response_json)
        payload = self.data if isinstance(self.data, dict) else response_json
        token = payload.get('token') or {}
        self.type = payload.get('type')
        self.refresh_token = token.get('refresh_token')
        self.access_token = token.get('access_token')
        self.token_type = token.get('token_type')


class MagicLinkVerificationResponse(ApiResponse):

    def __init__(self, response_json):
        super().__init__(response_json)
        payload = self.data if isinstance(self.data, dict) else response_json
        self.refresh_token = payload.get('refresh_token')


class AccessTokenResponse(BaseResponse):
    """Response from the refresh-to-access token exchange"""

    def __init__(self, response_json):
        super().__init__(response_json)
        self.access_token = response_json.get('access_token')
        self.expires_timestamp = response_json.get('expires_timestamp')
        self.expires_in_seconds = response_json.get('expires_in_seconds')

    def expires_at_ms(self):
        """Expiry as epoch milliseconds, or None if the server did not say"""
        if self.expires_timestamp:
            return epoch_ms(self.expires_timestamp)
        if self.expires_in_seconds:
            return int(time.time() * 1000) + int(self.expires_in_seconds) * 1000
        return None


@dataclass
class PhoneAuthOutcome:
    """Result of the retried phone flow; ``session`` is set when authenticated"""
    status: AuthStatus
    session: Optional[SessionInfo] = None
    attempts: int = 1


@dataclass(frozen=True)
class MapTileRequest:
    tiles_collection_id: str
    x: int
    y: int
    zoom: int


class ScheduledRideGroupBy(str, Enum):
    UPCOMING = "upcoming"
    ACCEPTED = "accepted"


class ActivityRidesGroupBy(str, Enum):
    ALL = "all"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class EarningsChartType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
