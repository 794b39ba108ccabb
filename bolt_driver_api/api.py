# bolt_driver_api/api.py

import time
import logging
from dataclasses import replace

import requests

from .config import (
    ApiConfig,
    get_auth_params,
    get_endpoint_url,
    get_headers,
    get_request_params,
)
from .exceptions import (
    AuthenticationError,
    BoltApiError,
    NetworkError,
    NotAuthorizedError,
    SMS_LIMIT_CODE,
    ValidationError,
    error_from_response,
)
from .jwt_utils import build_session_info
from .logger import LoggingConfig, RequestLogger, mask
from .magic_link import (
    extract_token_from_magic_link,
    validate_email,
    validate_phone,
    validate_sms_code,
)
from .models import (
    AccessTokenResponse,
    ActivityRidesGroupBy,
    ApiResponse,
    AuthStatus,
    ConfirmAuthResponse,
    Credentials,
    EarningsChartType,
    MagicLinkVerificationResponse,
    PhoneAuthOutcome,
    ScheduledRideGroupBy,
    StartAuthResponse,
    StartAuthResult,
)
from .retry import RetryPolicy, run_with_retry
from .token_storage import FileTokenStorage

logger = logging.getLogger('bolt_driver.api')


class BoltDriverAPI:
    """
    Bolt Driver API Client - Unofficial Python client for the Bolt driver backend

    Authenticates a driver by SMS code or magic link, keeps the issued token
    in a TokenStorage, and wraps the driver data endpoints. One instance
    represents one driver session.
    """

    def __init__(self, device_info, auth_config, config=None, token_storage=None,
                 logging_config=None):
        """
        Initialize the Bolt Driver API client

        Args:
            device_info (DeviceInfo): Identity of the emulated device
            auth_config (AuthConfig): Auth method, brand and locale
            config (ApiConfig or dict, optional): Hosts, timeout and user agent
            token_storage (TokenStorage, optional): Defaults to FileTokenStorage
            logging_config (LoggingConfig, optional): Request logging settings
        """
        self.device_info = device_info
        self.auth_config = auth_config
        if isinstance(config, ApiConfig):
            self.config = config
        else:
            self.config = ApiConfig.from_dict(config)
        self.token_storage = token_storage if token_storage is not None else FileTokenStorage()
        self.request_logger = RequestLogger(logging_config or LoggingConfig())
        self.http = requests.Session()

        self.session_info = None
        self._restore_from_storage()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self.http.close()

    def _send(self, method, url, params=None, payload=None, access_token=None, raw=False):
        """
        Issue one HTTP request

        Args:
            method (str): HTTP method
            url (str): Full URL
            params (dict, optional): Query parameters
            payload (dict, optional): JSON body
            access_token (str, optional): Bearer token to attach
            raw (bool): Return the body bytes instead of parsed JSON

        Returns:
            dict or bytes: Parsed JSON body, or raw bytes when ``raw``

        Raises:
            NetworkError: If a network error occurs
            NotAuthorizedError: On HTTP 401
            ValidationError: On HTTP 400
            BoltApiError: On any other HTTP error or a non-JSON body
        """
        headers = get_headers(self.auth_config.language, self.config.user_agent, access_token)
        self.request_logger.log_request(method, url, payload)
        started = time.monotonic()

        try:
            response = self.http.request(
                method,
                url,
                params=params,
                json=payload,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            self.request_logger.log_error(method, url, e)
            raise NetworkError(f"Network error: {str(e)}")

        duration_ms = int((time.monotonic() - started) * 1000)

        if response.status_code >= 400:
            body = self._safe_json(response)
            self.request_logger.log_error(method, url, f"HTTP {response.status_code}", duration_ms)
            self._handle_http_error(response.status_code, body)

        if raw:
            self.request_logger.log_response(method, url, f"<{len(response.content)} bytes>", duration_ms)
            return response.content

        body = self._safe_json(response)
        if body is None:
            raise BoltApiError("Invalid JSON in response", response.status_code)
        self.request_logger.log_response(method, url, body, duration_ms)
        return body

    @staticmethod
    def _safe_json(response):
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else {'data': body}

    def _handle_http_error(self, status_code, body):
        """
        Handle HTTP error responses

        Raises:
            NotAuthorizedError: For 401
            ValidationError: For 400
            BoltApiError: For other statuses
        """
        server_message = (body or {}).get('message') or f"HTTP {status_code}"
        if status_code == 401:
            raise NotAuthorizedError("Authentication failed", body, status_code=401)
        if status_code == 400:
            raise ValidationError(f"Invalid request: {server_message}", 400, body)
        raise BoltApiError(f"API request failed: {server_message}", status_code, body)

    def _make_auth_request(self, request_type, payload, params):
        """POST to an unauthenticated auth endpoint and return the JSON body"""
        url = get_endpoint_url(request_type, self.config)
        return self._send('POST', url, params=params, payload=payload)

    def _make_driver_request(self, request_type, gps_info=None, method='GET', payload=None,
                             extra_params=None, raw=False):
        """
        Call a data endpoint on behalf of the current session

        Returns:
            ApiResponse or bytes: Envelope, or raw bytes when ``raw``

        Raises:
            NotAuthorizedError: If no session is cached or the server rejects it
            BoltApiError: If the response carries a nonzero code
        """
        session = self._require_session()
        params = get_request_params(self.auth_config, self.device_info, session, gps_info)
        if extra_params:
            params.update(extra_params)
        url = get_endpoint_url(request_type, self.config)

        try:
            body = self._send(method, url, params=params, payload=payload,
                              access_token=session.access_token, raw=raw)
            if raw:
                return body
            if body.get('code', 0) != 0:
                raise error_from_response(body)
        except NotAuthorizedError:
            logger.warning("Session rejected by server, clearing cached token")
            self._invalidate_session()
            raise
        return ApiResponse(body)

    def _require_session(self):
        if not self.is_authenticated():
            raise NotAuthorizedError()
        return self.session_info

    def _restore_from_storage(self):
        """Load a previously saved session; storage failures mean no session"""
        try:
            stored = self.token_storage.load_token()
        except Exception as e:
            logger.warning(f"Failed to restore authentication from stored token: {e}", exc_info=True)
            return False
        if stored is None:
            return False

        token, session_info = stored
        # The storage keeps its own record; the client works on a copy
        self.session_info = replace(session_info, access_token=session_info.access_token or token)
        logger.info("Restored authentication from stored token")
        return True

    def _establish_session(self, access_token, refresh_token=None, token_type=None, expires_at=None):
        """Build, cache and persist the session for a newly issued token"""
        session_info = build_session_info(access_token, refresh_token, token_type, expires_at)
        if not session_info.session_id:
            session_info.session_id = self._new_session_id()
        self.session_info = session_info

        try:
            self.token_storage.save_token(access_token, session_info)
            logger.info("Authentication token saved")
        except BoltApiError as e:
            logger.warning(f"Authenticated, but the token could not be persisted: {e}")
        return session_info

    def _invalidate_session(self):
        self.session_info = None
        self.token_storage.clear_token()

    def _new_session_id(self):
        return f"{self.device_info.device_id}d{int(time.time() * 1000)}"

    def is_authenticated(self):
        """True while an unexpired session with an access token is cached"""
        return bool(self.session_info
                    and self.session_info.access_token
                    and not self.session_info.is_expired())

    def get_session_info(self):
        return self.session_info

    def get_driver_info(self):
        """
        Identity of the authenticated driver

        Returns:
            dict: driver_id, partner_id, company_id and company_city_id, or None
        """
        if self.session_info is None:
            return None
        return {
            'driver_id': self.session_info.driver_id,
            'partner_id': self.session_info.partner_id,
            'company_id': self.session_info.company_id,
            'company_city_id': self.session_info.company_city_id,
        }

    def get_current_access_token(self):
        return self.session_info.access_token if self.session_info else None

    def get_current_refresh_token(self):
        return self.session_info.refresh_token if self.session_info else None

    def clear_authentication(self):
        """Forget the cached session and delete the stored token"""
        self._invalidate_session()
        logger.info("Authentication cleared")

    def get_token_storage(self):
        return self.token_storage

    def get_logger(self):
        return self.request_logger

    def update_logging_config(self, **changes):
        return self.request_logger.update_config(**changes)

    def validate_existing_token(self, gps_info=None):
        """
        Check the cached (or stored) token against the server

        One lightweight authenticated call is made. A rejected token is
        cleared locally; any other failure counts as invalid without
        touching storage.

        Returns:
            bool: True only if the server accepted the token
        """
        if self.session_info is None:
            self._restore_from_storage()
        if not self.is_authenticated():
            return False

        try:
            self.get_driver_nav_bar_badges(gps_info)
        except NotAuthorizedError:
            logger.info("Stored token was rejected, re-authentication required")
            if self.session_info is not None:
                self._invalidate_session()
            return False
        except BoltApiError as e:
            logger.warning(f"Could not validate token, treating it as invalid: {e}")
            return False
        return True

    def start_authentication(self, auth_config=None, device_info=None, credentials=None):
        """
        Request an SMS verification code

        Args:
            auth_config (AuthConfig, optional): Defaults to the client's config
            device_info (DeviceInfo, optional): Defaults to the client's device
            credentials (Credentials): Carries the phone number; receives the
                verification token on success

        Returns:
            StartAuthResult: ``OK`` with the parsed response, or
            ``SMS_LIMIT_REACHED`` when the caller should switch to a magic link

        Raises:
            ValidationError: If the phone number is malformed (no request is sent)
            InvalidPhoneError: If the server rejects the phone number
            DatabaseError: On server-side failures
            AuthenticationError: For other failures
        """
        auth_config = auth_config or self.auth_config
        device_info = device_info or self.device_info
        if credentials is None:
            raise ValidationError("Credentials with a phone number are required")
        validate_phone(credentials.phone)

        params = get_auth_params(auth_config, device_info)
        payload = {
            'phone': credentials.phone,
            'device_uid': device_info.device_id,
            'version': device_info.app_version,
            'device_os_version': device_info.device_os_version,
        }

        logger.info(f"Starting authentication for {mask(credentials.phone, 6)}")
        response_json = self._make_auth_request('start_authentication', payload, params)
        api_response = ApiResponse(response_json)

        if api_response.code == SMS_LIMIT_CODE or api_response.message == 'SMS_LIMIT_REACHED':
            logger.warning("SMS limit reached, magic link authentication required")
            return StartAuthResult(AuthStatus.SMS_LIMIT_REACHED, api_response)
        if not api_response.ok:
            raise error_from_response(response_json, AuthenticationError,
                                      "Failed to start authentication")

        data = response_json if 'verification_token' in response_json else (api_response.data or {})
        if not data.get('verification_token'):
            raise AuthenticationError("Response missing verification_token field", 200, response_json)

        start = StartAuthResponse(data)
        credentials.verification_token = start.verification_token
        credentials.verification_code_length = start.verification_code_length
        logger.info(f"Verification code sent via {start.verification_code_channel}")
        return StartAuthResult(AuthStatus.OK, api_response, start)

    def confirm_authentication(self, auth_config=None, device_info=None, credentials=None, code=None):
        """
        Exchange the verification token and SMS code for a session

        Args:
            auth_config (AuthConfig, optional): Defaults to the client's config
            device_info (DeviceInfo, optional): Defaults to the client's device
            credentials (Credentials): Must hold the verification token
            code (str, optional): SMS code; defaults to ``credentials.verification_code``

        Returns:
            ConfirmAuthResponse: Response carrying the issued token

        Raises:
            ValidationError: If the code is not numeric of the expected length
            InvalidSmsCodeError: If the code is wrong
            SmsLimitError: If the server rate-limits confirmation
            AuthenticationError: For other failures
        """
        auth_config = auth_config or self.auth_config
        device_info = device_info or self.device_info
        if credentials is None or not credentials.verification_token:
            raise ValidationError("No verification token. Call start_authentication first.")

        code = code if code is not None else credentials.verification_code
        validate_sms_code(code, credentials.verification_code_length)
        credentials.verification_code = code

        params = get_auth_params(auth_config, device_info)
        payload = {
            'verification_token': credentials.verification_token,
            'verification_code': code,
            'device_uid': device_info.device_id,
            'version': device_info.app_version,
            'device_os_version': device_info.device_os_version,
        }

        logger.info("Confirming authentication with SMS code")
        response_json = self._make_auth_request('confirm_authentication', payload, params)
        if response_json.get('code', 0) != 0:
            raise error_from_response(response_json, AuthenticationError,
                                      "Authentication confirmation failed")

        confirm = ConfirmAuthResponse(response_json)
        if not confirm.refresh_token:
            raise AuthenticationError("Response missing required token fields", 200, response_json)

        # The refresh token doubles as bearer token unless an access token is issued
        access_token = confirm.access_token or confirm.refresh_token
        self._establish_session(access_token, confirm.refresh_token, confirm.token_type)
        logger.info("Authentication confirmed")
        return confirm

    def authenticate_with_phone(self, phone, code_provider, policy=None, sleep=time.sleep):
        """
        Run the whole phone flow with the standard retry policy

        Args:
            phone (str): Phone number in international format
            code_provider (callable): Called with the StartAuthResponse, returns the SMS code
            policy (RetryPolicy, optional): Retry limits and cool-downs
            sleep (callable, optional): Used to wait between attempts

        Returns:
            PhoneAuthOutcome: ``OK`` with the session, or ``SMS_LIMIT_REACHED``
        """
        policy = policy or RetryPolicy(max_attempts=self.config.retries)
        credentials = Credentials(phone=phone)
        start, start_attempts = run_with_retry(
            lambda: self.start_authentication(credentials=credentials), policy, sleep)
        if start.sms_limit_reached:
            return PhoneAuthOutcome(AuthStatus.SMS_LIMIT_REACHED, attempts=start_attempts)

        _, confirm_attempts = run_with_retry(
            lambda: self.confirm_authentication(credentials=credentials,
                                                code=code_provider(start.auth)),
            policy, sleep)
        return PhoneAuthOutcome(AuthStatus.OK, self.session_info,
                                attempts=start_attempts + confirm_attempts)

    extract_token_from_magic_link = staticmethod(extract_token_from_magic_link)

    def send_magic_link(self, email):
        """
        Email a magic link to the driver

        Raises:
            ValidationError: If the email is malformed (no request is sent)
            AuthenticationError: If the server refuses to send the link
        """
        validate_email(email)
        payload = {
            'device_name': self.device_info.device_name,
            'version': self.device_info.app_version,
            'device_uid': self.device_info.device_id,
            'email': email,
            'device_os_version': self.device_info.device_os_version,
            'brand': self.auth_config.brand,
        }

        logger.info(f"Sending magic link to {mask(email)}")
        params = get_auth_params(self.auth_config, self.device_info)
        response_json = self._make_auth_request('send_magic_link', payload, params)
        if response_json.get('code', 0) != 0:
            raise error_from_response(response_json, AuthenticationError, "Failed to send magic link")
        logger.info("Magic link sent")
        return ApiResponse(response_json)

    def _magic_link_params(self, device_info, gps_info):
        params = get_auth_params(self.auth_config, device_info)
        if gps_info is not None:
            params.update(gps_info.to_params())
        params['session_id'] = f"{device_info.device_id}d{int(time.time() * 1000)}"
        return params

    def authenticate_with_magic_link(self, token, device_info=None, gps_info=None):
        """
        Exchange a magic link token for a session

        Args:
            token (str): Token from extract_token_from_magic_link
            device_info (DeviceInfo, optional): Defaults to the client's device
            gps_info (GpsInfo, optional): Location attached to the request

        Returns:
            MagicLinkVerificationResponse: Response carrying the refresh token

        Raises:
            ValidationError: If the token is empty
            AuthenticationError: If the token is rejected or cannot be exchanged
        """
        if not token:
            raise ValidationError("Magic link token is empty")
        device_info = device_info or self.device_info
        payload = {
            'device_os_version': device_info.device_os_version,
            'device_name': device_info.device_name,
            'device_uid': device_info.device_id,
            'version': device_info.app_version,
            'token': token,
        }

        logger.info("Authenticating with magic link")
        params = self._magic_link_params(device_info, gps_info)
        response_json = self._make_auth_request('authenticate_magic_link', payload, params)
        if response_json.get('code', 0) != 0:
            raise error_from_response(response_json, AuthenticationError,
                                      "Magic link authentication failed")

        verification = MagicLinkVerificationResponse(response_json)
        if not verification.refresh_token:
            raise AuthenticationError("Response missing refresh_token field", 200, response_json)

        access = self._exchange_refresh_token(verification.refresh_token, device_info, gps_info)
        self._establish_session(access.access_token, verification.refresh_token,
                                expires_at=access.expires_at_ms())
        logger.info("Magic link authentication succeeded")
        return verification

    def _exchange_refresh_token(self, refresh_token, device_info=None, gps_info=None):
        """
        Exchange a refresh token for an access token

        Raises:
            AuthenticationError: If the exchange fails
        """
        device_info = device_info or self.device_info
        payload = {
            'refresh_token': refresh_token,
            'no_redis_cache': True,
            'version': device_info.app_version,
        }
        params = self._magic_link_params(device_info, gps_info)
        response_json = self._make_auth_request('access_token', payload, params)
        if response_json.get('code', 0) != 0:
            raise error_from_response(response_json, AuthenticationError, "Token exchange failed")

        access = AccessTokenResponse(response_json.get('data') or {})
        if not access.access_token:
            raise AuthenticationError("Failed to exchange refresh token", 401, response_json)
        return access

    def refresh_access_token(self, gps_info=None):
        """
        Obtain a new access token from the session's refresh token

        Returns:
            SessionInfo: The refreshed session

        Raises:
            NotAuthorizedError: If there is no refresh token to use
            AuthenticationError: If the exchange fails
        """
        refresh_token = self.get_current_refresh_token()
        if not refresh_token:
            raise NotAuthorizedError("No refresh token available")
        access = self._exchange_refresh_token(refresh_token, gps_info=gps_info)
        return self._establish_session(access.access_token, refresh_token,
                                       self.session_info.token_type, access.expires_at_ms())

    def get_driver_state(self, gps_info, app_state='background'):
        return self._make_driver_request('driver_state', gps_info, 'POST', {'app_state': app_state})

    def get_driver_home_screen(self, gps_info):
        return self._make_driver_request('home_screen', gps_info)

    def get_working_time_info(self, gps_info):
        return self._make_driver_request('working_time', gps_info)

    def get_dispatch_preferences(self, gps_info):
        return self._make_driver_request('dispatch_preferences', gps_info)

    def get_maps_configs(self, gps_info):
        return self._make_driver_request('maps_configs', gps_info, 'POST', {})

    def get_map_tile(self, gps_info, tiles_collection_id, x, y, zoom):
        """
        Fetch one surge heatmap tile

        Returns:
            bytes: Tile image data
        """
        extra = {'tiles_collection_id': tiles_collection_id, 'x': x, 'y': y, 'zoom': zoom}
        return self._make_driver_request('map_tile', gps_info, extra_params=extra, raw=True)

    def get_map_tile_with_request(self, gps_info, tile_request):
        """Fetch the tile described by a MapTileRequest"""
        return self.get_map_tile(gps_info, tile_request.tiles_collection_id,
                                 tile_request.x, tile_request.y, tile_request.zoom)

    def get_driver_nav_bar_badges(self, gps_info):
        return self._make_driver_request('nav_bar_badges', gps_info)

    def get_emergency_assist_provider(self, gps_info):
        extra = {'lat': gps_info.latitude, 'lng': gps_info.longitude}
        return self._make_driver_request('emergency_assist', gps_info, extra_params=extra)

    def get_other_active_drivers(self, gps_info):
        return self._make_driver_request('other_active_drivers', gps_info)

    def get_modal(self, gps_info, event='home_screen'):
        return self._make_driver_request('modal', gps_info, extra_params={'event': event})

    def get_driver_phone_details(self, gps_info):
        return self._make_driver_request('phone_details', gps_info, 'POST', {})

    def get_scheduled_ride_requests(self, gps_info, group_by=ScheduledRideGroupBy.UPCOMING):
        group_by = ScheduledRideGroupBy(group_by)
        return self._make_driver_request('scheduled_rides', gps_info,
                                         extra_params={'group_by': group_by.value})

    def get_activity_rides(self, gps_info, group_by=ActivityRidesGroupBy.ALL):
        group_by = ActivityRidesGroupBy(group_by)
        return self._make_driver_request('activity_rides', gps_info,
                                         extra_params={'group_by': group_by.value})

    def get_order_history_paginated(self, gps_info, limit=10, offset=0):
        if limit <= 0 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")
        return self._make_driver_request('order_history', gps_info,
                                         extra_params={'limit': limit, 'offset': offset})

    def get_earning_landing_screen(self, gps_info):
        return self._make_driver_request('earning_landing', gps_info)

    def get_earnings_breakdown(self, gps_info):
        return self._make_driver_request('earnings_breakdown', gps_info)

    def get_earnings_chart(self, gps_info, chart_type=EarningsChartType.WEEKLY):
        chart_type = EarningsChartType(chart_type)
        return self._make_driver_request('earnings_chart', gps_info,
                                         extra_params={'chart_type': chart_type.value})

    def get_help_details(self, gps_info):
        return self._make_driver_request('help_details', gps_info)

    def get_earn_more_details(self, gps_info):
        return self._make_driver_request('earn_more', gps_info)

    def get_score_overview(self, gps_info):
        return self._make_driver_request('score_overview', gps_info)

    def get_driver_sidebar(self, gps_info):
        return self._make_driver_request('driver_sidebar', gps_info)

    def get_news_list(self, gps_info):
        return self._make_driver_request('news_list', gps_info)

    def set_device_token(self, device_token, gps_info=None):
        """
        Register the push notification token of the device

        Raises:
            ValidationError: If the token is empty (no request is sent)
        """
        if not device_token:
            raise ValidationError("Device token is empty")
        logger.info(f"Setting device token {mask(device_token, 10)}")
        return self._make_driver_request('device_token', gps_info, 'POST',
                                         {'device_token': device_token})

    def store_driver_info(self, driver_data, gps_info=None):
        """Send a driver data record to the backend as-is"""
        return self._make_driver_request('store_driver_info', gps_info, 'POST', dict(driver_data))
