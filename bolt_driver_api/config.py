# bolt_driver_api/config.py

import time

# API hosts
PARTNER_DRIVER_BASE_URL = "https://partnerdriver.live.boltsvc.net/partnerDriver"
DRIVER_BASE_URL = "https://driver.live.boltsvc.net/driver"
COMPANY_BASE_URL = "https://europe-company.taxify.eu"
SEARCH_BASE_URL = "https://node.bolt.eu"

DEFAULT_USER_AGENT = "Bolt Driver/181158215 CFNetwork/3826.600.31 Darwin/24.6.0"
DEFAULT_TIMEOUT = 30
DEFAULT_RETRIES = 3
DEFAULT_TOKEN_FILE = ".bolt-token.json"

# Lifetime assumed for a session when the issued token carries no exp claim
DEFAULT_SESSION_TTL_MS = 24 * 60 * 60 * 1000

# Endpoint paths, keyed by request type. The first element names the host.
ENDPOINTS = {
    'start_authentication': ('auth', '/startAuthentication'),
    'confirm_authentication': ('auth', '/v2/confirmAuthentication'),
    'send_magic_link': ('driver', '/sendMagicLink'),
    'authenticate_magic_link': ('driver', '/authenticateWithMagicLink'),
    'access_token': ('driver', '/getAccessToken'),
    'driver_state': ('company', '/polling/driver'),
    'home_screen': ('company', '/orderDriver/v1/getDriverHomeScreen'),
    'working_time': ('driver', '/v2/getWorkingTimeInfo'),
    'dispatch_preferences': ('company', '/dispatchPref/v1/getSettings'),
    'maps_configs': ('company', '/orderDriver/v1/getMapsConfigs'),
    'map_tile': ('driver', '/v2/getTile'),
    'nav_bar_badges': ('driver', '/getDriverNavBarBadges'),
    'emergency_assist': ('driver', '/safety/emergencyAssist/getExternalHelpProvider'),
    'other_active_drivers': ('search', '/search/driver/getOtherActiveDrivers'),
    'modal': ('driver', '/modal'),
    'phone_details': ('driver', '/driverPhoneDetails'),
    'scheduled_rides': ('driver', '/getScheduledRideRequests'),
    'activity_rides': ('driver', '/getActivityRides'),
    'order_history': ('driver', '/getOrderHistoryPaginated'),
    'earning_landing': ('driver', '/earnings/getEarningLandingScreen'),
    'earnings_breakdown': ('driver', '/earnings/getEarningsBreakdown'),
    'earnings_chart': ('driver', '/earnings/getEarningsChart'),
    'help_details': ('driver', '/getHelpDetails'),
    'earn_more': ('driver', '/getEarnMoreDetails'),
    'score_overview': ('driver', '/getScoreOverview'),
    'driver_sidebar': ('driver', '/getDriverSidebar'),
    'news_list': ('driver', '/news/list'),
    'device_token': ('driver', '/setDeviceToken'),
    'store_driver_info': ('driver', '/store'),
}


class ApiConfig:
    """
    Transport configuration for a BoltDriverAPI instance

    Any attribute can be overridden through keyword arguments; unknown
    keywords are rejected so typos surface early.
    """

    def __init__(self, base_url=None, driver_base_url=None, company_base_url=None,
                 search_base_url=None, timeout=DEFAULT_TIMEOUT, retries=DEFAULT_RETRIES,
                 user_agent=DEFAULT_USER_AGENT):
        self.base_url = base_url or PARTNER_DRIVER_BASE_URL
        self.driver_base_url = driver_base_url or DRIVER_BASE_URL
        self.company_base_url = company_base_url or COMPANY_BASE_URL
        self.search_base_url = search_base_url or SEARCH_BASE_URL
        self.timeout = timeout
        self.retries = retries
        self.user_agent = user_agent

    @classmethod
    def from_dict(cls, overrides):
        """Build a config from a (possibly partial) dict of overrides"""
        return cls(**(overrides or {}))

    def host_for(self, host_key):
        hosts = {
            'auth': self.base_url,
            'driver': self.driver_base_url,
            'company': self.company_base_url,
            'search': self.search_base_url,
        }
        return hosts[host_key]

    def __repr__(self):
        return (f"ApiConfig(base_url={self.base_url!r}, driver_base_url={self.driver_base_url!r}, "
                f"timeout={self.timeout!r}, retries={self.retries!r})")


def get_headers(language, user_agent=DEFAULT_USER_AGENT, access_token=None):
    """
    Get headers for API requests

    Args:
        language (str): Accept-Language value, taken from the auth config
        user_agent (str, optional): User agent of the mobile app
        access_token (str, optional): Bearer token for authenticated calls

    Returns:
        dict: Headers for the request
    """
    headers = {
        'User-Agent': user_agent,
        'Accept': '*/*',
        'Accept-Language': language,
        'Accept-Encoding': 'gzip, deflate, br',
        'Connection': 'keep-alive',
        'Content-Type': 'application/json',
    }
    if access_token:
        headers['Authorization'] = f"Bearer {access_token}"
    return headers


def get_auth_params(auth_config, device_info):
    """
    Get URL parameters for authentication requests (no session fields)

    Args:
        auth_config (AuthConfig): Brand and locale settings
        device_info (DeviceInfo): Identity of the emulated device

    Returns:
        dict: URL parameters for the request
    """
    return {
        'brand': auth_config.brand,
        'country': auth_config.country,
        'deviceId': device_info.device_id,
        'deviceType': device_info.device_type,
        'device_name': device_info.device_name,
        'device_os_version': device_info.device_os_version,
        'language': auth_config.language,
        'theme': auth_config.theme,
        'version': device_info.app_version,
    }


def get_request_params(auth_config, device_info, session_info=None, gps_info=None):
    """
    Get URL parameters for data requests

    Args:
        auth_config (AuthConfig): Brand and locale settings
        device_info (DeviceInfo): Identity of the emulated device
        session_info (SessionInfo, optional): Current driver session
        gps_info (GpsInfo, optional): Location attached to the request

    Returns:
        dict: URL parameters for the request
    """
    params = get_auth_params(auth_config, device_info)
    params['driver_id'] = session_info.driver_id if session_info else 0
    params['session_id'] = session_info.session_id if session_info else ''

    if gps_info is not None:
        params.update(gps_info.to_params())
    else:
        params['gps_timestamp'] = int(time.time())
    return params


def get_endpoint_url(request_type, api_config):
    """
    Get the full URL for a specific request type

    Args:
        request_type (str): Key into ENDPOINTS
        api_config (ApiConfig): Host configuration

    Returns:
        str: Full URL for the request
    """
    host_key, path = ENDPOINTS[request_type]
    return f"{api_config.host_for(host_key)}{path}"
