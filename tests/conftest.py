import time
from unittest.mock import MagicMock

import jwt
import pytest

from bolt_driver_api import (
    AuthConfig,
    BoltDriverAPI,
    DeviceInfo,
    GpsInfo,
    MemoryTokenStorage,
)
from bolt_driver_api.jwt_utils import build_session_info


def make_jwt(driver_id=123456, partner_id=654321, company_city_id=1, exp=None, nested=True, **extra):
    claims = {
        'driver_id': driver_id,
        'partner_id': partner_id,
        'company_id': 42,
        'company_city_id': company_city_id,
    }
    claims.update(extra)
    payload = {'data': claims} if nested else dict(claims)
    payload['exp'] = exp if exp is not None else int(time.time()) + 3600
    return jwt.encode(payload, "secret", algorithm="HS256")


def fake_response(body=None, status_code=200, content=None):
    response = MagicMock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = body
    response.content = content if content is not None else b''
    return response


@pytest.fixture
def device_info():
    return DeviceInfo(
        device_id="550e8400-e29b-41d4-a716-446655440000",
        device_type="iphone",
        device_name="iPhone17,3",
        device_os_version="iOS18.6",
        app_version="DI.116.0",
    )


@pytest.fixture
def auth_config():
    return AuthConfig()


@pytest.fixture
def gps():
    return GpsInfo(latitude=52.2297, longitude=21.0122, accuracy=5.0, timestamp=1700000000)


@pytest.fixture
def storage():
    return MemoryTokenStorage()


@pytest.fixture
def client(device_info, auth_config, storage):
    api = BoltDriverAPI(device_info, auth_config, token_storage=storage)
    api.http = MagicMock()
    yield api
    api.close()


@pytest.fixture
def authenticated_client(client, storage):
    token = make_jwt()
    session = build_session_info(token)
    session.session_id = "test-session"
    storage.save_token(token, session)
    client.session_info = session
    return client
