import time

import pytest

from bolt_driver_api import AuthenticationError
from bolt_driver_api.config import DEFAULT_SESSION_TTL_MS
from bolt_driver_api.jwt_utils import build_session_info, decode_token_claims, extract_driver_claims

from .conftest import make_jwt


def test_decode_ignores_signature_and_expiry():
    token = make_jwt(exp=int(time.time()) - 3600)
    claims = decode_token_claims(token)
    assert claims['data']['driver_id'] == 123456


def test_decode_rejects_garbage():
    with pytest.raises(AuthenticationError):
        decode_token_claims("not-a-jwt")


def test_extract_claims_nested_wins():
    claims = extract_driver_claims({
        'driver_id': 1,
        'partner_id': 2,
        'data': {'driver_id': 3, 'company_city_id': 4},
        'exp': 99,
    })
    assert claims == {'driver_id': 3, 'partner_id': 2, 'company_city_id': 4, 'exp': 99}


def test_build_session_from_nested_claims():
    exp = int(time.time()) + 600
    token = make_jwt(driver_id=111, partner_id=222, company_city_id=333, exp=exp)

    session = build_session_info(token, "refresh")
    assert session.driver_id == 111
    assert session.partner_id == 222
    assert session.company_city_id == 333
    assert session.expires_at == exp * 1000
    assert session.access_token == token
    assert session.refresh_token == "refresh"


def test_build_session_from_top_level_claims():
    token = make_jwt(driver_id=5, nested=False, session_id="sess")
    session = build_session_info(token)
    assert session.driver_id == 5
    assert session.session_id == "sess"
    assert session.refresh_token == token


def test_explicit_expiry_overrides_claim():
    session = build_session_info(make_jwt(), expires_at=1234)
    assert session.expires_at == 1234


def test_opaque_token_gets_default_ttl():
    before = int(time.time() * 1000)
    session = build_session_info("opaque-token")
    assert session.driver_id == 0
    assert before + DEFAULT_SESSION_TTL_MS <= session.expires_at
    assert not session.is_expired()


def test_non_numeric_ids_become_zero():
    session = build_session_info(make_jwt(driver_id="abc", partner_id=None, nested=False))
    assert session.driver_id == 0
    assert session.partner_id == 0
    assert not session.is_expired()
