import time
from unittest.mock import MagicMock

import pytest
import requests

from bolt_driver_api import (
    AuthenticationError,
    AuthStatus,
    BoltApiError,
    BoltDriverAPI,
    Credentials,
    DatabaseError,
    InvalidPhoneError,
    InvalidSmsCodeError,
    NetworkError,
    NotAuthorizedError,
    SmsLimitError,
    TokenStorageError,
    ValidationError,
)
from bolt_driver_api.config import DRIVER_BASE_URL, PARTNER_DRIVER_BASE_URL
from bolt_driver_api.jwt_utils import build_session_info

from .conftest import fake_response, make_jwt

START_OK = {
    'code': 0,
    'message': 'OK',
    'data': {
        'verification_token': 'verification-token',
        'verification_code_channel': 'sms',
        'verification_code_target': '+48 *** *** 789',
        'verification_code_length': 6,
        'resend_wait_time_seconds': 60,
        'available_verification_code_channels': ['sms', 'call'],
    },
}


def confirm_ok(token):
    return {
        'code': 0,
        'message': 'OK',
        'data': {'type': 'driver', 'token': {'refresh_token': token, 'token_type': 'Bearer'}},
    }


def sent_request(client, index=-1):
    args, kwargs = client.http.request.call_args_list[index]
    return args[0], args[1], kwargs


class TestPhoneFlow:

    def test_start_and_confirm(self, client, storage):
        token = make_jwt(driver_id=111, partner_id=222, company_city_id=333)
        client.http.request.side_effect = [fake_response(START_OK), fake_response(confirm_ok(token))]
        credentials = Credentials(phone="+48123456789")

        result = client.start_authentication(credentials=credentials)
        assert result.status is AuthStatus.OK
        assert not result.sms_limit_reached
        assert result.auth.verification_token == 'verification-token'
        assert result.auth.resend_wait_time_seconds == 60
        assert credentials.verification_token == 'verification-token'

        method, url, kwargs = sent_request(client)
        assert method == 'POST'
        assert url == f"{PARTNER_DRIVER_BASE_URL}/startAuthentication"
        assert kwargs['json']['phone'] == "+48123456789"
        assert kwargs['params']['deviceType'] == 'iphone'
        assert kwargs['params']['country'] == 'pl'
        assert 'Authorization' not in kwargs['headers']

        confirm = client.confirm_authentication(credentials=credentials, code="123456")
        assert confirm.code == 0
        assert confirm.refresh_token == token

        method, url, kwargs = sent_request(client)
        assert url == f"{PARTNER_DRIVER_BASE_URL}/v2/confirmAuthentication"
        assert kwargs['json']['verification_token'] == 'verification-token'
        assert kwargs['json']['verification_code'] == '123456'

        assert client.is_authenticated()
        assert client.get_current_access_token() == token
        assert client.get_driver_info() == {
            'driver_id': 111,
            'partner_id': 222,
            'company_id': 42,
            'company_city_id': 333,
        }
        stored_token, session = storage.load_token()
        assert stored_token == token
        assert session.driver_id == 111

    def test_direct_start_response(self, client):
        client.http.request.return_value = fake_response({'verification_token': 'vt'})
        credentials = Credentials(phone="+48123456789")

        result = client.start_authentication(credentials=credentials)
        assert result.status is AuthStatus.OK
        assert result.auth.verification_code_length == 6
        assert credentials.verification_token == 'vt'

    @pytest.mark.parametrize("body", [
        {'code': 299, 'message': 'SMS_LIMIT_REACHED'},
        {'code': 299, 'message': 'Too many requests'},
        {'code': 1, 'message': 'SMS_LIMIT_REACHED'},
    ])
    def test_sms_limit_is_tagged_result(self, client, body):
        client.http.request.return_value = fake_response(body)
        credentials = Credentials(phone="+48123456789")

        result = client.start_authentication(credentials=credentials)
        assert result.status is AuthStatus.SMS_LIMIT_REACHED
        assert result.sms_limit_reached
        assert result.auth is None
        assert credentials.verification_token is None

    def test_invalid_phone_sends_nothing(self, client):
        with pytest.raises(ValidationError):
            client.start_authentication(credentials=Credentials(phone="123456789"))
        client.http.request.assert_not_called()

    def test_server_rejects_phone(self, client):
        client.http.request.return_value = fake_response({
            'code': 17500,
            'message': 'PARSING_PHONE_FAILED',
            'error_data': {'text': 'Phone number is not valid'},
        })
        with pytest.raises(InvalidPhoneError) as exc_info:
            client.start_authentication(credentials=Credentials(phone="+48123456789"))
        assert exc_info.value.error_text == 'Phone number is not valid'
        assert "Failed to start authentication" in str(exc_info.value)

    def test_start_without_verification_token(self, client):
        client.http.request.return_value = fake_response({'code': 0, 'data': {}})
        with pytest.raises(AuthenticationError):
            client.start_authentication(credentials=Credentials(phone="+48123456789"))

    @pytest.mark.parametrize("code", ["12345", "1234567", "12a456", ""])
    def test_bad_code_sends_nothing(self, client, code):
        credentials = Credentials(phone="+48123456789", verification_token="vt")
        with pytest.raises(ValidationError):
            client.confirm_authentication(credentials=credentials, code=code)
        client.http.request.assert_not_called()
        assert not client.is_authenticated()

    def test_confirm_without_start(self, client):
        with pytest.raises(ValidationError):
            client.confirm_authentication(credentials=Credentials(phone="+48123456789"), code="123456")

    def test_code_length_follows_start_response(self, client):
        credentials = Credentials(phone="+48123456789", verification_token="vt",
                                  verification_code_length=4)
        with pytest.raises(ValidationError):
            client.confirm_authentication(credentials=credentials, code="123456")

    def test_code_length_sent_as_string(self, client):
        start = {'code': 0, 'data': {'verification_token': 'vt', 'verification_code_length': "6"}}
        client.http.request.side_effect = [fake_response(start), fake_response(confirm_ok(make_jwt()))]
        credentials = Credentials(phone="+48123456789")

        result = client.start_authentication(credentials=credentials)
        assert result.auth.verification_code_length == 6
        assert credentials.verification_code_length == 6

        client.confirm_authentication(credentials=credentials, code="123456")
        assert client.is_authenticated()

    def test_non_numeric_driver_claims_degrade(self, client):
        token = make_jwt(driver_id="abc", partner_id="")
        client.http.request.return_value = fake_response(confirm_ok(token))
        credentials = Credentials(phone="+48123456789", verification_token="vt")

        client.confirm_authentication(credentials=credentials, code="123456")
        assert client.is_authenticated()
        assert client.get_driver_info()['driver_id'] == 0
        assert client.get_driver_info()['partner_id'] == 0

    def test_wrong_code(self, client):
        client.http.request.return_value = fake_response({
            'code': 293,
            'message': 'SMS_CODE_NOT_FOUND',
            'error_data': {'text': 'Incorrect code'},
        })
        credentials = Credentials(phone="+48123456789", verification_token="vt")

        with pytest.raises(InvalidSmsCodeError) as exc_info:
            client.confirm_authentication(credentials=credentials, code="000000")
        assert exc_info.value.error_text == 'Incorrect code'
        assert not client.is_authenticated()

    def test_confirm_without_token_in_response(self, client):
        client.http.request.return_value = fake_response({'code': 0, 'data': {'type': 'driver'}})
        credentials = Credentials(phone="+48123456789", verification_token="vt")
        with pytest.raises(AuthenticationError):
            client.confirm_authentication(credentials=credentials, code="123456")

    def test_access_token_preferred_when_issued(self, client):
        access = make_jwt(driver_id=9)
        body = {'code': 0, 'data': {'token': {'refresh_token': 'rt', 'access_token': access}}}
        client.http.request.return_value = fake_response(body)
        credentials = Credentials(phone="+48123456789", verification_token="vt")

        client.confirm_authentication(credentials=credentials, code="123456")
        assert client.get_current_access_token() == access
        assert client.get_current_refresh_token() == 'rt'
        assert client.get_session_info().driver_id == 9

    def test_session_id_generated_when_missing(self, client, device_info):
        client.http.request.return_value = fake_response(confirm_ok(make_jwt()))
        credentials = Credentials(phone="+48123456789", verification_token="vt")

        client.confirm_authentication(credentials=credentials, code="123456")
        assert client.get_session_info().session_id.startswith(f"{device_info.device_id}d")

    def test_storage_failure_keeps_session(self, device_info, auth_config):
        storage = MagicMock()
        storage.load_token.return_value = None
        storage.save_token.side_effect = TokenStorageError("disk full")
        client = BoltDriverAPI(device_info, auth_config, token_storage=storage)
        client.http = MagicMock()
        client.http.request.return_value = fake_response(confirm_ok(make_jwt()))

        credentials = Credentials(phone="+48123456789", verification_token="vt")
        client.confirm_authentication(credentials=credentials, code="123456")
        assert client.is_authenticated()


class TestAuthenticateWithPhone:

    def test_retries_server_errors(self, client):
        token = make_jwt()
        client.http.request.side_effect = [
            fake_response(START_OK),
            fake_response({'code': 1000, 'message': 'DATABASE_ERROR'}),
            fake_response(confirm_ok(token)),
        ]
        sleeps = []
        prompts = []

        def code_provider(auth):
            prompts.append(auth.verification_code_target)
            return "123456"

        outcome = client.authenticate_with_phone("+48123456789", code_provider, sleep=sleeps.append)
        assert outcome.status is AuthStatus.OK
        assert outcome.session.access_token == token
        assert outcome.attempts == 3
        assert sleeps == [5.0]
        assert prompts == ['+48 *** *** 789', '+48 *** *** 789']

    def test_sms_limit_outcome(self, client):
        client.http.request.return_value = fake_response({'code': 299, 'message': 'SMS_LIMIT_REACHED'})
        outcome = client.authenticate_with_phone("+48123456789", lambda auth: "123456",
                                                 sleep=lambda s: None)
        assert outcome.status is AuthStatus.SMS_LIMIT_REACHED
        assert outcome.session is None
        assert client.http.request.call_count == 1

    def test_sms_limit_during_confirm_exhausts_retries(self, client):
        limit = {'code': 299, 'message': 'SMS_LIMIT_REACHED'}
        client.http.request.side_effect = [fake_response(START_OK)] + [fake_response(limit)] * 3
        sleeps = []

        with pytest.raises(SmsLimitError):
            client.authenticate_with_phone("+48123456789", lambda auth: "123456", sleep=sleeps.append)
        assert sleeps == [30.0, 30.0]

    def test_bad_phone_not_retried(self, client):
        sleeps = []
        with pytest.raises(ValidationError):
            client.authenticate_with_phone("0048", lambda auth: "123456", sleep=sleeps.append)
        assert sleeps == []
        client.http.request.assert_not_called()


class TestMagicLinkFlow:

    def test_send_magic_link(self, client, device_info):
        client.http.request.return_value = fake_response({'code': 0, 'message': 'OK'})

        response = client.send_magic_link("driver@example.com")
        assert response.ok

        method, url, kwargs = sent_request(client)
        assert method == 'POST'
        assert url == f"{DRIVER_BASE_URL}/sendMagicLink"
        assert kwargs['json']['email'] == "driver@example.com"
        assert kwargs['json']['device_uid'] == device_info.device_id
        assert kwargs['json']['brand'] == 'bolt'

    def test_send_magic_link_invalid_email(self, client):
        with pytest.raises(ValidationError):
            client.send_magic_link("not-an-email")
        client.http.request.assert_not_called()

    def test_send_magic_link_failure(self, client):
        client.http.request.return_value = fake_response({'code': 3, 'message': 'EMAIL_NOT_FOUND'})
        with pytest.raises(AuthenticationError):
            client.send_magic_link("driver@example.com")

    def test_authenticate(self, client, storage, gps):
        access = make_jwt(driver_id=777)
        expires = int(time.time()) + 1800
        client.http.request.side_effect = [
            fake_response({'code': 0, 'data': {'refresh_token': 'refresh-token'}}),
            fake_response({'code': 0, 'data': {'access_token': access, 'expires_timestamp': expires}}),
        ]

        verification = client.authenticate_with_magic_link("magic-token", gps_info=gps)
        assert verification.refresh_token == 'refresh-token'

        _, url, kwargs = sent_request(client, 0)
        assert url == f"{DRIVER_BASE_URL}/authenticateWithMagicLink"
        assert kwargs['json']['token'] == "magic-token"
        assert kwargs['params']['gps_lat'] == gps.latitude

        _, url, kwargs = sent_request(client, 1)
        assert url == f"{DRIVER_BASE_URL}/getAccessToken"
        assert kwargs['json']['refresh_token'] == 'refresh-token'

        session = client.get_session_info()
        assert client.is_authenticated()
        assert session.driver_id == 777
        assert session.access_token == access
        assert session.refresh_token == 'refresh-token'
        assert session.expires_at == expires * 1000
        assert storage.load_token()[0] == access

    def test_rejected_token(self, client):
        client.http.request.return_value = fake_response({'code': 3, 'message': 'INVALID_TOKEN'})
        with pytest.raises(AuthenticationError):
            client.authenticate_with_magic_link("magic-token")
        assert not client.is_authenticated()

    def test_missing_access_token(self, client):
        client.http.request.side_effect = [
            fake_response({'code': 0, 'data': {'refresh_token': 'refresh-token'}}),
            fake_response({'code': 0, 'data': {}}),
        ]
        with pytest.raises(AuthenticationError):
            client.authenticate_with_magic_link("magic-token")
        assert not client.is_authenticated()

    def test_empty_token(self, client):
        with pytest.raises(ValidationError):
            client.authenticate_with_magic_link("")
        client.http.request.assert_not_called()

    def test_refresh_access_token(self, authenticated_client):
        new_access = make_jwt(driver_id=555)
        authenticated_client.http.request.return_value = fake_response(
            {'code': 0, 'data': {'access_token': new_access, 'expires_in_seconds': 600}})
        refresh = authenticated_client.get_current_refresh_token()

        session = authenticated_client.refresh_access_token()
        assert session.access_token == new_access
        assert session.refresh_token == refresh
        assert authenticated_client.get_current_access_token() == new_access

    def test_refresh_without_session(self, client):
        with pytest.raises(NotAuthorizedError):
            client.refresh_access_token()


class TestTransportErrors:

    def test_network_error(self, client):
        client.http.request.side_effect = requests.exceptions.ConnectionError("boom")
        with pytest.raises(NetworkError):
            client.send_magic_link("driver@example.com")

    def test_http_400(self, client):
        client.http.request.return_value = fake_response({'message': 'bad'}, status_code=400)
        with pytest.raises(ValidationError) as exc_info:
            client.send_magic_link("driver@example.com")
        assert exc_info.value.status_code == 400

    def test_http_401(self, client):
        client.http.request.return_value = fake_response({}, status_code=401)
        with pytest.raises(NotAuthorizedError) as exc_info:
            client.send_magic_link("driver@example.com")
        assert exc_info.value.status_code == 401

    def test_http_500_without_json(self, client):
        client.http.request.return_value = fake_response(None, status_code=500)
        with pytest.raises(BoltApiError) as exc_info:
            client.send_magic_link("driver@example.com")
        assert exc_info.value.status_code == 500

    def test_invalid_json(self, client):
        client.http.request.return_value = fake_response(None)
        with pytest.raises(BoltApiError):
            client.send_magic_link("driver@example.com")

    def test_timeout_is_passed(self, client):
        client.http.request.return_value = fake_response({'code': 0})
        client.send_magic_link("driver@example.com")
        assert sent_request(client)[2]['timeout'] == 30


class TestValidationGate:

    def test_no_token(self, client):
        assert client.validate_existing_token() is False
        client.http.request.assert_not_called()

    def test_valid_token(self, authenticated_client, storage, gps):
        authenticated_client.http.request.return_value = fake_response({'code': 0, 'data': {}})

        assert authenticated_client.validate_existing_token(gps) is True
        _, url, kwargs = sent_request(authenticated_client)
        assert url == f"{DRIVER_BASE_URL}/getDriverNavBarBadges"
        assert kwargs['headers']['Authorization'].startswith("Bearer ")
        assert storage.has_valid_token()

    @pytest.mark.parametrize("response", [
        fake_response({}, status_code=401),
        fake_response({'code': 503, 'message': 'NOT_AUTHORIZED'}),
    ])
    def test_rejected_token_is_cleared(self, authenticated_client, storage, response):
        authenticated_client.http.request.return_value = response

        assert authenticated_client.validate_existing_token() is False
        assert not authenticated_client.is_authenticated()
        assert authenticated_client.get_session_info() is None
        assert not storage.has_valid_token()

    @pytest.mark.parametrize("side_effect", [
        fake_response(None, status_code=500),
        fake_response({'code': 1000, 'message': 'DATABASE_ERROR'}),
        requests.exceptions.Timeout("slow"),
    ])
    def test_other_errors_fail_closed(self, authenticated_client, storage, side_effect):
        if isinstance(side_effect, Exception):
            authenticated_client.http.request.side_effect = side_effect
        else:
            authenticated_client.http.request.return_value = side_effect

        assert authenticated_client.validate_existing_token() is False
        assert storage.has_valid_token()

    def test_loads_from_storage(self, device_info, auth_config, storage):
        token = make_jwt(driver_id=31337)
        storage.save_token(token, build_session_info(token))

        client = BoltDriverAPI(device_info, auth_config, token_storage=storage)
        client.http = MagicMock()
        client.http.request.return_value = fake_response({'code': 0})

        assert client.is_authenticated()
        assert client.get_driver_info()['driver_id'] == 31337
        assert client.validate_existing_token() is True

    def test_restore_leaves_stored_record_untouched(self, device_info, auth_config, storage):
        token = make_jwt()
        stored = build_session_info(token)
        stored.access_token = None
        storage.save_token(token, stored)

        client = BoltDriverAPI(device_info, auth_config, token_storage=storage)
        assert client.get_current_access_token() == token
        assert client.get_session_info() is not stored
        assert storage.load_token()[1].access_token is None

    def test_broken_storage_means_unauthenticated(self, device_info, auth_config):
        storage = MagicMock()
        storage.load_token.side_effect = OSError("unreadable")

        client = BoltDriverAPI(device_info, auth_config, token_storage=storage)
        assert not client.is_authenticated()

    def test_clear_authentication(self, authenticated_client, storage):
        authenticated_client.clear_authentication()
        assert not authenticated_client.is_authenticated()
        assert not storage.has_valid_token()
        assert authenticated_client.get_driver_info() is None
