"""
Tests for the Baidu business license API client.

The network is replaced with httpx.MockTransport handlers that emulate the
OAuth token endpoint and the two OCR verification endpoints.
"""

from urllib.parse import parse_qs

import httpx
import pytest

from license_verifier.core.baidu_api_client import (
    BASE_URL,
    TOKEN_URL,
    BaiduBusinessAPI,
)
from license_verifier.core.data_models import BusinessLicenseInfo, TwoFactorVerification
from license_verifier.utils.error_handler import (
    APIError,
    AuthenticationError,
    RateLimitError,
)
from license_verifier.utils.retry_handler import is_rate_limit_error

API_KEY = "test-api-key"
SECRET_KEY = "test-secret-key"


class FakeBaidu:
    """Request handler standing in for the Baidu endpoints."""

    def __init__(self, responses=None, token_payload=None):
        self.responses = list(responses or [])
        self.token_payload = token_payload or {"access_token": "token-1", "expires_in": 3600}
        self.token_requests = 0
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url).startswith(TOKEN_URL):
            self.token_requests += 1
            return httpx.Response(200, json=self.token_payload)

        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)


def make_api(handler) -> BaiduBusinessAPI:
    return BaiduBusinessAPI(API_KEY, SECRET_KEY, transport=httpx.MockTransport(handler))


class TestAccessToken:
    """Tests for OAuth token handling."""

    @pytest.mark.asyncio
    async def test_token_fetched_once_and_cached(self, business_words_result):
        fake = FakeBaidu([{"words_result": business_words_result}] * 2)

        async with make_api(fake) as api:
            await api.query_business("A")
            await api.query_business("B")

        assert fake.token_requests == 1

    @pytest.mark.asyncio
    async def test_token_request_parameters(self):
        seen = {}

        def handler(request):
            seen.update(parse_qs(request.url.query.decode()))
            return httpx.Response(200, json={"access_token": "abc"})

        async with make_api(handler) as api:
            assert await api.get_access_token() == "abc"

        assert seen["grant_type"] == ["client_credentials"]
        assert seen["client_id"] == [API_KEY]
        assert seen["client_secret"] == [SECRET_KEY]

    @pytest.mark.asyncio
    async def test_missing_token_raises(self):
        def handler(request):
            return httpx.Response(
                401, json={"error": "invalid_client", "error_description": "unknown client id"}
            )

        async with make_api(handler) as api:
            with pytest.raises(AuthenticationError, match="unknown client id"):
                await api.get_access_token()

    @pytest.mark.asyncio
    async def test_expired_token_refetched(self, business_words_result):
        fake = FakeBaidu(
            [{"words_result": business_words_result}] * 2,
            token_payload={"access_token": "short-lived", "expires_in": 0},
        )

        async with make_api(fake) as api:
            await api.query_business("A")
            await api.query_business("B")

        assert fake.token_requests == 2

    @pytest.mark.asyncio
    async def test_invalid_token_error_clears_cache(self, business_words_result):
        fake = FakeBaidu(
            [
                {"error_code": 110, "error_msg": "Access token invalid or no longer valid"},
                {"words_result": business_words_result},
            ]
        )

        async with make_api(fake) as api:
            with pytest.raises(AuthenticationError):
                await api.query_business("A")
            await api.query_business("A")

        assert fake.token_requests == 2

    @pytest.mark.asyncio
    async def test_client_required(self):
        api = BaiduBusinessAPI(API_KEY, SECRET_KEY)
        with pytest.raises(APIError, match="not initialized"):
            await api.query_business("A")


class TestQueryBusiness:
    """Tests for the standard license lookup."""

    @pytest.mark.asyncio
    async def test_query_maps_fields(self, business_words_result):
        fake = FakeBaidu([{"log_id": 1, "words_result": business_words_result}])

        async with make_api(fake) as api:
            info = await api.query_business("Example Technology Co., Ltd.")

        assert isinstance(info, BusinessLicenseInfo)
        assert info.name == "Example Technology Co., Ltd."
        assert info.reg_number == "91110108MA01ABCD1X"
        assert info.legal_person == "Zhang San"
        assert info.district == "Haidian"
        assert info.raw == business_words_result

        request = fake.requests[0]
        assert str(request.url).startswith(f"{BASE_URL}/businesslicense_verification_standard")
        assert request.url.params["access_token"] == "token-1"
        assert parse_qs(request.content.decode()) == {
            "verifynum": ["Example Technology Co., Ltd."]
        }

    @pytest.mark.asyncio
    async def test_missing_words_result(self):
        fake = FakeBaidu([{"log_id": 1}])

        async with make_api(fake) as api:
            with pytest.raises(APIError, match="No result returned"):
                await api.query_business("A")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", [4, 17, 18, 19])
    async def test_quota_error_codes_are_rate_limits(self, code):
        fake = FakeBaidu([{"error_code": code, "error_msg": "Open api qps request limit reached"}])

        async with make_api(fake) as api:
            with pytest.raises(RateLimitError) as exc_info:
                await api.query_business("A")

        assert exc_info.value.error_code == code
        assert is_rate_limit_error(exc_info.value)

    @pytest.mark.asyncio
    async def test_other_error_codes(self):
        fake = FakeBaidu([{"error_code": 216100, "error_msg": "invalid param"}])

        async with make_api(fake) as api:
            with pytest.raises(APIError, match="invalid param") as exc_info:
                await api.query_business("A")

        assert not isinstance(exc_info.value, RateLimitError)
        assert exc_info.value.error_code == 216100

    @pytest.mark.asyncio
    async def test_http_429(self):
        fake = FakeBaidu([httpx.Response(429)])

        async with make_api(fake) as api:
            with pytest.raises(RateLimitError):
                await api.query_business("A")

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        fake = FakeBaidu([httpx.Response(502, text="bad gateway")])

        async with make_api(fake) as api:
            with pytest.raises(APIError, match="HTTP 502"):
                await api.query_business("A")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        fake = FakeBaidu([httpx.Response(200, text="<html>")])

        async with make_api(fake) as api:
            with pytest.raises(APIError, match="Invalid JSON"):
                await api.query_business("A")

    @pytest.mark.asyncio
    async def test_transport_error_masks_secrets(self):
        def handler(request):
            if str(request.url).startswith(TOKEN_URL):
                return httpx.Response(200, json={"access_token": "token-1"})
            raise httpx.ConnectError(f"connection refused for {request.url}")

        async with make_api(handler) as api:
            with pytest.raises(APIError) as exc_info:
                await api.query_business("A")

        assert "token-1" not in str(exc_info.value)
        assert "***" in str(exc_info.value)


class TestVerifyBusiness:
    """Tests for two-factor verification."""

    @pytest.mark.asyncio
    async def test_verified(self, verification_words_result):
        fake = FakeBaidu([{"words_result": verification_words_result}])

        async with make_api(fake) as api:
            result = await api.verify_business("A Co.", "9111")

        assert isinstance(result, TwoFactorVerification)
        assert result.verified
        assert result.status == "Verified"
        assert result.name_match and result.code_match

        request = fake.requests[0]
        assert str(request.url).startswith(f"{BASE_URL}/two_factors_verification")
        assert parse_qs(request.content.decode()) == {"company": ["A Co."], "regnum": ["9111"]}

    @pytest.mark.asyncio
    async def test_not_verified(self):
        fake = FakeBaidu(
            [{"words_result": {"verifyresult": "0", "companymatch": "1", "regnummatch": "0"}}]
        )

        async with make_api(fake) as api:
            result = await api.verify_business("A Co.", "9999")

        assert result.status == "Not Verified"
        assert result.name_match is True
        assert result.code_match is False

    @pytest.mark.asyncio
    async def test_statistics(self, verification_words_result):
        fake = FakeBaidu(
            [{"words_result": verification_words_result}, {"error_code": 18, "error_msg": "limit"}]
        )

        async with make_api(fake) as api:
            await api.verify_business("A Co.", "9111")
            with pytest.raises(RateLimitError):
                await api.verify_business("B Co.", "9131")
            stats = api.get_statistics()

        assert stats["request_count"] == 2
        assert stats["error_count"] == 1
        assert stats["token_refreshes"] == 1
        assert stats["success_rate"] == 50.0
