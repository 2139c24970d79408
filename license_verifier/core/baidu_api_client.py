"""
Baidu AI Cloud Business License API Client

Async client for the business license endpoints of Baidu's OCR service:
standard license verification (look up a company by name) and two-factor
verification (check a company name against a registration number). Access
tokens are fetched with the OAuth client-credentials flow and cached until
they expire.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from license_verifier.core.data_models import BusinessLicenseInfo, TwoFactorVerification
from license_verifier.utils.error_handler import (
    APIError,
    AuthenticationError,
    RateLimitError,
)

TOKEN_URL = "https://aip.baidubce.com/oauth/2.0/token"
BASE_URL = "https://aip.baidubce.com/rest/2.0/ocr/v1"

DEFAULT_TOKEN_LIFETIME = 2592000  # 30 days, used when expires_in is absent

# Baidu error codes for request quota / QPS limits
RATE_LIMIT_ERROR_CODES = {4, 17, 18, 19}
# Access token invalid or expired
TOKEN_ERROR_CODES = {110, 111}


class BaiduBusinessAPI:
    """
    Client for the Baidu business license verification endpoints.

    Example:
        >>> async with BaiduBusinessAPI(api_key, secret_key) as api:
        ...     info = await api.query_business("Example Co., Ltd.")
    """

    def __init__(
        self,
        api_key: str,
        secret_key: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the API client.

        Args:
            api_key: Baidu API key (OAuth client id)
            secret_key: Baidu secret key (OAuth client secret)
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used to stub the network
        """
        self.api_key = api_key
        self.secret_key = secret_key
        self.timeout = timeout
        self._transport = transport

        self._client: Optional[httpx.AsyncClient] = None
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

        self.logger = logging.getLogger(self.__class__.__name__)

        # Request statistics
        self.request_count = 0
        self.error_count = 0
        self.token_refreshes = 0

    async def __aenter__(self) -> "BaiduBusinessAPI":
        """Async context manager entry."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_access_token(self) -> str:
        """
        Return a valid access token, fetching a new one if needed.

        Raises:
            AuthenticationError: If the token endpoint does not return a token
        """
        async with self._token_lock:
            if self._access_token and time.monotonic() < self._token_expires_at:
                return self._access_token

            client = self._require_client()
            try:
                response = await client.post(
                    TOKEN_URL,
                    params={
                        "grant_type": "client_credentials",
                        "client_id": self.api_key,
                        "client_secret": self.secret_key,
                    },
                )
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise AuthenticationError(
                    f"Failed to get access token: {self._sanitize(str(e))}"
                ) from e

            token = data.get("access_token") if isinstance(data, dict) else None
            if not token:
                detail = ""
                if isinstance(data, dict):
                    detail = data.get("error_description") or data.get("error") or ""
                raise AuthenticationError(
                    f"Failed to get access token{': ' + detail if detail else ''}"
                )

            lifetime = data.get("expires_in")
            if lifetime is None:
                lifetime = DEFAULT_TOKEN_LIFETIME
            self._access_token = token
            self._token_expires_at = time.monotonic() + float(lifetime)
            self.token_refreshes += 1
            self.logger.info("Obtained new Baidu access token")
            return token

    def invalidate_token(self) -> None:
        """Forget the cached token so the next request fetches a new one."""
        self._access_token = None
        self._token_expires_at = 0.0

    async def query_business(self, name: str) -> BusinessLicenseInfo:
        """
        Look up the registry record of a company by name.

        Raises:
            RateLimitError: When the API reports a quota or QPS limit
            APIError: On any other API or transport failure
        """
        data = await self._post(
            "businesslicense_verification_standard", {"verifynum": name}
        )
        return BusinessLicenseInfo.from_api(data["words_result"])

    async def verify_business(self, company: str, regnum: str) -> TwoFactorVerification:
        """
        Check whether a company name and registration number belong together.

        Raises:
            RateLimitError: When the API reports a quota or QPS limit
            APIError: On any other API or transport failure
        """
        data = await self._post(
            "two_factors_verification", {"company": company, "regnum": regnum}
        )
        return TwoFactorVerification.from_api(company, regnum, data["words_result"])

    async def _post(self, endpoint: str, form: Dict[str, str]) -> Dict[str, Any]:
        """POST a form to an OCR endpoint and return the decoded JSON body."""
        client = self._require_client()
        token = await self.get_access_token()

        self.request_count += 1
        try:
            response = await client.post(
                f"{BASE_URL}/{endpoint}",
                params={"access_token": token},
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            self.error_count += 1
            raise APIError(f"Request to {endpoint} failed: {self._sanitize(str(e))}") from e

        if response.status_code == 429:
            self.error_count += 1
            raise RateLimitError("Rate limit exceeded (HTTP 429)")
        if response.status_code >= 400:
            self.error_count += 1
            raise APIError(f"Request to {endpoint} failed: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            self.error_count += 1
            raise APIError(f"Invalid JSON response from {endpoint}: {e}") from e

        self._raise_for_api_error(data)
        return data

    def _raise_for_api_error(self, data: Any) -> None:
        """Map Baidu error payloads to exceptions."""
        if not isinstance(data, dict):
            self.error_count += 1
            raise APIError("API call failed: unexpected response format")

        error_code = data.get("error_code")
        if error_code:
            self.error_count += 1
            message = f"API error {error_code}: {data.get('error_msg', 'unknown error')}"
            code = int(error_code)
            if code in RATE_LIMIT_ERROR_CODES:
                raise RateLimitError(message, error_code=code)
            if code in TOKEN_ERROR_CODES:
                self.invalidate_token()
                raise AuthenticationError(message, error_code=code)
            raise APIError(message, error_code=code)

        if not data.get("words_result"):
            self.error_count += 1
            raise APIError("API call failed: No result returned")

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise APIError("Client not initialized - use async context manager")
        return self._client

    def _sanitize(self, message: str) -> str:
        """Mask credentials and tokens in error messages."""
        for secret in (self.api_key, self.secret_key, self._access_token):
            if secret:
                message = message.replace(secret, "***")
        return message

    def get_statistics(self) -> Dict[str, Any]:
        """
        Get client statistics.

        Returns:
            Dictionary of statistics
        """
        return {
            "request_count": self.request_count,
            "error_count": self.error_count,
            "token_refreshes": self.token_refreshes,
            "success_rate": (
                (self.request_count - self.error_count)
                / max(self.request_count, 1)
                * 100
            ),
        }
