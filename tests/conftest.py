"""
Pytest configuration and shared fixtures for license verifier tests.

This module provides common fixtures, fake workers and sample API payloads
shared across multiple test modules.
"""

import asyncio
from typing import Any, Dict, List

import pytest

from license_verifier.core.data_models import BusinessLicenseInfo, TwoFactorVerification

# ============================================================================
# Pytest Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Keep tests away from real credentials and config files in the cwd."""
    monkeypatch.delenv("BAIDU_API_KEY", raising=False)
    monkeypatch.delenv("BAIDU_SECRET_KEY", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


# ============================================================================
# Sample API payloads
# ============================================================================


@pytest.fixture
def business_words_result() -> Dict[str, Any]:
    """words_result of a standard business license lookup."""
    return {
        "companyname": "Example Technology Co., Ltd.",
        "companycode": "91110108MA01ABCD1X",
        "companystatus": "Active",
        "companytype": "Limited liability company",
        "legalperson": "Zhang San",
        "establishdate": "2018-03-15",
        "capital": "10,000,000 CNY",
        "companyaddress": "1 Example Road, Haidian District, Beijing",
        "businessscope": "Software development | consulting",
        "province": "Beijing",
        "city": "Beijing",
        "district": "Haidian",
        "licensedbusinessscope": "",
    }


@pytest.fixture
def verification_words_result() -> Dict[str, Any]:
    """words_result of a two-factor verification."""
    return {"verifyresult": "1", "companymatch": "1", "regnummatch": "1"}


@pytest.fixture
def sample_business_results(business_words_result) -> List[BusinessLicenseInfo]:
    second = dict(business_words_result, companyname="Second Trading Co., Ltd.")
    return [
        BusinessLicenseInfo.from_api(business_words_result),
        BusinessLicenseInfo.from_api(second),
    ]


@pytest.fixture
def sample_verification_results() -> List[TwoFactorVerification]:
    return [
        TwoFactorVerification.from_api(
            "A Co.", "9111", {"verifyresult": "1", "companymatch": "1", "regnummatch": "1"}
        ),
        TwoFactorVerification.from_api(
            "B Co.", "9131", {"verifyresult": "0", "companymatch": "1", "regnummatch": "0"}
        ),
    ]


# ============================================================================
# Worker helpers
# ============================================================================


class ConcurrencyTracker:
    """Records how many worker calls are in flight at the same time."""

    def __init__(self):
        self.active = 0
        self.peak = 0
        self.started: List[Any] = []

    async def run(self, item, delay: float = 0.01):
        self.started.append(item)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(delay)
            return item
        finally:
            self.active -= 1


@pytest.fixture
def tracker() -> ConcurrencyTracker:
    return ConcurrencyTracker()
