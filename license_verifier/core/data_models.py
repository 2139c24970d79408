"""
Data models for the Business License Verifier.

This module defines the result structures returned by the Baidu business
license endpoints and the input pair used for two-factor verification.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class VerificationPair:
    """A company name with the registration number to verify against it."""

    company: str
    regnum: str


@dataclass
class BusinessLicenseInfo:
    """
    Registry record for a company, as returned by the standard
    business license verification endpoint.
    """

    name: str = ""
    reg_number: str = ""
    status: str = ""
    type: str = ""
    legal_person: str = ""
    establish_date: str = ""
    reg_capital: str = ""
    address: str = ""
    business_scope: str = ""
    province: str = ""
    city: str = ""
    district: str = ""
    licensed_business_scope: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    # Display labels, in export order
    FIELD_LABELS = (
        ("reg_number", "Registration Number"),
        ("status", "Status"),
        ("type", "Type"),
        ("legal_person", "Legal Representative"),
        ("establish_date", "Establishment Date"),
        ("reg_capital", "Registered Capital"),
        ("address", "Address"),
        ("business_scope", "Business Scope"),
        ("province", "Province"),
        ("city", "City"),
        ("district", "District"),
        ("licensed_business_scope", "Licensed Business Scope"),
    )

    @classmethod
    def from_api(cls, words_result: Dict[str, Any]) -> "BusinessLicenseInfo":
        """Build from the ``words_result`` object of an API response."""

        def get(key: str) -> str:
            value = words_result.get(key)
            return "" if value is None else str(value)

        return cls(
            name=get("companyname"),
            reg_number=get("companycode"),
            status=get("companystatus"),
            type=get("companytype"),
            legal_person=get("legalperson"),
            establish_date=get("establishdate"),
            reg_capital=get("capital"),
            address=get("companyaddress"),
            business_scope=get("businessscope"),
            province=get("province"),
            city=get("city"),
            district=get("district"),
            licensed_business_scope=get("licensedbusinessscope"),
            raw=dict(words_result),
        )

    def to_dict(self, include_raw: bool = False) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        data = asdict(self)
        if not include_raw:
            data.pop("raw")
        return data


@dataclass
class TwoFactorVerification:
    """Outcome of verifying a company name against a registration number."""

    company: str
    regnum: str
    status: str = "Not Verified"
    name_match: bool = False
    code_match: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def verified(self) -> bool:
        return self.status == "Verified"

    @classmethod
    def from_api(
        cls, company: str, regnum: str, words_result: Dict[str, Any]
    ) -> "TwoFactorVerification":
        """Build from the ``words_result`` object of an API response."""
        return cls(
            company=company,
            regnum=regnum,
            status="Verified" if str(words_result.get("verifyresult")) == "1" else "Not Verified",
            name_match=str(words_result.get("companymatch")) == "1",
            code_match=str(words_result.get("regnummatch")) == "1",
            raw=dict(words_result),
        )

    def to_dict(self, include_raw: bool = False) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        data = asdict(self)
        if not include_raw:
            data.pop("raw")
        return data
