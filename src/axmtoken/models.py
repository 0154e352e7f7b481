"""Canonical Pydantic models shared across all axmtoken modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ServiceVariant`, :class:`TokenConfiguration`,
    :class:`RequestConfig`, :class:`OutputConfig` and :class:`GlobalConfig`.

**Wire models** -- parsed from Apple's HTTP responses:
    :class:`TokenResponse`, :class:`TokenErrorResponse`, :class:`Device`,
    :class:`DeviceRecord`, :class:`ResponseMeta`, :class:`DeviceResponse`
    and :class:`DevicePage`.

**Lifecycle models** -- produced by the core:
    :class:`TokenStatus` and :class:`DecodedAssertion`.
"""

from __future__ import annotations

import enum
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TOKEN_URL = "https://account.apple.com/auth/oauth2/token"
DEFAULT_AUDIENCE = "https://account.apple.com/auth/oauth2/v2/token"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


_RECORD_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")


def is_valid_subject_id(subject_id: str) -> bool:
    """Return whether *subject_id* is safe as a file name and vault key."""
    return bool(_RECORD_ID.match(subject_id or "")) and subject_id not in (".", "..")


# --- Configuration records ---


class ServiceVariant(str, enum.Enum):
    """Which Apple management service a configuration talks to."""

    BUSINESS = "business"
    SCHOOL = "school"

    @property
    def display_name(self) -> str:
        if self is ServiceVariant.BUSINESS:
            return "Apple Business Manager"
        return "Apple School Manager"

    @property
    def scope(self) -> str:
        """OAuth scope requested when exchanging the assertion."""
        if self is ServiceVariant.BUSINESS:
            return "business.api"
        return "school.api"

    @property
    def api_base_url(self) -> str:
        """Base URL of the organisation API for this service."""
        if self is ServiceVariant.BUSINESS:
            return "https://api-business.apple.com"
        return "https://api-school.apple.com"


class TokenConfiguration(BaseModel):
    """A named set of API credentials, one per Apple client.

    The private key itself is never part of this record: it lives in the
    credential vault under :attr:`id`, together with the last generated
    assertion and access token. The lifecycle manager is the only writer of
    :attr:`token_expiry`, :attr:`last_refresh` and :attr:`is_active`.

    Example::

        TokenConfiguration(
            name="Acme ABM",
            email="admin@acme.example",
            client_id="BUSINESSAPI.1234",
            key_id="d136aa66-0c3b-4bd4-9892-c20e8db024ab",
            service=ServiceVariant.BUSINESS,
        )
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, description="Stable vault correlation key")
    name: str = Field(description="Display name")
    email: str = Field(default="", description="Subject email / Apple Account of the owner")
    client_id: str = Field(description="OAuth client identifier (also iss/sub)")
    key_id: str = Field(description="Identifier of the signing key (JWT kid)")
    service: ServiceVariant = Field(default=ServiceVariant.BUSINESS)
    created_at: datetime = Field(default_factory=_utcnow)
    last_refresh: Optional[datetime] = None
    token_expiry: Optional[datetime] = None
    is_active: bool = True


class RequestConfig(BaseModel):
    """HTTP settings applied to every outbound call."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/axmtoken/config.json``.

    Loaded and saved by :func:`~axmtoken.config.load_global_config` and
    :func:`~axmtoken.config.save_global_config`. See
    :func:`~axmtoken.config.resolve_config` for how environment variables
    and CLI flags override these values.
    """

    token_url: str = Field(default=DEFAULT_TOKEN_URL, description="OAuth token endpoint")
    audience: str = Field(default=DEFAULT_AUDIENCE, description="JWT aud claim")
    expiring_threshold_minutes: int = Field(
        default=15, description="Lookahead used to flag tokens as expiring"
    )
    device_page_limit: int = Field(default=100, description="Devices per page")
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Token endpoint ---


class TokenResponse(BaseModel):
    """Successful reply from the OAuth token endpoint."""

    access_token: str = Field(min_length=1)
    token_type: str
    expires_in: int
    refresh_token: Optional[str] = None


class TokenErrorResponse(BaseModel):
    """OAuth error body (:rfc:`6749` section 5.2)."""

    error: str
    error_description: Optional[str] = None

    def __str__(self) -> str:
        if self.error_description:
            return f"{self.error}: {self.error_description}"
        return self.error


# --- Lifecycle ---


class TokenStatus(str, enum.Enum):
    """Display status derived from the vault and the stored expiry."""

    NOT_CONFIGURED = "not_configured"
    ACTIVE = "active"
    EXPIRING = "expiring"
    EXPIRED = "expired"
    UNKNOWN = "unknown"


class DecodedAssertion(BaseModel):
    """Human-readable view of a compact JWT, used by ``axmtoken decode``."""

    header: str = Field(description="Pretty-printed header JSON")
    payload: str = Field(description="Pretty-printed claims JSON")
    signature: str = Field(description="Signature segment, still base64url")
    algorithm: Optional[str] = None
    key_id: Optional[str] = None
    issuer: Optional[str] = None
    subject: Optional[str] = None
    audience: Optional[str] = None
    issued_at: Optional[int] = None
    expires_at: Optional[int] = None
    jwt_id: Optional[str] = None
    signature_valid: Optional[bool] = Field(
        default=None, description="None when no key was supplied for verification"
    )


# --- Organisation devices ---


class Device(BaseModel):
    """Attributes of one organisation device."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    serial_number: str = Field(alias="serialNumber")
    added_to_org_date_time: Optional[str] = Field(default=None, alias="addedToOrgDateTime")
    updated_date_time: Optional[str] = Field(default=None, alias="updatedDateTime")
    device_model: Optional[str] = Field(default=None, alias="deviceModel")
    product_family: Optional[str] = Field(default=None, alias="productFamily")
    product_type: Optional[str] = Field(default=None, alias="productType")
    device_capacity: Optional[str] = Field(default=None, alias="deviceCapacity")
    color: Optional[str] = None
    status: Optional[str] = None
    imei: Optional[list[str]] = None
    meid: Optional[list[str]] = None
    eid: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.device_model:
            return self.device_model
        if self.product_family:
            return self.product_family
        return "Unknown Device"


class DeviceRecord(BaseModel):
    """One JSON:API resource object wrapping a :class:`Device`."""

    type: str
    id: str
    attributes: Device


class ResponseMeta(BaseModel):
    cursor: Optional[str] = None
    has_more: Optional[bool] = None


class DeviceResponse(BaseModel):
    """Raw body of ``GET /v1/orgDevices``."""

    data: list[DeviceRecord] = Field(default_factory=list)
    meta: Optional[ResponseMeta] = None


class DevicePage(BaseModel):
    """One page of devices plus the cursor needed to fetch the next."""

    devices: list[Device] = Field(default_factory=list)
    cursor: Optional[str] = None
    has_more: bool = False

    @classmethod
    def from_response(cls, response: DeviceResponse) -> DevicePage:
        meta = response.meta or ResponseMeta()
        return cls(
            devices=[record.attributes for record in response.data],
            cursor=meta.cursor,
            has_more=bool(meta.has_more),
        )

    def as_rows(self) -> list[dict[str, Any]]:
        return [device.model_dump(by_alias=True, exclude_none=True) for device in self.devices]
