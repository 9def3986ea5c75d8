"""
Session module data models.

These models define the token pair, the cached user snapshot and the
auth-state marker the session manager persists, plus the tagged result
types every session operation resolves to.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.models import mask_identifier


class TokenPair(BaseModel):
    """
    Bearer credentials issued by the auth service.

    Accepts both snake_case and the camelCase keys the auth service sends.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: Optional[str] = Field(None, description="Opaque bearer token")
    refresh_token: Optional[str] = Field(None, description="Refresh credential")
    expires_in: Optional[int] = Field(
        None, description="Access token lifetime in seconds, as issued"
    )


class CachedUser(BaseModel):
    """
    Normalized snapshot of the signed-in user's profile.

    Built with from_profile() so the rest of the app never has to care
    whether the server said "_id" or "id", "phone" or "phoneNumber".
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="User ID")
    email: Optional[str] = None
    phone_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: Optional[str] = Field(None, description="Name as given by the server")
    display_name: str = Field(..., description="Derived display name")
    role: str = "donor"
    status: str = "active"
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_profile(cls, profile: Union["CachedUser", dict[str, Any]]) -> "CachedUser":
        """Normalize a raw profile payload into a CachedUser."""
        if isinstance(profile, CachedUser):
            return profile

        data = dict(profile)
        user_id = _pop_first(data, "id", "_id")
        if not user_id:
            raise ValueError("User profile has no id")

        phone = _pop_first(data, "phoneNumber", "phone_number", "phone")
        email = _pop_first(data, "email")
        first_name = _pop_first(data, "firstName", "first_name")
        last_name = _pop_first(data, "lastName", "last_name")
        name = _pop_first(data, "name")
        # A derived display name from an earlier snapshot is not carried over.
        _pop_first(data, "displayName", "display_name")
        role = _pop_first(data, "role") or "donor"
        status = _pop_first(data, "status") or "active"
        extra = data.pop("extra", None) or {}
        extra.update(data)

        return cls(
            id=str(user_id),
            email=email,
            phone_number=phone,
            first_name=first_name,
            last_name=last_name,
            name=name,
            display_name=derive_display_name(name, first_name, last_name, email, phone),
            role=role,
            status=status,
            extra=extra,
        )

    def merged(self, updates: dict[str, Any]) -> "CachedUser":
        """Return a new snapshot with profile updates applied."""
        current = self.model_dump(by_alias=True)
        for key, value in updates.items():
            if key in ("id", "_id"):
                # The id of a cached user never changes through an update.
                continue
            key = "phoneNumber" if key == "phone" else to_camel(key)
            current[key] = value
        return CachedUser.from_profile(current)


def _pop_first(data: dict[str, Any], *keys: str) -> Any:
    """Pop every alias of a field and return the first non-empty value."""
    found = None
    for key in keys:
        value = data.pop(key, None)
        if found is None and value not in (None, ""):
            found = value
    return found


def derive_display_name(
    name: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
    email: Optional[str],
    phone: Optional[str],
) -> str:
    if name:
        return name
    full = " ".join(part for part in (first_name, last_name) if part)
    if full:
        return full
    if email:
        return email.split("@", 1)[0]
    if phone:
        return mask_identifier(phone)
    return "User"


class AuthState(BaseModel):
    """When the session was last confirmed and whether it is verified."""

    timestamp: datetime
    verified: bool = False


class SessionInfo(BaseModel):
    """Diagnostic view of the current session."""

    user_id: str
    authenticated_at: datetime
    session_expires_at: datetime
    access_token_expires_at: Optional[datetime] = None
    seconds_until_token_expiry: Optional[float] = None


class SessionErrorKind(str, Enum):
    """Why a session operation failed."""

    NO_TOKEN = "NO_TOKEN"
    REFRESH_IN_PROGRESS = "REFRESH_IN_PROGRESS"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    NETWORK_ERROR = "NETWORK_ERROR"
    SERVER_REJECTED = "SERVER_REJECTED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    STORE_ERROR = "STORE_ERROR"


class SessionSuccess(BaseModel):
    """A session operation succeeded."""

    kind: Literal["success"] = "success"
    user: Optional[CachedUser] = None
    tokens: Optional[TokenPair] = None
    from_cache: bool = Field(
        default=False,
        description="True when the result was served from the cached user without a server check",
    )


class SessionFailure(BaseModel):
    """A session operation failed."""

    kind: Literal["error"] = "error"
    error: SessionErrorKind
    message: str
    forced_logout: bool = Field(
        default=False,
        description="True when the failure cleared the local session",
    )


SessionResult = Annotated[
    Union[SessionSuccess, SessionFailure],
    Field(discriminator="kind"),
]


class LoginCredentials(BaseModel):
    """Credentials accepted by the auth service login endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    phone_number: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    otp: Optional[str] = None


class LoginResponse(BaseModel):
    """Payload returned by the auth service after a login."""

    user: dict[str, Any]
    tokens: TokenPair


class RefreshResponse(BaseModel):
    """Payload returned by the auth service after a token refresh."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    user: Optional[dict[str, Any]] = None
