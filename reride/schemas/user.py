# reride/schemas/user.py
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from reride.schemas.vehicle import CamelModel
from reride.utils.validation import normalize_email, validate_email, validate_phone

UserRole = Literal["customer", "seller", "admin"]
UserStatus = Literal["active", "inactive"]
SubscriptionPlan = Literal["free", "pro", "premium"]

DEFAULT_LOCATION = "Mumbai"


class UserRecord(CamelModel):
    model_config = ConfigDict(extra="allow")

    email: str
    name: str = ""
    mobile: Optional[str] = None
    password: Optional[str] = None
    role: UserRole = "customer"
    status: UserStatus = "active"
    location: Optional[str] = None
    created_at: Optional[datetime] = None
    avatar_url: Optional[str] = None

    # Seller profile
    dealership_name: Optional[str] = None
    bio: Optional[str] = None
    average_rating: Optional[float] = None
    rating_count: Optional[int] = None
    badges: list[dict[str, Any]] = Field(default_factory=list)
    subscription_plan: Optional[SubscriptionPlan] = None
    featured_credits: Optional[int] = None
    used_certifications: Optional[int] = None
    is_verified: Optional[bool] = None
    trust_score: Optional[float] = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalize_email(v)

    def public(self) -> "UserRecord":
        """Copy with the password stripped. Always use this before caching or returning."""
        return self.model_copy(update={"password": None})


class LoginCredentials(CamelModel):
    email: str
    password: str
    role: Optional[UserRole] = None

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return normalize_email(v)


class RegistrationRequest(CamelModel):
    name: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=1)
    mobile: str = ""
    role: UserRole = "customer"
    location: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _valid_email(cls, v: str) -> str:
        v = normalize_email(v)
        if not validate_email(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("mobile")
    @classmethod
    def _valid_mobile(cls, v: str) -> str:
        if v and not validate_phone(v):
            raise ValueError("Invalid mobile number")
        return v

    def to_user(self) -> UserRecord:
        """Fresh active account for this request. The password is not carried over."""
        is_seller = self.role == "seller"
        return UserRecord(
            name=self.name,
            email=self.email,
            mobile=self.mobile,
            role=self.role,
            status="active",
            location=self.location or DEFAULT_LOCATION,
            created_at=datetime.now(timezone.utc),
            avatar_url=f"https://i.pravatar.cc/150?u={self.email}",
            subscription_plan="free" if is_seller else None,
            featured_credits=0 if is_seller else None,
            used_certifications=0 if is_seller else None,
        )


class AuthResult(CamelModel):
    """Outcome of login/register. Rejections are values, never exceptions."""

    success: bool
    user: Optional[UserRecord] = None
    reason: Optional[str] = None
    access_token: Optional[str] = None
