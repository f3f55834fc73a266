"""
Database Schemas for the Asset Tracking Service

Each document model below represents a MongoDB collection. Field names are
snake_case in Python and camelCase in the stored documents and on the wire.

- User -> "users"
- Asset -> "assets"
- Request -> "requests"

The second half of the module holds the request payloads accepted by the API.
"""

from datetime import datetime, timezone
from typing import Annotated, Optional, List, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

Role = Literal["employee", "hr"]
ProductType = Literal["Returnable", "Non-returnable"]
RequestStatus = Literal["Pending", "Approved", "Rejected", "Returned"]

RETURNABLE = "Returnable"
NON_RETURNABLE = "Non-returnable"

PENDING = "Pending"
APPROVED = "Approved"
REJECTED = "Rejected"
RETURNED = "Returned"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


NonBlankStr = Annotated[str, AfterValidator(_not_blank)]


# ----------------------------
# Documents
# ----------------------------
class User(CamelModel):
    email: EmailStr = Field(..., description="Unique email")
    name: str = Field(..., description="Full name")
    role: Role = Field("employee", description="Access role determining permissions")
    photo: Optional[str] = None
    hr_email: Optional[EmailStr] = Field(None, description="HR whose team the user belongs to")
    company_name: Optional[str] = None
    company_logo: Optional[str] = None
    joined_date: Optional[datetime] = None


class Asset(CamelModel):
    hr_email: EmailStr = Field(..., description="Owning HR, scopes visibility")
    product_name: str
    product_type: ProductType
    product_quantity: int = Field(..., ge=0, description="Units currently available to request")
    added_date: datetime = Field(default_factory=utcnow)


class Request(CamelModel):
    asset_id: str
    hr_email: EmailStr
    user_email: EmailStr
    user_name: str
    product_name: str
    product_type: ProductType
    status: RequestStatus = PENDING
    request_date: datetime = Field(default_factory=utcnow)
    approval_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    note: Optional[str] = None


# ----------------------------
# Payloads
# ----------------------------
class TokenRequest(BaseModel):
    email: EmailStr


class UserCreateRequest(CamelModel):
    email: EmailStr
    name: NonBlankStr
    role: Role = "employee"
    photo: Optional[str] = None
    company_name: Optional[str] = None
    company_logo: Optional[str] = None


class ProfileUpdateRequest(CamelModel):
    name: Optional[NonBlankStr] = None
    photo: Optional[str] = Field(None, validation_alias="image")


class AddToTeamRequest(CamelModel):
    employee_ids: List[str] = Field(..., min_length=1)
    company_name: Optional[str] = None
    company_logo: Optional[str] = None


class AssetCreateRequest(CamelModel):
    product_name: NonBlankStr
    product_type: ProductType
    product_quantity: int = Field(..., ge=0)


class AssetUpdateRequest(CamelModel):
    product_name: Optional[NonBlankStr] = None
    product_type: Optional[ProductType] = None
    product_quantity: Optional[int] = Field(None, ge=0)


class RequestCreateRequest(CamelModel):
    asset_id: str
    note: Optional[str] = None


class RequestDecisionRequest(CamelModel):
    status: Literal["Approved", "Rejected"]


# ----------------------------
# Results
# ----------------------------
class TransitionResult(CamelModel):
    """Outcome of a conditional state change; ``modified_count == 0`` is a no-op."""

    matched_count: int
    modified_count: int
    status: Optional[RequestStatus] = None
