"""
Database Schemas for the Aari order backend

Each Pydantic model represents a collection in MongoDB.
Collection name is the lowercase class name:
- Aari -> "aari" collection
- Customer -> "customer" collection
- Shop -> "shop" collection
- User -> "user" collection

Documents are stored with snake_case keys. The API speaks camelCase, so every
model dumps its aliases with model_dump(by_alias=True).
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

COUNTRY_CODE = "+91"
PHONE_PATTERN = r"^\+91-\d{10}$"
CUSTOMER_ID_PATTERN = r"^[0-9a-f]{24}$"
DATE_OF_BIRTH_PATTERN = r"^\d{2}/\d{2}/\d{4}$"
MAX_DESIGNS = 5
MAX_PAGE_LIMIT = 100


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class WorkType(str, Enum):
    BRIDAL = "bridal"
    NORMAL = "normal"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        str_strip_whitespace=True,
    )


def to_naive_utc(value: datetime) -> datetime:
    # pymongo hands back naive UTC datetimes, keep everything comparable with them
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def is_phone_number(value: str) -> bool:
    return re.fullmatch(PHONE_PATTERN, value) is not None


def phone_variants(value: str) -> List[str]:
    """All stored spellings of a phone number: bare digits, +91 and +91-."""
    digits = "".join(ch for ch in value if ch.isdigit())
    if len(digits) > 10 and digits.startswith(COUNTRY_CODE[1:]):
        digits = digits[len(COUNTRY_CODE) - 1:]
    return [digits, f"{COUNTRY_CODE}{digits}", f"{COUNTRY_CODE}-{digits}"]


# ---------- Collections ----------
class Aari(CamelModel):
    """
    Aari embroidery orders
    Collection name: "aari"
    """
    order_id: str = Field(..., description="Unique order id, immutable")
    customer_id: str = Field(..., description="Owning customer reference")
    name: str = Field(..., description="Customer name on the order")
    phone_number: str = Field(..., description="Phone number, +91-XXXXXXXXXX")
    address: str = Field(..., description="Delivery address")
    staff_name: str = Field(..., description="Staff member who took the order")
    additional_information: Optional[str] = Field(None, description="Free-form notes")
    submission_date: datetime
    delivery_date: datetime
    work_type: WorkType
    designs: List[str] = Field(..., min_length=1, max_length=MAX_DESIGNS, description="Design image URLs")
    quoted_price: float = Field(..., ge=0)
    worker_price: Optional[float] = Field(None, ge=0, description="Set on completion")
    client_price: Optional[float] = Field(None, ge=0)
    status: OrderStatus = Field(OrderStatus.PENDING, validate_default=True)
    completed_date: Optional[datetime] = Field(None, description="Set once, on first completion")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Customer(CamelModel):
    """
    Customers collection schema
    Collection name: "customer"
    """
    customer_id: str = Field(..., description="Opaque 24-hex token")
    name: str
    phone_number: str
    alternate_number: Optional[str] = None
    address: str
    town: Optional[str] = None
    district: str = "Dindigul"
    state: str = "Tamil Nadu"
    date_of_birth: str = Field(..., description="DD/MM/YYYY")
    marital_status: str = "Single"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Shop(CamelModel):
    name: Optional[str] = None
    logo_url: Optional[str] = None
    auth_logo_url: Optional[str] = None


class User(CamelModel):
    name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None


# ---------- Requests ----------
class AariSubmission(CamelModel):
    customer_id: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    phone_number: str = Field(..., pattern=PHONE_PATTERN)
    # submission_date must stay declared before delivery_date for the ordering check
    submission_date: datetime
    delivery_date: datetime
    address: str = Field(..., min_length=1)
    additional_information: Optional[str] = Field(None, max_length=1000)
    staff_name: str = Field(..., min_length=1)
    work_type: WorkType
    quoted_price: float = Field(..., gt=0)

    @field_validator("submission_date", "delivery_date")
    @classmethod
    def check_dates(cls, v: datetime, info: ValidationInfo) -> datetime:
        v = to_naive_utc(v)
        if info.field_name == "delivery_date":
            submitted = info.data.get("submission_date")
            if submitted is not None and v <= submitted:
                raise ValueError("Delivery date must be after submission date")
        return v


class CustomerRegistration(CamelModel):
    customer_id: Optional[str] = Field(None, pattern=CUSTOMER_ID_PATTERN)
    name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., pattern=PHONE_PATTERN)
    alternate_number: Optional[str] = None
    address: str = Field(..., min_length=1, max_length=500)
    town: Optional[str] = Field(None, max_length=100)
    district: str = Field("Dindigul", min_length=1)
    state: str = Field("Tamil Nadu", min_length=1)
    date_of_birth: str = Field(..., pattern=DATE_OF_BIRTH_PATTERN)
    marital_status: str = Field("Single", min_length=1)

    @field_validator("alternate_number")
    @classmethod
    def normalize_alternate_number(cls, v: Optional[str]) -> Optional[str]:
        # the form sends the bare prefix when the field is left empty
        if v in (None, "", COUNTRY_CODE, f"{COUNTRY_CODE}-"):
            return None
        if not is_phone_number(v):
            raise ValueError("Alternate number must be in format +91-XXXXXXXXXX")
        return v


class WorkerPriceUpdate(CamelModel):
    worker_price: float = Field(..., gt=0, strict=True)


class ClientPriceUpdate(CamelModel):
    client_price: float = Field(..., gt=0, strict=True)


class Page(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)

    @field_validator("limit")
    @classmethod
    def cap_limit(cls, v: int) -> int:
        return min(v, MAX_PAGE_LIMIT)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class UserLookup(CamelModel):
    email: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)


# ---------- Views ----------
class AariPendingSummary(CamelModel):
    order_id: str
    name: str
    designs: List[str]
    status: str
    address: str
    delivery_date: datetime
    worker_price: Optional[float] = None
    work_type: str


class AariCompletedSummary(CamelModel):
    order_id: str
    name: str
    phone_number: str
    design: Optional[str] = None
    status: str
    completed_date: Optional[datetime] = None
    client_price: Optional[float] = None
    worker_price: Optional[float] = None


def design_fields(designs: List[str]) -> Dict[str, Optional[str]]:
    """design1..design5 projected from the designs array."""
    return {f"design{i + 1}": designs[i] if i < len(designs) else None for i in range(MAX_DESIGNS)}


def order_view(doc: Dict[str, Any]) -> Dict[str, Any]:
    data = Aari.model_validate(doc).model_dump(by_alias=True)
    data.update(design_fields(data["designs"]))
    return data
