"""Address Schemas — request bodies and responses for the address endpoints.

Invariants:
    - AddressCreate carries every required location field; is_default is only a request
    - AddressUpdate: every field optional; is_default None means "leave the flag alone"
    - owner_id, id, is_active and timestamps are never accepted from the client

Design Decisions:
    - Field bounds mirror the column lengths; content rules (regex on phone or
      pincode) stay out of scope
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront.core.domain_types import AddressType, DefaultReason


class _AddressFields(BaseModel):
    landmark: str | None = Field(None, max_length=100)
    city: str | None = Field(None, max_length=50)

    @field_validator("*", mode="before")
    @classmethod
    def strip_strings(cls, v):
        return v.strip() if isinstance(v, str) else v


class AddressCreate(_AddressFields):
    """Address creation — is_default asks for default status."""
    house_flat_number: str = Field(min_length=1, max_length=50)
    street_area_name: str = Field(min_length=1, max_length=100)
    complete_address: str = Field(min_length=1, max_length=200)
    pincode: str = Field(min_length=1, max_length=6)
    state: str = Field("Bihar", max_length=50)
    country: str = Field("India", max_length=50)
    phone: str = Field(min_length=1, max_length=10)
    address_type: AddressType = AddressType.HOME
    is_default: bool = False


class AddressUpdate(_AddressFields):
    """Partial address update."""
    house_flat_number: str | None = Field(None, min_length=1, max_length=50)
    street_area_name: str | None = Field(None, min_length=1, max_length=100)
    complete_address: str | None = Field(None, min_length=1, max_length=200)
    pincode: str | None = Field(None, min_length=1, max_length=6)
    state: str | None = Field(None, max_length=50)
    country: str | None = Field(None, max_length=50)
    phone: str | None = Field(None, min_length=1, max_length=10)
    address_type: AddressType | None = None
    is_default: bool | None = None


class AddressResponse(BaseModel):
    """Address as returned to the owner."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: str
    house_flat_number: str
    street_area_name: str
    complete_address: str
    landmark: str | None = None
    pincode: str
    city: str | None = None
    state: str
    country: str
    phone: str
    address_type: AddressType
    is_default: bool
    is_active: bool
    full_address: str
    created_at: datetime
    updated_at: datetime


class AddressMutationResponse(BaseModel):
    """Outcome of an address mutation plus the owner's active set."""
    message: str
    address: AddressResponse
    addresses: list[AddressResponse]
    default_reason: DefaultReason | None = None
    was_default: bool = False


class AddressListResponse(BaseModel):
    addresses: list[AddressResponse]
    count: int
