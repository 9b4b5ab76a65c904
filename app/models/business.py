# backend/app/models/business.py
# Business KYC and fleet registration models

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from app.models.common import CamelModel, MongoModel, ObjectIdStr
from app.utils.constants import VerificationStatus
from app.utils.validators import validate_phone


def _check_phone(value: Optional[str]) -> Optional[str]:
    if value and not validate_phone(value):
        raise ValueError("Please enter a valid phone number")
    return value


class BusinessAddress(CamelModel):
    street: str
    city: str
    state: str
    country: str = "Nigeria"
    zip_code: Optional[str] = None


class BusinessKYCRequest(CamelModel):
    """KYC fields shared by the multipart and base64 submission routes."""

    business_name: str = Field(min_length=2, max_length=200)
    business_email: EmailStr
    street_address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    country: str = Field(default="Nigeria", min_length=1)
    zip_code: Optional[str] = None
    cac_registration_number: str = Field(min_length=1)
    business_hotline: str
    alternative_phone_number: Optional[str] = None
    want_sharperly_driver_orders: bool = False

    @field_validator("business_name", "cac_registration_number")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("business_email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("business_hotline")
    @classmethod
    def valid_hotline(cls, v: str) -> str:
        if not validate_phone(v):
            raise ValueError("Please enter a valid business hotline")
        return v

    @field_validator("alternative_phone_number")
    @classmethod
    def valid_alternative(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)

    def address(self) -> BusinessAddress:
        return BusinessAddress(
            street=self.street_address,
            city=self.city,
            state=self.state,
            country=self.country,
            zip_code=self.zip_code,
        )


class BusinessKYCBase64Request(BusinessKYCRequest):
    # Base64 payloads, optionally as data URIs ("data:application/pdf;base64,...")
    proof_of_address: str = Field(min_length=1)
    business_logo: Optional[str] = None


class BusinessUpdate(CamelModel):
    business_name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    business_email: Optional[EmailStr] = None
    business_address: Optional[BusinessAddress] = None
    business_hotline: Optional[str] = None
    alternative_phone_number: Optional[str] = None
    want_sharperly_driver_orders: Optional[bool] = None

    @field_validator("business_hotline", "alternative_phone_number")
    @classmethod
    def valid_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)


class BusinessResponse(MongoModel):
    user: ObjectIdStr
    business_name: str
    business_email: str
    business_address: BusinessAddress
    cac_registration_number: str
    proof_of_address: Optional[str] = None
    business_logo: Optional[str] = None
    business_hotline: str
    alternative_phone_number: Optional[str] = None
    want_sharperly_driver_orders: bool = False
    is_verified: bool = False
    verification_status: VerificationStatus = VerificationStatus.PENDING
    verification_notes: Optional[str] = None
    total_orders: int = 0
    completed_orders: int = 0
    rating: float = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VehicleRegistration(CamelModel):
    number_of_drivers: int = Field(ge=0)
    number_of_cars: int = Field(ge=0)
    number_of_bikes: int = Field(ge=0)
    number_of_vans: int = Field(ge=0)


class VehicleResponse(MongoModel):
    user: ObjectIdStr
    business: ObjectIdStr
    business_name: Optional[str] = None
    number_of_drivers: int
    number_of_cars: int
    number_of_bikes: int
    number_of_vans: int
    total_vehicles: int
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
