# backend/app/models/order.py
# Dispatch order, shipment and driver models

from datetime import datetime
from typing import List, Optional, Union

from pydantic import Field, field_validator

from app.models.common import CamelModel, MongoModel, ObjectIdStr
from app.utils.constants import DispatchStatus, OrderStatus, VehicleType
from app.utils.validators import validate_phone


class Coordinates(CamelModel):
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class Location(CamelModel):
    address: str = Field(min_length=1)
    coordinates: Optional[Coordinates] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None

    @field_validator("contact_phone")
    @classmethod
    def valid_phone(cls, v: Optional[str]) -> Optional[str]:
        if v and not validate_phone(v):
            raise ValueError("Please enter a valid phone number")
        return v


class StatusHistoryEntry(CamelModel):
    status: OrderStatus
    timestamp: datetime
    notes: Optional[str] = None


class OrderCreate(CamelModel):
    items_count: int = Field(ge=1)
    description: str = Field(min_length=1, max_length=1000)
    quantity: int = Field(ge=1)
    pickup_location: Location
    delivery_location: Location
    requested_delivery_date: datetime
    vehicle_type: VehicleType
    estimated_cost: float = Field(ge=0)
    notes: Optional[str] = None


class OrderStatusUpdate(CamelModel):
    status: OrderStatus
    notes: Optional[str] = None
    actual_cost: Optional[float] = Field(default=None, ge=0)


class DriverAssignment(CamelModel):
    driver_id: str
    dispatch_location: Optional[str] = None
    estimated_delivery_time: Optional[datetime] = None


class DriverSummary(MongoModel):
    full_name: str
    profile_image: Optional[str] = None
    rating: float = 0


class OrderResponse(MongoModel):
    user: ObjectIdStr
    business: ObjectIdStr
    order_number: str
    tracking_number: str
    items_count: int
    description: str
    quantity: int
    pickup_location: Location
    delivery_location: Location
    order_date: Optional[datetime] = None
    requested_delivery_date: datetime
    actual_dispatch_date: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    # Populated with name/image/rating by the history query
    assigned_driver: Optional[Union[DriverSummary, ObjectIdStr]] = None
    vehicle_type: VehicleType
    status: OrderStatus
    estimated_cost: float
    actual_cost: Optional[float] = None
    notes: Optional[str] = None
    status_history: List[StatusHistoryEntry] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ShipmentRating(CamelModel):
    customer_rating: int = Field(ge=1, le=5)
    customer_review: Optional[str] = Field(default=None, max_length=500)
    driver_rating: Optional[int] = Field(default=None, ge=1, le=5)


class TrackingUpdate(CamelModel):
    status: str
    location: Optional[str] = None
    timestamp: datetime
    notes: Optional[str] = None


class ShipmentResponse(MongoModel):
    order: ObjectIdStr
    user: ObjectIdStr
    driver: ObjectIdStr
    dispatcher_name: str
    items_no: int
    order_date: datetime
    dispatch_date: datetime
    dispatch_location: str
    quantity: int
    dispatch_status: DispatchStatus
    delivery_location: Optional[str] = None
    estimated_delivery_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    customer_rating: Optional[int] = None
    customer_review: Optional[str] = None
    driver_rating: Optional[int] = None
    tracking_updates: List[TrackingUpdate] = []
    created_at: Optional[datetime] = None


class VehicleDetails(CamelModel):
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    plate_number: str
    color: Optional[str] = None


class DriverResponse(MongoModel):
    full_name: str
    email: str
    phone_number: str
    profile_image: Optional[str] = None
    vehicle_type: VehicleType
    vehicle_details: Optional[VehicleDetails] = None
    is_available: bool = True
    is_verified: bool = False
    rating: float = 0
    total_deliveries: int = 0
    completed_deliveries: int = 0
    cancelled_deliveries: int = 0
