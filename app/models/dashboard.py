# backend/app/models/dashboard.py
# Response models for dashboard aggregation endpoints

from datetime import datetime
from typing import List, Optional

from app.models.business import BusinessAddress
from app.models.common import CamelModel
from app.utils.constants import VerificationStatus


class DashboardStats(CamelModel):
    total_dispatch_count: int = 0
    active_dispatch_count: int = 0
    pending_dispatch_count: int = 0
    successful_dispatch_count: int = 0
    cancelled_dispatch_count: int = 0
    success_rate: float = 0
    total_revenue: float = 0


class SalesBucket(CamelModel):
    bucket: int
    total_sales: float
    order_count: int


class StatusCount(CamelModel):
    status: str
    count: int


class OrderTrendBucket(CamelModel):
    bucket: int
    statuses: List[StatusCount]


class SalesTrend(CamelModel):
    sales_data: List[SalesBucket]
    order_trends: List[OrderTrendBucket]
    period: str


class RecentShipment(CamelModel):
    id: str
    dispatcher_name: Optional[str] = None
    driver_name: str = "Unassigned"
    driver_image: Optional[str] = None
    driver_rating: float = 0
    items_no: Optional[int] = None
    order_date: Optional[datetime] = None
    dispatch_date: Optional[datetime] = None
    dispatch_location: Optional[str] = None
    quantity: Optional[int] = None
    dispatch_status: Optional[str] = None
    order_number: Optional[str] = None
    tracking_number: Optional[str] = None
    customer_rating: Optional[int] = None
    estimated_delivery_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None


class PersonalInfo(CamelModel):
    full_name: str
    email: str
    profile_image: Optional[str] = None
    about: Optional[str] = None
    member_since: Optional[datetime] = None
    last_login: Optional[datetime] = None


class BusinessInfo(CamelModel):
    business_name: str
    business_email: str
    business_address: Optional[BusinessAddress] = None
    business_hotline: Optional[str] = None
    alternative_phone_number: Optional[str] = None
    cac_registration_number: str
    is_verified: bool = False
    verification_status: VerificationStatus = VerificationStatus.PENDING


class PerformanceMetrics(CamelModel):
    total_orders: int = 0
    completed_orders: int = 0
    cancelled_orders: int = 0
    completion_rate: float = 0
    average_delivery_days: float = 0
    business_rating: float = 0


class DispatcherDetails(CamelModel):
    personal_info: PersonalInfo
    business_info: BusinessInfo
    performance_metrics: PerformanceMetrics
