# backend/app/services/dashboard_service.py
# Dashboard aggregations over the orders and shipments collections

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pymongo
from bson import ObjectId
from pymongo.database import Database

from app.config import Settings
from app.exceptions import NotFoundError
from app.models.dashboard import (
    BusinessInfo,
    DashboardStats,
    DispatcherDetails,
    OrderTrendBucket,
    PerformanceMetrics,
    PersonalInfo,
    RecentShipment,
    SalesBucket,
    SalesTrend,
    StatusCount,
)
from app.models.order import OrderResponse
from app.utils.constants import (
    ACTIVE_ORDER_STATUSES,
    BUSINESSES,
    DEFAULT_SALES_PERIOD,
    DRIVERS,
    MS_PER_DAY,
    ORDERS,
    PERIOD_BUCKET_OPERATORS,
    SHIPMENTS,
    USERS,
    OrderStatus,
    SalesPeriod,
)
from app.utils.pagination import build_history_filter, build_pagination, page_offset

logger = logging.getLogger(__name__)

DRIVER_SUMMARY_PROJECTION = {"full_name": 1, "profile_image": 1, "rating": 1}

# Matches documents where the field is present and not null
DEFINED = {"$ne": None}


def percentage(part: int, total: int, digits: int = 2) -> float:
    """part/total as a percentage rounded to `digits`; 0 when total is 0."""
    if not total:
        return 0
    return round(part / total * 100, digits)


def resolve_period(period: Optional[str]) -> SalesPeriod:
    """Unknown or missing selectors fall back to the last 7 days."""
    try:
        return SalesPeriod(period)
    except ValueError:
        return DEFAULT_SALES_PERIOD


def period_cutoff(period: SalesPeriod, now: datetime) -> datetime:
    if period == SalesPeriod.LAST_24_HOURS:
        return now - timedelta(hours=24)
    if period == SalesPeriod.LAST_30_DAYS:
        return now - timedelta(days=30)
    if period == SalesPeriod.LAST_12_MONTHS:
        try:
            return now.replace(year=now.year - 1)
        except ValueError:
            # 29 February
            return now.replace(year=now.year - 1, day=28)
    return now - timedelta(days=7)


def sales_pipeline(user_id: ObjectId, cutoff: datetime, bucket_operator: str) -> List[dict]:
    return [
        {
            "$match": {
                "user": user_id,
                "created_at": {"$gte": cutoff},
                "status": OrderStatus.DELIVERED.value,
                "actual_cost": DEFINED,
            }
        },
        {
            "$group": {
                "_id": {bucket_operator: "$created_at"},
                "totalSales": {"$sum": "$actual_cost"},
                "orderCount": {"$sum": 1},
            }
        },
        {"$sort": {"_id": 1}},
    ]


def order_trend_pipeline(user_id: ObjectId, cutoff: datetime, bucket_operator: str) -> List[dict]:
    return [
        {"$match": {"user": user_id, "created_at": {"$gte": cutoff}}},
        {
            "$group": {
                "_id": {"bucket": {bucket_operator: "$created_at"}, "status": "$status"},
                "count": {"$sum": 1},
            }
        },
        {
            "$group": {
                "_id": "$_id.bucket",
                "statuses": {"$push": {"status": "$_id.status", "count": "$count"}},
            }
        },
        {"$sort": {"_id": 1}},
    ]


def status_breakdown_pipeline(user_id: ObjectId) -> List[dict]:
    # $sum skips missing and null actual_cost values
    return [
        {"$match": {"user": user_id}},
        {"$group": {"_id": "$status", "count": {"$sum": 1}, "revenue": {"$sum": "$actual_cost"}}},
    ]


def average_delivery_pipeline(user_id: ObjectId) -> List[dict]:
    return [
        {
            "$match": {
                "user": user_id,
                "status": OrderStatus.DELIVERED.value,
                "actual_delivery_date": DEFINED,
                "created_at": DEFINED,
            }
        },
        {
            "$project": {
                "deliveryDays": {
                    "$divide": [{"$subtract": ["$actual_delivery_date", "$created_at"]}, MS_PER_DAY]
                }
            }
        },
        {"$group": {"_id": None, "avgDays": {"$avg": "$deliveryDays"}}},
    ]


def summarize_status_counts(rows: Iterable[dict]) -> DashboardStats:
    """Fold per-status count/revenue rows into the dashboard counters."""
    counts: Dict[str, int] = {}
    revenue = 0
    for row in rows:
        counts[row["_id"]] = counts.get(row["_id"], 0) + row.get("count", 0)
        if row["_id"] == OrderStatus.DELIVERED.value:
            revenue += row.get("revenue") or 0

    total = sum(counts.values())
    successful = counts.get(OrderStatus.DELIVERED.value, 0)
    return DashboardStats(
        total_dispatch_count=total,
        active_dispatch_count=sum(counts.get(s, 0) for s in ACTIVE_ORDER_STATUSES),
        pending_dispatch_count=counts.get(OrderStatus.PENDING.value, 0),
        successful_dispatch_count=successful,
        cancelled_dispatch_count=counts.get(OrderStatus.CANCELLED.value, 0),
        success_rate=percentage(successful, total),
        total_revenue=revenue,
    )


def shape_sales_data(rows: Iterable[dict]) -> List[SalesBucket]:
    buckets = [
        SalesBucket(bucket=row["_id"], total_sales=row["totalSales"], order_count=row["orderCount"])
        for row in rows
        if row.get("orderCount")
    ]
    return sorted(buckets, key=lambda b: b.bucket)


def shape_order_trends(rows: Iterable[dict]) -> List[OrderTrendBucket]:
    buckets = []
    for row in rows:
        statuses = sorted(
            (StatusCount(status=s["status"], count=s["count"]) for s in row.get("statuses", [])),
            key=lambda s: s.status,
        )
        if statuses:
            buckets.append(OrderTrendBucket(bucket=row["_id"], statuses=statuses))
    return sorted(buckets, key=lambda b: b.bucket)


def format_recent_shipment(shipment: dict, driver: Optional[dict], order: Optional[dict]) -> RecentShipment:
    driver = driver or {}
    order = order or {}
    return RecentShipment(
        id=str(shipment["_id"]),
        dispatcher_name=shipment.get("dispatcher_name"),
        driver_name=driver.get("full_name") or "Unassigned",
        driver_image=driver.get("profile_image"),
        driver_rating=driver.get("rating") or 0,
        items_no=shipment.get("items_no"),
        order_date=shipment.get("order_date"),
        dispatch_date=shipment.get("dispatch_date"),
        dispatch_location=shipment.get("dispatch_location"),
        quantity=shipment.get("quantity"),
        dispatch_status=shipment.get("dispatch_status"),
        order_number=order.get("order_number"),
        tracking_number=order.get("tracking_number"),
        customer_rating=shipment.get("customer_rating"),
        estimated_delivery_time=shipment.get("estimated_delivery_time"),
        actual_delivery_time=shipment.get("actual_delivery_time"),
    )


class DashboardService:
    """Read-only reporting over one dispatcher's orders and shipments."""

    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.settings = settings

    def _page_size(self, limit: Optional[int], default: int) -> int:
        if not limit:
            return default
        return max(1, min(limit, self.settings.MAX_PAGE_SIZE))

    def _lookup(self, collection: str, ids: Iterable[Any], projection: dict) -> Dict[ObjectId, dict]:
        ids = list({i for i in ids if isinstance(i, ObjectId)})
        if not ids:
            return {}
        return {doc["_id"]: doc for doc in self.db[collection].find({"_id": {"$in": ids}}, projection)}

    def get_stats(self, user_id: ObjectId) -> DashboardStats:
        rows = self.db[ORDERS].aggregate(status_breakdown_pipeline(user_id))
        stats = summarize_status_counts(rows)
        logger.info(f"Dashboard stats for {user_id}: {stats.total_dispatch_count} orders")
        return stats

    def get_sales_trend(self, user_id: ObjectId, period: Optional[str] = None, now: Optional[datetime] = None) -> SalesTrend:
        selected = resolve_period(period)
        if period and selected.value != period:
            logger.warning(f"Unknown sales period '{period}', using {selected.value}")

        cutoff = period_cutoff(selected, now or datetime.utcnow())
        bucket_operator = PERIOD_BUCKET_OPERATORS[selected]

        sales_rows = self.db[ORDERS].aggregate(sales_pipeline(user_id, cutoff, bucket_operator))
        trend_rows = self.db[ORDERS].aggregate(order_trend_pipeline(user_id, cutoff, bucket_operator))
        return SalesTrend(
            sales_data=shape_sales_data(sales_rows),
            order_trends=shape_order_trends(trend_rows),
            period=selected.value,
        )

    def get_recent_shipments(
        self, user_id: ObjectId, page: int = 1, limit: Optional[int] = None
    ) -> Tuple[List[RecentShipment], Dict[str, Any]]:
        limit = self._page_size(limit, self.settings.RECENT_SHIPMENTS_PAGE_SIZE)
        query = {"user": user_id}

        shipments = list(
            self.db[SHIPMENTS]
            .find(query)
            .sort("created_at", pymongo.DESCENDING)
            .skip(page_offset(page, limit))
            .limit(limit)
        )
        total = self.db[SHIPMENTS].count_documents(query)

        drivers = self._lookup(DRIVERS, (s.get("driver") for s in shipments), DRIVER_SUMMARY_PROJECTION)
        orders = self._lookup(
            ORDERS, (s.get("order") for s in shipments), {"order_number": 1, "tracking_number": 1}
        )
        formatted = [
            format_recent_shipment(s, drivers.get(s.get("driver")), orders.get(s.get("order")))
            for s in shipments
        ]
        return formatted, build_pagination(page, limit, total, len(formatted), "totalShipments")

    def get_dispatch_history(
        self,
        user_id: ObjectId,
        page: int = 1,
        limit: Optional[int] = None,
        status: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[OrderResponse], Dict[str, Any]]:
        limit = self._page_size(limit, self.settings.HISTORY_PAGE_SIZE)
        query = build_history_filter(user_id, status, start_date, end_date, search)

        orders = list(
            self.db[ORDERS]
            .find(query)
            .sort("created_at", pymongo.DESCENDING)
            .skip(page_offset(page, limit))
            .limit(limit)
        )
        total = self.db[ORDERS].count_documents(query)

        drivers = self._lookup(DRIVERS, (o.get("assigned_driver") for o in orders), DRIVER_SUMMARY_PROJECTION)
        for order in orders:
            driver_id = order.get("assigned_driver")
            if driver_id is not None:
                # A deleted driver populates as null
                order["assigned_driver"] = drivers.get(driver_id)

        results = [OrderResponse.model_validate(o) for o in orders]
        return results, build_pagination(page, limit, total, len(results), "totalOrders")

    def get_average_delivery_days(self, user_id: ObjectId) -> float:
        rows = list(self.db[ORDERS].aggregate(average_delivery_pipeline(user_id)))
        if not rows or rows[0].get("avgDays") is None:
            return 0
        return round(rows[0]["avgDays"], 1)

    def get_dispatcher_details(self, user_id: ObjectId) -> DispatcherDetails:
        user = self.db[USERS].find_one({"_id": user_id})
        if not user:
            raise NotFoundError("User not found")

        business = self.db[BUSINESSES].find_one({"user": user_id})
        if not business:
            logger.warning(f"Dispatcher details requested without business record: {user_id}")
            raise NotFoundError("Business information not found")

        stats = summarize_status_counts(self.db[ORDERS].aggregate(status_breakdown_pipeline(user_id)))
        total = stats.total_dispatch_count
        completed = stats.successful_dispatch_count

        return DispatcherDetails(
            personal_info=PersonalInfo(
                full_name=user["full_name"],
                email=user["email"],
                profile_image=user.get("profile_image"),
                about=user.get("about"),
                member_since=user.get("created_at"),
                last_login=user.get("last_login"),
            ),
            business_info=BusinessInfo(
                business_name=business["business_name"],
                business_email=business["business_email"],
                business_address=business.get("business_address"),
                business_hotline=business.get("business_hotline"),
                alternative_phone_number=business.get("alternative_phone_number"),
                cac_registration_number=business["cac_registration_number"],
                is_verified=business.get("is_verified", False),
                verification_status=business.get("verification_status", "pending"),
            ),
            performance_metrics=PerformanceMetrics(
                total_orders=total,
                completed_orders=completed,
                cancelled_orders=stats.cancelled_dispatch_count,
                completion_rate=percentage(completed, total),
                average_delivery_days=self.get_average_delivery_days(user_id),
                business_rating=business.get("rating", 0),
            ),
        )
