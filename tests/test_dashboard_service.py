# backend/tests/test_dashboard_service.py
# Unit tests for the dashboard aggregations

from datetime import datetime

import pytest
from bson import ObjectId

from app.exceptions import NotFoundError
from app.services.dashboard_service import (
    DashboardService,
    average_delivery_pipeline,
    order_trend_pipeline,
    percentage,
    period_cutoff,
    resolve_period,
    sales_pipeline,
    shape_order_trends,
    status_breakdown_pipeline,
    summarize_status_counts,
)
from app.utils.constants import MS_PER_DAY, SalesPeriod


def make_order(user_id, status="pending", **overrides):
    order = {
        "_id": ObjectId(),
        "user": user_id,
        "business": ObjectId(),
        "order_number": "SHP17000000000000001",
        "tracking_number": "TRK1700000000000ABC123",
        "items_count": 2,
        "description": "Two boxes of books",
        "quantity": 2,
        "pickup_location": {"address": "12 Marina Road, Lagos"},
        "delivery_location": {"address": "4 Ring Road, Ibadan"},
        "requested_delivery_date": datetime(2024, 3, 12),
        "vehicle_type": "van",
        "status": status,
        "estimated_cost": 4500,
        "assigned_driver": None,
        "created_at": datetime(2024, 3, 10),
    }
    order.update(overrides)
    return order


@pytest.fixture
def service(db, settings):
    return DashboardService(db, settings)


def test_percentage():
    assert percentage(1, 3) == 33.33
    assert percentage(2, 2) == 100
    assert percentage(5, 0) == 0


def test_resolve_period_falls_back_to_seven_days():
    assert resolve_period("30days") == SalesPeriod.LAST_30_DAYS
    assert resolve_period("fortnight") == SalesPeriod.LAST_7_DAYS
    assert resolve_period(None) == SalesPeriod.LAST_7_DAYS


def test_period_cutoff():
    now = datetime(2024, 3, 10, 12, 0)
    assert period_cutoff(SalesPeriod.LAST_24_HOURS, now) == datetime(2024, 3, 9, 12, 0)
    assert period_cutoff(SalesPeriod.LAST_7_DAYS, now) == datetime(2024, 3, 3, 12, 0)
    assert period_cutoff(SalesPeriod.LAST_30_DAYS, now) == datetime(2024, 2, 9, 12, 0)
    assert period_cutoff(SalesPeriod.LAST_12_MONTHS, now) == datetime(2023, 3, 10, 12, 0)
    assert period_cutoff(SalesPeriod.LAST_12_MONTHS, datetime(2024, 2, 29)) == datetime(2023, 2, 28)


def test_summarize_status_counts_without_orders():
    stats = summarize_status_counts([])
    assert stats.total_dispatch_count == 0
    assert stats.success_rate == 0
    assert stats.total_revenue == 0


def test_get_stats_three_orders(service, collections, user_id):
    collections["orders"].aggregate.return_value = iter(
        [
            {"_id": "delivered", "count": 1, "revenue": 5000},
            {"_id": "pending", "count": 1, "revenue": 0},
            {"_id": "in_transit", "count": 1, "revenue": 0},
        ]
    )

    stats = service.get_stats(user_id)

    assert stats.model_dump() == {
        "total_dispatch_count": 3,
        "active_dispatch_count": 1,
        "pending_dispatch_count": 1,
        "successful_dispatch_count": 1,
        "cancelled_dispatch_count": 0,
        "success_rate": 33.33,
        "total_revenue": 5000,
    }
    assert collections["orders"].aggregate.call_args[0][0] == [
        {"$match": {"user": user_id}},
        {"$group": {"_id": "$status", "count": {"$sum": 1}, "revenue": {"$sum": "$actual_cost"}}},
    ]


def test_delivered_order_without_cost_counts_but_earns_nothing(service, collections, user_id):
    # $sum over a missing actual_cost contributes 0 to the delivered revenue
    collections["orders"].aggregate.return_value = iter([{"_id": "delivered", "count": 2, "revenue": 5000}])

    stats = service.get_stats(user_id)

    assert stats.successful_dispatch_count == 2
    assert stats.success_rate == 100
    assert stats.total_revenue == 5000


def test_sales_pipeline_stages(user_id):
    cutoff = datetime(2024, 3, 3, 12, 0)

    assert sales_pipeline(user_id, cutoff, "$hour") == [
        {
            "$match": {
                "user": user_id,
                "created_at": {"$gte": cutoff},
                "status": "delivered",
                "actual_cost": {"$ne": None},
            }
        },
        {"$group": {"_id": {"$hour": "$created_at"}, "totalSales": {"$sum": "$actual_cost"}, "orderCount": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]


def test_order_trend_pipeline_regroups_statuses_per_bucket(user_id):
    cutoff = datetime(2024, 2, 9)

    assert order_trend_pipeline(user_id, cutoff, "$dayOfMonth") == [
        {"$match": {"user": user_id, "created_at": {"$gte": cutoff}}},
        {"$group": {"_id": {"bucket": {"$dayOfMonth": "$created_at"}, "status": "$status"}, "count": {"$sum": 1}}},
        {"$group": {"_id": "$_id.bucket", "statuses": {"$push": {"status": "$_id.status", "count": "$count"}}}},
        {"$sort": {"_id": 1}},
    ]


def test_status_breakdown_pipeline_covers_every_status(user_id):
    assert status_breakdown_pipeline(user_id) == [
        {"$match": {"user": user_id}},
        {"$group": {"_id": "$status", "count": {"$sum": 1}, "revenue": {"$sum": "$actual_cost"}}},
    ]


def test_average_delivery_pipeline_measures_whole_days(user_id):
    assert MS_PER_DAY == 86_400_000
    assert average_delivery_pipeline(user_id) == [
        {
            "$match": {
                "user": user_id,
                "status": "delivered",
                "actual_delivery_date": {"$ne": None},
                "created_at": {"$ne": None},
            }
        },
        {"$project": {"deliveryDays": {"$divide": [{"$subtract": ["$actual_delivery_date", "$created_at"]}, MS_PER_DAY]}}},
        {"$group": {"_id": None, "avgDays": {"$avg": "$deliveryDays"}}},
    ]


def test_sales_trend_runs_both_pipelines_with_one_cutoff(service, collections, user_id):
    collections["orders"].aggregate.side_effect = [iter([]), iter([])]
    now = datetime(2024, 3, 10, 12, 0)

    service.get_sales_trend(user_id, "24hours", now=now)

    calls = collections["orders"].aggregate.call_args_list
    cutoff = datetime(2024, 3, 9, 12, 0)
    assert calls[0][0][0] == sales_pipeline(user_id, cutoff, "$hour")
    assert calls[1][0][0] == order_trend_pipeline(user_id, cutoff, "$hour")


def test_revenue_only_counts_delivered_orders(service, collections, user_id):
    collections["orders"].aggregate.return_value = iter(
        [
            {"_id": "delivered", "count": 2, "revenue": 800},
            {"_id": "in_transit", "count": 1, "revenue": 300},
            {"_id": "assigned", "count": 1, "revenue": None},
        ]
    )

    stats = service.get_stats(user_id)

    assert stats.total_revenue == 800
    assert stats.active_dispatch_count == 2
    assert stats.success_rate == 50


def test_sales_trend_unknown_period(service, collections, user_id):
    collections["orders"].aggregate.side_effect = [
        iter([{"_id": 5, "totalSales": 300, "orderCount": 2}]),
        iter([{"_id": 5, "statuses": [{"status": "pending", "count": 1}, {"status": "delivered", "count": 2}]}]),
    ]
    now = datetime(2024, 3, 10, 12, 0)

    trend = service.get_sales_trend(user_id, "fortnight", now=now)

    assert trend.period == "7days"
    assert trend.sales_data[0].bucket == 5
    assert trend.sales_data[0].total_sales == 300
    assert [s.status for s in trend.order_trends[0].statuses] == ["delivered", "pending"]

    sales_pipeline = collections["orders"].aggregate.call_args_list[0][0][0]
    match = sales_pipeline[0]["$match"]
    assert match["created_at"] == {"$gte": datetime(2024, 3, 3, 12, 0)}
    assert match["status"] == "delivered"
    assert sales_pipeline[1]["$group"]["_id"] == {"$dayOfWeek": "$created_at"}


def test_sales_trend_twelve_months_groups_by_month(service, collections, user_id):
    collections["orders"].aggregate.side_effect = [iter([]), iter([])]

    trend = service.get_sales_trend(user_id, "12months", now=datetime(2024, 3, 10))

    assert trend.period == "12months"
    assert trend.sales_data == []
    assert trend.order_trends == []
    sales_pipeline = collections["orders"].aggregate.call_args_list[0][0][0]
    assert sales_pipeline[1]["$group"]["_id"] == {"$month": "$created_at"}


def test_shape_order_trends_drops_empty_buckets():
    rows = [{"_id": 3, "statuses": []}, {"_id": 1, "statuses": [{"status": "pending", "count": 4}]}]
    trends = shape_order_trends(rows)
    assert [t.bucket for t in trends] == [1]


def test_recent_shipments(service, collections, user_id, make_cursor):
    driver_id, order_id = ObjectId(), ObjectId()
    shipments = [
        {
            "_id": ObjectId(),
            "user": user_id,
            "driver": driver_id,
            "order": order_id,
            "dispatcher_name": "Ada Dispatcher",
            "items_no": 3,
            "quantity": 3,
            "dispatch_status": "in_transit",
        },
        {"_id": ObjectId(), "user": user_id, "driver": ObjectId(), "dispatch_status": "dispatched"},
    ]
    collections["shipments"].find.return_value = make_cursor(shipments)
    collections["shipments"].count_documents.return_value = 12
    collections["drivers"].find.return_value = [
        {"_id": driver_id, "full_name": "Tunde Driver", "profile_image": "https://img/t.png", "rating": 4.5}
    ]
    collections["orders"].find.return_value = [
        {"_id": order_id, "order_number": "SHP1", "tracking_number": "TRK1"}
    ]

    results, pagination = service.get_recent_shipments(user_id, page=1)

    assert results[0].driver_name == "Tunde Driver"
    assert results[0].driver_rating == 4.5
    assert results[0].order_number == "SHP1"
    assert results[1].driver_name == "Unassigned"
    assert results[1].driver_rating == 0
    assert pagination == {
        "currentPage": 1,
        "totalPages": 2,
        "totalShipments": 12,
        "hasNext": True,
        "hasPrev": False,
    }
    collections["shipments"].find.return_value.limit.assert_called_once_with(10)


def test_history_filters_by_status_and_search(service, collections, user_id, make_cursor):
    delivered = make_order(user_id, "delivered", actual_cost=5000)
    collections["orders"].find.return_value = make_cursor([delivered])
    collections["orders"].count_documents.return_value = 1

    orders, pagination = service.get_dispatch_history(user_id, status="delivered", search="Lagos")

    query = collections["orders"].find.call_args[0][0]
    assert query["user"] == user_id
    assert query["status"] == "delivered"
    assert {"pickup_location.address": {"$regex": "Lagos", "$options": "i"}} in query["$or"]
    assert len(query["$or"]) == 4
    assert orders[0].order_number == delivered["order_number"]
    assert pagination["totalOrders"] == 1
    assert pagination["hasNext"] is False


def test_history_search_is_literal(service, collections, user_id, make_cursor):
    collections["orders"].find.return_value = make_cursor([])
    collections["orders"].count_documents.return_value = 0

    service.get_dispatch_history(user_id, status="all", search="SHP(1")

    query = collections["orders"].find.call_args[0][0]
    assert "status" not in query
    assert query["$or"][0] == {"order_number": {"$regex": r"SHP\(1", "$options": "i"}}


def test_history_deleted_driver_populates_as_null(service, collections, user_id, make_cursor):
    kept, gone = ObjectId(), ObjectId()
    orders = [
        make_order(user_id, "assigned", assigned_driver=kept),
        make_order(user_id, "assigned", assigned_driver=gone),
    ]
    collections["orders"].find.return_value = make_cursor(orders)
    collections["orders"].count_documents.return_value = 2
    collections["drivers"].find.return_value = [{"_id": kept, "full_name": "Tunde Driver", "rating": 4}]

    results, _ = service.get_dispatch_history(user_id)

    assert results[0].assigned_driver.full_name == "Tunde Driver"
    assert results[1].assigned_driver is None


def test_history_page_size_is_capped(service, collections, user_id, make_cursor):
    collections["orders"].find.return_value = make_cursor([])
    collections["orders"].count_documents.return_value = 0

    _, pagination = service.get_dispatch_history(user_id, page=3, limit=500)

    cursor = collections["orders"].find.return_value
    cursor.skip.assert_called_once_with(200)
    cursor.limit.assert_called_once_with(100)
    assert pagination["hasPrev"] is True
    assert pagination["totalPages"] == 0


def test_dispatcher_details_without_business(service, collections, user_id, user_doc):
    collections["users"].find_one.return_value = user_doc
    collections["businesses"].find_one.return_value = None

    with pytest.raises(NotFoundError) as excinfo:
        service.get_dispatcher_details(user_id)

    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == "Business information not found"
    collections["orders"].aggregate.assert_not_called()


def test_dispatcher_details(service, collections, user_id, user_doc):
    collections["users"].find_one.return_value = user_doc
    collections["businesses"].find_one.return_value = {
        "_id": ObjectId(),
        "user": user_id,
        "business_name": "Ada Logistics",
        "business_email": "hello@ada.ng",
        "business_address": {"street": "12 Marina Road", "city": "Lagos", "state": "Lagos"},
        "business_hotline": "+2348012345678",
        "cac_registration_number": "RC123456",
        "verification_status": "approved",
        "is_verified": True,
        "rating": 4.2,
    }
    collections["orders"].aggregate.side_effect = [
        iter([{"_id": "delivered", "count": 3, "revenue": 900}, {"_id": "cancelled", "count": 1, "revenue": 0}]),
        iter([{"_id": None, "avgDays": 2.345}]),
    ]

    details = service.get_dispatcher_details(user_id)

    assert details.personal_info.full_name == "Ada Dispatcher"
    assert details.personal_info.member_since == datetime(2024, 1, 1)
    assert details.business_info.business_address.city == "Lagos"
    assert details.performance_metrics.total_orders == 4
    assert details.performance_metrics.completed_orders == 3
    assert details.performance_metrics.cancelled_orders == 1
    assert details.performance_metrics.completion_rate == 75
    assert details.performance_metrics.average_delivery_days == 2.3
    assert details.performance_metrics.business_rating == 4.2


def test_average_delivery_days_without_deliveries(service, collections, user_id):
    collections["orders"].aggregate.return_value = iter([])
    assert service.get_average_delivery_days(user_id) == 0
