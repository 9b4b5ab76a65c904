# backend/app/services/order_service.py
# Order creation, status transitions and driver assignment

import logging
import secrets
import string
import time
from datetime import datetime
from typing import List, Optional

import pymongo
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database

from app.exceptions import BadRequestError, NotFoundError
from app.models.order import DriverAssignment, OrderCreate, OrderStatusUpdate, ShipmentRating
from app.utils.constants import (
    BUSINESSES,
    DRIVERS,
    ORDER_TRANSITIONS,
    ORDERS,
    SHIPMENTS,
    DispatchStatus,
    OrderStatus,
)
from app.utils.validators import validate_object_id

logger = logging.getLogger(__name__)

TRACKING_ALPHABET = string.ascii_uppercase + string.digits

# Shipment dispatch status mirrored from the order status
DISPATCH_STATUS_FOR_ORDER = {
    OrderStatus.ASSIGNED: DispatchStatus.DISPATCHED,
    OrderStatus.IN_TRANSIT: DispatchStatus.IN_TRANSIT,
    OrderStatus.DELIVERED: DispatchStatus.DELIVERED,
    OrderStatus.CANCELLED: DispatchStatus.CANCELLED,
}


def generate_order_number(existing_count: int, now_ms: Optional[int] = None) -> str:
    """SHP + epoch milliseconds + running count padded to four digits."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"SHP{now_ms}{existing_count + 1:04d}"


def generate_tracking_number(now_ms: Optional[int] = None) -> str:
    """TRK + epoch milliseconds + six random uppercase alphanumerics."""
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(6))
    return f"TRK{now_ms}{suffix}"


def can_transition(current: str, target: str) -> bool:
    return OrderStatus(target) in ORDER_TRANSITIONS[OrderStatus(current)]


def _object_id(value: str, label: str) -> ObjectId:
    if not validate_object_id(value):
        raise NotFoundError(f"{label} not found")
    return ObjectId(value)


def create_order(db: Database, user_id: ObjectId, business: dict, order: OrderCreate) -> dict:
    """Insert a pending order. Order and tracking numbers are assigned here and never change."""
    now = datetime.utcnow()
    now_ms = int(time.time() * 1000)
    document = {
        "user": user_id,
        "business": business["_id"],
        "order_number": generate_order_number(db[ORDERS].estimated_document_count(), now_ms),
        "tracking_number": generate_tracking_number(now_ms),
        **order.model_dump(mode="python", exclude_none=True),
        "order_date": now,
        "assigned_driver": None,
        "status": OrderStatus.PENDING.value,
        "status_history": [{"status": OrderStatus.PENDING.value, "timestamp": now}],
        "created_at": now,
        "updated_at": now,
    }
    document["vehicle_type"] = order.vehicle_type.value

    result = db[ORDERS].insert_one(document)
    document["_id"] = result.inserted_id
    db[BUSINESSES].update_one({"_id": business["_id"]}, {"$inc": {"total_orders": 1}})
    logger.info(f"Created order {document['order_number']} for user {user_id}")
    return document


def list_orders(db: Database, user_id: ObjectId, status: Optional[str] = None, limit: int = 50) -> List[dict]:
    query = {"user": user_id}
    if status and status != "all":
        query["status"] = status
    return list(db[ORDERS].find(query).sort("created_at", pymongo.DESCENDING).limit(limit))


def get_order(db: Database, user_id: ObjectId, order_id: str) -> dict:
    order = db[ORDERS].find_one({"_id": _object_id(order_id, "Order"), "user": user_id})
    if not order:
        raise NotFoundError("Order not found")
    return order


def update_status(db: Database, user_id: ObjectId, order_id: str, change: OrderStatusUpdate) -> dict:
    """Move an order forward through its lifecycle and append to its history."""
    order = get_order(db, user_id, order_id)
    target = change.status
    if not can_transition(order["status"], target.value):
        raise BadRequestError(f"Cannot change order status from {order['status']} to {target.value}")
    if target == OrderStatus.ASSIGNED and not order.get("assigned_driver"):
        raise BadRequestError("Assign a driver to move an order to assigned")

    now = datetime.utcnow()
    updates = {"status": target.value, "updated_at": now}
    if target == OrderStatus.IN_TRANSIT:
        updates["actual_dispatch_date"] = now
    if target == OrderStatus.DELIVERED:
        updates["actual_delivery_date"] = now
        if change.actual_cost is not None:
            updates["actual_cost"] = change.actual_cost

    entry = {"status": target.value, "timestamp": now}
    if change.notes:
        entry["notes"] = change.notes

    updated = db[ORDERS].find_one_and_update(
        {"_id": order["_id"], "status": order["status"]},
        {"$set": updates, "$push": {"status_history": entry}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise BadRequestError("Order status changed concurrently, please retry")

    _sync_shipment(db, updated, target, now)
    logger.info(f"Order {order['order_number']} moved {order['status']} -> {target.value}")
    return updated


def _sync_shipment(db: Database, order: dict, status: OrderStatus, now: datetime):
    dispatch_status = DISPATCH_STATUS_FOR_ORDER.get(status)
    if not dispatch_status or not order.get("assigned_driver"):
        return

    updates = {"dispatch_status": dispatch_status.value, "updated_at": now}
    if status == OrderStatus.DELIVERED:
        updates["actual_delivery_time"] = now
    db[SHIPMENTS].update_one(
        {"order": order["_id"]},
        {"$set": updates, "$push": {"tracking_updates": {"status": dispatch_status.value, "timestamp": now}}},
    )

    driver_updates = {}
    if status == OrderStatus.DELIVERED:
        driver_updates = {"$inc": {"completed_deliveries": 1}}
    elif status == OrderStatus.CANCELLED:
        driver_updates = {"$inc": {"cancelled_deliveries": 1}}
    if status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
        driver_updates["$set"] = {"is_available": True, "current_order": None}
        db[DRIVERS].update_one({"_id": order["assigned_driver"]}, driver_updates)
        if status == OrderStatus.DELIVERED:
            db[BUSINESSES].update_one({"_id": order["business"]}, {"$inc": {"completed_orders": 1}})


def assign_driver(
    db: Database, user: dict, order_id: str, assignment: DriverAssignment
) -> dict:
    """Assign an available driver to a pending order and open its shipment."""
    order = get_order(db, user["_id"], order_id)
    if order["status"] != OrderStatus.PENDING.value:
        raise BadRequestError("Only pending orders can be assigned a driver")

    now = datetime.utcnow()
    driver = db[DRIVERS].find_one_and_update(
        {
            "_id": _object_id(assignment.driver_id, "Driver"),
            "is_available": True,
            "is_active": True,
        },
        {"$set": {"is_available": False, "current_order": order["_id"]}, "$inc": {"total_deliveries": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if not driver:
        raise BadRequestError("Driver is not available")

    updated = db[ORDERS].find_one_and_update(
        {"_id": order["_id"], "status": OrderStatus.PENDING.value},
        {
            "$set": {"assigned_driver": driver["_id"], "status": OrderStatus.ASSIGNED.value, "updated_at": now},
            "$push": {"status_history": {"status": OrderStatus.ASSIGNED.value, "timestamp": now}},
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        db[DRIVERS].update_one(
            {"_id": driver["_id"]},
            {"$set": {"is_available": True, "current_order": None}, "$inc": {"total_deliveries": -1}},
        )
        raise BadRequestError("Order status changed concurrently, please retry")

    db[SHIPMENTS].insert_one(
        {
            "order": order["_id"],
            "user": user["_id"],
            "driver": driver["_id"],
            "dispatcher_name": user["full_name"],
            "items_no": order["items_count"],
            "order_date": order.get("order_date") or order["created_at"],
            "dispatch_date": now,
            "dispatch_location": assignment.dispatch_location or order["pickup_location"]["address"],
            "quantity": order["quantity"],
            "dispatch_status": DispatchStatus.DISPATCHED.value,
            "delivery_location": order["delivery_location"]["address"],
            "estimated_delivery_time": assignment.estimated_delivery_time,
            "tracking_updates": [{"status": DispatchStatus.DISPATCHED.value, "timestamp": now}],
            "created_at": now,
            "updated_at": now,
        }
    )
    logger.info(f"Driver {driver['_id']} assigned to order {order['order_number']}")
    return updated


def list_shipments(db: Database, user_id: ObjectId, limit: int = 50) -> List[dict]:
    return list(db[SHIPMENTS].find({"user": user_id}).sort("created_at", pymongo.DESCENDING).limit(limit))


def rate_shipment(db: Database, user_id: ObjectId, shipment_id: str, rating: ShipmentRating) -> dict:
    """Reviews are only accepted once a shipment is delivered."""
    shipment = db[SHIPMENTS].find_one({"_id": _object_id(shipment_id, "Shipment"), "user": user_id})
    if not shipment:
        raise NotFoundError("Shipment not found")
    if shipment["dispatch_status"] != DispatchStatus.DELIVERED.value:
        raise BadRequestError("Only delivered shipments can be rated")

    return db[SHIPMENTS].find_one_and_update(
        {"_id": shipment["_id"]},
        {"$set": {**rating.model_dump(exclude_none=True), "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def list_available_drivers(db: Database, vehicle_type: Optional[str] = None) -> List[dict]:
    query = {"is_available": True, "is_active": True}
    if vehicle_type:
        query["vehicle_type"] = vehicle_type
    return list(db[DRIVERS].find(query).sort("rating", pymongo.DESCENDING))
