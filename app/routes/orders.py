# backend/app/routes/orders.py
# Order creation, status updates and driver assignment

import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from app.exceptions import BadRequestError, ServerError
from app.models.order import DriverAssignment, OrderCreate, OrderResponse, OrderStatusUpdate
from app.models.user import UserResponse
from app.services import business_service, order_service
from app.utils.auth import get_current_user, get_user_by_id
from app.utils.constants import OrderStatus
from app.utils.db_setup import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


def _order_json(order: dict) -> dict:
    return OrderResponse.model_validate(order).model_dump(by_alias=True, mode="json")


@router.post("", status_code=201)
def create_order(
    order: OrderCreate,
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Create a pending order for the signed-in dispatcher's business."""
    logger.info(f"Order creation by user {current_user.id}")
    try:
        user_id = ObjectId(current_user.id)
        business = business_service.get_business(db, user_id)
        if not business:
            raise BadRequestError("Please complete business KYC before creating orders")

        created = order_service.create_order(db, user_id, business, order)
        return {"success": True, "message": "Order created successfully", "order": _order_json(created)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating order: {str(e)}")
        raise ServerError("Failed to create order")


@router.get("")
def list_orders(
    status: Optional[OrderStatus] = None,
    limit: int = Query(50, ge=1, le=100),
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    try:
        orders = order_service.list_orders(
            db, ObjectId(current_user.id), status.value if status else None, limit
        )
        return {"success": True, "count": len(orders), "orders": [_order_json(o) for o in orders]}
    except Exception as e:
        logger.error(f"Error listing orders: {str(e)}")
        raise ServerError("Failed to fetch orders")


@router.get("/{order_id}")
def get_order(order_id: str, current_user: UserResponse = Depends(get_current_user), db: Database = Depends(get_db)):
    try:
        order = order_service.get_order(db, ObjectId(current_user.id), order_id)
        return {"success": True, "order": _order_json(order)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching order {order_id}: {str(e)}")
        raise ServerError("Failed to fetch order")


@router.put("/{order_id}/status")
def update_order_status(
    order_id: str,
    change: OrderStatusUpdate,
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    logger.info(f"Status change on order {order_id} to {change.status.value} by {current_user.id}")
    try:
        order = order_service.update_status(db, ObjectId(current_user.id), order_id, change)
        return {"success": True, "message": "Order status updated", "order": _order_json(order)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating order status: {str(e)}")
        raise ServerError("Failed to update order status")


@router.put("/{order_id}/assign")
def assign_driver(
    order_id: str,
    assignment: DriverAssignment,
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    logger.info(f"Driver {assignment.driver_id} assignment to order {order_id} by {current_user.id}")
    try:
        user = get_user_by_id(db, current_user.id)
        order = order_service.assign_driver(db, user, order_id, assignment)
        return {"success": True, "message": "Driver assigned successfully", "order": _order_json(order)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error assigning driver: {str(e)}")
        raise ServerError("Failed to assign driver")
