# backend/app/routes/shipments.py
# Shipment listing and customer ratings

import logging

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from app.exceptions import ServerError
from app.models.order import ShipmentRating, ShipmentResponse
from app.models.user import UserResponse
from app.services import order_service
from app.utils.auth import get_current_user
from app.utils.db_setup import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


def _shipment_json(shipment: dict) -> dict:
    return ShipmentResponse.model_validate(shipment).model_dump(by_alias=True, mode="json")


@router.get("")
def list_shipments(
    limit: int = Query(50, ge=1, le=100),
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    try:
        shipments = order_service.list_shipments(db, ObjectId(current_user.id), limit)
        return {"success": True, "count": len(shipments), "shipments": [_shipment_json(s) for s in shipments]}
    except Exception as e:
        logger.error(f"Error listing shipments: {str(e)}")
        raise ServerError("Failed to fetch shipments")


@router.put("/{shipment_id}/rating")
def rate_shipment(
    shipment_id: str,
    rating: ShipmentRating,
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Attach the customer's rating and review to a delivered shipment."""
    logger.info(f"Rating for shipment {shipment_id} by {current_user.id}")
    try:
        shipment = order_service.rate_shipment(db, ObjectId(current_user.id), shipment_id, rating)
        return {"success": True, "message": "Rating submitted", "shipment": _shipment_json(shipment)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error rating shipment: {str(e)}")
        raise ServerError("Failed to submit rating")
