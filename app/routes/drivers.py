# backend/app/routes/drivers.py
# Driver availability lookup

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from app.exceptions import ServerError
from app.models.order import DriverResponse
from app.models.user import UserResponse
from app.services import order_service
from app.utils.auth import get_current_user
from app.utils.constants import VehicleType
from app.utils.db_setup import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def list_available_drivers(
    vehicle_type: Optional[VehicleType] = Query(None, alias="vehicleType"),
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Active drivers that are free to take an order, best rated first."""
    try:
        drivers = order_service.list_available_drivers(db, vehicle_type.value if vehicle_type else None)
        return {
            "success": True,
            "count": len(drivers),
            "drivers": [DriverResponse.model_validate(d).model_dump(by_alias=True, mode="json") for d in drivers],
        }
    except Exception as e:
        logger.error(f"Error listing drivers: {str(e)}")
        raise ServerError("Failed to fetch drivers")
