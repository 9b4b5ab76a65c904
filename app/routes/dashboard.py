# backend/app/routes/dashboard.py
# Dispatcher dashboard: stats, sales trend, recent shipments, history and profile summary

import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo.database import Database

from app.config import get_settings
from app.exceptions import BadRequestError, ServerError
from app.models.user import UserResponse
from app.services.dashboard_service import DashboardService
from app.utils.auth import get_current_user
from app.utils.constants import OrderStatus
from app.utils.db_setup import get_db

logger = logging.getLogger(__name__)

router = APIRouter()

HISTORY_STATUSES = {"all"} | {s.value for s in OrderStatus}


def get_dashboard_service(db: Database = Depends(get_db)) -> DashboardService:
    return DashboardService(db, get_settings())


def _dump(model) -> dict:
    return model.model_dump(by_alias=True, mode="json")


@router.get("/stats")
def get_stats(
    current_user: UserResponse = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Order counts by status, success rate and revenue from delivered orders."""
    logger.info(f"Dashboard stats requested by {current_user.id}")
    try:
        stats = service.get_stats(ObjectId(current_user.id))
        return {"success": True, "stats": _dump(stats)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching dashboard stats: {str(e)}")
        raise ServerError("Error fetching dashboard statistics")


@router.get("/dispatch-sales")
def get_dispatch_sales(
    period: Optional[str] = None,
    current_user: UserResponse = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Sales and order-status trend bucketed over the selected period."""
    logger.info(f"Dispatch sales requested by {current_user.id} for period {period}")
    try:
        trend = service.get_sales_trend(ObjectId(current_user.id), period)
        return {"success": True, **_dump(trend)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching dispatch sales: {str(e)}")
        raise ServerError("Error fetching sales data")


@router.get("/recent-shipments")
def get_recent_shipments(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    current_user: UserResponse = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    logger.info(f"Recent shipments requested by {current_user.id} (page {page})")
    try:
        shipments, pagination = service.get_recent_shipments(ObjectId(current_user.id), page, limit)
        return {"success": True, "shipments": [_dump(s) for s in shipments], "pagination": pagination}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching recent shipments: {str(e)}")
        raise ServerError("Error fetching recent shipments")


@router.get("/history")
def get_dispatch_history(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    status: Optional[str] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    search: Optional[str] = None,
    current_user: UserResponse = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Filtered, paginated order history, newest first."""
    logger.info(f"Dispatch history requested by {current_user.id} (page {page}, status {status})")
    try:
        if status and status not in HISTORY_STATUSES:
            raise BadRequestError(f"Invalid status filter: {status}")

        orders, pagination = service.get_dispatch_history(
            ObjectId(current_user.id),
            page=page,
            limit=limit,
            status=status,
            start_date=start_date,
            end_date=end_date,
            search=search,
        )
        return {"success": True, "orders": [_dump(o) for o in orders], "pagination": pagination}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching dispatch history: {str(e)}")
        raise ServerError("Error fetching dispatch history")


@router.get("/dispatcher-details")
def get_dispatcher_details(
    current_user: UserResponse = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    logger.info(f"Dispatcher details requested by {current_user.id}")
    try:
        details = service.get_dispatcher_details(ObjectId(current_user.id))
        return {"success": True, "dispatcher": _dump(details)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching dispatcher details: {str(e)}")
        raise ServerError("Error fetching dispatcher details")
