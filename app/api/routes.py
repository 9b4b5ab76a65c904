# backend/app/api/routes.py
# Aggregates every feature router under its path prefix

from fastapi import APIRouter

from app.routes import auth, business, dashboard, drivers, orders, shipments, users

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(business.router, prefix="/business", tags=["business"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
router.include_router(orders.router, prefix="/orders", tags=["orders"])
router.include_router(shipments.router, prefix="/shipments", tags=["shipments"])
router.include_router(drivers.router, prefix="/drivers", tags=["drivers"])
