# Database connection and index setup

import logging
from typing import Optional

import pymongo
from pymongo.database import Database

from app.config import get_settings
from app.utils.constants import BUSINESSES, DRIVERS, ORDERS, SHIPMENTS, USERS, VEHICLES

# Configure logging
logger = logging.getLogger(__name__)

_client: Optional[pymongo.MongoClient] = None


def get_client() -> pymongo.MongoClient:
    """Return the process-wide MongoClient; its connection pool is shared by all requests."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = pymongo.MongoClient(settings.MONGO_URI)
        logger.info("MongoDB client created")
    return _client


def get_database() -> Database:
    return get_client()[get_settings().MONGO_DB_NAME]


def get_db() -> Database:
    """FastAPI dependency returning the application database."""
    return get_database()


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("MongoDB client closed")


def setup_db_indexes(db: Database):
    """
    Set up the indexes the API relies on.
    Unique indexes back the email, registration number, order number and
    tracking number invariants. Safe to call on every startup.
    """
    try:
        db[USERS].create_index([("email", pymongo.ASCENDING)], unique=True, name="email_1")
        db[USERS].create_index([("google_id", pymongo.ASCENDING)], sparse=True, name="google_id_1")

        db[BUSINESSES].create_index([("user", pymongo.ASCENDING)], unique=True, name="user_1")
        db[BUSINESSES].create_index(
            [("cac_registration_number", pymongo.ASCENDING)], unique=True, name="cac_registration_number_1"
        )
        db[BUSINESSES].create_index([("verification_status", pymongo.ASCENDING)], name="verification_status_1")

        db[VEHICLES].create_index([("user", pymongo.ASCENDING)], unique=True, name="user_1")

        db[ORDERS].create_index([("order_number", pymongo.ASCENDING)], unique=True, name="order_number_1")
        db[ORDERS].create_index([("tracking_number", pymongo.ASCENDING)], unique=True, name="tracking_number_1")
        db[ORDERS].create_index(
            [("user", pymongo.ASCENDING), ("created_at", pymongo.DESCENDING)], name="user_1_created_at_-1"
        )
        db[ORDERS].create_index([("user", pymongo.ASCENDING), ("status", pymongo.ASCENDING)], name="user_1_status_1")
        db[ORDERS].create_index([("assigned_driver", pymongo.ASCENDING)], name="assigned_driver_1")

        db[SHIPMENTS].create_index(
            [("user", pymongo.ASCENDING), ("created_at", pymongo.DESCENDING)], name="user_1_created_at_-1"
        )
        db[SHIPMENTS].create_index([("order", pymongo.ASCENDING)], unique=True, name="order_1")

        db[DRIVERS].create_index([("email", pymongo.ASCENDING)], unique=True, name="email_1")
        db[DRIVERS].create_index([("license_number", pymongo.ASCENDING)], unique=True, name="license_number_1")
        db[DRIVERS].create_index(
            [("vehicle_details.plate_number", pymongo.ASCENDING)], unique=True, name="plate_number_1"
        )
        db[DRIVERS].create_index(
            [("is_available", pymongo.ASCENDING), ("vehicle_type", pymongo.ASCENDING)],
            name="is_available_1_vehicle_type_1",
        )

        logger.info("Database indexes set up successfully")
    except Exception as e:
        logger.error(f"Failed to set up database indexes: {e}")
        raise
