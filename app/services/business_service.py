# backend/app/services/business_service.py
# Business KYC and fleet registration persistence

import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from app.exceptions import BadRequestError, ConflictError, NotFoundError
from app.models.business import BusinessKYCRequest, BusinessUpdate, VehicleRegistration
from app.utils.constants import BUSINESSES, USERS, VEHICLES, VerificationStatus

logger = logging.getLogger(__name__)


def fleet_total(fleet: dict) -> int:
    """Total vehicles is derived from the per-type counts on every write."""
    return fleet.get("number_of_cars", 0) + fleet.get("number_of_bikes", 0) + fleet.get("number_of_vans", 0)


def get_business(db: Database, user_id: ObjectId) -> Optional[dict]:
    return db[BUSINESSES].find_one({"user": user_id})


def has_business(db: Database, user_id: ObjectId) -> bool:
    return db[BUSINESSES].count_documents({"user": user_id}, limit=1) > 0


def get_vehicles(db: Database, user_id: ObjectId) -> Optional[dict]:
    return db[VEHICLES].find_one({"user": user_id})


def has_vehicle(db: Database, user_id: ObjectId) -> bool:
    return db[VEHICLES].count_documents({"user": user_id}, limit=1) > 0


def create_business(
    db: Database,
    user_id: ObjectId,
    kyc: BusinessKYCRequest,
    proof_of_address: str,
    business_logo: Optional[str] = None,
) -> dict:
    """Store the KYC submission and flag the user's KYC step as complete."""
    if has_business(db, user_id):
        raise BadRequestError("Business KYC already submitted. Use the update endpoint to modify it.")

    now = datetime.utcnow()
    document = {
        "user": user_id,
        "business_name": kyc.business_name,
        "business_email": kyc.business_email,
        "business_address": kyc.address().model_dump(),
        "cac_registration_number": kyc.cac_registration_number,
        "proof_of_address": proof_of_address,
        "business_logo": business_logo,
        "business_hotline": kyc.business_hotline,
        "alternative_phone_number": kyc.alternative_phone_number,
        "want_sharperly_driver_orders": kyc.want_sharperly_driver_orders,
        "is_verified": False,
        "verification_status": VerificationStatus.PENDING.value,
        "total_orders": 0,
        "completed_orders": 0,
        "rating": 0,
        "created_at": now,
        "updated_at": now,
    }
    try:
        result = db[BUSINESSES].insert_one(document)
    except DuplicateKeyError as e:
        if "cac_registration_number" in str(e):
            raise ConflictError("CAC registration number already exists")
        raise BadRequestError("Business KYC already submitted. Use the update endpoint to modify it.")

    document["_id"] = result.inserted_id
    db[USERS].update_one({"_id": user_id}, {"$set": {"has_completed_kyc": True, "updated_at": now}})
    logger.info(f"Business {result.inserted_id} created for user {user_id}")
    return document


def update_business(
    db: Database,
    user_id: ObjectId,
    changes: BusinessUpdate,
    proof_of_address: Optional[str] = None,
    business_logo: Optional[str] = None,
) -> dict:
    business = get_business(db, user_id)
    if not business:
        raise NotFoundError("Business KYC not found")

    updates = changes.model_dump(exclude_none=True)
    if proof_of_address:
        updates["proof_of_address"] = proof_of_address
    if business_logo:
        updates["business_logo"] = business_logo
    updates["updated_at"] = datetime.utcnow()

    return db[BUSINESSES].find_one_and_update(
        {"_id": business["_id"]}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )


def register_vehicles(db: Database, user_id: ObjectId, fleet: VehicleRegistration) -> dict:
    """Create the single fleet record of a user; requires a completed KYC."""
    business = get_business(db, user_id)
    if not business:
        raise BadRequestError("Please complete business KYC first")
    if has_vehicle(db, user_id):
        raise BadRequestError("Vehicles already registered. Use update endpoint to modify.")

    now = datetime.utcnow()
    counts = fleet.model_dump()
    document = {
        "user": user_id,
        "business": business["_id"],
        **counts,
        "total_vehicles": fleet_total(counts),
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    result = db[VEHICLES].insert_one(document)
    document["_id"] = result.inserted_id
    db[USERS].update_one(
        {"_id": user_id}, {"$set": {"has_completed_vehicle_registration": True, "updated_at": now}}
    )
    logger.info(f"Registered {document['total_vehicles']} vehicles for user {user_id}")
    return document


def update_vehicles(db: Database, user_id: ObjectId, fleet: VehicleRegistration) -> dict:
    if not has_vehicle(db, user_id):
        raise NotFoundError("Vehicle registration not found")

    counts = fleet.model_dump()
    return db[VEHICLES].find_one_and_update(
        {"user": user_id},
        {"$set": {**counts, "total_vehicles": fleet_total(counts), "updated_at": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def mark_onboarding_complete(db: Database, user: dict):
    """Onboarding can only be completed after both KYC and vehicle registration."""
    if not user.get("has_completed_kyc") or not user.get("has_completed_vehicle_registration"):
        raise BadRequestError("Please complete KYC and vehicle registration first")
    db[USERS].update_one(
        {"_id": user["_id"]},
        {"$set": {"has_completed_onboarding": True, "updated_at": datetime.utcnow()}},
    )
    logger.info(f"User {user['_id']} completed onboarding")
