# backend/app/routes/business.py
# Business KYC and vehicle registration routes

import json
import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError
from pymongo.database import Database

from app.config import get_settings
from app.exceptions import BadRequestError, NotFoundError, ServerError, ValidationFailedError, format_validation_errors
from app.models.business import (
    BusinessKYCBase64Request,
    BusinessKYCRequest,
    BusinessResponse,
    BusinessUpdate,
    VehicleRegistration,
    VehicleResponse,
)
from app.models.user import UserResponse
from app.services import business_service
from app.utils.auth import get_current_user, get_user_by_id
from app.utils.constants import BUSINESS_LOGO_FOLDER, PROOF_OF_ADDRESS_FOLDER
from app.utils.db_setup import get_db
from app.utils.file_handler import decode_base64_file, store_upload
from app.utils.validators import validate_document_type, validate_image_type

logger = logging.getLogger(__name__)

router = APIRouter()

DOCUMENT_TYPE_MESSAGE = "Proof of address must be an image, PDF or document"
LOGO_TYPE_MESSAGE = "Business logo must be an image file"


def _business_json(business: dict) -> dict:
    return BusinessResponse.model_validate(business).model_dump(by_alias=True, mode="json")


def _vehicle_json(vehicles: dict, business_name: Optional[str] = None) -> dict:
    if business_name:
        vehicles = {**vehicles, "business_name": business_name}
    return VehicleResponse.model_validate(vehicles).model_dump(by_alias=True, mode="json")


def _store_proof(content: bytes, content_type: Optional[str]) -> str:
    return store_upload(
        "proofOfAddress",
        content,
        content_type,
        PROOF_OF_ADDRESS_FOLDER,
        get_settings().MAX_FILE_SIZE,
        validate_document_type,
        DOCUMENT_TYPE_MESSAGE,
    )


def _store_logo(content: bytes, content_type: Optional[str]) -> str:
    return store_upload(
        "businessLogo",
        content,
        content_type,
        BUSINESS_LOGO_FOLDER,
        get_settings().MAX_FILE_SIZE,
        validate_image_type,
        LOGO_TYPE_MESSAGE,
    )


def _decode(field: str, data: str, default_type: str):
    try:
        return decode_base64_file(data, default_type)
    except ValueError as e:
        raise ValidationFailedError([{"field": field, "message": str(e)}])


@router.post("/kyc", status_code=201)
def submit_kyc(
    business_name: str = Form(..., alias="businessName"),
    business_email: str = Form(..., alias="businessEmail"),
    street_address: str = Form(..., alias="streetAddress"),
    city: str = Form(...),
    state: str = Form(...),
    country: str = Form("Nigeria"),
    zip_code: Optional[str] = Form(None, alias="zipCode"),
    cac_registration_number: str = Form(..., alias="cacRegistrationNumber"),
    business_hotline: str = Form(..., alias="businessHotline"),
    alternative_phone_number: Optional[str] = Form(None, alias="alternativePhoneNumber"),
    want_sharperly_driver_orders: bool = Form(False, alias="wantSharperlyDriverOrders"),
    proof_of_address: Optional[UploadFile] = File(None, alias="proofOfAddress"),
    business_logo: Optional[UploadFile] = File(None, alias="businessLogo"),
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Submit business KYC as multipart form data."""
    logger.info(f"KYC submission (multipart) by user {current_user.id}")
    try:
        try:
            kyc = BusinessKYCRequest(
                business_name=business_name,
                business_email=business_email,
                street_address=street_address,
                city=city,
                state=state,
                country=country,
                zip_code=zip_code,
                cac_registration_number=cac_registration_number,
                business_hotline=business_hotline,
                alternative_phone_number=alternative_phone_number,
                want_sharperly_driver_orders=want_sharperly_driver_orders,
            )
        except ValidationError as e:
            raise ValidationFailedError(format_validation_errors(e.errors()))

        if proof_of_address is None:
            raise ValidationFailedError([{"field": "proofOfAddress", "message": "Proof of address is required"}])

        user_id = ObjectId(current_user.id)
        if business_service.has_business(db, user_id):
            raise BadRequestError("Business KYC already submitted. Use the update endpoint to modify it.")
        proof_url = _store_proof(proof_of_address.file.read(), proof_of_address.content_type)
        logo_url = None
        if business_logo is not None:
            logo_url = _store_logo(business_logo.file.read(), business_logo.content_type)

        business = business_service.create_business(db, user_id, kyc, proof_url, logo_url)
        return {"success": True, "message": "Business KYC submitted successfully", "business": _business_json(business)}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error submitting KYC: {str(e)}")
        raise ServerError("Failed to submit business KYC")


@router.post("/kyc/base64", status_code=201)
def submit_kyc_base64(
    kyc: BusinessKYCBase64Request,
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Submit business KYC as JSON with base64 (or data URI) documents."""
    logger.info(f"KYC submission (base64) by user {current_user.id}")
    try:
        user_id = ObjectId(current_user.id)
        if business_service.has_business(db, user_id):
            raise BadRequestError("Business KYC already submitted. Use the update endpoint to modify it.")

        proof_content, proof_type = _decode("proofOfAddress", kyc.proof_of_address, "application/pdf")
        logo = _decode("businessLogo", kyc.business_logo, "image/png") if kyc.business_logo else None

        proof_url = _store_proof(proof_content, proof_type)
        logo_url = _store_logo(*logo) if logo else None

        business = business_service.create_business(db, user_id, kyc, proof_url, logo_url)
        return {"success": True, "message": "Business KYC submitted successfully", "business": _business_json(business)}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error submitting base64 KYC: {str(e)}")
        raise ServerError("Failed to submit business KYC")


@router.get("/kyc")
def get_kyc(current_user: UserResponse = Depends(get_current_user), db: Database = Depends(get_db)):
    try:
        business = business_service.get_business(db, ObjectId(current_user.id))
        if not business:
            raise NotFoundError("Business KYC not found")
        return {"success": True, "business": _business_json(business)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching KYC: {str(e)}")
        raise ServerError()


@router.put("/kyc")
def update_kyc(
    business_name: Optional[str] = Form(None, alias="businessName"),
    business_email: Optional[str] = Form(None, alias="businessEmail"),
    business_address: Optional[str] = Form(None, alias="businessAddress"),
    business_hotline: Optional[str] = Form(None, alias="businessHotline"),
    alternative_phone_number: Optional[str] = Form(None, alias="alternativePhoneNumber"),
    want_sharperly_driver_orders: Optional[bool] = Form(None, alias="wantSharperlyDriverOrders"),
    proof_of_address: Optional[UploadFile] = File(None, alias="proofOfAddress"),
    business_logo: Optional[UploadFile] = File(None, alias="businessLogo"),
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    """Update KYC fields from multipart form data, optionally replacing the documents."""
    logger.info(f"KYC update by user {current_user.id}")
    try:
        fields = {
            "business_name": business_name,
            "business_email": business_email,
            "business_hotline": business_hotline,
            "alternative_phone_number": alternative_phone_number,
            "want_sharperly_driver_orders": want_sharperly_driver_orders,
        }
        if business_address is not None:
            try:
                fields["business_address"] = json.loads(business_address)
            except ValueError:
                raise ValidationFailedError(
                    [{"field": "businessAddress", "message": "Business address must be a JSON object"}]
                )
        try:
            changes = BusinessUpdate.model_validate({k: v for k, v in fields.items() if v is not None})
        except ValidationError as e:
            raise ValidationFailedError(format_validation_errors(e.errors()))

        user_id = ObjectId(current_user.id)
        if not business_service.has_business(db, user_id):
            raise NotFoundError("Business KYC not found")

        proof_url = None
        if proof_of_address is not None:
            proof_url = _store_proof(proof_of_address.file.read(), proof_of_address.content_type)
        logo_url = None
        if business_logo is not None:
            logo_url = _store_logo(business_logo.file.read(), business_logo.content_type)

        business = business_service.update_business(db, user_id, changes, proof_url, logo_url)
        return {"success": True, "message": "Business KYC updated successfully", "business": _business_json(business)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating KYC: {str(e)}")
        raise ServerError("Failed to update business KYC")


@router.post("/vehicles", status_code=201)
def register_vehicles(
    fleet: VehicleRegistration,
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    logger.info(f"Vehicle registration by user {current_user.id}")
    try:
        vehicles = business_service.register_vehicles(db, ObjectId(current_user.id), fleet)
        return {"success": True, "message": "Vehicles registered successfully", "vehicles": _vehicle_json(vehicles)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error registering vehicles: {str(e)}")
        raise ServerError("Failed to register vehicles")


@router.get("/vehicles")
def get_vehicles(current_user: UserResponse = Depends(get_current_user), db: Database = Depends(get_db)):
    try:
        user_id = ObjectId(current_user.id)
        vehicles = business_service.get_vehicles(db, user_id)
        if not vehicles:
            raise NotFoundError("Vehicle registration not found")
        business = business_service.get_business(db, user_id)
        return {
            "success": True,
            "vehicles": _vehicle_json(vehicles, business["business_name"] if business else None),
        }
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching vehicles: {str(e)}")
        raise ServerError()


@router.put("/vehicles")
def update_vehicles(
    fleet: VehicleRegistration,
    current_user: UserResponse = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    try:
        vehicles = business_service.update_vehicles(db, ObjectId(current_user.id), fleet)
        return {"success": True, "message": "Vehicles updated successfully", "vehicles": _vehicle_json(vehicles)}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating vehicles: {str(e)}")
        raise ServerError("Failed to update vehicles")


@router.put("/complete-onboarding")
def complete_onboarding(current_user: UserResponse = Depends(get_current_user), db: Database = Depends(get_db)):
    try:
        user = get_user_by_id(db, current_user.id)
        business_service.mark_onboarding_complete(db, user)
        return {"success": True, "message": "Onboarding completed successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error completing onboarding: {str(e)}")
        raise ServerError()
