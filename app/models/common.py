# backend/app/models/common.py
# Base models shared by request and response schemas

from typing import Annotated, Any, Optional

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


def _stringify_object_id(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    return value


ObjectIdStr = Annotated[str, BeforeValidator(_stringify_object_id)]


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input and serializes to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MongoModel(CamelModel):
    """Response model built straight from a MongoDB document."""

    id: Optional[ObjectIdStr] = None

    @model_validator(mode="before")
    @classmethod
    def _map_mongo_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and "_id" in data:
            data = {**data, "id": data["_id"]}
        return data
