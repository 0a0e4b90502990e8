"""camelCase schema bases.

Python code works with snake_case attributes; the JSON the frontend sends
and receives uses camelCase (fileId, likesCount, accountStatus, ...).
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request bodies and plain response payloads."""
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


class CamelORMModel(CamelModel):
    """Responses built straight from ORM rows or dataclasses."""
    model_config = {
        **CamelModel.model_config,
        "from_attributes": True,
    }
