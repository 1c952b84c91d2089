from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema that can be built straight from ORM objects."""

    model_config = ConfigDict(from_attributes=True)
