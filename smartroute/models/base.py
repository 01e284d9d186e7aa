"""Base model for value objects crossing the task boundary."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Pydantic model that accepts snake_case or camelCase keys and emits camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
