"""
Shared pydantic base for models that travel over the wire in camelCase
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that accepts snake_case or camelCase and emits camelCase"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Serialize for JSON transport using camelCase keys"""
        return self.model_dump(mode="json", by_alias=True)
