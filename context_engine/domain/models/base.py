from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model serialized with camelCase keys on the wire"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )

    def to_wire(self) -> dict:
        """Dump as a JSON-compatible camelCase dict"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
