"""
Base model shared by the domain layer
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """snake_case in Python, camelCase in JSON (the POS frontend contract)"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_dict(self) -> dict:
        """JSON-ready dict with camelCase keys"""
        return self.model_dump(mode="json", by_alias=True)
