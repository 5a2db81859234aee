"""Shared pydantic base for the pipeline's wire models."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Immutable model serialized with camelCase keys.

    Attributes stay snake_case in Python; ``model_dump(by_alias=True)``
    produces the camelCase wire shape and validation accepts either form.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        """Return the JSON-compatible camelCase representation."""
        return self.model_dump(mode="json", by_alias=True)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize a datetime to timezone-aware UTC (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
