"""Pydantic base types shared by documents kept in the store."""

from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    # Fixed width so stored timestamps sort as strings
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


Timestamp = Annotated[
    datetime,
    AfterValidator(_ensure_utc),
    PlainSerializer(format_timestamp, return_type=str, when_used="json"),
]


class DocumentModel(BaseModel):
    """Base model for store documents.

    Python attributes are snake_case; documents use camelCase keys.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self, **kwargs: Any) -> dict:
        """Serialize to a JSON-ready document dict."""
        return self.model_dump(mode="json", by_alias=True, **kwargs)

    @classmethod
    def from_document(cls, data: dict):
        """Build the model from a stored document dict."""
        return cls.model_validate(data)
