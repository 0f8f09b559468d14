"""Base Pydantic models with API serialization."""

from datetime import datetime, timezone
from typing import Any, Self

from pydantic import BaseModel as PydanticBaseModel, ConfigDict
from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO string, epoch milliseconds or datetime into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class BaseModel(PydanticBaseModel):
    """Base model for records exchanged with the journey API.

    All wire models should inherit from this class.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
        extra="ignore",
    )

    def to_api(self, exclude_none: bool = False) -> dict[str, Any]:
        """Serialize model to a JSON-ready dict.

        Datetimes become ISO strings and enums their values.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> Self:
        """Deserialize an API payload into a model instance."""
        return cls.model_validate(item)
