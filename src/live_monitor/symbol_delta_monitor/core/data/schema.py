import json
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from live_monitor.symbol_delta_monitor.core.utils.errors import MalformedInputError


class SymbolEvent(BaseModel):
    symbol: str = Field(..., min_length=1, description="Symbol identifier")
    value: str = Field(..., description="Decimal integer string, '0' resets")

    @field_validator("value", mode="before")
    @classmethod
    def _int_to_str(cls, v):
        # json numbers are accepted and kept in their decimal form
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class DeltaRecord(BaseModel):
    """Outbound record, serialized with the camelCase wire names"""

    model_config = ConfigDict(populate_by_name=True)

    symbol: str = Field(..., description="Symbol identifier")
    delta: Optional[str] = Field(None, description="curValue - previous value")
    cur_value: str = Field(..., alias="curValue")
    orig_order: str = Field(..., alias="origOrder", description="Origin blob name")
    proc_time_stamp: str = Field(
        ..., alias="procTimeStamp", description="Processing time in milliseconds"
    )

    def to_json(self) -> str:
        # delta is left out entirely when it was never computed
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, payload: Union[str, bytes]) -> "DeltaRecord":
        return cls.model_validate_json(payload)


class CacheMutation(Enum):
    SET = "set"
    FLUSH_ALL = "flush_all"


@dataclass(frozen=True)
class DeltaResult:
    delta: Optional[str]
    mutation: CacheMutation


@dataclass
class DispatchOutcome:
    """What happened to one event after the cache was updated"""

    record: DeltaRecord
    sent: bool = False
    deleted: bool = False
    send_error: Optional[str] = None
    delete_error: Optional[str] = None


def parse_symbol_event(content: Union[str, bytes]) -> SymbolEvent:
    """
    Decode a blob payload into a SymbolEvent

    Raises:
        MalformedInputError: payload is not UTF-8 JSON of the expected shape
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedInputError(f"Payload is not valid UTF-8: {e}") from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedInputError(f"Payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedInputError(
            f"Payload must be a JSON object, got {type(data).__name__}"
        )

    try:
        return SymbolEvent(**data)
    except ValidationError as e:
        raise MalformedInputError(f"Payload does not match SymbolEvent: {e}") from e
