"""Catalog identifiers.

Steam app ids are 64-bit integers. JSON clients (browsers in particular) lose
precision above 2**53, so an ``AppId`` always leaves the service as a decimal
string and is accepted back either as a string of digits or as an int.
"""
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer

MAX_APP_ID = 2 ** 63 - 1


class AppId(int):
    """Non-negative 64-bit catalog identifier with a string wire format"""

    def __new__(cls, value: Any) -> "AppId":
        return super().__new__(cls, cls._coerce(value))

    @staticmethod
    def _coerce(value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError("app id must be an integer, not a boolean")
        if isinstance(value, int):
            number = int(value)
        elif isinstance(value, str):
            text = value.strip()
            if not text.isdigit():
                raise ValueError(f"app id must be a string of decimal digits, got {value!r}")
            number = int(text)
        else:
            raise ValueError(f"unsupported app id type: {type(value).__name__}")
        if number < 0 or number > MAX_APP_ID:
            raise ValueError(f"app id out of range: {number}")
        return number

    @classmethod
    def parse(cls, value: Any) -> "AppId":
        if isinstance(value, AppId):
            return value
        return cls(value)

    def serialize(self) -> str:
        return str(int(self))

    def __repr__(self) -> str:
        return f"AppId({int(self)})"


# Pydantic field type: parsed from int or string, emitted as a string in JSON
AppIdField = Annotated[
    int,
    BeforeValidator(AppId.parse),
    PlainSerializer(lambda value: str(int(value)), return_type=str, when_used="json"),
]
