"""
Shared base for entities stored in the single DynamoDB table.

Python attributes are snake_case; the stored attributes and the JSON wire
format are camelCase. DynamoDB returns numbers as ``Decimal`` and only accepts
``Decimal`` for non-integer numbers, so values are converted on the way in and
out here instead of in every repository.
"""

from decimal import Decimal
from typing import Annotated, Any, Dict

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer, model_validator
from pydantic.alias_generators import to_camel


def to_dynamo_value(value: Any) -> Any:
    """Convert floats (recursively) to ``Decimal`` for boto3."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {key: to_dynamo_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo_value(item) for item in value]
    return value


def from_dynamo_value(value: Any) -> Any:
    """Convert ``Decimal`` values (recursively) back to int or float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: from_dynamo_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [from_dynamo_value(item) for item in value]
    return value


def _exact_decimal(value: Any) -> Any:
    if isinstance(value, float):
        return Decimal(str(value))
    return value


# Non-negative amount kept exact in Python and in the table, a plain number in JSON
Money = Annotated[
    Decimal,
    BeforeValidator(_exact_decimal),
    Field(ge=0),
    PlainSerializer(float, return_type=float, when_used='json'),
]


class DynamoModel(BaseModel):
    """Base model for table entities with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
    )

    @model_validator(mode='before')
    @classmethod
    def _convert_decimals(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return from_dynamo_value(data)
        return data

    def to_response(self) -> Dict[str, Any]:
        """Public JSON representation using camelCase field names."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)

    def _base_item(self) -> Dict[str, Any]:
        return to_dynamo_value(self.model_dump(by_alias=True, exclude_none=True))
