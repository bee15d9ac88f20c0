# reride/schemas/errors.py
"""Validation failure raised to callers. Never recovered by a local fallback."""

from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError

M = TypeVar("M", bound=BaseModel)


class RecordValidationError(ValueError):
    """A malformed record. Carries one "<field>: <message>" entry per problem."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors) or "Invalid record")


def format_validation_errors(exc: ValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "record"
        messages.append(f"{field}: {err.get('msg', 'invalid value')}")
    return messages


def validate_record(model: Type[M], data: Any) -> M:
    """Coerce a dict (or an existing instance) into `model`, raising RecordValidationError."""
    if isinstance(data, model):
        data = data.model_dump(by_alias=True)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RecordValidationError(format_validation_errors(e)) from e
