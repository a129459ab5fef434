"""
Request validation.

Rules live on the pydantic request models in schemas.py. This module runs them
against raw input and turns pydantic's error list into readable violations,
so a single call reports every problem with a request at once.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from errors import InvalidInput

M = TypeVar("M", bound=BaseModel)


@dataclass
class ValidationResult(Generic[M]):
    value: Optional[M] = None
    violations: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.violations


def format_violation(error: Mapping[str, Any]) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ()))
    message = error["msg"]
    # "Value error, Delivery date must be ..." -> "Delivery date must be ..."
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{loc}: {message}" if loc else message


def check(model: Type[M], data: Mapping[str, Any]) -> ValidationResult[M]:
    """Evaluate every rule of `model` against `data` without raising."""
    try:
        return ValidationResult(value=model.model_validate(dict(data)))
    except ValidationError as e:
        return ValidationResult(violations=[format_violation(err) for err in e.errors()])


def validate(model: Type[M], data: Mapping[str, Any]) -> M:
    result = check(model, data)
    if not result.ok:
        raise InvalidInput(violations=result.violations)
    return result.value
