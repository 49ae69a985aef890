"""Request-shape validation.

Each operation runs exactly one ``validate_payload`` call before touching the
database. The result carries either the parsed model or a list of field
errors; callers branch on ``ok`` instead of catching exceptions.
"""

from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, Optional, TypeVar

from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

# Messages for built-in constraint failures; errors raised by our own
# validators keep their text.
FIELD_MESSAGES: dict[str, str] = {
    "fullname": "Full name must be between 2 and 100 characters and contain only letters and spaces",
    "email": "Please provide a valid email address",
    "password": "Password must be at least 6 characters long",
    "sexe": "Gender must be male, female, or other",
    "age": "Age must be between 18 and 120",
    "amount": "Amount must be greater than 0",
    "target_amount": "Target amount must be greater than 0",
    "current_amount": "Current amount must be 0 or greater",
    "description": "Description is too long",
    "type": "Type must be either income or expense",
    "date": "Please provide a valid date",
    "start_date": "Please provide a valid start date",
    "end_date": "Please provide a valid end date",
    "target_date": "Please provide a valid target date",
    "category_id": "Please provide a valid category ID",
    "notes": "Notes cannot exceed 1000 characters",
    "name": "Name must be between 2 and 100 characters",
    "color": "Color must be a valid hex color code",
    "status": "Status is not a valid choice",
    "priority": "Priority must be low, medium, or high",
    "is_active": "is_active must be a boolean",
}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


@dataclass
class ValidationResult(Generic[ModelT]):
    value: Optional[ModelT] = None
    errors: list[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.value is not None and not self.errors


def _message_for(error: dict[str, Any], field_name: str) -> str:
    if error.get("type") == "missing":
        return f"{field_name} is required"
    if error.get("type") == "value_error":
        ctx_error = (error.get("ctx") or {}).get("error")
        if ctx_error is not None:
            return str(ctx_error)
    return FIELD_MESSAGES.get(field_name, str(error.get("msg", "Invalid value")))


# FastAPI prefixes request-parameter errors with where the value came from.
REQUEST_SOURCES = {"body", "query", "path", "header", "cookie"}


def field_errors(errors: Iterable[dict[str, Any]]) -> list[FieldError]:
    out: list[FieldError] = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        if len(loc) > 1 and loc[0] in REQUEST_SOURCES:
            loc = loc[1:]
        field_name = ".".join(loc) if loc else "body"
        out.append(FieldError(field_name, _message_for(error, field_name)))
    return out


def errors_from_exception(exc: ValidationError) -> list[FieldError]:
    return field_errors(exc.errors())


def validate_payload(
    schema: type[ModelT], payload: Any
) -> ValidationResult[ModelT]:
    if not isinstance(payload, dict):
        return ValidationResult(
            errors=[FieldError("body", "Request body must be a JSON object")]
        )
    try:
        value = schema.model_validate(payload)
    except ValidationError as exc:
        return ValidationResult(errors=errors_from_exception(exc))
    return ValidationResult(value=value)
