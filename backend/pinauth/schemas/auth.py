from typing import TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator


class PinLoginForm(BaseModel):
    email: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class PinSubmitForm(PinLoginForm):
    pin_code: str = Field(..., min_length=1)

    @field_validator("pin_code", mode="before")
    @classmethod
    def strip_pin_code(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class GoogleLoginForm(BaseModel):
    credential: str = Field(..., min_length=1)


class GoogleCredential(BaseModel):
    """Claims read from a Google ID token payload."""

    sub: str
    email: str = Field(..., min_length=1)
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None


class AuthActionResponse(BaseModel):
    success: bool = False
    email: str | None = None
    missing: bool | None = None
    credentials: bool | None = None
    message: str | None = None


class PinCodePageResponse(BaseModel):
    authenticated: bool = False
    pin_code_length: int
    google_client_id: str | None = None


class MissingFieldsError(Exception):
    """Raised when a submitted form lacks one or more required fields."""

    def __init__(self, fields: list[str], data: dict[str, str]):
        self.fields = fields
        self.data = data
        super().__init__(f"Missing required fields: {', '.join(fields)}")


FormT = TypeVar("FormT", bound=BaseModel)


def parse_form(model: type[FormT], data: dict[str, str | None]) -> FormT:
    """
    Decode raw form fields into ``model``.

    Absent fields are treated as empty strings, and blank values count as
    missing, so callers get either a fully populated model or a
    ``MissingFieldsError`` naming what was left out.
    """
    cleaned = {key: value if value is not None else "" for key, value in data.items()}
    try:
        return model.model_validate(cleaned)
    except ValidationError as e:
        fields = sorted({str(error["loc"][0]) for error in e.errors() if error["loc"]})
        raise MissingFieldsError(fields, cleaned) from None
