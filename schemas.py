from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models import TransactionKind
from periods import MONTH_PATTERN


class CategoryIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    kind: TransactionKind


class TransactionIn(BaseModel):
    kind: TransactionKind
    amount_cents: int = Field(..., ge=0)
    category_id: Optional[int] = None
    occurred_on: date
    note: Optional[str] = Field(default=None, max_length=200)

    @field_validator("note")
    @classmethod
    def _blank_note_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


class BudgetIn(BaseModel):
    category_id: int
    month: str = Field(..., pattern=MONTH_PATTERN.pattern)
    amount_cents: int = Field(..., ge=0)


class LoginIn(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)

    @field_validator("username")
    @classmethod
    def _strip_username(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Username is required")
        return value


class SetupIn(LoginIn):
    confirm_password: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "SetupIn":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class PasswordChangeIn(BaseModel):
    current_password: str
    new_password: str
    confirm_password: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "PasswordChangeIn":
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self
