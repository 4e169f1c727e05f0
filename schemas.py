import datetime as dt
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from errors import ValidationError
from models import SortField, SortOrder

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
MAX_PAGE_SIZE = 100
AMOUNT_MAX_DIGITS = 12
AMOUNT_DECIMAL_PLACES = 2
# Largest value SQLite and most SQL backends bind as a signed 64-bit integer.
MAX_SQL_INTEGER = 2**63 - 1
# Keeps (page - 1) * limit inside the integer range of OFFSET.
MAX_PAGE = MAX_SQL_INTEGER // MAX_PAGE_SIZE


def validation_details(
    errors: list[dict[str, Any]],
    skip: tuple[str, ...] = ("body", "query"),
    default: str = "body",
) -> list[dict[str, str]]:
    details: list[dict[str, str]] = []
    for err in errors:
        loc = ".".join(str(item) for item in err.get("loc", ()) if item not in skip)
        details.append({"field": loc or default, "message": err.get("msg", "invalid")})
    return details


def amount_to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterIn(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., max_length=320, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6, max_length=72)


class LoginIn(CamelModel):
    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=72)


def _non_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


class ExpenseIn(CamelModel):
    amount: Decimal = Field(
        ..., gt=0, max_digits=AMOUNT_MAX_DIGITS, decimal_places=AMOUNT_DECIMAL_PLACES
    )
    category: str = Field(..., min_length=1, max_length=100)
    date: dt.date
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("category")
    @classmethod
    def _category_present(cls, value: str) -> str:
        return _non_blank(value)

    @property
    def amount_cents(self) -> int:
        return amount_to_cents(self.amount)


class ExpenseUpdateIn(CamelModel):
    """Partial patch: only the fields sent by the client are applied."""

    model_config = ConfigDict(extra="forbid")

    amount: Optional[Decimal] = Field(
        default=None,
        gt=0,
        max_digits=AMOUNT_MAX_DIGITS,
        decimal_places=AMOUNT_DECIMAL_PLACES,
    )
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    date: Optional[dt.date] = None
    description: Optional[str] = Field(default=None, max_length=500)

    @field_validator("category")
    @classmethod
    def _category_present(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _non_blank(value)

    @model_validator(mode="after")
    def _required_fields_not_null(self) -> "ExpenseUpdateIn":
        for name in ("amount", "category", "date"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise PydanticCustomError(
                    "null_field", "{field} cannot be null", {"field": name}
                )
        return self

    def changes(self) -> dict[str, object]:
        values: dict[str, object] = {}
        for name in self.model_fields_set:
            if name == "amount":
                values["amount_cents"] = amount_to_cents(self.amount)
            else:
                values[name] = getattr(self, name)
        return values


def _coerce_date(value: object) -> object:
    # Accept full ISO timestamps as well as plain dates; offsets resolve to
    # the UTC calendar day, naive timestamps keep their own date.
    if isinstance(value, str) and "T" in value:
        try:
            moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return moment.date()
    return value


class ExpenseQuery(CamelModel):
    page: int = Field(default=1, ge=1, le=MAX_PAGE)
    limit: int = Field(default=10, ge=1, le=MAX_PAGE_SIZE)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category: Optional[str] = Field(default=None, max_length=100)
    search: Optional[str] = Field(default=None, max_length=200)
    sort: SortField = SortField.date
    order: SortOrder = SortOrder.desc

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _accept_timestamps(cls, value: object) -> object:
        return _coerce_date(value)

    @field_validator("category", "search", mode="before")
    @classmethod
    def _blank_as_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _date_range_pairs(self) -> "ExpenseQuery":
        if (self.start_date is None) != (self.end_date is None):
            raise PydanticCustomError(
                "date_range", "startDate and endDate must be provided together"
            )
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise PydanticCustomError(
                "date_range", "startDate must not be after endDate"
            )
        return self

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "ExpenseQuery":
        known = {key: value for key, value in params.items() if value != ""}
        try:
            return cls.model_validate(known)
        except PydanticValidationError as exc:
            raise ValidationError(
                validation_details(exc.errors(), default="dateRange")
            ) from exc


class AccountOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str
    last_name: str
    email: str


class AuthOut(BaseModel):
    message: str
    user: AccountOut


class MessageOut(BaseModel):
    message: str


class ExpenseOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    amount: float
    category: str
    date: dt.date
    description: Optional[str]
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class ExpenseListOut(BaseModel):
    expenses: list[ExpenseOut]
    pagination: Pagination


class DistributionItem(BaseModel):
    category: str
    amount: float
    percentage: str


class InsightsOut(CamelModel):
    total_by_category: dict[str, float]
    distribution: list[DistributionItem]
