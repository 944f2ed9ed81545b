import re
from datetime import date
from typing import Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, ValidationError, ValidationInfo, field_validator

from models import TransactionStatus
from periods import PRESET_KEYS

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_VALUE_ERROR_PREFIX = "Value error, "

REPORT_PARAM_NAMES = (
    "start_date",
    "end_date",
    "account_id",
    "category_id",
    "status",
    "preset",
    "budget_id",
)


class ReportParamsInvalid(ValueError):
    def __init__(self, field_errors: dict[str, list[str]]):
        self.field_errors = field_errors
        super().__init__("Invalid parameters")


def _check_date(value: object, label: str) -> object:
    if value is None or value == "":
        raise ValueError(f"{label} is required.")
    if isinstance(value, str) and not _ISO_DATE_RE.match(value):
        raise ValueError(f"{label} must be YYYY-MM-DD format.")
    return value


def _check_uuid(value: Optional[str], label: str) -> Optional[str]:
    if value is None or value == "":
        return None
    try:
        return str(UUID(value))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid {label} ID.") from exc


class ReportParams(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    start_date: date
    end_date: date
    account_id: Optional[str] = None
    category_id: Optional[str] = None
    status: Optional[list[TransactionStatus]] = None
    preset: Optional[str] = None
    budget_id: Optional[str] = None

    @field_validator("start_date", mode="before")
    @classmethod
    def _start_format(cls, value: object) -> object:
        return _check_date(value, "Start date")

    @field_validator("end_date", mode="before")
    @classmethod
    def _end_format(cls, value: object) -> object:
        return _check_date(value, "End date")

    @field_validator("end_date")
    @classmethod
    def _end_not_before_start(cls, value: date, info: ValidationInfo) -> date:
        start = info.data.get("start_date")
        if start is not None and value < start:
            raise ValueError("End date must be on or after start date.")
        return value

    @field_validator("account_id", mode="before")
    @classmethod
    def _account_uuid(cls, value: Optional[str]) -> Optional[str]:
        return _check_uuid(value, "account")

    @field_validator("category_id", mode="before")
    @classmethod
    def _category_uuid(cls, value: Optional[str]) -> Optional[str]:
        return _check_uuid(value, "category")

    @field_validator("budget_id", mode="before")
    @classmethod
    def _budget_uuid(cls, value: Optional[str]) -> Optional[str]:
        return _check_uuid(value, "budget")

    @field_validator("status", mode="before")
    @classmethod
    def _split_status(cls, value: object) -> object:
        # "all" or blank means no status filter
        if value is None or value == "" or value == "all":
            return None
        if isinstance(value, str):
            parts = [part.strip() for part in value.split(",") if part.strip()]
            allowed = {status.value for status in TransactionStatus}
            unknown = [part for part in parts if part not in allowed]
            if unknown:
                raise ValueError(f"Invalid status: {', '.join(unknown)}.")
            return parts or None
        return value

    @field_validator("preset", mode="before")
    @classmethod
    def _known_preset(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if value not in PRESET_KEYS:
            raise ValueError(f"Unknown preset: {value}.")
        return value

    @property
    def uses_preset(self) -> bool:
        return self.preset is not None and self.preset != "custom"

    @property
    def has_line_filters(self) -> bool:
        return self.category_id is not None or bool(self.status)


def _field_errors(exc: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err.get("loc") else "params"
        message = err["msg"]
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        errors.setdefault(field, []).append(message)
    return errors


def parse_report_params(raw: Mapping[str, Optional[str]]) -> ReportParams:
    """Validate raw query parameters; raises ``ReportParamsInvalid``."""
    values = {name: raw.get(name) for name in REPORT_PARAM_NAMES}
    try:
        return ReportParams(**values)
    except ValidationError as exc:
        raise ReportParamsInvalid(_field_errors(exc)) from exc
