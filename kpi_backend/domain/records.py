"""
Typed record shapes for the tables of the embedded store.

Every field is optional so a partial patch (update/upsert) validates against
the same model as a full row. Unknown fields are kept as-is.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

APP_USERS = "app_users"
APP_TARGETS = "app_targets"
BONUS_RULES = "bonus_rules"
KPI_ENTRIES = "kpi_entries"
AUDIT_LOGS = "audit_logs"

TARGETS_ROW_ID = 1

_ISO_DATE = r"^\d{4}-\d{2}-\d{2}$"


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"


class Metric(str, Enum):
    AMOUNT = "amount"
    CONVERSION = "conversion"
    DEVICES = "devices"
    SCORE = "score"
    FOLLOW_UPS = "followUps"


class Record(BaseModel):
    model_config = ConfigDict(extra="allow", use_enum_values=True)

    id: Optional[Union[str, int]] = None


class AppUser(Record):
    name: Optional[str] = None
    role: Optional[Role] = None
    avatar: Optional[str] = None
    password: Optional[str] = None


class AppTargets(Record):
    id: Optional[int] = None
    monthly_sales_amount: Optional[float] = Field(None, ge=0)
    monthly_devices: Optional[float] = Field(None, ge=0)
    daily_conversion: Optional[float] = Field(None, ge=0, le=100)
    daily_follow_ups: Optional[float] = Field(None, ge=0)
    max_errors: Optional[float] = Field(None, ge=0)


class BonusRule(Record):
    name: Optional[str] = None
    metric: Optional[Metric] = None
    threshold: Optional[float] = None
    amount: Optional[float] = None
    period: Optional[str] = Field(None, pattern=r"^monthly$")
    is_active: Optional[bool] = None


class KpiEntry(Record):
    user_id: Optional[str] = None
    date: Optional[str] = Field(None, pattern=_ISO_DATE)
    clients_attended: Optional[int] = Field(None, ge=0)
    quotes_sent: Optional[int] = Field(None, ge=0)
    follow_ups: Optional[int] = Field(None, ge=0)
    sales_closed: Optional[int] = Field(None, ge=0)
    amount_sold: Optional[float] = Field(None, ge=0)
    devices_sold: Optional[int] = Field(None, ge=0)
    exchanges: Optional[int] = Field(None, ge=0)
    errors: Optional[int] = Field(None, ge=0)
    punctuality_score: Optional[float] = Field(None, ge=1, le=5)
    quality_score: Optional[float] = Field(None, ge=1, le=5)
    notes: Optional[str] = None


class AuditLog(Record):
    action: Optional[str] = None
    user_name: Optional[str] = None
    details: Optional[str] = None
    created_at: Optional[str] = None


TABLE_MODELS: dict[str, type[Record]] = {
    APP_USERS: AppUser,
    APP_TARGETS: AppTargets,
    BONUS_RULES: BonusRule,
    KPI_ENTRIES: KpiEntry,
    AUDIT_LOGS: AuditLog,
}

SINGLETON_TABLES = {APP_TARGETS: TARGETS_ROW_ID}


def coerce(table: str, record: Any) -> dict[str, Any]:
    """Validate a record (dict or model) for `table` and return the plain dict to persist.

    Tables without a registered model pass through untouched.
    Raises pydantic.ValidationError on bad field values.
    """
    if isinstance(record, BaseModel):
        record = record.model_dump(mode="json", exclude_unset=True)
    if not isinstance(record, dict):
        raise TypeError(f"record must be a mapping, got {type(record).__name__}")
    model = TABLE_MODELS.get(table)
    if model is None:
        return dict(record)
    return model.model_validate(record).model_dump(mode="json", exclude_unset=True)


_CAMEL = re.compile(r"(?<=[a-z0-9])([A-Z])")


def to_snake(name: str) -> str:
    return _CAMEL.sub(r"_\1", name).lower()


def snake_keys(record: dict[str, Any]) -> dict[str, Any]:
    return {to_snake(k): v for k, v in record.items()}
