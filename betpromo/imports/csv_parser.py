"""
CSV parsing and validation for user/promotion imports.

The expected layout is a header line followed by rows of::

    smartico_user_id, user_ext_id, core_sm_brand_id, crm_brand_id,
    ext_brand_id, crm_brand_name, promotion_name, rules, start_date, end_date

Exports from the CRM sometimes quote a whole record as one field (inner
quotes doubled); such lines are unwrapped before the fields are split.
A file is validated completely before anything touches the database: one bad
row rejects the whole file with every problem listed by line number.
"""
from __future__ import annotations

import csv
import io
import os
import time
import uuid
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from betpromo.db.models import MAX_USER_ID
from betpromo.db.types import as_utc
from betpromo.utils.errors import CSVValidationError, InvalidFile, ValidationFailed
from betpromo.utils.settings import get_import_settings

CSV_COLUMNS = (
    "smartico_user_id",
    "user_ext_id",
    "core_sm_brand_id",
    "crm_brand_id",
    "ext_brand_id",
    "crm_brand_name",
    "promotion_name",
    "rules",
    "start_date",
    "end_date",
)

DEFAULT_PROMOTION_PREFIX = "Promoção Padrão"
DEFAULT_PROMOTION_RULES = "Promoção padrão para usuários da marca"


def _blank_to_none(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def parse_datetime(value) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; values without an offset are taken as UTC."""
    value = _blank_to_none(value)
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"invalid date '{value}'")
    return as_utc(parsed)


class CSVRow(BaseModel):
    smartico_user_id: int
    user_ext_id: Optional[str] = None
    core_sm_brand_id: Optional[int] = None
    crm_brand_id: Optional[int] = None
    ext_brand_id: Optional[str] = None
    crm_brand_name: Optional[str] = None
    promotion_name: Optional[str] = Field(default=None, max_length=255)
    rules: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("smartico_user_id", mode="before")
    @classmethod
    def _positive_user_id(cls, value):
        text = str(value).strip() if value is not None else ""
        if not (text.isascii() and text.isdigit()) or not 0 < int(text) <= MAX_USER_ID:
            raise ValueError("must be a positive integer")
        return int(text)

    @field_validator("core_sm_brand_id", "crm_brand_id", mode="before")
    @classmethod
    def _lenient_int(cls, value):
        # Non-numeric or out-of-range brand ids are dropped rather than rejected
        value = _blank_to_none(value)
        if value is None:
            return None
        try:
            number = int(value)
        except (TypeError, ValueError):
            return None
        return number if abs(number) <= MAX_USER_ID else None

    @field_validator("user_ext_id", "ext_brand_id", "crm_brand_name", "promotion_name", "rules", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return _blank_to_none(value)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _utc_datetime(cls, value):
        return parse_datetime(value)

    @model_validator(mode="after")
    def _date_order(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def with_promotion(self, override: Optional[str] = None) -> "CSVRow":
        """Resolve the promotion this row enrolls the user in."""
        if override:
            return self.model_copy(update={"promotion_name": override})
        if self.promotion_name:
            return self
        brand = self.crm_brand_name or self.ext_brand_id or "Marca"
        return self.model_copy(
            update={
                "promotion_name": f"{DEFAULT_PROMOTION_PREFIX} {brand}",
                "rules": self.rules or DEFAULT_PROMOTION_RULES,
            }
        )


def split_line(line: str) -> List[str]:
    """Split one CSV record, unwrapping records quoted as a single field."""
    fields = next(csv.reader([line]), [])
    if len(fields) == 1 and "," in fields[0]:
        fields = next(csv.reader([fields[0]]), [])
    return [field.strip() for field in fields]


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        msg = err.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def decode_content(content: Union[str, bytes]) -> str:
    if isinstance(content, str):
        return content
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InvalidFile(f"CSV file is not valid UTF-8: {e}")


def parse_csv(content: Union[str, bytes], default_promotion_name: Optional[str] = None) -> List[CSVRow]:
    """Parse and validate a CSV export, returning one ``CSVRow`` per data line.

    ``default_promotion_name`` overrides the promotion of every row. Raises
    ``CSVValidationError`` listing every invalid line.
    """
    if default_promotion_name is not None:
        default_promotion_name = default_promotion_name.strip()
        if len(default_promotion_name) > 255:
            raise ValidationFailed("promotion_name must be at most 255 characters")
    text = decode_content(content)

    rows: List[CSVRow] = []
    errors: List[str] = []
    header_seen = False
    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        if not header_seen:
            header_seen = True
            continue
        fields = split_line(line)
        record = dict(zip(CSV_COLUMNS, fields + [""] * (len(CSV_COLUMNS) - len(fields))))
        try:
            row = CSVRow.model_validate(record)
        except ValidationError as e:
            errors.append(f"Line {line_number}: {_format_errors(e)}")
            continue
        rows.append(row.with_promotion(default_promotion_name))

    if not header_seen:
        raise CSVValidationError(["CSV file is empty"])
    if errors:
        raise CSVValidationError(errors)
    if not rows:
        raise CSVValidationError(["CSV file has no data rows"])
    return rows


def validate_upload(filename: Optional[str], size: int) -> None:
    """Reject uploads that are not ``.csv`` files or exceed ``MAX_FILE_SIZE``."""
    if not filename or os.path.splitext(filename)[1].lower() != ".csv":
        raise InvalidFile("Only .csv files are accepted")
    max_size = get_import_settings().max_file_size
    if size > max_size:
        raise InvalidFile(f"File exceeds the maximum size of {max_size} bytes")
    if size == 0:
        raise InvalidFile("Uploaded file is empty")


def make_stored_filename() -> str:
    """Unique name under which an upload is stored and staged."""
    return f"import-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.csv"


TEMPLATE_EXAMPLE_ROW = (
    "123456789",
    "user_ext_001",
    "1",
    "100",
    "brand_001",
    "Marca Exemplo",
    "Promoção de Boas-vindas",
    "Regras da promoção aqui",
    "2024-01-01T00:00:00",
    "2024-12-31T23:59:59",
)


def template_csv() -> str:
    """Header plus one example row, in the layout ``parse_csv`` expects."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    writer.writerow(TEMPLATE_EXAMPLE_ROW)
    return buffer.getvalue()
