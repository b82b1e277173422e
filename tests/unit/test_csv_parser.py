import re
from datetime import datetime, timezone

import pytest

from betpromo.imports.csv_parser import (
    DEFAULT_PROMOTION_RULES,
    make_stored_filename,
    parse_csv,
    split_line,
    validate_upload,
)
from betpromo.utils.errors import CSVValidationError, InvalidFile, ValidationFailed
from betpromo.utils.settings import refresh_import_settings


def test_parse_rows_and_normalize_dates(csv_text):
    rows = parse_csv(csv_text(
        "1001,ext-1,5,10,EB1,BrandA,Welcome Bonus,Deposit 10,2025-01-01T00:00:00,2025-12-31T23:59:59",
        "1002,ext-2,5,10,EB1,BrandA,Welcome Bonus,Deposit 10,2025-01-01T03:00:00+03:00,",
    ))
    assert len(rows) == 2
    first, second = rows
    assert first.smartico_user_id == 1001
    assert first.user_ext_id == "ext-1"
    assert first.core_sm_brand_id == 5
    assert first.crm_brand_id == 10
    assert first.promotion_name == "Welcome Bonus"
    # naive timestamps are UTC
    assert first.start_date == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert first.start_date.utcoffset().total_seconds() == 0
    assert second.start_date == datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
    assert second.end_date is None


def test_default_promotion_per_brand(csv_text):
    rows = parse_csv(csv_text(
        "1,,,,,BrandA,,,,",
        "2,,,,EXT-B,,,custom rules,,",
        "3,,,,,,,,,",
    ))
    assert rows[0].promotion_name == "Promoção Padrão BrandA"
    assert rows[0].rules == DEFAULT_PROMOTION_RULES
    assert rows[1].promotion_name == "Promoção Padrão EXT-B"
    assert rows[1].rules == "custom rules"
    assert rows[2].promotion_name == "Promoção Padrão Marca"


def test_explicit_promotion_overrides_csv_value(csv_text):
    rows = parse_csv(
        csv_text("1,,,,,BrandA,Old Promo,,,", "2,,,,,BrandA,,,,"),
        default_promotion_name="  Summer Cashback ",
    )
    assert {r.promotion_name for r in rows} == {"Summer Cashback"}


def test_override_longer_than_limit_is_rejected(csv_text):
    with pytest.raises(ValidationFailed):
        parse_csv(csv_text("1,,,,,,,,,"), default_promotion_name="x" * 256)


def test_fully_quoted_record_is_unwrapped(csv_text):
    rows = parse_csv(csv_text('"2001,ext-2,,,,BrandB,""Promo, Special"",Rules,,"'))
    row = rows[0]
    assert row.smartico_user_id == 2001
    assert row.core_sm_brand_id is None
    assert row.crm_brand_name == "BrandB"
    assert row.promotion_name == "Promo, Special"
    assert row.rules == "Rules"


def test_split_line_keeps_regular_quoted_fields():
    assert split_line('1,"a, b",c') == ["1", "a, b", "c"]


def test_non_numeric_brand_ids_are_dropped(csv_text):
    rows = parse_csv(csv_text("1,,abc,12x,,,,,,"))
    assert rows[0].core_sm_brand_id is None
    assert rows[0].crm_brand_id is None


def test_invalid_rows_reject_whole_file_with_line_numbers(csv_text):
    content = csv_text(
        "1,,,,,,Promo,,,",
        "abc,,,,,,Promo,,,",
        "",
        "-5,,,,,,Promo,,,",
    )
    with pytest.raises(CSVValidationError) as excinfo:
        parse_csv(content)
    errors = excinfo.value.errors
    assert len(errors) == 2
    assert errors[0].startswith("Line 3:")
    assert "smartico_user_id" in errors[0]
    assert errors[1].startswith("Line 5:")
    assert excinfo.value.error_code == "CSV_VALIDATION_ERROR"
    assert excinfo.value.status_code == 400


@pytest.mark.parametrize(
    "line,fragment",
    [
        ("1,,,,,,Promo,,not-a-date,", "invalid date"),
        ("1,,,,,,Promo,,2025-05-01,2025-04-01", "end_date must not be before start_date"),
        ("1,,,,,," + "p" * 256 + ",,,", "promotion_name"),
    ],
)
def test_row_level_validation_messages(csv_text, line, fragment):
    with pytest.raises(CSVValidationError) as excinfo:
        parse_csv(csv_text(line))
    assert fragment in excinfo.value.errors[0]


def test_empty_and_header_only_files_are_rejected(csv_text):
    with pytest.raises(CSVValidationError):
        parse_csv("")
    with pytest.raises(CSVValidationError):
        parse_csv("\n\n")
    with pytest.raises(CSVValidationError) as excinfo:
        parse_csv(csv_text())
    assert "no data rows" in excinfo.value.errors[0]


def test_bytes_with_bom_and_invalid_encoding(csv_text):
    rows = parse_csv(("\ufeff" + csv_text("7,,,,,,P,,,")).encode("utf-8"))
    assert rows[0].smartico_user_id == 7
    with pytest.raises(InvalidFile):
        parse_csv(b"\xff\xfe\x00header\n")


def test_validate_upload(monkeypatch):
    validate_upload("users.CSV", 10)
    with pytest.raises(InvalidFile):
        validate_upload("users.txt", 10)
    with pytest.raises(InvalidFile):
        validate_upload(None, 10)
    with pytest.raises(InvalidFile):
        validate_upload("users.csv", 0)

    monkeypatch.setenv("MAX_FILE_SIZE", "100")
    refresh_import_settings()
    validate_upload("users.csv", 100)
    with pytest.raises(InvalidFile):
        validate_upload("users.csv", 101)


def test_stored_filenames_are_unique():
    names = {make_stored_filename() for _ in range(50)}
    assert len(names) == 50
    for name in names:
        assert re.fullmatch(r"import-\d+-[0-9a-f]{8}\.csv", name)
