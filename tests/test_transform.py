"""Tests for row transformation and loose object parsing."""

import logging
import time

import pytest

from casebridge.config import DefaultOverrides
from casebridge.transform.flatten import collect_columns, flatten_json, flatten_records
from casebridge.transform.loose_object import (
    KeyValuePairsStrategy,
    LooseObjectStrategy,
    QuotedJsonStrategy,
    parse_loose_object,
)
from casebridge.transform.normalize import (
    parse_timestamp,
    validate_required_fields,
)
from casebridge.transform.rows import (
    FieldKind,
    RowTransformer,
    format_date,
    parse_int,
    split_array,
    split_int_array,
)


class TestFormatDate:
    """Tests for M/D/YYYY date conversion."""

    def test_pads_month_and_day(self):
        """Test single-digit parts are zero-padded."""
        assert format_date("3/7/1985") == "1985-03-07"

    def test_two_digit_parts_unchanged(self):
        """Test already-padded parts are kept."""
        assert format_date("12/25/2020") == "2020-12-25"

    @pytest.mark.parametrize("value", ["2020-12-25", "12/25", "1/2/3/4", "not a date"])
    def test_other_shapes_pass_through(self, value):
        """Test values without exactly three slash parts are unchanged."""
        assert format_date(value) == value

    def test_parts_not_validated(self):
        """Test nonsense parts are still reordered."""
        assert format_date("ab/c/year") == "year-ab-0c"


class TestArrays:
    """Tests for string and integer array splitting."""

    def test_split_with_brackets(self):
        """Test wrapping brackets are dropped from items."""
        assert split_array("[Widget A, Widget B]") == ["Widget A", "Widget B"]

    def test_brackets_are_not_grouping(self):
        """Test commas split before brackets are cleaned."""
        assert split_array("[a, b],c") == ["a", "b", "c"]

    def test_single_item(self):
        """Test a value without commas yields one item."""
        assert split_array("solo") == ["solo"]

    def test_int_array_drops_unparsable(self):
        """Test non-numeric items are discarded."""
        assert split_int_array("1,2,abc,4") == [1, 2, 4]

    def test_int_array_with_brackets(self):
        """Test integer arrays accept bracketed input."""
        assert split_int_array("[5, 6]") == [5, 6]

    def test_parse_int_leading_digits(self):
        """Test only the leading integer is read."""
        assert parse_int("12abc") == 12
        assert parse_int("-3") == -3
        assert parse_int("abc") is None
        assert parse_int("") is None


class TestLooseObject:
    """Tests for loosely-structured object parsing."""

    def test_bare_keys_and_values(self):
        """Test spreadsheet-style objects parse to a mapping."""
        assert parse_loose_object("{gender: Male, age: 30}") == {"gender": "Male", "age": "30"}

    def test_strict_json_passes_through(self):
        """Test valid JSON keeps its types."""
        assert parse_loose_object('{"age": 30, "active": true}') == {"age": 30, "active": True}

    def test_key_value_fallback_without_braces(self):
        """Test the pair splitter handles text without braces."""
        assert QuotedJsonStrategy().try_parse("gender: Male") is None
        assert parse_loose_object("gender: Male, age: 30") == {"gender": "Male", "age": "30"}

    def test_pairs_missing_value_are_dropped(self):
        """Test incomplete pairs are discarded by the pair splitter."""
        assert KeyValuePairsStrategy().try_parse("a: 1, b:, c") == {"a": "1"}

    def test_nothing_parsable_returns_none(self):
        """Test total failure is reported as None."""
        assert parse_loose_object("just some text") is None

    def test_custom_strategy_order(self):
        """Test callers can restrict the strategy list."""
        result = parse_loose_object("{a: 1}", strategies=[KeyValuePairsStrategy()])
        assert result == {"a": "1"}

    def test_deep_nesting_is_a_miss(self):
        """Test nesting past the decoder's depth falls through to pair splitting."""
        deep = '{"a": ' + "[" * 5000 + "]" * 5000 + "}"

        assert QuotedJsonStrategy().try_parse(deep) is None
        assert parse_loose_object(deep) == {'"a"': "[" * 5000 + "]" * 5000}

    def test_raising_strategy_skipped(self, caplog):
        """Test a strategy that raises is logged and the next one is tried."""

        class ExplodingStrategy(LooseObjectStrategy):
            name = "exploding"

            def try_parse(self, text):
                raise RuntimeError("boom")

        with caplog.at_level(logging.WARNING, logger="casebridge.transform.loose_object"):
            result = parse_loose_object("{a: 1}", strategies=[ExplodingStrategy(), KeyValuePairsStrategy()])

        assert result == {"a": "1"}
        assert caplog.records[0].strategy == "exploding"
        assert caplog.records[0].error == "boom"

    @pytest.mark.parametrize(
        "text",
        [
            "{" + "x" * 200000 + "}",
            "{a" + " " * 100000 + "}",
            "{" + "k:" * 50000 + "}",
        ],
    )
    def test_long_values_parse_quickly(self, text):
        """Test long unterminated or repetitive values do not stall quoting."""
        started = time.perf_counter()
        parse_loose_object(text)
        assert time.perf_counter() - started < 2.0


class TestRowTransformer:
    """Tests for row to payload conversion."""

    def test_transform_typical_row(self, sample_row):
        """Test every field rule applied to one row."""
        payload = RowTransformer().transform(sample_row)

        assert payload["birthday_injured"] == "1985-03-07"
        assert payload["products"] == ["Widget A", "Widget B"]
        assert payload["conditions"] == [1, 2, 4]
        assert payload["meta"] == {"gender": "Female", "age": "30"}
        assert payload["litigation_id"] == "12"
        assert payload["fname_injured"] == "Jane"

    def test_empty_values_omitted(self, sample_row):
        """Test empty cells do not appear in the payload."""
        payload = RowTransformer().transform(sample_row)
        assert "notes" not in payload

    def test_unparsable_object_kept_raw(self):
        """Test an object field that cannot be parsed keeps its text."""
        payload = RowTransformer().transform({"meta": "not an object"})
        assert payload["meta"] == "not an object"

    def test_overrides_win(self):
        """Test configured overrides replace row values."""
        overrides = DefaultOverrides(company_uuid="cfg-company", tags="Imported", counsel="Smith LLP")
        payload = RowTransformer(overrides=overrides).transform(
            {"company_uuid": "row-company", "tags": "a, b", "litigation_id": "1"}
        )

        assert payload["company_uuid"] == "cfg-company"
        assert payload["tags"] == ["Imported"]
        assert payload["counsel"] == "Smith LLP"
        assert payload["litigation_id"] == "1"

    def test_missing_overrides_leave_row_values(self):
        """Test unset overrides do not touch the payload."""
        payload = RowTransformer().transform({"company_uuid": "row-company"})
        assert payload == {"company_uuid": "row-company"}

    def test_typed_values_pass_through(self):
        """Test already-typed JSON values are not coerced again."""
        payload = RowTransformer().transform({"conditions": [1, 2], "meta": {"a": "b"}, "age": 30})
        assert payload == {"conditions": [1, 2], "meta": {"a": "b"}, "age": 30}

    def test_custom_field_rules(self):
        """Test callers can supply their own rule table."""
        transformer = RowTransformer(field_rules={"visit_date": FieldKind.DATE})

        payload = transformer.transform({"visit_date": "1/2/2024", "birthday": "1/2/2024"})

        assert payload["visit_date"] == "2024-01-02"
        assert payload["birthday"] == "1/2/2024"

    def test_never_raises_on_malformed_values(self):
        """Test garbage in every typed field still yields a payload."""
        payload = RowTransformer().transform(
            {"birthday": "//", "tags": ",", "information": "x,y", "meta": "{:}"}
        )

        assert payload["birthday"] == "-00-00"
        assert payload["tags"] == ["", ""]
        assert payload["information"] == []
        assert payload["meta"] == "{:}"

    def test_deeply_nested_object_does_not_fail_row(self):
        """Test a pathologically nested meta value still yields a payload."""
        deep = '{"a": ' + "[" * 5000 + "]" * 5000 + "}"

        payload = RowTransformer().transform({"litigation_id": "1", "meta": deep})

        assert payload["litigation_id"] == "1"
        assert payload["meta"] == {'"a"': "[" * 5000 + "]" * 5000}


class TestValidation:
    """Tests for required field validation."""

    def test_missing_field_message(self):
        """Test the first error names the missing field."""
        result = validate_required_fields({"litigation_id": "1"}, ["litigation_id", "status_id"])

        assert not result.is_valid
        assert result.errors == ["Missing required field: status_id"]

    def test_errors_in_field_order(self):
        """Test errors are reported in required-field order."""
        result = validate_required_fields({}, ["litigation_id", "status_id"])
        assert result.errors[0] == "Missing required field: litigation_id"

    def test_valid_record(self):
        """Test a complete record passes."""
        record = {"litigation_id": "1", "status_id": "2"}
        result = validate_required_fields(record, ["litigation_id", "status_id"])

        assert result.is_valid
        assert result.record == record


class TestParseTimestamp:
    """Tests for timestamp parsing."""

    def test_iso_format(self):
        """Test ISO 8601 with Z suffix."""
        result = parse_timestamp("2024-01-15T10:30:00Z")
        assert result.year == 2024 and result.hour == 10
        assert result.tzinfo is not None

    def test_date_only(self):
        """Test plain dates parse to midnight UTC."""
        assert parse_timestamp("2025-03-10").day == 10

    def test_unix_milliseconds(self):
        """Test millisecond epochs are scaled."""
        assert parse_timestamp(1705315800000) == parse_timestamp(1705315800)

    def test_invalid(self):
        """Test unparsable values return None."""
        assert parse_timestamp("not a timestamp") is None
        assert parse_timestamp(None) is None


class TestFlatten:
    """Tests for export flattening."""

    def test_nested_dicts_joined_keys(self, case_records):
        """Test nested objects become prefixed columns."""
        result = flatten_json(case_records[0])
        assert result["meta_gender"] == "Female"

    def test_lists_joined(self):
        """Test lists collapse into one cell."""
        result = flatten_json({"conditions": [1, 2], "tags": [{"name": "A"}]})

        assert result["conditions"] == "1; 2"
        assert result["tags"] == '{"name": "A"}'

    def test_max_depth(self):
        """Test objects past the depth limit are JSON-encoded."""
        result = flatten_json({"a": {"b": {"c": 1}}}, max_depth=1)
        assert result["a_b"] == '{"c": 1}'

    def test_collect_columns_union(self, case_records):
        """Test column order follows first appearance."""
        columns = collect_columns(flatten_records(case_records))

        assert columns[0] == "id"
        assert "meta_gender" in columns
        assert "created_date" in columns
