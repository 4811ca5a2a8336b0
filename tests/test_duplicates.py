"""Tests for duplicate detection."""

import requests

from casebridge.transform.duplicates import (
    CaseIdentity,
    find_duplicates,
    find_duplicates_by_query,
    row_identity,
    row_query_values,
)


class TestIdentity:
    """Tests for identity extraction and matching."""

    def test_injured_columns_win(self):
        """Test *_injured columns take priority over bare ones."""
        identity = row_identity({"fname": "Other", "fname_injured": " Jane ", "lname": "Doe"})
        assert identity == CaseIdentity(fname="jane", lname="doe", email="")

    def test_empty_fields_are_wildcards(self):
        """Test empty components match anything."""
        partial = CaseIdentity(fname="jane", lname="doe")
        assert partial.matches(CaseIdentity("jane", "doe", "jane@example.com"))
        assert not partial.matches(CaseIdentity("jane", "smith", "jane@example.com"))

    def test_query_values_keep_case(self):
        """Test remote search values are trimmed but not case-folded."""
        values = row_query_values({"fname": " Jane ", "email_injured": "J@X.COM", "lname_injured": ""})
        assert values == {"fname_injured": "Jane", "email_injured": "J@X.COM"}


class TestFindDuplicates:
    """Tests for in-memory duplicate matching."""

    def test_case_insensitive_match(self, case_records):
        """Test names and emails compare case-insensitively."""
        rows = [{"fname_injured": "JANE", "lname_injured": "doe", "email_injured": "Jane@Example.com"}]
        assert find_duplicates(rows, case_records) == {0}

    def test_empty_email_matches_on_names(self, case_records):
        """Test a row without email matches on its names alone."""
        rows = [{"fname_injured": "Jane", "lname_injured": "Doe", "email_injured": ""}]
        assert find_duplicates(rows, case_records) == {0}

    def test_different_email_not_duplicate(self, case_records):
        """Test a conflicting email prevents a match."""
        rows = [{"fname_injured": "Jane", "lname_injured": "Doe", "email_injured": "other@example.com"}]
        assert find_duplicates(rows, case_records) == set()

    def test_row_without_identity_never_flagged(self, case_records):
        """Test rows with no identity fields are not duplicates."""
        rows = [{"litigation_id": "12"}, {"fname_injured": "", "lname_injured": " "}]
        assert find_duplicates(rows, case_records) == set()

    def test_email_only_row(self, case_records):
        """Test an email-only row matches on email."""
        rows = [{"email": "john@example.com"}]
        assert find_duplicates(rows, case_records) == {0}

    def test_indices_follow_input(self, case_records):
        """Test flagged indices refer to input positions."""
        rows = [
            {"fname_injured": "New", "lname_injured": "Person"},
            {"fname_injured": "John", "lname_injured": "Smith"},
        ]
        assert find_duplicates(rows, case_records) == {1}

    def test_no_existing_records(self):
        """Test nothing is flagged against an empty set."""
        assert find_duplicates([{"fname": "Jane"}], []) == set()


class TestFindDuplicatesByQuery:
    """Tests for per-row remote duplicate lookups."""

    def test_lookup_results_matched_locally(self, case_records):
        """Test loose remote results are re-checked with the matching rule."""
        rows = [
            {"fname_injured": "Jane", "lname_injured": "Doe"},
            {"fname_injured": "Jan", "lname_injured": "Do"},
        ]
        report = find_duplicates_by_query(rows, lambda row: case_records, max_workers=2)

        assert report.duplicates == [0]
        assert report.unchecked == []
        assert report.complete

    def test_rows_without_identity_skip_lookup(self):
        """Test no lookup is issued for identity-less rows."""
        looked_up = []

        def lookup(row):
            looked_up.append(row)
            return []

        report = find_duplicates_by_query([{"litigation_id": "1"}], lookup)

        assert looked_up == []
        assert report.duplicates == []

    def test_failed_lookup_marked_unchecked(self, case_records):
        """Test a failed lookup is reported instead of treated as new."""
        def lookup(row):
            if row["fname_injured"] == "Jane":
                raise requests.ConnectionError("down")
            return case_records

        rows = [
            {"fname_injured": "Jane", "lname_injured": "Doe"},
            {"fname_injured": "John", "lname_injured": "Smith"},
        ]
        report = find_duplicates_by_query(rows, lookup)

        assert report.duplicates == [1]
        assert report.unchecked == [0]
        assert not report.complete
        assert report.to_dict()["complete"] is False
