"""
Tests for schema validation.
"""

import pytest

from contactlink.errors import ValidationError
from contactlink.schema import (
    is_valid_email,
    is_valid_phone_number,
    parse_identify_request,
    validate_identify_request,
)


class TestValidateIdentifyRequest:
    """Test basic validation function."""

    def test_valid_email_and_phone(self):
        errors = validate_identify_request({"email": "a@x.com", "phoneNumber": "123456"})
        assert errors == []

    def test_valid_single_field(self):
        assert validate_identify_request({"email": "a@x.com"}) == []
        assert validate_identify_request({"phoneNumber": "123456"}) == []

    def test_missing_both_fields(self):
        errors = validate_identify_request({})
        assert len(errors) == 1
        assert "at least one" in errors[0].lower()

    def test_empty_and_null_fields_count_as_missing(self):
        errors = validate_identify_request({"email": "", "phoneNumber": None})
        assert any("at least one" in err.lower() for err in errors)

    def test_invalid_email(self):
        errors = validate_identify_request({"email": "not-an-email"})
        assert errors == ["Invalid email format"]

    def test_non_string_email(self):
        errors = validate_identify_request({"email": 42})
        assert any("email" in err.lower() for err in errors)

    def test_invalid_phone(self):
        errors = validate_identify_request({"phoneNumber": "0123"})
        assert errors == ["Invalid phone number format"]

    def test_both_invalid_reports_both(self):
        errors = validate_identify_request({"email": "bad", "phoneNumber": "abc"})
        assert len(errors) == 2


class TestFormats:
    """Test identifier format checks."""

    def test_valid_emails(self):
        for email in ["a@x.com", "first.last+tag@sub.example.org"]:
            assert is_valid_email(email)

    def test_invalid_emails(self):
        for email in ["a@x", "a x@y.com", "@x.com", "a@@x.com"]:
            assert not is_valid_email(email)

    def test_phone_separators_are_ignored(self):
        for phone in ["+1 (555) 123-4567", "555-1234", "919191"]:
            assert is_valid_phone_number(phone)

    def test_invalid_phones(self):
        for phone in ["", "0555", "12345678901234567", "abc", "+"]:
            assert not is_valid_phone_number(phone)


class TestParseIdentifyRequest:
    """Test request parsing."""

    def test_returns_pair(self):
        assert parse_identify_request({"email": "a@x.com", "phoneNumber": "123"}) == ("a@x.com", "123")

    def test_missing_side_is_none(self):
        assert parse_identify_request({"email": "a@x.com"}) == ("a@x.com", None)
        assert parse_identify_request({"phoneNumber": "123"}) == (None, "123")

    def test_integer_phone_becomes_string(self):
        assert parse_identify_request({"phoneNumber": 123456}) == (None, "123456")

    def test_boolean_phone_rejected(self):
        with pytest.raises(ValidationError):
            parse_identify_request({"phoneNumber": True})

    def test_raises_with_all_messages(self):
        with pytest.raises(ValidationError) as excinfo:
            parse_identify_request({"email": "bad", "phoneNumber": "abc"})
        assert len(excinfo.value.errors) == 2
