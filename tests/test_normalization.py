"""Tests for app/normalization: email and phone normalizers."""
from __future__ import annotations

import pytest

from app.normalization import normalize_email, normalize_phone


# ===========================================================================
# Phone
# ===========================================================================

class TestPhoneNormalizerGreekFormats:
    def test_mobile_without_prefix(self) -> None:
        assert normalize_phone("6912345678") == "+306912345678"

    def test_mobile_with_spaces(self) -> None:
        assert normalize_phone("691 234 5678") == "+306912345678"

    def test_landline(self) -> None:
        assert normalize_phone("210 3234567") == "+302103234567"

    def test_international_prefix(self) -> None:
        assert normalize_phone("+30 691 234 5678") == "+306912345678"

    def test_double_zero_prefix(self) -> None:
        assert normalize_phone("0030 6912345678") == "+306912345678"


class TestPhoneNormalizerRegions:
    def test_foreign_number_with_prefix(self) -> None:
        assert normalize_phone("+44 7911 123456") == "+447911123456"

    def test_explicit_region_us(self) -> None:
        assert normalize_phone("(212) 555-1234", default_region="US") == "+12125551234"

    def test_explicit_region_gb(self) -> None:
        assert normalize_phone("07911 123456", default_region="GB") == "+447911123456"


class TestPhoneNormalizerEdgeCases:
    @pytest.mark.parametrize("raw", [None, "", "   ", "call me", "123", "+30 12"])
    def test_unusable_input_returns_none(self, raw) -> None:
        assert normalize_phone(raw) is None


# ===========================================================================
# Email
# ===========================================================================

class TestEmailNormalizer:
    def test_uppercase_lowercased(self) -> None:
        assert normalize_email("Eleni@Example.GR") == "eleni@example.gr"

    def test_whitespace_stripped(self) -> None:
        assert normalize_email("  eleni@example.gr \n") == "eleni@example.gr"

    def test_dots_and_tags_preserved(self) -> None:
        assert normalize_email("e.l.e.n.i+council@gmail.com") == "e.l.e.n.i+council@gmail.com"

    @pytest.mark.parametrize("raw", [None, "", "   ", "no-at-sign", "@example.gr", "eleni@", "a@b@c", "a b@c.gr"])
    def test_unusable_input_returns_none(self, raw) -> None:
        assert normalize_email(raw) is None
