"""Tests for US address / contact normalization."""

from app.utils.us_address import (
    clean_text,
    normalize_county,
    normalize_email,
    normalize_state,
    normalize_zip,
    slugify,
)


class TestCleanText:
    def test_collapses_whitespace(self):
        assert clean_text("  Acme   HOA\nManagement ") == "Acme HOA Management"

    def test_placeholders_are_none(self):
        assert clean_text("N/A") is None
        assert clean_text("Unknown") is None
        assert clean_text("") is None
        assert clean_text(None) is None

    def test_fullwidth_normalized(self):
        assert clean_text("ＡＣＭＥ") == "ACME"


class TestNormalizeState:
    def test_code_to_name(self):
        assert normalize_state("TX") == "Texas"
        assert normalize_state("fl") == "Florida"

    def test_dotted_code(self):
        assert normalize_state("N.Y.") == "New York"

    def test_full_name_casing(self):
        assert normalize_state("north carolina") == "North Carolina"

    def test_unknown_passes_through(self):
        assert normalize_state("Ontario") == "Ontario"


class TestNormalizeCounty:
    def test_strips_suffix(self):
        assert normalize_county("Palm Beach County") == "Palm Beach"

    def test_parish(self):
        assert normalize_county("Orleans Parish") == "Orleans"

    def test_plain(self):
        assert normalize_county("Dallas") == "Dallas"


class TestNormalizeZip:
    def test_five_digit(self):
        assert normalize_zip("75201") == "75201"

    def test_zip_plus_four(self):
        assert normalize_zip("ZIP 75201-1234") == "75201-1234"

    def test_invalid(self):
        assert normalize_zip("TX") is None


class TestNormalizeEmail:
    def test_lowercases(self):
        assert normalize_email("Info@AcmeHOA.com") == "info@acmehoa.com"

    def test_mailto(self):
        assert normalize_email("mailto:info@acmehoa.com") == "info@acmehoa.com"

    def test_invalid(self):
        assert normalize_email("call the office") is None


class TestSlugify:
    def test_basic(self):
        assert slugify("Sunset Village") == "sunsetvillage"

    def test_accents(self):
        assert slugify("Café Pointe") == "cafepointe"
