"""Tests for cpnet.core.identifiers -- Cusip and Did."""

from __future__ import annotations

from hypothesis import given

from cpnet.core.identifiers import Cusip, Did, cusip_check_digit
from cpnet.core.result import Err, Ok, unwrap
from conftest import cusips


class TestCusip:
    def test_normalizes_case_and_whitespace(self) -> None:
        assert unwrap(Cusip.parse("  cp001 ")).value == "CP001"

    def test_rejects_empty(self) -> None:
        assert isinstance(Cusip.parse("   "), Err)

    def test_rejects_bad_characters(self) -> None:
        result = Cusip.parse("CP 001")
        assert isinstance(result, Err)
        assert "invalid characters" in result.error

    def test_rejects_too_long(self) -> None:
        assert isinstance(Cusip.parse("A" * 33), Err)

    def test_unit_suffix(self) -> None:
        assert Cusip(value="CP001").with_unit_suffix(2).value == "CP001-002"

    def test_standard_check_digit(self) -> None:
        # Apple Inc. common stock
        assert cusip_check_digit("03783310") == 0
        assert Cusip(value="037833100").is_standard()
        assert not Cusip(value="037833101").is_standard()
        assert not Cusip(value="CP001").is_standard()

    @given(cusips())
    def test_parse_idempotent(self, raw: str) -> None:
        first = unwrap(Cusip.parse(raw))
        assert Cusip.parse(first.value) == Ok(first)


class TestDid:
    IDENT = "V4SGRU86Z58d6TV7PBUe6f"

    def test_create_valid(self) -> None:
        did = unwrap(Did.create("did", "sov", self.IDENT))
        assert did.value == f"did:sov:{self.IDENT}"

    def test_wrong_method(self) -> None:
        result = Did.create("did", "web", self.IDENT)
        assert isinstance(result, Err)
        assert "sov" in result.error

    def test_wrong_scheme(self) -> None:
        assert isinstance(Did.create("urn", "sov", self.IDENT), Err)

    def test_identifier_not_base58(self) -> None:
        # 0 and O are outside base58
        assert isinstance(Did.create("did", "sov", "0" * 22), Err)

    def test_identifier_too_short(self) -> None:
        assert isinstance(Did.create("did", "sov", "abc"), Err)

    def test_parse_compact_form(self) -> None:
        assert Did.parse(f"did:sov:{self.IDENT}") == Did.create("did", "sov", self.IDENT)
        assert isinstance(Did.parse("did:sov"), Err)
