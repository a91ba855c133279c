"""Tests for cpnet.gateway.parser -- raw payloads to requests."""

from __future__ import annotations

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cpnet.core.result import Err, Ok, unwrap
from cpnet.gateway.parser import (
    create_paper_to_dict,
    parse_assign_did,
    parse_create_paper,
    parse_list_on_market,
    parse_purchase_paper,
    parse_redeem_paper,
)


def _create_payload() -> dict[str, object]:
    return {
        "CUSIP": "CP001",
        "ticker": "ALPHA",
        "maturity": 30,
        "workingCurrency": "USD",
        "par": "1000000",
        "issuer": "A",
        "timestamp": "2025-01-06T09:30:00Z",
    }


# ---------------------------------------------------------------------------
# CreatePaper
# ---------------------------------------------------------------------------


class TestParseCreatePaper:
    def test_valid(self) -> None:
        req = unwrap(parse_create_paper(_create_payload()))
        assert req.par == Decimal("1000000")
        assert req.number_to_create == 1
        assert req.submitted_at.value.isoformat() == "2025-01-06T09:30:00+00:00"

    def test_string_numbers_accepted(self) -> None:
        req = unwrap(parse_create_paper(_create_payload() | {"maturity": "45", "numberToCreate": "2"}))
        assert req.maturity == 45
        assert req.number_to_create == 2

    def test_missing_fields_reported_together(self) -> None:
        result = parse_create_paper({"CUSIP": "CP001"})
        assert isinstance(result, Err)
        assert result.error.code == "GATEWAY_PARSE"
        assert {f.path for f in result.error.fields} == {
            "ticker", "workingCurrency", "issuer", "maturity", "par",
        }

    @pytest.mark.parametrize("bad", [True, 1.5, "thirty", None])
    def test_bad_maturity(self, bad: object) -> None:
        result = parse_create_paper(_create_payload() | {"maturity": bad})
        assert isinstance(result, Err)
        assert result.error.fields[0].path == "maturity"

    def test_bad_timestamp(self) -> None:
        result = parse_create_paper(_create_payload() | {"timestamp": "yesterday"})
        assert isinstance(result, Err)
        assert result.error.fields[0].path == "timestamp"

    def test_naive_timestamp_rejected(self) -> None:
        result = parse_create_paper(_create_payload() | {"timestamp": "2025-01-06T09:30:00"})
        assert isinstance(result, Err)

    def test_request_validation_retagged(self) -> None:
        result = parse_create_paper(_create_payload() | {"par": "-5"})
        assert isinstance(result, Err)
        assert result.error.code == "GATEWAY_PARSE"
        assert result.error.source == "gateway.parser.parse_create_paper"

    def test_round_trip_through_dict(self) -> None:
        req = unwrap(parse_create_paper(_create_payload()))
        assert parse_create_paper(create_paper_to_dict(req)) == Ok(req)

    @given(st.dictionaries(st.text(max_size=8), st.one_of(st.none(), st.integers(), st.text(max_size=8))))
    def test_total_on_arbitrary_input(self, raw: dict[str, object]) -> None:
        assert isinstance(parse_create_paper(raw), (Ok, Err))


# ---------------------------------------------------------------------------
# Other transactions
# ---------------------------------------------------------------------------


class TestParseOthers:
    def test_list_on_market(self) -> None:
        req = unwrap(parse_list_on_market({
            "market": "M1", "discount": "0.05", "papersToList": ["CP001", "cp002"],
        }))
        assert req.discount.value == Decimal("0.05")
        assert req.papers_to_list == ("CP001", "CP002")

    def test_list_on_market_bad_items(self) -> None:
        result = parse_list_on_market({"market": "M1", "discount": 0, "papersToList": ["CP001", 7]})
        assert isinstance(result, Err)
        assert result.error.fields[0].path == "papersToList[1]"

    def test_list_on_market_not_a_list(self) -> None:
        result = parse_list_on_market({"market": "M1", "discount": "0.05", "papersToList": "CP001"})
        assert isinstance(result, Err)

    def test_purchase(self) -> None:
        req = unwrap(parse_purchase_paper({"market": "M1", "listingID": "LST-1", "account": "ACC-B1"}))
        assert req.listing_id.value == "LST-1"

    def test_redeem(self) -> None:
        assert unwrap(parse_redeem_paper({"maturedPaper": "CP001"})).matured_paper.value == "CP001"
        assert isinstance(parse_redeem_paper({}), Err)

    def test_assign_did(self) -> None:
        req = unwrap(parse_assign_did({
            "targetCompany": "A",
            "publicdid": {"scheme": "did", "method": "sov", "identifier": "V4SGRU86Z58d6TV7PBUe6f"},
        }))
        assert req.publicdid.identifier == "V4SGRU86Z58d6TV7PBUe6f"

    def test_assign_did_missing_part(self) -> None:
        result = parse_assign_did({"targetCompany": "A", "publicdid": {"scheme": "did"}})
        assert isinstance(result, Err)
        assert {f.path for f in result.error.fields} == {"publicdid.method", "publicdid.identifier"}
