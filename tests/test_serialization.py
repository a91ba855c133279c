"""Tests for cpnet.core.serialization -- canonical bytes and derived ids."""

from __future__ import annotations

import json
from datetime import UTC, date, datetime
from decimal import Decimal

from cpnet.core.money import Money
from cpnet.core.result import Err, unwrap
from cpnet.core.serialization import canonical_bytes, content_hash, derive_id
from cpnet.core.types import FrozenMap, UtcDatetime
from cpnet.instrument.paper import PaperStatus


class TestCanonicalBytes:
    def test_dataclass_carries_type_tag(self) -> None:
        decoded = json.loads(unwrap(canonical_bytes(Money.of("1.50", "USD"))))
        assert decoded == {
            "_type": "Money",
            "amount": "1.5",
            "currency": {"_type": "NonEmptyStr", "value": "USD"},
        }

    def test_decimal_normalized(self) -> None:
        assert canonical_bytes(Decimal("1.500")) == canonical_bytes(Decimal("1.5"))
        assert unwrap(canonical_bytes(Decimal("0.00"))) == b'"0"'

    def test_dict_key_order_irrelevant(self) -> None:
        assert canonical_bytes({"b": 1, "a": 2}) == canonical_bytes({"a": 2, "b": 1})

    def test_dates_enums_maps(self) -> None:
        value = {
            "d": date(2025, 2, 5),
            "t": UtcDatetime(value=datetime(2025, 1, 6, tzinfo=UTC)),
            "s": PaperStatus.LISTED,
            "m": unwrap(FrozenMap.create({"k": 1})),
            "f": frozenset({"y", "x"}),
        }
        decoded = json.loads(unwrap(canonical_bytes(value)))
        assert decoded["d"] == "2025-02-05"
        assert decoded["t"] == "2025-01-06T00:00:00+00:00"
        assert decoded["s"] == "Listed"
        assert decoded["m"] == {"k": 1}
        assert decoded["f"] == ["x", "y"]

    def test_unsupported_type_is_err(self) -> None:
        result = canonical_bytes(object())
        assert isinstance(result, Err)
        assert "Unsupported" in result.error

    def test_naive_datetime_is_err(self) -> None:
        assert isinstance(canonical_bytes(datetime(2025, 1, 1)), Err)  # noqa: DTZ001


class TestIds:
    def test_content_hash_stable(self) -> None:
        assert unwrap(content_hash({"a": 1})) == unwrap(content_hash({"a": 1}))
        assert len(unwrap(content_hash({"a": 1}))) == 64

    def test_derive_id_deterministic(self) -> None:
        a = derive_id("LST", "M1", "CP001", 2)
        assert a == derive_id("LST", "M1", "CP001", 2)
        assert a != derive_id("LST", "M1", "CP001", 3)
        assert a.startswith("LST-") and len(a) == 20
