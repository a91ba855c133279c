"""Tests for cpnet.core.result -- explicit Ok / Err values."""

from __future__ import annotations

import dataclasses

import pytest
from hypothesis import given
from hypothesis import strategies as st

from cpnet.core.result import Err, Ok, unwrap


class TestOkErr:
    def test_ok_holds_value(self) -> None:
        assert Ok(42).value == 42

    def test_err_holds_error(self) -> None:
        assert Err("fail").error == "fail"

    def test_frozen(self) -> None:
        with pytest.raises(dataclasses.FrozenInstanceError):
            Ok(1).value = 2  # type: ignore[misc]

    def test_pattern_match(self) -> None:
        match Err("boom"):
            case Ok(_):
                pytest.fail("Should match Err")
            case Err(e):
                assert e == "boom"

    def test_map_and_then(self) -> None:
        assert Ok(2).map(lambda x: x * 3) == Ok(6)
        assert Ok(2).and_then(lambda x: Err(f"bad {x}")) == Err("bad 2")
        assert Err("e").map(lambda x: x * 3) == Err("e")
        assert Err("e").and_then(lambda x: Ok(x)) == Err("e")

    def test_method_unwrap(self) -> None:
        assert Ok(1).unwrap() == 1
        with pytest.raises(RuntimeError, match="unwrap on Err"):
            Err("e").unwrap()

    def test_unwrap_err_raises(self) -> None:
        with pytest.raises(RuntimeError, match="unwrap on Err"):
            unwrap(Err("nope"))

    @given(st.integers())
    def test_unwrap_ok_roundtrip(self, n: int) -> None:
        assert unwrap(Ok(n)) == n

