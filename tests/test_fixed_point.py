"""Tests for fixed-point money arithmetic."""

import math
from decimal import Decimal

from sizing_core.fixed_point import (
    ONE,
    ZERO,
    add,
    div,
    from_fixed,
    fsum,
    mul,
    sub,
    to_fixed,
)


class TestConversion:
    def test_float_keeps_shortest_repr(self) -> None:
        assert to_fixed(0.1) == Decimal("0.10000000")

    def test_rounded_to_significant_digits(self) -> None:
        assert to_fixed(1.234567891) == Decimal("1.234567891")
        assert to_fixed("1.23456789012345678901234567891") == Decimal("1.234567890123456789012345679")

    def test_sub_cent_price_kept(self) -> None:
        assert to_fixed(0.000001234567) == Decimal("0.000001234567")
        assert from_fixed(to_fixed(1.5e-12)) == 1.5e-12

    def test_non_finite_and_none_are_zero(self) -> None:
        assert to_fixed(math.nan) == ZERO
        assert to_fixed(math.inf) == ZERO
        assert to_fixed(None) == ZERO
        assert to_fixed(True) == ZERO

    def test_unparseable_string_is_zero(self) -> None:
        assert to_fixed("abc") == ZERO

    def test_round_trip_to_float(self) -> None:
        assert from_fixed(to_fixed(123.45)) == 123.45


class TestOperations:
    def test_add_sub_mul(self) -> None:
        assert add(to_fixed(0.1), to_fixed(0.2)) == to_fixed(0.3)
        assert sub(to_fixed(1), to_fixed(0.25)) == to_fixed(0.75)
        assert mul(to_fixed(3), to_fixed(0.5)) == to_fixed(1.5)

    def test_div_rounds_half_up(self) -> None:
        assert div(to_fixed(2), to_fixed(3)) == Decimal("0.6666666666666666666666666667")
        assert div(ONE, to_fixed(3)) == Decimal("0.3333333333333333333333333333")

    def test_small_ratio_keeps_relative_precision(self) -> None:
        ratio = div(to_fixed(0.1), to_fixed(30000))
        assert abs(mul(ratio, to_fixed(30000)) - Decimal("0.1")) < Decimal("1e-25")

    def test_div_by_zero_is_zero(self) -> None:
        assert div(to_fixed(5), ZERO) == ZERO

    def test_fsum(self) -> None:
        assert fsum(to_fixed(0.1) for _ in range(10)) == ONE
        assert fsum([]) == ZERO

    def test_repeated_chain_is_stable(self) -> None:
        first = div(mul(to_fixed(100), to_fixed(0.3)), to_fixed(7))
        for _ in range(5):
            assert div(mul(to_fixed(100), to_fixed(0.3)), to_fixed(7)) == first
