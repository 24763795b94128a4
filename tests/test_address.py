"""Tests for gridcalc cell addresses, grid bounds and ranges."""

from __future__ import annotations

import pytest

from gridcalc._address import CellAddress, CellRange, GridBounds, column_index, column_letters
from gridcalc._errors import InvalidAddressError


class TestColumnLetters:
    @pytest.mark.parametrize(
        ("index", "letters"),
        [(0, "A"), (25, "Z"), (26, "AA"), (27, "AB"), (701, "ZZ"), (702, "AAA"), (18277, "ZZZ")],
    )
    def test_known_columns(self, index: int, letters: str) -> None:
        assert column_letters(index) == letters
        assert column_index(letters) == index

    def test_bijection(self) -> None:
        for index in range(3000):
            assert column_index(column_letters(index)) == index

    def test_lowercase_letters(self) -> None:
        assert column_index("ab") == 27

    def test_negative_index_rejected(self) -> None:
        with pytest.raises(ValueError):
            column_letters(-1)

    def test_non_letters_rejected(self) -> None:
        with pytest.raises(ValueError):
            column_index("A1")


class TestCellAddressParse:
    def test_simple(self) -> None:
        addr = CellAddress.parse("B12")
        assert addr.column == 1
        assert addr.row == 11
        assert addr.label == "B12"
        assert str(addr) == "B12"

    def test_case_and_whitespace(self) -> None:
        assert CellAddress.parse("  aa3 ") == CellAddress(26, 2)

    @pytest.mark.parametrize("text", ["", "12", "A", "A0", "A01", "1A", "A1B", "$A$1", "A-1", "A 1"])
    def test_malformed_rejected(self, text: str) -> None:
        with pytest.raises(InvalidAddressError):
            CellAddress.parse(text)

    def test_within_bounds(self) -> None:
        bounds = GridBounds(10, 10)
        assert CellAddress.parse("J10", bounds) == CellAddress(9, 9)

    @pytest.mark.parametrize("text", ["K1", "A11", "ZZ99"])
    def test_out_of_bounds_rejected(self, text: str) -> None:
        with pytest.raises(InvalidAddressError, match="out of bounds"):
            CellAddress.parse(text, GridBounds(10, 10))

    def test_invalid_address_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            CellAddress.parse("nope")


class TestCellAddress:
    def test_row_major_ordering(self) -> None:
        a1, b1, a2 = CellAddress.parse("A1"), CellAddress.parse("B1"), CellAddress.parse("A2")
        assert sorted([a2, b1, a1]) == [a1, b1, a2]

    def test_hashable(self) -> None:
        assert len({CellAddress(0, 0), CellAddress.parse("A1")}) == 1

    def test_offset(self) -> None:
        assert CellAddress.parse("B2").offset(1, 2) == CellAddress.parse("C4")

    def test_negative_rejected(self) -> None:
        with pytest.raises(ValueError):
            CellAddress(-1, 0)

    def test_repr(self) -> None:
        assert repr(CellAddress(2, 4)) == "CellAddress(C5)"


class TestGridBounds:
    def test_contains(self) -> None:
        bounds = GridBounds(3, 2)
        assert bounds.contains(1, 2)
        assert not bounds.contains(2, 0)
        assert not bounds.contains(0, 3)

    @pytest.mark.parametrize(("rows", "cols"), [(0, 5), (5, 0), (1000, 1), (1, 18279)])
    def test_limits(self, rows: int, cols: int) -> None:
        with pytest.raises(ValueError):
            GridBounds(rows, cols)

    def test_largest_grid(self) -> None:
        bounds = GridBounds(999, 18278)
        assert CellAddress.parse("ZZZ999", bounds) == CellAddress(18277, 998)


class TestCellRange:
    def test_corners_normalised(self) -> None:
        block = CellRange.parse("B3:A1")
        assert block.start == CellAddress.parse("A1")
        assert block.end == CellAddress.parse("B3")
        assert str(block) == "A1:B3"

    def test_brackets_allowed(self) -> None:
        assert CellRange.parse("[A1:B3]") == CellRange.parse("A1:B3")

    def test_iteration_row_major(self) -> None:
        labels = [a.label for a in CellRange.parse("A1:B3")]
        assert labels == ["A1", "B1", "A2", "B2", "A3", "B3"]

    def test_shape_and_len(self) -> None:
        block = CellRange.parse("A1:B3")
        assert block.shape == (3, 2)
        assert len(block) == 6

    def test_contains(self) -> None:
        block = CellRange.parse("B2:C3")
        assert CellAddress.parse("C3") in block
        assert CellAddress.parse("A1") not in block
        assert "B2" not in block

    def test_single_address_rejected(self) -> None:
        with pytest.raises(InvalidAddressError):
            CellRange.parse("A1")

    def test_out_of_bounds_corner(self) -> None:
        with pytest.raises(InvalidAddressError):
            CellRange.parse("A1:K1", GridBounds(10, 10))
