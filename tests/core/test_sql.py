"""Tests for SQL text builders."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from tablepull.core.errors import ConfigurationError
from tablepull.core.sql import literal, qualified, select_all, select_distinct, select_for_key, validate_identifier


class TestValidateIdentifier:
    @pytest.mark.parametrize("name", ["LLDS_HDR", "llds", "_x", "T$1", "COL#2"])
    def test_valid(self, name):
        assert validate_identifier(name) == name

    @pytest.mark.parametrize("name", ["", "1ABC", "HDR; DROP TABLE X", "a b", "a.b", "x'--"])
    def test_invalid(self, name):
        with pytest.raises(ConfigurationError):
            validate_identifier(name, what="table")

    def test_non_string(self):
        with pytest.raises(ConfigurationError):
            validate_identifier(None)  # type: ignore[arg-type]


class TestLiteral:
    def test_int(self):
        assert literal(2021) == "2021"

    def test_decimal(self):
        assert literal(Decimal("12.50")) == "12.50"

    def test_float(self):
        assert literal(1.5) == "1.5"

    def test_string_quoted_and_escaped(self):
        assert literal("O'Neil") == "'O''Neil'"

    def test_date(self):
        assert literal(date(2021, 3, 4)) == "DATE '2021-03-04'"

    def test_datetime(self):
        assert literal(datetime(2021, 3, 4, 5, 6, 7)) == "TIMESTAMP '2021-03-04 05:06:07'"

    @pytest.mark.parametrize("value", [True, float("nan"), float("inf"), object(), None])
    def test_rejected(self, value):
        with pytest.raises(ConfigurationError):
            literal(value)


class TestBuilders:
    def test_qualified(self):
        assert qualified("llds", "LLDS_HDR") == "llds.LLDS_HDR"

    def test_select_all(self):
        assert select_all("llds", "LLDS_HDR") == "SELECT * FROM llds.LLDS_HDR"

    def test_select_for_key(self):
        assert select_for_key("llds", "LLDS_HDR", "LANDYR", 2021) == "SELECT * FROM llds.LLDS_HDR WHERE LANDYR = 2021"

    def test_select_distinct(self):
        assert select_distinct("newobs", "LDS_TRIPS_V", "TRIP_YEAR") == (
            "SELECT DISTINCT TRIP_YEAR FROM newobs.LDS_TRIPS_V ORDER BY TRIP_YEAR"
        )

    def test_bad_column_rejected(self):
        with pytest.raises(ConfigurationError):
            select_for_key("llds", "LLDS_HDR", "LANDYR OR 1=1", 2021)
