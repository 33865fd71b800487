"""
Tests for simulation/result_parser.py - ngspice output parsing.
"""

import numpy as np
import pytest
from simulation.result_parser import ResultParser

# ── parse_op_results ─────────────────────────────────────────────────


class TestParseOpResults:
    def test_equals_form(self):
        output = "v(1) = 5.00000\nv(2) = 2.50000\n"
        result = ResultParser.parse_op_results(output)
        assert result["v(1)"] == pytest.approx(5.0)
        assert result["v(2)"] == pytest.approx(2.5)

    def test_colon_form(self):
        assert ResultParser.parse_op_results("v(out): 3.3\n") == {"v(out)": pytest.approx(3.3)}

    def test_print_form_lower_cased(self):
        result = ResultParser.parse_op_results("  V(2)                        2.500000e+00\n")
        assert result["v(2)"] == pytest.approx(2.5)

    def test_branch_currents(self):
        output = "i(V1) = -2.5e-03\n@r1[i] = 2.5e-03\n"
        result = ResultParser.parse_op_results(output)
        assert result["i(v1)"] == pytest.approx(-2.5e-3)
        assert result["@r1[i]"] == pytest.approx(2.5e-3)

    def test_ignores_other_lines(self):
        output = "Circuit: * Schematic netlist\nDoing analysis at TEMP = 27.000000\n\nv(1) = 5\n"
        assert ResultParser.parse_op_results(output) == {"v(1)": 5.0}

    def test_empty_string(self):
        assert ResultParser.parse_op_results("") == {}


# ── parse_wrdata ─────────────────────────────────────────────────────


class TestParseWrdata:
    def test_named_signals(self):
        text = "0.0 0.0 0.0 1.0\n1e-3 2.5 1e-3 -1.0\n"
        table = ResultParser.parse_wrdata(text, signals=["v(2)", "i(V1)"])
        assert list(table.sweep) == [0.0, 1e-3]
        assert list(table["v(2)"]) == [0.0, 2.5]
        assert list(table["i(V1)"]) == [1.0, -1.0]
        assert len(table) == 2

    def test_names_from_header(self):
        text = "time v(2) time v(3)\n0 1 0 2\n1 3 1 4\n"
        table = ResultParser.parse_wrdata(text)
        assert set(table.signals) == {"v(2)", "v(3)"}
        assert list(table["v(3)"]) == [2.0, 4.0]

    def test_unnamed_columns_get_placeholders(self):
        table = ResultParser.parse_wrdata("0 1 0 2\n", signals=["v(1)"])
        assert list(table.signals) == ["v(1)", "signal2"]

    def test_complex_blocks(self):
        text = "10 0.5 -0.5 10 1 0\n100 0.1 -0.2 100 1 0\n"
        table = ResultParser.parse_wrdata(text, signals=["v(2)", "v(1)"], complex_values=True)
        assert table["v(2)"].dtype == np.complex128
        assert table["v(2)"][1] == complex(0.1, -0.2)
        assert list(table.sweep) == [10.0, 100.0]

    def test_ragged_rows_truncated(self):
        table = ResultParser.parse_wrdata("0 1 0 2\n1 3\n", signals=["a", "b"])
        assert list(table.signals) == ["a"]

    def test_no_rows_returns_none(self):
        assert ResultParser.parse_wrdata("time v(2)\n") is None
        assert ResultParser.parse_wrdata("") is None

    def test_for_net(self):
        table = ResultParser.parse_wrdata("0 5\n", signals=["v(1)"])
        assert list(table.for_net("1")) == [5.0]
        assert table.for_net("2") is None


class TestHelpers:
    def test_magnitude_db(self):
        samples = np.array([1.0 + 0j, 10.0 + 0j])
        assert ResultParser.magnitude_db(samples) == pytest.approx([0.0, 20.0])

    def test_phase_deg(self):
        assert ResultParser.phase_deg(np.array([1j]))[0] == pytest.approx(90.0)
