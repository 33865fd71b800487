"""Tests for simulation/diagnostics.py - solver failure classification."""

import pytest
from simulation.diagnostics import FailureCategory, classify_failure, diagnose_failure, format_user_message


class TestClassifyFailure:
    @pytest.mark.parametrize(
        "stderr, category",
        [
            ("ngspice executable not found", FailureCategory.SOLVER_NOT_FOUND),
            ("Simulation timed out (>60 seconds)", FailureCategory.TIMEOUT),
            ("Error on line 4 : r1 1 2 abc", FailureCategory.NETLIST_SYNTAX),
            ("Error: unknown subckt: x1 1 2 amp", FailureCategory.MISSING_MODEL),
            ("Warning: singular matrix:  check nodes 3 and 3", FailureCategory.SINGULAR_MATRIX),
            ("doAnalyses: TRAN:  Timestep too small", FailureCategory.TIMESTEP_TOO_SMALL),
            ("Note: Source Stepping failed", FailureCategory.DC_CONVERGENCE),
        ],
    )
    def test_categories(self, stderr, category):
        assert classify_failure(stderr)[0] == category

    def test_detail_is_matching_line(self):
        stderr = "Circuit: * test\nError on line 2 :\n  bad value\n"
        assert classify_failure(stderr) == (FailureCategory.NETLIST_SYNTAX, "Error on line 2 :")

    def test_stderr_searched_before_stdout(self):
        category, _ = classify_failure("singular matrix", "Error on line 1")
        assert category == FailureCategory.SINGULAR_MATRIX

    def test_falls_back_to_stdout(self):
        category, _ = classify_failure("", "Error on line 1")
        assert category == FailureCategory.NETLIST_SYNTAX

    def test_unknown(self):
        assert classify_failure("segmentation fault", "") == (FailureCategory.UNKNOWN, "")


class TestDiagnoseFailure:
    def test_suggestions_are_copies(self):
        first = diagnose_failure("timed out")
        first.suggestions.append("extra")
        assert "extra" not in diagnose_failure("timed out").suggestions

    def test_user_message(self):
        text = format_user_message(diagnose_failure("Error on line 3 : v1 1 0 DC x"))
        assert text.startswith("ngspice rejected a line of the generated netlist.")
        assert "  ngspice: Error on line 3 : v1 1 0 DC x" in text
        assert "\nSuggestions:\n  - " in text

    def test_user_message_without_detail(self):
        text = format_user_message(diagnose_failure(""))
        assert "ngspice:" not in text
