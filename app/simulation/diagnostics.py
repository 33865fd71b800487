"""
simulation/diagnostics.py

Turns ngspice console output from a failed run into a structured diagnosis
the editor can show inline.
"""

import re
from dataclasses import dataclass, field
from enum import Enum


class FailureCategory(Enum):
    """Categories of solver failures."""

    SOLVER_NOT_FOUND = "solver_not_found"
    TIMEOUT = "timeout"
    NETLIST_SYNTAX = "netlist_syntax"
    MISSING_MODEL = "missing_model"
    SINGULAR_MATRIX = "singular_matrix"
    DC_CONVERGENCE = "dc_convergence"
    TIMESTEP_TOO_SMALL = "timestep_too_small"
    NO_OUTPUT = "no_output"
    UNKNOWN = "unknown"


# First match wins; stderr is searched before stdout
_PATTERNS: list[tuple[re.Pattern, FailureCategory]] = [
    (re.compile(r"ngspice executable not found", re.IGNORECASE), FailureCategory.SOLVER_NOT_FOUND),
    (re.compile(r"timed out", re.IGNORECASE), FailureCategory.TIMEOUT),
    (re.compile(r"(unknown subckt|could not find (a valid )?model|unable to find definition of model)", re.IGNORECASE),
     FailureCategory.MISSING_MODEL),
    (re.compile(r"singular matrix", re.IGNORECASE), FailureCategory.SINGULAR_MATRIX),
    (re.compile(r"timestep too small", re.IGNORECASE), FailureCategory.TIMESTEP_TOO_SMALL),
    (re.compile(r"(no convergence|source stepping failed|gmin stepping failed)", re.IGNORECASE),
     FailureCategory.DC_CONVERGENCE),
    (re.compile(r"(error on line|syntax error|unknown parameter|too few nodes)", re.IGNORECASE),
     FailureCategory.NETLIST_SYNTAX),
    (re.compile(r"output file not created", re.IGNORECASE), FailureCategory.NO_OUTPUT),
]

_MESSAGES: dict[FailureCategory, tuple[str, list[str]]] = {
    FailureCategory.SOLVER_NOT_FOUND: (
        "ngspice could not be found on this computer.",
        ["Install ngspice", "Set the ngspice path in the editor settings"],
    ),
    FailureCategory.TIMEOUT: (
        "The simulation did not finish in time and was stopped.",
        ["Shorten the analysis or use a larger time step", "Raise the solver timeout in the editor settings"],
    ),
    FailureCategory.NETLIST_SYNTAX: (
        "ngspice rejected a line of the generated netlist.",
        ["Check component values and inline SPICE overrides", "Check the analysis directive parameters"],
    ),
    FailureCategory.MISSING_MODEL: (
        "A device references a model or subcircuit that is not defined.",
        ["Add the .model card or subcircuit definition to the component"],
    ),
    FailureCategory.SINGULAR_MATRIX: (
        "The circuit equations could not be solved because the matrix is singular.",
        ["Make sure every net has a DC path to ground", "Do not place voltage sources directly in parallel"],
    ),
    FailureCategory.DC_CONVERGENCE: (
        "The simulator could not find a stable DC operating point.",
        ["Check for floating nets", "Verify component values are realistic"],
    ),
    FailureCategory.TIMESTEP_TOO_SMALL: (
        "The transient simulation could not advance because the time step became too small.",
        ["Increase the maximum time step", "Avoid extremely fast edges combined with large time constants"],
    ),
    FailureCategory.NO_OUTPUT: (
        "ngspice finished without writing any results.",
        ["Place at least one probe on a wire", "Check the console output for warnings"],
    ),
    FailureCategory.UNKNOWN: (
        "The simulation failed for an unexpected reason.",
        ["Check the console output", "Try a simpler circuit to isolate the problem"],
    ),
}


@dataclass
class FailureDiagnosis:
    """Structured diagnosis of a failed solver run."""

    category: FailureCategory
    message: str
    suggestions: list[str] = field(default_factory=list)
    detail: str = ""  # first console line that matched, if any


def classify_failure(stderr: str, stdout: str = "") -> tuple[FailureCategory, str]:
    """Return the failure category and the console line that identified it."""
    for text in (stderr, stdout):
        if not text:
            continue
        for pattern, category in _PATTERNS:
            for line in text.splitlines():
                if pattern.search(line):
                    return category, line.strip()
    return FailureCategory.UNKNOWN, ""


def diagnose_failure(stderr: str, stdout: str = "") -> FailureDiagnosis:
    category, detail = classify_failure(stderr, stdout)
    message, suggestions = _MESSAGES[category]
    return FailureDiagnosis(category=category, message=message, suggestions=list(suggestions), detail=detail)


def format_user_message(diagnosis: FailureDiagnosis) -> str:
    parts = [diagnosis.message]
    if diagnosis.detail:
        parts.append(f"  ngspice: {diagnosis.detail}")
    if diagnosis.suggestions:
        parts.append("\nSuggestions:")
        parts.extend(f"  - {s}" for s in diagnosis.suggestions)
    return "\n".join(parts)
