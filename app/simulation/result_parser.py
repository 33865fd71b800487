"""
simulation/result_parser.py

Parses ngspice output into result tables keyed by signal name.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")
_OP_LINE_RE = re.compile(r"^\s*((?:v|i|@)[\w\[\]().#@-]*)\s*[=:]?\s*([-+]?[\d.]+(?:e[-+]?\d+)?)\s*$", re.IGNORECASE)


@dataclass
class ResultTable:
    """
    Tabular solver results.

    sweep holds the independent variable (time, frequency or sweep value);
    signals maps each written signal (e.g. 'v(2)', 'i(V1)') to its samples.
    AC results store complex samples.
    """

    sweep: np.ndarray
    signals: dict[str, np.ndarray] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.sweep)

    def __getitem__(self, signal: str) -> np.ndarray:
        return self.signals[signal]

    def for_net(self, net_name: str) -> Optional[np.ndarray]:
        """Voltage samples for a net, or None if the net was not written."""
        return self.signals.get(f"v({net_name})")


def _is_number(token: str) -> bool:
    return bool(_NUMBER_RE.match(token))


class ResultParser:
    """Parses ngspice simulation results"""

    @staticmethod
    def parse_wrdata(text: str, signals: Optional[list[str]] = None, complex_values: bool = False) -> Optional[ResultTable]:
        """
        Parse a wrdata file.

        wrdata writes one block of columns per signal: (x, value) for real
        vectors or (x, real, imag) for complex ones. With 'set wr_vecnames'
        the first line holds the column names; otherwise signal names must be
        supplied by the caller.

        Returns:
            ResultTable, or None if the text holds no numeric rows.
        """
        header: list[str] = []
        rows: list[list[float]] = []
        for line in text.splitlines():
            tokens = line.split()
            if not tokens:
                continue
            if all(_is_number(t) for t in tokens):
                rows.append([float(t) for t in tokens])
            elif not rows:
                header = tokens

        if not rows:
            return None

        width = min(len(row) for row in rows)
        data = np.array([row[:width] for row in rows], dtype=float)

        block = 3 if complex_values else 2
        count = width // block
        if signals is None:
            # With vecnames every block repeats the sweep name before the signal name
            signals = header[1::block][:count] if header else []
        names = list(signals) + [f"signal{i + 1}" for i in range(len(signals), count)]

        table = ResultTable(sweep=data[:, 0])
        for i in range(count):
            base = i * block
            if complex_values:
                table.signals[names[i]] = data[:, base + 1] + 1j * data[:, base + 2]
            else:
                table.signals[names[i]] = data[:, base + 1]
        return table

    @staticmethod
    def parse_op_results(output: str) -> dict[str, float]:
        """
        Parse operating point values from printed console output.

        Accepts 'v(2) = 1.5', 'V(2)  1.500000e+00' and '@r1[i] = 0.01' forms.
        Keys are lower-cased signal names.
        """
        values = {}
        for line in output.splitlines():
            match = _OP_LINE_RE.match(line)
            if not match:
                continue
            try:
                values[match.group(1).lower()] = float(match.group(2))
            except ValueError:
                logger.debug("Skipping unparsable op line: %s", line)
        return values

    @staticmethod
    def magnitude_db(samples: np.ndarray) -> np.ndarray:
        return 20 * np.log10(np.abs(samples) + 1e-30)

    @staticmethod
    def phase_deg(samples: np.ndarray) -> np.ndarray:
        return np.angle(samples, deg=True)
