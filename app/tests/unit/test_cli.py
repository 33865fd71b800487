"""Tests for the CLI batch operations (app/cli.py)."""

import json
from unittest.mock import patch

import pytest
from cli import build_parser, load_circuit, main, try_load_circuit
from models.probe import CURRENT_PROBE, ProbeData
from tests.conftest import add_part, build_divider

DIVIDER_NETLIST = "* Schematic netlist\nV1 1 0 DC 5\nR1 1 2 1k\nR2 2 0 1k\n.op\n.save v(2)\n.end\n"


def _write(tmp_path, model, name="circuit.json"):
    filepath = tmp_path / name
    filepath.write_text(json.dumps(model.to_dict()))
    return str(filepath)


@pytest.fixture
def divider_file(tmp_path, probed_divider):
    return _write(tmp_path, probed_divider)


@pytest.fixture
def floating_file(tmp_path, probed_divider):
    add_part(probed_divider, "R", 3, "1k")
    probed_divider.attach_pin("R3", "1", 4)
    return _write(tmp_path, probed_divider, "floating.json")


class TestLoadCircuit:
    def test_load_valid(self, divider_file):
        model = load_circuit(divider_file)
        assert list(model.components) == ["V1", "R1", "R2", "GND1"]
        assert model.probes[0].label == "Vout"

    def test_missing_file(self, tmp_path):
        model, error = try_load_circuit(str(tmp_path / "nope.json"))
        assert model is None
        assert error.startswith("file not found")

    def test_invalid_json(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{oops")
        model, error = try_load_circuit(str(bad))
        assert model is None
        assert error.startswith("invalid JSON")

    def test_invalid_structure(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"components": []}))
        assert try_load_circuit(str(bad))[1].startswith("invalid circuit file")

    def test_load_circuit_exits(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            load_circuit(str(tmp_path / "nope.json"))
        assert exc_info.value.code == 1
        assert "Error: file not found" in capsys.readouterr().err


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_simulate_options(self):
        args = build_parser().parse_args(["simulate", "c.json", "--timeout", "5", "--ngspice", "/opt/ngspice"])
        assert args.timeout == 5
        assert args.ngspice == "/opt/ngspice"


class TestNetlistCommand:
    def test_prints_netlist(self, divider_file, capsys):
        assert main(["netlist", divider_file]) == 0
        assert capsys.readouterr().out == DIVIDER_NETLIST

    def test_writes_file(self, divider_file, tmp_path, capsys):
        output = tmp_path / "out.cir"
        assert main(["netlist", divider_file, "-o", str(output)]) == 0
        assert output.read_text() == DIVIDER_NETLIST
        assert "Written to" in capsys.readouterr().err

    def test_title_and_control(self, divider_file, capsys):
        assert main(["netlist", divider_file, "--title", "* Lab", "--control"]) == 0
        out = capsys.readouterr().out
        assert out.startswith("* Lab\n")
        assert "wrdata output.txt v(2)" in out

    def test_floating_pin_fails(self, floating_file, capsys):
        assert main(["netlist", floating_file]) == 1
        err = capsys.readouterr().err
        assert "[FloatingPin]" in err
        assert "R3 pin 2" in err

    def test_warnings_reported(self, tmp_path, capsys):
        model = build_divider()
        probe = ProbeData("P1", "I", 100, 100, probe_type=CURRENT_PROBE)
        probe.reconnect(model.graph)
        model.add_probe(probe)
        model.add_probe(ProbeData("P2", "Stray", 900, 900))
        assert main(["netlist", _write(tmp_path, model)]) == 0
        assert "Warning [" in capsys.readouterr().err


class TestNetsCommand:
    def test_report(self, divider_file, capsys):
        assert main(["nets", divider_file]) == 0
        report = json.loads(capsys.readouterr().out)
        assert [net["name"] for net in report["nets"]] == ["0", "1", "2"]
        assert report["nets"][0]["ground"] is True
        assert report["nets"][0]["nodes"] == [5, 6]
        assert report["pins"]["R1.2"] == "2"
        assert report["pins"]["GND1.1"] == "0"
        assert report["floating_pins"] == []
        assert report["probes"] == {"P1": "2"}

    def test_floating_pins_listed(self, floating_file, capsys):
        assert main(["nets", floating_file]) == 0
        assert json.loads(capsys.readouterr().out)["floating_pins"] == ["R3.2"]


class TestValidateCommand:
    def test_valid(self, divider_file, capsys):
        assert main(["validate", divider_file]) == 0
        assert "Circuit is valid" in capsys.readouterr().out

    def test_errors(self, floating_file, capsys):
        assert main(["validate", floating_file]) == 1
        assert "R3 has unconnected pin(s): 2." in capsys.readouterr().err

    def test_probe_requirement(self, tmp_path, capsys):
        path = _write(tmp_path, build_divider())
        assert main(["validate", path]) == 1
        assert main(["validate", path, "--no-probes"]) == 0


class TestSimulateCommand:
    def _fake_run(self, tmp_path, text):
        output = tmp_path / "output.txt"
        output.write_text(text)
        return patch(
            "simulation.ngspice_runner.NgspiceRunner.run_simulation",
            return_value=(True, str(output), "v(2) = 2.5\n", ""),
        )

    def test_results_json(self, divider_file, tmp_path, capsys):
        with self._fake_run(tmp_path, "0 2.5\n"):
            code = main(["simulate", divider_file, "--output-dir", str(tmp_path / "runs")])
        assert code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["analysis_type"] == "op"
        assert result["signals"] == {"v(2)": [2.5]}
        assert result["op_values"] == {"v(2)": 2.5}

    def test_complex_results(self, tmp_path, capsys):
        model = build_divider()
        probe = ProbeData("P1", "Vout", 200, 50)
        probe.reconnect(model.graph)
        model.add_probe(probe)
        model.analysis_directives = [".ac dec 10 1 1k"]
        path = _write(tmp_path, model)
        with self._fake_run(tmp_path, "1 0.5 -0.5\n"):
            assert main(["simulate", path, "--output-dir", str(tmp_path / "runs")]) == 0
        result = json.loads(capsys.readouterr().out)
        assert result["signals"]["v(2)"] == {"real": [0.5], "imag": [-0.5]}

    def test_failure(self, divider_file, tmp_path, capsys):
        with patch(
            "simulation.ngspice_runner.NgspiceRunner.run_simulation",
            return_value=(False, None, "", "ngspice executable not found"),
        ):
            assert main(["simulate", divider_file, "--output-dir", str(tmp_path / "runs")]) == 1
        assert "Simulation failed" in capsys.readouterr().err
