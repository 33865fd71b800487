"""Unit tests for simulation/ngspice_runner.py - NgspiceRunner.

All subprocess interactions are mocked so no ngspice installation is
required.
"""

import os
import subprocess
from unittest.mock import MagicMock, patch

import pytest
from simulation.ngspice_runner import NETLIST_FILENAME, SPINIT_FILENAME, WRDATA_FILENAME, NgspiceRunner


@pytest.fixture
def runner(tmp_path):
    """Runner whose configured ngspice path points at an existing file."""
    fake = tmp_path / "ngspice"
    fake.write_text("")
    return NgspiceRunner(output_dir=str(tmp_path / "out"), ngspice_path=str(fake))


def _completed(returncode=0, stdout="", stderr=""):
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


def _write_output(cmd, cwd, **kwargs):
    with open(os.path.join(cwd, WRDATA_FILENAME), "w") as f:
        f.write("0 1\n")
    return _completed(stdout="done")


# ---------------------------------------------------------------------------
# __init__
# ---------------------------------------------------------------------------


class TestNgspiceRunnerInit:
    def test_creates_output_dir(self, tmp_path):
        out = tmp_path / "sim_output"
        NgspiceRunner(output_dir=str(out))
        assert out.is_dir()

    def test_ngspice_cmd_initially_none(self, tmp_path):
        runner = NgspiceRunner(output_dir=str(tmp_path / "out"))
        assert runner.ngspice_cmd is None
        assert runner.timeout == 60

    def test_blank_path_means_search(self, tmp_path):
        assert NgspiceRunner(output_dir=str(tmp_path), ngspice_path="").ngspice_cmd is None


# ---------------------------------------------------------------------------
# find_ngspice
# ---------------------------------------------------------------------------


class TestFindNgspice:
    def test_configured_path_wins(self, runner):
        with patch("simulation.ngspice_runner.shutil.which") as which:
            assert runner.find_ngspice() == runner.ngspice_cmd
        which.assert_not_called()

    def test_found_via_which(self, tmp_path):
        runner = NgspiceRunner(output_dir=str(tmp_path))
        with patch("simulation.ngspice_runner.shutil.which", return_value="/usr/bin/ngspice"):
            result = runner.find_ngspice()
        assert result == "/usr/bin/ngspice"
        assert runner.ngspice_cmd == "/usr/bin/ngspice"

    def test_fallback_linux(self, tmp_path):
        runner = NgspiceRunner(output_dir=str(tmp_path))
        with (
            patch("simulation.ngspice_runner.shutil.which", return_value=None),
            patch("simulation.ngspice_runner.platform.system", return_value="Linux"),
            patch("simulation.ngspice_runner.os.path.exists", side_effect=lambda p: p == "/usr/local/bin/ngspice"),
        ):
            result = runner.find_ngspice()
        assert result == "/usr/local/bin/ngspice"

    def test_fallback_darwin(self, tmp_path):
        runner = NgspiceRunner(output_dir=str(tmp_path))
        with (
            patch("simulation.ngspice_runner.shutil.which", return_value=None),
            patch("simulation.ngspice_runner.platform.system", return_value="Darwin"),
            patch("simulation.ngspice_runner.os.path.exists", side_effect=lambda p: p == "/opt/homebrew/bin/ngspice"),
        ):
            assert runner.find_ngspice() == "/opt/homebrew/bin/ngspice"

    def test_not_found_anywhere(self, tmp_path):
        runner = NgspiceRunner(output_dir=str(tmp_path))
        with (
            patch("simulation.ngspice_runner.shutil.which", return_value=None),
            patch("simulation.ngspice_runner.platform.system", return_value="FreeBSD"),
        ):
            assert runner.find_ngspice() is None
        assert runner.ngspice_cmd is None


# ---------------------------------------------------------------------------
# prepare_run / build_command
# ---------------------------------------------------------------------------


class TestPrepareRun:
    def test_writes_netlist_and_spinit(self, runner):
        run_dir, netlist_path = runner.prepare_run("* test\n.end\n", spinit="set ngbehavior=hs")
        assert os.path.dirname(netlist_path) == run_dir
        assert os.path.basename(netlist_path) == NETLIST_FILENAME
        with open(netlist_path) as f:
            assert f.read() == "* test\n.end\n"
        with open(os.path.join(run_dir, SPINIT_FILENAME)) as f:
            assert f.read() == "set ngbehavior=hs"

    def test_each_run_gets_own_directory(self, runner):
        first, _ = runner.prepare_run("* a\n")
        second, _ = runner.prepare_run("* b\n")
        assert first != second

    def test_no_spinit_file_by_default(self, runner):
        run_dir, _ = runner.prepare_run("* a\n")
        assert not os.path.exists(os.path.join(run_dir, SPINIT_FILENAME))

    def test_command_is_relative_to_run_dir(self, runner):
        assert runner.build_command("/tmp/run_1/circuit.cir") == [runner.ngspice_cmd, "-b", "circuit.cir"]


# ---------------------------------------------------------------------------
# run_simulation
# ---------------------------------------------------------------------------


class TestRunSimulation:
    def test_success_with_output(self, runner):
        with patch("simulation.ngspice_runner.subprocess.run", side_effect=_write_output) as mock_run:
            success, outfile, stdout, stderr = runner.run_simulation("* test netlist\n.end")

        assert success is True
        assert os.path.basename(outfile) == WRDATA_FILENAME
        assert runner.read_output(outfile) == "0 1\n"
        assert stdout == "done"
        kwargs = mock_run.call_args.kwargs
        assert kwargs["capture_output"] is True
        assert kwargs["text"] is True
        assert kwargs["timeout"] == 60
        assert os.path.dirname(outfile) == kwargs["cwd"]

    def test_success_without_output_file(self, runner):
        with patch("simulation.ngspice_runner.subprocess.run", return_value=_completed(stdout="v(1) = 1")):
            success, outfile, stdout, _ = runner.run_simulation("* test\n.end")
        assert success is True
        assert outfile is None
        assert stdout == "v(1) = 1"

    def test_nonzero_exit(self, runner):
        with patch("simulation.ngspice_runner.subprocess.run", return_value=_completed(returncode=1)):
            success, _, _, stderr = runner.run_simulation("* test\n.end")
        assert success is False
        assert stderr == "ngspice exited with code 1"

    def test_nonzero_exit_keeps_stderr(self, runner):
        result = _completed(returncode=1, stderr="Error on line 2")
        with patch("simulation.ngspice_runner.subprocess.run", return_value=result):
            _, _, _, stderr = runner.run_simulation("* test\n.end")
        assert stderr == "Error on line 2"

    def test_timeout(self, runner):
        with patch(
            "simulation.ngspice_runner.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="ngspice", timeout=60, output=b"partial"),
        ):
            success, outfile, stdout, stderr = runner.run_simulation("* test\n.end")

        assert success is False
        assert outfile is None
        assert stdout == "partial"
        assert stderr == "Simulation timed out (>60 seconds)"

    def test_oserror_on_subprocess(self, runner):
        with patch("simulation.ngspice_runner.subprocess.run", side_effect=OSError("exec failed")):
            success, _, _, stderr = runner.run_simulation("* test\n.end")
        assert success is False
        assert "exec failed" in stderr

    def test_oserror_on_netlist_write(self, runner):
        with (
            patch.object(runner, "prepare_run", side_effect=OSError("permission denied")),
            patch("simulation.ngspice_runner.subprocess.run") as mock_run,
        ):
            success, _, _, stderr = runner.run_simulation("* test\n.end")
        mock_run.assert_not_called()
        assert success is False
        assert "permission denied" in stderr

    def test_returns_error_when_ngspice_not_found(self, tmp_path):
        runner = NgspiceRunner(output_dir=str(tmp_path))
        with (
            patch.object(runner, "find_ngspice", return_value=None),
            patch("simulation.ngspice_runner.subprocess.run") as mock_run,
        ):
            success, outfile, _, stderr = runner.run_simulation("* test\n.end")
        mock_run.assert_not_called()
        assert success is False
        assert outfile is None
        assert stderr == "ngspice executable not found"

    def test_custom_wrdata_filename(self, runner):
        def write_custom(cmd, cwd, **kwargs):
            with open(os.path.join(cwd, "sweep.txt"), "w") as f:
                f.write("1 2\n")
            return _completed()

        with patch("simulation.ngspice_runner.subprocess.run", side_effect=write_custom):
            _, outfile, _, _ = runner.run_simulation("* test\n.end", wrdata_filename="sweep.txt")
        assert os.path.basename(outfile) == "sweep.txt"


class TestReadOutput:
    def test_reads_existing_file(self, runner, tmp_path):
        out_file = tmp_path / "result.txt"
        out_file.write_text("simulation results here")
        assert runner.read_output(str(out_file)) == "simulation results here"

    def test_missing_file_raises(self, runner, tmp_path):
        with pytest.raises(OSError):
            runner.read_output(str(tmp_path / "nonexistent.txt"))
