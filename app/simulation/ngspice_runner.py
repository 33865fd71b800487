"""
simulation/ngspice_runner.py

Handles execution of ngspice simulations
"""

import logging
import os
import platform
import shutil
import subprocess
from datetime import datetime

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60
NETLIST_FILENAME = "circuit.cir"
SPINIT_FILENAME = ".spiceinit"
WRDATA_FILENAME = "output.txt"


class NgspiceRunner:
    """Runs ngspice simulations and manages output files"""

    def __init__(self, output_dir="simulation_output", ngspice_path=None, timeout=DEFAULT_TIMEOUT):
        self.output_dir = output_dir
        os.makedirs(self.output_dir, exist_ok=True)
        self.ngspice_cmd = ngspice_path or None
        self.timeout = timeout
        self._run_counter = 0

    def find_ngspice(self):
        """Find ngspice executable on the system"""
        if self.ngspice_cmd and os.path.exists(self.ngspice_cmd):
            return self.ngspice_cmd

        which_result = shutil.which("ngspice")
        if which_result:
            self.ngspice_cmd = which_result
            return which_result

        system = platform.system()
        if system == "Windows":
            possible_paths = [
                r"C:\Program Files\Spice64\bin\ngspice.exe",
                r"C:\Program Files\ngspice\bin\ngspice.exe",
                r"C:\ngspice\bin\ngspice.exe",
            ]
        elif system == "Linux":
            possible_paths = ["/usr/bin/ngspice", "/usr/local/bin/ngspice"]
        elif system == "Darwin":
            possible_paths = ["/usr/local/bin/ngspice", "/opt/homebrew/bin/ngspice"]
        else:
            possible_paths = []

        for cmd in possible_paths:
            if os.path.exists(cmd):
                self.ngspice_cmd = cmd
                return cmd

        logger.warning("ngspice executable not found")
        return None

    def prepare_run(self, netlist_content, spinit=None):
        """
        Create a fresh run directory holding the netlist (and spinit).

        ngspice runs with this directory as its working directory, so a
        relative wrdata path in the netlist lands beside the netlist.

        Returns:
            tuple: (run_dir, netlist_path)

        Raises:
            OSError: If the files cannot be written.
        """
        self._run_counter += 1
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        run_dir = os.path.join(self.output_dir, f"run_{timestamp}_{self._run_counter}")
        os.makedirs(run_dir, exist_ok=True)

        netlist_path = os.path.join(run_dir, NETLIST_FILENAME)
        with open(netlist_path, "w") as f:
            f.write(netlist_content)
        if spinit:
            with open(os.path.join(run_dir, SPINIT_FILENAME), "w") as f:
                f.write(spinit)
        return run_dir, netlist_path

    def build_command(self, netlist_path):
        return [self.ngspice_cmd, "-b", os.path.basename(netlist_path)]

    @staticmethod
    def output_path(run_dir, wrdata_filename=WRDATA_FILENAME):
        """Path of the wrdata file if ngspice wrote one, else None."""
        path = os.path.join(run_dir, wrdata_filename)
        return path if os.path.exists(path) else None

    def run_simulation(self, netlist_content, spinit=None, wrdata_filename=WRDATA_FILENAME):
        """
        Run ngspice simulation with the given netlist

        Returns:
            tuple: (success: bool, output_file: str | None, stdout: str, stderr: str)
        """
        if self.find_ngspice() is None:
            return False, None, "", "ngspice executable not found"

        try:
            run_dir, netlist_path = self.prepare_run(netlist_content, spinit)
        except OSError as e:
            logger.error("Failed to write netlist: %s", e)
            return False, None, "", f"Failed to write netlist: {e}"

        logger.info("Running ngspice on %s", netlist_path)
        try:
            result = subprocess.run(
                self.build_command(netlist_path),
                cwd=run_dir,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            logger.warning("ngspice timed out after %s seconds", self.timeout)
            partial = e.stdout.decode(errors="replace") if isinstance(e.stdout, bytes) else (e.stdout or "")
            return False, None, partial, f"Simulation timed out (>{self.timeout} seconds)"
        except OSError as e:
            logger.error("Failed to start ngspice: %s", e)
            return False, None, "", f"Simulation error: {e}"

        output_file = self.output_path(run_dir, wrdata_filename)
        if result.returncode != 0:
            return False, output_file, result.stdout, result.stderr or f"ngspice exited with code {result.returncode}"
        return True, output_file, result.stdout, result.stderr

    def read_output(self, output_filename):
        """Read simulation output file"""
        with open(output_filename, "r") as f:
            return f.read()
