"""
Preflight check module

Validates the command line before any expensive work starts
- FASTA input
- mass spec input (exactly one of --mzml / --raw / --dia)
- pass-through config file
- output directory
- container runtime (direct or via environment modules)

Every check runs; problems are accumulated so the operator sees all of them at once.
"""
import os
from dataclasses import replace
from pathlib import Path

from protpipe.core.backend import ShellBackendProbe
from protpipe.core.interfaces import (
    BackendMode,
    BackendProbe,
    Diagnostic,
    OptionSet,
    Severity,
    ValidationReport,
)
from protpipe.core.logger import get_logger


class InputValidator:
    """
    Input validator

    Usage:
        validator = InputValidator(probe=ShellBackendProbe())
        report = validator.run(options)

        if not report.ok:
            print(report.render())
            return 1

        options = report.options  # output_dir resolved, paths absolute
    """

    CHECK_COUNT = 5

    def __init__(
        self,
        probe: BackendProbe | None = None,
        cwd: str | Path | None = None,
        backend_command: str = "singularity",
        backend_module: str = "singularity",
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.probe = probe or ShellBackendProbe()
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.backend_command = backend_command
        self.backend_module = backend_module
        self._diagnostics: list[Diagnostic] = []

    def run(self, options: OptionSet) -> ValidationReport:
        """
        Run every check (no short-circuit)

        Args:
            options: parsed command line

        Returns:
            ValidationReport (ok=False if any ERROR entry was recorded)
        """
        self._diagnostics = []

        if options.debug:
            self._info("running DEBUG mode due to --debug")

        fasta = self._check_fasta(options)
        spec_inputs = self._check_spec_input(options)
        config = self._check_config(options)
        output_dir = self._check_output_dir(options)
        backend = self._check_backend()

        resolved = replace(
            options,
            fasta_path=fasta,
            spec_inputs=spec_inputs,
            config_path=config,
            output_dir=str(output_dir),
        )
        report = ValidationReport(tuple(self._diagnostics), resolved, backend)

        if report.ok:
            self.logger.info("Argument validation passed")
        else:
            self.logger.warning(f"Argument validation failed ({len(report.errors)} error(s))")
        return report

    # ========== checks ==========

    def _check_fasta(self, options: OptionSet) -> str | None:
        self.logger.debug(f"[1/{self.CHECK_COUNT}] FASTA input...")

        if not options.fasta_path:
            self._error("--fasta <input.fa> is required")
            return options.fasta_path

        if options.count("fasta") > 1:
            self._warning(
                f"multiple --fasta provided. Only proceeding with the last one, {options.fasta_path}"
            )

        path = self._resolve(options.fasta_path)
        if _is_readable_file(path):
            self._info(f"FASTA input {options.fasta_path} is readable")
            return str(path)

        self._error(f"FASTA input {options.fasta_path} does not exist or is not readable")
        return options.fasta_path

    def _check_spec_input(self, options: OptionSet) -> tuple:
        self.logger.debug(f"[2/{self.CHECK_COUNT}] mass spec input...")

        if not options.spec_inputs:
            self._error("--mzml, --raw or --dia (mass spec input) is required")
            return options.spec_inputs

        if len(options.spec_inputs) > 1:
            flags = ", ".join(kind.flag for kind, _ in options.spec_inputs)
            self._error(
                f"multiple mass spec inputs provided ({flags}). "
                "Provide exactly one of --mzml, --raw or --dia"
            )
            return options.spec_inputs

        kind, raw_path = options.spec_inputs[0]
        if options.count(kind.value) > 1:
            self._warning(f"multiple {kind.flag} provided. Only proceeding with the last one, {raw_path}")

        if not raw_path:
            self._error(f"{kind.flag} requires a non-empty path")
            return options.spec_inputs

        path = self._resolve(raw_path)
        if _is_readable_file(path):
            self._info(f"mass spec input ({kind.flag}) {raw_path} is readable")
            return ((kind, str(path)),)

        self._error(f"Mass spec input {raw_path} does not exist or is not readable")
        return options.spec_inputs

    def _check_config(self, options: OptionSet) -> str | None:
        self.logger.debug(f"[3/{self.CHECK_COUNT}] config file...")

        if not options.config_path:
            self._error("--config <configfile> is required")
            return options.config_path

        if options.count("config") > 1:
            self._warning(
                f"multiple --config provided. Only proceeding with the last one, {options.config_path}"
            )

        path = self._resolve(options.config_path)
        if _is_readable_file(path):
            self._info(f"config file {options.config_path} is readable")
            return str(path)

        self._error(f"provided config file {options.config_path} cannot be read or does not exist")
        return options.config_path

    def _check_output_dir(self, options: OptionSet) -> Path:
        self.logger.debug(f"[4/{self.CHECK_COUNT}] output directory...")

        if not options.output_dir:
            self._info("--out not specified, output will be saved to current working directory")
            output_dir = self.cwd
        else:
            if options.count("out") > 1:
                self._warning(
                    f"multiple --out provided. Only proceeding with the last one, {options.output_dir}"
                )
            output_dir = self._resolve(options.output_dir)

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self.logger.debug(f"mkdir {output_dir} failed: {e}")
            self._error(f"could not create or write to output directory {output_dir}")
            return output_dir

        if os.access(output_dir, os.W_OK | os.X_OK):
            self._info(f"output directory {output_dir} is writable")
        else:
            self._error(f"could not create or write to output directory {output_dir}")
        return output_dir

    def _check_backend(self) -> BackendMode:
        self.logger.debug(f"[5/{self.CHECK_COUNT}] container runtime...")
        command, module = self.backend_command, self.backend_module

        if self.probe.is_directly_available(command):
            self._info(f"{command} command found")
            return BackendMode.DIRECT

        self._warning(f"{command} command not found, looking for {module} module")
        if not self.probe.has_module_system():
            self._warning("module command not found. Did you mean to run this on an HPC?")
            self._error(f"{command} cannot be found. Recheck installation?")
            return BackendMode.UNAVAILABLE

        if not self.probe.module_available(module):
            self._warning(f"module {module} not found")
            self._error(f"{command} cannot be found. Recheck installation?")
            return BackendMode.UNAVAILABLE

        self._info(f"module {module} found")
        return BackendMode.MODULE

    # ========== helpers ==========

    def _resolve(self, path: str) -> Path:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.cwd / candidate
        return candidate

    def _info(self, message: str) -> None:
        self._diagnostics.append(Diagnostic(Severity.INFO, message))

    def _warning(self, message: str) -> None:
        self._diagnostics.append(Diagnostic(Severity.WARNING, message))

    def _error(self, message: str) -> None:
        self._diagnostics.append(Diagnostic(Severity.ERROR, message))


def _is_readable_file(path: Path) -> bool:
    return path.is_file() and os.access(path, os.R_OK)


def run_preflight(options: OptionSet, probe: BackendProbe | None = None) -> ValidationReport:
    """
    Preflight convenience function

    Args:
        options: parsed command line
        probe: backend probe (default: ShellBackendProbe)

    Returns:
        ValidationReport
    """
    return InputValidator(probe=probe).run(options)
