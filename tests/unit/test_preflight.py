"""
Preflight (input validation) and backend probe tests
"""
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from protpipe.core.backend import ShellBackendProbe, module_wrapped
from protpipe.core.interfaces import BackendMode, BackendProbe, Severity
from protpipe.core.options import OptionParser
from protpipe.core.preflight import InputValidator, run_preflight


def _probe(direct=True, module_system=False, module=False):
    probe = MagicMock(spec=BackendProbe)
    probe.is_directly_available.return_value = direct
    probe.has_module_system.return_value = module_system
    probe.module_available.return_value = module
    return probe


def _inputs(tmp_path: Path) -> dict[str, Path]:
    files = {
        "fasta": tmp_path / "lib.fa",
        "mzml": tmp_path / "run.mzML",
        "config": tmp_path / "diann.yaml",
    }
    files["fasta"].write_text(">P1\nMKV\n", encoding="utf-8")
    files["mzml"].write_text("<mzML/>", encoding="utf-8")
    files["config"].write_text("threads: 4\n", encoding="utf-8")
    return files


def _messages(report, severity):
    return [d.message for d in report.diagnostics if d.severity == severity]


class TestInputValidator:
    """InputValidator.run"""

    def setup_method(self):
        self.parser = OptionParser()

    def _validate(self, argv, tmp_path, probe=None):
        options = self.parser.parse(argv)
        validator = InputValidator(probe=probe or _probe(), cwd=tmp_path)
        return validator.run(options)

    def test_all_valid(self, tmp_path):
        """Valid inputs pass with INFO lines only"""
        files = _inputs(tmp_path)
        out = tmp_path / "out"

        report = self._validate([
            "--fasta", str(files["fasta"]),
            "--mzml", str(files["mzml"]),
            "--config", str(files["config"]),
            "--out", str(out),
        ], tmp_path)

        assert report.ok is True
        assert report.errors == []
        assert report.warnings == []
        assert all(d.severity == Severity.INFO for d in report.diagnostics)
        assert report.backend == BackendMode.DIRECT
        assert out.is_dir()
        assert report.options.output_dir == str(out)

    def test_nothing_given(self, tmp_path):
        """Every missing requirement is reported at once"""
        report = self._validate([], tmp_path)
        errors = _messages(report, Severity.ERROR)

        assert report.ok is False
        assert any("--fasta" in m for m in errors)
        assert any("mass spec input" in m for m in errors)
        assert any("--config" in m for m in errors)
        assert len(errors) == 3

    def test_fasta_twice(self, tmp_path):
        """Repeated --fasta: one WARNING, last value used"""
        files = _inputs(tmp_path)
        second = tmp_path / "second.fa"
        second.write_text(">P2\nMKL\n", encoding="utf-8")

        report = self._validate([
            "--fasta", str(files["fasta"]),
            "--fasta", str(second),
            "--mzml", str(files["mzml"]),
            "--config", str(files["config"]),
            "--out", str(tmp_path),
        ], tmp_path)

        multiple = [m for m in _messages(report, Severity.WARNING) if "multiple" in m]
        assert len(multiple) == 1
        assert "--fasta" in multiple[0]
        assert report.options.fasta_path == str(second)
        assert report.ok is True

    def test_multiple_spec_inputs(self, tmp_path):
        """Two input kinds is an ERROR even when paths are bogus"""
        report = self._validate([
            "--mzml", "missing.mzML",
            "--raw", "missing.raw",
        ], tmp_path)

        errors = _messages(report, Severity.ERROR)
        assert report.ok is False
        assert any("multiple mass spec inputs" in m for m in errors)
        # no readability error for the individual paths
        assert not any("missing.mzML" in m for m in errors)

    def test_repeated_spec_kind(self, tmp_path):
        """Same kind twice is a WARNING"""
        files = _inputs(tmp_path)

        report = self._validate([
            "--fasta", str(files["fasta"]),
            "--mzml", "ignored.mzML",
            "--mzml", str(files["mzml"]),
            "--config", str(files["config"]),
            "--out", str(tmp_path),
        ], tmp_path)

        assert report.ok is True
        assert any("multiple --mzml" in m for m in _messages(report, Severity.WARNING))
        assert report.options.spec_input_path == str(files["mzml"])

    def test_unreadable_inputs(self, tmp_path):
        """Missing files are ERRORs"""
        report = self._validate([
            "--fasta", "nope.fa",
            "--dia", "nope.dia",
            "--config", "nope.yaml",
            "--out", str(tmp_path),
        ], tmp_path)

        errors = _messages(report, Severity.ERROR)
        assert any("FASTA input nope.fa does not exist" in m for m in errors)
        assert any("Mass spec input nope.dia does not exist" in m for m in errors)
        assert any("config file nope.yaml" in m for m in errors)

    def test_directory_is_not_a_file(self, tmp_path):
        """A directory passed as --fasta is rejected"""
        report = self._validate(["--fasta", str(tmp_path)], tmp_path)

        assert any("FASTA input" in m for m in _messages(report, Severity.ERROR))

    def test_relative_paths_resolved_against_cwd(self, tmp_path):
        """Relative paths are checked and returned relative to the working directory"""
        _inputs(tmp_path)

        report = self._validate([
            "--fasta", "lib.fa",
            "--mzml", "run.mzML",
            "--config", "diann.yaml",
        ], tmp_path)

        assert report.ok is True
        assert report.options.fasta_path == str(tmp_path / "lib.fa")
        assert report.options.spec_input_path == str(tmp_path / "run.mzML")

    def test_output_dir_defaults_to_cwd(self, tmp_path):
        """No --out: INFO and the working directory"""
        report = self._validate([], tmp_path)

        assert any("--out not specified" in m for m in _messages(report, Severity.INFO))
        assert report.options.output_dir == str(tmp_path)

    def test_output_dir_created(self, tmp_path):
        """Nested output directories are created"""
        out = tmp_path / "a" / "b"
        report = self._validate(["--out", str(out)], tmp_path)

        assert out.is_dir()
        assert any("is writable" in m for m in _messages(report, Severity.INFO))

    def test_output_dir_not_creatable(self, tmp_path):
        """A file in the way is an ERROR"""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")

        report = self._validate(["--out", str(blocker / "out")], tmp_path)

        assert any("could not create or write" in m for m in _messages(report, Severity.ERROR))

    def test_debug_info(self, tmp_path):
        """--debug is acknowledged"""
        report = self._validate(["--debug"], tmp_path)

        assert any("DEBUG mode" in m for m in _messages(report, Severity.INFO))

    def test_validation_does_not_short_circuit(self, tmp_path):
        """Later checks still run after early errors"""
        probe = _probe(direct=False, module_system=False)
        report = self._validate([], tmp_path, probe=probe)

        probe.is_directly_available.assert_called_once_with("singularity")
        assert any("singularity cannot be found" in m for m in _messages(report, Severity.ERROR))


class TestBackendCheck:
    """Container runtime resolution"""

    def _run(self, tmp_path, probe):
        validator = InputValidator(probe=probe, cwd=tmp_path)
        return validator.run(OptionParser().parse(["--out", str(tmp_path)]))

    def test_direct(self, tmp_path):
        report = self._run(tmp_path, _probe(direct=True))

        assert report.backend == BackendMode.DIRECT
        assert "singularity command found" in _messages(report, Severity.INFO)

    def test_module_available(self, tmp_path):
        """No binary but module listed: acceptable"""
        probe = _probe(direct=False, module_system=True, module=True)
        report = self._run(tmp_path, probe)

        assert report.backend == BackendMode.MODULE
        assert "module singularity found" in _messages(report, Severity.INFO)
        assert not any("singularity" in m for m in _messages(report, Severity.ERROR))
        probe.module_available.assert_called_once_with("singularity")

    def test_module_missing(self, tmp_path):
        """Module system without the module"""
        report = self._run(tmp_path, _probe(direct=False, module_system=True, module=False))

        assert report.backend == BackendMode.UNAVAILABLE
        assert "module singularity not found" in _messages(report, Severity.WARNING)
        assert any("cannot be found" in m for m in _messages(report, Severity.ERROR))

    def test_no_module_system(self, tmp_path):
        """Neither binary nor module system"""
        report = self._run(tmp_path, _probe(direct=False, module_system=False))

        assert report.backend == BackendMode.UNAVAILABLE
        assert any("Did you mean to run this on an HPC" in m for m in _messages(report, Severity.WARNING))
        assert report.ok is False

    def test_custom_backend_names(self, tmp_path):
        """apptainer instead of singularity"""
        probe = _probe(direct=True)
        validator = InputValidator(probe=probe, cwd=tmp_path, backend_command="apptainer")
        validator.run(OptionParser().parse([]))

        probe.is_directly_available.assert_called_once_with("apptainer")


class TestShellBackendProbe:
    """ShellBackendProbe"""

    def test_direct_lookup(self):
        with patch("protpipe.core.backend.shutil.which", return_value="/usr/bin/singularity"):
            assert ShellBackendProbe().is_directly_available("singularity") is True

        with patch("protpipe.core.backend.shutil.which", return_value=None):
            assert ShellBackendProbe().is_directly_available("singularity") is False

    def test_has_module_system(self):
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="module\n", stderr="")
        with patch("protpipe.core.backend.subprocess.run", return_value=completed) as mock_run:
            assert ShellBackendProbe().has_module_system() is True

        assert mock_run.call_args[0][0] == ["bash", "-lc", "command -v module"]

    def test_has_module_system_shell_missing(self):
        with patch("protpipe.core.backend.subprocess.run", side_effect=FileNotFoundError("bash")):
            assert ShellBackendProbe().has_module_system() is False

    def test_module_listed(self):
        completed = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="", stderr="---- /apps/modules ----\nsingularity/3.8.5\n"
        )
        with patch("protpipe.core.backend.subprocess.run", return_value=completed):
            assert ShellBackendProbe().module_available("singularity") is True

    def test_module_not_listed(self):
        completed = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="", stderr="No module(s) or extension(s) found!\n"
        )
        with patch("protpipe.core.backend.subprocess.run", return_value=completed):
            assert ShellBackendProbe().module_available("singularity") is False

    def test_module_timeout(self):
        with patch(
            "protpipe.core.backend.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="bash", timeout=30),
        ):
            assert ShellBackendProbe().module_available("singularity") is False

    def test_module_wrapped(self):
        """argv is run after module load, with quoting"""
        wrapped = module_wrapped(["singularity", "exec", "--cut", "K*,R*"], "singularity")

        assert wrapped[:2] == ["bash", "-lc"]
        assert wrapped[2] == "module load singularity && exec singularity exec --cut 'K*,R*'"


class TestRunPreflight:
    """run_preflight helper"""

    def test_run_preflight(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        report = run_preflight(OptionParser().parse([]), probe=_probe())

        assert report.ok is False
        assert report.options.output_dir == str(tmp_path)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
