"""
Execution backend probe

Finds the container runtime either on PATH or through environment modules
"""
import shlex
import shutil
import subprocess

from protpipe.core.interfaces import BackendProbe
from protpipe.core.logger import get_logger


class ShellBackendProbe(BackendProbe):
    """
    Probe the host shell for the container runtime

    `module` is a shell function, so module checks go through a login shell.

    Usage:
        probe = ShellBackendProbe()
        if not probe.is_directly_available("singularity"):
            if probe.has_module_system() and probe.module_available("singularity"):
                ...
    """

    def __init__(self, shell: str = "bash", timeout: int = 30):
        self.logger = get_logger(self.__class__.__name__)
        self.shell = shell
        self.timeout = timeout

    def is_directly_available(self, command: str) -> bool:
        return shutil.which(command) is not None

    def has_module_system(self) -> bool:
        result = self._run_login_shell("command -v module")
        return result is not None and result.returncode == 0

    def module_available(self, name: str) -> bool:
        # `module avail` writes its listing to stderr
        result = self._run_login_shell(f"module avail {shlex.quote(name)}")
        if result is None or result.returncode != 0:
            return False
        listing = f"{result.stdout}{result.stderr}"
        return "No module" not in listing and name in listing

    def _run_login_shell(self, script: str) -> subprocess.CompletedProcess | None:
        try:
            return subprocess.run(
                [self.shell, "-lc", script],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            self.logger.debug(f"{self.shell} -lc {script!r} failed: {e}")
            return None


def module_wrapped(argv: list[str], module: str, shell: str = "bash") -> list[str]:
    """Wrap argv so it runs after `module load <module>` in a login shell"""
    script = f"module load {shlex.quote(module)} && exec {shlex.join(argv)}"
    return [shell, "-lc", script]
