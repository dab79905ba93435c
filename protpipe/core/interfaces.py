"""
Core interfaces

Standard types shared by the parser, validator, planner and executor
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

from protpipe.core.exceptions import ValidationError


# ============================================
# Enums
# ============================================
class SpecInputKind(Enum):
    """Mass spec input kind (exactly one per run)"""
    MZML = "mzml"
    RAW = "raw"
    DIA = "dia"

    @property
    def flag(self) -> str:
        return f"--{self.value}"


class Severity(Enum):
    """Diagnostic severity"""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class BackendMode(Enum):
    """How the container runtime is reached"""
    DIRECT = "direct"            # binary on PATH
    MODULE = "module"            # via `module load`
    UNAVAILABLE = "unavailable"


class Stage(Enum):
    """Pipeline stages, in execution order"""
    LIBRARY = 1   # in silico spectral library build
    ANALYSIS = 2  # mass spec sample analysis

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    Stage.LIBRARY: "in silico spectral library",
    Stage.ANALYSIS: "mass spec sample analysis",
}


class StageDecision(Enum):
    """Planner verdict for one stage"""
    SKIP = "skip"
    RUN = "run"
    RUN_AFTER_DELAY = "run_after_delay"  # clobber over an existing marker


class ChainPolicy(Enum):
    """What happens to later stages after a stage fails"""
    CONTINUE = "continue"  # best effort
    STOP = "stop"          # fail fast


# ============================================
# Data Classes
# ============================================
@dataclass(frozen=True)
class OptionSet:
    """Parsed command line"""
    fasta_path: str | None = None
    spec_inputs: tuple[tuple[SpecInputKind, str], ...] = ()
    config_path: str | None = None
    output_dir: str | None = None  # None = current working directory
    clobber: bool = False
    debug: bool = False
    help_requested: bool = False
    occurrences: dict[str, int] = field(default_factory=dict, compare=False)
    positionals: tuple[str, ...] = ()
    argv: tuple[str, ...] = ()

    @property
    def spec_input_kind(self) -> SpecInputKind | None:
        """Resolved input kind, None unless exactly one kind was given"""
        if len(self.spec_inputs) == 1:
            return self.spec_inputs[0][0]
        return None

    @property
    def spec_input_path(self) -> str | None:
        if len(self.spec_inputs) == 1:
            return self.spec_inputs[0][1]
        return None

    def count(self, option: str) -> int:
        """How many times an option appeared on the command line"""
        return self.occurrences.get(option, 0)


@dataclass(frozen=True)
class Diagnostic:
    """One validation finding"""
    severity: Severity
    message: str

    def __str__(self) -> str:
        return f"{self.severity.value}: {self.message}"


@dataclass(frozen=True)
class ValidationReport:
    """Accumulated validation result"""
    diagnostics: tuple[Diagnostic, ...]
    options: OptionSet
    backend: BackendMode = BackendMode.UNAVAILABLE

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    def render(self) -> str:
        return "\n".join(str(d) for d in self.diagnostics)

    def raise_for_errors(self) -> None:
        """Raise ValidationError when any ERROR entry exists"""
        if not self.ok:
            raise ValidationError(
                f"{len(self.errors)} validation error(s)",
                [d.message for d in self.errors],
            )


# ============================================
# Interfaces
# ============================================
class BackendProbe(ABC):
    """Execution backend capability checks"""

    @abstractmethod
    def is_directly_available(self, command: str) -> bool:
        """Is the runtime binary invocable as-is"""
        pass

    @abstractmethod
    def has_module_system(self) -> bool:
        """Is an environment module system present"""
        pass

    @abstractmethod
    def module_available(self, name: str) -> bool:
        """Does the module system list the module"""
        pass


class Sleeper(ABC):
    """Grace period before destructive re-runs"""

    @abstractmethod
    def wait(self, seconds: float) -> None:
        pass


class CommandRunner(ABC):
    """Blocking child process invocation"""

    @abstractmethod
    def run(self, argv: list[str], cwd: str) -> int:
        """Run argv in cwd and return the exit status"""
        pass
