"""
Stage Runner: single stage executor

Runs DIA-NN for one stage inside the container and reports the result
"""
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from protpipe.core.backend import module_wrapped
from protpipe.core.exceptions import BackendError
from protpipe.core.interfaces import BackendMode, CommandRunner, OptionSet, Stage, StageDecision
from protpipe.core.logger import get_logger
from protpipe.core.parameters import ParameterSet
from protpipe.orchestrator.stages import STAGE_DEFINITIONS


# exit status reported when the runtime binary itself cannot be started
COMMAND_NOT_FOUND = 127


class StageStatus(Enum):
    """Stage status"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Stage execution result"""
    stage_name: str
    status: StageStatus
    decision: StageDecision | None = None
    returncode: int | None = None
    command: list[str] = field(default_factory=list)
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    def to_dict(self) -> dict:
        return {
            "stage": self.stage_name,
            "status": self.status.value,
            "decision": self.decision.value if self.decision else None,
            "returncode": self.returncode,
            "duration": f"{self.duration_seconds:.1f}s",
            "error": self.error,
        }


class SubprocessRunner(CommandRunner):
    """Blocking subprocess call, output goes straight to the terminal"""

    def run(self, argv: list[str], cwd: str) -> int:
        completed = subprocess.run(argv, cwd=cwd, check=False)
        return completed.returncode


class StageExecutor:
    """
    Stage executor

    Usage:
        executor = StageExecutor(image="./src/diann-1.8.1.sif")
        result = executor.execute(Stage.LIBRARY, options, params, BackendMode.DIRECT)

        if result.status == StageStatus.FAILED:
            print(result.error, result.returncode)
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        image: str = "./src/diann-1.8.1.sif",
        backend_command: str = "singularity",
        backend_module: str = "singularity",
        exec_flags: list[str] | tuple[str, ...] = ("--cleanenv",),
        tool_command: str = "diann",
        cwd: str | Path | None = None,
        verbose: bool = True,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.runner = runner or SubprocessRunner()
        self.image = image
        self.backend_command = backend_command
        self.backend_module = backend_module
        self.exec_flags = list(exec_flags)
        self.tool_command = tool_command
        self.cwd = Path(cwd) if cwd else Path.cwd()
        self.verbose = verbose

    def build_command(self, params: ParameterSet, backend: BackendMode) -> list[str]:
        """
        Container command line for one stage

        Args:
            params: effective DIA-NN parameters
            backend: how the runtime is reached

        Returns:
            argv

        Raises:
            BackendError: runtime unavailable
        """
        argv = [
            self.backend_command, "exec", *self.exec_flags,
            "-H", str(self.cwd),
            self.image,
            self.tool_command,
            *params.to_args(),
        ]

        if backend == BackendMode.DIRECT:
            return argv
        if backend == BackendMode.MODULE:
            return module_wrapped(argv, self.backend_module)
        raise BackendError(f"{self.backend_command} is not available", {"backend": backend.value})

    def execute(
        self,
        stage: Stage,
        options: OptionSet,
        params: ParameterSet,
        backend: BackendMode,
        decision: StageDecision = StageDecision.RUN,
    ) -> StageResult:
        """
        Run one stage (blocking, no retry)

        Args:
            stage: pipeline stage
            options: validated options
            params: effective parameters (defaults + pass-through)
            backend: resolved runtime mode
            decision: planner decision that led here

        Returns:
            StageResult (returncode is the child's exit status)
        """
        definition = STAGE_DEFINITIONS[stage]
        result = StageResult(
            stage_name=definition.name,
            status=StageStatus.RUNNING,
            decision=decision,
            started_at=datetime.now(),
        )

        self.logger.info(f"[{definition.name}] start (output: {options.output_dir})")
        self._echo(f"INFO: {definition.start_notice}\n")

        try:
            result.command = self.build_command(params, backend)
            self.logger.debug(f"[{definition.name}] command: {' '.join(result.command)}")
            result.returncode = self.runner.run(result.command, cwd=str(self.cwd))
        except BackendError as e:
            result.status = StageStatus.FAILED
            result.error = e.message
        except OSError as e:
            result.returncode = COMMAND_NOT_FOUND
            result.status = StageStatus.FAILED
            result.error = f"could not start {self.backend_command}: {e}"
        else:
            if result.returncode == 0:
                result.status = StageStatus.SUCCESS
            else:
                result.status = StageStatus.FAILED
                result.error = f"{definition.name} exited with status {result.returncode}"

        result.completed_at = datetime.now()

        if result.status == StageStatus.SUCCESS:
            self.logger.info(f"[{definition.name}] done ({result.duration_seconds:.1f}s)")
            self._echo(f"INFO: {definition.finish_notice}\n")
        else:
            self.logger.error(f"[{definition.name}] failed: {result.error}")
            self._echo(f"ERROR: {result.error}\n")

        return result

    def _echo(self, line: str) -> None:
        if self.verbose:
            print(line)
