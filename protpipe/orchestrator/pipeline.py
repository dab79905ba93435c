"""
Pipeline: validation gate followed by the two DIA-NN stages

validate -> load pass-through config -> (debug stop) -> library build -> sample analysis
"""
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from protpipe.core.config import Config, get_config
from protpipe.core.exceptions import (
    ConfigError,
    ConfigValidationError,
    StageExecutionError,
    ValidationError,
)
from protpipe.core.interfaces import (
    BackendMode,
    BackendProbe,
    ChainPolicy,
    CommandRunner,
    OptionSet,
    Sleeper,
    Stage,
    StageDecision,
    ValidationReport,
)
from protpipe.core.logger import get_logger
from protpipe.core.parameters import ParameterLoader, PassThroughConfig
from protpipe.core.preflight import InputValidator
from protpipe.orchestrator.stage_runner import StageExecutor, StageResult, StageStatus
from protpipe.orchestrator.stages import (
    DEFAULT_GRACE_PERIOD,
    DEFAULT_MARKERS,
    STAGE_DEFINITIONS,
    StagePlanner,
    TimeSleeper,
    library_out_lib,
    stage_defaults,
)


@dataclass
class PipelineResult:
    """Pipeline run result"""
    success: bool
    exit_code: int
    started_at: datetime
    completed_at: datetime | None = None
    report: ValidationReport | None = None
    parameters: PassThroughConfig | None = None
    stage_results: list[StageResult] = field(default_factory=list)
    halted_for_debug: bool = False
    error: str | None = None

    @property
    def duration_seconds(self) -> float:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    def raise_for_status(self) -> None:
        """Raise StageExecutionError for the first failed stage"""
        for stage in self.stage_results:
            if stage.status == StageStatus.FAILED:
                raise StageExecutionError(
                    stage.error or f"{stage.stage_name} failed",
                    stage=stage.stage_name,
                    returncode=stage.returncode,
                )

    def to_summary(self) -> dict:
        return {
            "success": self.success,
            "exit_code": self.exit_code,
            "duration": f"{self.duration_seconds:.1f}s",
            "validation_ok": self.report.ok if self.report else None,
            "stages": [s.to_dict() for s in self.stage_results],
            "error": self.error,
        }


class Pipeline:
    """
    ProtPipe pipeline

    Usage:
        pipeline = Pipeline()
        result = pipeline.run(options)

        # collaborators can be swapped (tests, dry runs)
        pipeline = Pipeline(probe=FakeProbe(), runner=FakeRunner(), sleeper=FakeSleeper())
    """

    STAGES = [Stage.LIBRARY, Stage.ANALYSIS]

    def __init__(
        self,
        config: Config | None = None,
        probe: BackendProbe | None = None,
        runner: CommandRunner | None = None,
        sleeper: Sleeper | None = None,
        cwd: str | Path | None = None,
        verbose: bool = True,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.config = config or get_config()
        self.verbose = verbose

        backend = self.config.get_section("backend")
        backend_command = backend.get("command", "singularity")
        backend_module = backend.get("module", backend_command)
        self.image = backend.get("image", "./src/diann-1.8.1.sif")

        markers = {
            stage: str(self.config.get(f"stages.{name}.marker", DEFAULT_MARKERS[stage]))
            for name, stage in (("library", Stage.LIBRARY), ("analysis", Stage.ANALYSIS))
        }
        # the library build must be able to produce its own marker
        library_out_lib(markers[Stage.LIBRARY])

        exec_flags = backend.get("exec_flags", ["--cleanenv"])
        if exec_flags is None:
            exec_flags = []
        elif isinstance(exec_flags, str):
            exec_flags = [exec_flags]

        self.policy = self._chain_policy(self.config.get("stages.on_failure", "continue"))

        try:
            grace_period = float(self.config.get("stages.grace_period_seconds", DEFAULT_GRACE_PERIOD))
        except (TypeError, ValueError):
            raise ConfigValidationError(
                "stages.grace_period_seconds must be a number",
                {"value": self.config.get("stages.grace_period_seconds")},
            )

        self.validator = InputValidator(
            probe=probe,
            cwd=cwd,
            backend_command=backend_command,
            backend_module=backend_module,
        )
        self.loader = ParameterLoader()
        self.planner = StagePlanner(markers=markers, grace_period=grace_period, verbose=verbose)
        self.executor = StageExecutor(
            runner=runner,
            image=self.image,
            backend_command=backend_command,
            backend_module=backend_module,
            exec_flags=[str(flag) for flag in exec_flags],
            tool_command=self.config.get("tool.command", "diann"),
            cwd=cwd,
            verbose=verbose,
        )
        self.sleeper = sleeper or TimeSleeper()

    @staticmethod
    def _chain_policy(value) -> ChainPolicy:
        try:
            return ChainPolicy(str(value).strip().lower())
        except ValueError:
            raise ConfigValidationError(
                "stages.on_failure must be 'continue' or 'stop'",
                {"value": value},
            )

    def run(self, options: OptionSet) -> PipelineResult:
        """
        Run the whole pipeline

        Args:
            options: parsed command line

        Returns:
            PipelineResult (exit_code 1 for validation or config errors, or a
            failed stage under ChainPolicy.STOP; 0 otherwise)
        """
        result = PipelineResult(success=False, exit_code=1, started_at=datetime.now())

        self.logger.info("=" * 50)
        self.logger.info("Pipeline start")
        self.logger.info("=" * 50)

        # ===== validation gate =====
        report = self.validator.run(options)
        result.report = report
        self._echo(report.render())

        try:
            report.raise_for_errors()
        except ValidationError as e:
            self._echo("\nCheck arguments and try again.\n")
            result.error = e.message
            return self._finish(result, 1)

        options = report.options
        self._echo("\nSUCCESS: arguments passed validation")
        self._echo(self._format_parameters(options))

        # ===== pass-through config =====
        try:
            pass_through = self.loader.load(options.config_path)
        except ConfigError as e:
            self.logger.error(f"Config load failed: {e}")
            self._echo(f"ERROR: {e}")
            result.error = str(e)
            return self._finish(result, 1)

        result.parameters = pass_through
        self._echo(f"Imported configuration from {options.config_path}:\n\n{pass_through.render()}\n")

        if options.debug:
            self._echo("INFO: halting process before DIA-NN due to --debug flag\n")
            self._echo("Shutting down...\n")
            result.halted_for_debug = True
            return self._finish(result, 0)

        if options.clobber:
            self._echo("INFO: ignoring and re-generating pre-existing files due to --clobber flag\n")

        # ===== stages =====
        upstream_failed = False
        for stage in self.STAGES:
            if upstream_failed and self.policy == ChainPolicy.STOP:
                name = STAGE_DEFINITIONS[stage].name
                self.logger.warning(f"[{name}] skipped after upstream failure")
                result.stage_results.append(StageResult(
                    stage_name=name,
                    status=StageStatus.SKIPPED,
                    error="skipped after upstream failure",
                ))
                continue

            stage_result = self.run_stage(stage, options, pass_through, report.backend)
            result.stage_results.append(stage_result)
            if stage_result.status == StageStatus.FAILED:
                upstream_failed = True

        # a failed stage is fatal only under STOP; CONTINUE is best effort and exits 0
        try:
            result.raise_for_status()
        except StageExecutionError as e:
            result.error = "; ".join(
                s.error or s.stage_name for s in result.stage_results if s.status == StageStatus.FAILED
            )
            if self.policy == ChainPolicy.STOP:
                return self._finish(result, 1)
            self.logger.warning(f"[{e.stage}] failed, finishing anyway (stages.on_failure=continue)")
        return self._finish(result, 0)

    def run_stage(
        self,
        stage: Stage,
        options: OptionSet,
        pass_through: PassThroughConfig,
        backend: BackendMode,
    ) -> StageResult:
        """Plan one stage, wait out the grace period if needed, then execute"""
        decision = self.planner.plan(stage, options.output_dir, options.clobber)

        if decision == StageDecision.SKIP:
            return StageResult(
                stage_name=STAGE_DEFINITIONS[stage].name,
                status=StageStatus.SKIPPED,
                decision=decision,
            )

        if decision == StageDecision.RUN_AFTER_DELAY:
            self.sleeper.wait(self.planner.grace_period)

        params = stage_defaults(stage, options, self.planner.markers).overlay(
            pass_through.for_stage(stage)
        )
        return self.executor.execute(stage, options, params, backend, decision)

    def _format_parameters(self, options: OptionSet) -> str:
        return "\n".join([
            "\n###########\nPARAMETERS:\n###########\n",
            f"Config file:\t{options.config_path}",
            f"Spec Input:\t{options.spec_input_path}",
            f"FASTA Input:\t{options.fasta_path}",
            f"Output to:\t{options.output_dir}/",
            f"Singularity:\t{self.image}\n",
        ])

    def _finish(self, result: PipelineResult, exit_code: int) -> PipelineResult:
        result.exit_code = exit_code
        result.success = exit_code == 0
        result.completed_at = datetime.now()

        self.logger.info("=" * 50)
        if result.success:
            self.logger.info(f"Pipeline finished: {result.duration_seconds:.1f}s")
        else:
            self.logger.error(f"Pipeline failed: {result.error}")
        self.logger.info("=" * 50)
        self.logger.debug(f"Pipeline summary: {result.to_summary()}")
        return result

    def _echo(self, text: str) -> None:
        if self.verbose and text:
            print(text)
