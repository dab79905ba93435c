"""
Stage definitions and planning

Two fixed stages, each with a marker file whose existence means "done":
  1. library build   -> report-lib.predicted.speclib (written via --out-lib report-lib.tsv)
  2. sample analysis -> report-lib.tsv
"""
import time
from dataclasses import dataclass
from pathlib import Path

from protpipe.core.exceptions import ConfigValidationError
from protpipe.core.interfaces import OptionSet, Sleeper, Stage, StageDecision
from protpipe.core.logger import get_logger
from protpipe.core.parameters import ParameterSet


DEFAULT_MARKERS = {
    Stage.LIBRARY: "report-lib.predicted.speclib",
    Stage.ANALYSIS: "report-lib.tsv",
}

DEFAULT_GRACE_PERIOD = 15

# DIA-NN names the predicted library after --out-lib: report-lib.tsv -> report-lib.predicted.speclib
PREDICTED_LIBRARY_SUFFIX = ".predicted.speclib"

# Search space shared by both stages
SEARCH_SPACE = {
    "min-fr-mz": 200,
    "max-fr-mz": 2000,
    "cut": "K*,R*",
    "missed-cleavages": 2,
    "min-pep-len": 7,
    "max-pep-len": 52,
    "min-pr-mz": 300,
    "max-pr-mz": 1800,
    "min-pr-charge": 1,
    "max-pr-charge": 4,
    "unimod4": True,
    "var-mods": 5,
}

ANALYSIS_VAR_MODS = [
    "UniMod:35,15.994915,M",
    "UniMod:1,42.010565,*n",
]


@dataclass(frozen=True)
class StageDefinition:
    """Static description of a stage"""
    stage: Stage
    name: str
    start_notice: str
    finish_notice: str
    existing_notice: str  # SKIP message
    rerun_notice: str     # RUN_AFTER_DELAY message


STAGE_DEFINITIONS = {
    Stage.LIBRARY: StageDefinition(
        stage=Stage.LIBRARY,
        name="01_library_build",
        start_notice="starting generation of in silico spectral library",
        finish_notice="finished building in silico spectral library",
        existing_notice="in silico spectral library already exists",
        rerun_notice="re-building in silico spectral library due to --clobber flag.",
    ),
    Stage.ANALYSIS: StageDefinition(
        stage=Stage.ANALYSIS,
        name="02_sample_analysis",
        start_notice="starting analyzing mass spec sample",
        finish_notice="finished analyzing mass spec sample",
        existing_notice="mass spec sample already analyzed",
        rerun_notice="re-analyzing mass spec sample due to --clobber flag.",
    ),
}


def library_out_lib(marker: str) -> str:
    """
    --out-lib value that makes the library build produce `marker`

    Args:
        marker: library marker file name, must end in .predicted.speclib

    Returns:
        file name (e.g. "report-lib.tsv")

    Raises:
        ConfigValidationError: marker DIA-NN cannot be made to write
    """
    marker = str(marker)
    stem = marker.removesuffix(PREDICTED_LIBRARY_SUFFIX)
    if stem == marker or not stem or "/" in marker:
        raise ConfigValidationError(
            f"stages.library.marker must be a file name ending in {PREDICTED_LIBRARY_SUFFIX}",
            {"value": marker},
        )
    return f"{stem}.tsv"


def stage_defaults(
    stage: Stage,
    options: OptionSet,
    markers: dict[Stage, str] | None = None,
) -> ParameterSet:
    """
    Base DIA-NN parameters for a stage

    Args:
        stage: pipeline stage
        options: validated options (output_dir resolved)
        markers: marker file names (default: DEFAULT_MARKERS)

    Returns:
        ParameterSet before pass-through overlays
    """
    markers = {**DEFAULT_MARKERS, **(markers or {})}
    out = Path(options.output_dir or ".")

    if stage == Stage.LIBRARY:
        return ParameterSet({
            "fasta": options.fasta_path,
            "fasta-search": True,
            "out": str(out / "report.tsv"),
            "out-lib": str(out / library_out_lib(markers[Stage.LIBRARY])),
            "predictor": True,
            **SEARCH_SPACE,
            "monitor-mod": "UniMod:1",
        })

    return ParameterSet({
        "f": options.spec_input_path,
        "lib": str(out / markers[Stage.LIBRARY]),
        "out": str(out / "report.tsv"),
        "qvalue": "0.01",
        "matrices": True,
        "out-lib": str(out / markers[Stage.ANALYSIS]),
        "gen-spec-lib": True,
        "predictor": True,
        **SEARCH_SPACE,
        "var-mod": ANALYSIS_VAR_MODS,
        "monitor-mod": "UniMod:1",
    })


class StagePlanner:
    """
    Decide skip / run / run-after-delay from marker files

    | marker exists | clobber | decision        |
    |---------------|---------|-----------------|
    | no            | any     | RUN             |
    | yes           | False   | SKIP            |
    | yes           | True    | RUN_AFTER_DELAY |
    """

    def __init__(
        self,
        markers: dict[Stage, str] | None = None,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        verbose: bool = True,
    ):
        self.logger = get_logger(self.__class__.__name__)
        self.markers = {**DEFAULT_MARKERS, **(markers or {})}
        self.grace_period = grace_period
        self.verbose = verbose

    def marker_path(self, stage: Stage, output_dir: str | Path) -> Path:
        return Path(output_dir) / self.markers[stage]

    def plan(self, stage: Stage, output_dir: str | Path, clobber: bool) -> StageDecision:
        """
        Plan one stage

        Args:
            stage: pipeline stage
            output_dir: directory holding the marker file
            clobber: --clobber given

        Returns:
            StageDecision
        """
        definition = STAGE_DEFINITIONS[stage]
        marker = self.marker_path(stage, output_dir)

        if not marker.exists():
            self.logger.info(f"[{definition.name}] marker {marker} absent, running")
            return StageDecision.RUN

        if clobber:
            self.logger.warning(f"[{definition.name}] marker {marker} exists, re-running due to --clobber")
            self._echo(f"WARNING: {definition.rerun_notice}")
            self._echo("WARNING: This will over-write the existing file.")
            self._echo(f"WARNING: Starting in {self.grace_period:g} seconds unless interrupted.")
            return StageDecision.RUN_AFTER_DELAY

        self.logger.info(f"[{definition.name}] marker {marker} exists, skipping")
        self._echo(f"INFO: {definition.existing_notice}")
        self._echo("INFO: rerun with --clobber to delete and re-generate existing files\n")
        return StageDecision.SKIP

    def _echo(self, line: str) -> None:
        if self.verbose:
            print(line)


class TimeSleeper(Sleeper):
    """Real grace period; Ctrl-C during the wait aborts the run"""

    def wait(self, seconds: float) -> None:
        time.sleep(seconds)
