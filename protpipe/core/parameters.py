"""
Pass-through parameters

DIA-NN flags are opaque here: a ParameterSet is an ordered flag -> value mapping
rendered verbatim onto the command line. The config file is YAML:

    met-excision: true
    var-mod:
      - UniMod:35,15.994915,M
      - UniMod:1,42.010565,*n
    threads: 20
    library:          # library build only
      predictor: true
    analysis:         # sample analysis only
      qvalue: 0.05

true renders a bare switch, false/null drops the flag, lists repeat it.
"""
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from protpipe.core.exceptions import ConfigError, ConfigValidationError
from protpipe.core.interfaces import Stage
from protpipe.core.logger import get_logger


Value = str | list[str] | bool | None

STAGE_SECTIONS = {
    "library": Stage.LIBRARY,
    "analysis": Stage.ANALYSIS,
}


class ParameterSet(Mapping):
    """
    Ordered, immutable flag -> value mapping

    Usage:
        defaults = ParameterSet({"qvalue": 0.01, "matrices": True})
        params = defaults.overlay({"qvalue": "0.05", "matrices": False})

        params.to_args()  # ["--qvalue", "0.05"]
    """

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values: dict[str, Value] = {}
        for key, value in (values or {}).items():
            name = _normalize_key(key)
            self._values[name] = _normalize_value(name, value)

    def __getitem__(self, key: str) -> Value:
        return self._values[_normalize_key(key)]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ParameterSet({self._values!r})"

    def overlay(self, other: Mapping[str, Any]) -> "ParameterSet":
        """
        Return a new set with other's values on top

        Keys already present keep their position; new keys are appended.
        """
        merged: dict[str, Any] = dict(self._values)
        for key, value in ParameterSet(other).items():
            merged[key] = value
        return ParameterSet(merged)

    def to_args(self) -> list[str]:
        """Render as command line tokens"""
        args: list[str] = []
        for key, value in self._values.items():
            flag = f"--{key}"
            if value is True:
                args.append(flag)
            elif value is False or value is None:
                continue
            elif isinstance(value, list):
                for item in value:
                    args.extend([flag, item])
            else:
                args.extend([flag, value])
        return args

    def render(self) -> str:
        """One flag per line"""
        lines = []
        for key, value in self._values.items():
            if value is True:
                lines.append(f"--{key}")
            elif value is False or value is None:
                lines.append(f"--{key} (disabled)")
            elif isinstance(value, list):
                lines.extend(f"--{key} {item}" for item in value)
            else:
                lines.append(f"--{key} {value}")
        return "\n".join(lines)


def _normalize_key(key: Any) -> str:
    name = str(key).lstrip("-").strip()
    if not name:
        raise ConfigValidationError(f"Invalid parameter name: {key!r}")
    return name


def _normalize_value(key: str, value: Any) -> Value:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if isinstance(item, bool) or not isinstance(item, (str, int, float)):
                raise ConfigValidationError(
                    f"Parameter '{key}' list items must be strings or numbers",
                    {"item": repr(item)},
                )
            items.append(str(item))
        return items
    raise ConfigValidationError(
        f"Parameter '{key}' must be a string, number, boolean or list",
        {"type": type(value).__name__},
    )


@dataclass
class PassThroughConfig:
    """Parameters read from the --config file"""
    shared: ParameterSet = field(default_factory=ParameterSet)
    per_stage: dict[Stage, ParameterSet] = field(default_factory=dict)
    source: str | None = None

    def for_stage(self, stage: Stage) -> ParameterSet:
        """Shared parameters with the stage section on top"""
        return self.shared.overlay(self.per_stage.get(stage, ParameterSet()))

    def render(self) -> str:
        lines = [self.shared.render()] if self.shared else []
        for stage, params in self.per_stage.items():
            if params:
                lines.append(f"[{stage.label} only]")
                lines.append(params.render())
        return "\n".join(lines)


class ParameterLoader:
    """
    Config loader

    The file is operator-authored and trusted: any structural problem is fatal.

    Usage:
        config = ParameterLoader().load("diann.yaml")
        params = defaults.overlay(config.for_stage(Stage.LIBRARY))
    """

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def load(self, path: str | Path) -> PassThroughConfig:
        """
        Load a pass-through config file

        Args:
            path: YAML file

        Returns:
            PassThroughConfig

        Raises:
            ConfigError: unreadable file or YAML syntax error
            ConfigValidationError: unexpected structure
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config file: {path}", {"error": str(e)})
        except yaml.YAMLError as e:
            raise ConfigError(f"YAML parse error: {path}", {"error": str(e)})

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigValidationError(
                f"Config file must contain a mapping of DIA-NN parameters: {path}",
                {"type": type(data).__name__},
            )

        shared: dict[str, Any] = {}
        per_stage: dict[Stage, ParameterSet] = {}
        for key, value in data.items():
            if key in STAGE_SECTIONS:
                if value is None:
                    value = {}
                if not isinstance(value, dict):
                    raise ConfigValidationError(f"Section '{key}' must be a mapping: {path}")
                per_stage[STAGE_SECTIONS[key]] = ParameterSet(value)
            else:
                shared[key] = value

        config = PassThroughConfig(ParameterSet(shared), per_stage, str(path))
        self.logger.info(
            f"Loaded {len(config.shared)} shared parameter(s) from {path}"
            + "".join(f", {len(p)} for {s.label}" for s, p in per_stage.items())
        )
        return config


def load_pass_through(path: str | Path) -> PassThroughConfig:
    """Load a pass-through config file"""
    return ParameterLoader().load(path)
