"""
Core module - shared infrastructure

- config: settings
- logger: logging service
- exceptions: custom exceptions
- interfaces: shared types and collaborator interfaces
- options: command line parser
- preflight: input validation
- backend: container runtime probe
- parameters: pass-through DIA-NN parameters
"""
from protpipe.core.config import Config, get_config
from protpipe.core.logger import get_logger, LoggerService, setup_logger_from_config
from protpipe.core.exceptions import (
    BaseError,
    UsageError,
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
    ValidationError,
    BackendError,
    StageExecutionError,
)
from protpipe.core.interfaces import (
    SpecInputKind,
    Severity,
    BackendMode,
    Stage,
    StageDecision,
    ChainPolicy,
    OptionSet,
    Diagnostic,
    ValidationReport,
    BackendProbe,
    Sleeper,
    CommandRunner,
)
from protpipe.core.options import OptionParser, parse_args
from protpipe.core.preflight import InputValidator, run_preflight
from protpipe.core.backend import ShellBackendProbe
from protpipe.core.parameters import ParameterSet, ParameterLoader, PassThroughConfig, load_pass_through

__all__ = [
    # Config
    "Config",
    "get_config",
    # Logger
    "get_logger",
    "LoggerService",
    "setup_logger_from_config",
    # Exceptions
    "BaseError",
    "UsageError",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "ValidationError",
    "BackendError",
    "StageExecutionError",
    # Interfaces
    "SpecInputKind",
    "Severity",
    "BackendMode",
    "Stage",
    "StageDecision",
    "ChainPolicy",
    "OptionSet",
    "Diagnostic",
    "ValidationReport",
    "BackendProbe",
    "Sleeper",
    "CommandRunner",
    # Parsing / validation
    "OptionParser",
    "parse_args",
    "InputValidator",
    "run_preflight",
    "ShellBackendProbe",
    # Parameters
    "ParameterSet",
    "ParameterLoader",
    "PassThroughConfig",
    "load_pass_through",
]
