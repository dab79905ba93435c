"""
Custom exception classes

Standardized error handling shared by every layer
"""
from typing import Any


class BaseError(Exception):
    """Base class for all protpipe exceptions"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# ============================================
# Command line Errors
# ============================================
class UsageError(BaseError):
    """Malformed invocation (unknown flag, missing option argument)"""

    def __init__(self, message: str, token: str | None = None):
        super().__init__(message, {"token": token} if token else None)
        self.token = token

    def __str__(self) -> str:
        return self.message


# ============================================
# Configuration Errors
# ============================================
class ConfigError(BaseError):
    """Settings or pass-through config problem"""
    pass


class ConfigNotFoundError(ConfigError):
    """Config file not found"""
    pass


class ConfigValidationError(ConfigError):
    """Config value failed validation"""
    pass


# ============================================
# Validation Errors
# ============================================
class ValidationError(BaseError):
    """Input validation failed (one or more ERROR diagnostics)"""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message, {"errors": errors} if errors else None)
        self.errors = errors or []


# ============================================
# Execution Errors
# ============================================
class BackendError(BaseError):
    """Container runtime cannot be used"""
    pass


class StageExecutionError(BaseError):
    """External tool returned a non-zero exit status"""

    def __init__(self, message: str, stage: str | None = None, returncode: int | None = None):
        super().__init__(message, {"stage": stage, "returncode": returncode})
        self.stage = stage
        self.returncode = returncode
