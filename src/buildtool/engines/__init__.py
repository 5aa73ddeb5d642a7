"""Bridges to compiler and bundler engines hosted outside the Python process."""

from .bridge import (
    EngineError,
    JsonLineClient,
    SubprocessBundlerEngine,
    SubprocessCompilerEngine,
    diagnostic_from_payload,
)

__all__ = [
    "EngineError",
    "JsonLineClient",
    "SubprocessBundlerEngine",
    "SubprocessCompilerEngine",
    "diagnostic_from_payload",
]
