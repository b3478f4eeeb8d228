"""Exceptions raised by vibe-profiler."""


class VibeProfilerError(Exception):
    """Base class for all vibe-profiler errors."""


class ConfigError(VibeProfilerError, ValueError):
    """Raised when a rollup configuration value is invalid."""


class SnapshotError(VibeProfilerError, ValueError):
    """Raised when a snapshot row cannot be parsed."""


class StoreError(VibeProfilerError, ValueError):
    """Raised when the rollup store file is unreadable or corrupt."""
