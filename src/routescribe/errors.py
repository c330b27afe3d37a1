from __future__ import annotations


class RoutescribeError(Exception):
    """Base class for errors raised by routescribe."""


class ConfigError(RoutescribeError):
    """Invalid run configuration. Raised before any pipeline stage runs."""


class AnalysisParseError(RoutescribeError):
    """The generative service answered with something that is not a usable analysis."""
