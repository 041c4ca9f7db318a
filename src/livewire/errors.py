"""
Error types for the live-wire core.

Interactive queries (out-of-image pixels, unreachable targets, flat images)
are answered with empty or neutral results and never raise. Only
construction-time problems are reported as exceptions.
"""


class InvalidConfigurationError(ValueError):
    """Raised when a cost matrix cannot be built from the given inputs."""
