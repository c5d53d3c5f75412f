"""Errors raised while synthesizing the deployment topology.

Every fatal error aborts the whole synthesis. ConfigurationWarning is the only
non-fatal signal and goes through the warnings module.
"""


class TopologyError(Exception):
    """Base class for all topology synthesis failures."""


class ConfigurationError(TopologyError):
    """Malformed or out-of-range input, e.g. a bad AZ count."""


class PolicyConflictError(TopologyError):
    """Two requested settings contradict each other's security posture."""


class ScopeViolationError(TopologyError):
    """A role or statement would grant more than least privilege allows."""


class InvalidShapeError(TopologyError):
    """CPU/memory pair not accepted by the Fargate platform."""


class MissingImageError(ConfigurationError):
    """Pre-flight check could not find the container image in its registry."""


class ConfigurationWarning(UserWarning):
    """An option was accepted but has no effect."""
