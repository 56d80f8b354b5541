"""Exceptions raised by the TracePing modules."""


class TracePingError(Exception):
    """Base class for every TracePing error."""


class InvalidTarget(TracePingError):
    """The target host does not resolve to an IPv4 address."""


class InvalidConfiguration(TracePingError):
    """A setting is out of range (max hops, timeouts, frequencies)."""


class ProbingActive(TracePingError):
    """The continuous probing loop is running and must be stopped first."""


class ProbeError(TracePingError):
    """Transport-level failure of a single echo attempt."""


class ProbeTimeout(ProbeError):
    """No reply arrived within the per-attempt timeout."""


class NameResolutionFailure(TracePingError):
    """Reverse DNS lookup for a hop address failed."""


class ProberStopped(TracePingError):
    """The cancellation signal is raised; reset() must be called before starting again."""
