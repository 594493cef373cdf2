"""Exceptions raised across the simulation-to-recording bridge."""


class BridgeError(Exception):
    """Base class for every error raised by bullet_rerun."""


class DescriptionNotFoundError(BridgeError, FileNotFoundError):
    """The robot description file does not exist or cannot be read."""


class DescriptionParseError(BridgeError, ValueError):
    """The robot description exists but could not be turned into a link tree."""


class StaticRegistrationError(BridgeError):
    """Static geometry for a robot could not be registered with the session."""


class MeshResolutionError(StaticRegistrationError):
    """A visual mesh reference points at a missing or unsupported file."""


class SimulationQueryError(BridgeError):
    """The physics host could not answer a state query."""


class RecorderStateError(BridgeError):
    """A recorder was attached or detached out of order."""


class BuilderConsumedError(BridgeError):
    """A robot builder was used again after ``load()``."""


class BuilderConfigError(BridgeError, ValueError):
    """A robot builder was loaded with an unusable configuration."""
