"""Domain-specific errors for scpctl."""


class ScpctlError(Exception):
    """Base error for scpctl."""


class DictionaryLoadError(ScpctlError):
    """Raised when a console parameter dictionary cannot be read."""


class ChoicesValidationError(ScpctlError):
    """Raised when the curated choice tables do not conform to schema."""


class ConfigLoadError(ScpctlError):
    """Raised when reading the configuration file fails."""


class ConfigValidationError(ScpctlError):
    """Raised when a configuration file does not conform to schema or semantics."""


class TransportError(ScpctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised on TCP connect failures."""


class TransportSendError(TransportError):
    """Raised when sending or receiving fails."""


class TransportTimeoutError(TransportError):
    """Raised when the console does not answer in time."""
