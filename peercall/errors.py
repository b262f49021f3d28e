"""
Error taxonomy and remote faults.

Typed errors (``PeerCallError`` and subclasses) are what callers see.
Remote faults (``RemoteFault`` and subclasses) are raised by call
primitives and get classified into typed errors by the engine.
"""

import logging
from types import MappingProxyType

log = logging.getLogger(__name__)


CONFIG = "config"
RPC = "rpc"
PEER = "peer"
TIMEOUT = "timeout"
VALIDATION = "validation"

ERROR_KINDS = (CONFIG, RPC, PEER, TIMEOUT, VALIDATION)

# faults of these kinds are worth another attempt
RETRYABLE_KINDS = frozenset((PEER, TIMEOUT, RPC))


############################# Typed Errors #############################

class PeerCallError(Exception):
    """
    Classified failure of a remote call.

    Carries a ``kind`` (one of ``ERROR_KINDS``), a human readable message
    and a read-only mapping of details. The fault it was built from (if
    any) is kept in ``fault`` for diagnostics.
    """

    kind = RPC

    def __init__(self, message, details=None, *, kind=None, fault=None):
        super().__init__(message)
        if kind is not None:
            if kind not in ERROR_KINDS:
                raise ValueError(f"Unknown error kind: {kind!r}")
            self.kind = kind
        self.message = message
        self.details = MappingProxyType(dict(details or {}))
        self.fault = fault

    @property
    def retryable(self):
        return self.kind in RETRYABLE_KINDS

    def format(self):
        if not self.details:
            return f"[peercall:{self.kind}] {self.message}"
        details = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"[peercall:{self.kind}] {self.message} | {details}"

    def log(self, level=logging.ERROR):
        log.log(level, self.format())

    def __str__(self):
        return self.format()

    def __repr__(self):
        return f"{type(self).__name__}({self.kind!r}, {self.message!r})"

    def __eq__(self, other):
        if not isinstance(other, PeerCallError):
            return NotImplemented
        return (
            self.kind == other.kind
            and self.message == other.message
            and dict(self.details) == dict(other.details)
        )

    __hash__ = Exception.__hash__


class ConfigError(PeerCallError):
    """Raised when settings are missing or malformed."""
    kind = CONFIG


class ValidationError(PeerCallError):
    """Raised when call-time input is rejected before any call is made."""
    kind = VALIDATION


class PeerError(PeerCallError):
    """Raised when no peer is available or a resolver failed."""
    kind = PEER


def config_error(field, value, expected):
    """Builds a ``ConfigError`` naming the offending field and value."""
    return ConfigError(
        f"Invalid value for '{field}': expected {expected}, got {value!r}",
        {"field": field, "value": value},
    )


############################# Remote Faults #############################

class RemoteFault(Exception):
    """Base class of faults raised by call primitives."""
    pass


class CallTimeout(RemoteFault):
    """Raised when a call did not finish within its timeout."""
    pass


class PeerUnreachable(RemoteFault):
    """Raised when the peer could not be reached or dropped the connection."""
    pass


class RemoteCallError(RemoteFault):
    """Raised when an exception was raised in a remote call."""
    pass


class RemoteNameError(RemoteCallError):
    """Raised when the operation could not be found on the remote peer."""
    pass


class RemoteEncodingError(RemoteCallError):
    """Raised when the peer could not json-encode the return value."""
    pass
