import logging
import socket

from .errors import (
    PEER,
    RPC,
    TIMEOUT,
    CallTimeout,
    PeerCallError,
    PeerUnreachable,
)

log = logging.getLogger(__name__)


def fault_kind(fault):
    """
    Maps a fault to an error kind.

    Timeouts take precedence over connection problems because the builtin
    timeout exceptions are ``OSError`` subclasses as well.
    """
    if isinstance(fault, PeerCallError):
        return fault.kind
    if isinstance(fault, (CallTimeout, TimeoutError, socket.timeout)):
        return TIMEOUT
    if isinstance(fault, (PeerUnreachable, ConnectionError, OSError)):
        return PEER
    return RPC


def classify(fault, peer=None, attempt=0, **details):
    """
    Turn a raw fault into a ``PeerCallError``.

    The details always contain the peer, the attempt index and the type of
    the original fault.
    """
    kind = fault_kind(fault)
    error_cls = PeerCallError

    if isinstance(fault, PeerCallError):
        error_cls = type(fault)
        message = fault.message
        details = {**fault.details, **details}
        original = fault.fault if fault.fault is not None else fault
    else:
        message = str(fault) or type(fault).__name__
        original = fault

    details.update(
        peer=peer,
        attempt=attempt,
        fault=type(original).__name__,
    )
    return error_cls(message, details, kind=kind, fault=original)
