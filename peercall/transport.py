"""
JSON over TCP call primitive.

Peers are identified as ``host:port``. A request is a single line of JSON,
the reply is read until the peer closes the connection.
"""

import json
import logging
import socket

from .errors import CallTimeout, PeerUnreachable, RemoteCallError, ValidationError
from .options import INFINITY
from . import util

log = logging.getLogger(__name__)


def timeout_seconds(timeout):
    """Converts a timeout in milliseconds (or ``INFINITY``) to seconds."""
    if timeout is None or timeout == INFINITY:
        return None
    return timeout / 1000


class TcpTransport:
    """
    Call primitive talking to a ``PeerServer``.

    Faults are raised as ``CallTimeout``, ``PeerUnreachable`` or one of the
    ``RemoteCallError`` subclasses. Arguments that cannot be encoded are
    rejected with a ``ValidationError`` before connecting.
    """

    def __call__(self, peer, target, operation, args, timeout):
        name = f"{target}.{operation}"
        try:
            host, port = util.net.parse_peer(peer)
        except ValueError as e:
            raise PeerUnreachable(str(e)) from e

        packet = {
            "type": "req",
            "name": name,
            "args": list(args),
            "kwargs": {},
        }
        try:
            msg = json.dumps(packet)
        except (TypeError, ValueError) as e:
            raise ValidationError(
                f"Arguments of '{name}' are not JSON serializable: {e}",
                {"operation": operation},
            ) from e

        try:
            reply = util.net.send_recv_msg(host, port, msg, timeout=timeout_seconds(timeout))
        except socket.timeout as e:
            raise CallTimeout(f"Call of '{name}' on {peer} timed out after {timeout} ms") from e
        except OSError as e:
            raise PeerUnreachable(f"Cannot reach {peer}: {type(e).__name__}({e})") from e
        except ValueError as e:
            raise RemoteCallError(f"Invalid reply from {peer} for '{name}': {e}") from e

        if not isinstance(reply, dict) or not reply:
            raise PeerUnreachable(f"{peer} closed the connection without reply to '{name}'")

        return util.net.handle_reply(reply, name)

    def __repr__(self):
        return f"{self.__class__.__name__}()"
