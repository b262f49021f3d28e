"""
Utility functions for network communication.
"""

from contextlib import closing
import json
import logging
import re
import socket

from ..errors import RemoteCallError, RemoteEncodingError, RemoteNameError

log = logging.getLogger(__name__)

TCP_DEFAULT_BUFFERSIZE = 1024


_PEER_PATTERN = re.compile(r"^(?P<host>\[[^\]]+\]|[^:\s]+):(?P<port>\d{1,5})$")


def loads_json(msg):
    """
    Loads json string. For empty string returns empty dict.
    """
    if len(msg) == 0:
        return {}
    else:
        return json.loads(msg)


def send_recv_msg(host, port, msg, *, timeout=None):
    """
    Sends an encoded JSON message to an endpoint and receives the decoded response.

    ``timeout`` is given in seconds and applies to connecting as well as
    to every blocking socket operation. ``None`` blocks indefinitely.
    """
    port = int(port)
    data = (msg + "\n").encode()
    with closing(socket.create_connection((host, port), timeout=timeout)) as s:
        s.sendall(data)
        s.shutdown(socket.SHUT_WR)
        data = recvall(s)
    msg = data.decode()
    return loads_json(msg)


def recvall(sock, buffersize=None):
    if buffersize is None:
        buffersize = TCP_DEFAULT_BUFFERSIZE
    data = bytearray()
    while True:
        packet = sock.recv(buffersize)
        if not packet:
            break
        data.extend(packet)
    return data


def handle_reply(reply, name):
    """
    Returns the value of a reply packet or raises the matching remote fault.
    """
    if reply.get("type") == "rep":
        return reply.get("value")

    if reply.get("type") == "err":
        error_type = reply.get("value")
        detail = reply.get("message") or ""
        if error_type == "RemoteNameError":
            raise RemoteNameError(f"No registration for '{name}'.")
        elif error_type == "RemoteCallError":
            raise RemoteCallError(f"Execution of '{name}' failed on peer. {detail}".strip())
        elif error_type == "RemoteEncodingError":
            raise RemoteEncodingError(f"JSON serialization of '{name}' failed. {detail}".strip())
        raise RemoteCallError(f"Unknown error-type: {error_type}")

    raise RemoteCallError(f"Malformed reply for '{name}': {reply!r}")


def get_arguments(packet):
    """
    Return args and kwargs from a packet.
    """
    args = packet.get('args', [])
    kwargs = packet.get('kwargs', {})
    if args is None:
        args = []
    if kwargs is None:
        kwargs = {}
    return args, kwargs


def parse_peer(peer):
    """
    Split a peer identifier of the form ``host:port`` into its parts.

    IPv6 hosts have to be written in brackets, e.g. ``[::1]:4500``.
    """
    match = _PEER_PATTERN.match(peer.strip()) if isinstance(peer, str) else None
    if match is None:
        raise ValueError(f"Peer must be given as 'host:port', got {peer!r}")
    host = match.group("host").strip("[]")
    port = int(match.group("port"))
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range in peer {peer!r}")
    return host, port


def find_free_port():
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]
