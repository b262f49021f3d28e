"""
Peer selection strategies.

Mutable selection state (round-robin cursor and sticky pin) is kept in a
``SelectorStore`` keyed by ``(context, selector_id)``. A context is the
unit of affinity, e.g. one connection or task. It can be any hashable
object owned by the caller, usually a ``SelectionContext``.
"""

import hashlib
import json
import logging
import random
import threading
import uuid

from .errors import PeerError
from .options import HASH, RANDOM, ROUND_ROBIN, STRATEGIES, Resolver
from . import util

log = logging.getLogger(__name__)


class SelectorState:
    """Selection state of one selector within one context."""

    __slots__ = ("cursor", "pinned", "lock")

    def __init__(self):
        self.cursor = None
        self.pinned = None
        # serializes selections if a context is shared across threads
        self.lock = threading.Lock()

    def __repr__(self):
        return f"{type(self).__name__}(cursor={self.cursor!r}, pinned={self.pinned!r})"


class SelectorStore:
    """
    Holds ``SelectorState`` objects per ``(context, selector_id)``.

    States are created lazily on first selection and dropped with
    ``discard`` or when a context is closed.
    """

    def __init__(self):
        self._states = {}

    def get(self, context, selector_id, create=False):
        key = (context, selector_id)
        state = self._states.get(key)
        if state is None and create:
            state = self._states.setdefault(key, SelectorState())
        return state

    def discard(self, context, selector_id=None):
        """
        Drop the state of one selector, or all states of a context if
        ``selector_id`` is None.
        """
        if selector_id is not None:
            self._states.pop((context, selector_id), None)
            return
        for key in [k for k in list(self._states) if k[0] == context]:
            self._states.pop(key, None)

    def contexts(self):
        return {context for context, _ in list(self._states)}

    def __len__(self):
        return len(self._states)

    def __contains__(self, key):
        return key in self._states


class SelectionContext:
    """
    Explicit selection context.

    Use one per connection, task or thread. Closing the context drops all
    of its selector state from the store.

    Example:
    > with SelectionContext(store) as ctx:
    ...     selector.select(ctx, "accounts", "round_robin", False, peers, None)
    """

    def __init__(self, store=None, name=None):
        self.store = store
        self.id = name or uuid.uuid4().hex[:12]

    def close(self):
        if self.store is not None:
            self.store.discard(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __repr__(self):
        return f"{type(self).__name__}({self.id})"


def invoke_resolver(resolver):
    """Default resolver invocation: import string references and call them."""
    function = resolver.function
    if isinstance(function, str):
        function = util.import_object(function)
    return function(*resolver.args)


def hash_index(key, count):
    """
    Deterministic index in ``range(count)`` for an arbitrary key.

    The key is encoded as canonical JSON (non-JSON values by ``repr``), so
    the same key maps to the same index across processes.
    """
    data = json.dumps(key, sort_keys=True, default=repr, separators=(",", ":"))
    digest = hashlib.blake2b(data.encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big") % count


class PeerSelector:
    """
    Selects peers for calls.

    ``invoke`` calls a ``Resolver`` and returns its peers, ``rng`` is a
    ``random.Random`` compatible object.
    """

    def __init__(self, store=None, invoke=None, rng=None):
        self.store = SelectorStore() if store is None else store
        self.invoke = invoke_resolver if invoke is None else invoke
        self.rng = random.Random() if rng is None else rng

    def resolve_peers(self, source):
        if not isinstance(source, Resolver):
            return tuple(source)

        try:
            peers = self.invoke(source)
        except Exception as e:
            raise PeerError(
                f"Resolver {source.name} failed: {type(e).__name__}({e})",
                {"resolver": source.name},
                fault=e,
            ) from e

        if isinstance(peers, (str, bytes)) or not hasattr(peers, "__iter__"):
            raise PeerError(
                f"Resolver {source.name} must return a collection of peers, got {peers!r}",
                {"resolver": source.name},
            )
        peers = tuple(dict.fromkeys(peers))
        if not peers:
            raise PeerError(
                f"Resolver {source.name} returned no peers",
                {"resolver": source.name},
            )
        return peers

    def select(self, context, selector_id, strategy, sticky, source, hash_key=None):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy: {strategy!r}")

        if not sticky and strategy == RANDOM:
            return self.rng.choice(self.resolve_peers(source))

        state = self.store.get(context, selector_id, create=True)
        with state.lock:
            if sticky and state.pinned is not None:
                return state.pinned

            peers = self.resolve_peers(source)

            if strategy == RANDOM:
                peer = self.rng.choice(peers)
            elif strategy == ROUND_ROBIN:
                peer = self._next_round_robin(state, peers)
            elif strategy == HASH:
                peer = peers[hash_index(hash_key, len(peers))]

            if sticky:
                log.debug(f"Pin {selector_id} to {peer} in {context}.")
                state.pinned = peer

        return peer

    def _next_round_robin(self, state, peers):
        count = len(peers)
        if state.cursor is None:
            # random start so contexts with the same list spread out
            index = self.rng.randrange(count)
        elif state.cursor >= count:
            index = 0
        else:
            index = state.cursor
        state.cursor = (index + 1) % count
        return peers[index]

    def pinned(self, context, selector_id):
        state = self.store.get(context, selector_id)
        return None if state is None else state.pinned

    def clear_sticky(self, context, selector_id):
        state = self.store.get(context, selector_id)
        if state is not None:
            with state.lock:
                state.pinned = None

    def reset_round_robin(self, context, selector_id):
        state = self.store.get(context, selector_id)
        if state is not None:
            with state.lock:
                state.cursor = None
