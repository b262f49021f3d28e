import threading

import pytest

from peercall import PeerServer, PeerSelector
from peercall.configuration import ConfDict
from peercall.errors import PeerUnreachable


class FirstChoice:
    """Stand-in for ``random.Random`` that always picks the first element."""

    def choice(self, seq):
        return seq[0]

    def randrange(self, stop):
        return 0


class FakeCall:
    """
    Call primitive recording every invocation.

    ``outcomes`` maps a peer to a list of results, an exception instance in
    that list is raised instead of returned. Peers without outcomes return
    ``default``.
    """

    def __init__(self, outcomes=None, default="ok"):
        self.outcomes = {peer: list(values) for peer, values in (outcomes or {}).items()}
        self.default = default
        self.calls = []

    def __call__(self, peer, target, operation, args, timeout):
        self.calls.append((peer, target, operation, args, timeout))
        values = self.outcomes.get(peer)
        value = values.pop(0) if values else self.default
        if isinstance(value, Exception):
            raise value
        return value

    @property
    def peers(self):
        return [call[0] for call in self.calls]


class AlwaysFails(FakeCall):

    def __init__(self, fault=None):
        super().__init__()
        self.fault = fault or PeerUnreachable("connection refused")

    def __call__(self, peer, target, operation, args, timeout):
        self.calls.append((peer, target, operation, args, timeout))
        raise self.fault


class Calculator:

    def add(self, a, b):
        return a + b

    def fail(self, message):
        raise RuntimeError(message)

    def unencodable(self):
        return object()

    async def echo(self, value):
        return value

    def _hidden(self):
        return "hidden"


@pytest.fixture
def first_choice():
    return PeerSelector(rng=FirstChoice())


@pytest.fixture
def server():
    server = PeerServer(host="127.0.0.1", port=0)
    server.register("calc", Calculator())
    thread = threading.Thread(target=server.start, kwargs={"handle_signals": False}, daemon=True)
    thread.start()
    assert server.started.wait(5)
    yield server
    server.stop(5)
    thread.join(5)


@pytest.fixture
def conf(monkeypatch):
    """Replace the loaded configuration with an empty ``ConfDict``."""
    from peercall import state
    config = ConfDict({"general": {"loglevel": "info"}})
    monkeypatch.setattr(state, "_config", config, raising=False)
    return config
