from typing import Any, NamedTuple

from .errors import PeerCallError


class Ok(NamedTuple):
    """Successful outcome of a wrapped call."""
    value: Any

    ok = True

    def unwrap(self):
        return self.value


class Err(NamedTuple):
    """Failed outcome of a wrapped call, holding the typed error."""
    error: PeerCallError

    ok = False

    def unwrap(self):
        raise self.error
