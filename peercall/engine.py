"""
Execution engine: select a peer, invoke the call primitive, classify the
outcome and retry or return.

The call primitive is any callable with the signature
``call(peer, target, operation, args, timeout)``. It returns the remote
result or raises a fault (see ``peercall.errors``).
"""

from collections.abc import Mapping
import logging

from .classifier import classify
from .errors import ConfigError, ValidationError
from .options import peer_settings
from .result import Err, Ok
from .selector import PeerSelector, SelectionContext
from . import util

log = logging.getLogger(__name__)


def _default_config_store():
    from . import state
    return state.config


class Executor:
    """
    Runs remote calls for ``WrapperConfig`` objects.

    An executor owns one selection context unless ``context`` is given, so
    round-robin and sticky state are shared by all calls made through it.
    Use one executor (or one context) per connection, task or thread.
    """

    def __init__(self, call, selector=None, context=None, config_store=None):
        self.call = call
        self.selector = PeerSelector() if selector is None else selector
        if context is None:
            context = SelectionContext(self.selector.store)
        self.context = context
        self._config_store = _default_config_store if config_store is None else config_store

    @property
    def config_store(self):
        store = self._config_store
        return store() if callable(store) else store

    def close(self):
        """Drop the selection state of this executor's context."""
        self.selector.store.discard(self.context)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    ############################### selection ###############################

    def select_peer(self, config, hash_key=None, context=None):
        """
        Selects the peer the next call for ``config`` would go to.
        """
        if hash_key is None:
            hash_key = (config.target, ())
        return self.selector.select(
            self.context if context is None else context,
            config.selector_id,
            config.strategy,
            config.sticky,
            config.peers,
            hash_key,
        )

    def clear_sticky(self, config, context=None):
        self.selector.clear_sticky(
            self.context if context is None else context, config.selector_id)

    def reset_round_robin(self, config, context=None):
        self.selector.reset_round_robin(
            self.context if context is None else context, config.selector_id)

    ############################### execution ###############################

    def execute(self, config, operation, args=()):
        """
        Execute ``operation`` on a peer.

        Without error handling and retries the raw result is returned and
        faults propagate unchanged. Otherwise returns ``Ok`` or ``Err``.
        """
        if not config.wrapped:
            args = self._check_call(config, operation, args)
            return self._call_once(config, operation, args)
        return self._execute_wrapped(config, operation, args)

    def execute_with_retry(self, config, operation, args=()):
        """Always returns ``Ok(value)`` or ``Err(error)``."""
        return self._execute_wrapped(config._replace(error_handling=True), operation, args)

    def execute_dynamic(self, config, config_ref, operation, args=()):
        """
        Like ``execute`` but peers, strategy and sticky flag are read from
        the configuration store on every call.

        ``config_ref`` is a (dotted) key into the configuration store.
        """
        store = self.config_store
        try:
            raw = store[config_ref]
        except (KeyError, TypeError):
            raise ConfigError(
                f"Configuration '{config_ref}' not found",
                {"config_ref": config_ref},
            ) from None
        if not isinstance(raw, Mapping):
            raise ConfigError(
                f"Configuration '{config_ref}' must be a table, got {raw!r}",
                {"config_ref": config_ref},
            )
        config = config._replace(**peer_settings(raw))
        return self.execute(config, operation, args)

    def _execute_wrapped(self, config, operation, args):
        try:
            args = self._check_call(config, operation, args)
        except ValidationError as e:
            error = classify(e, target=config.target, operation=operation)
            log.error(f"Rejected {config.target}.{operation} | {error.format()}")
            return Err(error)

        name = f"{config.target}.{operation}/{len(args)}"
        hash_key = (config.target, args)
        attempt = 0
        peer = None

        while True:
            try:
                if peer is None or config.reselect_on_retry:
                    peer = None
                    peer = self.select_peer(config, hash_key)
                self._log_call(name, peer, attempt)
                value = self.call(peer, config.target, operation, args, config.timeout)
            except Exception as e:
                error = classify(e, peer=peer, attempt=attempt, target=config.target, operation=operation)
                if error.retryable and attempt < config.retry:
                    log.warning(
                        f"Retry {name} on {peer} ({config.retry - attempt} retries left)"
                        f" | {error.format()}")
                    attempt += 1
                    continue
                log.error(f"Failed {name} on {peer} | {error.format()}")
                return Err(error)
            else:
                log.debug(f"Success {name} on {peer}")
                return Ok(value)

    def _call_once(self, config, operation, args):
        peer = self.select_peer(config, (config.target, args))
        name = f"{config.target}.{operation}/{len(args)}"
        self._log_call(name, peer)
        result = self.call(peer, config.target, operation, args, config.timeout)
        log.debug(f"Success {name} on {peer}")
        return result

    @staticmethod
    def _check_call(config, operation, args):
        if not isinstance(operation, str) or not operation:
            raise ValidationError(
                f"Operation must be a non-empty string, got {operation!r}",
                {"operation": operation},
            )
        if not isinstance(args, (list, tuple)):
            raise ValidationError(
                f"Arguments for {operation} must be a list or tuple, got {type(args).__name__}",
                {"operation": operation},
            )
        args = tuple(args)

        if config.operations and config.find_operation(operation) is not None:
            if config.find_operation(operation, len(args)) is None:
                arities = sorted(s.arity for s in config.operations if s.name == operation)
                raise ValidationError(
                    f"{config.target}.{operation} takes {' or '.join(map(str, arities))}"
                    f" arguments, got {len(args)}",
                    {"operation": operation, "arity": len(args)},
                )
        return args

    @staticmethod
    def _log_call(name, peer, attempt=0):
        attempt_info = f" [attempt: {attempt + 1}]" if attempt > 0 else ""
        log.debug(f"Calling {name} on {peer}{attempt_info}")


def execute(call, config, operation, args=()):
    """Single call through a throw-away executor. Sticky and round-robin
    state does not survive between calls made this way."""
    with Executor(call) as executor:
        return executor.execute(config, operation, args)


def describe_call(config, operation, args):
    """Returns a printable representation of a call, used in logs and the CLI."""
    return f"{config.target}.{operation}({util.args2str(*args)})"
