"""
Validated settings describing a remote target.

``validate_configuration`` is the only way raw options (e.g. a table of a
TOML file) become a ``WrapperConfig``. Validation fails fast with a
``ConfigError`` and never coerces values of the wrong type.

Example:
> config = validate_configuration({
...     "target": "accounts",
...     "peers": ["10.0.0.1:4500", "10.0.0.2:4500"],
...     "strategy": "round_robin",
...     "retry": 2,
... })
> config.error_handling
True
"""

from collections.abc import Mapping
import logging
from typing import Any, Callable, NamedTuple, Optional, Tuple, Union

from .errors import ConfigError, config_error

log = logging.getLogger(__name__)


INFINITY = "infinity"
DEFAULT_TIMEOUT = 5000  # milliseconds

RANDOM = "random"
ROUND_ROBIN = "round_robin"
HASH = "hash"
STRATEGIES = (RANDOM, ROUND_ROBIN, HASH)

# alternative spellings accepted in raw options
_TIMEOUT_ALIASES = {"infinity": INFINITY, "infinite": INFINITY}
_STRATEGY_ALIASES = {"round-robin": ROUND_ROBIN}

OPERATION_KEYS = ("new_name", "retry", "timeout", "error_handling", "private")
OVERRIDE_KEYS = ("retry", "timeout", "error_handling")

CONFIG_KEYS = (
    "target",
    "peers",
    "timeout",
    "retry",
    "error_handling",
    "strategy",
    "sticky",
    "operations",
    "selector_id",
    "reselect_on_retry",
)


class Resolver(NamedTuple):
    """
    Reference to a function returning the peers at call time.

    ``function`` is either a callable or an import reference of the form
    ``package.module:function``.
    """
    function: Union[Callable, str]
    args: Tuple = ()

    @property
    def name(self):
        if isinstance(self.function, str):
            return self.function
        return getattr(self.function, "__qualname__", repr(self.function))


class OperationSpec(NamedTuple):
    name: str
    arity: int
    new_name: Optional[str] = None
    private: bool = False
    retry: Optional[int] = None
    timeout: Union[int, str, None] = None
    error_handling: Optional[bool] = None

    @property
    def local_name(self):
        """Name under which the operation is exposed locally."""
        name = self.new_name or self.name
        return "_" + name if self.private and not name.startswith("_") else name

    def overrides(self):
        return {
            key: getattr(self, key)
            for key in OVERRIDE_KEYS
            if getattr(self, key) is not None
        }


class WrapperConfig(NamedTuple):
    target: str
    peers: Union[Tuple[str, ...], Resolver]
    timeout: Union[int, str] = DEFAULT_TIMEOUT
    retry: int = 0
    error_handling: bool = False
    strategy: str = RANDOM
    sticky: bool = False
    operations: Tuple[OperationSpec, ...] = ()
    selector_id: Any = None
    reselect_on_retry: bool = True

    @property
    def wrapped(self):
        """Whether calls return ``Ok``/``Err`` instead of raising."""
        return self.error_handling or self.retry > 0

    def find_operation(self, name, arity=None):
        """Returns the operation spec registered for ``name`` or None."""
        for spec in self.operations:
            if spec.name == name and (arity is None or spec.arity == arity):
                return spec
        return None


################################ Validators ################################

def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def validate_timeout(value, field="timeout"):
    if isinstance(value, str) and value.lower() in _TIMEOUT_ALIASES:
        return _TIMEOUT_ALIASES[value.lower()]
    if _is_int(value) and value > 0:
        return value
    raise config_error(field, value, "a positive integer (milliseconds) or 'infinity'")


def validate_retry(value, field="retry"):
    if _is_int(value) and value >= 0:
        return value
    raise config_error(field, value, "a non-negative integer")


def validate_bool(value, field):
    if isinstance(value, bool):
        return value
    raise config_error(field, value, "a boolean")


def validate_strategy(value, field="strategy"):
    """Returns ``(strategy, implies_sticky)``."""
    if not isinstance(value, str):
        raise config_error(field, value, f"one of {', '.join(STRATEGIES)} or 'sticky'")
    if value == "sticky":
        return RANDOM, True
    strategy = _STRATEGY_ALIASES.get(value, value)
    if strategy in STRATEGIES:
        return strategy, False
    raise config_error(field, value, f"one of {', '.join(STRATEGIES)} or 'sticky'")


def validate_target(value, field="target"):
    if isinstance(value, str) and value.strip() and value == value.strip():
        return value
    raise config_error(field, value, "a non-empty identifier without surrounding whitespace")


def parse_peer_source(value, field="peers"):
    """
    Parse a peer source.

    Accepts a list/tuple of peer identifiers, a ``Resolver``, a callable or
    a mapping ``{"resolver": "module:function", "args": [...]}``.
    """
    if isinstance(value, Resolver):
        return _validate_resolver(value.function, value.args, field)

    if isinstance(value, Mapping):
        unknown = set(value) - {"resolver", "args"}
        if unknown:
            raise config_error(field, value, "a mapping with the keys 'resolver' and 'args'")
        if "resolver" not in value:
            raise config_error(field, value, "a mapping containing 'resolver'")
        return _validate_resolver(value["resolver"], value.get("args", ()), field)

    if isinstance(value, (list, tuple)):
        peers = tuple(value)
        if not peers:
            raise config_error(field, value, "a non-empty list of peers")
        for peer in peers:
            if not isinstance(peer, str) or not peer.strip():
                raise config_error(field, value, "a list of non-empty peer identifiers")
        if len(set(peers)) != len(peers):
            raise config_error(field, value, "a list of unique peers")
        return peers

    if callable(value):
        return Resolver(value, ())

    raise config_error(field, value, "a list of peers or a resolver")


def _validate_resolver(function, args, field):
    if isinstance(function, str):
        module, _, attr = function.partition(":")
        if not module or not attr or ":" in attr:
            raise config_error(f"{field}.resolver", function, "a reference 'module:function'")
    elif not callable(function):
        raise config_error(f"{field}.resolver", function, "a callable or a reference 'module:function'")
    if not isinstance(args, (list, tuple)):
        raise config_error(f"{field}.args", args, "a list of arguments")
    return Resolver(function, tuple(args))


def parse_operation(raw, field="operations"):
    """
    Parse a single operation spec.

    Accepted forms are ``(name, arity)``, ``(name, arity, {options})``, a
    mapping with ``name`` and ``arity`` plus options, or an ``OperationSpec``.
    """
    if isinstance(raw, OperationSpec):
        raw = raw._asdict()

    if isinstance(raw, Mapping):
        raw = dict(raw)
        try:
            name = raw.pop("name")
            arity = raw.pop("arity")
        except KeyError:
            raise config_error(field, raw, "an operation with 'name' and 'arity'") from None
        opts = {k: v for k, v in raw.items() if v is not None}
    elif isinstance(raw, (list, tuple)) and len(raw) in (2, 3):
        name, arity, *rest = raw
        opts = rest[0] if rest else {}
        if not isinstance(opts, Mapping):
            raise config_error(field, raw, "(name, arity) or (name, arity, options)")
    else:
        raise config_error(field, raw, "(name, arity) or (name, arity, options)")

    if not isinstance(name, str) or not name.isidentifier():
        raise config_error(f"{field}.name", name, "an identifier")
    if not _is_int(arity) or arity < 0:
        raise config_error(f"{field}.{name}.arity", arity, "a non-negative integer")

    unknown = set(opts) - set(OPERATION_KEYS)
    if unknown:
        raise config_error(
            f"{field}.{name}", sorted(unknown), f"options out of {', '.join(OPERATION_KEYS)}")

    new_name = opts.get("new_name")
    if new_name is not None and (not isinstance(new_name, str) or not new_name.isidentifier()):
        raise config_error(f"{field}.{name}.new_name", new_name, "an identifier")

    private = validate_bool(opts.get("private", False), f"{field}.{name}.private")

    overrides = _validate_overrides(opts, f"{field}.{name}")

    return OperationSpec(name, arity, new_name, private, **overrides)


def _validate_overrides(opts, field):
    overrides = {}
    if opts.get("retry") is not None:
        overrides["retry"] = validate_retry(opts["retry"], f"{field}.retry")
    if opts.get("timeout") is not None:
        overrides["timeout"] = validate_timeout(opts["timeout"], f"{field}.timeout")
    if opts.get("error_handling") is not None:
        overrides["error_handling"] = validate_bool(
            opts["error_handling"], f"{field}.error_handling")
    return overrides


def _parse_operations(value):
    if not isinstance(value, (list, tuple)):
        raise config_error("operations", value, "a list of operation specs")
    specs = tuple(parse_operation(raw) for raw in value)
    seen = set()
    for spec in specs:
        # one local name may cover several arities
        key = (spec.local_name, spec.arity)
        if key in seen:
            raise config_error(
                "operations", f"{spec.local_name}/{spec.arity}", "unique local operation names per arity")
        seen.add(key)
    return specs


def peer_settings(raw_options):
    """
    Validate only the peer related part of raw options.

    Returns a dict with ``peers``, ``strategy`` and ``sticky``.
    """
    if not isinstance(raw_options, Mapping):
        raise config_error("options", raw_options, "a mapping")
    if "peers" not in raw_options:
        raise ConfigError("Missing required setting 'peers'", {"field": "peers"})

    strategy, implied_sticky = validate_strategy(raw_options.get("strategy", RANDOM))
    sticky = validate_bool(raw_options.get("sticky", False), "sticky")
    return {
        "peers": parse_peer_source(raw_options["peers"]),
        "strategy": strategy,
        "sticky": sticky or implied_sticky,
    }


def validate_configuration(raw_options):
    """
    Validates raw options and builds an immutable ``WrapperConfig``.

    Raises ``ConfigError`` naming the offending field and value.
    """
    if not isinstance(raw_options, Mapping):
        raise config_error("options", raw_options, "a mapping")

    unknown = set(raw_options) - set(CONFIG_KEYS)
    if unknown:
        raise config_error("options", sorted(unknown), f"keys out of {', '.join(CONFIG_KEYS)}")

    if "target" not in raw_options:
        raise ConfigError("Missing required setting 'target'", {"field": "target"})
    target = validate_target(raw_options["target"])

    settings = peer_settings(raw_options)

    timeout = validate_timeout(raw_options.get("timeout", DEFAULT_TIMEOUT))
    retry = validate_retry(raw_options.get("retry", 0))
    error_handling = validate_bool(raw_options.get("error_handling", False), "error_handling")
    reselect = validate_bool(raw_options.get("reselect_on_retry", True), "reselect_on_retry")
    operations = _parse_operations(raw_options.get("operations", ()))

    selector_id = raw_options.get("selector_id", target)
    try:
        hash(selector_id)
    except TypeError:
        raise config_error("selector_id", selector_id, "a hashable identifier") from None

    if retry > 0 and not error_handling:
        log.debug(f"{target}: retry={retry} enables error handling.")
        error_handling = True

    return WrapperConfig(
        target=target,
        peers=settings["peers"],
        timeout=timeout,
        retry=retry,
        error_handling=error_handling,
        strategy=settings["strategy"],
        sticky=settings["sticky"],
        operations=operations,
        selector_id=selector_id,
        reselect_on_retry=reselect,
    )


def derive_for_operation(config, overrides):
    """
    Returns a config with ``retry``, ``timeout`` and ``error_handling``
    replaced by the given overrides.

    ``overrides`` is a mapping or an ``OperationSpec``. Missing or None
    values are inherited from ``config``.
    """
    if isinstance(overrides, OperationSpec):
        overrides = overrides.overrides()
    elif not isinstance(overrides, Mapping):
        raise config_error("overrides", overrides, "a mapping or an operation spec")

    unknown = set(overrides) - set(OVERRIDE_KEYS)
    if unknown:
        raise config_error("overrides", sorted(unknown), f"keys out of {', '.join(OVERRIDE_KEYS)}")

    values = _validate_overrides(overrides, "overrides")
    retry = values.get("retry", config.retry)
    error_handling = values.get("error_handling", config.error_handling)
    if retry > 0:
        error_handling = True

    return config._replace(
        retry=retry,
        timeout=values.get("timeout", config.timeout),
        error_handling=error_handling,
    )
