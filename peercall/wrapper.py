"""
Call remote operations like local functions.

Example:
> accounts = RemoteModule.from_config("accounts", executor)
> accounts.get_user(42)
Ok(value={'id': 42, 'name': 'Ada'})
"""

import logging

from .configuration import load_wrapper
from .options import derive_for_operation

log = logging.getLogger(__name__)


class RemoteOperation:
    """
    A remote operation bound to a config and an executor.

    ``specs`` are the operation specs sharing one local name. The spec (and
    with it the derived config) is picked by the number of arguments.
    """

    def __init__(self, executor, config, name, specs=()):
        self._executor = executor
        self._variants = {
            spec.arity: (spec.name, derive_for_operation(config, spec))
            for spec in specs
        }
        if specs:
            self._remote_name, self._config = self._variants[specs[0].arity]
        else:
            self._remote_name, self._config = name, config
        self.__name__ = name

    @property
    def config(self):
        return self._config

    def arities(self):
        return tuple(sorted(self._variants))

    def __call__(self, *args):
        # an undeclared arity falls through to the executor's arity check
        name, config = self._variants.get(len(args), (self._remote_name, self._config))
        return self._executor.execute(config, name, args)

    def __repr__(self):
        arity = "|".join(map(str, self.arities())) or "*"
        return f"{self.__class__.__name__}({self._config.target}.{self._remote_name}/{arity})"


class RemoteModule:
    """
    Highlevel interface for calling operations of a remote target.

    Every operation spec of the config becomes an attribute named after
    its ``new_name`` (or ``name``), prefixed with an underscore when the
    spec is private. A config without operation specs forwards every
    public attribute as an operation using the wrapper defaults.
    """

    def __init__(self, config, executor):
        self._config = config
        self._executor = executor
        groups = {}
        for spec in config.operations:
            log.debug(f"wrap {config.target}.{spec.name}/{spec.arity} as {spec.local_name}")
            groups.setdefault(spec.local_name, []).append(spec)
        self._operations = {
            local_name: RemoteOperation(executor, config, local_name, tuple(specs))
            for local_name, specs in groups.items()
        }

    @classmethod
    def from_config(cls, name, executor, config=None):
        """Build a remote module from the table ``[wrappers.<name>]``."""
        return cls(load_wrapper(name, config), executor)

    @property
    def config(self):
        return self._config

    def operations(self):
        """Names of the locally exposed operations."""
        return tuple(self._operations)

    def __getattr__(self, attr):
        # only called if regular lookup failed
        operations = self.__dict__.get("_operations")
        if operations is None:
            raise AttributeError(attr)
        if attr in operations:
            return operations[attr]
        if not operations and not attr.startswith("_"):
            return RemoteOperation(self._executor, self._config, attr)
        raise AttributeError(
            f"{self._config.target!r} has no operation {attr!r}")

    def __dir__(self):
        return [*super().__dir__(), *self._operations]

    def __str__(self):
        return f"{self.__class__.__name__}({self._config.target}, {self._config.strategy})"

    def __repr__(self):
        return str(self)
