import sys

from .configuration import load_config

# this is necessary to declare the variables for inspection reasons
config = None


class State(sys.__class__):  # sys.__class__ is <class 'module'>

    @property
    def config(self):
        if not hasattr(self, '_config'):
            self._config = load_config()
        return self._config

    def reload_config(self, extra_configs=()):
        """Drop the cached configuration and load it again."""
        self._config = load_config(extra_configs)
        return self._config

    def set_config(self, config):
        """Replace the configuration, e.g. with a ``ConfDict`` built in tests."""
        self._config = config


sys.modules[__name__].__class__ = State  # change module class into ´State´
