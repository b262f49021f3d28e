import logging
from pathlib import Path

import appdirs
import coloredlogs
import toml

from .errors import ConfigError
from .options import validate_configuration


log = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(name)s %(levelname)s %(message)s'


def get_config_paths(extra_configs=()):
    return [
        Path(__file__).parent / "config.toml",
        Path(appdirs.user_config_dir()) / "peercall/config.toml",
        Path().absolute() / "config.toml",
        *map(Path, extra_configs),
    ]


def load_config(extra_configs=(), setup_logging=True):
    """Load default and extra configuration files."""

    config_paths = get_config_paths(extra_configs)

    config = ConfDict()
    for path in config_paths:
        if path.exists():
            config.load(path)
        else:
            log.debug(f"{path} does not exist.")

    if setup_logging:
        configure_logging(config)

    return config


def configure_logging(config):
    """Set the root loglevel according to the configuration."""
    level = config.get_path("general.loglevel", "info").upper()
    level = logging.getLevelName(level)
    logging.basicConfig()
    logging.root.setLevel(level)
    coloredlogs.install(level=level, fmt=LOG_FORMAT)

    own_level = config.get_path("peercall.loglevel", None)
    if own_level:
        logging.getLogger("peercall").setLevel(own_level.upper())


def load_wrapper(name, config=None):
    """
    Returns the validated ``WrapperConfig`` of the table ``[wrappers.<name>]``.
    """
    if config is None:
        from . import state
        config = state.config

    key = f"wrappers.{name}"
    if key not in config:
        raise ConfigError(f"No wrapper '{name}' configured", {"field": key})
    return validate_configuration(dict(config[key]))


def wrapper_names(config):
    if "wrappers" not in config:
        return ()
    return tuple(config["wrappers"].keys())


class ConfDict(dict):
    """
    Dictionary to store configuration from .toml files.

    Lets users access config categories with dot-separated notations for sub-configuration.

    Example:
    > d = ConfDict({"a": {"b": 1}})
    > d["a.b"]
    1
    """

    @staticmethod
    def _load(file_path):

        with open(file_path) as f:
            toml_code = f.read()
        toml_lines = toml_code.split("\n")

        # find key, value pairs defined on the top level
        for i, line in enumerate(toml_lines):
            if line.strip().startswith("["):
                break
        else:
            i = len(toml_lines)

        top_level_keys = (
            line.split("#")[0].strip().split("=", maxsplit=1)[0].strip()
            for line in toml_lines[:i]
        )
        top_level_keys = list(filter(bool, top_level_keys))

        # find out which lines start with a "[[" or "["
        top_level_dicts = []
        top_level_lists = []
        for line in toml_lines[i:]:
            line = line.split("#")[0].strip()
            if line.startswith("[["):
                key = line[2:-2].strip()
                # [[a.b]] is an array inside the table a
                target = top_level_dicts if "." in key else top_level_lists
                key = key.split(".")[0].strip()
            elif line.startswith("["):
                target = top_level_dicts
                key = line[1:-1].split(".")[0].strip()
            else:
                continue
            if key not in target:
                target.append(key)

        return toml_code, top_level_keys, top_level_dicts, top_level_lists

    def load(self, file_path):
        """
        Update this confdict with another toml file.

        Tables defined with brackets ([...]) are merged recursively rather
        than overwritten, arrays of tables ([[...]]) are extended.
        """

        toml_code, tl_keys, tl_dicts, tl_lists = self._load(file_path)

        try:
            new_dict = toml.loads(toml_code, _dict=self.__class__)
        except toml.TomlDecodeError as e:
            raise ConfigError(f"Cannot parse {file_path}: {e}", {"path": str(file_path)}) from e

        for key in tl_keys:
            self[key] = new_dict[key]

        for key in tl_dicts:
            if dict.__contains__(self, key) and isinstance(dict.__getitem__(self, key), dict):
                _merge(dict.__getitem__(self, key), new_dict[key])
            else:
                self[key] = new_dict[key]

        for key in tl_lists:
            if dict.__contains__(self, key) and isinstance(dict.__getitem__(self, key), list):
                dict.__getitem__(self, key).extend(new_dict[key])
            else:
                self[key] = new_dict[key]

    def __getitem__(self, key):
        dict_ = self
        for part in key.split("."):
            dict_ = dict.__getitem__(dict_, part)
        return dict_

    def __contains__(self, key):
        try:
            self.__getitem__(key)
        except (KeyError, TypeError):
            return False
        else:
            return True

    def get_path(self, key, default=None):
        try:
            return self[key]
        except (KeyError, TypeError):
            return default


def _merge(target, source):
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value
