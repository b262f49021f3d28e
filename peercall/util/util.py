import importlib
import inspect
import logging

log = logging.getLogger(__name__)


def print_as_table(colnames, data, *, replace_empty=None):
    if isinstance(colnames, str):
        colnames = colnames.split()

    data = [[str(field) for field in row] for row in data]

    col_lens = [max(map(len, col))+2 for col in zip(colnames, *data)]
    line_pattern = ["{:"+str(cl)+"s}" for cl in col_lens]
    line_pattern = ' '.join(line_pattern)
    header = line_pattern.format(*colnames)
    print(header)
    print('-'*(sum(col_lens)+len(col_lens)-1))

    for line in data:
        if replace_empty is not None:
            line = (word if word else replace_empty for word in line)
        print(line_pattern.format(*line))


def args2str(*args, **kwargs):
    """Returns a printable version of positional and keyword argument list."""

    args = ', '.join(map(repr, args))
    kwargs = ', '.join(f"{k}={v!r}" for k, v in kwargs.items())

    if args and kwargs:
        return args + ', ' + kwargs
    elif args:
        return args
    elif kwargs:
        return kwargs
    else:
        return ''


def pick_valid_keys(callable_, conf):
    """
    Returns the parameters that are valid for a given callable.
    Takes all key addressable parameters and ignores the rest.
    """
    keys = set(inspect.signature(callable_).parameters.keys())
    kwargs = {k: v for k, v in conf.items() if k in keys}
    return kwargs


def import_object(reference):
    """
    Import an object from a reference of the form ``package.module:attr``.

    Nested attributes can be separated with dots after the colon.
    """
    if not isinstance(reference, str) or reference.count(":") != 1:
        raise ValueError(f"Expected reference 'module:attribute', got {reference!r}")
    module_name, attr_path = reference.split(":")
    if not module_name or not attr_path:
        raise ValueError(f"Expected reference 'module:attribute', got {reference!r}")

    obj = importlib.import_module(module_name)
    for attr in attr_path.split("."):
        obj = getattr(obj, attr)
    return obj


def get_full_name(obj):
    if "__qualname__" in dir(obj):
        name = obj.__qualname__
    else:
        name = obj.__name__
    return obj.__module__ + "." + name


def get_public_callables(obj):
    """Returns ``(name, callable)`` pairs of all public callables of an object."""
    members = inspect.getmembers(obj, callable)
    return tuple(
        (name, member) for name, member in members
        if not name.startswith("_") and not inspect.isclass(member)
    )
