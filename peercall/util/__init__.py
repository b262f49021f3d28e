from . import net
from .util import (
    args2str,
    get_full_name,
    get_public_callables,
    import_object,
    pick_valid_keys,
    print_as_table,
)
