import click
from click_help_colors import HelpColorsCommand

from .. import configuration
from .. import state
from .. import util
from ..errors import ConfigError
from ..options import Resolver


def _describe_peers(peers):
    if isinstance(peers, Resolver):
        return f"<{peers.name}>"
    return ", ".join(peers)


@click.command(cls=HelpColorsCommand, short_help="List configured wrappers.")
def list():
    names = configuration.wrapper_names(state.config)
    if not names:
        print("No wrappers configured.")
        return

    table = []
    for name in names:
        try:
            wrapper = configuration.load_wrapper(name, state.config)
        except ConfigError as e:
            table.append((name, "", "", "", "", "", f"invalid: {e.message}"))
            continue
        table.append((
            name,
            wrapper.target,
            wrapper.strategy + (" (sticky)" if wrapper.sticky else ""),
            wrapper.timeout,
            wrapper.retry,
            len(wrapper.operations),
            _describe_peers(wrapper.peers),
        ))

    util.print_as_table(
        "name target strategy timeout retry operations peers",
        table,
        replace_empty="-")
