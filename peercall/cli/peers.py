import click
from click_help_colors import HelpColorsCommand

from .. import configuration
from .. import state
from ..engine import Executor
from ..errors import PeerCallError
from ..transport import TcpTransport


@click.command(cls=HelpColorsCommand, short_help="Show peers of a wrapper.")
@click.argument("wrapper")
@click.option("--count", "-n", default=1, show_default=True, help="Number of selections to show.")
@click.option("--key", "-k", default=None, help="Hash key used for the hash strategy.")
def peers(wrapper, count, key):
    """
    Resolve the peers of WRAPPER and show which peers would be selected.
    """
    try:
        config = configuration.load_wrapper(wrapper, state.config)
        with Executor(TcpTransport()) as executor:
            resolved = executor.selector.resolve_peers(config.peers)
            hash_key = None if key is None else (config.target, (key,))
            selected = [executor.select_peer(config, hash_key) for _ in range(count)]
    except PeerCallError as e:
        raise click.ClickException(e.format())

    print(f"peers:    {', '.join(resolved)}")
    print(f"strategy: {config.strategy}{' (sticky)' if config.sticky else ''}")
    for n, peer in enumerate(selected, 1):
        print(f"{n:>4}: {peer}")
