import json
import logging

import click
from click_help_colors import HelpColorsCommand

from .. import configuration
from .. import state
from ..engine import Executor, describe_call
from ..errors import PeerCallError, RemoteFault
from ..options import derive_for_operation
from ..transport import TcpTransport

log = logging.getLogger(__name__)


def parse_argument(arg):
    """Arguments are read as JSON, anything else is taken as a string."""
    try:
        return json.loads(arg)
    except ValueError:
        return arg


@click.command(cls=HelpColorsCommand, short_help="Call a remote operation.")
@click.argument("wrapper")
@click.argument("operation")
@click.argument("args", nargs=-1)
@click.option("--timeout", "-t", type=int, default=None, help="Timeout in milliseconds.")
@click.option("--retry", "-r", type=int, default=None, help="Number of retries.")
def call(wrapper, operation, args, timeout, retry):
    """
    Call OPERATION of WRAPPER with ARGS and print the result as JSON.
    """
    args = tuple(map(parse_argument, args))
    try:
        config = configuration.load_wrapper(wrapper, state.config)
        overrides = {"timeout": timeout, "retry": retry}
        config = derive_for_operation(config, {k: v for k, v in overrides.items() if v is not None})
    except PeerCallError as e:
        raise click.ClickException(e.format())

    log.debug(f"call {describe_call(config, operation, args)}")

    with Executor(TcpTransport()) as executor:
        try:
            result = executor.execute(config, operation, args)
        except (PeerCallError, RemoteFault) as e:
            raise click.ClickException(f"{type(e).__name__}: {e}")

    if config.wrapped:
        if not result.ok:
            raise click.ClickException(result.error.format())
        result = result.value

    print(json.dumps(result, indent=2))
