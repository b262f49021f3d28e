import logging
import sys

import click
from click_help_colors import HelpColorsCommand
import setproctitle

from .. import state
from .. import util
from ..server import PeerServer


log = logging.getLogger(__name__)


@click.command(cls=HelpColorsCommand, short_help="Serve objects to remote callers.")
@click.argument("objects", nargs=-1, required=True)
@click.option("--target", "-t", default=None, help="Target name (default: name after the colon).")
@click.option("--host", default=None, help="Interface to bind to.")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on.")
@click.option("--daemon", "-d", "run_as_daemon", is_flag=True, help="Run server in the background.")
def serve(objects, target, host, port, run_as_daemon):
    """
    Serve the public functions of OBJECTS, given as 'package.module:object'.
    """
    conf = dict(state.config.get_path("server", {}))
    if host is not None:
        conf["host"] = host
    if port is not None:
        conf["port"] = port

    server = PeerServer(**util.pick_valid_keys(PeerServer, conf))
    for reference in objects:
        try:
            obj = util.import_object(reference)
        except (ImportError, AttributeError, ValueError) as e:
            raise click.ClickException(f"Cannot import {reference}: {e}")
        name = target or reference.split(":")[1]
        server.register(name, obj)

    setproctitle.setproctitle("peercall-serve")

    if run_as_daemon:
        if sys.platform == "win32":
            log.error("Cannot run as daemon on Windows!")
            return
        from daemon import DaemonContext
        with DaemonContext():
            server.start()
    else:
        server.start()
