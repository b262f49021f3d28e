import asyncio
import datetime
from functools import partial
import inspect
import json
import logging
import os
import signal
import socket
import sys
import threading
import traceback

from . import util

log = logging.getLogger(__name__)


class PeerServer:
    """
    Serves registered functions to ``TcpTransport`` callers.

    Functions are registered under ``<target>.<name>``.
    """

    def __init__(self, host="127.0.0.1", port=4500):

        # do not set this to "localhost" to avoid connecting to "::1"
        self.host = host
        self.port = port
        self.functions = {}
        self.timestamp = None
        self.started = threading.Event()
        self._server = None
        self._loop = None

    def register(self, target, obj):
        """
        Register all public callables of ``obj`` under ``target``.

        A plain function is registered under its own name.
        """
        if inspect.isfunction(obj) or inspect.isbuiltin(obj):
            self.add_function(f"{target}.{obj.__name__}", obj)
            return
        for name, func in util.get_public_callables(obj):
            self.add_function(f"{target}.{name}", func)

    def add_function(self, name, func):
        self.functions[name] = func
        log_msg = f"register {util.get_full_name(func)} as {name}"
        if name.rsplit(".", 1)[-1].startswith("_"):
            log.debug(log_msg)
        else:
            log.info(log_msg)

    async def handle_connection(self, reader, writer):
        try:
            data = await reader.readline()
            addr = writer.get_extra_info('peername')
            log.debug(f"Received message len {len(data)} from {addr!r}")

            try:
                packet = util.net.loads_json(data.decode())
            except ValueError:
                log.error(f"Malformed message from {addr}")
                packet = None

            msg_type = packet.get("type", None) if isinstance(packet, dict) else None

            if msg_type == "req":
                result_dict = await self.handle_req(packet)
                writer.write(json.dumps(result_dict).encode())

                # sends the result immediately to the caller
                writer.write_eof()
                await writer.drain()

            elif packet == {}:
                # this is used to check if server is still up
                log.debug(f"Empty message from {addr}")

            elif msg_type is None:
                log.error(f"Undefined message type from {addr}")

            else:
                log.error(f"Unknown message type \"{msg_type}\" from {addr}")

        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError as e:
                log.debug(f"Connection closed by peer: {e}")

    async def handle_req(self, packet):
        name = packet.get('name')

        if name not in self.functions:
            log.warning(f"req {name} is not registered")
            return self.wrap_reply("RemoteNameError", type_="err")

        func = self.functions[name]
        args, kwargs = util.net.get_arguments(packet)

        if not name.rsplit(".", 1)[-1].startswith("_"):
            log.info(f"req {name}")
        else:
            log.debug(f"req {name}")

        try:
            if inspect.iscoroutinefunction(func):
                result = await func(*args, **kwargs)
            else:
                loop = asyncio.get_running_loop()
                result = await loop.run_in_executor(None, partial(func, *args, **kwargs))
        except Exception as e:
            log.error(f"{type(e).__name__}({e})")
            log.debug(''.join(traceback.format_exc()))
            return self.wrap_reply(
                "RemoteCallError", type_="err", message=f"{type(e).__name__}: {e}")

        # test json serializable
        try:
            json.dumps(result)
        except TypeError as e:
            log.error(f"{type(e).__name__}({e})")
            return self.wrap_reply("RemoteEncodingError", type_="err", message=str(e))

        return self.wrap_reply(result)

    def wrap_reply(self, value, type_="rep", message=None):
        reply = {
            "type": type_,
            "value": value,
            "host": self.host,
            "port": self.port,
            "hostname": socket.gethostname(),
        }
        if message is not None:
            reply["message"] = message
        return reply

    def is_serving(self):
        if self._server is None:
            return False
        return self._server.is_serving()

    @property
    def address(self):
        return f"{self.host}:{self.port}"

    async def run(self):
        self._loop = asyncio.get_running_loop()
        self._server = await asyncio.start_server(
            self.handle_connection, self.host, self.port)

        # port 0 lets the os pick a free port
        self.port = self._server.sockets[0].getsockname()[1]

        log.info(f'serving on {self.host}:{self.port} in process {os.getpid()}')

        self.timestamp = datetime.datetime.now(datetime.timezone.utc).timestamp()
        self.started.set()

        server_task = asyncio.create_task(self._server.serve_forever())

        try:
            await server_task
        except asyncio.CancelledError:
            log.info('Server-Task canceled.')

    async def shutdown(self):
        log.info("Shutting down server.")
        # this is copied from asyncio.Server.__aexit__
        self._server.close()
        await self._server.wait_closed()

    def stop(self, timeout=None):
        """Stop a server running in another thread."""
        if self._loop is None or self._server is None:
            return
        future = asyncio.run_coroutine_threadsafe(self.shutdown(), self._loop)
        future.result(timeout)

    def start(self, handle_signals=True):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        # this part is handling KeyboardInterrupts and SIGTERMS from the operating system
        if handle_signals:
            for sig in (signal.SIGINT, signal.SIGTERM):
                if sys.platform == "win32":
                    signal.signal(sig, lambda code, frame: loop.create_task(self.shutdown()))
                else:
                    loop.add_signal_handler(sig, lambda: loop.create_task(self.shutdown()))

        # this starts the event loop
        try:
            loop.run_until_complete(self.run())
        finally:
            loop.close()
