# SPDX-FileCopyrightText: 2022-present Meier, Moritz <mome@uni-bremen.de>
#
# SPDX-License-Identifier: MIT

from .__about__ import __version__
from .classifier import classify
from .configuration import ConfDict, load_config, load_wrapper
from .engine import Executor, execute
from .errors import (
    CallTimeout,
    ConfigError,
    PeerCallError,
    PeerError,
    PeerUnreachable,
    RemoteCallError,
    RemoteEncodingError,
    RemoteFault,
    RemoteNameError,
    ValidationError,
)
from .options import (
    INFINITY,
    OperationSpec,
    Resolver,
    WrapperConfig,
    derive_for_operation,
    validate_configuration,
)
from .result import Err, Ok
from .selector import PeerSelector, SelectionContext, SelectorStore
from .server import PeerServer
from .transport import TcpTransport
from .wrapper import RemoteModule

__all__ = [
    "Executor", "execute", "validate_configuration", "derive_for_operation",
    "WrapperConfig", "OperationSpec", "Resolver", "INFINITY",
    "PeerSelector", "SelectorStore", "SelectionContext", "classify",
    "Ok", "Err", "PeerCallError", "ConfigError", "ValidationError", "PeerError",
    "RemoteFault", "CallTimeout", "PeerUnreachable", "RemoteCallError",
    "RemoteNameError", "RemoteEncodingError", "RemoteModule", "TcpTransport",
    "PeerServer", "ConfDict", "load_config", "load_wrapper", "__version__"]
