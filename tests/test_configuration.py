import textwrap

import pytest

from peercall.configuration import ConfDict, get_config_paths, load_config, load_wrapper, wrapper_names
from peercall.errors import ConfigError
from peercall.options import INFINITY, ROUND_ROBIN, Resolver

WRAPPERS = """
[wrappers.accounts]
target = "accounts"
peers = ["10.0.0.1:4500", "10.0.0.2:4500"]
strategy = "round_robin"
timeout = "infinity"
retry = 2

[[wrappers.accounts.operations]]
name = "get_user"
arity = 1

[[wrappers.accounts.operations]]
name = "delete_user"
arity = 1
new_name = "remove_user"
private = true
retry = 0

[wrappers.cluster]
target = "cluster"
peers = { resolver = "cluster.nodes:peers", args = ["eu"] }
"""


@pytest.fixture
def write_toml(tmp_path):
    def write(name, code):
        path = tmp_path / name
        path.write_text(textwrap.dedent(code))
        return path
    return write


def test_dotted_access():
    conf = ConfDict({"a": {"b": {"c": 1}}, "x": 2})
    assert conf["a.b.c"] == 1
    assert conf["x"] == 2
    assert "a.b" in conf
    assert "a.c" not in conf
    assert "x.y" not in conf
    assert conf.get_path("a.b.d", 5) == 5
    with pytest.raises(KeyError):
        conf["a.d"]


def test_load_and_merge(write_toml):
    first = write_toml("first.toml", """
        name = "first"

        [general]
        loglevel = "info"

        [server]
        host = "127.0.0.1"
        port = 4500
    """)
    second = write_toml("second.toml", """
        name = "second"

        [server]
        port = 4600
    """)

    conf = ConfDict()
    conf.load(first)
    conf.load(second)

    assert conf["name"] == "second"
    assert conf["server.host"] == "127.0.0.1"
    assert conf["server.port"] == 4600
    assert conf["general.loglevel"] == "info"


def test_load_arrays(write_toml):
    first = write_toml("first.toml", """
        [[hosts]]
        name = "a"
    """)
    second = write_toml("second.toml", """
        [[hosts]]
        name = "b"
    """)
    conf = ConfDict()
    conf.load(first)
    conf.load(second)
    assert [h["name"] for h in conf["hosts"]] == ["a", "b"]


def test_load_invalid(write_toml):
    path = write_toml("broken.toml", "[server\nport = ")
    with pytest.raises(ConfigError) as info:
        ConfDict().load(path)
    assert info.value.details["path"] == str(path)


def test_load_wrapper(write_toml):
    conf = ConfDict()
    conf.load(write_toml("wrappers.toml", WRAPPERS))

    assert wrapper_names(conf) == ("accounts", "cluster")

    accounts = load_wrapper("accounts", conf)
    assert accounts.target == "accounts"
    assert accounts.strategy == ROUND_ROBIN
    assert accounts.timeout == INFINITY
    assert accounts.error_handling is True
    assert [spec.local_name for spec in accounts.operations] == ["get_user", "_remove_user"]
    assert accounts.operations[1].retry == 0

    cluster = load_wrapper("cluster", conf)
    assert cluster.peers == Resolver("cluster.nodes:peers", ("eu",))


def test_wrappers_merged_across_files(write_toml):
    conf = ConfDict()
    conf.load(write_toml("wrappers.toml", WRAPPERS))
    conf.load(write_toml("local.toml", """
        [wrappers.accounts]
        peers = ["127.0.0.1:4500"]
    """))
    accounts = load_wrapper("accounts", conf)
    assert accounts.peers == ("127.0.0.1:4500",)
    assert len(accounts.operations) == 2
    assert "cluster" in wrapper_names(conf)


def test_load_wrapper_missing():
    with pytest.raises(ConfigError, match="No wrapper 'accounts'"):
        load_wrapper("accounts", ConfDict())
    assert wrapper_names(ConfDict()) == ()


def test_load_wrapper_invalid(write_toml):
    conf = ConfDict()
    conf.load(write_toml("bad.toml", """
        [wrappers.accounts]
        target = "accounts"
        peers = []
    """))
    with pytest.raises(ConfigError) as info:
        load_wrapper("accounts", conf)
    assert info.value.details["field"] == "peers"


def test_load_config(write_toml, monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    extra = write_toml("extra.toml", """
        [server]
        port = 4711
    """)
    conf = load_config([extra], setup_logging=False)
    assert conf["server.port"] == 4711
    assert conf["server.host"] == "127.0.0.1"
    assert get_config_paths([extra])[-1] == extra
