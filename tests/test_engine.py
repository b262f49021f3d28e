import pytest

from peercall import Err, Executor, Ok, classify, execute, validate_configuration
from peercall.engine import describe_call
from peercall.configuration import ConfDict
from peercall.errors import (
    CONFIG,
    PEER,
    RPC,
    TIMEOUT,
    VALIDATION,
    CallTimeout,
    ConfigError,
    PeerError,
    PeerUnreachable,
    RemoteCallError,
    ValidationError,
)
from peercall.options import Resolver

from conftest import AlwaysFails, FakeCall


def make_config(**options):
    raw = {"target": "accounts", "peers": ["p1:1", "p2:1"]}
    raw.update(options)
    return validate_configuration(raw)


def test_unwrapped_returns_raw_value(first_choice):
    call = FakeCall(default={"id": 1})
    executor = Executor(call, first_choice)
    assert executor.execute(make_config(), "get_user", [1]) == {"id": 1}
    assert call.calls == [("p1:1", "accounts", "get_user", (1,), 5000)]


def test_unwrapped_propagates_fault_with_infinite_timeout(first_choice):
    fault = CallTimeout("slow")
    call = AlwaysFails(fault)
    config = make_config(timeout="infinite", retry=0)

    with pytest.raises(CallTimeout) as info:
        Executor(call, first_choice).execute(config, "get_user", (1,))
    assert info.value is fault
    assert len(call.calls) == 1
    assert call.calls[0][4] == "infinity"


def test_wrapped_ok(first_choice):
    call = FakeCall(default=3)
    result = Executor(call, first_choice).execute(make_config(error_handling=True), "add", (1, 2))
    assert result == Ok(3)
    assert result.ok
    assert result.unwrap() == 3


def test_execute_with_retry_always_wraps(first_choice):
    call = AlwaysFails(RemoteCallError("boom"))
    result = Executor(call, first_choice).execute_with_retry(make_config(), "get_user", (1,))
    assert isinstance(result, Err)
    assert not result.ok
    assert result.error.kind == RPC
    assert isinstance(result.error.fault, RemoteCallError)
    assert len(call.calls) == 1


@pytest.mark.parametrize("retry", [1, 2, 5])
def test_retry_exhaustion(first_choice, retry):
    call = AlwaysFails()
    result = Executor(call, first_choice).execute_with_retry(
        make_config(retry=retry), "get_user", (1,))

    assert len(call.calls) == retry + 1
    assert isinstance(result, Err)
    assert result.error.kind == PEER
    assert result.error.details["attempt"] == retry
    assert result.error.details["fault"] == "PeerUnreachable"
    assert isinstance(result.error.fault, PeerUnreachable)
    with pytest.raises(type(result.error)):
        result.unwrap()


def test_failover_to_second_peer(first_choice):
    call = FakeCall({"p1:1": [PeerUnreachable("down")], "p2:1": ["value"]})
    config = make_config(strategy="round_robin", retry=1)

    result = Executor(call, first_choice).execute_with_retry(config, "get_user", (1,))

    assert result == Ok("value")
    assert call.peers == ["p1:1", "p2:1"]


def test_no_reselect_on_retry(first_choice):
    call = FakeCall({"p1:1": [PeerUnreachable("down"), "value"]})
    config = make_config(strategy="round_robin", retry=1, reselect_on_retry=False)

    result = Executor(call, first_choice).execute(config, "get_user", (1,))

    assert result == Ok("value")
    assert call.peers == ["p1:1", "p1:1"]


@pytest.mark.parametrize("fault, kind", [
    (PeerUnreachable("down"), PEER),
    (ConnectionRefusedError("refused"), PEER),
    (CallTimeout("slow"), TIMEOUT),
    (TimeoutError("slow"), TIMEOUT),
    (RemoteCallError("boom"), RPC),
    (KeyError("missing"), RPC),
])
def test_retryable_kinds(first_choice, fault, kind):
    assert classify(fault).kind == kind
    call = FakeCall({"p1:1": [fault, "value"]})
    config = make_config(strategy="round_robin", retry=1, reselect_on_retry=False)
    assert Executor(call, first_choice).execute(config, "op") == Ok("value")
    assert len(call.calls) == 2


def test_sticky_survives_retries(first_choice):
    call = FakeCall({"p1:1": [CallTimeout("slow"), CallTimeout("slow"), "value"]})
    config = make_config(strategy="sticky", retry=2)
    executor = Executor(call, first_choice)

    assert executor.execute(config, "op") == Ok("value")
    assert call.peers == ["p1:1"] * 3
    assert executor.execute(config, "op") == Ok("ok")
    assert executor.select_peer(config) == "p1:1"

    executor.clear_sticky(config)
    assert executor.selector.pinned(executor.context, config.selector_id) is None


def test_round_robin_per_executor(first_choice):
    call = FakeCall()
    config = make_config(strategy="round_robin")
    one = Executor(call, first_choice)
    two = Executor(call, first_choice)

    for _ in range(3):
        one.execute(config, "op")
    two.execute(config, "op")
    assert call.peers == ["p1:1", "p2:1", "p1:1", "p1:1"]

    one.reset_round_robin(config)
    assert one.select_peer(config) == "p1:1"


def test_executor_close(first_choice):
    config = make_config(strategy="round_robin")
    with Executor(FakeCall(), first_choice) as executor:
        executor.execute(config, "op")
        assert (executor.context, "accounts") in first_choice.store
    assert (executor.context, "accounts") not in first_choice.store


def test_explicit_context(first_choice):
    call = FakeCall()
    config = make_config(strategy="round_robin")
    executor = Executor(call, first_choice, context="connection-1")
    executor.execute(config, "op")
    assert ("connection-1", "accounts") in first_choice.store
    assert executor.select_peer(config, context="connection-2") == "p1:1"


def test_empty_resolver_no_call(first_choice):
    call = FakeCall()
    config = make_config(peers=Resolver(lambda: []), error_handling=True)

    result = Executor(call, first_choice).execute(config, "op")

    assert isinstance(result, Err)
    assert result.error.kind == PEER
    assert result.error.details["peer"] is None
    assert call.calls == []


def test_selection_failure_is_retried(first_choice):
    answers = [[], ["p9:1"]]
    call = FakeCall()
    config = make_config(peers=Resolver(lambda: answers.pop(0)), retry=1)

    assert Executor(call, first_choice).execute(config, "op") == Ok("ok")
    assert call.peers == ["p9:1"]


def test_empty_resolver_unwrapped_raises(first_choice):
    config = make_config(peers=Resolver(lambda: []))
    with pytest.raises(PeerError):
        Executor(FakeCall(), first_choice).execute(config, "op")


def test_hash_uses_target_and_args():
    call = FakeCall()
    config = make_config(strategy="hash", peers=[f"p{n}:1" for n in range(8)])
    executor = Executor(call)

    for _ in range(5):
        executor.execute(config, "get_user", (42,))
    assert len(set(call.peers)) == 1
    assert executor.select_peer(config, ("accounts", (42,))) == call.peers[0]


def test_arity_validation(first_choice):
    call = FakeCall()
    config = make_config(operations=[("get_user", 1)], retry=3)
    executor = Executor(call, first_choice)

    result = executor.execute(config, "get_user", (1, 2))
    assert isinstance(result, Err)
    assert result.error.kind == VALIDATION
    assert result.error.details["arity"] == 2
    assert call.calls == []

    # undeclared operations are passed through
    assert executor.execute(config, "ping") == Ok("ok")


def test_arity_validation_unwrapped(first_choice):
    config = make_config(operations=[("get_user", 1)])
    with pytest.raises(ValidationError):
        Executor(FakeCall(), first_choice).execute(config, "get_user", ())


@pytest.mark.parametrize("operation, args", [
    ("", ()),
    (None, ()),
    ("get_user", "1"),
    ("get_user", {"id": 1}),
])
def test_invalid_call_input(first_choice, operation, args):
    call = FakeCall()
    result = Executor(call, first_choice).execute_with_retry(make_config(retry=2), operation, args)
    assert result.error.kind == VALIDATION
    assert call.calls == []


def test_execute_dynamic(first_choice):
    store = ConfDict({"wrappers": {"accounts": {"peers": ["p1:1"], "strategy": "round_robin"}}})
    call = FakeCall()
    executor = Executor(call, first_choice, config_store=store)
    config = make_config()

    executor.execute_dynamic(config, "wrappers.accounts", "op")
    store["wrappers"]["accounts"]["peers"] = ["p7:1", "p8:1"]
    executor.execute_dynamic(config, "wrappers.accounts", "op")
    executor.execute_dynamic(config, "wrappers.accounts", "op")

    assert call.peers == ["p1:1", "p8:1", "p7:1"]


def test_execute_dynamic_callable_store(first_choice):
    call = FakeCall()
    executor = Executor(call, first_choice, config_store=lambda: {"cluster": {"peers": ["p5:1"]}})
    assert executor.execute_dynamic(make_config(), "cluster", "op") == "ok"
    assert call.peers == ["p5:1"]


@pytest.mark.parametrize("ref", ["missing", "wrappers.missing", "wrappers.name.deeper"])
def test_execute_dynamic_missing(first_choice, ref):
    store = ConfDict({"wrappers": {"name": "not a table"}})
    executor = Executor(FakeCall(), first_choice, config_store=store)
    with pytest.raises(ConfigError) as info:
        executor.execute_dynamic(make_config(), ref, "op")
    assert info.value.kind == CONFIG


def test_execute_dynamic_not_a_table(first_choice):
    store = ConfDict({"wrappers": {"name": "not a table"}})
    executor = Executor(FakeCall(), first_choice, config_store=store)
    with pytest.raises(ConfigError, match="table"):
        executor.execute_dynamic(make_config(), "wrappers.name", "op")


def test_module_execute():
    call = FakeCall(default=7)
    assert execute(call, make_config(), "op", (1,)) == 7
    assert execute(call, make_config(error_handling=True), "op") == Ok(7)


def test_describe_call():
    assert describe_call(make_config(), "get_user", (1, "a")) == "accounts.get_user(1, 'a')"


def test_arity_validation_lists_declared_arities(first_choice):
    call = FakeCall()
    config = make_config(operations=[("get", 1), ("get", 2)], error_handling=True)
    executor = Executor(call, first_choice)

    assert executor.execute(config, "get", (1,)) == Ok("ok")
    assert executor.execute(config, "get", (1, 2)) == Ok("ok")

    result = executor.execute(config, "get", ())
    assert result.error.kind == VALIDATION
    assert "takes 1 or 2 arguments, got 0" in result.error.message
    assert len(call.calls) == 2
