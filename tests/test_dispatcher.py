import asyncio

import pytest

from autowait.core.dispatcher import Dispatcher, EventHub


@pytest.mark.asyncio
async def test_ids_are_monotonic_and_never_reused() -> None:
    d = Dispatcher()
    ids = [d.register("g", "m")[0] for _ in range(3)]
    d.resolve(ids[0], result=1)
    new_id, _ = d.register("g", "m")
    assert ids == sorted(ids)
    assert new_id > ids[-1]


@pytest.mark.asyncio
async def test_resolve_delivers_once_and_drops_unknown_ids() -> None:
    d = Dispatcher()
    call_id, fut = d.register("g", "click")
    assert d.resolve(call_id, result={"ok": True})
    assert not d.resolve(call_id, result={"ok": False})  # duplicate: dropped
    assert not d.resolve(9999, result=None)  # unknown: dropped
    assert await fut == {"ok": True}
    assert len(d) == 0


@pytest.mark.asyncio
async def test_late_response_for_abandoned_call_is_ignored() -> None:
    d = Dispatcher()
    call_id, fut = d.register("g", "click")
    fut.cancel()
    assert not d.resolve(call_id, result={})
    assert fut.cancelled()


@pytest.mark.asyncio
async def test_fail_all_rejects_every_pending_call() -> None:
    d = Dispatcher()
    futs = [d.register("g", "m")[1] for _ in range(3)]
    d.fail_all(lambda: RuntimeError("gone"))
    for fut in futs:
        with pytest.raises(RuntimeError):
            await fut
    assert len(d) == 0


@pytest.mark.asyncio
async def test_event_hub_order_and_token_cancel() -> None:
    hub = EventHub()
    seen: list[str] = []
    a = hub.subscribe("page", "load", lambda p: seen.append("a"))
    hub.subscribe("page", "load", lambda p: seen.append("b"))
    hub.subscribe("other", "load", lambda p: seen.append("x"))

    hub.emit("page", "load", {})
    a.cancel()
    a.cancel()  # idempotent
    hub.emit("page", "load", {})

    assert seen == ["a", "b", "b"]


@pytest.mark.asyncio
async def test_listener_can_unsubscribe_itself_during_emit() -> None:
    hub = EventHub()
    seen: list[int] = []
    holder = {}

    def once(params):
        seen.append(params["n"])
        holder["sub"].cancel()

    holder["sub"] = hub.subscribe("g", "e", once)
    hub.emit("g", "e", {"n": 1})
    hub.emit("g", "e", {"n": 2})
    assert seen == [1]
    assert not hub.has_listeners("g", "e")


@pytest.mark.asyncio
async def test_failing_listener_does_not_stop_others(caplog) -> None:
    hub = EventHub()
    seen: list[str] = []

    def boom(params):
        raise ValueError("listener bug")

    hub.subscribe("g", "e", boom)
    hub.subscribe("g", "e", lambda p: seen.append("ok"))
    hub.emit("g", "e", {})

    assert seen == ["ok"]
    assert "listener for e on g raised" in caplog.text


@pytest.mark.asyncio
async def test_coroutine_listeners_are_scheduled() -> None:
    hub = EventHub()
    done = asyncio.Event()

    async def listener(params):
        done.set()

    hub.subscribe("g", "e", listener)
    hub.emit("g", "e", {})
    await asyncio.wait_for(done.wait(), 1)


@pytest.mark.asyncio
async def test_drop_object_forgets_listeners() -> None:
    hub = EventHub()
    sub = hub.subscribe("g", "e", lambda p: None)
    hub.drop_object("g")
    assert not hub.has_listeners("g", "e")
    assert not sub.active


@pytest.mark.asyncio
async def test_failing_coroutine_listener_is_logged(caplog) -> None:
    hub = EventHub()

    async def boom(params):
        raise ValueError("async listener bug")

    hub.subscribe("g", "e", boom)
    hub.emit("g", "e", {})
    assert len(hub._tasks) == 1
    for _ in range(5):
        await asyncio.sleep(0)
    assert hub._tasks == set()
    assert "listener for e on g raised" in caplog.text
    assert "async listener bug" in caplog.text
