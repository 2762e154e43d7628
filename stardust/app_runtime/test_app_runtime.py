"""Process lifecycle, app restart, and session bootstrap."""

import threading

import pytest

from stardust.app_runtime.app import App
from stardust.app_runtime.config import AppRuntimeConfig
from stardust.app_runtime.contracts import ProcessParams, is_terminal
from stardust.app_runtime.runtime import AppRuntime, UnknownTargetError
from stardust.app_runtime.session import Session
from stardust.app_runtime.testing import make_app, routines_folder, run_routine, wait_for
from stardust.app_runtime.wire import WireDialer
from stardust.namespace.inmem import MemFolder, MemString, function_folder

SLEEPER = "ctx.sleep(5000)"


def test_sequential_spawns_get_increasing_pids() -> None:
    app = make_app({"noop": ""})
    processes = [run_routine(app, "noop") for _ in range(3)]

    assert [p.process_id for p in processes] == ["0", "1", "2"]
    assert app.next_pid == 3
    assert sorted(app.processes.children()) == ["0", "1", "2"]
    assert all(p.status == "Completed" for p in processes)
    assert all(p.end_time for p in processes)


@pytest.mark.parametrize("status", ["Stopping", "Stopped", "Failed: mount failed"])
def test_spawn_rejected_unless_ready_or_pending(status: str) -> None:
    app = make_app({"noop": ""})
    app.status = status

    assert app.start_routine(ProcessParams(routine_name="noop")) is None
    assert app.processes.children() == []
    assert app.next_pid == 0


def test_pending_app_accepts_spawns() -> None:
    app = make_app({"noop": ""})
    app.status = "Pending"

    assert run_routine(app, "noop").status == "Completed"


def test_missing_source_fails() -> None:
    app = make_app({})
    process = run_routine(app, "nope")

    assert process.status == "Failed: file /source/routines/nope.lua not found"
    assert process.end_time


def test_script_error_terminates() -> None:
    app = make_app({"boom": 'error("boom")'})
    process = run_routine(app, "boom")

    assert process.status.startswith("Terminated:")
    assert "boom" in process.status


def test_terminal_status_is_final() -> None:
    app = make_app({"noop": ""})
    process = run_routine(app, "noop")

    assert process.set_status("Running") is False
    assert process.status == "Completed"


def test_abort_during_sleep_is_aborted() -> None:
    app = make_app({"sleeper": SLEEPER + '\nctx.store("state", "woke", true)'})
    process = app.start_routine(ProcessParams(routine_name="sleeper"))
    assert wait_for(lambda: process.status.startswith("Sleeping: Since "))

    assert process.abort() is True
    assert process.abort() is False
    assert process.wait(6)
    assert process.status == "Aborted"
    assert process.abort_time
    assert app.ctx.get("/state/woke") is None


def test_abort_wins_over_pcall() -> None:
    app = make_app({"sleeper": "pcall(ctx.sleep, 5000)"})
    process = app.start_routine(ProcessParams(routine_name="sleeper"))
    assert wait_for(lambda: process.status.startswith("Sleeping:"))

    process.abort()
    assert process.wait(6)
    assert process.status == "Aborted"


def test_abort_during_invoke_outranks_function_error() -> None:
    gate = threading.Event()

    def backend(ctx, input):
        gate.wait(5)
        raise ValueError("backend down")

    app = make_app({"caller": 'ctx.invoke("backend", nil)'})
    app.namespace.put("backend", function_folder("backend", backend))
    process = app.start_routine(ProcessParams(routine_name="caller"))
    assert wait_for(lambda: process.status.startswith("Blocked: Invoking app:/~demo/backend"))

    process.abort()
    gate.set()
    assert process.wait(5)
    assert process.status == "Aborted"


def test_routine_without_syscalls_runs_to_completion_despite_abort() -> None:
    app = make_app({"spin": "local x = 0\nfor i = 1, 200000 do x = x + i end"})
    process = app.start_routine(ProcessParams(routine_name="spin"))
    process.abort()
    assert process.wait(5)

    assert process.status in ("Completed", "Aborted")


def test_process_status_is_readable_from_the_namespace() -> None:
    app = make_app({
        "noop": "",
        "peek": 'ctx.store("state", "seen", ctx.read("processes", "0", "Status"))',
    })
    run_routine(app, "noop")
    run_routine(app, "peek")

    assert app.ctx.get_string("/processes/0/RoutineName").get() == "noop"
    assert app.ctx.get_string("/state/seen").get() == "Completed"


def test_restart_aborts_drains_and_relaunches() -> None:
    app = make_app({"launch": "", "sleeper": SLEEPER})
    app.ctx.put("/state/leftover", MemString("leftover", "1"))
    app.ctx.put("/export/shared", MemString("shared", "1"))
    sleepers = [app.start_routine(ProcessParams(routine_name="sleeper")) for _ in range(3)]
    assert wait_for(lambda: all(p.status.startswith("Sleeping:") for p in sleepers))
    old_registry = app.processes

    assert app.restart() == "ok"

    assert [p.status for p in sleepers] == ["Aborted"] * 3
    assert app.processes is not old_registry
    assert app.processes.children() == ["0"]
    launch = app.processes.fetch("0")
    assert launch.params.routine_name == "launch"
    assert app.status == "Ready"
    assert app.next_pid == 1
    assert app.ctx.get("/state/leftover") is None
    assert app.ctx.get("/export/shared") is None
    assert app.ctx.get_folder("/processes") is app.processes


def test_restart_blocks_spawns_while_stopping() -> None:
    gate = threading.Event()

    def wait_on_gate(ctx, input):
        gate.wait(10)
        return MemString("out", "released")

    app = make_app({"launch": "", "blocker": 'ctx.invoke("gate", nil)'})
    app.namespace.put("gate", function_folder("gate", wait_on_gate))
    blocker = app.start_routine(ProcessParams(routine_name="blocker"))
    assert wait_for(lambda: blocker.status.startswith("Blocked: Invoking app:/~demo/gate since "))

    restarter = threading.Thread(target=app.restart)
    restarter.start()
    assert wait_for(lambda: app.status == "Stopping")
    assert app.start_routine(ProcessParams(routine_name="launch")) is None
    assert not blocker.finished

    gate.set()
    restarter.join(5)
    assert not restarter.is_alive()
    assert blocker.status == "Aborted"
    assert app.status == "Ready"
    assert app.processes.children() == ["0"]


def test_stop_then_restart() -> None:
    app = make_app({"launch": "", "sleeper": SLEEPER})
    sleeper = app.start_routine(ProcessParams(routine_name="sleeper"))
    assert wait_for(lambda: sleeper.status.startswith("Sleeping:"))

    app.stop()
    assert app.status == "Stopped"
    assert sleeper.status == "Aborted"
    assert app.start_routine(ProcessParams(routine_name="sleeper")) is None

    app.restart()
    assert app.status == "Ready"
    assert app.processes.children() == ["0"]


def _chart(launch_source: str, *, with_config: bool = False) -> MemFolder:
    apps = MemFolder.of(
        "apps",
        MemFolder.of("demo", routines_folder({"launch": launch_source})),
        MemFolder.of("other", routines_folder({"launch": ""})),
    )
    chart = MemFolder.of("chart", apps, MemFolder("persist"))
    if with_config:
        chart.put("config", MemFolder.of("config", MemFolder.of("demo", MemString("greeting", "hi"))))
    return chart


def test_session_mounts_and_launches_apps() -> None:
    launch = (
        'ctx.store("persist", "booted", ctx.read("config", "greeting"))\n'
        'ctx.store("state", "apps", #ctx.enumerate("session", "apps"))\n'
    )
    chart = _chart(launch, with_config=True)
    dialer = WireDialer()
    dialer.register_namespace("chart", chart)

    session = Session("mem://chart", dialer=dialer, config=AppRuntimeConfig()).open()
    assert session.status == "Ready"
    assert [app.app_name for app in session.all_apps()] == ["demo", "other"]

    demo = session.get_app("demo")
    launch_process = demo.processes.fetch("0")
    assert launch_process.wait(5)
    assert launch_process.status == "Completed"
    assert demo.status == "Ready"
    assert chart.fetch("persist").fetch("demo").fetch("booted").get() == "hi"
    assert demo.ctx.get_string("/state/apps").get() == "2"
    assert demo.ctx.get_folder("/session") is chart
    assert demo.ctx.get_folder("/export") is not None


def test_session_creates_missing_config_and_persist() -> None:
    chart = _chart("")
    chart.put("persist", None)
    dialer = WireDialer()
    dialer.register_namespace("chart", chart)

    session = Session("mem://chart", dialer=dialer).open()
    demo = session.get_app("demo")

    assert demo.ctx.get_folder("/config") is not None
    assert demo.ctx.get_folder("/persist") is not None
    assert chart.fetch("config").fetch("demo") is not None
    assert chart.fetch("persist").fetch("other") is not None


def test_session_with_unknown_chart_fails() -> None:
    session = Session("mem://missing", dialer=WireDialer()).open()

    assert session.status == "Failed: couldn't open chart mem://missing"
    assert session.all_apps() == []
    assert session.wait_opened(0)


def test_app_added_before_the_chart_opens_is_failed() -> None:
    session = Session("mem://chart", dialer=WireDialer())
    session._add_app("demo")

    demo = session.get_app("demo")
    assert demo.status == "Failed: mount failed: session mem://chart is not open"
    assert demo.processes.all() == []


def test_run_routine_reports_rejected_spawns() -> None:
    app = make_app({"noop": ""})
    app.status = "Stopped"

    with pytest.raises(RuntimeError, match="demo rejected noop"):
        run_routine(app, "noop")


@pytest.mark.asyncio
async def test_runtime_opens_sessions_and_restarts_apps() -> None:
    dialer = WireDialer()
    dialer.register_namespace("chart", _chart(""))
    runtime = AppRuntime(dialer=dialer, config=AppRuntimeConfig(drain_poll_s=0.05))

    session = await runtime.open_session("mem://chart", wait=True)
    assert await runtime.open_session("mem://chart") is session
    assert session.status == "Ready"

    process = await runtime.start_routine("mem://chart", "demo", "launch", {"n": 1})
    assert process is not None
    assert process.process_id == "1"
    assert process.wait(5)

    assert await runtime.restart_app("mem://chart", "demo") == "ok"
    snapshot = runtime.snapshot()
    demo = snapshot["mem://chart"]["apps"]["demo"]
    assert demo["status"] == "Ready"
    assert [p["pid"] for p in demo["processes"]] == ["0"]

    with pytest.raises(UnknownTargetError):
        await runtime.restart_app("mem://chart", "ghost")

    await runtime.stop()
    assert runtime.get_session("mem://chart") is None
    assert isinstance(session.get_app("demo"), App)
    assert session.get_app("demo").status == "Stopped"


def test_is_terminal_vocabulary() -> None:
    assert is_terminal("Completed")
    assert is_terminal("Aborted")
    assert is_terminal("Terminated: boom")
    assert is_terminal("Failed: file x not found")
    assert not is_terminal("Running")
    assert not is_terminal("Sleeping: Since now")
    assert not is_terminal("Blocked: Invoking x")
    assert not is_terminal("Pending")


def test_failed_app_is_never_relaunched() -> None:
    app = make_app({"launch": ""})
    app.status = "Failed: mount failed: boom"

    assert app.restart() == "Failed: mount failed: boom"
    assert app.processes.children() == []


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STARDUST_RUNTIME_ENABLED", "yes")
    monkeypatch.setenv("STARDUST_LAUNCH_ROUTINE", "boot")
    monkeypatch.setenv("STARDUST_DRAIN_POLL_S", "0.25")
    monkeypatch.setenv("STARDUST_CONTROL_PORT", "9000")
    cfg = AppRuntimeConfig.from_env()

    assert cfg.enabled is True
    assert cfg.launch_routine == "boot"
    assert cfg.drain_poll_s == 0.25
    assert cfg.control_port == 9000
    assert cfg.sandbox is False
    assert cfg.routine_path("boot") == "/source/routines/boot.lua"


def test_bootstrap_respects_flags() -> None:
    from stardust.app_runtime.bootstrap import (
        build_control_channel_if_enabled,
        build_runtime_if_enabled,
    )

    assert build_runtime_if_enabled(config=AppRuntimeConfig(enabled=False)) is None

    runtime = build_runtime_if_enabled(config=AppRuntimeConfig(enabled=True))
    assert isinstance(runtime, AppRuntime)
    assert build_control_channel_if_enabled(runtime) is None

    runtime = build_runtime_if_enabled(config=AppRuntimeConfig(enabled=True, control_enabled=True))
    channel = build_control_channel_if_enabled(runtime)
    assert channel is not None
    assert channel.runtime is runtime
