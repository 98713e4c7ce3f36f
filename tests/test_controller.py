import asyncio
import copy
from unittest.mock import AsyncMock, MagicMock

import pytest

from nextbridge.core.config import PluginConfig
from nextbridge.core.exceptions import (
    BuildFailedError,
    ConcurrencyError,
    DockerModeUnsupportedError,
    DuplicateRouteError,
    MissingEndpointError,
    MissingImageConfigError,
    SpawnError,
)
from nextbridge.services.controller import BuildState, IntentController, RunState
from nextbridge.services.process import SpawnedProcess
from nextbridge.services.signals import SignalManager

ENDPOINT = "http://localhost:12000"


def _process(pid=4242):
    process = MagicMock()
    process.pid = pid
    process.returncode = None
    process.wait = AsyncMock(return_value=0)
    return process


@pytest.fixture
def builder():
    mock = MagicMock()
    mock.build = AsyncMock()
    return mock


@pytest.fixture
def process():
    return _process()


@pytest.fixture
def spawner(process):
    mock = MagicMock()
    mock.spawn = AsyncMock(
        return_value=SpawnedProcess(process=process, endpoint=ENDPOINT, port=12000)
    )
    return mock


@pytest.fixture
def signal_manager():
    return MagicMock(spec=SignalManager)


@pytest.fixture
def make_controller(service, function, bridge_config, builder, spawner, signal_manager):
    def _make(plugin_config=None):
        return IntentController(
            service=service,
            function=function,
            plugin_config=plugin_config or PluginConfig.from_custom(service.custom, "next"),
            config=bridge_config,
            builder=builder,
            spawner=spawner,
            signal_manager=signal_manager,
        )

    return _make


class TestBuild:
    @pytest.mark.asyncio
    async def test_success_applies_serve(self, make_controller, function, builder, service):
        controller = make_controller()

        await controller.build()

        builder.build.assert_awaited_once()
        workdir, env = builder.build.await_args.args
        assert workdir == str(service.service_path)
        assert env["SHARED"] == "function"
        assert function.handler is None
        assert function.image.name == "app"
        assert function.image.command == ["next start@http://localhost:3000"]
        assert controller.build_state == BuildState.BUILT

    @pytest.mark.asyncio
    async def test_failure_leaves_descriptor_unchanged(self, make_controller, service, builder):
        builder.build.side_effect = BuildFailedError("/app", RuntimeError("exit 1"))
        before = copy.deepcopy(service.to_dict())
        controller = make_controller()

        with pytest.raises(BuildFailedError):
            await controller.build()

        assert service.to_dict() == before
        assert controller.build_state == BuildState.IDLE

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self, make_controller, service, builder):
        builder.build.side_effect = OSError("disk full")
        before = copy.deepcopy(service.to_dict())

        with pytest.raises(BuildFailedError) as excinfo:
            await make_controller().build()

        assert isinstance(excinfo.value.cause, OSError)
        assert service.to_dict() == before

    @pytest.mark.asyncio
    async def test_missing_image_config_after_build(self, make_controller, service):
        service.provider.ecr = {"images": {"a": {}, "b": {}}}
        before = copy.deepcopy(service.to_dict())

        with pytest.raises(MissingImageConfigError):
            await make_controller().build()

        assert service.to_dict() == before

    @pytest.mark.asyncio
    async def test_overlapping_build_is_rejected(self, make_controller, builder):
        gate = asyncio.Event()

        async def slow_build(*args):
            await gate.wait()

        builder.build.side_effect = slow_build
        controller = make_controller()

        first = asyncio.create_task(controller.build())
        await asyncio.sleep(0)
        with pytest.raises(ConcurrencyError):
            await controller.build()
        gate.set()
        await first
        assert controller.build_state == BuildState.BUILT


class TestRun:
    @pytest.mark.asyncio
    async def test_success_points_handler_at_endpoint(
        self, make_controller, function, spawner, signal_manager, process
    ):
        controller = make_controller()

        spawned = await controller.run()

        assert spawned.endpoint == ENDPOINT
        assert function.handler == ENDPOINT
        assert function.image is None
        assert controller.run_state == RunState.RUNNING
        signal_manager.bind.assert_called_once_with(process)

        command, env = spawner.spawn.await_args.args
        assert str(command).startswith("next dev --turbo")
        assert command.argument == "http://localhost:3000"
        assert env["API_URL"] == "https://api.example.com"
        assert env["SHARED"] == "function"

    @pytest.mark.asyncio
    async def test_missing_endpoint_never_mutates(self, make_controller, service, spawner, process):
        spawner.spawn.return_value = SpawnedProcess(process=process, endpoint=None, port=12000)
        before = copy.deepcopy(service.to_dict())
        controller = make_controller()

        with pytest.raises(MissingEndpointError):
            await controller.run()

        assert service.to_dict() == before
        process.terminate.assert_called_once()
        assert controller.run_state == RunState.IDLE

    @pytest.mark.asyncio
    async def test_spawn_failure_never_mutates(self, make_controller, service, spawner, signal_manager):
        spawner.spawn.side_effect = SpawnError("next dev --turbo", "exited with code 1")
        before = copy.deepcopy(service.to_dict())
        controller = make_controller()

        with pytest.raises(SpawnError):
            await controller.run()

        assert service.to_dict() == before
        signal_manager.bind.assert_not_called()
        assert controller.run_state == RunState.IDLE

    @pytest.mark.asyncio
    async def test_docker_mode_is_rejected(self, make_controller, spawner):
        controller = make_controller(PluginConfig(docker=True))

        with pytest.raises(DockerModeUnsupportedError):
            await controller.run()
        spawner.spawn.assert_not_called()

    @pytest.mark.asyncio
    async def test_overlapping_run_is_rejected(self, make_controller, spawner, process):
        gate = asyncio.Event()

        async def slow_spawn(*args, **kwargs):
            await gate.wait()
            return SpawnedProcess(process=process, endpoint=ENDPOINT, port=12000)

        spawner.spawn.side_effect = slow_spawn
        controller = make_controller()

        first = asyncio.create_task(controller.run())
        await asyncio.sleep(0)
        assert controller.run_state == RunState.SPAWNING
        with pytest.raises(ConcurrencyError):
            await controller.run()
        gate.set()
        await first
        assert controller.run_state == RunState.RUNNING

    @pytest.mark.asyncio
    async def test_routing_installed_after_spawn(
        self, make_controller, function, spawner, bridge_config
    ):
        controller = make_controller(PluginConfig(routing=True))

        await controller.run()

        _, env = spawner.spawn.await_args.args
        assert env[bridge_config.ROUTING_TOKEN_ENV]
        routes = [e["websocket"]["route"] for e in function.events if "websocket" in e]
        assert routes == ["$default", "$connect", "$disconnect"]

    @pytest.mark.asyncio
    async def test_routing_not_installed_when_spawn_fails(self, make_controller, function, spawner):
        spawner.spawn.side_effect = SpawnError("next", "boom")
        before = list(function.events)

        with pytest.raises(SpawnError):
            await make_controller(PluginConfig(routing=True)).run()
        assert function.events == before

    @pytest.mark.asyncio
    async def test_duplicate_route(self, make_controller, function, spawner):
        function.events.append({"websocket": "$default"})

        with pytest.raises(DuplicateRouteError):
            await make_controller(PluginConfig(routing=True)).run()
        spawner.spawn.assert_not_called()

    @pytest.mark.asyncio
    async def test_rerun_replaces_previous_child(self, make_controller, spawner, signal_manager):
        first, second = _process(1), _process(2)
        spawner.spawn.side_effect = [
            SpawnedProcess(process=first, endpoint=ENDPOINT, port=12000),
            SpawnedProcess(process=second, endpoint="http://localhost:12001", port=12001),
        ]
        controller = make_controller()

        await controller.run()
        await controller.run()

        first.terminate.assert_called_once()
        second.terminate.assert_not_called()
        assert signal_manager.bind.call_args.args == (second,)
        assert controller.function.handler == "http://localhost:12001"

    @pytest.mark.asyncio
    async def test_stop(self, make_controller, signal_manager, process):
        controller = make_controller()
        await controller.run()

        await controller.stop()

        process.terminate.assert_called_once()
        signal_manager.release.assert_called_once()
        assert controller.run_state == RunState.STOPPED
        assert controller.spawned is None

    @pytest.mark.asyncio
    async def test_signal_manager_owns_child_from_spawn(
        self, make_controller, spawner, signal_manager
    ):
        await make_controller().run()

        assert spawner.spawn.await_args.kwargs["on_spawn"] == signal_manager.bind

    @pytest.mark.asyncio
    async def test_failed_rerun_hands_signals_back_to_running_child(
        self, make_controller, spawner, signal_manager, process
    ):
        controller = make_controller()
        await controller.run()
        spawner.spawn.side_effect = SpawnError("next dev --turbo", "exited with code 1")

        with pytest.raises(SpawnError):
            await controller.run()

        assert signal_manager.bind.call_args.args == (process,)
        signal_manager.release.assert_not_called()
        assert controller.run_state == RunState.RUNNING


class TestDeclaredCommand:
    CUSTOM = ["next@http://0.0.0.0:4000", "--experimental-https"]

    @pytest.mark.asyncio
    async def test_rerun_keeps_declared_command(self, make_controller, function, spawner):
        function.image.command = list(self.CUSTOM)
        controller = make_controller()

        await controller.run()
        await controller.run()

        first, second = [c.args[0] for c in spawner.spawn.await_args_list]
        assert second == first
        assert second.argument == "http://0.0.0.0:4000"
        assert second.extra == ("--experimental-https",)

    @pytest.mark.asyncio
    async def test_build_after_run_restores_image(self, make_controller, function):
        function.image.command = list(self.CUSTOM)
        controller = make_controller()

        await controller.run()
        assert function.image is None
        await controller.build()

        assert function.handler is None
        assert function.image.name == "app"
        assert function.image.command == ["next start@http://0.0.0.0:4000", "--experimental-https"]
