"""Unit tests for the test command dispatcher."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from pwtest_cli.dispatcher import list_test_files, run_environment, run_tests
from pwtest_cli.docker import ContainerConnection
from pwtest_cli.errors import RunnerNotFoundError
from pwtest_cli.options import RunOverrides
from pwtest_cli.respawn import RESPAWNED_ENV, RuntimeInfo
from pwtest_cli.runner import RunResult, RunStatus

NO_RUNTIME = RuntimeInfo(major=0)


class FakeRunner:
    """Records what the dispatcher hands to the runner."""

    def __init__(self, status=RunStatus.PASSED, raises=None):
        self.status = status
        self.raises = raises
        self.loaded_file = None
        self.empty_dir = None
        self.context = None

    async def load_config_from_resolved_file(self, config_file):
        self.loaded_file = config_file

    async def load_empty_config(self, config_dir):
        self.empty_dir = config_dir

    async def run_all_tests(self, context):
        self.context = context
        if self.raises:
            raise self.raises
        return RunResult(status=self.status)

    async def list_test_files(self, config_file, project_filter):
        return {"projects": [{"name": "chromium", "testDir": str(config_file.parent), "files": []}]}


async def dispatch(fake, tmp_path, args=(), options=None, **kwargs):
    kwargs.setdefault("environ", {})
    kwargs.setdefault("runtime", NO_RUNTIME)
    with patch("pwtest_cli.dispatcher.load_runner", return_value=fake) as mock_load:
        code = await run_tests(args, options or {}, cwd=tmp_path, **kwargs)
    return code, mock_load


class TestExitCodes:
    """Run status to exit code mapping."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,expected",
        [
            (RunStatus.PASSED, 0),
            (RunStatus.FAILED, 1),
            (RunStatus.TIMEDOUT, 1),
            (RunStatus.INTERRUPTED, 130),
        ],
    )
    async def test_status(self, tmp_path, status, expected):
        code, _ = await dispatch(FakeRunner(status=status), tmp_path)

        assert code == expected

    @pytest.mark.asyncio
    async def test_runner_raising_keyboard_interrupt(self, tmp_path):
        code, _ = await dispatch(FakeRunner(raises=KeyboardInterrupt()), tmp_path)

        assert code == 130


class TestRunContext:
    """What the runner receives."""

    @pytest.mark.asyncio
    async def test_filters_and_projects(self, tmp_path):
        fake = FakeRunner()

        await dispatch(
            fake,
            tmp_path,
            args=("login.spec.ts:12", "checkout"),
            options={"project": ("chromium",), "list_only": True, "pass_with_no_tests": True},
        )

        context = fake.context
        assert [f.line for f in context.test_file_filters] == [12, None]
        assert context.project_filter == ("chromium",)
        assert context.list_only is True
        assert context.pass_with_no_tests is True
        assert context.watch_mode is False

    @pytest.mark.asyncio
    async def test_no_project_filter(self, tmp_path):
        fake = FakeRunner()

        await dispatch(fake, tmp_path, options={"project": ()})

        assert fake.context.project_filter is None

    @pytest.mark.asyncio
    async def test_watch_mode_from_env(self, tmp_path):
        fake = FakeRunner()

        await dispatch(fake, tmp_path, environ={"PW_TEST_WATCH": "1"})

        assert fake.context.watch_mode is True

    @pytest.mark.asyncio
    async def test_debug_sets_inspector_env(self, tmp_path):
        fake = FakeRunner()

        await dispatch(fake, tmp_path, options={"debug": True})

        assert fake.context.env == {"PWDEBUG": "1"}
        assert fake.context.overrides.workers == 1

    @pytest.mark.asyncio
    async def test_container_connection_env(self, tmp_path):
        fake = FakeRunner()
        connection = ContainerConnection(ws_endpoint="ws://127.0.0.1:49153/")

        await dispatch(fake, tmp_path, connection=connection)

        assert fake.context.env["PW_TEST_CONNECT_WS_ENDPOINT"] == "ws://127.0.0.1:49153/"
        assert fake.context.env["PW_TEST_SNAPSHOT_SUFFIX"] == "docker"

    @pytest.mark.asyncio
    async def test_default_runner_name(self, tmp_path):
        _, mock_load = await dispatch(FakeRunner(), tmp_path, options={"headed": True})

        name, overrides = mock_load.call_args[0]
        assert name == "default"
        assert overrides.use == {"headless": False}


class TestConfigLoading:
    """Config file discovery feeding the runner."""

    @pytest.mark.asyncio
    async def test_config_found_in_cwd(self, tmp_path):
        config = tmp_path / "playwright.config.ts"
        config.write_text("export default {};\n")
        fake = FakeRunner()

        await dispatch(fake, tmp_path)

        assert fake.loaded_file == config
        assert fake.context.config_dir == tmp_path

    @pytest.mark.asyncio
    async def test_directory_without_config(self, tmp_path):
        tests_dir = tmp_path / "e2e"
        tests_dir.mkdir()
        fake = FakeRunner()

        await dispatch(fake, tmp_path, options={"config": "e2e"})

        assert fake.loaded_file is None
        assert fake.empty_dir == tests_dir.resolve()

    @pytest.mark.asyncio
    async def test_runner_missing(self, tmp_path):
        with patch(
            "pwtest_cli.dispatcher.load_runner",
            side_effect=RunnerNotFoundError(message='No test runner named "default"'),
        ):
            with pytest.raises(RunnerNotFoundError):
                await run_tests((), {}, cwd=tmp_path, environ={}, runtime=NO_RUNTIME)


class TestRespawnHandoff:
    """The parent stops after launching the child."""

    @pytest.mark.asyncio
    async def test_respawn_returns_child_code(self, tmp_path):
        (tmp_path / "playwright.config.mjs").write_text("export default {};\n")
        fake = FakeRunner()

        with patch("pwtest_cli.dispatcher.launch", return_value=7) as mock_launch:
            code, mock_load = await dispatch(
                fake,
                tmp_path,
                options={"debug": True},
                runtime=RuntimeInfo(major=18),
                argv=["test", "--debug"],
            )

        assert code == 7
        mock_load.assert_not_called()
        descriptor = mock_launch.call_args[0][0]
        assert descriptor.env[RESPAWNED_ENV] == "1"
        assert descriptor.env["PWDEBUG"] == "1"
        assert descriptor.argv == ("test", "--debug")

    @pytest.mark.asyncio
    async def test_child_does_not_respawn(self, tmp_path):
        (tmp_path / "playwright.config.mjs").write_text("export default {};\n")
        fake = FakeRunner()

        code, _ = await dispatch(
            fake, tmp_path, environ={RESPAWNED_ENV: "1"}, runtime=RuntimeInfo(major=18)
        )

        assert code == 0
        assert fake.context is not None


class TestListFiles:
    """Tests for list_test_files."""

    @pytest.mark.asyncio
    async def test_no_config(self, tmp_path, capsys):
        code = await list_test_files({}, cwd=tmp_path, environ={}, runtime=NO_RUNTIME)

        assert code == 0
        assert json.loads(capsys.readouterr().out) == {"projects": []}

    @pytest.mark.asyncio
    async def test_report_printed_as_json(self, tmp_path, capsys):
        (tmp_path / "playwright.config.js").write_text("module.exports = {};\n")

        with patch("pwtest_cli.dispatcher.load_runner", return_value=FakeRunner()):
            code = await list_test_files({}, cwd=tmp_path, environ={}, runtime=NO_RUNTIME)

        assert code == 0
        report = json.loads(capsys.readouterr().out)
        assert report["projects"][0]["name"] == "chromium"

    @pytest.mark.asyncio
    async def test_runner_output_kept_off_stdout(self, tmp_path, capsys):
        (tmp_path / "playwright.config.js").write_text("module.exports = {};\n")
        fake = ChattyRunner()

        with patch("pwtest_cli.dispatcher.load_runner", return_value=fake):
            code = await list_test_files({}, cwd=tmp_path, environ={}, runtime=NO_RUNTIME)

        assert code == 0
        captured = capsys.readouterr()
        assert json.loads(captured.out)["projects"][0]["name"] == "chromium"
        assert "loading config" in captured.err
        assert "scanning test dir" in captured.err


class ChattyRunner(FakeRunner):
    """Prints while loading config and listing files."""

    async def load_config_from_resolved_file(self, config_file):
        print("loading config")
        await super().load_config_from_resolved_file(config_file)

    async def list_test_files(self, config_file, project_filter):
        print("scanning test dir")
        return await super().list_test_files(config_file, project_filter)


def test_run_environment_without_extras():
    assert run_environment(RunOverrides(), None) == {}
