"""Unit tests for the experimental-loader respawn guard."""

import json
import sys
from unittest.mock import MagicMock, patch

import pytest

from pwtest_cli.respawn import (
    DISABLE_ENV,
    EXPERIMENTAL_LOADER,
    RESPAWNED_ENV,
    LaunchDescriptor,
    RuntimeInfo,
    RuntimeDetector,
    env_without_experimental_loader_options,
    experimental_loader_option,
    file_is_module,
    launch,
    parse_runtime_version,
    preflight,
)


@pytest.fixture
def esm_config(tmp_path):
    """A config file written as an ES module."""
    config = tmp_path / "playwright.config.mjs"
    config.write_text("export default {};\n")
    return config


class TestFileIsModule:
    """Tests for file_is_module."""

    @pytest.mark.parametrize("name", ["a.config.mjs", "a.config.mts"])
    def test_module_extensions(self, tmp_path, name):
        assert file_is_module(tmp_path / name) is True

    @pytest.mark.parametrize("name", ["a.config.cjs", "a.config.cts"])
    def test_commonjs_extensions(self, tmp_path, name):
        (tmp_path / "package.json").write_text(json.dumps({"type": "module"}))

        assert file_is_module(tmp_path / name) is False

    def test_package_type_module(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"type": "module"}))
        nested = tmp_path / "e2e"
        nested.mkdir()

        assert file_is_module(nested / "playwright.config.ts") is True

    def test_nearest_package_json_wins(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"type": "module"}))
        nested = tmp_path / "legacy"
        nested.mkdir()
        (nested / "package.json").write_text(json.dumps({"name": "legacy"}))

        assert file_is_module(nested / "playwright.config.js") is False

    def test_broken_package_json(self, tmp_path):
        (tmp_path / "package.json").write_text("{not json")

        assert file_is_module(tmp_path / "playwright.config.js") is False


class TestRuntimeDetector:
    """Tests for runtime detection."""

    def test_parse_version(self):
        assert parse_runtime_version("v18.12.1") == RuntimeInfo(major=18, version="v18.12.1")
        assert parse_runtime_version("garbage").major == 0

    def test_detect_node(self):
        with patch("shutil.which", return_value="/usr/bin/node"):
            with patch("subprocess.run") as mock_run:
                mock_run.return_value = MagicMock(returncode=0, stdout="v20.1.0\n")
                info = RuntimeDetector().detect()

        assert info.major == 20

    def test_detect_missing_node(self):
        with patch("shutil.which", return_value=None):
            info = RuntimeDetector().detect()

        assert info.major == 0


class TestPreflight:
    """Tests for the respawn decision."""

    def test_old_runtime_does_not_respawn(self, esm_config):
        descriptor = preflight(esm_config, runtime=RuntimeInfo(major=14), environ={}, argv=[])

        assert descriptor is None

    def test_module_config_on_new_runtime_respawns(self, esm_config, tmp_path):
        descriptor = preflight(
            esm_config,
            runtime=RuntimeInfo(major=18),
            environ={"NODE_OPTIONS": "--max-old-space-size=4096", "HOME": "/home/u"},
            argv=["test", "--headed"],
            cwd=tmp_path,
        )

        assert descriptor is not None
        assert descriptor.argv == ("test", "--headed")
        assert descriptor.env[RESPAWNED_ENV] == "1"
        assert descriptor.env["HOME"] == "/home/u"
        assert descriptor.env["NODE_OPTIONS"] == (
            f"--max-old-space-size=4096 --experimental-loader={EXPERIMENTAL_LOADER}"
        )
        assert descriptor.runtime_options == descriptor.env["NODE_OPTIONS"]
        assert descriptor.respawned is True

    def test_extra_env_reaches_child(self, esm_config):
        descriptor = preflight(
            esm_config,
            runtime=RuntimeInfo(major=18),
            environ={},
            argv=[],
            extra_env={"PW_TEST_SNAPSHOT_SUFFIX": "docker"},
        )

        assert descriptor.env["PW_TEST_SNAPSHOT_SUFFIX"] == "docker"

    def test_no_config_file(self):
        assert preflight(None, runtime=RuntimeInfo(major=18), environ={}, argv=[]) is None

    def test_no_config_file_skips_runtime_detection(self):
        with patch.object(RuntimeDetector, "detect") as mock_detect:
            assert preflight(None, environ={}, argv=[]) is None

        mock_detect.assert_not_called()

    def test_opt_out(self, esm_config):
        descriptor = preflight(
            esm_config, runtime=RuntimeInfo(major=18), environ={DISABLE_ENV: "1"}, argv=[]
        )

        assert descriptor is None

    def test_already_respawned(self, esm_config):
        descriptor = preflight(
            esm_config, runtime=RuntimeInfo(major=18), environ={RESPAWNED_ENV: "1"}, argv=[]
        )

        assert descriptor is None

    def test_commonjs_config(self, tmp_path):
        config = tmp_path / "playwright.config.js"
        config.write_text("module.exports = {};\n")

        descriptor = preflight(config, runtime=RuntimeInfo(major=18), environ={}, argv=[])

        assert descriptor is None

    def test_installed_loader_uses_file_url(self, esm_config, tmp_path):
        loader = tmp_path / "node_modules" / EXPERIMENTAL_LOADER
        loader.parent.mkdir(parents=True)
        loader.write_text("")

        option = experimental_loader_option(tmp_path)

        assert option == f" --experimental-loader={loader.resolve().as_uri()}"


class TestLaunch:
    """Tests for launching the child process."""

    def _descriptor(self):
        return LaunchDescriptor(argv=("test", "-x"), env={RESPAWNED_ENV: "1"})

    def test_command_reinvokes_cli_module(self):
        assert self._descriptor().command == [sys.executable, "-m", "pwtest_cli", "test", "-x"]

    def test_child_env_and_stdio(self):
        with patch("subprocess.Popen") as mock_popen:
            mock_popen.return_value.wait.return_value = 0
            code = launch(self._descriptor())

        assert code == 0
        args, kwargs = mock_popen.call_args
        assert args[0][-2:] == ["test", "-x"]
        assert kwargs["env"] == {RESPAWNED_ENV: "1"}
        # stdio is inherited: no pipes requested
        assert "stdout" not in kwargs and "stderr" not in kwargs

    def test_nonzero_exit_propagates(self):
        with patch("subprocess.Popen") as mock_popen:
            mock_popen.return_value.wait.return_value = 3
            assert launch(self._descriptor()) == 3

    def test_signal_killed_child_is_not_failure(self):
        with patch("subprocess.Popen") as mock_popen:
            mock_popen.return_value.wait.return_value = -15
            assert launch(self._descriptor()) == 0


class TestEnvWithoutLoader:
    """Tests for env_without_experimental_loader_options."""

    def test_strips_directive(self, tmp_path):
        env = {"NODE_OPTIONS": "--inspect" + experimental_loader_option(tmp_path), "A": "b"}

        result = env_without_experimental_loader_options(env, tmp_path)

        assert result == {"NODE_OPTIONS": "--inspect", "A": "b"}

    def test_drops_empty_options(self, tmp_path):
        env = {"NODE_OPTIONS": experimental_loader_option(tmp_path)}

        assert env_without_experimental_loader_options(env, tmp_path) == {}
