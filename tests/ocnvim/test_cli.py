"""Unit tests for CLI argument parsing and env var application."""

import os

import pytest

from ocnvim.cli import _FLAG_TO_ENV, apply_args_to_env, parse_args

_ALL_ENV_VARS = ["OCNVIM_LOG_LEVEL", "OCNVIM_EVENTS", *[env for _, env in _FLAG_TO_ENV]]


@pytest.fixture(autouse=True)
def _clean_env():
    """Ensure apply_args_to_env changes don't leak between tests."""
    saved = {var: os.environ.get(var) for var in _ALL_ENV_VARS}
    yield
    for var, value in saved.items():
        if value is None:
            os.environ.pop(var, None)
        else:
            os.environ[var] = value


class TestParseArgs:
    def test_no_args(self):
        args = parse_args([])
        assert args.version is False
        assert args.verbose is False
        assert args.log_level is None
        assert args.config_dir is None
        assert args.command == "toggle"
        assert args.follow is False
        assert args.no_events is False
        assert args.path is None

    def test_version_flag(self):
        args = parse_args(["--version"])
        assert args.version is True

    def test_verbose_short(self):
        args = parse_args(["-v"])
        assert args.verbose is True

    @pytest.mark.parametrize(
        "command", ["toggle", "start", "stop", "root", "providers", "doctor", "events"]
    )
    def test_commands(self, command):
        assert parse_args([command]).command == command

    def test_path_after_command(self):
        args = parse_args(["toggle", "../proj"])
        assert args.command == "toggle"
        assert args.path == "../proj"

    def test_follow_help_mentions_exit(self, capsys):
        with pytest.raises(SystemExit):
            parse_args(["--help"])
        assert "abandoned when ocnvim exits" in " ".join(capsys.readouterr().out.split())

    def test_all_config_flags(self):
        args = parse_args(
            [
                "start",
                "--config-dir",
                "/tmp/ocnvim",
                "--nvim",
                "/tmp/nvim.sock",
                "--provider",
                "tmux",
                "--command",
                "opencode --model x",
                "--port",
                "4096",
                "--no-events",
                "--follow",
            ]
        )
        assert args.command == "start"
        assert str(args.config_dir) == "/tmp/ocnvim"
        assert args.nvim == "/tmp/nvim.sock"
        assert args.provider == "tmux"
        assert args.opencode_command == "opencode --model x"
        assert args.port == 4096
        assert args.no_events is True
        assert args.follow is True

    @pytest.mark.parametrize(
        "argv",
        [
            pytest.param(["--nonexistent"], id="unknown_flag"),
            pytest.param(["launch"], id="invalid_command"),
            pytest.param(["--log-level", "XYZZY"], id="invalid_log_level"),
            pytest.param(["--port", "0"], id="zero_port"),
            pytest.param(["--port", "70000"], id="port_too_large"),
            pytest.param(["--port", "abc"], id="non_numeric_port"),
        ],
    )
    def test_invalid_args_raise(self, argv):
        with pytest.raises(SystemExit, match="2"):
            parse_args(argv)


class TestApplyArgsToEnv:
    def test_verbose_sets_debug(self):
        apply_args_to_env(parse_args(["-v"]))
        assert os.environ["OCNVIM_LOG_LEVEL"] == "DEBUG"

    def test_log_level_sets_env(self):
        apply_args_to_env(parse_args(["--log-level", "WARNING"]))
        assert os.environ["OCNVIM_LOG_LEVEL"] == "WARNING"

    def test_verbose_overrides_log_level(self):
        apply_args_to_env(parse_args(["-v", "--log-level", "ERROR"]))
        assert os.environ["OCNVIM_LOG_LEVEL"] == "DEBUG"

    def test_config_dir_resolved(self, tmp_path):
        apply_args_to_env(parse_args(["--config-dir", str(tmp_path)]))
        assert os.environ["OCNVIM_DIR"] == str(tmp_path.resolve())

    def test_no_events(self):
        apply_args_to_env(parse_args(["--no-events"]))
        assert os.environ["OCNVIM_EVENTS"] == "false"

    def test_none_flags_dont_overwrite_env(self, monkeypatch):
        monkeypatch.setenv("OCNVIM_PROVIDER", "from-env")
        apply_args_to_env(parse_args([]))
        assert os.environ["OCNVIM_PROVIDER"] == "from-env"

    def test_flag_overwrites_env(self, monkeypatch):
        monkeypatch.setenv("OCNVIM_PROVIDER", "from-env")
        apply_args_to_env(parse_args(["--provider", "kitty"]))
        assert os.environ["OCNVIM_PROVIDER"] == "kitty"

    def test_all_flag_env_mappings(self):
        apply_args_to_env(
            parse_args(
                [
                    "--nvim",
                    "/tmp/nvim.sock",
                    "--provider",
                    "wezterm",
                    "--command",
                    "oc",
                    "--port",
                    "5000",
                ]
            )
        )
        assert os.environ["NVIM"] == "/tmp/nvim.sock"
        assert os.environ["OCNVIM_PROVIDER"] == "wezterm"
        assert os.environ["OPENCODE_COMMAND"] == "oc"
        assert os.environ["OPENCODE_PORT"] == "5000"
