"""Contract tests for the provider model.

Every built-in provider must pass these tests. PROVIDER_FIXTURES holds the
five built-in classes plus StubProvider, a minimal provider used by the
facade and selector tests.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from conftest import FakeHost
from ocnvim.providers import (
    CAPABILITIES,
    HealthResult,
    Provider,
    ProviderOpts,
    build_command,
    capabilities_of,
    has_capability,
    list_providers,
    normalize_health,
)

# ── Stub provider (minimal conforming implementation) ────────────────────


class StubProvider(Provider):
    """Records calls; every capability present."""

    name = "stub"

    def __init__(self, opts: ProviderOpts | None = None, host=None) -> None:
        super().__init__(opts or ProviderOpts(), host or FakeHost())
        self.calls: list[str] = []

    @classmethod
    def new(cls, opts, host) -> StubProvider:
        return cls(opts, host)

    @classmethod
    def health(cls, host=None) -> HealthResult:
        return HealthResult.passed("stub ok")

    def toggle(self) -> None:
        self.calls.append("toggle")

    def start(self) -> None:
        self.calls.append("start")

    def stop(self) -> None:
        self.calls.append("stop")


class StopOnlyProvider(Provider):
    name = "stop-only"

    def __init__(self) -> None:
        super().__init__(ProviderOpts(), FakeHost())
        self.calls: list[str] = []

    def stop(self) -> None:
        self.calls.append("stop")


PROVIDER_FIXTURES: list[type[Provider]] = [StubProvider, *list_providers()]


@pytest.fixture(params=PROVIDER_FIXTURES, ids=lambda cls: cls.__name__)
def provider_cls(request: pytest.FixtureRequest) -> type[Provider]:
    return request.param


# ── Contract tests ───────────────────────────────────────────────────────


class TestProviderContract:
    def test_has_name(self, provider_cls) -> None:
        assert provider_cls.name

    def test_full_capability_set(self, provider_cls) -> None:
        assert capabilities_of(provider_cls) == frozenset(CAPABILITIES)

    def test_new_builds_instance(self, provider_cls) -> None:
        instance = provider_cls.new(ProviderOpts(port=4096), FakeHost())
        assert isinstance(instance, provider_cls)
        assert instance.cmd == "opencode --port 4096"

    def test_health_is_normalisable(self, provider_cls) -> None:
        result = normalize_health(provider_cls.health(FakeHost(is_editor=False)))
        assert isinstance(result, HealthResult)
        if not result.ok:
            assert result.message


class TestCapabilities:
    def test_base_class_has_none(self) -> None:
        assert capabilities_of(Provider) == frozenset()

    def test_partial_provider(self) -> None:
        provider = StopOnlyProvider()
        assert has_capability(provider, "stop")
        assert not has_capability(provider, "toggle")
        assert not has_capability(provider, "start")
        assert capabilities_of(provider) == {"stop"}

    def test_none_has_nothing(self) -> None:
        assert has_capability(None, "toggle") is False

    def test_non_callable_attribute_is_not_a_capability(self) -> None:
        class _Odd(Provider):
            toggle = "yes"

        assert not has_capability(_Odd, "toggle")


class TestBuildCommand:
    def test_no_port(self) -> None:
        assert build_command("opencode", None) == "opencode"

    def test_port_appended(self) -> None:
        assert build_command("opencode", 4096) == "opencode --port 4096"

    @pytest.mark.parametrize(
        "cmd",
        ["opencode --port 1234", "opencode --port=1234", "opencode --port 1234 --x"],
    )
    def test_existing_port_kept(self, cmd: str) -> None:
        assert build_command(cmd, 4096) == cmd

    def test_similar_flag_is_not_port(self) -> None:
        assert build_command("opencode --portal", 1) == "opencode --portal --port 1"


class TestHealthResult:
    def test_immutable(self) -> None:
        result = HealthResult.passed()
        with pytest.raises(FrozenInstanceError):
            result.ok = False  # type: ignore[misc]

    @pytest.mark.parametrize(
        ("raw", "ok", "message", "advice"),
        [
            pytest.param(True, True, "", (), id="true"),
            pytest.param("broken", False, "broken", (), id="error-string"),
            pytest.param(("broken", "fix it"), False, "broken", ("fix it",), id="str-advice"),
            pytest.param(
                ("broken", ["a", "b"]), False, "broken", ("a", "b"), id="list-advice"
            ),
            pytest.param((True, None), True, "", (), id="true-tuple"),
            pytest.param(None, False, "health check failed", (), id="none"),
            pytest.param(False, False, "health check failed", (), id="false"),
        ],
    )
    def test_normalize(self, raw, ok, message, advice) -> None:
        result = normalize_health(raw)
        assert (result.ok, result.message, result.advice) == (ok, message, advice)

    def test_passthrough(self) -> None:
        result = HealthResult.failed("x", "y")
        assert normalize_health(result) is result


class TestRunCli:
    def test_nonzero_exit_raises(self, monkeypatch) -> None:
        from conftest import completed
        from ocnvim.providers import ProviderCommandError
        from ocnvim.providers.base import run_cli

        monkeypatch.setattr(
            "ocnvim.providers.base.subprocess.run",
            lambda args, **kw: completed(args, 1, "", "no server running\n"),
        )
        with pytest.raises(ProviderCommandError) as exc_info:
            run_cli(["tmux", "kill-pane", "-t", "%1"])
        assert exc_info.value.returncode == 1
        assert exc_info.value.stderr == "no server running"
        assert "`tmux kill-pane -t %1` exited with 1" in str(exc_info.value)

    def test_unchecked_returns_result(self, monkeypatch) -> None:
        from conftest import completed
        from ocnvim.providers.base import run_cli

        monkeypatch.setattr(
            "ocnvim.providers.base.subprocess.run",
            lambda args, **kw: completed(args, 2),
        )
        assert run_cli(["kitty", "@", "ls"], check=False).returncode == 2

    def test_timeout_raises_command_error(self, monkeypatch) -> None:
        import subprocess

        from ocnvim.providers import ProviderCommandError
        from ocnvim.providers.base import run_cli

        def _hang(args, **kw):
            raise subprocess.TimeoutExpired(args, kw["timeout"])

        monkeypatch.setattr("ocnvim.providers.base.subprocess.run", _hang)
        with pytest.raises(ProviderCommandError, match="timed out after 0.5s"):
            run_cli(["wezterm", "cli", "list"], check=False, timeout=0.5)
