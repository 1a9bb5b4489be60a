"""Tests for the providers that run inside Neovim: terminal and snacks."""

import pytest

from conftest import FakeHost
from ocnvim.providers import ProviderOpts
from ocnvim.providers.snacks import SnacksProvider
from ocnvim.providers.terminal import TerminalProvider


@pytest.fixture
def root(tmp_path, monkeypatch) -> str:
    monkeypatch.setattr(
        "ocnvim.providers.base.Provider._project_root", lambda self: str(tmp_path)
    )
    return str(tmp_path)


class TestTerminalProvider:
    HANDLE = "ocnvim_terminal_handle"

    def test_start_opens_split_and_stores_buffer(self, root) -> None:
        host = FakeHost()
        host.lua_results = [12]
        provider = TerminalProvider.new(ProviderOpts(port=4096), host)
        provider.start()
        code, args = host.lua_calls[-1]
        assert "jobstart" in code
        assert args == ("opencode --port 4096", root, "botright vsplit")
        assert host.vars[self.HANDLE] == 12

    def test_start_skips_when_job_alive(self, root) -> None:
        host = FakeHost()
        host.vars[self.HANDLE] = 12
        host.lua_results = [True]
        TerminalProvider.new(ProviderOpts(), host).start()
        assert len(host.lua_calls) == 1
        assert "jobwait" in host.lua_calls[0][0]

    def test_start_replaces_exited_job(self, root) -> None:
        host = FakeHost()
        host.vars[self.HANDLE] = 12
        host.lua_results = [False, 15]
        TerminalProvider.new(ProviderOpts(), host).start()
        assert host.vars[self.HANDLE] == 15

    def test_toggle_hides_live_buffer(self, root) -> None:
        host = FakeHost()
        host.vars[self.HANDLE] = 12
        host.lua_results = [True, "hidden"]
        TerminalProvider.new(ProviderOpts(terminal_split="vsplit"), host).toggle()
        code, args = host.lua_calls[-1]
        assert "nvim_win_hide" in code
        assert args == (12, "vsplit")
        assert host.vars[self.HANDLE] == 12

    def test_toggle_starts_when_absent(self, root) -> None:
        host = FakeHost()
        host.lua_results = [3]
        TerminalProvider.new(ProviderOpts(), host).toggle()
        assert host.vars[self.HANDLE] == 3

    def test_stop_deletes_buffer_and_clears_handle(self, root) -> None:
        host = FakeHost()
        host.vars[self.HANDLE] = 12
        host.lua_results = [True]
        TerminalProvider.new(ProviderOpts(), host).stop()
        code, args = host.lua_calls[-1]
        assert "jobstop" in code
        assert args == (12,)
        assert self.HANDLE not in host.vars

    def test_stop_without_handle_is_noop(self, root) -> None:
        host = FakeHost()
        TerminalProvider.new(ProviderOpts(), host).stop()
        assert host.lua_calls == []

    def test_health(self) -> None:
        assert TerminalProvider.health(FakeHost(is_editor=True)).ok
        assert not TerminalProvider.health(FakeHost(is_editor=False)).ok
        assert not TerminalProvider.health(None).ok


class TestSnacksProvider:
    HANDLE = "ocnvim_snacks_handle"

    def test_toggle_passes_cmd_and_root(self, root) -> None:
        host = FakeHost()
        SnacksProvider.new(ProviderOpts(), host).toggle()
        code, args = host.lua_calls[-1]
        assert "snacks.terminal" in code
        assert args == ("opencode", root)
        assert host.vars[self.HANDLE] == root

    def test_reuses_stored_cwd(self, root) -> None:
        host = FakeHost()
        host.vars[self.HANDLE] = "/elsewhere"
        SnacksProvider.new(ProviderOpts(), host).toggle()
        assert host.lua_calls[-1][1] == ("opencode", "/elsewhere")

    def test_start(self, root) -> None:
        host = FakeHost()
        host.lua_results = [True]
        SnacksProvider.new(ProviderOpts(cmd="oc"), host).start()
        code, args = host.lua_calls[-1]
        assert "terminal.open" in code
        assert args == ("oc", root)

    def test_stop_only_after_own_start(self, root) -> None:
        host = FakeHost()
        provider = SnacksProvider.new(ProviderOpts(), host)
        provider.stop()
        assert host.lua_calls == []
        provider.start()
        host.lua_results = [True]
        provider.stop()
        assert "term:close" in host.lua_calls[-1][0]
        assert self.HANDLE not in host.vars

    def test_health_requires_module(self) -> None:
        host = FakeHost()
        result = SnacksProvider.health(host)
        assert not result.ok
        assert "not installed" in result.message

    def test_health_disabled_terminal(self) -> None:
        host = FakeHost()
        host.modules.add("snacks")
        host.lua_results = [False]
        result = SnacksProvider.health(host)
        assert not result.ok
        assert "disabled" in result.message

    def test_health_ok(self) -> None:
        host = FakeHost()
        host.modules.add("snacks")
        host.lua_results = [True]
        assert SnacksProvider.health(host).ok

    def test_health_rpc_failure(self) -> None:
        class _Broken(FakeHost):
            def has_lua_module(self, name):
                raise OSError("socket closed")

        result = SnacksProvider.health(_Broken())
        assert not result.ok
        assert "socket closed" in result.message

    def test_health_without_editor(self) -> None:
        assert not SnacksProvider.health(FakeHost(is_editor=False)).ok
