"""Project root detection.

``get_project_root()`` walks a fixed priority chain and returns the first hit:
  1. the editor's first positional argument, if it names a directory
  2. the git toplevel of the current directory
  3. the directory of the current buffer's file
  4. the root_dir of the first attached language server that reports one
  5. the current working directory

Every probe failure falls through to the next step; the function never
raises. Nothing is cached, so the answer follows buffer switches.
"""

import os
import subprocess
from collections.abc import Callable
from typing import Any

import structlog

from .host import EditorHost

logger = structlog.get_logger()

_GIT_TOPLEVEL = ["git", "rev-parse", "--show-toplevel"]
_GIT_TIMEOUT = 5.0

Runner = Callable[..., subprocess.CompletedProcess[str]]


def _editor_path(host: EditorHost, path: str) -> str:
    # relative paths are relative to the editor, not this process
    if not os.path.isabs(path):
        path = os.path.join(host.cwd(), path)
    return os.path.normpath(path)


def _from_argv(host: EditorHost) -> str | None:
    arg = host.argv0()
    if not arg or not arg.strip():
        return None
    path = _editor_path(host, arg)
    if not os.path.isdir(path):
        return None
    return path.rstrip(os.sep) or os.sep


def _from_git(host: EditorHost, run: Runner) -> str | None:
    result = run(
        _GIT_TOPLEVEL,
        cwd=host.cwd(),
        capture_output=True,
        text=True,
        timeout=_GIT_TIMEOUT,
    )
    if result.returncode != 0:
        return None
    lines = (result.stdout or "").splitlines()
    if lines and lines[0]:
        return lines[0]
    return None


def _from_buffer(host: EditorHost) -> str | None:
    name = host.buffer_path()
    if not name:
        return None
    buf_dir = os.path.dirname(_editor_path(host, name))
    if os.path.isdir(buf_dir):
        return buf_dir
    return None


def _from_lsp(host: EditorHost) -> str | None:
    for root_dir in host.lsp_root_dirs():
        if root_dir:
            return root_dir
    return None


def _probe(label: str, fn: Callable[..., str | None], *args: Any) -> str | None:
    try:
        return fn(*args)
    except Exception as e:  # host RPC errors surface as arbitrary types
        logger.debug("Root probe %s failed: %r", label, e)
    return None


def get_project_root(host: EditorHost, *, run: Runner = subprocess.run) -> str:
    """Return the project directory for *host*; see module docstring for priority."""
    for label, fn, args in (
        ("argv", _from_argv, (host,)),
        ("git", _from_git, (host, run)),
        ("buffer", _from_buffer, (host,)),
        ("lsp", _from_lsp, (host,)),
    ):
        root = _probe(label, fn, *args)
        if root:
            logger.debug("Project root from %s: %s", label, root)
            return root

    cwd = _probe("cwd", host.cwd)
    return cwd or os.getcwd()
