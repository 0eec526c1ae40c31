from __future__ import annotations

import subprocess
import sys
from pathlib import Path

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

import create_volatility_profile as cvp


class FakeRunner:
    """Stands in for CommandRunner: records calls, never touches the host."""

    def __init__(self, available=(), failures=None, handlers=None):
        self.available = set(available)
        self.failures = dict(failures or {})
        self.handlers = dict(handlers or {})
        self.calls = []

    def which(self, name):
        return f"/usr/bin/{name}" if name in self.available else None

    def run(self, cmd, cwd=None, input=None):
        cmd = list(cmd)
        self.calls.append((cmd, cwd, input))
        handler = self.handlers.get(cmd[0])
        if handler is not None:
            return handler(cmd, cwd, input)
        code = self.failures.get(cmd[0], 0)
        return subprocess.CompletedProcess(cmd, code, "", "boom" if code else "")

    def commands(self, name):
        return [cmd for cmd, _, _ in self.calls if cmd[0] == name]


@pytest.fixture
def facts() -> cvp.HostFacts:
    return cvp.HostFacts(
        hostname="host1",
        os_release="Ubuntu22.04",
        kernel_version="5.15.0-generic",
        kernel_arch="x86_64",
    )


@pytest.fixture
def config(tmp_path: Path) -> cvp.ProfileConfig:
    (tmp_path / "boot").mkdir()
    (tmp_path / "modules").mkdir()
    (tmp_path / "work").mkdir()
    return cvp.ProfileConfig(
        work_dir=str(tmp_path / "work"),
        boot_dir=str(tmp_path / "boot"),
        modules_dir=str(tmp_path / "modules"),
        log_file=str(tmp_path / "profile.log"),
        quiet=True,
    )


@pytest.fixture
def make_ctx(config: cvp.ProfileConfig, facts: cvp.HostFacts):
    def _make(runner: FakeRunner) -> cvp.ExecutionContext:
        logger = cvp.setup_logging(config.log_file, quiet=True)
        return cvp.ExecutionContext(config=config, facts=facts, runner=runner, logger=logger)

    return _make
