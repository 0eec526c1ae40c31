from __future__ import annotations

import argparse
from pathlib import Path

import pytest

import create_volatility_profile as cvp
from conftest import FakeRunner


def test_defaults_match_debian_behaviour() -> None:
    args = cvp.build_parser().parse_args([])
    config = cvp.config_from_args(args)

    assert config.package_manager == "apt-get"
    assert config.update_args == ("update",)
    assert config.install_args == ("install", "-y")
    assert config.package_map == cvp.DEFAULT_PACKAGE_MAP
    assert config.log_file == "create_volatility_profile.log"
    assert config.strict is False


def test_package_manager_options() -> None:
    args = cvp.build_parser().parse_args([
        "--package-manager", "dnf",
        "--update-command", "makecache",
        "--install-command", "install -y --setopt=install_weak_deps=False",
        "--package", "gcc=gcc",
        "--package", "dwarfdump=libdwarf-tools",
        "--headers-package", "kernel-devel-{kernel}",
        "-k", "6.1.0-13-amd64",
    ])
    config = cvp.config_from_args(args)

    assert config.package_manager == "dnf"
    assert config.update_args == ("makecache",)
    assert config.install_args == ("install", "-y", "--setopt=install_weak_deps=False")
    assert config.package_map["gcc"] == "gcc"
    assert config.package_map["dwarfdump"] == "libdwarf-tools"
    assert config.package_map["nm"] == "binutils"
    assert config.headers_package == "kernel-devel-{kernel}"
    assert config.kernel_version == "6.1.0-13-amd64"


@pytest.mark.parametrize("value", ["gcc", "=gcc", "gcc="])
def test_bad_package_override_rejected(value: str) -> None:
    with pytest.raises(argparse.ArgumentTypeError):
        cvp.parse_package_overrides([value])


def test_main_bad_package_is_usage_error(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cvp.main(["--package", "nonsense", "--log-file", str(tmp_path / "x.log")])
    assert excinfo.value.code == cvp.EXIT_USAGE


@pytest.mark.parametrize("option", ["--update-command", "--install-command"])
def test_main_unbalanced_quote_is_usage_error(tmp_path: Path, option: str) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cvp.main(["-q", option, "'update", "--log-file", str(tmp_path / "x.log")])
    assert excinfo.value.code == cvp.EXIT_USAGE


@pytest.mark.parametrize("template", ["linux-headers-{version}", "linux-headers-{0}", "linux-headers-{kernel"])
def test_main_bad_headers_template_is_usage_error(tmp_path: Path, template: str,
                                                  monkeypatch: pytest.MonkeyPatch) -> None:
    runner = FakeRunner()
    monkeypatch.setattr(cvp, "CommandRunner", lambda timeout=None: runner)

    with pytest.raises(SystemExit) as excinfo:
        cvp.main(["-q", "--headers-package", template, "--log-file", str(tmp_path / "x.log")])

    assert excinfo.value.code == cvp.EXIT_USAGE
    assert runner.calls == []


def test_headers_template_with_kernel_placeholder_accepted() -> None:
    assert cvp.check_headers_template("kernel-devel-{kernel}") == "kernel-devel-{kernel}"


def test_main_unusable_log_file_is_environment_error(tmp_path: Path,
                                                     capsys: pytest.CaptureFixture[str]) -> None:
    code = cvp.main(["-q", "--log-file", str(tmp_path)])

    assert code == cvp.EXIT_ENVIRONMENT
    assert "cannot open log file" in capsys.readouterr().err


def test_main_environment_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def no_release(config):
        raise cvp.ProfileError("Cannot determine OS release", cvp.EXIT_ENVIRONMENT)

    monkeypatch.setattr(cvp, "resolve_host_facts", no_release)
    log_file = tmp_path / "run.log"

    code = cvp.main(["-q", "--log-file", str(log_file)])

    assert code == cvp.EXIT_ENVIRONMENT
    assert "ERROR: Cannot determine OS release - aborting" in log_file.read_text()


def test_main_returns_clone_exit_code(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    runner = FakeRunner(available=cvp.REQUIRED_EXECUTABLES, failures={"git": 128})
    facts = cvp.HostFacts("host1", "Ubuntu22.04", "0.0.0-does-not-exist", "x86_64")
    monkeypatch.setattr(cvp, "CommandRunner", lambda timeout=None: runner)
    monkeypatch.setattr(cvp, "resolve_host_facts", lambda config: facts)
    monkeypatch.setattr(cvp.os, "geteuid", lambda: 0)
    log_file = tmp_path / "run.log"

    code = cvp.main(["-q", "-w", str(tmp_path), "--log-file", str(log_file)])

    assert code == cvp.EXIT_CLONE
    assert runner.commands("make") == []
    log = log_file.read_text()
    assert "Profile name: host1-Ubuntu22.04-0.0.0-does-not-exist-x86_64.zip" in log
    assert "failed at step 'repository'" in log
