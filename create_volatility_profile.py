#!/usr/bin/env python3
"""
Volatility Linux Profile Builder
================================
Creates a Volatility 2.x memory profile for the running Debian/Ubuntu kernel.

A profile is a ZIP bundle holding the kernel data structure layouts
(module.dwarf, compiled from Volatility's module.c stub) and the kernel
System.map. Run this on the system the memory dump came from, or on a
like-for-like system (same CPU architecture, OS and kernel).

Steps:
  1. Check required tools (git, zip, dwarfdump, gcc, make, nm) and install
     missing ones with the package manager
  2. Check the kernel headers for the running kernel
  3. Check the kernel System.map, generating it from vmlinuz if missing
  4. Clone the Volatility source code
  5. Build module.dwarf with make
  6. Bundle module.dwarf and System.map into the profile ZIP

Requirements:
  - Python 3.8+
  - root, or sudo available
  - Internet access (package mirrors and github.com)

Usage:
    python create_volatility_profile.py
    python create_volatility_profile.py --output-dir ./profiles --strict

References:
    https://github.com/volatilityfoundation/volatility/wiki/Linux#creating-a-new-profile
"""

import argparse
import logging
import os
import platform
import shlex
import shutil
import socket
import subprocess
import sys
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

__version__ = "1.0.0"


# ============================================================================
# Exit Codes
# ============================================================================

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_USAGE = 2
EXIT_ENVIRONMENT = 3
EXIT_CACHE_UPDATE = 4
EXIT_INSTALL = 5
EXIT_CLONE = 6
EXIT_ARCHIVE = 7
EXIT_WARNINGS = 8
EXIT_INTERRUPTED = 130

EXIT_CODE_DESCRIPTIONS = {
    EXIT_OK: "Profile created",
    EXIT_UNEXPECTED: "Unexpected error",
    EXIT_USAGE: "Invalid command line",
    EXIT_ENVIRONMENT: "Host facts could not be resolved or root/sudo unavailable",
    EXIT_CACHE_UPDATE: "Package cache update failed",
    EXIT_INSTALL: "Package install failed",
    EXIT_CLONE: "Volatility repository clone failed",
    EXIT_ARCHIVE: "Profile ZIP could not be created",
    EXIT_WARNINGS: "Finished with warnings (--strict)",
    EXIT_INTERRUPTED: "Interrupted by user",
}


# ============================================================================
# Configuration
# ============================================================================

VOLATILITY_REPO = "https://github.com/volatilityfoundation/volatility.git"
DEFAULT_LOG_FILE = "create_volatility_profile.log"

# Executables the build needs, in the order they are checked
REQUIRED_EXECUTABLES = ["git", "zip", "dwarfdump", "gcc", "make", "nm"]

# Executable -> package that provides it (Debian/Ubuntu names)
DEFAULT_PACKAGE_MAP = {
    "git": "git",
    "gcc": "build-essential",
    "make": "build-essential",
    "zip": "zip",
    "dwarfdump": "dwarfdump",
    "nm": "binutils",
}

DEFAULT_HEADERS_PACKAGE = "linux-headers-{kernel}"

# Paths inside the Volatility checkout
MODULE_BUILD_DIR = os.path.join("tools", "linux")
MODULE_DWARF = os.path.join(MODULE_BUILD_DIR, "module.dwarf")
PROFILE_OVERLAY_DIR = os.path.join("volatility", "plugins", "overlays", "linux")


@dataclass
class ProfileConfig:
    """Everything the profile build reads from outside the host itself."""
    kernel_version: Optional[str] = None
    kernel_arch: Optional[str] = None
    output_dir: Optional[str] = None
    work_dir: str = "."
    package_manager: str = "apt-get"
    update_args: Tuple[str, ...] = ("update",)
    install_args: Tuple[str, ...] = ("install", "-y")
    package_map: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PACKAGE_MAP))
    headers_package: str = DEFAULT_HEADERS_PACKAGE
    repo_url: str = VOLATILITY_REPO
    repo_dir_name: str = "volatility"
    log_file: str = DEFAULT_LOG_FILE
    lsb_release_path: str = "/etc/lsb-release"
    os_release_path: str = "/etc/os-release"
    boot_dir: str = "/boot"
    modules_dir: str = "/lib/modules"
    strict: bool = False
    command_timeout: Optional[float] = None
    quiet: bool = False

    @property
    def repo_dir(self) -> str:
        return os.path.abspath(os.path.join(self.work_dir, self.repo_dir_name))

    @property
    def profile_dir(self) -> str:
        """Directory the profile ZIP is written to."""
        if self.output_dir:
            return os.path.abspath(self.output_dir)
        return os.path.join(self.repo_dir, PROFILE_OVERLAY_DIR)


# ============================================================================
# Errors and Step Results
# ============================================================================

class ProfileError(Exception):
    """Fatal error raised outside the step pipeline, carrying an exit code."""

    def __init__(self, message: str, exit_code: int = EXIT_UNEXPECTED):
        super().__init__(message)
        self.exit_code = exit_code


class StepStatus(Enum):
    OK = "ok"
    WARNING = "warning"
    FATAL = "fatal"


@dataclass
class StepResult:
    """Outcome of one pipeline step."""
    step: str
    status: StepStatus
    message: str = ""
    exit_code: int = EXIT_OK

    @classmethod
    def ok(cls, step: str, message: str = "") -> "StepResult":
        return cls(step, StepStatus.OK, message)

    @classmethod
    def warning(cls, step: str, message: str) -> "StepResult":
        return cls(step, StepStatus.WARNING, message)

    @classmethod
    def fatal(cls, step: str, message: str, exit_code: int) -> "StepResult":
        return cls(step, StepStatus.FATAL, message, exit_code)

    @property
    def is_fatal(self) -> bool:
        return self.status is StepStatus.FATAL


# ============================================================================
# Console Styling
# ============================================================================

class Style:
    """ANSI escape codes for console styling."""
    ENABLED = sys.stdout.isatty()

    RESET = "\033[0m" if ENABLED else ""
    BOLD = "\033[1m" if ENABLED else ""

    RED = "\033[31m" if ENABLED else ""
    YELLOW = "\033[33m" if ENABLED else ""
    MAGENTA = "\033[35m" if ENABLED else ""

    ERROR = RED
    WARNING = YELLOW
    HEADER = MAGENTA


def print_banner():
    """Print the tool banner."""
    print(f"\n{Style.HEADER}{Style.BOLD}{'=' * 60}{Style.RESET}")
    print(f"{Style.HEADER}{Style.BOLD}  Volatility Linux Profile Builder v{__version__}{Style.RESET}")
    print(f"{Style.HEADER}{Style.BOLD}{'=' * 60}{Style.RESET}\n")


# ============================================================================
# Logging
# ============================================================================

LOGGER_NAME = "create_volatility_profile"


class RFC3339Formatter(logging.Formatter):
    """Formats records as `[<rfc3339 timestamp>]: <message>`.

    The timestamp matches `date --rfc-3339=seconds`, e.g.
    `2024-05-01 10:11:12+00:00`.
    """

    def __init__(self):
        super().__init__("[%(asctime)s]: %(message)s")

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created).astimezone()
        return stamp.isoformat(sep=" ", timespec="seconds")


class ConsoleFormatter(RFC3339Formatter):
    """Same line format as the log file, coloured by level."""

    COLORS = {
        logging.ERROR: Style.ERROR,
        logging.WARNING: Style.WARNING,
    }

    def format(self, record):
        line = super().format(record)
        color = self.COLORS.get(record.levelno)
        if color:
            return f"{color}{line}{Style.RESET}"
        return line


def setup_logging(log_file: str, quiet: bool = False) -> logging.Logger:
    """
    Configure the tool logger.

    The log file is opened in append mode so re-runs add to it. Unless quiet,
    every INFO line is echoed to the console as well.

    Args:
        log_file: Path of the log file
        quiet: Disable console output

    Returns:
        The configured logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Drop handlers from an earlier setup in the same process
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    log_dir = os.path.dirname(os.path.abspath(log_file))
    os.makedirs(log_dir, exist_ok=True)

    fh = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(RFC3339Formatter())
    logger.addHandler(fh)

    if not quiet:
        ch = logging.StreamHandler(sys.stdout)
        ch.setLevel(logging.INFO)
        ch.setFormatter(ConsoleFormatter())
        logger.addHandler(ch)

    return logger


# ============================================================================
# Command Runner
# ============================================================================

class CommandRunner:
    """Runs external commands. Never raises for a failing command."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def which(self, name: str) -> Optional[str]:
        return shutil.which(name)

    def run(self, cmd: Sequence[str], cwd: Optional[str] = None,
            input: Optional[str] = None) -> subprocess.CompletedProcess:
        """
        Run a command to completion with captured text output.

        A missing executable is reported as return code 127 and a timeout as
        124, the same codes a shell would use.
        """
        cmd = list(cmd)
        try:
            return subprocess.run(
                cmd,
                cwd=cwd,
                input=input,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            return subprocess.CompletedProcess(cmd, 127, "", str(e))
        except subprocess.TimeoutExpired:
            return subprocess.CompletedProcess(cmd, 124, "", f"Timed out after {self.timeout}s")


# ============================================================================
# Host Facts
# ============================================================================

@dataclass
class HostFacts:
    hostname: str
    os_release: str
    kernel_version: str
    kernel_arch: str

    @property
    def profile_name(self) -> str:
        """`<hostname>-<os_release>-<kernel_ver>-<kernel_arch>.zip`"""
        return f"{self.hostname}-{self.os_release}-{self.kernel_version}-{self.kernel_arch}.zip"


def read_release_value(path: str, key: str) -> Optional[str]:
    """
    Read KEY=value from a shell-style release file.

    Spaces and double quotes are removed from the value, so
    `DISTRIB_DESCRIPTION="Ubuntu 22.04.3 LTS"` gives `Ubuntu22.04.3LTS`.

    Returns:
        The cleaned value, or None if the file or key is missing
    """
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except OSError:
        return None

    for line in lines:
        name, sep, value = line.strip().partition("=")
        if sep and name.strip() == key:
            cleaned = value.replace(" ", "").replace('"', "")
            return cleaned or None
    return None


def resolve_os_release(config: ProfileConfig) -> str:
    """OS description from lsb-release, falling back to os-release."""
    release = (read_release_value(config.lsb_release_path, "DISTRIB_DESCRIPTION")
               or read_release_value(config.os_release_path, "PRETTY_NAME"))
    if release:
        # Ends up in a filename ("Debian GNU/Linux 12")
        return release.replace("/", "")
    raise ProfileError(
        f"Cannot determine OS release: no DISTRIB_DESCRIPTION in {config.lsb_release_path} "
        f"and no PRETTY_NAME in {config.os_release_path}",
        EXIT_ENVIRONMENT,
    )


def resolve_host_facts(config: ProfileConfig) -> HostFacts:
    uname = platform.uname()
    return HostFacts(
        hostname=socket.gethostname(),
        os_release=resolve_os_release(config),
        kernel_version=config.kernel_version or uname.release,
        kernel_arch=config.kernel_arch or uname.machine,
    )


def resolve_privilege_prefix(runner: CommandRunner) -> List[str]:
    """Empty when running as root, otherwise sudo."""
    if os.geteuid() == 0:
        return []
    if runner.which("sudo"):
        return ["sudo"]
    raise ProfileError("Not running as root and sudo is not available", EXIT_ENVIRONMENT)


# ============================================================================
# Execution Context
# ============================================================================

@dataclass
class ExecutionContext:
    """State shared by every pipeline step for a single run."""
    config: ProfileConfig
    facts: HostFacts
    runner: CommandRunner
    logger: logging.Logger
    sudo: List[str] = field(default_factory=list)
    package_cache_updated: bool = False
    installed_packages: Set[str] = field(default_factory=set)
    warnings: List[StepResult] = field(default_factory=list)

    @property
    def system_map(self) -> str:
        return os.path.join(self.config.boot_dir, f"System.map-{self.facts.kernel_version}")

    @property
    def vmlinuz(self) -> str:
        return os.path.join(self.config.boot_dir, f"vmlinuz-{self.facts.kernel_version}")

    @property
    def headers_dir(self) -> str:
        return os.path.join(self.config.modules_dir, self.facts.kernel_version)

    @property
    def profile_path(self) -> str:
        return os.path.join(self.config.profile_dir, self.facts.profile_name)

    def run(self, cmd: Sequence[str], cwd: Optional[str] = None,
            input: Optional[str] = None) -> subprocess.CompletedProcess:
        self.logger.debug(f"Running: {shlex.join(cmd)}" + (f" (in {cwd})" if cwd else ""))
        result = self.runner.run(cmd, cwd=cwd, input=input)
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            self.logger.debug(f"Exit code {result.returncode}: {detail[-2000:]}")
        return result

    def run_privileged(self, cmd: Sequence[str], cwd: Optional[str] = None,
                       input: Optional[str] = None) -> subprocess.CompletedProcess:
        return self.run(self.sudo + list(cmd), cwd=cwd, input=input)


# ============================================================================
# Pipeline Steps
# ============================================================================

def install_package(ctx: ExecutionContext, package: str, step: str) -> StepResult:
    """
    Install a package, updating the package cache first if this run has not
    done so yet. A package already installed during this run is skipped.
    """
    if package in ctx.installed_packages:
        return StepResult.ok(step, f"{package} already installed during this run")

    pm = ctx.config.package_manager

    if not ctx.package_cache_updated:
        result = ctx.run_privileged([pm, *ctx.config.update_args])
        if result.returncode != 0:
            return StepResult.fatal(step, f"{pm} update failed - aborting", EXIT_CACHE_UPDATE)
        ctx.package_cache_updated = True

    result = ctx.run_privileged([pm, *ctx.config.install_args, package])
    if result.returncode != 0:
        return StepResult.fatal(step, f"Unable to install {package} package - aborting", EXIT_INSTALL)

    ctx.installed_packages.add(package)
    return StepResult.ok(step, f"{package} installed")


def check_dependencies(ctx: ExecutionContext) -> StepResult:
    step = "dependencies"
    ctx.logger.info("Checking package dependencies")

    for dependency in REQUIRED_EXECUTABLES:
        if ctx.runner.which(dependency):
            ctx.logger.info(f"{dependency} dependency exists")
            continue

        package = ctx.config.package_map.get(dependency, dependency)
        ctx.logger.info(
            f"{dependency} dependency does not exist - attempting install via {ctx.config.package_manager}"
        )
        result = install_package(ctx, package, step)
        if result.is_fatal:
            return result
        ctx.logger.info(f"{dependency} installed via {package} package")

    return StepResult.ok(step, "All dependencies present")


def check_kernel_headers(ctx: ExecutionContext) -> StepResult:
    step = "kernel headers"
    ctx.logger.info("Checking linux header dependency")

    if os.path.isdir(ctx.headers_dir):
        ctx.logger.info("Linux header files found")
        return StepResult.ok(step, ctx.headers_dir)

    package = ctx.config.headers_package.format(kernel=ctx.facts.kernel_version)
    ctx.logger.info(
        f"Linux header files not found - attempting install via {ctx.config.package_manager}"
    )
    result = install_package(ctx, package, step)
    if result.is_fatal:
        return result

    if not os.path.isdir(ctx.headers_dir):
        return StepResult.warning(
            step, f"{package} installed but {ctx.headers_dir} still does not exist"
        )

    ctx.logger.info(f"{ctx.headers_dir} installed via {package} package")
    return StepResult.ok(step, ctx.headers_dir)


def resolve_system_map(ctx: ExecutionContext) -> StepResult:
    """
    Make sure the kernel System.map exists, generating it with nm from the
    kernel image if it does not. Failures here are warnings: the run carries
    on and the profile may end up without a System.map.
    """
    step = "system map"
    ctx.logger.info("Checking system map dependency")

    if os.path.isfile(ctx.system_map):
        ctx.logger.info("Linux system map file found")
        return StepResult.ok(step, ctx.system_map)

    ctx.logger.info("Linux system map file not found - creating now")

    nm = ctx.run_privileged(["nm", ctx.vmlinuz])
    if nm.returncode != 0 or not nm.stdout.strip():
        return StepResult.warning(step, f"System map creation failed: nm {ctx.vmlinuz} produced no symbols")

    # /boot is root-owned, so the write goes through tee
    tee = ctx.run_privileged(["tee", ctx.system_map], input=nm.stdout)
    if tee.returncode != 0:
        return StepResult.warning(step, f"System map creation failed: could not write {ctx.system_map}")

    ctx.logger.info(f"Linux system map file created from {os.path.basename(ctx.vmlinuz)}")
    return StepResult.ok(step, ctx.system_map)


def fetch_repository(ctx: ExecutionContext) -> StepResult:
    step = "repository"
    repo_dir = ctx.config.repo_dir

    if os.path.exists(repo_dir):
        if os.path.isdir(os.path.join(repo_dir, ".git")):
            ctx.logger.info(f"Existing volatility checkout found at {repo_dir} - skipping clone")
            return StepResult.ok(step, repo_dir)
        return StepResult.fatal(
            step, f"{repo_dir} exists but is not a git checkout - aborting", EXIT_CLONE
        )

    ctx.logger.info("Downloading latest volatility source code from github")
    result = ctx.run(["git", "clone", "--depth", "1", ctx.config.repo_url, repo_dir])
    if result.returncode != 0:
        return StepResult.fatal(step, "Volatility github repo clone failed - aborting", EXIT_CLONE)

    ctx.logger.info("Volatility github repo cloned")
    return StepResult.ok(step, repo_dir)


def build_module(ctx: ExecutionContext) -> StepResult:
    """Compile module.c against the kernel headers and produce module.dwarf."""
    step = "module build"
    ctx.logger.info("Creating kernel data structures (vtypes)")

    build_dir = os.path.join(ctx.config.repo_dir, MODULE_BUILD_DIR)
    result = ctx.run(["make"], cwd=build_dir)
    if result.returncode != 0:
        return StepResult.warning(step, "Make module.dwarf failed")

    dwarf = os.path.join(ctx.config.repo_dir, MODULE_DWARF)
    if not os.path.isfile(dwarf):
        return StepResult.warning(step, f"make succeeded but {dwarf} was not produced")

    ctx.logger.info("Created module.dwarf using dwarfdump")
    return StepResult.ok(step, dwarf)


def bundle_profile(ctx: ExecutionContext) -> StepResult:
    """
    Zip module.dwarf and the System.map into the profile.

    Missing inputs are left out with a warning (partial profile). With no
    inputs at all, or if zip fails, the step is fatal.
    """
    step = "archive"
    repo_dir = ctx.config.repo_dir
    profile_dir = ctx.config.profile_dir

    inputs = []
    missing = []
    for member, path in ((MODULE_DWARF, os.path.join(repo_dir, MODULE_DWARF)),
                         (ctx.system_map, ctx.system_map)):
        if os.path.isfile(path):
            inputs.append(member)
        else:
            missing.append(path)

    if not inputs:
        return StepResult.fatal(step, "Zip bundle failed - no profile inputs exist", EXIT_ARCHIVE)

    try:
        os.makedirs(profile_dir, exist_ok=True)
    except OSError as e:
        return StepResult.fatal(step, f"Cannot create output directory {profile_dir}: {e}", EXIT_ARCHIVE)

    result = ctx.run_privileged(["zip", ctx.profile_path, *inputs], cwd=repo_dir)
    if result.returncode != 0:
        return StepResult.fatal(step, "Zip bundle failed - aborting", EXIT_ARCHIVE)

    ctx.logger.info("Volatility profile ZIP created")
    if missing:
        return StepResult.warning(
            step, "Partial profile created, missing: " + ", ".join(missing)
        )
    return StepResult.ok(step, ctx.profile_path)


def report_profile(ctx: ExecutionContext) -> StepResult:
    step = "report"
    try:
        size = os.path.getsize(ctx.profile_path)
    except OSError as e:
        return StepResult.fatal(step, f"Profile not found after zip: {e}", EXIT_ARCHIVE)

    ctx.logger.info(f"Profile directory: {ctx.config.profile_dir}")
    ctx.logger.info(f"Profile: {ctx.facts.profile_name} ({size:,} bytes)")
    return StepResult.ok(step, ctx.profile_path)


PIPELINE: List[Callable[[ExecutionContext], StepResult]] = [
    check_dependencies,
    check_kernel_headers,
    resolve_system_map,
    fetch_repository,
    build_module,
    bundle_profile,
    report_profile,
]


# ============================================================================
# Pipeline Runner
# ============================================================================

def run_pipeline(ctx: ExecutionContext,
                 steps: Optional[List[Callable[[ExecutionContext], StepResult]]] = None) -> int:
    """
    Run the steps in order and return the process exit code.

    A fatal result stops the run and its exit code is returned. Warnings are
    collected on the context and listed in the summary.
    """
    ctx.logger.info("Volatility profile creation started")
    ctx.logger.info(f"Profile name: {ctx.facts.profile_name}")

    if steps is None:
        steps = PIPELINE

    for step_fn in steps:
        result = step_fn(ctx)
        if result.status is StepStatus.WARNING:
            ctx.warnings.append(result)
            ctx.logger.warning(f"WARNING: {result.message} - continuing")
        elif result.is_fatal:
            ctx.logger.error(f"ERROR: {result.message}")
            ctx.logger.error(
                f"Volatility profile creation failed at step '{result.step}' (exit code {result.exit_code})"
            )
            return result.exit_code

    return finish(ctx)


def finish(ctx: ExecutionContext) -> int:
    if not ctx.warnings:
        ctx.logger.info("Volatility profile creation completed successfully")
        return EXIT_OK

    ctx.logger.warning(f"Volatility profile creation completed with {len(ctx.warnings)} warning(s):")
    for warning in ctx.warnings:
        ctx.logger.warning(f"  [{warning.step}] {warning.message}")

    if ctx.config.strict:
        ctx.logger.error("ERROR: warnings are fatal in strict mode")
        return EXIT_WARNINGS
    return EXIT_OK


# ============================================================================
# Command Line
# ============================================================================

def parse_package_overrides(values: List[str]) -> Dict[str, str]:
    """Parse repeated EXE=PKG options into a dict."""
    overrides = {}
    for value in values:
        exe, sep, package = value.partition("=")
        if not sep or not exe.strip() or not package.strip():
            raise argparse.ArgumentTypeError(f"Invalid --package value '{value}' (expected EXE=PKG)")
        overrides[exe.strip()] = package.strip()
    return overrides


def build_parser() -> argparse.ArgumentParser:
    exit_codes = "\n".join(f"  {code:<4} {desc}" for code, desc in EXIT_CODE_DESCRIPTIONS.items())
    parser = argparse.ArgumentParser(
        prog="create_volatility_profile",
        description="Create a Volatility Linux memory profile for the running kernel",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Build a profile for this host (writes into the volatility checkout)
  python create_volatility_profile.py

  # Write the profile somewhere else and fail on any warning
  python create_volatility_profile.py -o ./profiles --strict

  # Use apt instead of apt-get and a different headers package name
  python create_volatility_profile.py --package-manager apt \\
      --headers-package 'linux-headers-{{kernel}}'

Exit codes:
{exit_codes}
        """,
    )

    parser.add_argument('-k', '--kernel-version', default=None,
                        help='Kernel release to build for (default: uname -r)')
    parser.add_argument('--arch', default=None,
                        help='Kernel architecture used in the profile name (default: uname -m)')
    parser.add_argument('-o', '--output-dir', default=None,
                        help=f'Directory for the profile ZIP (default: <checkout>/{PROFILE_OVERLAY_DIR})')
    parser.add_argument('-w', '--work-dir', default='.',
                        help='Directory the volatility repository is cloned into (default: .)')
    parser.add_argument('--package-manager', default='apt-get',
                        help='Package manager command (default: apt-get)')
    parser.add_argument('--update-command', default='update',
                        help="Package manager arguments that refresh the cache (default: 'update')")
    parser.add_argument('--install-command', default='install -y',
                        help="Package manager arguments that install a package (default: 'install -y')")
    parser.add_argument('--package', action='append', default=[], metavar='EXE=PKG',
                        help='Package that provides an executable (can be specified multiple times)')
    parser.add_argument('--headers-package', default=DEFAULT_HEADERS_PACKAGE,
                        help='Kernel headers package, {kernel} is replaced (default: %(default)s)')
    parser.add_argument('--repo-url', default=VOLATILITY_REPO,
                        help='Volatility git repository (default: %(default)s)')
    parser.add_argument('--log-file', default=DEFAULT_LOG_FILE,
                        help='Log file, appended to (default: %(default)s)')
    parser.add_argument('--timeout', type=float, default=None, metavar='SECONDS',
                        help='Timeout for each external command (default: none)')
    parser.add_argument('--strict', action='store_true',
                        help=f'Exit with code {EXIT_WARNINGS} if any step finished with a warning')
    parser.add_argument('-q', '--quiet', action='store_true',
                        help='Only write to the log file')
    parser.add_argument('-V', '--version', action='version',
                        version=f'%(prog)s {__version__}')
    return parser


def split_command_args(option: str, value: str) -> Tuple[str, ...]:
    """Split a shell-quoted option value into arguments."""
    try:
        return tuple(shlex.split(value))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid {option} value '{value}': {e}")


def check_headers_template(template: str) -> str:
    """Reject a headers package template with anything but {kernel} in it."""
    try:
        template.format(kernel="x")
    except (KeyError, IndexError, ValueError) as e:
        raise argparse.ArgumentTypeError(
            f"Invalid --headers-package value '{template}': only {{kernel}} may be used ({e!r})"
        )
    return template


def config_from_args(args: argparse.Namespace) -> ProfileConfig:
    package_map = dict(DEFAULT_PACKAGE_MAP)
    package_map.update(parse_package_overrides(args.package))
    return ProfileConfig(
        kernel_version=args.kernel_version,
        kernel_arch=args.arch,
        output_dir=args.output_dir,
        work_dir=args.work_dir,
        package_manager=args.package_manager,
        update_args=split_command_args("--update-command", args.update_command),
        install_args=split_command_args("--install-command", args.install_command),
        package_map=package_map,
        headers_package=check_headers_template(args.headers_package),
        repo_url=args.repo_url,
        log_file=args.log_file,
        strict=args.strict,
        command_timeout=args.timeout,
        quiet=args.quiet,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    if not config.quiet:
        print_banner()

    try:
        logger = setup_logging(config.log_file, quiet=config.quiet)
    except OSError as e:
        print(f"{Style.ERROR}Error: cannot open log file {config.log_file}: {e}{Style.RESET}", file=sys.stderr)
        return EXIT_ENVIRONMENT

    runner = CommandRunner(timeout=config.command_timeout)

    try:
        facts = resolve_host_facts(config)
        ctx = ExecutionContext(
            config=config,
            facts=facts,
            runner=runner,
            logger=logger,
            sudo=resolve_privilege_prefix(runner),
        )
        return run_pipeline(ctx)
    except ProfileError as e:
        logger.error(f"ERROR: {e} - aborting")
        return e.exit_code
    except KeyboardInterrupt:
        logger.error("ERROR: Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception(f"ERROR: Unexpected failure: {e}")
        return EXIT_UNEXPECTED


if __name__ == "__main__":
    sys.exit(main())
