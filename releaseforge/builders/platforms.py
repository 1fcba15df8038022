"""Subprocess-backed build tasks, one variant per target platform.

The packaging toolchain (electron-builder behind ``npm run release:*``)
is an opaque collaborator: we hand it the version, an output directory
and the signing credentials through its environment, wait for it, and
pick up the single file it was expected to produce.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path

from releaseforge.builders.base import BuildCancelledError, BuildTaskError
from releaseforge.models.builds import BuildRequest

logger = logging.getLogger(__name__)

_LOG_TAIL_LINES = 20


def _format_args(args: Sequence[str], request: BuildRequest) -> list[str]:
    fields = {
        "version": request.version,
        "platform_key": request.platform_key,
        "output_dir": str(request.output_dir),
        "product": request.product,
    }
    return [arg.format(**fields) for arg in args]


def _tail(path: Path, lines: int = _LOG_TAIL_LINES) -> str:
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return ""
    return "\n".join(text.splitlines()[-lines:])


class SubprocessBuildTask:
    """Runs one packaging command in its own process.

    Parameters
    ----------
    platform_key:
        The artifact spec this task satisfies.
    command:
        Argument list; ``{version}``, ``{output_dir}``, ``{product}`` and
        ``{platform_key}`` are substituted per request.
    cwd:
        Working directory (the project checkout).
    env:
        Extra, non-secret environment variables.
    credential_env:
        Maps environment variable names to credential names in
        ``BuildRequest.credentials``. Missing credentials are skipped.
    produced_template:
        Name the toolchain gives its output, if it differs from the
        expected artifact name; the file is renamed after the build.
    poll_interval:
        Seconds between cancellation checks.
    terminate_grace:
        Seconds to wait after SIGTERM before killing the process.
    """

    default_command: Sequence[str] = ()
    default_credential_env: Mapping[str, str] = {}
    default_produced_template: str | None = None

    def __init__(
        self,
        platform_key: str,
        command: Sequence[str] | None = None,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        credential_env: Mapping[str, str] | None = None,
        produced_template: str | None = None,
        poll_interval: float = 0.5,
        terminate_grace: float = 10.0,
    ) -> None:
        self.platform_key = platform_key
        self.command = list(command if command is not None else self.default_command)
        if not self.command:
            raise ValueError(f"No build command configured for {platform_key}")
        self.cwd = Path(cwd) if cwd is not None else None
        self.env = dict(env or {})
        self.credential_env = dict(
            credential_env if credential_env is not None else self.default_credential_env
        )
        self.produced_template = (
            produced_template
            if produced_template is not None
            else self.default_produced_template
        )
        self.poll_interval = poll_interval
        self.terminate_grace = terminate_grace

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.platform_key!r}, command={self.command!r})"

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def build(self, request: BuildRequest, cancel_event: threading.Event) -> Path:
        request.output_dir.mkdir(parents=True, exist_ok=True)
        args = _format_args(self.command, request)
        log_path = request.output_dir / f"{self.platform_key}.build.log"

        logger.info("[%s] running %s", self.platform_key, " ".join(args))
        with log_path.open("wb") as log_fh:
            try:
                proc = subprocess.Popen(
                    args,
                    cwd=str(self.cwd) if self.cwd else None,
                    env=self._build_env(request),
                    stdout=log_fh,
                    stderr=subprocess.STDOUT,
                )
            except OSError as exc:
                raise BuildTaskError(
                    self.platform_key, f"cannot start {args[0]!r}: {exc}"
                ) from exc

            while proc.poll() is None:
                if cancel_event.wait(self.poll_interval):
                    self._stop(proc)
                    raise BuildCancelledError(self.platform_key, "build stopped")

        if proc.returncode != 0:
            raise BuildTaskError(
                self.platform_key,
                f"exited with status {proc.returncode}\n{_tail(log_path)}",
            )
        return self._collect(request)

    def _build_env(self, request: BuildRequest) -> dict[str, str]:
        env = dict(os.environ)
        env.update(self.env)
        env["RELEASEFORGE_VERSION"] = request.version
        env["RELEASEFORGE_PLATFORM"] = request.platform_key
        env["RELEASEFORGE_OUTPUT_DIR"] = str(request.output_dir)
        for var, credential in self.credential_env.items():
            secret = request.credentials.get(credential)
            if secret is not None:
                env[var] = secret.get_secret_value()
        return env

    def _stop(self, proc: subprocess.Popen) -> None:
        logger.warning("[%s] stopping build process %d", self.platform_key, proc.pid)
        proc.terminate()
        try:
            proc.wait(timeout=self.terminate_grace)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()

    def _collect(self, request: BuildRequest) -> Path:
        expected = request.output_dir / request.expected_name
        if self.produced_template:
            produced_name = self.produced_template.format(
                product=request.product, version=request.version
            )
            produced = request.output_dir / produced_name
            if produced != expected and produced.is_file():
                produced.replace(expected)
        if not expected.is_file():
            raise BuildTaskError(
                self.platform_key,
                f"expected artifact {request.expected_name} was not produced",
            )
        return expected


# ---------------------------------------------------------------------------
# Platform variants
# ---------------------------------------------------------------------------

_OUTPUT_FLAG = "--config.directories.output={output_dir}"


class WindowsInstallerTask(SubprocessBuildTask):
    """NSIS installer, signed with the Windows code-signing certificate."""

    default_command = ("npm", "run", "release:win", "--", _OUTPUT_FLAG)
    default_credential_env = {
        "CSC_LINK": "win_cert",
        "CSC_KEY_PASSWORD": "win_cert_pass",
    }


class WindowsArmInstallerTask(WindowsInstallerTask):
    """arm64 NSIS installer; the toolchain names it like the x64 one."""

    default_command = ("npm", "run", "release:win-arm", "--", _OUTPUT_FLAG)
    default_produced_template = "{product}-{version}.exe"


class MacDiskImageTask(SubprocessBuildTask):
    """Signed and notarized DMG."""

    default_command = ("npm", "run", "release:mac", "--", _OUTPUT_FLAG)
    default_credential_env = {
        "APPLE_ID": "apple_id",
        "APPLE_ID_PASS": "apple_id_pass",
        "CSC_LINK": "macos_cert",
        "CSC_KEY_PASSWORD": "macos_cert_pass",
    }


class LinuxPackageTask(SubprocessBuildTask):
    """One Linux target (deb, rpm or AppImage) per task, unsigned."""

    def __init__(self, platform_key: str, target: str, **kwargs) -> None:
        kwargs.setdefault(
            "command",
            ("npm", "run", "release:linux", "--", f"--linux={target}", _OUTPUT_FLAG),
        )
        super().__init__(platform_key, **kwargs)
        self.target = target


def default_platform_tasks(
    *,
    cwd: Path | None = None,
) -> dict[str, SubprocessBuildTask]:
    """Build tasks for every spec in ``DEFAULT_ARTIFACT_SPECS``."""
    return {
        "win-x64": WindowsInstallerTask("win-x64", cwd=cwd),
        "win-arm64": WindowsArmInstallerTask("win-arm64", cwd=cwd),
        "mac": MacDiskImageTask("mac", cwd=cwd),
        "linux-deb": LinuxPackageTask("linux-deb", "deb", cwd=cwd),
        "linux-rpm": LinuxPackageTask("linux-rpm", "rpm", cwd=cwd),
        "linux-appimage-i386": LinuxPackageTask(
            "linux-appimage-i386", "AppImage:ia32", cwd=cwd
        ),
        "linux-appimage-x64": LinuxPackageTask(
            "linux-appimage-x64", "AppImage:x64", cwd=cwd
        ),
    }
