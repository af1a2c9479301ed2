"""
Build invokers.

The bundle build itself is an external step: given the currently bound
variables it writes bundles and a catalog into the pack's output folder.
packforge only sees success or an exception.

Implementations:
    - CommandBuildInvoker: runs an external build command
    - CallableBuildInvoker: wraps a plain Python callable

Security Note:
    Commands are passed as a list and run with shell=False. The bound
    paths reach the command through PACKFORGE_* environment variables,
    never through shell expansion.
"""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from packforge.errors import ERROR_BUILD_TIMEOUT, BuildInvocationError
from packforge.settings import PackagingSettings

logger = logging.getLogger(__name__)

# Captured output kept for error messages
MAX_OUTPUT_CHARS = 4000


@dataclass(frozen=True)
class BuildContext:
    """
    What the external build needs to know about the bound configuration.

    Attributes:
        pack_name: The pack being built
        profile_id: Profile whose variables are bound
        output_dir: Folder the build must write to
        build_path_variable: Name of the bound build path variable
        load_path_variable: Name of the bound load path variable
        build_path: Value of the build path variable
        load_path: Value of the load path variable
        group_names: Groups being packaged
        settings: The live settings (already rebound)
    """

    pack_name: str
    profile_id: str
    output_dir: Path
    build_path_variable: str
    load_path_variable: str
    build_path: str
    load_path: str
    group_names: list[str] = field(default_factory=list)
    settings: PackagingSettings | None = None

    def to_env(self) -> dict[str, str]:
        """Environment variables describing this build."""
        env = {
            "PACKFORGE_PACK_NAME": self.pack_name,
            "PACKFORGE_PROFILE_ID": self.profile_id,
            "PACKFORGE_OUTPUT_DIR": str(self.output_dir),
            "PACKFORGE_BUILD_PATH": self.build_path,
            "PACKFORGE_LOAD_PATH": self.load_path,
            "PACKFORGE_GROUPS": ",".join(self.group_names),
        }
        if self.settings is not None:
            env["PACKFORGE_BUILD_REMOTE_CATALOG"] = "1" if self.settings.build_remote_catalog else "0"
            env["PACKFORGE_PLAYER_VERSION"] = self.settings.override_player_version
        return env


class BuildInvoker(ABC):
    """
    Abstract base class for the external bundle build.

    build() either returns normally (bundles and catalog written) or raises.
    """

    @property
    def name(self) -> str:
        """Invoker name for logging."""
        return self.__class__.__name__

    @abstractmethod
    def build(self, context: BuildContext) -> None:
        """
        Build everything currently configured.

        Raises:
            BuildInvocationError: If the build failed
        """
        ...


class CallableBuildInvoker(BuildInvoker):
    """Adapts a callable taking a BuildContext."""

    def __init__(self, func: Callable[[BuildContext], None], name: str | None = None) -> None:
        self._func = func
        self._name = name or getattr(func, "__name__", "callable")

    @property
    def name(self) -> str:
        return self._name

    def build(self, context: BuildContext) -> None:
        self._func(context)


class CommandBuildInvoker(BuildInvoker):
    """
    Runs an external build command.

    Arguments may reference "{pack}", "{output_dir}", "{build_path}",
    "{load_path}" and "{profile}"; they are substituted per argument.

    Example:
        invoker = CommandBuildInvoker(["unity-build", "--out", "{output_dir}"])
    """

    def __init__(
        self,
        cmd: Sequence[str],
        cwd: Path | str | None = None,
        timeout_seconds: float | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        if not cmd:
            raise ValueError("Build command cannot be empty")
        self.cmd = list(cmd)
        self.cwd = Path(cwd) if cwd is not None else None
        self.timeout_seconds = timeout_seconds
        self.env = dict(env or {})

    @property
    def name(self) -> str:
        return f"command:{self.cmd[0]}"

    def render_command(self, context: BuildContext) -> list[str]:
        """Substitute context placeholders into the command arguments."""
        values = {
            "pack": context.pack_name,
            "output_dir": str(context.output_dir),
            "build_path": context.build_path,
            "load_path": context.load_path,
            "profile": context.profile_id,
        }
        rendered = []
        for arg in self.cmd:
            for key, value in values.items():
                arg = arg.replace("{" + key + "}", value)
            rendered.append(arg)
        return rendered

    def build(self, context: BuildContext) -> None:
        cmd = self.render_command(context)

        env = os.environ.copy()
        env.update(self.env)
        env.update(context.to_env())

        logger.info("Running build command: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self.cwd) if self.cwd else None,
                env=env,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout_seconds,
                shell=False,
            )
        except subprocess.TimeoutExpired as e:
            raise BuildInvocationError(
                pack_name=context.pack_name,
                underlying_error=f"Command timed out after {self.timeout_seconds} seconds",
                code=ERROR_BUILD_TIMEOUT,
            ) from e
        except FileNotFoundError as e:
            raise BuildInvocationError(
                pack_name=context.pack_name,
                underlying_error=f"Executable not found: {cmd[0]}",
            ) from e
        except OSError as e:
            raise BuildInvocationError(
                pack_name=context.pack_name,
                underlying_error=f"OS error executing command: {e}",
            ) from e

        if result.stdout:
            logger.debug("Build stdout:\n%s", result.stdout[-MAX_OUTPUT_CHARS:])

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()[-MAX_OUTPUT_CHARS:]
            raise BuildInvocationError(
                pack_name=context.pack_name,
                underlying_error=f"exit code {result.returncode}: {stderr}",
                return_code=result.returncode,
            )
