"""
Unit tests for build invokers.

Tests cover:
- BuildContext environment export
- Callable invoker
- Command invoker: placeholder rendering, environment, exit codes,
  missing executables, and timeouts
"""

import sys
from pathlib import Path

import pytest

from packforge.errors import ERROR_BUILD_FAILED, ERROR_BUILD_TIMEOUT, BuildInvocationError
from packforge.invoker import BuildContext, CallableBuildInvoker, CommandBuildInvoker
from packforge.settings import PackagingSettings


@pytest.fixture
def context(temp_dir: Path) -> BuildContext:
    """A bound build context writing into temp_dir/Vanilla."""
    out = temp_dir / "Vanilla"
    return BuildContext(
        pack_name="Vanilla",
        profile_id="default",
        output_dir=out,
        build_path_variable="Pack_Vanilla_BuildPath",
        load_path_variable="Pack_Vanilla_LoadPath",
        build_path=str(out),
        load_path=f"file:///{out}",
        group_names=["Vanilla", "VanillaExtras"],
        settings=PackagingSettings(build_remote_catalog=True, override_player_version="Vanilla"),
    )


class TestBuildContext:
    """Tests for BuildContext."""

    def test_to_env(self, context: BuildContext) -> None:
        env = context.to_env()
        assert env["PACKFORGE_PACK_NAME"] == "Vanilla"
        assert env["PACKFORGE_OUTPUT_DIR"] == str(context.output_dir)
        assert env["PACKFORGE_GROUPS"] == "Vanilla,VanillaExtras"
        assert env["PACKFORGE_BUILD_REMOTE_CATALOG"] == "1"
        assert env["PACKFORGE_PLAYER_VERSION"] == "Vanilla"

    def test_to_env_without_settings(self, temp_dir: Path) -> None:
        ctx = BuildContext(
            pack_name="V",
            profile_id="p",
            output_dir=temp_dir,
            build_path_variable="b",
            load_path_variable="l",
            build_path="x",
            load_path="y",
        )
        assert "PACKFORGE_BUILD_REMOTE_CATALOG" not in ctx.to_env()


class TestCallableBuildInvoker:
    """Tests for CallableBuildInvoker."""

    def test_calls_function(self, context: BuildContext) -> None:
        seen: list[str] = []

        def build_bundles(ctx: BuildContext) -> None:
            seen.append(ctx.pack_name)

        invoker = CallableBuildInvoker(build_bundles)
        invoker.build(context)

        assert seen == ["Vanilla"]
        assert invoker.name == "build_bundles"

    def test_exception_propagates(self, context: BuildContext) -> None:
        def broken(ctx: BuildContext) -> None:
            raise RuntimeError("nope")

        with pytest.raises(RuntimeError):
            CallableBuildInvoker(broken, name="broken").build(context)


class TestCommandBuildInvoker:
    """Tests for CommandBuildInvoker."""

    def test_empty_command_rejected(self) -> None:
        with pytest.raises(ValueError):
            CommandBuildInvoker([])

    def test_render_command(self, context: BuildContext) -> None:
        """Placeholders are substituted per argument."""
        invoker = CommandBuildInvoker(["build", "--pack={pack}", "{output_dir}", "{profile}"])
        assert invoker.render_command(context) == [
            "build",
            "--pack=Vanilla",
            str(context.output_dir),
            "default",
        ]

    def test_success_writes_output(self, context: BuildContext) -> None:
        """The command sees the bound output folder through its environment."""
        script = (
            "import os, pathlib; "
            "out = pathlib.Path(os.environ['PACKFORGE_OUTPUT_DIR']); "
            "out.mkdir(parents=True, exist_ok=True); "
            "(out / 'catalog.json').write_text(os.environ['PACKFORGE_PACK_NAME'])"
        )
        CommandBuildInvoker([sys.executable, "-c", script]).build(context)
        assert (context.output_dir / "catalog.json").read_text() == "Vanilla"

    def test_extra_env(self, context: BuildContext) -> None:
        script = "import os, sys; sys.exit(0 if os.environ.get('BUILD_MODE') == 'ci' else 3)"
        CommandBuildInvoker([sys.executable, "-c", script], env={"BUILD_MODE": "ci"}).build(context)

    def test_nonzero_exit(self, context: BuildContext) -> None:
        """A failing command raises with its exit code and stderr."""
        script = "import sys; sys.stderr.write('compile error'); sys.exit(2)"
        with pytest.raises(BuildInvocationError) as exc_info:
            CommandBuildInvoker([sys.executable, "-c", script]).build(context)

        err = exc_info.value
        assert err.code == ERROR_BUILD_FAILED
        assert err.return_code == 2
        assert "compile error" in err.message

    def test_missing_executable(self, context: BuildContext) -> None:
        with pytest.raises(BuildInvocationError, match="Executable not found"):
            CommandBuildInvoker(["definitely-not-a-real-build-tool-xyz"]).build(context)

    def test_timeout(self, context: BuildContext) -> None:
        script = "import time; time.sleep(5)"
        with pytest.raises(BuildInvocationError) as exc_info:
            CommandBuildInvoker([sys.executable, "-c", script], timeout_seconds=0.2).build(context)
        assert exc_info.value.code == ERROR_BUILD_TIMEOUT
