import argparse
import logging
import pathlib as pl
import subprocess

import cluster_deployer.utils.types as ttypes

LOGGER = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """External command exited with non-zero status."""

    def __init__(self, msg: str, *, cmd_str: str, returncode: int) -> None:
        super().__init__(msg)
        self.cmd_str = cmd_str
        self.returncode = returncode


def _split_command(command: str | list) -> tuple[list[str], str]:
    if isinstance(command, str):
        return command.split(), command
    cmd = [str(c) for c in command]
    return cmd, " ".join(cmd)


def run_command(
    command: str | list,
    *,
    workdir: ttypes.FileType = "",
    env: ttypes.EnvType | None = None,
    ignore_fail: bool = False,
) -> bytes:
    """Run command and return its stdout."""
    cmd, cmd_str = _split_command(command)

    LOGGER.debug("Running `%s`", cmd_str)

    try:
        with subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=workdir or None,
            env=env,
        ) as p:
            stdout, stderr = p.communicate()
            retcode = p.returncode
    except OSError as exc:
        msg = f"Failed to execute `{cmd_str}`: {exc}"
        raise CommandError(msg, cmd_str=cmd_str, returncode=-1) from exc

    if not ignore_fail and retcode != 0:
        err_dec = stderr.decode()
        err_dec = err_dec or stdout.decode()
        msg = f"An error occurred while running `{cmd_str}` (exit status {retcode}): {err_dec}"
        raise CommandError(msg, cmd_str=cmd_str, returncode=retcode)

    return stdout


def run_command_inherit(
    command: str | list,
    *,
    workdir: ttypes.FileType = "",
    env: ttypes.EnvType | None = None,
) -> None:
    """Run command with stdout and stderr inherited from the current process."""
    cmd, cmd_str = _split_command(command)

    LOGGER.debug("Running `%s`", cmd_str)

    try:
        retcode = subprocess.run(cmd, cwd=workdir or None, env=env, check=False).returncode
    except OSError as exc:
        msg = f"Failed to execute `{cmd_str}`: {exc}"
        raise CommandError(msg, cmd_str=cmd_str, returncode=-1) from exc

    if retcode != 0:
        msg = f"Command `{cmd_str}` exited with status {retcode}"
        raise CommandError(msg, cmd_str=cmd_str, returncode=retcode)


def check_dir_arg(dir_path: str) -> pl.Path | None:
    """Check that the dir passed as argparse parameter is a valid existing dir."""
    if not dir_path:
        return None
    abs_path = pl.Path(dir_path).expanduser().resolve()
    if not (abs_path.exists() and abs_path.is_dir()):
        msg = f"check_dir_arg: directory '{dir_path}' doesn't exist"
        raise argparse.ArgumentTypeError(msg)
    return abs_path


def csv_arg(value: str) -> list[str]:
    """Split comma separated argparse parameter into list of non-empty items."""
    return [v.strip() for v in value.split(",") if v.strip()]
