"""
Thin wrapper around the git command line.  Every git invocation made by
git-req goes through _run_git so failures are logged and raised the same way.
"""

import enum
import logging
import subprocess
from pathlib import Path

from reqtools.errors import ConfigMissingError
from reqtools.errors import GitCheckoutFailed
from reqtools.errors import GitError

logger = logging.getLogger(__name__)

# git config exits with these when a key is missing
_CONFIG_KEY_MISSING = 1
_CONFIG_UNSET_MISSING = 5


class CheckoutResult(enum.Enum):
    BRANCH_CHANGED = enum.auto()
    BRANCH_UNCHANGED = enum.auto()


def _run_git(
    args: list[str],
    cwd: Path | None = None,
    *,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    """
    Runs git with the given arguments, raising GitError on a non-zero exit
    unless check is False
    """
    cmd = ["git", *args]
    logger.debug(f"Running git command: {' '.join(cmd)}")
    try:
        completed = subprocess.run(
            cmd,
            cwd=cwd,
            check=False,
            text=True,
            capture_output=True,
        )
    except OSError as exc:
        raise GitError(f"failed to execute git: {exc}") from exc

    if check and completed.returncode != 0:
        logger.debug(f"git stderr: {completed.stderr}")
        raise GitError(f"git command failed: {' '.join(cmd)}\n{completed.stderr.strip()}")

    return completed


def repo_root(cwd: Path | None = None) -> Path:
    """
    Returns the top level directory of the repository containing cwd
    """
    completed = _run_git(["rev-parse", "--show-toplevel"], cwd, check=False)
    if completed.returncode != 0:
        raise GitError("not inside a git repository")
    return Path(completed.stdout.strip())


def get_remotes(cwd: Path | None = None) -> list[str]:
    return _run_git(["remote"], cwd).stdout.split()


def get_remote_url(remote_name: str, cwd: Path | None = None) -> str:
    completed = _run_git(["remote", "get-url", remote_name], cwd, check=False)
    if completed.returncode != 0:
        raise ConfigMissingError(f"No remote named '{remote_name}' in this repository")
    return completed.stdout.strip()


def guess_default_remote_name(cwd: Path | None = None) -> str:
    """
    The only remote if there is exactly one, otherwise 'origin' if it exists
    """
    remotes = get_remotes(cwd)
    if not remotes:
        raise ConfigMissingError("Could not find any remotes")
    if len(remotes) == 1:
        return remotes[0]
    if "origin" in remotes:
        return "origin"
    raise ConfigMissingError(
        "No origin remote found, pick one with `git req --set-default-remote` or `--use-remote`",
    )


def config_get(key: str, cwd: Path | None = None) -> str | None:
    completed = _run_git(["config", "--local", "--get", key], cwd, check=False)
    if completed.returncode == _CONFIG_KEY_MISSING:
        return None
    if completed.returncode != 0:
        raise GitError(f"Could not read '{key}' from the git config\n{completed.stderr.strip()}")
    return completed.stdout.strip()


def config_set(key: str, value: str, cwd: Path | None = None) -> None:
    _run_git(["config", "--local", key, value], cwd)


def config_unset(key: str, cwd: Path | None = None) -> bool:
    """
    Removes the key, returning False if it was not set
    """
    completed = _run_git(["config", "--local", "--unset", key], cwd, check=False)
    if completed.returncode == _CONFIG_UNSET_MISSING:
        return False
    if completed.returncode != 0:
        raise GitError(f"Could not remove '{key}' from the git config\n{completed.stderr.strip()}")
    return True


def current_branch(cwd: Path | None = None) -> str | None:
    """
    The short name of the checked out branch, None on a detached HEAD
    """
    completed = _run_git(["symbolic-ref", "--short", "-q", "HEAD"], cwd, check=False)
    if completed.returncode != 0:
        return None
    return completed.stdout.strip()


def branch_exists(branch: str, cwd: Path | None = None) -> bool:
    completed = _run_git(["rev-parse", "--verify", "--quiet", f"refs/heads/{branch}"], cwd, check=False)
    return completed.returncode == 0


def checkout(branch: str, cwd: Path | None = None) -> CheckoutResult:
    """
    Checks out an existing local branch
    """
    if current_branch(cwd) == branch:
        logger.debug(f"Already on {branch}")
        return CheckoutResult.BRANCH_UNCHANGED
    completed = _run_git(["checkout", branch], cwd, check=False)
    if completed.returncode != 0:
        raise GitCheckoutFailed(completed.stderr.strip())
    return CheckoutResult.BRANCH_CHANGED


def checkout_branch(
    remote_name: str,
    remote_branch: str,
    local_branch: str,
    *,
    virtual_remote_branch: bool = False,
    cwd: Path | None = None,
) -> CheckoutResult:
    """
    Checks out local_branch, fetching it from remote_branch on the remote first
    if there is no local branch by that name yet.

    A virtual remote branch is a read-only ref such as GitHub's pull/N/head,
    which is fetched straight into the local branch instead of being tracked.
    """
    if branch_exists(local_branch, cwd):
        logger.debug(f"Checking out existing branch: {local_branch}")
        return checkout(local_branch, cwd)

    fetch_args = ["fetch", remote_name]
    if virtual_remote_branch:
        fetch_args.append(f"{remote_branch}:{local_branch}")
    else:
        fetch_args.append(remote_branch)
    completed = _run_git(fetch_args, cwd, check=False)
    if completed.returncode != 0:
        raise GitCheckoutFailed(
            f"Could not fetch remote branch '{remote_branch}'\n{completed.stderr.strip()}",
        )

    if virtual_remote_branch:
        checkout_args = ["checkout", local_branch]
    else:
        checkout_args = ["checkout", "-b", local_branch, f"{remote_name}/{remote_branch}"]
    logger.debug(f"Checking out {remote_name}/{remote_branch} as {local_branch}")
    completed = _run_git(checkout_args, cwd, check=False)
    if completed.returncode != 0:
        raise GitCheckoutFailed(completed.stderr.strip())
    return CheckoutResult.BRANCH_CHANGED
