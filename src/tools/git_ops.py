"""Git operations used to publish a generated project.

All commands are issued in list form so commit messages and paths are never
shell-interpreted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from src.core.exceptions import GitOperationError
from src.tools.shell import ShellResult, run_command

logger = logging.getLogger("trendforge.tools.git_ops")

_IDENTITY = {
    "GIT_AUTHOR_NAME": "TrendForge",
    "GIT_AUTHOR_EMAIL": "trendforge@users.noreply.github.com",
    "GIT_COMMITTER_NAME": "TrendForge",
    "GIT_COMMITTER_EMAIL": "trendforge@users.noreply.github.com",
}


async def _git(repo_path: str, *args: str, action: Optional[str] = None) -> ShellResult:
    result = await run_command(["git", *args], cwd=repo_path, env=_IDENTITY)
    if not result.success:
        raise GitOperationError(f"git {action or args[0]} failed: {result.stderr.strip()}")
    return result


async def is_git_repo(path: str) -> bool:
    """Check if the given path is inside a git work tree."""
    result = await run_command(["git", "rev-parse", "--is-inside-work-tree"], cwd=path)
    return result.success and result.stdout.strip() == "true"


async def init(repo_path: str, branch: str = "main") -> None:
    """Create a repository rooted at repo_path unless it already has one.

    Checks for repo_path/.git rather than any enclosing work tree, so a
    workspace nested inside another checkout still gets its own repository.
    """
    if (Path(repo_path) / ".git").exists():
        return
    await _git(repo_path, "init", "-b", branch)
    logger.info("Initialized git repository in %s", repo_path)


async def commit_all(repo_path: str, message: str) -> str:
    """Stage everything and commit. Returns the new HEAD sha, or "" if clean."""
    await _git(repo_path, "add", "-A")
    result = await run_command(["git", "commit", "-m", message], cwd=repo_path, env=_IDENTITY)
    if not result.success:
        if "nothing to commit" in result.stdout:
            logger.info("Nothing to commit")
            return ""
        raise GitOperationError(f"git commit failed: {result.stderr.strip()}")
    sha = await head_sha(repo_path)
    logger.info("Committed: %s", sha[:8])
    return sha


async def head_sha(repo_path: str) -> str:
    result = await _git(repo_path, "rev-parse", "HEAD")
    return result.stdout.strip()


async def tag(repo_path: str, name: str, message: str) -> None:
    await _git(repo_path, "tag", "-a", name, "-m", message)


async def count_tracked_files(repo_path: str) -> int:
    result = await _git(repo_path, "ls-files")
    return len([line for line in result.stdout.splitlines() if line.strip()])


async def push(repo_path: str, remote_url: str, branch: str = "main") -> None:
    """Point `origin` at remote_url and push the branch with tags."""
    existing = await run_command(["git", "remote"], cwd=repo_path)
    if "origin" in existing.stdout.split():
        await _git(repo_path, "remote", "set-url", "origin", remote_url, action="remote set-url")
    else:
        await _git(repo_path, "remote", "add", "origin", remote_url, action="remote add")
    await _git(repo_path, "push", "-u", "origin", branch, "--follow-tags")
    logger.info("Pushed %s to origin", branch)
