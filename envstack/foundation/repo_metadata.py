"""Source revision and repository slug discovery from a git checkout.

The checkout is located by walking up from a start directory; revision and
origin are then read by asking the `git` executable.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_HTTP_SLUG_RE = re.compile(r"^https?://.*github\.com.*/(?P<owner>[^/]+)/(?P<repo>[^/]+?)(\.git)?$")
_SSH_SLUG_RE = re.compile(r"github\.com:(?P<owner>[^/]+)/(?P<repo>[^/]+?)(\.git)?$")

REVISION_LENGTH = 7


@dataclass(frozen=True)
class RepoMetadata:
    revision: str = ""
    slug: str = ""


def find_git_directory(start: str | os.PathLike[str] | None = None) -> Path:
    """Walk up from `start` to the filesystem root looking for a `.git` entry."""

    current = Path(start or os.getcwd()).resolve()
    if current.is_file():
        current = current.parent

    while True:
        candidate = current / ".git"
        if candidate.is_dir():
            return candidate
        if candidate.is_file():
            # Worktrees and submodules: ".git" holds "gitdir: <path>".
            content = candidate.read_text(encoding="utf-8").strip()
            if content.startswith("gitdir:"):
                git_dir = Path(content[len("gitdir:") :].strip())
                if not git_dir.is_absolute():
                    git_dir = (current / git_dir).resolve()
                return git_dir
        if current.parent == current:
            break
        current = current.parent

    raise FileNotFoundError(f"Unable to find git directory from {start or os.getcwd()}")


def _git(git_dir: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", f"--git-dir={git_dir}", *args],
        cwd=git_dir.parent,
        check=True,
        capture_output=True,
        text=True,
    )
    return proc.stdout.strip()


def read_revision(git_dir: Path) -> str:
    revision = _git(git_dir, "rev-parse", f"--short={REVISION_LENGTH}", "HEAD")
    if not revision:
        raise ValueError(f"git rev-parse returned no revision for {git_dir}")
    return revision


def read_origin_url(git_dir: Path) -> str:
    # get-url applies url.<base>.insteadOf rewrites and included config.
    url = _git(git_dir, "remote", "get-url", "origin")
    if not url:
        raise ValueError(f"No origin remote configured in {git_dir}")
    return url


def slug_from_url(url: str) -> str:
    for pattern in (_HTTP_SLUG_RE, _SSH_SLUG_RE):
        match = pattern.search(url)
        if match:
            return f"{match.group('owner')}/{match.group('repo')}"
    return url


def discover_repo_metadata(start: str | os.PathLike[str] | None = None) -> RepoMetadata:
    """Best-effort lookup; anything missing comes back as an empty string."""

    try:
        git_dir = find_git_directory(start)
    except (FileNotFoundError, OSError) as exc:
        logger.debug("No git metadata available: %s", exc)
        return RepoMetadata()

    logger.debug("Loading revision from git directory '%s'", git_dir)
    revision = ""
    slug = ""
    try:
        revision = read_revision(git_dir)
    except (OSError, ValueError, subprocess.CalledProcessError) as exc:
        logger.debug("Unable to read git revision: %s", exc)
    try:
        slug = slug_from_url(read_origin_url(git_dir))
    except (OSError, ValueError, subprocess.CalledProcessError) as exc:
        logger.debug("Unable to read git origin: %s", exc)
    return RepoMetadata(revision=revision, slug=slug)
