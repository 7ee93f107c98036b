"""Git helper functions used by the self-update engine."""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlparse

from . import exec as exec_util
from . import log

_SCP_URL = re.compile(r"^[^@/]+@(?P<host>[^:/]+):(?P<path>.+)$")
_NETWORK_SCHEMES = frozenset({"http", "https", "ssh", "git"})


def _without_git_suffix(value: str) -> str:
    return value[:-4] if value.lower().endswith(".git") else value


def remote_identity(url: str) -> str:
    """Reduce a remote URL to ``host/path``, or an absolute path for local remotes.

    SCP-style SSH and URL spellings of one repository reduce to the same
    string regardless of host case, trailing slashes or a ``.git`` suffix.

    Example:
        >>> remote_identity("git@github.com:org/repo.git")
        'github.com/org/repo'
        >>> remote_identity(" https://GitHub.com/org/repo/ ")
        'github.com/org/repo'
    """
    raw = url.strip()
    if not raw:
        return ""
    scp = _SCP_URL.match(raw)
    if scp:
        return f"{scp['host'].lower()}/{_without_git_suffix(scp['path'].strip('/'))}"
    parsed = urlparse(raw)
    scheme = parsed.scheme.lower() if "://" in raw else ""
    if scheme in _NETWORK_SCHEMES and parsed.hostname:
        return f"{parsed.hostname.lower()}/{_without_git_suffix(parsed.path.strip('/'))}"
    local = Path(parsed.path if scheme == "file" else raw).expanduser().resolve()
    return _without_git_suffix(local.as_posix())


def git_command(args: list[str], *, git_path: str | None = None) -> list[str]:
    """Prefix ``args`` with the configured git executable, or plain ``git``.

    Example:
        >>> git_command(["status"], git_path=" ")
        ['git', 'status']
    """
    executable = (git_path or "").strip() or "git"
    return [executable, *args]


def run_git(
    args: list[str],
    *,
    repo_dir: Path,
    runner: exec_util.CommandRunner | None = None,
    git_path: str | None = None,
    timeout_seconds: float | None = None,
) -> exec_util.CommandResult:
    """Run git inside ``repo_dir``; a missing git binary fails with exit code 127."""
    request = exec_util.CommandRequest(
        argv=tuple(git_command(args, git_path=git_path)),
        cwd=repo_dir,
        timeout_seconds=timeout_seconds,
    )
    log.trace(f"git: {request.command_line} (in {repo_dir})")
    return exec_util.execute(request, runner=runner)


def is_work_tree(
    repo_dir: Path,
    *,
    runner: exec_util.CommandRunner | None = None,
    git_path: str | None = None,
) -> bool:
    """Return whether ``repo_dir`` is the top of a git working tree."""
    if not (repo_dir / ".git").exists():
        return False
    result = run_git(
        ["rev-parse", "--is-inside-work-tree"],
        repo_dir=repo_dir,
        runner=runner,
        git_path=git_path,
    )
    return result.ok and result.stdout.strip() == "true"


def remote_url(
    repo_dir: Path,
    remote: str,
    *,
    runner: exec_util.CommandRunner | None = None,
    git_path: str | None = None,
) -> str | None:
    """Return the URL configured for ``remote``, or ``None`` if missing."""
    result = run_git(
        ["remote", "get-url", remote], repo_dir=repo_dir, runner=runner, git_path=git_path
    )
    if not result.ok:
        return None
    url = result.stdout.strip()
    return url or None


def rev_parse(
    repo_dir: Path,
    ref: str,
    *,
    runner: exec_util.CommandRunner | None = None,
    git_path: str | None = None,
) -> str | None:
    """Resolve ``ref`` to a commit hash, or ``None`` when it does not exist."""
    result = run_git(
        ["rev-parse", "--verify", "--quiet", ref],
        repo_dir=repo_dir,
        runner=runner,
        git_path=git_path,
    )
    if not result.ok:
        return None
    return result.stdout.strip() or None


def ahead_behind(
    repo_dir: Path,
    upstream: str,
    *,
    runner: exec_util.CommandRunner | None = None,
    git_path: str | None = None,
) -> tuple[int, int] | None:
    """Return ``(ahead, behind)`` commit counts of ``HEAD`` against ``upstream``.

    An unborn ``HEAD`` counts every upstream commit as behind.
    """
    if rev_parse(repo_dir, "HEAD", runner=runner, git_path=git_path) is None:
        result = run_git(
            ["rev-list", "--count", upstream],
            repo_dir=repo_dir,
            runner=runner,
            git_path=git_path,
        )
        if not result.ok:
            return None
        try:
            return 0, int(result.stdout.strip() or "0")
        except ValueError:
            return None
    result = run_git(
        ["rev-list", "--left-right", "--count", f"HEAD...{upstream}"],
        repo_dir=repo_dir,
        runner=runner,
        git_path=git_path,
    )
    if not result.ok:
        return None
    parts = result.stdout.split()
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


def log_oneline(
    repo_dir: Path,
    revision_range: str | None = None,
    *,
    max_count: int = 10,
    runner: exec_util.CommandRunner | None = None,
    git_path: str | None = None,
) -> list[str]:
    """Return ``git log --oneline`` lines, empty on any failure."""
    args = ["log", "--oneline", f"--max-count={max_count}"]
    if revision_range:
        args.append(revision_range)
    result = run_git(args, repo_dir=repo_dir, runner=runner, git_path=git_path)
    if not result.ok:
        return []
    return [line for line in result.stdout.splitlines() if line.strip()]
