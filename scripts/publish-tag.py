#!/usr/bin/env python3
"""Publish a release tag and move its floating major tag.

Consumers pin `owner/repo@v1`; this script creates and pushes `v1.4.2`, then
force-moves `v1` to the same release. Every step is a precondition for the
next one and the run stops at the first failure. Refs that were already
pushed are not rolled back.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from shared import GitCommandError, GitRunner, configure_logging, log_event
from tag_names import TagNameError, derive_major_tag, normalize_version

LOGGER = logging.getLogger("release_tagger.publish_tag")
STALE_LEASE_MARKER = "(stale info)"


class PublishError(Exception):
    pass


class GitEnvironmentError(PublishError):
    pass


class DirtyTreeError(PublishError):
    pass


class UnknownRemoteError(PublishError):
    pass


class TagConflictError(PublishError):
    pass


class LeaseRejectedError(PublishError):
    pass


@dataclass(frozen=True)
class PublishResult:
    version: str
    major_tag: str
    commit: str
    created: bool
    remote_major_before: str | None


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create and push a release tag, then move the floating major tag to it."
    )
    parser.add_argument("version", help="Release version (e.g. 1.2.3 or v1.2.3-rc1).")
    parser.add_argument("--remote", default="origin", help="Remote to push tags to (default: origin).")
    parser.add_argument(
        "--major-tag",
        default=None,
        help="Floating tag to move (default: v<MAJOR> derived from the version).",
    )
    parser.add_argument("--target", default="HEAD", help="Commit-ish to tag (default: HEAD).")
    parser.add_argument(
        "--skip-clean-check",
        action="store_true",
        help="Allow tagging with uncommitted or untracked changes in the working tree.",
    )
    parser.add_argument("--repo-root", default=".", help="Repository working tree to run git in.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run read-only checks and log the tag/push commands without executing them.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO"),
        help="Structured log verbosity written to stderr. Every git command is echoed at INFO, "
        "so quieter levels are not offered.",
    )
    return parser.parse_args(argv)


def ensure_git_environment(git: GitRunner) -> None:
    if not Path(git.cwd).is_dir():
        raise GitEnvironmentError(f"repository root is not a directory: {git.cwd}")

    try:
        git.run("--version")
    except (OSError, GitCommandError) as exc:
        raise GitEnvironmentError(f"git is not available: {exc}") from exc

    result = git.run("rev-parse", "--is-inside-work-tree", check=False)
    if not result.ok or result.stdout.strip() != "true":
        raise GitEnvironmentError(f"not inside a git working tree: {git.cwd}")


def ensure_clean_worktree(git: GitRunner) -> None:
    pending = git.run("status", "--porcelain").stdout.rstrip()
    if pending:
        raise DirtyTreeError(
            "working tree has uncommitted changes; commit or stash them, "
            f"or pass --skip-clean-check:\n{pending}"
        )


def ensure_remote_exists(git: GitRunner, remote: str) -> None:
    remotes = [line.strip() for line in git.output("remote").splitlines() if line.strip()]
    if remote not in remotes:
        available = ", ".join(remotes) if remotes else "(none)"
        raise UnknownRemoteError(f"remote '{remote}' not found; available remotes: {available}")


def fetch_remote_tags(git: GitRunner, remote: str) -> None:
    git.run("fetch", "--tags", "--force", "--prune", remote)


def resolve_commit(git: GitRunner, commitish: str) -> str:
    if not commitish or commitish.startswith("-"):
        raise PublishError(f"invalid target commit-ish: {commitish!r}")
    return git.output("rev-parse", "--verify", "--quiet", f"{commitish}^{{commit}}")


def resolve_tag_commit(git: GitRunner, tag: str) -> str | None:
    """Return the commit a local tag peels to, or None when the tag does not exist."""
    result = git.run("rev-parse", "-q", "--verify", f"refs/tags/{tag}^{{}}", check=False)
    if not result.ok:
        return None
    return result.stdout.strip() or None


def ensure_version_tag(git: GitRunner, version: str, commit: str) -> bool:
    """Create the annotated version tag at `commit`; return False when it already exists there."""
    existing = resolve_tag_commit(git, version)
    if existing == commit:
        log_event(LOGGER, logging.INFO, "version_tag_exists", tag=version, commit=commit)
        return False
    if existing is not None:
        raise TagConflictError(
            f"tag {version} already points to {existing}, not {commit}; "
            "published release tags are never moved"
        )

    git.run("tag", "-a", version, "-m", f"release {version}", commit, mutating=True)
    log_event(LOGGER, logging.INFO, "version_tag_created", tag=version, commit=commit)
    return True


def push_version_tag(git: GitRunner, remote: str, version: str) -> None:
    ref = f"refs/tags/{version}"
    git.run("push", remote, f"{ref}:{ref}", mutating=True)


def move_local_major_tag(git: GitRunner, major_tag: str, version: str) -> None:
    git.run("tag", "-f", major_tag, f"refs/tags/{version}", mutating=True)


def parse_ls_remote(output: str, ref: str) -> str | None:
    for line in output.splitlines():
        object_id, _, name = line.strip().partition("\t")
        if name == ref and object_id:
            return object_id
    return None


def lookup_remote_tag(git: GitRunner, remote: str, tag: str) -> str | None:
    ref = f"refs/tags/{tag}"
    return parse_ls_remote(git.output("ls-remote", "--tags", remote, ref), ref)


def push_major_tag(git: GitRunner, remote: str, major_tag: str, expected: str | None) -> None:
    ref = f"refs/tags/{major_tag}"
    refspec = f"{ref}:{ref}"

    if expected is None:
        git.run("push", "--force", remote, refspec, mutating=True)
        return

    args = ("push", f"--force-with-lease={ref}:{expected}", remote, refspec)
    result = git.run(*args, check=False, mutating=True)
    if result.ok:
        return

    detail = result.stderr.strip() or result.stdout.strip()
    if STALE_LEASE_MARKER in f"{result.stderr}\n{result.stdout}":
        raise LeaseRejectedError(
            f"{remote} moved {major_tag} away from {expected} while publishing; "
            f"refusing to overwrite it: {detail}"
        )
    # Auth, network and hook rejections are ordinary command failures, not races.
    raise GitCommandError(["git", *args], result.returncode, detail)


def publish_release_tags(
    git: GitRunner,
    *,
    version: str,
    major_tag: str,
    remote: str,
    target: str,
    skip_clean_check: bool,
) -> PublishResult:
    ensure_git_environment(git)
    if not skip_clean_check:
        ensure_clean_worktree(git)
    ensure_remote_exists(git, remote)
    fetch_remote_tags(git, remote)

    commit = resolve_commit(git, target)
    created = ensure_version_tag(git, version, commit)
    push_version_tag(git, remote, version)

    move_local_major_tag(git, major_tag, version)
    remote_major = lookup_remote_tag(git, remote, major_tag)
    log_event(LOGGER, logging.INFO, "remote_major_tag", tag=major_tag, remote=remote, object=remote_major)
    push_major_tag(git, remote, major_tag, remote_major)

    return PublishResult(
        version=version,
        major_tag=major_tag,
        commit=commit,
        created=created,
        remote_major_before=remote_major,
    )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)

    try:
        version = normalize_version(args.version)
        major_tag = derive_major_tag(version, args.major_tag)
    except TagNameError as exc:
        log_event(LOGGER, logging.ERROR, "invalid_version", version=args.version, error=str(exc))
        print(f"::error::{exc}", file=sys.stderr)
        return 1

    git = GitRunner(LOGGER, cwd=Path(args.repo_root).resolve(), dry_run=args.dry_run)
    try:
        result = publish_release_tags(
            git,
            version=version,
            major_tag=major_tag,
            remote=args.remote,
            target=args.target,
            skip_clean_check=args.skip_clean_check,
        )
    except (PublishError, GitCommandError) as exc:
        log_event(LOGGER, logging.ERROR, "publish_failed", error_type=type(exc).__name__, error=str(exc))
        print(f"::error::{exc}", file=sys.stderr)
        return 1

    log_event(
        LOGGER,
        logging.INFO,
        "publish_complete",
        version=result.version,
        major_tag=result.major_tag,
        commit=result.commit,
        created=result.created,
        dry_run=args.dry_run,
    )
    prefix = "[dry-run] " if args.dry_run else ""
    print(f"{prefix}Published {result.version} and moved {result.major_tag} to {result.commit} on {args.remote}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
