#!/usr/bin/env python3
"""Resolve a release version into its tag names without touching git.

Output lines are `key=value` pairs so a workflow step can append them to
$GITHUB_OUTPUT before calling publish-tag.py.
"""

from __future__ import annotations

import argparse
import sys

from tag_names import TagNameError, derive_major_tag, normalize_version


def resolve_tags(release_tag: str, major_override: str | None = None) -> dict[str, str]:
    version = normalize_version(release_tag)
    return {"version": version, "major_tag": derive_major_tag(version, major_override)}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Output the version tag and floating major tag for a release.")
    parser.add_argument("--release-tag", required=True)
    parser.add_argument("--major-tag", default=None, help="Override the derived floating major tag.")
    args = parser.parse_args(argv)

    try:
        tags = resolve_tags(args.release_tag, args.major_tag)
    except TagNameError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    for key, value in tags.items():
        print(f"{key}={value}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
