#!/usr/bin/env python3
"""Release tag naming: normalize version tags and derive floating major tags."""

from __future__ import annotations

import re


VERSION_TAG_RE = re.compile(r"^v\d+\.\d+\.\d+([-+].+)?$", re.ASCII)
MAJOR_COMPONENT_RE = re.compile(r"^v(\d+)\.", re.ASCII)


class TagNameError(ValueError):
    pass


def normalize_version(raw: str) -> str:
    """Return the `v`-prefixed version tag, e.g. '1.2.3-rc1' -> 'v1.2.3-rc1'."""
    version = raw.strip()
    if not version.startswith("v"):
        version = f"v{version}"
    if not VERSION_TAG_RE.match(version):
        raise TagNameError(f"invalid version: {raw!r} (expected vMAJOR.MINOR.PATCH[-suffix|+suffix])")
    return version


def derive_major_tag(version: str, override: str | None = None) -> str:
    if override is not None:
        major_tag = override.strip()
        if not major_tag:
            raise TagNameError("major tag override must be non-empty")
        if major_tag.startswith("-"):
            raise TagNameError(f"major tag override must not start with '-': {major_tag}")
        if major_tag == version:
            raise TagNameError(f"major tag override must differ from the version tag: {version}")
        return major_tag

    match = MAJOR_COMPONENT_RE.match(version)
    if not match:
        raise TagNameError(f"cannot derive major tag from version: {version}")
    return f"v{match.group(1)}"
