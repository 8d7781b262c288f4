"""
Minimum-version checks run before a blueprint is imported.

The manifest declares the lowest host version it was built for and, per
extension, the lowest extension version.  :func:`check_versions` verifies
the running site against those requirements and raises
:class:`CompatibilityError` for the first requirement that is not met.  The
order is fixed (host first, then extensions in manifest order) so the error
shown to the user is deterministic.
"""

from __future__ import annotations

import re
from typing import Callable, Mapping, Optional, Tuple

from models.manifest import Manifest

from .errors import CompatibilityError

UNVERSIONED = ("", "latest", "*")

_NUMERIC_PREFIX = re.compile(r"^\d+")


def _version_key(version: str) -> Tuple[int, ...]:
    parts = []
    for segment in str(version).strip().split("."):
        match = _NUMERIC_PREFIX.match(segment)
        if not match:
            break
        parts.append(int(match.group(0)))
        if match.end() != len(segment):
            # "6.4-beta1" stops after the numeric part of the segment
            break
    while parts and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def compare_versions(a: str, b: str) -> int:
    """Compare dotted versions segment by segment.

    Returns a negative number when ``a < b``, zero when equal and a positive
    number when ``a > b``.  ``"6.10"`` is greater than ``"6.9"`` and
    ``"6.4"`` equals ``"6.4.0"``.
    """
    ka, kb = _version_key(a), _version_key(b)
    return (ka > kb) - (ka < kb)


def meets_minimum(current: str, minimum: str) -> bool:
    if str(minimum).strip().lower() in UNVERSIONED:
        return True
    return compare_versions(current, minimum) >= 0


def check_versions(
    manifest: Manifest,
    host_version: str,
    plugin_versions: Mapping[str, str],
    is_active: Optional[Mapping[str, Callable[[], bool]]] = None,
) -> None:
    """
    Verify that the current site meets the manifest's minimum versions.

    :param manifest: The parsed blueprint manifest.
    :param host_version: Version of the running host.
    :param plugin_versions: Active extension versions keyed by name.
    :param is_active: Optional predicates keyed by extension name.  When a
        name has no predicate, the extension counts as active if it appears
        in ``plugin_versions``.
    :raises CompatibilityError: for the first failing requirement.
    """
    content = manifest.services.content
    if content is None:
        raise CompatibilityError("main.json is missing the required services.content property.")

    if not content.version:
        raise CompatibilityError("main.json is missing the required services.content.version property.")

    if not meets_minimum(host_version, content.version):
        raise CompatibilityError(
            f"main.json requires a host version of {content.version} "
            f"but the current host version is {host_version}."
        )

    predicates = is_active or {}
    for name, requirement in content.plugins.items():
        check = predicates.get(name)
        active = check() if check is not None else name in plugin_versions
        if not active:
            raise CompatibilityError(f"{name} is required but is not active on this site.")

        current = plugin_versions.get(name, "")
        if not meets_minimum(current, requirement.version):
            raise CompatibilityError(
                f"main.json requires {name} version {requirement.version} "
                f"but the current {name} version is {current or 'unknown'}."
            )
