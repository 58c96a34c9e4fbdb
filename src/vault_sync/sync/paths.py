"""Path helpers and the name-exclusion filter.

Logical paths are POSIX-style strings relative to the sync root.  Folders
end with ``/``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

METADATA_FILE_NAME = "_vault-sync-metadata-on-remote.json"
METADATA_FILE_NAME_BIN = "_vault-sync-metadata-on-remote.bin"

SPECIAL_NAMES_TO_SKIP = frozenset(
    {
        ".git",
        ".github",
        ".gitlab",
        ".svn",
        "node_modules",
        ".DS_Store",
        "__MACOSX",
        "Icon\r",
        "desktop.ini",
        "Desktop.ini",
        "thumbs.db",
        "Thumbs.db",
    }
)


def _segments(key: str) -> list[str]:
    return [s for s in key.split("/") if s]


def at_which_level(key: str) -> int:
    """Return the depth of *key*: ``"a.md"`` and ``"a/"`` are level 1."""
    return len(_segments(key))


def get_parent_folder(key: str) -> str:
    """Return the folder containing *key*, or ``"/"`` at the root.

    >>> get_parent_folder("a/b/c.md")
    'a/b/'
    >>> get_parent_folder("a/")
    '/'
    """
    segments = _segments(key)
    if len(segments) <= 1:
        return "/"
    return "/".join(segments[:-1]) + "/"


def is_hidden_path(key: str, dot_prefix: bool = True, underscore_prefix: bool = False) -> bool:
    """Return ``True`` if any segment of *key* is hidden.

    Args:
        key: Logical path.
        dot_prefix: Treat ``.``-prefixed segments as hidden.
        underscore_prefix: Treat ``_``-prefixed segments as hidden.
    """
    for segment in _segments(key):
        if dot_prefix and segment.startswith("."):
            return True
        if underscore_prefix and segment.startswith("_"):
            return True
    return False


def is_special_name_to_skip(key: str, extra_names: Iterable[str] = ()) -> bool:
    """Return ``True`` if any segment of *key* is a platform-reserved name."""
    names = SPECIAL_NAMES_TO_SKIP.union(extra_names)
    return any(segment in names for segment in _segments(key))


def is_inside_config_dir(key: str, config_dir: str) -> bool:
    """Return ``True`` if *key* is the host-config directory or below it."""
    config_dir = config_dir.strip("/")
    if not config_dir:
        return False
    return key.rstrip("/") == config_dir or key.startswith(config_dir + "/")


def compile_ignore_patterns(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    """Compile user exclusion patterns.

    Raises:
        re.error: If a pattern is not a valid regular expression.
    """
    return [re.compile(p) for p in patterns]


def is_skip_item_by_name(
    key: str,
    *,
    sync_config_dir: bool,
    config_dir: str,
    sync_underscore_items: bool,
    ignore_patterns: Iterable[re.Pattern[str]] = (),
) -> bool:
    """Decide whether *key* is excluded from sync.

    The host-config directory is kept whenever ``sync_config_dir`` is on,
    even if a user pattern or the hidden-path rule would exclude it.
    """
    if sync_config_dir and is_inside_config_dir(key, config_dir):
        return False
    for pattern in ignore_patterns:
        if pattern.fullmatch(key):
            return True
    if is_special_name_to_skip(key):
        return True
    return (
        is_hidden_path(key, dot_prefix=True, underscore_prefix=False)
        or (
            not sync_underscore_items
            and is_hidden_path(key, dot_prefix=False, underscore_prefix=True)
        )
        or key in (METADATA_FILE_NAME, METADATA_FILE_NAME_BIN)
    )
