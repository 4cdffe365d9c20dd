"""Key/path translation between logical paths and backend-native keys.

Pure string transforms, shared by every backend. ``..`` segments are passed
through untouched: callers must not use them to escape the base.
"""

SEPARATOR = "/"


def resolve(base: str, relative: str, sep: str = SEPARATOR) -> str:
    """Join ``base`` and ``relative`` into a backend-native identifier.

    Redundant separators are collapsed. A leading separator on ``base``
    (absolute path) and a trailing separator on ``relative`` (directory key)
    are kept.

    Args:
        base: Configured base path or base directory
        relative: Caller-supplied logical path

    Returns:
        Native path or object key
    """
    segments = [s for s in base.split(sep) if s]
    segments.extend(s for s in relative.split(sep) if s)

    joined = sep.join(segments)
    if base.startswith(sep):
        joined = sep + joined
    if relative.endswith(sep) and segments:
        joined += sep
    return joined


def ensure_trailing_separator(path: str, sep: str = SEPARATOR) -> str:
    """Append the separator if absent; used whenever a path denotes a directory."""
    if path and not path.endswith(sep):
        return path + sep
    return path


def is_placeholder(key: str, prefix: str, sep: str = SEPARATOR) -> bool:
    """Check whether ``key`` is the placeholder object of directory ``prefix``."""
    return key == prefix or key == prefix + sep


def strip_base(key: str, base: str, sep: str = SEPARATOR) -> str:
    """Turn a native key back into a logical name relative to ``base``."""
    prefix = ensure_trailing_separator(resolve(base, "", sep), sep)
    if prefix and key.startswith(prefix):
        return key[len(prefix):]
    return key.lstrip(sep)
