"""Target environment enumeration."""

from __future__ import annotations

from collections.abc import Sequence

from envsync.errors import ConfigurationError


def enumerate_environments(explicit: Sequence[str], fallback: str) -> list[str]:
    """Produce the ordered set of environments to operate over.

    Args:
        explicit: Configured environment names; may contain duplicates.
        fallback: Single namespace used when ``explicit`` is empty.

    Returns:
        ``explicit`` de-duplicated with first occurrences kept in order, or
        ``[fallback]`` if ``explicit`` is empty.

    Raises:
        ConfigurationError: If both ``explicit`` and ``fallback`` are empty.

    Examples:
        >>> enumerate_environments(["staging", "production", "staging"], "x")
        ['staging', 'production']
        >>> enumerate_environments([], "default")
        ['default']
    """
    names = [name.strip() for name in explicit if name and name.strip()]
    if names:
        return list(dict.fromkeys(names))

    if not fallback or not fallback.strip():
        raise ConfigurationError(
            "No environments configured and no fallback namespace given"
        )
    return [fallback.strip()]


__all__ = ["enumerate_environments"]
