"""Classify a connection string into a database dialect tag."""

from .models import DatabaseType


def detect_db_type(connection_string: object) -> DatabaseType:
    """Return one of ``postgres``, ``oracle``, ``hive`` or ``unknown``.

    Never raises; anything that is not a non-empty string is ``unknown``.
    Prefixes are matched at the very start, so leading whitespace is ``unknown``.
    """
    if not isinstance(connection_string, str) or not connection_string.strip():
        return "unknown"
    lowered = connection_string.lower()
    if lowered.startswith("postgres"):
        return "postgres"
    if lowered.startswith("oracle:") or (
        "@" in lowered and ("sid" in lowered or "service_name" in lowered)
    ):
        return "oracle"
    if lowered.startswith("jdbc:hive2"):
        return "hive"
    return "unknown"
