from datetime import datetime, timezone


def utcnow() -> datetime:
    """UTC "naïf" : SQLite ne conserve pas le fuseau, toutes les dates en base sont en UTC sans tzinfo."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
