import os


def GetEnv(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def GetIntEnv(name: str, default: int) -> int:
    raw = GetEnv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


class LedgerSettings:
    MaxAttempts = GetIntEnv("LEDGER_MAX_ATTEMPTS", 5)
    HistoryLimit = GetIntEnv("LEDGER_HISTORY_LIMIT", 100)
    ActivityLimit = GetIntEnv("LEDGER_ACTIVITY_LIMIT", 10)


Settings = LedgerSettings()
