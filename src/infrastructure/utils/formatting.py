def format_duration(duration_ms: int) -> str:
    """Convert milliseconds to a readable duration like '2m 5s' or '350ms'."""
    if duration_ms < 0:
        raise ValueError("duration_ms must be non-negative")

    if duration_ms < 1000:
        return f"{duration_ms}ms"

    seconds = duration_ms // 1000
    hours, remainder = divmod(seconds, 3600)
    minutes, secs = divmod(remainder, 60)

    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs:
        parts.append(f"{secs}s")

    return " ".join(parts)


def short_id(value: object, length: int = 8) -> str:
    """First characters of an id's hex form, for tables and messages."""
    text = getattr(value, "hex", None) or str(value)
    return text[:length]
