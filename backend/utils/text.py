def normalize_text(value: str | None) -> str:
    """Lowercase, trim and collapse whitespace runs for case/space-insensitive matching."""
    return " ".join((value or "").strip().split()).lower()


def clean_text(value: str | None) -> str:
    """Trim and collapse whitespace while keeping the user's casing."""
    return " ".join((value or "").strip().split())
