"""Small helpers shared by the conversation engine and its collaborators."""

import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional

DATETIME_PATTERN = re.compile(r"^(\d{2})/(\d{2})/(\d{4})\s+(\d{2}):(\d{2})$")
DATETIME_FORMAT = "%d/%m/%Y %H:%M"


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite DateTime columns round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_text(value: str) -> str:
    """Lowercase, trim, collapse spaces and drop accents.

    Examples:
        >>> normalize_text("  Fabricação ")
        'fabricacao'
        >>> normalize_text("Não")
        'nao'
    """
    decomposed = unicodedata.normalize("NFKD", value.strip().lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", stripped)


def normalize_user_id(value: str) -> str:
    """Strip WhatsApp JID suffixes ("@c.us", "@s.whatsapp.net") from an id."""
    return value.split("@", 1)[0].strip()


def parse_schedule(value: str) -> Optional[datetime]:
    """Parse a ``DD/MM/YYYY HH:MM`` string; None when it is not a real date."""
    text = re.sub(r"\s+", " ", value.strip())
    if not DATETIME_PATTERN.match(text):
        return None
    try:
        return datetime.strptime(text, DATETIME_FORMAT)
    except ValueError:
        return None
