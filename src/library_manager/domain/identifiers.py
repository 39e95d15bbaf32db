"""Library card numbers.

Patrons get a sequential integer ``library_id``. It is stored as a plain
integer and only shown with the card prefix, e.g. ``1001`` -> ``MCL1001``.
"""
import re
from library_manager.config import settings

_LEADING_INT = re.compile(r"^[+-]?\d+")
_EXACT_INT = re.compile(r"^-?\d+$")

# SQLite and Postgres INTEGER/BIGINT are signed 64-bit.
DB_INT_MAX = 2**63 - 1

def in_db_range(n: int) -> bool:
    return -DB_INT_MAX <= n <= DB_INT_MAX

def next_library_id(current_max: int | None) -> int:
    if current_max is None:
        return settings.LIBRARY_ID_START
    return current_max + 1

def format_library_id(library_id: int) -> str:
    return f"{settings.LIBRARY_ID_PREFIX}{library_id:04d}"

def parse_exact_int(text: str | None) -> int | None:
    """Return the integer only when ``text`` is exactly its decimal form ("42", not "042" or "42a")."""
    if text is None:
        return None
    t = text.strip()
    if not _EXACT_INT.match(t):
        return None
    n = int(t)
    if str(n) != t or not in_db_range(n):
        return None
    return n

def extract_library_id(search: str | None) -> int | None:
    """Read a library card number out of a search term.

    Accepts ``MCL1001``, ``mcl 1001`` and a bare ``1001``. The prefix alone
    (``MCL``) is not a card number.
    """
    if not search:
        return None
    term = search.strip().upper()
    prefix = settings.LIBRARY_ID_PREFIX.upper()
    if prefix and term.startswith(prefix):
        m = _LEADING_INT.match(term[len(prefix):].strip())
        if not m:
            return None
        n = int(m.group(0))
        return n if in_db_range(n) else None
    return parse_exact_int(term)
