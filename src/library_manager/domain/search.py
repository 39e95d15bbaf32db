from typing import Optional
from sqlalchemy import or_
from sqlalchemy.sql.elements import ColumnElement

from library_manager.models import Book, Patron
from library_manager.domain.identifiers import extract_library_id, parse_exact_int

def normalize_search(search: Optional[str]) -> str:
    return (search or "").strip()

def _contains(column, term: str):
    return column.icontains(term, autoescape=True)

def book_filter(search: Optional[str]) -> Optional[ColumnElement[bool]]:
    term = normalize_search(search)
    if not term:
        return None
    conditions = [_contains(Book.title, term), _contains(Book.author, term), _contains(Book.genre, term)]
    year = parse_exact_int(term)
    if year is not None:
        conditions.append(Book.first_published == year)
    return or_(*conditions)

def patron_filter(search: Optional[str]) -> Optional[ColumnElement[bool]]:
    term = normalize_search(search)
    if not term:
        return None
    conditions = [
        _contains(Patron.first_name, term),
        _contains(Patron.last_name, term),
        _contains(Patron.email, term),
        _contains(Patron.address, term),
        _contains(Patron.zip_code, term),
    ]
    library_id = extract_library_id(term)
    if library_id is not None:
        conditions.append(Patron.library_id == library_id)
    return or_(*conditions)

def loan_filter(search: Optional[str]) -> Optional[ColumnElement[bool]]:
    """Filter for a loan query that is already joined to ``Book`` and ``Patron``."""
    term = normalize_search(search)
    if not term:
        return None
    conditions = [
        _contains(Book.title, term),
        _contains(Patron.first_name, term),
        _contains(Patron.last_name, term),
    ]
    library_id = extract_library_id(term)
    if library_id is not None:
        conditions.append(Patron.library_id == library_id)
    return or_(*conditions)
