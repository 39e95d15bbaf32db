import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from library_manager.schemas import FieldError
from library_manager.domain.identifiers import in_db_range

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
INT_RE = re.compile(r"^[+-]?\d+$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

NAME_MAX = 50
ADDRESS_MAX = 100
EMAIL_MAX = 100

def clean_form(form: Mapping[str, Any], fields: Iterable[str]) -> Dict[str, Any]:
    """Keep only ``fields``, strip strings and turn blanks into None."""
    out: Dict[str, Any] = {}
    for name in fields:
        v = form.get(name)
        if isinstance(v, str):
            v = v.strip() or None
        out[name] = v
    return out

def _integral(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and INT_RE.match(value.strip()):
        return int(value.strip())
    return None

def to_int(value: Any) -> Optional[int]:
    """Integer that fits a database column, else None."""
    n = _integral(value)
    if n is None or not in_db_range(n):
        return None
    return n

def to_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and ISO_DATE_RE.match(value.strip()):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return None

def first_error_per_field(errors: Iterable[FieldError]) -> List[FieldError]:
    seen = set()
    out = []
    for e in errors:
        if e.field in seen:
            continue
        seen.add(e.field)
        out.append(e)
    return out

def error_map(errors: Iterable[FieldError]) -> Dict[str, str]:
    return {e.field: e.message for e in first_error_per_field(errors)}

def _positive_int(errors: List[FieldError], data: Mapping[str, Any], field: str, label: str) -> None:
    raw = data.get(field)
    if raw is None or raw == "":
        errors.append(FieldError(field=field, message=f"{label} is required."))
        return
    n = to_int(raw)
    if n is None and _integral(raw) is not None:
        errors.append(FieldError(field=field, message=f"{label} is out of range."))
    elif n is None:
        errors.append(FieldError(field=field, message=f"{label} must be an integer."))
    elif n < 1:
        errors.append(FieldError(field=field, message=f"{label} must be a positive integer."))

def _required_date(errors: List[FieldError], data: Mapping[str, Any], field: str, label: str) -> Optional[date]:
    raw = data.get(field)
    if raw is None or raw == "":
        errors.append(FieldError(field=field, message=f"{label} is required."))
        return None
    d = to_date(raw)
    if d is None:
        errors.append(FieldError(field=field, message=f"{label} must be a valid date (YYYY-MM-DD)."))
    return d

def validate_book(data: Mapping[str, Any]) -> List[FieldError]:
    errors: List[FieldError] = []
    if not data.get("title"):
        errors.append(FieldError(field="title", message="Title is required and cannot be empty."))
    if not data.get("author"):
        errors.append(FieldError(field="author", message="Author is required and cannot be empty."))
    first_published = data.get("first_published")
    if first_published not in (None, "") and to_int(first_published) is None:
        errors.append(FieldError(field="first_published", message="First published must be a whole number (e.g. 1954)."))
    return first_error_per_field(errors)

def _name(errors: List[FieldError], value: Optional[str], field: str, label: str) -> None:
    if not value:
        errors.append(FieldError(field=field, message=f"Please provide a {label.lower()}."))
    elif len(value) > NAME_MAX:
        errors.append(FieldError(field=field, message=f"{label} must be between 1 and {NAME_MAX} characters."))

def validate_patron(data: Mapping[str, Any], *, check_library_id: bool = True) -> List[FieldError]:
    """Field checks for a patron record.

    Uniqueness of ``library_id`` is enforced by the unique column on insert;
    here it only has to be a positive integer. Updates skip it entirely since
    the card number never changes after creation.
    """
    errors: List[FieldError] = []
    _name(errors, data.get("first_name"), "first_name", "First name")
    _name(errors, data.get("last_name"), "last_name", "Last name")

    address = data.get("address")
    if address and len(address) > ADDRESS_MAX:
        errors.append(FieldError(field="address", message=f"Address cannot exceed {ADDRESS_MAX} characters."))

    email = data.get("email")
    if not email:
        errors.append(FieldError(field="email", message="Please provide an email address."))
    elif len(email) > EMAIL_MAX:
        errors.append(FieldError(field="email", message=f"Email cannot exceed {EMAIL_MAX} characters."))
    elif not EMAIL_RE.match(email):
        errors.append(FieldError(field="email", message="Please provide a valid email address."))

    if check_library_id:
        library_id = data.get("library_id")
        n = to_int(library_id)
        if library_id is None:
            errors.append(FieldError(field="library_id", message="Library ID is required."))
        elif n is None:
            errors.append(FieldError(field="library_id", message="Library ID must be a number."))
        elif n < 1:
            errors.append(FieldError(field="library_id", message="Library ID must be a positive number."))

    zip_code = data.get("zip_code")
    if zip_code and not ZIP_RE.match(zip_code):
        errors.append(FieldError(
            field="zip_code",
            message="Please provide a valid 5 or 9-digit zip code (e.g., 12345 or 12345-6789).",
        ))
    return first_error_per_field(errors)

def validate_loan_ids(data: Mapping[str, Any]) -> List[FieldError]:
    errors: List[FieldError] = []
    _positive_int(errors, data, "book_id", "Book ID")
    _positive_int(errors, data, "patron_id", "Patron ID")
    return errors

def validate_loan(data: Mapping[str, Any]) -> List[FieldError]:
    """Shape checks for a full loan record; existence of the book and patron is the caller's job."""
    errors = validate_loan_ids(data)
    loaned_on = _required_date(errors, data, "loaned_on", "Loan date")
    _required_date(errors, data, "return_by", "Return-by date")
    returned_raw = data.get("returned_on")
    if returned_raw not in (None, ""):
        returned_on = to_date(returned_raw)
        if returned_on is None:
            errors.append(FieldError(field="returned_on", message="Returned-on must be a valid date (YYYY-MM-DD)."))
        elif loaned_on is not None and returned_on < loaned_on:
            errors.append(FieldError(field="returned_on", message="Returned-on cannot be earlier than the loan date."))
    return first_error_per_field(errors)
