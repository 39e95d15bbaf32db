from datetime import date

from library_manager.domain.validation import (
    clean_form, error_map, validate_book, validate_loan, validate_patron,
)

def _patron(**overrides):
    data = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "address": "12 St James's Square",
        "email": "ada@example.com",
        "library_id": 1001,
        "zip_code": "12345",
    }
    data.update(overrides)
    return data

def test_book_with_title_and_author_only_is_valid():
    assert validate_book({"title": "Dune", "author": "Frank Herbert"}) == []
    assert validate_book({"title": "Dune", "author": "Frank Herbert", "genre": None, "first_published": None}) == []

def test_book_requires_title_and_author():
    errors = validate_book({"title": None, "author": None})
    assert [e.field for e in errors] == ["title", "author"]
    assert errors[0].message == "Title is required and cannot be empty."

def test_book_first_published_must_be_integer():
    errors = validate_book({"title": "Dune", "author": "Frank Herbert", "first_published": "nineteen"})
    assert [e.field for e in errors] == ["first_published"]
    assert validate_book({"title": "Dune", "author": "Frank Herbert", "first_published": "1965"}) == []

def test_valid_patron():
    assert validate_patron(_patron()) == []
    assert validate_patron(_patron(address=None, zip_code=None)) == []
    assert validate_patron(_patron(zip_code="12345-6789")) == []

def test_patron_empty_email_is_rejected():
    errors = validate_patron(_patron(email=""))
    assert len(errors) == 1
    assert errors[0].field == "email"

def test_patron_email_shape_and_length():
    assert error_map(validate_patron(_patron(email="not-an-email")))["email"] == "Please provide a valid email address."
    long_email = "a" * 95 + "@x.com"
    assert error_map(validate_patron(_patron(email=long_email)))["email"] == "Email cannot exceed 100 characters."

def test_patron_name_and_address_lengths():
    m = error_map(validate_patron(_patron(first_name="x" * 51, last_name="", address="y" * 101)))
    assert set(m) == {"first_name", "last_name", "address"}
    assert validate_patron(_patron(first_name="x" * 50, address="y" * 100)) == []

def test_patron_zip_code_pattern():
    for bad in ("1234", "123456", "12345-67", "abcde"):
        assert error_map(validate_patron(_patron(zip_code=bad))).keys() == {"zip_code"}

def test_patron_library_id_must_be_positive():
    assert error_map(validate_patron(_patron(library_id=0)))["library_id"] == "Library ID must be a positive number."
    assert error_map(validate_patron(_patron(library_id="abc")))["library_id"] == "Library ID must be a number."
    assert validate_patron(_patron(library_id=None), check_library_id=False) == []

def test_only_first_error_per_field():
    errors = validate_patron(_patron(email="", first_name=""))
    fields = [e.field for e in errors]
    assert fields == ["first_name", "email"]

def test_loan_shape():
    ok = {"book_id": 1, "patron_id": "2", "loaned_on": date(2024, 1, 1), "return_by": "2024-01-08"}
    assert validate_loan(ok) == []
    m = error_map(validate_loan({"book_id": "0", "patron_id": "x", "loaned_on": "2024-02-30", "return_by": None}))
    assert m == {
        "book_id": "Book ID must be a positive integer.",
        "patron_id": "Patron ID must be an integer.",
        "loaned_on": "Loan date must be a valid date (YYYY-MM-DD).",
        "return_by": "Return-by date is required.",
    }

def test_loan_returned_on_not_before_loaned_on():
    base = {"book_id": 1, "patron_id": 1, "loaned_on": "2024-01-10", "return_by": "2024-01-17"}
    assert validate_loan({**base, "returned_on": "2024-01-10"}) == []
    assert error_map(validate_loan({**base, "returned_on": "2024-01-09"})).keys() == {"returned_on"}
    assert error_map(validate_loan({**base, "returned_on": "soon"})).keys() == {"returned_on"}

def test_clean_form_strips_and_blanks():
    data = clean_form({"title": "  Dune ", "genre": "   ", "extra": "x"}, ("title", "genre", "author"))
    assert data == {"title": "Dune", "genre": None, "author": None}

def test_first_error_per_field_keeps_declaration_order():
    from library_manager.domain.validation import first_error_per_field
    from library_manager.schemas import FieldError
    errors = [
        FieldError(field="email", message="first"),
        FieldError(field="title", message="other"),
        FieldError(field="email", message="second"),
    ]
    assert [(e.field, e.message) for e in first_error_per_field(errors)] == [("email", "first"), ("title", "other")]

def test_integers_past_column_range_are_field_errors():
    huge = "99999999999999999999"
    m = error_map(validate_loan({"book_id": huge, "patron_id": 10**30, "loaned_on": "2024-01-01", "return_by": "2024-01-08"}))
    assert m == {"book_id": "Book ID is out of range.", "patron_id": "Patron ID is out of range."}
    assert error_map(validate_book({"title": "Dune", "author": "Frank Herbert", "first_published": huge})).keys() == {"first_published"}
