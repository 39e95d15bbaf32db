from __future__ import annotations
import logging
from dataclasses import asdict
from datetime import date
from typing import Optional, Dict, Any, List, Mapping

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func, exists, and_

from library_manager.config import settings
from library_manager.errors import ErrorKind
from library_manager.models import Book, Patron, Loan
from library_manager.schemas import BookIn, BookOut, PatronIn, PatronOut, LoanOut, FieldError
from library_manager.domain.identifiers import next_library_id, format_library_id, in_db_range
from library_manager.domain.pagination import parse_page, offset_for, build_pagination
from library_manager.domain.search import normalize_search, book_filter, patron_filter, loan_filter
from library_manager.domain.validation import (
    clean_form, to_int, validate_book, validate_patron, validate_loan, validate_loan_ids,
    first_error_per_field,
)
from library_manager.domain.loan_rules import (
    ALREADY_CHECKED_OUT, LoanDates, LoanScope,
    checkout_dates, record_return, classify, active_clause, scope_clause,
)

logger = logging.getLogger(__name__)

BOOK_FIELDS = ("title", "author", "genre", "first_published")
PATRON_FIELDS = ("first_name", "last_name", "address", "email", "zip_code")
LOAN_FIELDS = ("book_id", "patron_id")

FIX_ERRORS = "Please correct the following errors:"
LIBRARY_ID_TAKEN = "This library ID is already in use."

def _ok(msg: str, **data):    return {"ok": True,  "message": msg, **({"data": data} if data else {})}
def _err(msg: str, code: ErrorKind = ErrorKind.VALIDATION, **data): return {"ok": False, "message": msg, "code": code, **({"data": data} if data else {})}

def _invalid(errors: List[FieldError], form: Dict[str, Any], code: ErrorKind = ErrorKind.VALIDATION):
    return _err(FIX_ERRORS, code, errors=first_error_per_field(errors), form=form)

def _submitted(form: Mapping[str, Any], fields) -> Dict[str, Any]:
    return {f: (form.get(f) if form.get(f) is not None else "") for f in fields}

def _today(today: Optional[date]) -> date:
    return today or date.today()

def _loan_out(loan: Loan, book: Book, patron: Patron, today: date) -> LoanOut:
    return LoanOut(
        id=loan.id,
        book_id=loan.book_id,
        patron_id=loan.patron_id,
        loaned_on=loan.loaned_on,
        return_by=loan.return_by,
        returned_on=loan.returned_on,
        status=classify(loan, today).value,
        book_title=book.title,
        patron_name=f"{patron.first_name} {patron.last_name}",
        patron_library_card=format_library_id(patron.library_id),
    )

async def _lookup(session: AsyncSession, model, key: int):
    # Keys past the INTEGER range cannot exist and cannot be bound either.
    if key is None or not in_db_range(key):
        return None
    return await session.get(model, key)

async def _page(session: AsyncSession, stmt, count_stmt, *, page: int):
    count = (await session.execute(count_stmt)).scalar_one()
    rows = (await session.execute(stmt.limit(settings.PAGE_SIZE).offset(offset_for(page)))).all()
    return count, rows

# ---------------------------------------------------------------- Books

async def list_books(session: AsyncSession, *, search: Optional[str] = "", page: Any = 1) -> Dict[str, Any]:
    term = normalize_search(search)
    page = parse_page(page)
    stmt = select(Book).order_by(Book.title.asc(), Book.id.asc())
    count_stmt = select(func.count(Book.id))
    where = book_filter(term)
    if where is not None:
        stmt = stmt.where(where)
        count_stmt = count_stmt.where(where)
    count, rows = await _page(session, stmt, count_stmt, page=page)
    items = [BookOut.model_validate(r[0]) for r in rows]
    return _ok(
        "Books listed.",
        items=items, count=count, search=term,
        pagination=build_pagination(count, page, settings.PAGE_SIZE, term),
    )

async def get_book(session: AsyncSession, *, book_id: int) -> Dict[str, Any]:
    book = await _lookup(session, Book, book_id)
    if not book:
        return _err("Book not found", ErrorKind.NOT_FOUND)
    return _ok("Book found.", book=BookOut.model_validate(book))

def _book_payload(data: Dict[str, Any]) -> BookIn:
    return BookIn(
        title=data["title"],
        author=data["author"],
        genre=data.get("genre"),
        first_published=to_int(data.get("first_published")),
    )

async def create_book(session: AsyncSession, *, form: Mapping[str, Any]) -> Dict[str, Any]:
    data = clean_form(form, BOOK_FIELDS)
    errors = validate_book(data)
    if errors:
        return _invalid(errors, _submitted(form, BOOK_FIELDS))
    b = Book(**_book_payload(data).model_dump())
    session.add(b)
    await session.commit()
    await session.refresh(b)
    logger.info(f"Created book {b.id} ({b.title!r})")
    return _ok("Book created.", book=BookOut.model_validate(b))

async def update_book(session: AsyncSession, *, book_id: int, form: Mapping[str, Any]) -> Dict[str, Any]:
    book = await _lookup(session, Book, book_id)
    if not book:
        return _err("Book not found", ErrorKind.NOT_FOUND)
    data = clean_form(form, BOOK_FIELDS)
    errors = validate_book(data)
    if errors:
        return _invalid(errors, {"id": book.id, **_submitted(form, BOOK_FIELDS)})
    for k, v in _book_payload(data).model_dump().items():
        setattr(book, k, v)
    await session.commit()
    await session.refresh(book)
    logger.info(f"Updated book {book.id}")
    return _ok("Book updated.", book=BookOut.model_validate(book))

# -------------------------------------------------------------- Patrons

async def list_patrons(session: AsyncSession, *, search: Optional[str] = "", page: Any = 1) -> Dict[str, Any]:
    term = normalize_search(search)
    page = parse_page(page)
    stmt = select(Patron).order_by(Patron.last_name.asc(), Patron.first_name.asc(), Patron.id.asc())
    count_stmt = select(func.count(Patron.id))
    where = patron_filter(term)
    if where is not None:
        stmt = stmt.where(where)
        count_stmt = count_stmt.where(where)
    count, rows = await _page(session, stmt, count_stmt, page=page)
    items = [PatronOut.model_validate(r[0]) for r in rows]
    return _ok(
        "Patrons listed.",
        items=items, count=count, search=term,
        pagination=build_pagination(count, page, settings.PAGE_SIZE, term),
    )

async def get_patron(session: AsyncSession, *, patron_id: int) -> Dict[str, Any]:
    patron = await _lookup(session, Patron, patron_id)
    if not patron:
        return _err("Patron not found", ErrorKind.NOT_FOUND)
    return _ok("Patron found.", patron=PatronOut.model_validate(patron))

def _patron_payload(data: Dict[str, Any]) -> PatronIn:
    return PatronIn(
        first_name=data["first_name"],
        last_name=data["last_name"],
        address=data.get("address"),
        email=data["email"],
        zip_code=data.get("zip_code"),
    )

async def create_patron(session: AsyncSession, *, form: Mapping[str, Any]) -> Dict[str, Any]:
    data = clean_form(form, PATRON_FIELDS)
    # Read-then-write; the unique constraint on library_id catches a concurrent twin.
    current_max = (await session.execute(select(func.max(Patron.library_id)))).scalar_one_or_none()
    data["library_id"] = next_library_id(current_max)
    errors = validate_patron(data)
    if errors:
        return _invalid(errors, _submitted(form, PATRON_FIELDS))
    p = Patron(**_patron_payload(data).model_dump(), library_id=data["library_id"])
    session.add(p)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.warning(f"Library ID {data['library_id']} was taken concurrently")
        return _invalid(
            [FieldError(field="library_id", message=LIBRARY_ID_TAKEN)],
            _submitted(form, PATRON_FIELDS), ErrorKind.CONFLICT,
        )
    await session.refresh(p)
    logger.info(f"Created patron {p.id} with card {format_library_id(p.library_id)}")
    return _ok("Patron created.", patron=PatronOut.model_validate(p))

async def update_patron(session: AsyncSession, *, patron_id: int, form: Mapping[str, Any]) -> Dict[str, Any]:
    patron = await _lookup(session, Patron, patron_id)
    if not patron:
        return _err("Patron not found", ErrorKind.NOT_FOUND)
    data = clean_form(form, PATRON_FIELDS)
    errors = validate_patron(data, check_library_id=False)
    if errors:
        return _invalid(
            errors,
            {"id": patron.id, "library_card": format_library_id(patron.library_id), **_submitted(form, PATRON_FIELDS)},
        )
    for k, v in _patron_payload(data).model_dump().items():
        setattr(patron, k, v)
    await session.commit()
    await session.refresh(patron)
    logger.info(f"Updated patron {patron.id}")
    return _ok("Patron updated.", patron=PatronOut.model_validate(patron))

# ---------------------------------------------------------------- Loans

def _loans_query():
    return (
        select(Loan, Book, Patron)
        .join(Book, Loan.book_id == Book.id)
        .join(Patron, Loan.patron_id == Patron.id)
    )

def _loans_count_query():
    return (
        select(func.count(Loan.id))
        .select_from(Loan)
        .join(Book, Loan.book_id == Book.id)
        .join(Patron, Loan.patron_id == Patron.id)
    )

async def list_loans(
    session: AsyncSession, *, scope: LoanScope = LoanScope.ALL, search: Optional[str] = "",
    page: Any = 1, today: Optional[date] = None,
) -> Dict[str, Any]:
    today = _today(today)
    term = normalize_search(search)
    page = parse_page(page)
    stmt = _loans_query().order_by(Loan.loaned_on.desc(), Loan.id.desc())
    count_stmt = _loans_count_query()
    for clause in (scope_clause(scope, today), loan_filter(term)):
        if clause is not None:
            stmt = stmt.where(clause)
            count_stmt = count_stmt.where(clause)
    count, rows = await _page(session, stmt, count_stmt, page=page)
    items = [_loan_out(loan, book, patron, today) for loan, book, patron in rows]
    return _ok(
        "Loans listed.",
        items=items, count=count, search=term, scope=scope.value,
        pagination=build_pagination(count, page, settings.PAGE_SIZE, term),
    )

async def _history(session: AsyncSession, where, today: date) -> List[LoanOut]:
    stmt = _loans_query().where(where).order_by(Loan.loaned_on.desc(), Loan.id.desc())
    rows = (await session.execute(stmt)).all()
    return [_loan_out(loan, book, patron, today) for loan, book, patron in rows]

async def loans_for_book(session: AsyncSession, *, book_id: int, today: Optional[date] = None) -> List[LoanOut]:
    return await _history(session, Loan.book_id == book_id, _today(today))

async def loans_for_patron(session: AsyncSession, *, patron_id: int, today: Optional[date] = None) -> List[LoanOut]:
    return await _history(session, Loan.patron_id == patron_id, _today(today))

async def checkout_options(session: AsyncSession) -> Dict[str, Any]:
    on_loan = exists(select(Loan.id).where(and_(Loan.book_id == Book.id, active_clause())))
    books = (await session.execute(select(Book).where(~on_loan).order_by(Book.title.asc(), Book.id.asc()))).scalars().all()
    patrons = (await session.execute(
        select(Patron).order_by(Patron.last_name.asc(), Patron.first_name.asc(), Patron.id.asc())
    )).scalars().all()
    return _ok(
        "Checkout options.",
        books=[BookOut.model_validate(b) for b in books],
        patrons=[PatronOut.model_validate(p) for p in patrons],
    )

async def _book_on_loan(session: AsyncSession, book_id: int) -> bool:
    r = await session.execute(select(Loan.id).where(and_(Loan.book_id == book_id, active_clause())).limit(1))
    return r.first() is not None

async def checkout(session: AsyncSession, *, form: Mapping[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    data = clean_form(form, LOAN_FIELDS)
    submitted = _submitted(form, LOAN_FIELDS)
    errors = validate_loan_ids(data)
    bad = {e.field for e in errors}
    code = ErrorKind.VALIDATION

    # Collect every problem before answering.
    book_id = to_int(data["book_id"])
    patron_id = to_int(data["patron_id"])
    if "book_id" not in bad:
        if not await _lookup(session, Book, book_id):
            errors.append(FieldError(field="book_id", message="Selected book does not exist."))
        elif await _book_on_loan(session, book_id):
            errors.append(FieldError(field="book_id", message=ALREADY_CHECKED_OUT))
            code = ErrorKind.CONFLICT
    if "patron_id" not in bad and not await _lookup(session, Patron, patron_id):
        errors.append(FieldError(field="patron_id", message="Selected patron does not exist."))
    if errors:
        return _invalid(errors, submitted, code)

    dates = checkout_dates(_today(today))
    record = {"book_id": book_id, "patron_id": patron_id, **asdict(dates)}
    errors = validate_loan(record)
    if errors:
        return _invalid(errors, submitted)
    loan = Loan(**record)
    session.add(loan)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        logger.warning(f"Book {book_id} was checked out concurrently")
        return _invalid([FieldError(field="book_id", message=ALREADY_CHECKED_OUT)], submitted, ErrorKind.CONFLICT)
    await session.refresh(loan)
    logger.info(f"Book {book_id} loaned to patron {patron_id} until {loan.return_by.isoformat()}")
    return _ok(
        "Book checked out.",
        loan_id=loan.id, book_id=loan.book_id, patron_id=loan.patron_id,
        loaned_on=loan.loaned_on, return_by=loan.return_by,
    )

async def get_loan(session: AsyncSession, *, loan_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    row = None
    if in_db_range(loan_id):
        row = (await session.execute(_loans_query().where(Loan.id == loan_id))).first()
    if not row:
        return _err("Loan not found", ErrorKind.NOT_FOUND)
    loan, book, patron = row
    return _ok("Loan found.", loan=_loan_out(loan, book, patron, _today(today)))

async def return_loan(session: AsyncSession, *, loan_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    loan = await _lookup(session, Loan, loan_id)
    if not loan:
        return _err("Loan not found", ErrorKind.NOT_FOUND)
    current = LoanDates(loaned_on=loan.loaned_on, return_by=loan.return_by, returned_on=loan.returned_on)
    updated = record_return(current, _today(today))
    errors = validate_loan({"book_id": loan.book_id, "patron_id": loan.patron_id, **asdict(updated)})
    if errors:
        return _invalid(errors, {"id": loan.id})
    loan.returned_on = updated.returned_on
    await session.commit()
    await session.refresh(loan)
    logger.info(f"Loan {loan.id} returned on {loan.returned_on.isoformat()}")
    return _ok("Book returned.", loan_id=loan.id, returned_on=loan.returned_on)
