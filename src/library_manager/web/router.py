from typing import Annotated, Any, Dict
from fastapi import APIRouter, Depends, HTTPException, Path, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from library_manager.deps import get_session
from library_manager.errors import ErrorKind, HTTP_STATUS, GENERIC_ERROR_MESSAGE
from library_manager.domain.identifiers import DB_INT_MAX
from library_manager.domain.loan_rules import LoanScope
from library_manager.domain.validation import error_map
from library_manager.web.templating import templates

from library_manager.actions import (
    list_books, get_book, create_book, update_book,
    list_patrons, get_patron, create_patron, update_patron,
    list_loans, loans_for_book, loans_for_patron, checkout_options, checkout,
    get_loan, return_loan,
)

router = APIRouter()

# Out-of-range ids fail validation and render as 404.
RecordId = Annotated[int, Path(ge=1, le=DB_INT_MAX)]

LOAN_TITLES = {
    LoanScope.ALL: "Loans",
    LoanScope.ACTIVE: "Checked Out Books",
    LoanScope.OVERDUE: "Overdue Books",
}

def _render(request: Request, name: str, status_code: int = 200, **context):
    return templates.TemplateResponse(request, name, context, status_code=status_code)

def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)

async def _form(request: Request) -> Dict[str, Any]:
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}

def _fail(request: Request, r: Dict[str, Any], template: str, **context):
    code = r.get("code")
    if code is ErrorKind.NOT_FOUND:
        raise HTTPException(status_code=404, detail=r["message"])
    if code is ErrorKind.INTERNAL:
        raise HTTPException(status_code=500, detail=GENERIC_ERROR_MESSAGE)
    d = r.get("data") or {}
    errors = d.get("errors") or []
    return _render(
        request, template, HTTP_STATUS[code],
        form=d.get("form") or {}, errors=errors, error_map=error_map(errors), error=r["message"], **context,
    )

def _require(r: Dict[str, Any]) -> Dict[str, Any]:
    if not r["ok"]:
        raise HTTPException(status_code=404, detail=r["message"])
    return r["data"]

def _method_override(form: Dict[str, Any], expected: str) -> None:
    if (form.get("_method") or "").upper() != expected:
        raise HTTPException(status_code=405, detail="Method Not Allowed")

@router.get("/")
async def http_home(request: Request):
    return _render(request, "index.html")

# ---------------------------------------------------------------- Books

@router.get("/books")
async def http_list_books(request: Request, search: str = "", page: str = "1", session: AsyncSession = Depends(get_session)):
    d = (await list_books(session, search=search, page=page))["data"]
    return _render(request, "books/list.html", books=d["items"], pagination=d["pagination"], search=d["search"])

@router.get("/books/new")
async def http_new_book(request: Request):
    return _render(request, "books/new.html", form={}, errors=[], error_map={})

@router.post("/books/new")
async def http_create_book(request: Request, session: AsyncSession = Depends(get_session)):
    r = await create_book(session, form=await _form(request))
    if not r["ok"]:
        return _fail(request, r, "books/new.html")
    return _redirect("/books")

@router.get("/books/{book_id}")
async def http_edit_book(request: Request, book_id: RecordId, session: AsyncSession = Depends(get_session)):
    book = _require(await get_book(session, book_id=book_id))["book"]
    loans = await loans_for_book(session, book_id=book_id)
    return _render(request, "books/edit.html", form=book.model_dump(), loans=loans, errors=[], error_map={})

async def _update_book(request: Request, book_id: int, form: Dict[str, Any], session: AsyncSession):
    r = await update_book(session, book_id=book_id, form=form)
    if not r["ok"]:
        loans = await loans_for_book(session, book_id=book_id) if r["code"] is not ErrorKind.NOT_FOUND else []
        return _fail(request, r, "books/edit.html", loans=loans)
    return _redirect("/books")

@router.put("/books/{book_id}")
async def http_update_book(request: Request, book_id: RecordId, session: AsyncSession = Depends(get_session)):
    return await _update_book(request, book_id, await _form(request), session)

@router.post("/books/{book_id}")
async def http_update_book_override(request: Request, book_id: RecordId, session: AsyncSession = Depends(get_session)):
    form = await _form(request)
    _method_override(form, "PUT")
    return await _update_book(request, book_id, form, session)

# -------------------------------------------------------------- Patrons

@router.get("/patrons")
async def http_list_patrons(request: Request, search: str = "", page: str = "1", session: AsyncSession = Depends(get_session)):
    d = (await list_patrons(session, search=search, page=page))["data"]
    return _render(request, "patrons/list.html", patrons=d["items"], pagination=d["pagination"], search=d["search"])

@router.get("/patrons/new")
async def http_new_patron(request: Request):
    return _render(request, "patrons/new.html", form={}, errors=[], error_map={})

@router.post("/patrons/new")
async def http_create_patron(request: Request, session: AsyncSession = Depends(get_session)):
    r = await create_patron(session, form=await _form(request))
    if not r["ok"]:
        return _fail(request, r, "patrons/new.html")
    return _redirect("/patrons")

@router.get("/patrons/{patron_id}")
async def http_edit_patron(request: Request, patron_id: RecordId, session: AsyncSession = Depends(get_session)):
    patron = _require(await get_patron(session, patron_id=patron_id))["patron"]
    loans = await loans_for_patron(session, patron_id=patron_id)
    return _render(request, "patrons/edit.html", form=patron.model_dump(), loans=loans, errors=[], error_map={})

async def _update_patron(request: Request, patron_id: int, form: Dict[str, Any], session: AsyncSession):
    r = await update_patron(session, patron_id=patron_id, form=form)
    if not r["ok"]:
        loans = await loans_for_patron(session, patron_id=patron_id) if r["code"] is not ErrorKind.NOT_FOUND else []
        return _fail(request, r, "patrons/edit.html", loans=loans)
    return _redirect("/patrons")

@router.put("/patrons/{patron_id}")
async def http_update_patron(request: Request, patron_id: RecordId, session: AsyncSession = Depends(get_session)):
    return await _update_patron(request, patron_id, await _form(request), session)

@router.post("/patrons/{patron_id}")
async def http_update_patron_override(request: Request, patron_id: RecordId, session: AsyncSession = Depends(get_session)):
    form = await _form(request)
    _method_override(form, "PUT")
    return await _update_patron(request, patron_id, form, session)

# ---------------------------------------------------------------- Loans

async def _loan_list(request: Request, scope: LoanScope, search: str, page: str, session: AsyncSession):
    d = (await list_loans(session, scope=scope, search=search, page=page))["data"]
    return _render(
        request, "loans/list.html",
        loans=d["items"], pagination=d["pagination"], search=d["search"],
        scope=scope.value, title=LOAN_TITLES[scope],
    )

@router.get("/loans")
async def http_list_loans(request: Request, search: str = "", page: str = "1", session: AsyncSession = Depends(get_session)):
    return await _loan_list(request, LoanScope.ALL, search, page, session)

@router.get("/loans/active")
async def http_list_active_loans(request: Request, search: str = "", page: str = "1", session: AsyncSession = Depends(get_session)):
    return await _loan_list(request, LoanScope.ACTIVE, search, page, session)

@router.get("/loans/overdue")
async def http_list_overdue_loans(request: Request, search: str = "", page: str = "1", session: AsyncSession = Depends(get_session)):
    return await _loan_list(request, LoanScope.OVERDUE, search, page, session)

@router.get("/loans/new")
async def http_new_loan(request: Request, session: AsyncSession = Depends(get_session)):
    d = (await checkout_options(session))["data"]
    return _render(request, "loans/new.html", books=d["books"], patrons=d["patrons"], form={}, errors=[], error_map={})

@router.post("/loans/new")
async def http_checkout(request: Request, session: AsyncSession = Depends(get_session)):
    r = await checkout(session, form=await _form(request))
    if not r["ok"]:
        d = (await checkout_options(session))["data"]
        return _fail(request, r, "loans/new.html", books=d["books"], patrons=d["patrons"])
    return _redirect("/loans")

@router.get("/loans/{loan_id}/return")
async def http_return_form(request: Request, loan_id: RecordId, session: AsyncSession = Depends(get_session)):
    loan = _require(await get_loan(session, loan_id=loan_id))["loan"]
    return _render(request, "loans/return.html", loan=loan, errors=[], error_map={})

@router.post("/loans/{loan_id}/return")
async def http_return(request: Request, loan_id: RecordId, session: AsyncSession = Depends(get_session)):
    r = await return_loan(session, loan_id=loan_id)
    if not r["ok"]:
        if r["code"] is ErrorKind.NOT_FOUND:
            raise HTTPException(status_code=404, detail=r["message"])
        loan = _require(await get_loan(session, loan_id=loan_id))["loan"]
        return _fail(request, r, "loans/return.html", loan=loan)
    return _redirect("/loans")
