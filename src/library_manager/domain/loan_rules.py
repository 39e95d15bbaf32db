import enum
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import and_
from library_manager.config import settings
from library_manager.models import Loan

ALREADY_CHECKED_OUT = "Selected book is already checked out"

class LoanStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    OVERDUE = "OVERDUE"
    RETURNED = "RETURNED"

class LoanScope(str, enum.Enum):
    ALL = "all"
    ACTIVE = "active"
    OVERDUE = "overdue"

@dataclass(frozen=True)
class LoanDates:
    loaned_on: date
    return_by: date
    returned_on: Optional[date] = None

def due_date(loaned_on: date) -> date:
    return loaned_on + timedelta(days=settings.LOAN_PERIOD_DAYS)

def checkout_dates(today: date) -> LoanDates:
    return LoanDates(loaned_on=today, return_by=due_date(today), returned_on=None)

def record_return(current: LoanDates, today: date) -> LoanDates:
    # Returning twice just moves the date.
    return replace(current, returned_on=today)

def is_active(loan) -> bool:
    return loan.returned_on is None

def is_overdue(loan, today: date) -> bool:
    return is_active(loan) and loan.return_by < today

def classify(loan, today: date) -> LoanStatus:
    if not is_active(loan):
        return LoanStatus.RETURNED
    if loan.return_by < today:
        return LoanStatus.OVERDUE
    return LoanStatus.ACTIVE

def active_clause():
    return Loan.returned_on.is_(None)

def overdue_clause(today: date):
    return and_(Loan.returned_on.is_(None), Loan.return_by < today)

def scope_clause(scope: LoanScope, today: date):
    if scope == LoanScope.ACTIVE:
        return active_clause()
    if scope == LoanScope.OVERDUE:
        return overdue_clause(today)
    return None
