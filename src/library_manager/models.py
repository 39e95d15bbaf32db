from datetime import date
from sqlalchemy import String, Integer, Date, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from library_manager.db import Base

class Book(Base):
    __tablename__ = "books"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String, nullable=False, index=True)
    author: Mapped[str] = mapped_column(String, nullable=False)
    genre: Mapped[str | None] = mapped_column(String, nullable=True)
    first_published: Mapped[int | None] = mapped_column(Integer, nullable=True)
    loans = relationship("Loan", back_populates="book")

class Patron(Base):
    __tablename__ = "patrons"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    address: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(String(100), nullable=False)
    library_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    zip_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    loans = relationship("Loan", back_populates="patron")

class Loan(Base):
    __tablename__ = "loans"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    book_id: Mapped[int] = mapped_column(Integer, ForeignKey("books.id", ondelete="RESTRICT"), nullable=False, index=True)
    patron_id: Mapped[int] = mapped_column(Integer, ForeignKey("patrons.id", ondelete="RESTRICT"), nullable=False, index=True)
    loaned_on: Mapped[date] = mapped_column(Date, nullable=False)
    return_by: Mapped[date] = mapped_column(Date, nullable=False)
    returned_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    book = relationship("Book", back_populates="loans")
    patron = relationship("Patron", back_populates="loans")

    # one active loan per book
    __table_args__ = (
        Index(
            "uq_loans_active_book", "book_id", unique=True,
            sqlite_where=text("returned_on IS NULL"),
            postgresql_where=text("returned_on IS NULL"),
        ),
    )
