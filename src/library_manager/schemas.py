from datetime import date
from pydantic import BaseModel, ConfigDict, computed_field
from library_manager.domain.identifiers import format_library_id

class FieldError(BaseModel):
    field: str
    message: str

class BookIn(BaseModel):
    title: str
    author: str
    genre: str | None = None
    first_published: int | None = None

class BookOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    title: str
    author: str
    genre: str | None = None
    first_published: int | None = None

class PatronIn(BaseModel):
    first_name: str
    last_name: str
    address: str | None = None
    email: str
    zip_code: str | None = None

class PatronOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    first_name: str
    last_name: str
    address: str | None = None
    email: str
    library_id: int
    zip_code: str | None = None

    @computed_field
    @property
    def library_card(self) -> str:
        return format_library_id(self.library_id)

    @computed_field
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

class LoanOut(BaseModel):
    id: int
    book_id: int
    patron_id: int
    loaned_on: date
    return_by: date
    returned_on: date | None = None
    status: str
    book_title: str
    patron_name: str
    patron_library_card: str

class Pagination(BaseModel):
    current_page: int
    total_pages: int
    search_query: str = ""
