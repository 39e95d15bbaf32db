import enum

class ErrorKind(str, enum.Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL = "INTERNAL"

# Status used by the web layer for each kind of failed action.
HTTP_STATUS = {
    ErrorKind.VALIDATION: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}

GENERIC_ERROR_MESSAGE = "Something went wrong."
PAGE_NOT_FOUND_MESSAGE = "Page Not Found"
