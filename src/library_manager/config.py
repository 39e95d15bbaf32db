import os
from dotenv import load_dotenv

load_dotenv()

def _as_bool(v: str | None, default: bool = False) -> bool:
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}

class Settings:
    # App
    APP_NAME: str = os.getenv("APP_NAME", "Library Manager")
    ENV: str = os.getenv("ENV", "dev")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))

    # DB
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./library.db")
    DB_ECHO: bool = _as_bool(os.getenv("DB_ECHO"), False)

    # Lists
    PAGE_SIZE: int = int(os.getenv("PAGE_SIZE", "10"))

    # Loans
    LOAN_PERIOD_DAYS: int = int(os.getenv("LOAN_PERIOD_DAYS", "7"))

    # Library card
    LIBRARY_ID_START: int = int(os.getenv("LIBRARY_ID_START", "1001"))
    LIBRARY_ID_PREFIX: str = os.getenv("LIBRARY_ID_PREFIX", "MCL")

settings = Settings()
