from pathlib import Path
from fastapi.templating import Jinja2Templates
from library_manager.config import settings

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.globals["app_name"] = settings.APP_NAME
