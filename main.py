import uvicorn

from salon.config import get_settings
from salon.main import app  # noqa: F401

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run("salon.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
