"""Start the API with uvicorn: `python run.py` from the backend/ directory."""

import os
import uvicorn

from opsboard.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "opsboard.main:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=not settings.is_production,
        workers=int(os.environ.get("WEB_CONCURRENCY", 2)) if settings.is_production else 1,
        proxy_headers=settings.is_production,
    )
