from prometheus_fastapi_instrumentator import Instrumentator

from portal import create_app
from portal.core.config import settings
from portal.core.logging import configure_logging

configure_logging(app_name=settings.APP_NAME, environment=settings.APP_ENV)
app = create_app()


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


Instrumentator().instrument(app).expose(app)
