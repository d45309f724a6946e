from __future__ import annotations

from fastapi import FastAPI

from api.routes.tocs import router as tocs_router
from api.routes.workingsets import router as workingsets_router


def create_app() -> FastAPI:
    """
    Working-set state lives in cookies of the help site itself, so the API is
    served same-origin and registers no CORS middleware.
    """
    app = FastAPI(title="Help Working Sets API", version="0.1.0")
    app.include_router(tocs_router)
    app.include_router(workingsets_router)

    @app.get("/healthz")
    def health() -> dict:
        return {"status": "ok"}

    return app


app = create_app()
