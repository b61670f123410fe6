# session_auth/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from contextlib import asynccontextmanager
import logging
import os

# --- Import Core Backend Components ---
from session_auth import config
from session_auth.routers import auth, reset_password, pages
from session_auth.utils.database import Base, engine
from session_auth.utils.errors import install_error_handlers
from session_auth.models import user, session  # noqa: F401  (register tables)
from session_auth.services import session_service
from session_auth.services.access_gate import (
    PathClass,
    classify_path,
    gate_redirect,
    security_headers,
    wants_security_headers,
)


logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("session_auth")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application Startup: Creating database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Application Startup: Tables created successfully.")
    if config.is_production() and config.SESSION_SECRET == "fallback-secret":
        logger.warning("SESSION_SECRET is not set; sessions are signed with the fallback secret.")
    yield
    await engine.dispose()
    logger.info("Application Shutdown: Goodbye!")


app = FastAPI(title="Session Auth", lifespan=lifespan)

# --- Access gate: redirect page requests based on the session cookie ---
@app.middleware("http")
async def access_gate(request: Request, call_next):
    path = request.url.path
    path_class = classify_path(path)
    if path_class is not PathClass.NEUTRAL:
        session_data = await session_service.verify(request)
        target = gate_redirect(path_class, session_data is not None)
        if target:
            logger.info(f"Access gate: {path} -> {target}")
            response = RedirectResponse(target)
            response.headers.update(security_headers())
            return response

    response = await call_next(request)
    if wants_security_headers(path):
        response.headers.update(security_headers())
    return response

app.add_middleware(
    CORSMiddleware, allow_origins=config.CORS_ORIGINS, allow_credentials=True,
    allow_methods=["*"], allow_headers=["*"],
)

install_error_handlers(app)

# --- Include Routers ---
logger.info("Including routers...")
app.include_router(auth.router)            # /api/signup, /api/login, /api/logout, /api/session
app.include_router(reset_password.router)  # /api/reset-password
app.include_router(pages.router)           # /, /login, /signup, /reset-password, /dashboard
logger.info("Routers included.")


@app.get("/health")
def health_check():
    return {"status": "ok"}


def run() -> None:
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("session_auth.main:app", host=host, port=port)
