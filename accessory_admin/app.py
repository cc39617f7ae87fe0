import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from accessory_admin.auth.admin_sessions import router as session_router
from accessory_admin.auth.session_tokens import require_admin
from accessory_admin.core import config
from accessory_admin.core.db import close_db, init_db
from accessory_admin.core.repositories import DocumentNotFound
from accessory_admin.core.routers import (
    analytics,
    content,
    dashboard,
    fraud,
    health,
    orders,
    payments,
    products,
    reviews,
    settings,
    triggers,
    users,
)

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield
    close_db()


app = FastAPI(title="Accessory Marketplace Admin API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,  # session cookie
    allow_methods=["*"],
    allow_headers=["*"],  # includes Authorization
)


@app.exception_handler(DocumentNotFound)
async def document_not_found(request: Request, exc: DocumentNotFound):
    return JSONResponse(status_code=404, content={"detail": exc.message})


# -------------------------------
# Router registration
# -------------------------------

# Admin routers: every request needs a verified admin session
for module in (analytics, dashboard, orders, products, users, reviews, payments, content, fraud, settings):
    app.include_router(
        module.router,
        prefix="/api",
        tags=[module.__name__.rsplit(".", 1)[-1]],
        dependencies=[Depends(require_admin)],
    )

# Triggers authenticate with an HMAC signature, sessions with Firebase tokens
app.include_router(triggers.router, tags=["triggers"])
app.include_router(session_router)
app.include_router(health.router, tags=["health"])


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/whoami")
def whoami():
    return {"module": "accessory_admin.app", "build_id": config.BUILD_ID}


for r in app.routes:
    logger.debug("ROUTE %s %s", getattr(r, "path", ""), getattr(r, "methods", ""))


if __name__ == "__main__":
    uvicorn.run("accessory_admin.app:app", host="0.0.0.0", port=config.PORT)
