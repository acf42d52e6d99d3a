import os
import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from .database import init_models
from .errors import AppError
from .llm import api_key_present
from .routers import auth_router, chat_router, conversations_router

logger = logging.getLogger("uvicorn.error")


def parse_origins(env_value: str | None) -> list[str]:
    if not env_value:
        return []
    parts = [s.strip() for s in env_value.split(",") if s.strip()]
    return [p for p in parts if p != "*"]


app = FastAPI(title="Ask Questions")

# configure CORS: read ALLOW_ORIGINS from env (comma separated)
origins = parse_origins(os.getenv("ALLOW_ORIGINS")) or [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    await init_models()


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("%s %s crashed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# include routers
app.include_router(auth_router)
app.include_router(chat_router)
app.include_router(conversations_router)


@app.get("/")
async def root():
    return {"status": "ok"}


@app.get("/health")
async def health():
    if not api_key_present():
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "GROQ_API_KEY is not configured."},
        )
    return {"ok": True}


def run():
    import uvicorn

    uvicorn.run(
        "askq.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


# ---------- RUN ----------
if __name__ == "__main__":
    run()
