# FILE: main.py
"""
Notebook Tutor Backend - FastAPI Application
Version: 1.1.0

Features:
- Tutor turns for the notebook extension, streamed over SSE or returned as JSON
- Attachments: images, Python/CSV/text files folded into the student's turn
- Cell-type specific instructions (grader / free_response / success)
- Pseudonymised interaction log (SQLAlchemy)

v1.1.0 Changes:
- Interaction logging runs after the response is sent
- /health endpoint for the load balancer
"""
import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

# Load .env FIRST before any other imports that might need env vars
load_dotenv()

from app.db import init_db
from app.endpoints import router as endpoints_router
from app.errors import TutorError
from config.settings import MIN_HMAC_KEY_LENGTH, get_settings

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Notebook Tutor",
    version="1.1.0",
    description="Tutor chat backend for Jupyter notebooks with streaming responses",
)

# ====== CORS ======

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ====== ERRORS ======

@app.exception_handler(TutorError)
async def tutor_error_handler(request: Request, exc: TutorError):
    logger.error(f"[main] {type(exc).__name__} on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})


# ====== STARTUP ======

@app.on_event("startup")
def on_startup():
    os.makedirs("data", exist_ok=True)
    init_db()

    settings = get_settings()

    # Verify critical env vars
    print("[startup] Checking environment variables...")
    if settings.api_key:
        provider = "Azure OpenAI" if settings.uses_azure else "OpenAI"
        print(f"[startup] Provider key: [OK] set ({provider}, model={settings.model})")
    else:
        print("[startup] AZURE_OPEN_AI_KEY / OPENAI_API_KEY: [X] NOT SET - tutor turns will fail")

    if settings.hmac_key_ok:
        print("[startup] HMAC_KEY: [OK] set")
    else:
        print(
            f"[startup] HMAC_KEY: [X] missing or shorter than {MIN_HMAC_KEY_LENGTH} characters "
            "- identified students will not be logged"
        )

    print(f"[startup] Prompts directory: {settings.prompts_dir}")
    print(f"[startup] Interaction log: {settings.database_url}")


# ====== ROUTERS ======

app.include_router(endpoints_router)


# ====== PUBLIC ENDPOINTS ======

@app.get("/health")
def health():
    """Health check (public)."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
