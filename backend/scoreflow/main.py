"""FastAPI application entry point."""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from scoreflow.config import settings
from scoreflow.logging_config import configure_logging
from scoreflow.api import health, public, internal, entitlements, flags, audit, exports
from scoreflow.middleware.auth import create_admin_token

configure_logging()

app = FastAPI(
    title=settings.app_name,
    description="Assessment completion pipeline: lead capture, scoring, plan entitlements and notifications",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS - the public form is embedded on tenant sites
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(public.router, prefix=settings.api_prefix)
app.include_router(internal.router, prefix=settings.api_prefix)
app.include_router(entitlements.router, prefix=settings.api_prefix)
app.include_router(flags.router, prefix=settings.api_prefix)
app.include_router(audit.router, prefix=settings.api_prefix)
app.include_router(exports.router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs",
    }


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    email: str


@app.post(f"{settings.api_prefix}/auth/login", response_model=LoginResponse)
async def login(req: LoginRequest):
    """Simple admin login. Returns JWT token."""
    if req.email == settings.admin_email and req.password == settings.admin_password:
        token = create_admin_token(req.email)
        return LoginResponse(token=token, email=req.email)
    raise HTTPException(status_code=401, detail="Invalid credentials")
