"""FastAPI application exposing profile, tip generation and saved tip endpoints."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging
import time
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wellness.config import Settings
from wellness.services.errors import GenerationError, NotFoundError, StoreError, ValidationError
from wellness.services.profiles import ProfileService
from wellness.services.repository import create_repository
from wellness.services.tip_provider import LangChainTipProvider, create_llm_factory
from wellness.services.tips import TipService
from wellness.services.validation import (
    validate_create_profile,
    validate_generate_tips,
    validate_save_tip,
    validate_tip_detail,
    validate_user_id,
)

logger = logging.getLogger(__name__)


def _lifespan_for(settings: Settings):
    @asynccontextmanager
    async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
        repository = create_repository(settings)
        provider = LangChainTipProvider(llm_factory=create_llm_factory(settings))
        app.state.profile_service = ProfileService(repository=repository)
        app.state.tip_service = TipService(provider=provider)
        logger.info(
            "Services initialised",
            extra={"event": "app.startup", "storage": settings.storage, "provider": settings.llm_provider},
        )
        try:
            yield
        finally:
            repository.close()
            logger.info("Services closed", extra={"event": "app.shutdown"})

    return _lifespan


def get_profile_service(request: Request) -> ProfileService:
    """FastAPI dependency returning the profile service built at startup."""

    service = getattr(request.app.state, "profile_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Profile store unavailable")
    return service


def get_tip_service(request: Request) -> TipService:
    """FastAPI dependency returning the tip service built at startup."""

    service = getattr(request.app.state, "tip_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Tip generator unavailable")
    return service


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error(_: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, "Malformed request")

    @app.exception_handler(NotFoundError)
    async def _not_found(_: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, "User not found")

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return _error(exc.status_code, message)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error",
            exc_info=exc,
            extra={"event": "app.unhandled", "path": request.url.path},
        )
        return _error(500, "Internal Server Error")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; services are created by the lifespan from ``settings``."""

    resolved = settings or Settings.from_env()
    app = FastAPI(title="Wellness Tips API", lifespan=_lifespan_for(resolved))
    app.state.started_at = time.monotonic()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(resolved.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    @app.get("/health")
    @app.get("/healthz", include_in_schema=False)
    def health(request: Request) -> dict[str, Any]:
        return {"ok": True, "uptime": time.monotonic() - request.app.state.started_at}

    @app.post("/api/profile")
    def create_profile(
        payload: Any = Body(default=None),
        profiles: ProfileService = Depends(get_profile_service),
    ) -> dict[str, Any]:
        """Store the initial profile and return its identifier."""

        request = validate_create_profile(payload)
        try:
            user_id = profiles.create_profile(request.age, request.gender, request.goal)
        except StoreError as exc:
            logger.exception("POST /api/profile failed", extra={"event": "profile.error"})
            raise HTTPException(status_code=500, detail="Failed to save profile") from exc
        return {"userId": user_id}

    @app.post("/api/tips/generate")
    def generate_tips(
        payload: Any = Body(default=None),
        tips: TipService = Depends(get_tip_service),
    ) -> dict[str, Any]:
        """Generate five personalised tip cards."""

        request = validate_generate_tips(payload)
        try:
            generated = tips.generate_tips(request.age, request.gender, request.goal)
        except GenerationError as exc:
            logger.exception("POST /api/tips/generate failed", extra={"event": "tips.generate.error"})
            raise HTTPException(status_code=500, detail="Failed to generate tips") from exc
        return {"tips": [tip.as_dict() for tip in generated]}

    @app.post("/api/tips/detail")
    def tip_detail(
        payload: Any = Body(default=None),
        tips: TipService = Depends(get_tip_service),
    ) -> dict[str, Any]:
        """Expand a selected tip into an explanation and action steps."""

        request = validate_tip_detail(payload)
        try:
            detail = tips.generate_tip_detail(request.age, request.gender, request.goal, request.tip_title)
        except GenerationError as exc:
            logger.exception("POST /api/tips/detail failed", extra={"event": "tips.detail.error"})
            raise HTTPException(status_code=500, detail="Failed to generate tip detail") from exc
        return detail.as_dict()

    @app.post("/api/tips/save")
    def save_tip(
        payload: Any = Body(default=None),
        profiles: ProfileService = Depends(get_profile_service),
    ) -> dict[str, Any]:
        """Keep a fully detailed tip under one of the user's goals."""

        request = validate_save_tip(payload)
        try:
            goal = profiles.save_tip(request.user_id, request.tip.to_saved_tip(), request.goal_name)
        except StoreError as exc:
            logger.exception("POST /api/tips/save failed", extra={"event": "tips.save.error"})
            raise HTTPException(status_code=500, detail="Failed to save tip") from exc
        return {"ok": True, "goal": goal}

    @app.get("/api/tips/saved/{user_id}")
    def saved_tips(
        user_id: str,
        profiles: ProfileService = Depends(get_profile_service),
    ) -> dict[str, Any]:
        """Return the user's goals with their saved tips, in stored order."""

        validate_user_id(user_id)
        try:
            goals = profiles.get_saved_tips(user_id)
        except StoreError as exc:
            logger.exception("GET /api/tips/saved failed", extra={"event": "tips.saved.error"})
            raise HTTPException(status_code=500, detail="Failed to load saved tips") from exc
        return {"goals": [goal.as_dict() for goal in goals]}

    return app


app = create_app()
