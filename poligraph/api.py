"""Admin HTTP API for the duplicate scan and its follow-up actions."""

from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import structlog

from . import __version__
from .config import ConfigManager
from .duplicate_review import DuplicateReviewer
from .duplicate_scan import DuplicateScanner
from .error_handling import PoligraphError
from .models import Config, DuplicateScanResult, MergeResult, ReviewStats
from .repositories import AffairRepository, SQLiteAffairRepository
from .similarity_scoring import SimilarityScorer


logger = structlog.get_logger()


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime


class APIError(BaseModel):
    error_code: str
    message: str
    request_id: Optional[str] = None


class MergeRequest(BaseModel):
    keep_id: str
    remove_id: str


class DismissRequest(BaseModel):
    affair_id_a: str
    affair_id_b: str


# Status codes for pipeline errors the caller can fix
ERROR_STATUS = {
    "affair_not_found": 404,
    "invalid_merge": 400,
}


def create_app(
    repository: Optional[AffairRepository] = None,
    config: Optional[Config] = None,
    title: str = "Poligraph Affairs Admin API",
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        repository: Affair store; defaults to the configured SQLite file
        config: Configuration; defaults to ConfigManager().load()
        title: OpenAPI title
    """
    config = config or ConfigManager().load()
    repository = repository or SQLiteAffairRepository(config.storage.db_path)

    app = FastAPI(title=title, version=__version__, docs_url="/docs", redoc_url="/redoc")
    app.state.repository = repository
    app.state.scanner = DuplicateScanner(SimilarityScorer(config.scoring))

    def get_repository(request: Request) -> AffairRepository:
        return request.app.state.repository

    def get_reviewer(request: Request) -> DuplicateReviewer:
        return DuplicateReviewer(request.app.state.repository, request.app.state.scanner)

    def get_scanner(request: Request) -> DuplicateScanner:
        return request.app.state.scanner

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=APIError(
                error_code=f"HTTP_{exc.status_code}",
                message=str(exc.detail),
                request_id=request.headers.get("X-Request-ID"),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(PoligraphError)
    async def poligraph_exception_handler(request: Request, exc: PoligraphError):
        logger.error("request_failed", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=ERROR_STATUS.get(exc.error_code, 500),
            content=APIError(
                error_code=exc.error_code or "INTERNAL_ERROR",
                message=str(exc),
                request_id=request.headers.get("X-Request-ID"),
            ).model_dump(mode="json"),
        )

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check():
        """Liveness check."""
        return HealthResponse(status="healthy", version=__version__, timestamp=datetime.now(timezone.utc))

    @app.get(
        "/admin/politicians/{subject_id}/duplicates",
        response_model=DuplicateScanResult,
        tags=["Admin"],
        summary="Likely duplicate affairs of one politician",
    )
    def detect_duplicates(
        subject_id: str,
        repository: AffairRepository = Depends(get_repository),
        scanner: DuplicateScanner = Depends(get_scanner),
    ):
        """Score every pair of the politician's affairs. Read-only."""
        result = scanner.scan_subject(repository, subject_id)
        logger.info(
            "duplicate_scan",
            subject_id=subject_id,
            total=result.total,
            groups=len(result.groups),
        )
        return result

    @app.get("/admin/stats", response_model=Dict[str, int], tags=["Admin"])
    def store_stats(repository: AffairRepository = Depends(get_repository)):
        return repository.get_stats()

    @app.post("/admin/affairs/merge", response_model=MergeResult, tags=["Admin"])
    def merge_affairs(
        body: MergeRequest,
        reviewer: DuplicateReviewer = Depends(get_reviewer),
    ):
        """Fold ``remove_id`` into ``keep_id`` and delete it."""
        return reviewer.merge(body.keep_id, body.remove_id)

    @app.post("/admin/affairs/dismiss", tags=["Admin"])
    def dismiss_duplicate(
        body: DismissRequest,
        reviewer: DuplicateReviewer = Depends(get_reviewer),
    ):
        """Stop proposing a pair as duplicates."""
        reviewer.dismiss(body.affair_id_a, body.affair_id_b)
        return {"dismissed": True}

    @app.get("/admin/reconciliation/stats", response_model=ReviewStats, tags=["Admin"])
    def review_stats(reviewer: DuplicateReviewer = Depends(get_reviewer)):
        return reviewer.stats()

    return app
