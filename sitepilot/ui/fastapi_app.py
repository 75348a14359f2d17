"""FastAPI application exposing the change-request workflow."""

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional
import logging
from datetime import datetime, timezone

from ..agents.orchestrator import ChangeRequestCoordinator, build_coordinator
from ..core.auth import IdentityProvider, StaticTokenIdentityProvider
from ..core.config import load_config
from ..core.errors import InvalidInput, WorkflowError
from ..core.logging import setup_logging

logger = logging.getLogger(__name__)


class ApiModel(BaseModel):
    """Request body accepting camelCase or snake_case keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateSiteRequest(ApiModel):
    name: str = ""
    repo_name: str = ""
    vercel_project_id: Optional[str] = None


class UpdateSiteRequest(ApiModel):
    name: Optional[str] = None
    vercel_project_id: Optional[str] = None


class ChatRequest(ApiModel):
    message: str = ""
    model: Optional[str] = None


def camelize(data: Any) -> Any:
    """Convert dict keys to camelCase recursively."""
    if isinstance(data, dict):
        return {to_camel(k): camelize(v) for k, v in data.items()}
    if isinstance(data, list):
        return [camelize(v) for v in data]
    return data


def dump(model: BaseModel) -> Dict[str, Any]:
    return camelize(model.model_dump(mode="json"))


def describe_validation_errors(errors) -> str:
    """Flatten pydantic errors into one line, e.g. ``message: Input should be a valid string``."""
    parts = []
    for error in errors:
        loc = [str(p) for p in error.get("loc", ()) if p != "body"]
        parts.append(f"{'.'.join(loc) or 'body'}: {error.get('msg', 'invalid')}")
    return "Invalid request: " + "; ".join(parts)


def get_coordinator(request: Request) -> ChangeRequestCoordinator:
    return request.app.state.coordinator


def current_user(request: Request, authorization: Optional[str] = Header(None)) -> str:
    """Resolve the caller from the bearer token."""
    identity: IdentityProvider = request.app.state.identity
    return identity.authenticate(authorization)


def create_app(
    coordinator: Optional[ChangeRequestCoordinator] = None,
    identity: Optional[IdentityProvider] = None,
) -> FastAPI:
    """Build the API; collaborators not passed in are wired from config at startup."""
    app = FastAPI(title="SitePilot", version="0.1.0")
    app.state.coordinator = coordinator
    app.state.identity = identity

    @app.on_event("startup")
    async def startup_event():
        """Initialize logging and services on startup."""
        if app.state.coordinator is not None and app.state.identity is not None:
            return
        config = load_config()
        setup_logging(config.logging.level, config.logging.structured)
        if app.state.coordinator is None:
            app.state.coordinator = build_coordinator(config)
        if app.state.identity is None:
            app.state.identity = StaticTokenIdentityProvider(config.auth.tokens)
        logger.info("Application started")

    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(request: Request, exc: WorkflowError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        error = InvalidInput(describe_validation_errors(exc.errors()))
        return JSONResponse(status_code=error.status_code, content={"error": error.to_dict()})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"{request.method} {request.url.path} error: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": {"kind": "internal_error", "message": "Internal server error", "retryable": True}},
        )

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/models")
    def list_models(
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        return {"models": coordinator.list_models()}

    @app.get("/sites")
    def list_sites(
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        sites = []
        for summary in coordinator.sites.list(user_id):
            item = dump(summary.site)
            latest = summary.latest_pending_change
            item["pendingChanges"] = [dump(latest)] if latest else []
            sites.append(item)
        return {"sites": sites}

    @app.post("/sites", status_code=201)
    def create_site(
        body: CreateSiteRequest,
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        site = coordinator.sites.create(user_id, body.name, body.repo_name, body.vercel_project_id)
        return {"site": dump(site)}

    @app.get("/sites/{site_id}")
    def get_site(
        site_id: str,
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        detail = coordinator.sites.get(user_id, site_id)
        site = dump(detail.site)
        site["pendingChanges"] = [dump(c) for c in detail.pending_changes]
        site["changeHistory"] = [dump(h) for h in detail.change_history]
        return {"site": site}

    @app.put("/sites/{site_id}")
    def update_site(
        site_id: str,
        body: UpdateSiteRequest,
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        # An explicit null vercelProjectId clears it; an absent key leaves it alone
        clear_project = "vercel_project_id" in body.model_fields_set and body.vercel_project_id is None
        site = coordinator.sites.update(
            user_id, site_id,
            name=body.name,
            vercel_project_id=body.vercel_project_id,
            clear_project=clear_project,
        )
        return {"site": dump(site)}

    @app.delete("/sites/{site_id}")
    def delete_site(
        site_id: str,
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        coordinator.sites.delete(user_id, site_id)
        return {"message": "Site deleted successfully"}

    @app.post("/sites/{site_id}/chat")
    def propose_change(
        site_id: str,
        body: ChatRequest,
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        outcome = coordinator.propose(user_id, site_id, body.message, body.model)
        if outcome.is_noop:
            return {
                "message": "No changes needed for this request",
                "summary": outcome.summary,
                "filesChanged": [],
            }
        return {
            "pendingChangeId": outcome.pending_change_id,
            "branchName": outcome.branch_name,
            "previewUrl": outcome.preview_url,
            "summary": outcome.summary,
            "filesChanged": outcome.files_changed,
        }

    @app.get("/sites/{site_id}/preview/{change_id}")
    def preview_status(
        site_id: str,
        change_id: str,
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        return dump(coordinator.preview(user_id, site_id, change_id))

    @app.post("/sites/{site_id}/approve/{change_id}")
    def approve_change(
        site_id: str,
        change_id: str,
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        change = coordinator.approve(user_id, site_id, change_id)
        return {"message": "Changes approved and merged successfully", "changeId": change.id}

    @app.post("/sites/{site_id}/reject/{change_id}")
    def reject_change(
        site_id: str,
        change_id: str,
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        change = coordinator.reject(user_id, site_id, change_id)
        return {"message": "Changes rejected and branch deleted", "changeId": change.id}

    @app.get("/sites/{site_id}/history")
    def list_history(
        site_id: str,
        user_id: str = Depends(current_user),
        coordinator: ChangeRequestCoordinator = Depends(get_coordinator),
    ):
        return {"history": [dump(h) for h in coordinator.sites.history(user_id, site_id)]}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
