"""Core data types and Pydantic models."""

from enum import Enum
from typing import List, Dict, Optional
from pydantic import BaseModel, Field
from datetime import datetime


class ModelChoice(str, Enum):
    """Supported code-generation backends."""
    GEMINI_FLASH = "gemini-flash"
    GEMINI_PRO = "gemini-pro"
    CLAUDE_OPUS = "claude-opus"


class SourceFile(BaseModel):
    """Editable file captured from a repository snapshot."""
    path: str = Field(..., description="Repository-relative file path")
    content: str = Field(..., description="Decoded text content")
    sha: Optional[str] = Field(None, description="Blob SHA on the snapshot branch")


class GenerationResult(BaseModel):
    """Validated output of a generation backend."""
    summary: str = Field(..., description="Human readable summary of the change")
    files: Dict[str, str] = Field(default_factory=dict, description="Changed path -> full new content")

    @property
    def changed_paths(self) -> List[str]:
        return list(self.files.keys())


class DeploymentState(str, Enum):
    """Readiness of a preview deployment."""
    PENDING = "pending"
    READY = "ready"
    ERROR = "error"


class DeploymentStatus(BaseModel):
    """Deployment readiness as reported by the correlator."""
    status: DeploymentState = Field(..., description="Readiness state")
    url: Optional[str] = Field(None, description="Public preview URL once ready")


class ProposalOutcome(BaseModel):
    """Result of proposing a change."""
    summary: str = Field(..., description="Generation summary")
    files_changed: List[str] = Field(default_factory=list, description="Paths committed to the preview branch")
    pending_change_id: Optional[str] = Field(None, description="Created pending change, absent for no-ops")
    branch_name: Optional[str] = Field(None, description="Preview branch, absent for no-ops")
    preview_url: Optional[str] = Field(None, description="Predicted preview URL")

    @property
    def is_noop(self) -> bool:
        return self.pending_change_id is None


class PreviewStatus(BaseModel):
    """Pending change joined with its live deployment status."""
    id: str
    branch_name: str
    preview_url: Optional[str] = None
    status: DeploymentState
    change_status: str
    user_message: str
    ai_summary: str
    files_changed: List[str] = Field(default_factory=list)
    created_at: datetime
