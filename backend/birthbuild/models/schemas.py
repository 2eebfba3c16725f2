"""API request/response schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, validator
import re

from birthbuild.core.prompt_resolver import PromptConfig
from birthbuild.models.checkpoint import DesignSystem


ID_RE = re.compile(r"^[a-zA-Z0-9_\-]{1,100}$")


def _validate_id(value: str, name: str) -> str:
    """
    Validate an opaque record id.

    Ids end up in store queries and URLs, so only alphanumerics,
    underscore and hyphen are accepted.
    """
    if not value or not isinstance(value, str):
        raise ValueError(f"{name} must be a non-empty string")
    value = value.strip()
    if not ID_RE.match(value):
        raise ValueError(f"{name} contains invalid characters or is too long")
    return value


class BuildRequest(BaseModel):
    """POST /api/build request"""
    site_spec_id: str = Field(..., description="Site specification to build")
    prompt_overrides: Optional[Dict[str, PromptConfig]] = Field(
        default=None,
        description='Experimentation prompts keyed by "design_system" or a page slug',
    )

    @validator("site_spec_id")
    def validate_site_spec_id(cls, v):
        return _validate_id(v, "site_spec_id")


class BuildResponse(BaseModel):
    """POST /api/build response

    Returns build_id for polling GET /api/build/{build_id}/progress.
    """
    build_id: str


class ProgressEvent(BaseModel):
    ts: str
    phase: str = Field(..., description="VALIDATING|DESIGN_SYSTEM|PAGES|CHECKPOINT|PACKAGING|DEPLOYING|READY|ERROR")
    detail: str


class ProgressResponse(BaseModel):
    build_id: str
    site_spec_id: Optional[str] = None
    phase: str
    is_terminal: bool
    events: List[ProgressEvent]
    result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None


class DesignSystemRequest(BaseModel):
    """POST /api/design-system request (operator tool)"""
    site_spec_id: str
    repair_issues: Optional[List[str]] = None
    prompt_config: Optional[PromptConfig] = None

    @validator("site_spec_id")
    def validate_site_spec_id(cls, v):
        return _validate_id(v, "site_spec_id")

    @validator("repair_issues")
    def validate_repair_issues(cls, v):
        if v is None:
            return v
        issues = [issue.strip() for issue in v if isinstance(issue, str) and issue.strip()]
        if len(issues) > 50:
            raise ValueError("At most 50 repair issues are accepted")
        return issues or None


class DesignSystemResponse(BaseModel):
    design_system: Optional[DesignSystem] = None
    valid: bool
    issues: List[str]
    stripped: List[str]


class PublishRequest(BaseModel):
    """POST /api/publish request"""
    site_spec_id: str
    action: str = Field(..., description="publish | unpublish")

    @validator("site_spec_id")
    def validate_site_spec_id(cls, v):
        return _validate_id(v, "site_spec_id")

    @validator("action")
    def validate_action(cls, v):
        if v not in ("publish", "unpublish"):
            raise ValueError("action must be 'publish' or 'unpublish'")
        return v


class PublishResponse(BaseModel):
    status: str
    deploy_url: Optional[str] = None


class CheckpointSummary(BaseModel):
    id: str
    version: int
    label: Optional[str] = None
    created_at: datetime
    pages: List[str]
    has_design_system: bool


class CheckpointListResponse(BaseModel):
    site_spec_id: str
    checkpoints: List[CheckpointSummary]


class DeployCheckpointRequest(BaseModel):
    site_spec_id: str

    @validator("site_spec_id")
    def validate_site_spec_id(cls, v):
        return _validate_id(v, "site_spec_id")


class DeployResponse(BaseModel):
    site_spec_id: str
    checkpoint_id: str
    version: int
    status: str
    preview_url: str
    deploy_url: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response"""
    error_id: str
    code: str
    message: str
    hint: Optional[str] = None
    retryable: bool = False
    site_spec_id: Optional[str] = None
