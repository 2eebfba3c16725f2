"""Site deployment state machine and build progress tracking"""

from enum import Enum
from typing import Dict, Any, Optional, Set
from datetime import datetime
import logging

from birthbuild.models.errors import ApplicationError, ErrorCode

logger = logging.getLogger(__name__)


class SiteStatus(str, Enum):
    """Deployment status of a site spec

    draft → building → preview → (publish) → live
                    ↘ error          live → (unpublish) → preview
    """
    DRAFT = "draft"
    BUILDING = "building"
    PREVIEW = "preview"
    LIVE = "live"
    ERROR = "error"


# Allowed transitions and the action that performs them
TRANSITIONS: Dict[str, Dict[SiteStatus, Set[SiteStatus]]] = {
    "build": {
        SiteStatus.DRAFT: {SiteStatus.BUILDING},
        SiteStatus.BUILDING: {SiteStatus.BUILDING},  # supersedes a stalled build
        SiteStatus.PREVIEW: {SiteStatus.BUILDING},
        SiteStatus.LIVE: {SiteStatus.BUILDING},
        SiteStatus.ERROR: {SiteStatus.BUILDING},
    },
    "build_finished": {
        SiteStatus.BUILDING: {SiteStatus.PREVIEW, SiteStatus.LIVE, SiteStatus.ERROR},
    },
    "publish": {
        SiteStatus.PREVIEW: {SiteStatus.LIVE},
    },
    "unpublish": {
        SiteStatus.LIVE: {SiteStatus.PREVIEW},
    },
}


def coerce_status(value: Optional[str]) -> SiteStatus:
    try:
        return SiteStatus(value or SiteStatus.DRAFT.value)
    except ValueError:
        logger.warning(f"[STATE] Unknown site status '{value}', treating as draft")
        return SiteStatus.DRAFT


def can_transition(action: str, current: SiteStatus, target: SiteStatus) -> bool:
    return target in TRANSITIONS.get(action, {}).get(current, set())


def require_transition(action: str, current: SiteStatus, target: SiteStatus) -> None:
    """Raise INVALID_STATE unless `action` may move the site from `current` to `target`"""
    if not can_transition(action, current, target):
        raise ApplicationError(
            code=ErrorCode.INVALID_STATE,
            message=f"Cannot {action.replace('_', ' ')} a site that is {current.value}.",
        )


def status_after_build(deploy_url: Optional[str]) -> SiteStatus:
    """A published site (one with a public deploy URL) stays live on rebuild; otherwise preview"""
    return SiteStatus.LIVE if deploy_url else SiteStatus.PREVIEW


class BuildPhase(str, Enum):
    """Build phases

    VALIDATING → DESIGN_SYSTEM → PAGES → CHECKPOINT → PACKAGING → DEPLOYING → READY
              ↘──────────────────────────ERROR──────────────────────────↗
    """
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    DESIGN_SYSTEM = "DESIGN_SYSTEM"
    PAGES = "PAGES"
    CHECKPOINT = "CHECKPOINT"
    PACKAGING = "PACKAGING"
    DEPLOYING = "DEPLOYING"
    READY = "READY"
    ERROR = "ERROR"


class BuildState:
    """Progress of one build invocation, readable by the progress endpoint"""

    def __init__(self, build_id: str, site_spec_id: Optional[str] = None):
        self.build_id = build_id
        self.site_spec_id = site_spec_id
        self.phase = BuildPhase.IDLE
        self.started_at: Optional[datetime] = None
        self.metadata: Dict[str, Any] = {}
        self.event_log: list = []  # List of all events for the UI
        self.last_updated: Optional[datetime] = None

    def log_event(self, phase: BuildPhase, event: str):
        """Log a new event - adds to log and updates state"""
        now = datetime.utcnow()

        self.event_log.append({
            "ts": now.isoformat() + "Z",
            "phase": phase.value,
            "detail": event
        })

        self.phase = phase
        self.last_updated = now

        if not self.started_at:
            self.started_at = now

        logger.info(f"[BuildState] {self.build_id}: {event} (phase: {phase.value})")

    def get_latest_event(self):
        """Get the most recent event"""
        if not self.event_log:
            return None
        return self.event_log[-1]

    def is_terminal(self) -> bool:
        """Check if build is in terminal state"""
        return self.phase in (BuildPhase.READY, BuildPhase.ERROR)
