"""Shared service instances for the API routes"""

from birthbuild.agents.design_system.design_system_agent import DesignSystemAgent
from birthbuild.agents.orchestrator.orchestrator_agent import BuildOrchestrator
from birthbuild.core.checkpoint_store import CheckpointStore
from birthbuild.core.deploy_client import netlify_client
from birthbuild.core.publisher import Publisher
from birthbuild.core.rate_limiter import RateLimiter
from birthbuild.core.record_store import create_record_store
from birthbuild.core.spec_store import SpecStore

record_store = create_record_store()
spec_store = SpecStore(record_store)
checkpoint_store = CheckpointStore(record_store)
rate_limiter = RateLimiter(record_store)
design_system_agent = DesignSystemAgent()
orchestrator = BuildOrchestrator(spec_store, checkpoint_store, netlify_client, design_system_agent=design_system_agent)
publisher = Publisher(spec_store, netlify_client)


# FastAPI dependencies; tests swap these through app.dependency_overrides
def get_spec_store() -> SpecStore:
    return spec_store


def get_checkpoint_store() -> CheckpointStore:
    return checkpoint_store


def get_rate_limiter() -> RateLimiter:
    return rate_limiter


def get_design_system_agent() -> DesignSystemAgent:
    return design_system_agent


def get_orchestrator() -> BuildOrchestrator:
    return orchestrator


def get_publisher() -> Publisher:
    return publisher
