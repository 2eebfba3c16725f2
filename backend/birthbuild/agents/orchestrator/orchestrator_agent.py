"""Build orchestrator - design system → pages (fan-out, one retry round) → checkpoint → package → deploy"""
import asyncio
import logging
import uuid
from typing import Dict, Optional, List, Tuple

from pydantic import BaseModel

from birthbuild.agents.base_agent import AgentError
from birthbuild.agents.design_system.design_system_agent import DesignSystemAgent, DesignSystemProviderError
from birthbuild.agents.page.page_agent import PageAgent, PageProviderError, PageValidationError
from birthbuild.core.checkpoint_store import CheckpointStore
from birthbuild.core.config import settings
from birthbuild.core.deploy_client import NetlifyClient, public_url_for, site_name_for
from birthbuild.core.model_client import ModelProviderError
from birthbuild.core.packager import package_site
from birthbuild.core.prompt_resolver import PromptConfig
from birthbuild.core.seo_files import generate_sitemap, generate_robots_txt
from birthbuild.core.spec_store import SpecStore
from birthbuild.core.state_machine import (
    BuildPhase,
    BuildState,
    SiteStatus,
    coerce_status,
    require_transition,
    status_after_build,
)
from birthbuild.core.subdomain import SubdomainResolver
from birthbuild.models.checkpoint import Checkpoint, DesignSystem, GeneratedPage, SiteFile
from birthbuild.models.errors import ApplicationError, ErrorCode, provider_error
from birthbuild.models.site_spec import SiteSpec, ResolvedSpec

logger = logging.getLogger(__name__)

BUILD_CHECKPOINT_LABEL = "LLM build"
REPAIR_POLICIES = ("auto", "manual")


def validate_required_fields(spec: SiteSpec) -> None:
    """Raise VALIDATION_ERROR naming every missing required field"""
    missing = spec.missing_required_fields()
    if missing:
        logger.info(f"[Orchestrator] Spec {spec.id} incomplete: {missing}")
        raise ApplicationError(
            code=ErrorCode.VALIDATION_ERROR,
            message=f"Please complete the following before building: {', '.join(missing)}.",
            site_spec_id=spec.id,
        )


class BuildOutcome(BaseModel):
    site_spec_id: str
    checkpoint_id: str
    version: int
    subdomain: str
    status: str
    preview_url: str
    deploy_url: Optional[str] = None
    pages: List[str]


class BuildOrchestrator:
    """Coordinates the design system agent, page agents, checkpoint store and deploy client"""

    def __init__(
        self,
        spec_store: SpecStore,
        checkpoint_store: CheckpointStore,
        deploy_client: NetlifyClient,
        design_system_agent: Optional[DesignSystemAgent] = None,
        page_agent: Optional[PageAgent] = None,
        subdomain_resolver: Optional[SubdomainResolver] = None,
        repair_policy: Optional[str] = None,
    ):
        self.spec_store = spec_store
        self.checkpoint_store = checkpoint_store
        self.deploy_client = deploy_client
        self.design_system_agent = design_system_agent or DesignSystemAgent()
        self.page_agent = page_agent or PageAgent()
        self.subdomain_resolver = subdomain_resolver or SubdomainResolver(spec_store)
        self.repair_policy = repair_policy or settings.design_system_repair_policy
        if self.repair_policy not in REPAIR_POLICIES:
            raise ValueError(f"repair_policy must be one of {REPAIR_POLICIES}, got '{self.repair_policy}'")

    # Records a progress event when a BuildState is attached to this run.
    def _emit_event(self, state: Optional[BuildState], phase: BuildPhase, message: str):
        if state is not None:
            state.log_event(phase, message)

    async def build(
        self,
        site_spec_id: str,
        user_id: str,
        state: Optional[BuildState] = None,
        prompt_overrides: Optional[Dict[str, PromptConfig]] = None,
    ) -> BuildOutcome:
        """
        Run one full build.

        Args:
            site_spec_id: Specification to build
            user_id: Owner of the specification
            state: Optional progress tracker
            prompt_overrides: Experimentation prompts keyed by "design_system" or a page slug

        Returns:
            BuildOutcome with the checkpoint and URLs

        Raises:
            ApplicationError: pre-flight failures leave the status untouched; any later
                failure moves the site to `error` and keeps a checkpoint already saved
        """
        state = state or BuildState(str(uuid.uuid4()), site_spec_id)
        prompt_overrides = prompt_overrides or {}

        # Pre-flight: nothing below may spend a model call
        self._emit_event(state, BuildPhase.VALIDATING, "Checking your site details...")
        try:
            spec = await self.spec_store.get(site_spec_id, user_id)
            validate_required_fields(spec)
            current = coerce_status(spec.status)
            require_transition("build", current, SiteStatus.BUILDING)
            subdomain = await self.subdomain_resolver.resolve(spec)
        except ApplicationError as e:
            self._emit_event(state, BuildPhase.ERROR, e.message)
            raise

        spec = spec.model_copy(update={"subdomain_slug": subdomain})
        await self.spec_store.update(site_spec_id, status=SiteStatus.BUILDING.value, subdomain_slug=subdomain)
        logger.info(
            f"[Orchestrator] Build started | site_spec_id: {site_spec_id} | "
            f"previous_status: {current.value} | subdomain: {subdomain} | pages: {spec.pages}"
        )

        checkpoint: Optional[Checkpoint] = None
        try:
            resolved = ResolvedSpec.from_spec(spec)

            self._emit_event(state, BuildPhase.DESIGN_SYSTEM, "Designing your colours, fonts and layout...")
            design_system = await self._generate_design_system(
                resolved, site_spec_id, prompt_overrides.get("design_system")
            )

            self._emit_event(state, BuildPhase.PAGES, f"Writing {len(spec.pages)} pages...")
            pages = await self._generate_pages(spec, resolved, design_system, state, prompt_overrides)

            self._emit_event(state, BuildPhase.CHECKPOINT, "Saving this version of your site...")
            checkpoint = await self.checkpoint_store.create_checkpoint(
                site_spec_id, pages, design_system, label=BUILD_CHECKPOINT_LABEL
            )

            outcome = await self._package_and_deploy(spec, subdomain, checkpoint, state)
        except Exception as e:
            error = self._to_application_error(e, site_spec_id)
            await self._mark_error(site_spec_id, checkpoint)
            self._emit_event(state, BuildPhase.ERROR, error.message)
            raise error from e

        self._emit_event(state, BuildPhase.READY, "Your site is ready!")
        state.metadata.update(outcome.model_dump())
        return outcome

    # Redeploys a saved checkpoint without any model calls.
    # Used to roll back to an earlier version or to retry a failed deployment.
    async def deploy_checkpoint(
        self,
        site_spec_id: str,
        user_id: str,
        checkpoint_id: str,
        state: Optional[BuildState] = None,
    ) -> BuildOutcome:
        state = state or BuildState(str(uuid.uuid4()), site_spec_id)

        self._emit_event(state, BuildPhase.VALIDATING, "Loading saved version...")
        try:
            spec = await self.spec_store.get(site_spec_id, user_id)
            checkpoint = await self.checkpoint_store.get_checkpoint(checkpoint_id, site_spec_id)
            current = coerce_status(spec.status)
            require_transition("build", current, SiteStatus.BUILDING)
            subdomain = await self.subdomain_resolver.resolve(spec)
        except ApplicationError as e:
            self._emit_event(state, BuildPhase.ERROR, e.message)
            raise

        spec = spec.model_copy(update={"subdomain_slug": subdomain})
        await self.spec_store.update(site_spec_id, status=SiteStatus.BUILDING.value, subdomain_slug=subdomain)
        logger.info(f"[Orchestrator] Redeploying checkpoint v{checkpoint.version} for {site_spec_id}")

        try:
            outcome = await self._package_and_deploy(spec, subdomain, checkpoint, state)
        except Exception as e:
            error = self._to_application_error(e, site_spec_id)
            await self._mark_error(site_spec_id, checkpoint)
            self._emit_event(state, BuildPhase.ERROR, error.message)
            raise error from e

        # Pointer update is best effort once the deploy has succeeded
        try:
            await self.spec_store.update(site_spec_id, latest_checkpoint_id=checkpoint.id)
        except Exception as e:
            logger.error(f"[Orchestrator] Failed to move latest_checkpoint_id to {checkpoint.id}: {e}")

        self._emit_event(state, BuildPhase.READY, f"Version {checkpoint.version} is deployed!")
        state.metadata.update(outcome.model_dump())
        return outcome

    # Generates the design system and applies the repair policy to its validation issues.
    # "auto" spends one repair call on a failing design system; "manual" surfaces the issues immediately.
    async def _generate_design_system(
        self,
        resolved: ResolvedSpec,
        site_spec_id: str,
        prompt_config: Optional[PromptConfig] = None,
    ) -> DesignSystem:
        result = await self.design_system_agent.run(resolved, prompt_config=prompt_config)

        if not result.is_valid and self.repair_policy == "auto":
            logger.warning(
                f"[Orchestrator] Design system invalid ({len(result.issues)} issue(s)), requesting repair"
            )
            result = await self.design_system_agent.run(
                resolved, repair_issues=result.issues, prompt_config=prompt_config
            )

        if not result.is_valid:
            logger.error(f"[Orchestrator] ✗ Design system invalid | policy: {self.repair_policy} | issues: {result.issues}")
            raise ApplicationError(
                code=ErrorCode.DESIGN_SYSTEM_INVALID,
                message="We couldn't produce a valid design for your site. Please try again.",
                retryable=True,
                hint="; ".join(result.issues),
                site_spec_id=site_spec_id,
            )

        logger.info("[Orchestrator] ✓ Design system ready")
        return result.design_system

    async def _run_page_round(
        self,
        pages: List[str],
        spec: SiteSpec,
        resolved: ResolvedSpec,
        design_system: DesignSystem,
        prompt_overrides: Dict[str, PromptConfig],
    ) -> Tuple[Dict[str, GeneratedPage], Dict[str, Exception]]:
        outcomes = await asyncio.gather(
            *[
                self.page_agent.run(page, spec, resolved, design_system, prompt_overrides.get(page))
                for page in pages
            ],
            return_exceptions=True,
        )

        succeeded: Dict[str, GeneratedPage] = {}
        failed: Dict[str, Exception] = {}
        for page, outcome in zip(pages, outcomes):
            if isinstance(outcome, ApplicationError) and outcome.code == ErrorCode.CONFIGURATION_ERROR:
                # Configuration errors abort without a retry round
                raise outcome
            if isinstance(outcome, Exception):
                logger.warning(f"[Orchestrator] ✗ Page '{page}' failed: {type(outcome).__name__}: {outcome}")
                failed[page] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                succeeded[page] = GeneratedPage(filename=outcome.filename, html=outcome.html)
        return succeeded, failed

    # Fans out one task per page, then retries only the failed set once, concurrently.
    # Pages still failing after that round abort the build with their names.
    async def _generate_pages(
        self,
        spec: SiteSpec,
        resolved: ResolvedSpec,
        design_system: DesignSystem,
        state: Optional[BuildState],
        prompt_overrides: Dict[str, PromptConfig],
    ) -> List[GeneratedPage]:
        generated, failed = await self._run_page_round(
            spec.pages, spec, resolved, design_system, prompt_overrides
        )

        if failed:
            retry_pages = [page for page in spec.pages if page in failed]
            self._emit_event(state, BuildPhase.PAGES, f"Retrying {', '.join(retry_pages)}...")
            logger.info(f"[Orchestrator] Retrying {len(retry_pages)} failed page(s): {retry_pages}")
            retried, failed = await self._run_page_round(
                retry_pages, spec, resolved, design_system, prompt_overrides
            )
            generated.update(retried)

        if failed:
            names = [page for page in spec.pages if page in failed]
            provider_failures = any(
                isinstance(err, (PageProviderError, ModelProviderError)) for err in failed.values()
            )
            raise ApplicationError(
                code=ErrorCode.GENERATION_FAILED,
                message=f"We couldn't generate the following pages: {', '.join(names)}. Please try again.",
                retryable=provider_failures,
                detail="; ".join(f"{page}: {err}" for page, err in failed.items()),
                site_spec_id=spec.id,
            )

        logger.info(f"[Orchestrator] ✓ All {len(generated)} page(s) generated")
        return [generated[page] for page in spec.pages]

    async def _package_and_deploy(
        self,
        spec: SiteSpec,
        subdomain: str,
        checkpoint: Checkpoint,
        state: Optional[BuildState],
    ) -> BuildOutcome:
        base_url = public_url_for(subdomain)
        filenames = [page.filename for page in checkpoint.pages]
        files = [SiteFile(path=page.filename, content=page.html) for page in checkpoint.pages]
        files.append(SiteFile(path="sitemap.xml", content=generate_sitemap(base_url, filenames)))
        files.append(SiteFile(path="robots.txt", content=generate_robots_txt(base_url)))

        self._emit_event(state, BuildPhase.PACKAGING, "Packaging your site...")
        zip_bytes = package_site(files)

        self._emit_event(state, BuildPhase.DEPLOYING, "Putting your site online...")
        site_id = await self.deploy_client.ensure_site(spec.netlify_site_id, subdomain)
        if site_id != spec.netlify_site_id:
            await self.spec_store.update(spec.id, netlify_site_id=site_id)

        result = await self.deploy_client.deploy(site_id, zip_bytes)
        preview_url = result.preview_url or f"https://{site_name_for(subdomain)}.netlify.app"

        # A published site stays live and keeps its public URL
        final_status = status_after_build(spec.deploy_url)
        await self.spec_store.update(spec.id, status=final_status.value, preview_url=preview_url)

        logger.info(
            f"[Orchestrator] ✓ Deployed {spec.id} | status: {final_status.value} | "
            f"checkpoint: v{checkpoint.version} | preview_url: {preview_url}"
        )
        return BuildOutcome(
            site_spec_id=spec.id,
            checkpoint_id=checkpoint.id,
            version=checkpoint.version,
            subdomain=subdomain,
            status=final_status.value,
            preview_url=preview_url,
            deploy_url=spec.deploy_url,
            pages=filenames,
        )

    async def _mark_error(self, site_spec_id: str, checkpoint: Optional[Checkpoint]) -> None:
        if checkpoint is not None:
            logger.info(f"[Orchestrator] Checkpoint v{checkpoint.version} kept for {site_spec_id} despite failure")
        try:
            await self.spec_store.update(site_spec_id, status=SiteStatus.ERROR.value)
        except Exception as e:
            logger.error(f"[Orchestrator] Failed to set error status for {site_spec_id}: {e}")

    # Maps any failure to the error surfaced to the caller.
    # Provider details stay in the logs; users get the generic unavailable message.
    def _to_application_error(self, error: Exception, site_spec_id: str) -> ApplicationError:
        if isinstance(error, ApplicationError):
            if error.site_spec_id is None:
                error.site_spec_id = site_spec_id
            return error

        if isinstance(error, (DesignSystemProviderError, PageProviderError)):
            logger.error(f"[Orchestrator] ✗ Provider failure | {error} | cause: {error.cause}")
            return provider_error(f"{error}: {error.cause}", site_spec_id=site_spec_id)
        if isinstance(error, ModelProviderError):
            logger.error(f"[Orchestrator] ✗ Provider failure | {error}")
            return provider_error(str(error), site_spec_id=site_spec_id)

        if isinstance(error, (PageValidationError, AgentError)):
            logger.error(f"[Orchestrator] ✗ Generation failed | {error}")
            return ApplicationError(
                code=ErrorCode.GENERATION_FAILED,
                message="We couldn't generate your site. Please try again.",
                retryable=True,
                detail=str(error),
                site_spec_id=site_spec_id,
            )

        logger.error(
            f"[Orchestrator] ✗ Unexpected build error | error_type: {type(error).__name__} | error: {error}",
            exc_info=True,
        )
        return ApplicationError(
            code=ErrorCode.GENERATION_FAILED,
            message="Something went wrong while building your site. Please try again.",
            retryable=True,
            detail=f"{type(error).__name__}: {error}",
            site_spec_id=site_spec_id,
        )
