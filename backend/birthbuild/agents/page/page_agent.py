"""Page agent - one HTML page per page slug, built against a fixed design system"""
import re
import logging
from typing import List, Optional

from birthbuild.agents.base_agent import (
    BaseAgent,
    AgentError,
    ToolCallOk,
    ToolCallProviderError,
)
from birthbuild.agents.page.page_prompt import (
    build_page_prompt,
    build_page_user_message,
    build_page_repair_message,
)
from birthbuild.agents.page.page_schemas import PAGE_TOOL, PageResult
from birthbuild.agents.page.page_validators import PageValidatorRegistry, page_validators
from birthbuild.core.config import settings
from birthbuild.core.model_client import ModelClient
from birthbuild.core.prompt_resolver import PromptConfig, build_page_variables, resolve_override
from birthbuild.models.checkpoint import DesignSystem
from birthbuild.models.site_spec import SiteSpec, ResolvedSpec, page_filename
from birthbuild.utils.sanitization import sanitise_html, log_stripped

logger = logging.getLogger(__name__)

STYLE_BLOCK_RE = re.compile(r"<style\b[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
HEAD_CLOSE_RE = re.compile(r"</head\s*>", re.IGNORECASE)
HTML_OPEN_RE = re.compile(r"<html\b[^>]*>", re.IGNORECASE)

# One generation plus exactly one repair
MAX_PAGE_ATTEMPTS = 2


class PageProviderError(AgentError):
    """Model provider failure for a page; the orchestrator may retry it"""
    def __init__(self, page: str, cause: Exception):
        super().__init__(f"Page '{page}' generation failed: model provider unavailable")
        self.page = page
        self.cause = cause


class PageValidationError(AgentError):
    """Page still failed structural validation after its repair attempt"""
    def __init__(self, page: str, issues: List[str]):
        super().__init__(f"Page '{page}' failed validation after repair: {'; '.join(issues)}")
        self.page = page
        self.issues = issues


def enforce_design_css(html: str, css: str) -> str:
    """
    Make the page carry exactly one <style> block whose content is the canonical CSS.

    The first <style> block is replaced and any others removed; a page without one
    gets it inserted before </head> (or a <head> is created).
    """
    canonical = f"<style>{css}</style>"
    replaced = []

    def _replace(match):
        if replaced:
            return ""
        replaced.append(True)
        return canonical

    result = STYLE_BLOCK_RE.sub(_replace, html)
    if replaced:
        return result

    if HEAD_CLOSE_RE.search(result):
        return HEAD_CLOSE_RE.sub(lambda m: canonical + m.group(0), result, count=1)
    html_open = HTML_OPEN_RE.search(result)
    if html_open:
        end = html_open.end()
        return result[:end] + f"<head>{canonical}</head>" + result[end:]
    return canonical + result


class PageAgent(BaseAgent):
    """Generates one page: generate, sanitise, validate, at most one repair, enforce CSS"""

    def __init__(
        self,
        client: Optional[ModelClient] = None,
        validators: Optional[PageValidatorRegistry] = None,
        **kwargs,
    ):
        kwargs.setdefault("max_tokens", settings.page_max_tokens)
        super().__init__(client=client, agent_name="Page", **kwargs)
        self.validators = validators or page_validators

    async def run(
        self,
        page: str,
        spec: SiteSpec,
        resolved: ResolvedSpec,
        design_system: DesignSystem,
        prompt_config: Optional[PromptConfig] = None,
    ) -> PageResult:
        """
        Generate a single validated page.

        Raises:
            PageProviderError: provider failure or timeout (retryable by the caller)
            PageValidationError: second consecutive structural failure
        """
        system_prompt = build_page_prompt(page, spec, resolved)
        user_message = build_page_user_message(page, design_system)
        override = resolve_override(prompt_config, build_page_variables(resolved, spec, page))
        issues: List[str] = []

        for attempt in range(1, MAX_PAGE_ATTEMPTS + 1):
            if attempt > 1:
                user_message = build_page_repair_message(page, design_system, issues)
                if override is not None:
                    override.user_message = user_message
                logger.info(f"[Page:{page}] Repair attempt with {len(issues)} issue(s)")

            label = f"page:{page}" if attempt == 1 else f"page:{page}:repair"
            result = await self._call_tool(system_prompt, user_message, PAGE_TOOL, label, override)

            if isinstance(result, ToolCallProviderError):
                raise PageProviderError(page, result.error)

            if not isinstance(result, ToolCallOk):
                issues = result.issues
                logger.warning(f"[Page:{page}] Attempt {attempt}: structural failure: {issues}")
                continue

            if result.response.stop_reason == "max_tokens":
                logger.error(f"[Page:{page}] Model hit max_tokens limit but returned html; accepting")

            sanitised = sanitise_html(result.payload["html"])
            log_stripped(f"page {page}", sanitised.stripped)

            issues = self.validators.validate(page, sanitised.content)
            if issues:
                logger.warning(f"[Page:{page}] Attempt {attempt}: validation failed: {issues}")
                continue

            html = enforce_design_css(sanitised.content, design_system.css)
            logger.info(f"[Page:{page}] ✓ Page generated on attempt {attempt} ({len(html)} chars)")
            return PageResult(
                page=page,
                filename=page_filename(page),
                html=html,
                stripped=sanitised.stripped,
                attempts=attempt,
            )

        raise PageValidationError(page, issues)
