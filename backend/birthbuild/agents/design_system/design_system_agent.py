"""Design system agent - shared CSS, navigation and footer for one site"""
import re
import logging
from typing import List, Optional

from birthbuild.agents.base_agent import (
    BaseAgent,
    AgentError,
    ToolCallOk,
    ToolCallProviderError,
)
from birthbuild.agents.design_system.design_system_prompt import (
    DESIGN_SYSTEM_USER_MESSAGE,
    build_design_system_prompt,
    build_repair_message,
)
from birthbuild.agents.design_system.design_system_schemas import (
    DESIGN_SYSTEM_TOOL,
    MIN_CSS_LENGTH,
    REQUIRED_CSS_VARIABLES,
    REQUIRED_CSS_SELECTORS,
    REQUIRED_NAV_MARKERS,
    PRIVACY_NOTE,
    DesignSystemResult,
)
from birthbuild.core.config import settings
from birthbuild.core.model_client import ModelClient
from birthbuild.core.prompt_resolver import PromptConfig, build_design_system_variables, resolve_override
from birthbuild.core.wordmark import generate_wordmark
from birthbuild.models.checkpoint import DesignSystem
from birthbuild.models.site_spec import ResolvedSpec
from birthbuild.utils.sanitization import sanitise_css, sanitise_html, log_stripped

logger = logging.getLogger(__name__)

COPYRIGHT_RE = re.compile(r"(©|&copy;|&#169;|copyright)", re.IGNORECASE)


class DesignSystemProviderError(AgentError):
    """The model provider failed while generating the design system"""
    def __init__(self, message: str, cause: Exception):
        super().__init__(message)
        self.cause = cause


# Checks a design system against the structural contract every page relies on.
# Returns a list of human-readable issues (empty when valid).
def validate_design_system(css: str, nav_html: str, footer_html: str) -> List[str]:
    issues: List[str] = []

    if len(css) < MIN_CSS_LENGTH:
        issues.append(
            f"CSS is too short ({len(css)} characters, minimum {MIN_CSS_LENGTH}); generate the full stylesheet."
        )

    missing_vars = [name for name in REQUIRED_CSS_VARIABLES if not re.search(re.escape(name) + r"\s*:", css)]
    if missing_vars:
        issues.append(f"CSS :root is missing required custom properties: {', '.join(missing_vars)}.")

    missing_selectors = [
        label for label, pattern in REQUIRED_CSS_SELECTORS
        if not re.search(pattern, css, re.MULTILINE)
    ]
    if missing_selectors:
        issues.append(f"CSS is missing required selectors: {', '.join(missing_selectors)}.")

    missing_nav = [label for label, marker in REQUIRED_NAV_MARKERS if marker not in nav_html]
    if missing_nav:
        issues.append(f"Navigation HTML is missing: {', '.join(missing_nav)}.")

    if not COPYRIGHT_RE.search(footer_html):
        issues.append("Footer HTML is missing the copyright line (&copy; year business name).")
    if PRIVACY_NOTE not in footer_html.lower():
        issues.append('Footer HTML is missing the privacy note "This site does not use tracking cookies."')

    return issues


class DesignSystemAgent(BaseAgent):
    """Generates and validates the design system; reports issues without repairing them"""

    def __init__(self, client: Optional[ModelClient] = None, **kwargs):
        kwargs.setdefault("max_tokens", settings.design_system_max_tokens)
        super().__init__(client=client, agent_name="DesignSystem", **kwargs)

    async def run(
        self,
        resolved: ResolvedSpec,
        repair_issues: Optional[List[str]] = None,
        prompt_config: Optional[PromptConfig] = None,
    ) -> DesignSystemResult:
        """
        Generate one design system.

        Args:
            resolved: Resolved specification view
            repair_issues: Issues from a previous attempt, turned into a corrective message
            prompt_config: Optional experimentation override

        Returns:
            DesignSystemResult; `issues` lists contract violations (empty when valid).
            `design_system` is None when the model produced no usable tool output.

        Raises:
            DesignSystemProviderError: provider failure or timeout
        """
        system_prompt = build_design_system_prompt(resolved)
        user_message = DESIGN_SYSTEM_USER_MESSAGE
        if repair_issues:
            logger.info(f"[DesignSystem] Repair attempt with {len(repair_issues)} issue(s)")
            user_message = build_repair_message(repair_issues)

        override = resolve_override(prompt_config, build_design_system_variables(resolved))
        if override is not None and repair_issues:
            # The corrective message must reach the model even under an override
            override.user_message = user_message

        label = "design_system_repair" if repair_issues else "design_system"
        result = await self._call_tool(system_prompt, user_message, DESIGN_SYSTEM_TOOL, label, override)

        if isinstance(result, ToolCallProviderError):
            raise DesignSystemProviderError(
                "Design system generation failed: model provider unavailable", result.error
            )
        if not isinstance(result, ToolCallOk):
            logger.warning(f"[DesignSystem] ✗ No usable tool output: {result.issues}")
            return DesignSystemResult(design_system=None, issues=result.issues, usage=result.response.usage)

        payload = result.payload
        css = sanitise_css(payload["css"])
        nav = sanitise_html(payload["nav_html"])
        footer = sanitise_html(payload["footer_html"])
        stripped = css.stripped + nav.stripped + footer.stripped
        log_stripped("design system output", stripped)

        issues = validate_design_system(css.content, nav.content, footer.content)
        if result.response.stop_reason == "max_tokens":
            logger.error("[DesignSystem] Model hit max_tokens limit")
            issues.append("The response was truncated (max_tokens reached); the CSS is likely incomplete.")

        wordmark_svg = generate_wordmark(
            resolved.business_name,
            resolved.heading_font,
            resolved.colours.primary,
            resolved.style,
        )

        design_system = DesignSystem(
            css=css.content,
            nav_html=nav.content,
            footer_html=footer.content,
            wordmark_svg=wordmark_svg,
        )

        if issues:
            logger.warning(f"[DesignSystem] Validation failed with {len(issues)} issue(s): {issues}")
        else:
            logger.info(f"[DesignSystem] ✓ Design system valid ({len(css.content)} chars of CSS)")

        return DesignSystemResult(
            design_system=design_system,
            issues=issues,
            stripped=stripped,
            usage=result.response.usage,
        )
