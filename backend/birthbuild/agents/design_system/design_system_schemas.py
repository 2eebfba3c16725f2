"""Design system tool schema and structural contract"""
from pydantic import BaseModel
from typing import List, Optional

from birthbuild.core.model_client import ToolDefinition, TokenUsage
from birthbuild.models.checkpoint import DesignSystem


DESIGN_SYSTEM_TOOL = ToolDefinition(
    name="output_design_system",
    description="Output the generated design system CSS, navigation HTML, and footer HTML.",
    input_schema={
        "type": "object",
        "properties": {
            "css": {
                "type": "string",
                "description": "Complete CSS stylesheet for the site design system.",
            },
            "nav_html": {
                "type": "string",
                "description": "Semantic HTML for the site header/navigation, including skip link.",
            },
            "footer_html": {
                "type": "string",
                "description": "Semantic HTML for the site footer.",
            },
        },
        "required": ["css", "nav_html", "footer_html"],
    },
)

# Anything shorter cannot hold the required variables and selectors
MIN_CSS_LENGTH = 1500

REQUIRED_CSS_VARIABLES = [
    "--colour-bg",
    "--colour-primary",
    "--colour-accent",
    "--colour-text",
    "--colour-cta",
    "--font-heading",
    "--font-body",
    "--radius",
    "--max-width",
    "--section-padding",
    "--gap",
    "--h1-size",
    "--h2-size",
    "--body-size",
]

# (description, regex) pairs matched against the CSS
REQUIRED_CSS_SELECTORS = [
    ("box-sizing reset", r"box-sizing\s*:"),
    (".skip-link", r"\.skip-link\b"),
    ("header styles", r"(^|[\s,}])(header|\.site-header)\b"),
    (".nav-link", r"\.nav-link\b"),
    (".nav-link--active", r"\.nav-link--active\b"),
    (".hero", r"\.hero\b"),
    (".hero__bg", r"\.hero__bg\b"),
    (".hero__overlay", r"\.hero__overlay\b"),
    (".hero__content", r"\.hero__content\b"),
    (".card", r"\.card\b"),
    (".card--service", r"\.card--service\b"),
    (".btn", r"\.btn\b"),
    (".btn--outline", r"\.btn--outline\b"),
]

REQUIRED_NAV_MARKERS = [
    ("{{WORDMARK_SVG}} placeholder", "{{WORDMARK_SVG}}"),
    ("{{ACTIVE_PAGE}} placeholder", "{{ACTIVE_PAGE}}"),
    ("<header> landmark", "<header"),
    ("<nav> landmark", "<nav"),
    ("skip-link class", "skip-link"),
    ("nav-link class", "nav-link"),
]

PRIVACY_NOTE = "does not use tracking cookies"


class DesignSystemResult(BaseModel):
    """Outcome of one design system generation; `issues` empty means valid"""
    design_system: Optional[DesignSystem] = None
    issues: List[str] = []
    stripped: List[str] = []
    usage: Optional[TokenUsage] = None

    @property
    def is_valid(self) -> bool:
        return not self.issues and self.design_system is not None
