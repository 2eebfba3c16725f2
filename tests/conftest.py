"""Shared fixtures: specs, stores and a scripted model client"""
import pytest
import pytest_asyncio
from typing import Any, Dict, List, Optional, Union

from birthbuild.core.model_client import ModelRequest, ModelResponse, TokenUsage
from birthbuild.core.record_store import InMemoryRecordStore, SITE_SPECS
from birthbuild.models.checkpoint import DesignSystem
from birthbuild.models.site_spec import SiteSpec, ResolvedSpec


VALID_CSS = """
:root {
  --colour-bg: #f5f0e8;
  --colour-primary: #5f7161;
  --colour-accent: #c9b99a;
  --colour-text: #3d3d3d;
  --colour-cta: #5f7161;
  --font-heading: 'Inter', sans-serif;
  --font-body: 'Inter', sans-serif;
  --radius: 12px;
  --max-width: 1100px;
  --section-padding: 80px 24px;
  --gap: 24px;
  --h1-size: clamp(2rem, 5vw, 3.25rem);
  --h2-size: clamp(1.5rem, 3vw, 2.25rem);
  --body-size: 1.05rem;
}
*, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }
body { background: var(--colour-bg); color: var(--colour-text); font-family: var(--font-body); font-size: var(--body-size); line-height: 1.7; }
h1, h2, h3 { font-family: var(--font-heading); line-height: 1.2; }
h1 { font-size: var(--h1-size); }
h2 { font-size: var(--h2-size); }
.skip-link { position: absolute; left: -9999px; top: 0; }
.skip-link:focus { left: 16px; top: 16px; background: var(--colour-primary); color: #fff; padding: 8px 16px; }
.site-header { position: sticky; top: 0; background: var(--colour-bg); border-bottom: 1px solid var(--colour-accent); z-index: 10; }
.site-header nav { display: flex; justify-content: space-between; align-items: center; max-width: var(--max-width); margin: 0 auto; padding: 16px 24px; }
.nav-link { color: var(--colour-text); text-decoration: none; padding: 8px 12px; }
.nav-link:hover { color: var(--colour-primary); }
.nav-link--active { color: var(--colour-primary); border-bottom: 2px solid var(--colour-primary); }
.hero { position: relative; min-height: 60vh; display: flex; align-items: center; }
.hero__bg { position: absolute; inset: 0; z-index: 0; background: var(--colour-accent); }
.hero__overlay { position: absolute; inset: 0; z-index: 1; background: rgba(0, 0, 0, 0.35); }
.hero__content { position: relative; z-index: 2; max-width: var(--max-width); margin: 0 auto; padding: var(--section-padding); }
.cards { display: grid; grid-template-columns: repeat(auto-fit, minmax(280px, 1fr)); gap: var(--gap); }
.card { background: #fff; border-radius: var(--radius); padding: 32px; box-shadow: 0 2px 12px rgba(0, 0, 0, 0.06); }
.card--service { border-top: 4px solid var(--colour-primary); }
.btn { display: inline-block; background: var(--colour-cta); color: #fff; padding: 14px 28px; border-radius: var(--radius); text-decoration: none; }
.btn--outline { background: transparent; color: var(--colour-cta); border: 2px solid var(--colour-cta); }
section { padding: var(--section-padding); }
footer { background: var(--colour-primary); color: #fff; padding: 48px 24px; text-align: center; }
"""

VALID_NAV = (
    '<header class="site-header"><a class="skip-link" href="#main">Skip to content</a>'
    '<nav aria-label="Main navigation"><a href="index.html" class="wordmark">{{WORDMARK_SVG}}</a>'
    '<a class="nav-link" href="index.html" data-active="{{ACTIVE_PAGE}}">Home</a>'
    '<a class="nav-link" href="services.html">Services</a></nav></header>'
)

VALID_FOOTER = (
    "<footer><p>&copy; 2026 Gentle Births</p>"
    "<p>This site does not use tracking cookies.</p></footer>"
)

SERVICES_HTML = """<!DOCTYPE html>
<html lang="en"><head><title>Services | Gentle Births</title><style>body { color: red; }</style></head>
<body><main id="main">
<!-- bb-section:service-cards -->
<section><div class="cards"><article class="card card--service"><h3>Birth Support</h3>
<a class="btn" href="contact.html">Get in touch</a></article></div></section>
<!-- /bb-section:service-cards -->
<script type="application/ld+json">{"@context": "https://schema.org", "@type": "Service", "name": "Birth Support"}</script>
</main></body></html>"""

SIMPLE_PAGE_HTML = """<!DOCTYPE html>
<html lang="en"><head><title>Gentle Births</title></head>
<body><main id="main"><!-- bb-section:hero --><section class="hero"><h1>Gentle Births</h1></section><!-- /bb-section:hero --></main></body></html>"""


def make_spec_row(**overrides) -> Dict[str, Any]:
    row = {
        "id": "spec-1",
        "user_id": "user-1",
        "status": "draft",
        "business_name": "Gentle Births",
        "doula_name": "Sarah Jones",
        "tagline": "Calm, informed birth support",
        "service_area": "Bristol",
        "services": [
            {"type": "birth", "title": "Birth Support", "description": "Continuous support in labour", "price": "£900"},
        ],
        "email": "sarah@example.com",
        "pages": ["home", "services", "contact"],
    }
    row.update(overrides)
    return row


def model_response(
    tool_name: Optional[str] = None,
    tool_input: Optional[Dict[str, Any]] = None,
    stop_reason: str = "tool_use",
) -> ModelResponse:
    return ModelResponse(
        tool_name=tool_name,
        tool_input=tool_input,
        stop_reason=stop_reason,
        usage=TokenUsage(input_tokens=100, output_tokens=200),
    )


def design_system_response(css: str = VALID_CSS, nav: str = VALID_NAV, footer: str = VALID_FOOTER, **kwargs) -> ModelResponse:
    return model_response("output_design_system", {"css": css, "nav_html": nav, "footer_html": footer}, **kwargs)


def page_response(html: str, **kwargs) -> ModelResponse:
    return model_response("output_page", {"html": html}, **kwargs)


class FakeModelClient:
    """Replays scripted responses in order; an Exception in the script is raised instead"""

    def __init__(self, responses: Optional[List[Union[ModelResponse, Exception]]] = None):
        self.responses = list(responses or [])
        self.requests: List[ModelRequest] = []

    async def call(self, request: ModelRequest) -> ModelResponse:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected model call #{len(self.requests)}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def spec_row() -> Dict[str, Any]:
    return make_spec_row()


@pytest.fixture
def spec(spec_row) -> SiteSpec:
    return SiteSpec(**spec_row)


@pytest.fixture
def design_system() -> DesignSystem:
    return DesignSystem(css=VALID_CSS, nav_html=VALID_NAV, footer_html=VALID_FOOTER, wordmark_svg="<svg></svg>")


@pytest.fixture
def record_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest_asyncio.fixture
async def seeded_store(record_store, spec_row) -> InMemoryRecordStore:
    await record_store.insert(SITE_SPECS, spec_row)
    return record_store


@pytest.fixture
def resolved(spec) -> ResolvedSpec:
    return ResolvedSpec.from_spec(spec, year=2026)
