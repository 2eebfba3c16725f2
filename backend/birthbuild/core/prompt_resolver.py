"""Prompt template resolution for the experimentation override path"""

import re
import logging
from typing import Dict, Optional, List

from pydantic import BaseModel, Field, validator

from birthbuild.core.config import settings
from birthbuild.agents.base_agent import PromptOverride
from birthbuild.models.site_spec import SiteSpec, ResolvedSpec, page_filename

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")

# Section markers each page type must wrap its content in
PAGE_SECTIONS: Dict[str, List[str]] = {
    "home": ["hero", "services-overview", "featured-testimonial", "about-preview", "cta"],
    "about": ["hero", "bio", "philosophy", "qualifications", "cta"],
    "services": ["hero", "service-cards", "cta"],
    "contact": ["hero", "contact-form", "contact-info"],
    "testimonials": ["hero", "testimonials", "cta"],
    "faq": ["hero", "faq", "cta"],
}
DEFAULT_SECTIONS = ["hero", "content", "cta"]


class PromptConfig(BaseModel):
    """Externally supplied prompt variant; templates may use {{variable}} placeholders"""
    system_prompt: Optional[str] = None
    user_message: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=256, le=64000)

    @validator("provider")
    def validate_provider(cls, v):
        if v is not None and v not in ("anthropic", "openai"):
            raise ValueError("provider must be 'anthropic' or 'openai'")
        return v


def resolve_template(template: str, variables: Dict[str, str]) -> str:
    """Replace {{name}} placeholders; unknown names are left verbatim"""
    return PLACEHOLDER_RE.sub(
        lambda match: variables.get(match.group(1), match.group(0)),
        template,
    )


def sections_for(page: str) -> List[str]:
    return PAGE_SECTIONS.get(page, DEFAULT_SECTIONS)


def section_list(page: str) -> str:
    return "\n".join(
        f"<!-- bb-section:{name} -->...<section>...</section>...<!-- /bb-section:{name} -->"
        for name in sections_for(page)
    )


def page_list(pages: List[str]) -> str:
    return ", ".join(f"{page} ({page_filename(page)})" for page in pages)


def social_links_desc(resolved: ResolvedSpec) -> str:
    if not resolved.social_links:
        return "none provided"
    return ", ".join(f"{link.platform}: {link.url}" for link in resolved.social_links)


def services_desc(spec: SiteSpec) -> str:
    if not spec.services:
        return "No services listed."
    return "\n".join(f"- {s.title} ({s.type}): {s.description} — {s.price}" for s in spec.services)


def testimonials_desc(spec: SiteSpec) -> str:
    if not spec.testimonials:
        return "No testimonials provided."
    return "\n".join(f'- "{t.quote}" — {t.name} ({t.context})' for t in spec.testimonials)


def photos_desc(spec: SiteSpec) -> str:
    if not spec.photos:
        return "No photos provided."
    return "\n".join(f'- {p.purpose}: {p.public_url} (alt: "{p.alt_text}")' for p in spec.photos)


def _colour_comment(hex_value: str, description: Optional[str]) -> str:
    return f'{hex_value}  /* Client described as: "{description}" */' if description else hex_value


def build_design_system_variables(resolved: ResolvedSpec) -> Dict[str, str]:
    """Variable map for design-system prompt templates"""
    colours = resolved.colours
    return {
        "business_name": resolved.business_name,
        "doula_name": resolved.doula_name,
        "tagline": resolved.tagline,
        "service_area": resolved.service_area,
        "style": resolved.style,
        "brand_feeling": resolved.brand_feeling,
        "colour_bg": _colour_comment(colours.background, colours.background_description),
        "colour_primary": _colour_comment(colours.primary, colours.primary_description),
        "colour_accent": _colour_comment(colours.accent, colours.accent_description),
        "colour_text": _colour_comment(colours.text, colours.text_description),
        "colour_cta": _colour_comment(colours.cta, colours.cta_description),
        "colour_bg_desc": colours.background_description or "",
        "colour_primary_desc": colours.primary_description or "",
        "colour_accent_desc": colours.accent_description or "",
        "colour_text_desc": colours.text_description or "",
        "colour_cta_desc": colours.cta_description or "",
        "heading_font": resolved.heading_font,
        "body_font": resolved.body_font,
        "typography_scale": resolved.typography_scale,
        "spacing_density": resolved.spacing_density,
        "border_radius": resolved.border_radius,
        "page_list": page_list(resolved.pages),
        "social_links_desc": social_links_desc(resolved),
        "year": str(resolved.year),
    }


def build_page_variables(resolved: ResolvedSpec, spec: SiteSpec, page: str) -> Dict[str, str]:
    """Variable map for page prompt templates: design-system variables plus page content"""
    # Deferred import: page_prompt imports this module
    from birthbuild.agents.page.page_prompt import build_page_specific_block

    variables = build_design_system_variables(resolved)
    variables.update({
        "page": page,
        "bio": spec.bio or "",
        "philosophy": spec.philosophy or "",
        "services_desc": services_desc(spec),
        "testimonials_desc": testimonials_desc(spec),
        "photos_desc": photos_desc(spec),
        "primary_keyword": spec.primary_keyword or "",
        "subdomain": spec.subdomain_slug or "example",
        "email": spec.email or "",
        "phone": spec.phone or "",
        "booking_url": spec.booking_url or "",
        "doula_uk": "true" if spec.doula_uk else "false",
        "training_provider": spec.training_provider or "",
        "training_year": spec.training_year or "",
        "primary_location": spec.primary_location or "",
        "bio_previous_career": spec.bio_previous_career or "",
        "bio_origin_story": spec.bio_origin_story or "",
        "additional_training": ", ".join(spec.additional_training),
        "client_perception": spec.client_perception or "",
        "signature_story": spec.signature_story or "",
        "page_specific": build_page_specific_block(page, spec),
        "section_list": section_list(page),
    })
    return variables


def overrides_enabled(prompt_config: Optional[PromptConfig]) -> bool:
    """Prompt overrides only apply when supplied and switched on server-side"""
    if prompt_config is None:
        return False
    if not settings.allow_prompt_overrides:
        logger.warning("[PROMPT] prompt_config supplied but ALLOW_PROMPT_OVERRIDES is off - ignoring")
        return False
    return True


def resolve_override(prompt_config: Optional[PromptConfig], variables: Dict[str, str]) -> Optional[PromptOverride]:
    """Resolve a PromptConfig against a variable map, or None when overrides don't apply"""
    if not overrides_enabled(prompt_config):
        return None
    logger.info(
        f"[PROMPT] Applying prompt override | provider={prompt_config.provider} | model={prompt_config.model}"
    )
    return PromptOverride(
        system_prompt=resolve_template(prompt_config.system_prompt, variables) if prompt_config.system_prompt else None,
        user_message=resolve_template(prompt_config.user_message, variables) if prompt_config.user_message else None,
        provider=prompt_config.provider,
        model=prompt_config.model,
        temperature=prompt_config.temperature,
        max_tokens=prompt_config.max_tokens,
    )
