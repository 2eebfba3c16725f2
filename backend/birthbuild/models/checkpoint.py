"""Generated artifact records: design system, pages and checkpoints"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


WORDMARK_PLACEHOLDER = "{{WORDMARK_SVG}}"
ACTIVE_PAGE_PLACEHOLDER = "{{ACTIVE_PAGE}}"


class DesignSystem(BaseModel):
    """Shared CSS + nav/footer markup, produced once per generation run"""
    css: str
    nav_html: str
    footer_html: str
    wordmark_svg: str = ""

    class Config:
        frozen = True

    def render_nav(self, page: str) -> str:
        """Nav markup with the wordmark and active page substituted for one page"""
        return (
            self.nav_html
            .replace(WORDMARK_PLACEHOLDER, self.wordmark_svg)
            .replace(ACTIVE_PAGE_PLACEHOLDER, page)
        )

    def render_footer(self, page: str) -> str:
        return (
            self.footer_html
            .replace(WORDMARK_PLACEHOLDER, self.wordmark_svg)
            .replace(ACTIVE_PAGE_PLACEHOLDER, page)
        )


class GeneratedPage(BaseModel):
    filename: str
    html: str

    class Config:
        frozen = True


class Checkpoint(BaseModel):
    """Immutable, versioned snapshot of a generated page set"""
    id: str
    site_spec_id: str
    version: int = Field(..., ge=1)
    pages: List[GeneratedPage]
    design_system: Optional[DesignSystem] = None
    label: Optional[str] = None
    created_at: datetime

    class Config:
        frozen = True


class SiteFile(BaseModel):
    """One file handed to the packager"""
    path: str
    content: str
