"""Per-page-type structural validators for generated pages"""

import logging
from typing import Callable, Dict, List, Set

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

PageValidator = Callable[[str], List[str]]

GRID_CLASSES = {"cards", "grid", "services-grid"}
CARD_CLASSES = {"card"}
BUTTON_CLASSES = {"btn", "btn--outline"}


def _class_names(soup: BeautifulSoup) -> Set[str]:
    names: Set[str] = set()
    for tag in soup.find_all(class_=True):
        value = tag.get("class")
        names.update(value if isinstance(value, list) else str(value).split())
    return names


def _has_json_ld(soup: BeautifulSoup) -> bool:
    for script in soup.find_all("script"):
        if (script.get("type") or "").strip().lower() == "application/ld+json" and (script.string or "").strip():
            return True
    return False


def validate_services_page(html: str) -> List[str]:
    """Services page must render cards in a grid with a CTA button and Service JSON-LD"""
    soup = BeautifulSoup(html, "html.parser")
    classes = _class_names(soup)
    issues = []
    if not classes & GRID_CLASSES:
        issues.append('Missing a card grid wrapper: use class "cards" (or "grid" / "services-grid").')
    if not classes & CARD_CLASSES:
        issues.append('Missing service cards: each service must use class "card".')
    if not classes & BUTTON_CLASSES:
        issues.append('Missing a call-to-action button: use class "btn" or "btn--outline".')
    if not _has_json_ld(soup):
        issues.append('Missing a <script type="application/ld+json"> block with Service structured data.')
    return issues


class PageValidatorRegistry:
    """Maps page types to structural validators; unregistered types always pass"""

    def __init__(self):
        self._validators: Dict[str, List[PageValidator]] = {}

    def register(self, page: str, validator: PageValidator) -> None:
        self._validators.setdefault(page, []).append(validator)

    def validate(self, page: str, html: str) -> List[str]:
        issues: List[str] = []
        for validator in self._validators.get(page, []):
            issues.extend(validator(html))
        return issues


def default_registry() -> PageValidatorRegistry:
    registry = PageValidatorRegistry()
    registry.register("services", validate_services_page)
    return registry


# Global registry used by page agents unless one is injected
page_validators = default_registry()
