"""HTML/CSS sanitization for generated and user-influenced markup"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import bleach
from bs4 import BeautifulSoup, Comment
from bs4.element import Stylesheet

logger = logging.getLogger(__name__)

# Tags removed together with their content
DANGEROUS_TAGS = ["script", "iframe", "object", "embed", "frame", "frameset", "applet", "base"]

# Attributes that carry a URL and can therefore carry a script URI
URL_ATTRIBUTES = ["href", "src", "action", "formaction", "xlink:href", "data", "poster", "background", "srcset"]

SAFE_DATA_URI_RE = re.compile(r"^data:image/(png|jpe?g|gif|webp);", re.IGNORECASE)
SCRIPT_URI_RE = re.compile(r"^(javascript|vbscript):", re.IGNORECASE)
# Control characters and whitespace browsers ignore inside a scheme
URI_NOISE_RE = re.compile(r"[\x00-\x20\x7f]+")

CSS_EXPRESSION_RE = re.compile(r"expression\s*\([^)]*\)", re.IGNORECASE)
CSS_SCRIPT_URL_RE = re.compile(r"url\(\s*['\"]?\s*(?:javascript|vbscript):[^)]*\)", re.IGNORECASE)
CSS_BEHAVIOR_RE = re.compile(r"(?:behavior|-moz-binding)\s*:[^;}]*;?", re.IGNORECASE)
CSS_IMPORT_RE = re.compile(r"@import\s+(?:url\()?\s*['\"]?([^'\")\s;]+)['\"]?\s*\)?[^;]*;?", re.IGNORECASE)
CSS_STYLE_CLOSE_RE = re.compile(r"</\s*style", re.IGNORECASE)
GOOGLE_FONTS_PREFIX = "https://fonts.googleapis.com/"

# Regex fallback used only when the HTML parser itself fails
FALLBACK_TAG_RE = re.compile(
    r"<\s*(script|iframe|object|embed|frame|frameset|applet|base)\b(?![^>]*application/ld\+json)[^>]*>.*?<\s*/\s*\1\s*>"
    r"|<\s*(?:script|iframe|object|embed|frame|frameset|applet|base)\b(?![^>]*application/ld\+json)[^>]*/?>",
    re.IGNORECASE | re.DOTALL,
)
FALLBACK_EVENT_RE = re.compile(r"\s+on[a-z]+\s*=\s*(\"[^\"]*\"|'[^']*'|[^\s>]+)", re.IGNORECASE)
FALLBACK_SCRIPT_URI_RE = re.compile(r"(?:javascript|vbscript)\s*:", re.IGNORECASE)


@dataclass
class SanitiseResult:
    """Sanitised content plus audit descriptions of everything removed"""
    content: str
    stripped: List[str] = field(default_factory=list)


def _is_json_ld(tag) -> bool:
    return tag.name == "script" and (tag.get("type") or "").strip().lower() == "application/ld+json"


def _unsafe_uri(value: str) -> bool:
    compact = URI_NOISE_RE.sub("", value)
    if SCRIPT_URI_RE.match(compact):
        return True
    if compact.lower().startswith("data:") and not SAFE_DATA_URI_RE.match(compact):
        return True
    return False


def _sanitise_css_text(css: str, stripped: List[str]) -> str:
    """Strip script-capable CSS constructs, appending audit entries to `stripped`"""
    def drop(pattern, description, text):
        found = pattern.findall(text)
        if found:
            stripped.append(f"{description} ({len(found)})")
        return pattern.sub("", text)

    css = drop(CSS_EXPRESSION_RE, "CSS expression()", css)
    css = drop(CSS_SCRIPT_URL_RE, "CSS script url()", css)
    css = drop(CSS_BEHAVIOR_RE, "CSS behavior/-moz-binding", css)

    def _filter_import(match):
        target = match.group(1)
        if target.startswith(GOOGLE_FONTS_PREFIX):
            return match.group(0)
        stripped.append(f"CSS @import of {target[:80]}")
        return ""

    css = CSS_IMPORT_RE.sub(_filter_import, css)
    css = drop(CSS_STYLE_CLOSE_RE, "</style sequence inside CSS", css)
    return css


def sanitise_css(css: Optional[str]) -> SanitiseResult:
    """
    Remove executable constructs from a stylesheet.

    Never raises: any unexpected failure returns an empty stylesheet.
    """
    stripped: List[str] = []
    try:
        content = _sanitise_css_text(css or "", stripped)
    except Exception as e:  # strip conservatively rather than pass through
        logger.error(f"[SECURITY] CSS sanitiser failed, dropping stylesheet: {e}")
        return SanitiseResult(content="", stripped=["entire stylesheet (sanitiser failure)"])
    return SanitiseResult(content=content, stripped=stripped)


def _sanitise_with_parser(html: str, stripped: List[str]) -> str:
    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(DANGEROUS_TAGS):
        if tag.decomposed or _is_json_ld(tag):
            continue
        stripped.append(f"<{tag.name}> element")
        tag.decompose()

    for tag in soup.find_all("meta"):
        if not tag.decomposed and (tag.get("http-equiv") or "").strip().lower() == "refresh":
            stripped.append("<meta http-equiv=refresh> element")
            tag.decompose()

    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            value = tag.attrs[attr]
            if attr.lower().startswith("on"):
                stripped.append(f"{attr} attribute on <{tag.name}>")
                del tag.attrs[attr]
                continue
            if attr.lower() in URL_ATTRIBUTES:
                text = " ".join(value) if isinstance(value, list) else str(value)
                if _unsafe_uri(text):
                    stripped.append(f"unsafe URI in {attr} on <{tag.name}>")
                    del tag.attrs[attr]
                    continue
            if attr.lower() == "style":
                tag.attrs[attr] = _sanitise_css_text(str(value), stripped)

    for style in soup.find_all("style"):
        if style.string is not None:
            original = str(style.string)
            cleaned = _sanitise_css_text(original, stripped)
            if cleaned != original:
                # Keep the parser's string type for style content
                style.string = Stylesheet(cleaned)

    # Conditional comments can smuggle markup past the parser
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        if FALLBACK_TAG_RE.search(str(comment)) or "[if" in str(comment).lower():
            stripped.append("conditional/script-bearing comment")
            comment.extract()

    return str(soup)


def _sanitise_with_regex(html: str, stripped: List[str]) -> str:
    html, count = FALLBACK_TAG_RE.subn("", html)
    if count:
        stripped.append(f"dangerous elements ({count}, regex fallback)")
    html, count = FALLBACK_EVENT_RE.subn("", html)
    if count:
        stripped.append(f"event handler attributes ({count}, regex fallback)")
    html, count = FALLBACK_SCRIPT_URI_RE.subn("", html)
    if count:
        stripped.append(f"script URIs ({count}, regex fallback)")
    return html


def sanitise_html(html: Optional[str]) -> SanitiseResult:
    """
    Remove scripts, event handlers, script URIs and embedding tags from markup.

    JSON-LD script blocks are preserved since structured data is not executable.
    Never raises: if the parser fails the markup is stripped with conservative regexes.
    """
    stripped: List[str] = []
    source = html or ""
    try:
        content = _sanitise_with_parser(source, stripped)
    except Exception as e:  # parser failure falls back to regex stripping
        logger.warning(f"[SECURITY] HTML parser failed ({e}), using regex fallback")
        stripped = []
        content = _sanitise_with_regex(source, stripped)
    return SanitiseResult(content=content, stripped=stripped)


def log_stripped(context: str, stripped: List[str]) -> None:
    """Record sanitiser removals as a security event"""
    if stripped:
        logger.warning(f"[SECURITY] {context}: stripped {len(stripped)} item(s): {'; '.join(stripped[:20])}")


def escape_html(text: str) -> str:
    """Escape HTML entities"""
    return bleach.clean(text, tags=[], attributes={})
