"""sitemap.xml and robots.txt for a generated site"""

from datetime import date
from typing import List, Optional
from xml.sax.saxutils import escape

# AI crawlers explicitly allowed so the site can be cited in AI answers
AI_CRAWLERS = [
    "GPTBot",
    "ChatGPT-User",
    "ClaudeBot",
    "PerplexityBot",
    "Google-Extended",
    "Applebot-Extended",
]


def generate_sitemap(base_url: str, filenames: List[str], today: Optional[date] = None) -> str:
    """Standard sitemap with index.html at priority 1.0 and other pages at 0.8"""
    lastmod = (today or date.today()).isoformat()
    base = base_url.rstrip("/")
    entries = []
    for filename in filenames:
        priority = "1.0" if filename == "index.html" else "0.8"
        entries.append(
            "  <url>\n"
            f"    <loc>{escape(f'{base}/{filename}')}</loc>\n"
            f"    <lastmod>{lastmod}</lastmod>\n"
            "    <changefreq>monthly</changefreq>\n"
            f"    <priority>{priority}</priority>\n"
            "  </url>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        + "\n".join(entries)
        + "\n</urlset>\n"
    )


def generate_robots_txt(base_url: str) -> str:
    lines = ["User-agent: *", "Allow: /", ""]
    for crawler in AI_CRAWLERS:
        lines.extend([f"User-agent: {crawler}", "Allow: /", ""])
    lines.append(f"Sitemap: {base_url.rstrip('/')}/sitemap.xml")
    return "\n".join(lines) + "\n"
