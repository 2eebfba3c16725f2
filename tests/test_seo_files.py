"""Tests for sitemap.xml, robots.txt and the SVG wordmark"""
from datetime import date
from xml.etree import ElementTree

from birthbuild.core.seo_files import AI_CRAWLERS, generate_sitemap, generate_robots_txt
from birthbuild.core.wordmark import generate_wordmark

SITEMAP_NS = {"sm": "http://www.sitemaps.org/schemas/sitemap/0.9"}


class TestSitemap:

    def test_priorities_and_lastmod(self):
        xml = generate_sitemap(
            "https://sarah-jones.birthbuild.com/",
            ["index.html", "services.html", "contact.html"],
            today=date(2026, 3, 14),
        )
        root = ElementTree.fromstring(xml.encode("utf-8"))
        urls = root.findall("sm:url", SITEMAP_NS)

        assert [u.find("sm:loc", SITEMAP_NS).text for u in urls] == [
            "https://sarah-jones.birthbuild.com/index.html",
            "https://sarah-jones.birthbuild.com/services.html",
            "https://sarah-jones.birthbuild.com/contact.html",
        ]
        assert [u.find("sm:priority", SITEMAP_NS).text for u in urls] == ["1.0", "0.8", "0.8"]
        assert all(u.find("sm:lastmod", SITEMAP_NS).text == "2026-03-14" for u in urls)

    def test_locations_are_escaped(self):
        xml = generate_sitemap("https://a.example/?x=1&y=2", ["index.html"])
        assert "&amp;" in xml
        ElementTree.fromstring(xml.encode("utf-8"))


class TestRobots:

    def test_allows_everyone_and_ai_crawlers(self):
        robots = generate_robots_txt("https://sarah-jones.birthbuild.com")
        lines = robots.splitlines()

        assert lines[:2] == ["User-agent: *", "Allow: /"]
        for crawler in AI_CRAWLERS:
            assert f"User-agent: {crawler}" in lines
        assert lines[-1] == "Sitemap: https://sarah-jones.birthbuild.com/sitemap.xml"


class TestWordmark:

    def test_is_accessible_svg(self):
        svg = generate_wordmark("Gentle Births", "Playfair Display", "#5f7161", "modern")
        root = ElementTree.fromstring(svg)

        assert root.get("role") == "img"
        assert root.find("{http://www.w3.org/2000/svg}title").text == "Gentle Births"
        assert 'fill="#5f7161"' in svg

    def test_name_is_escaped(self):
        svg = generate_wordmark('Births & "Beyond" <3', "Inter", "#000000", "minimal")
        assert "<3" not in svg
        ElementTree.fromstring(svg)

    def test_classic_style_has_divider(self):
        assert "<line" in generate_wordmark("Gentle Births", "Lora", "#5f7161", "classic")
        assert "<line" not in generate_wordmark("Gentle Births", "Lora", "#5f7161", "modern")

    def test_deterministic(self):
        first = generate_wordmark("Gentle Births", "Inter", "#5f7161", "modern")
        assert generate_wordmark("Gentle Births", "Inter", "#5f7161", "modern") == first
