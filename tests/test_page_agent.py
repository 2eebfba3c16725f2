"""
Tests for the page agent: validation, the single repair attempt and CSS enforcement
"""
import pytest

from birthbuild.agents.page.page_agent import (
    PageAgent,
    PageProviderError,
    PageValidationError,
    enforce_design_css,
)
from birthbuild.agents.page.page_validators import PageValidatorRegistry, validate_services_page
from birthbuild.core.model_client import ModelProviderError
from conftest import (
    FakeModelClient,
    SERVICES_HTML,
    SIMPLE_PAGE_HTML,
    VALID_CSS,
    model_response,
    page_response,
)


def _agent(client: FakeModelClient, **kwargs) -> PageAgent:
    return PageAgent(client=client, provider="anthropic", model="test-model", api_key="test-key", **kwargs)


class TestEnforceDesignCss:
    """The canonical stylesheet always wins over whatever the model inlined"""

    def test_replaces_style_block_exactly(self):
        css = ".a > .b { color: #123456; }\n/* keep me */"
        html = "<html><head><style>body { color: red; }</style></head><body></body></html>"
        result = enforce_design_css(html, css)
        assert f"<style>{css}</style>" in result
        assert "color: red" not in result

    def test_keeps_only_one_style_block(self):
        html = "<html><head><style>a{}</style><style>b{}</style></head><body><style>c{}</style></body></html>"
        result = enforce_design_css(html, "x{}")
        assert result.count("<style") == 1
        assert "<style>x{}</style>" in result

    def test_inserts_before_head_close(self):
        result = enforce_design_css("<html><head><title>T</title></head><body></body></html>", "x{}")
        assert "<title>T</title><style>x{}</style></head>" in result

    def test_creates_head_when_missing(self):
        result = enforce_design_css('<html lang="en"><body></body></html>', "x{}")
        assert result.startswith('<html lang="en"><head><style>x{}</style></head>')

    def test_bare_fragment(self):
        assert enforce_design_css("<p>hi</p>", "x{}") == "<style>x{}</style><p>hi</p>"


class TestServicesValidator:

    def test_valid_services_page(self):
        assert validate_services_page(SERVICES_HTML) == []

    def test_page_without_cards(self):
        issues = validate_services_page(SIMPLE_PAGE_HTML)
        assert len(issues) == 4

    def test_empty_json_ld_does_not_count(self):
        html = SERVICES_HTML.replace(
            '{"@context": "https://schema.org", "@type": "Service", "name": "Birth Support"}', "  "
        )
        issues = validate_services_page(html)
        assert len(issues) == 1
        assert "ld+json" in issues[0]


class TestPageAgent:

    @pytest.mark.asyncio
    async def test_services_page_first_attempt(self, spec, resolved, design_system):
        client = FakeModelClient([page_response(SERVICES_HTML)])

        result = await _agent(client).run("services", spec, resolved, design_system)

        assert result.attempts == 1
        assert result.filename == "services.html"
        assert f"<style>{VALID_CSS}</style>" in result.html
        assert "color: red" not in result.html
        assert client.requests[0].forced_tool == "output_page"

    @pytest.mark.asyncio
    async def test_services_page_repaired_exactly_once(self, spec, resolved, design_system):
        client = FakeModelClient([page_response(SIMPLE_PAGE_HTML), page_response(SERVICES_HTML)])

        result = await _agent(client).run("services", spec, resolved, design_system)

        assert result.attempts == 2
        assert len(client.requests) == 2
        repair_message = client.requests[1].user_message
        assert "failed validation" in repair_message
        assert 'class "cards"' in repair_message

    @pytest.mark.asyncio
    async def test_second_failure_is_fatal(self, spec, resolved, design_system):
        client = FakeModelClient([page_response(SIMPLE_PAGE_HTML), page_response(SIMPLE_PAGE_HTML)])

        with pytest.raises(PageValidationError) as exc_info:
            await _agent(client).run("services", spec, resolved, design_system)

        assert exc_info.value.page == "services"
        assert exc_info.value.issues
        assert len(client.requests) == 2

    @pytest.mark.asyncio
    async def test_pages_without_validators_always_pass(self, spec, resolved, design_system):
        client = FakeModelClient([page_response(SIMPLE_PAGE_HTML)])

        result = await _agent(client).run("home", spec, resolved, design_system)

        assert result.attempts == 1
        assert result.filename == "index.html"
        assert f"<style>{VALID_CSS}</style>" in result.html

    @pytest.mark.asyncio
    async def test_missing_tool_call_gets_one_repair(self, spec, resolved, design_system):
        client = FakeModelClient([model_response(stop_reason="end_turn"), page_response(SIMPLE_PAGE_HTML)])

        result = await _agent(client).run("contact", spec, resolved, design_system)

        assert result.attempts == 2
        assert "output_page" in client.requests[1].user_message

    @pytest.mark.asyncio
    async def test_provider_error_is_not_repaired(self, spec, resolved, design_system):
        client = FakeModelClient([ModelProviderError("anthropic", "overloaded", status_code=529)])

        with pytest.raises(PageProviderError) as exc_info:
            await _agent(client).run("about", spec, resolved, design_system)

        assert exc_info.value.page == "about"
        assert len(client.requests) == 1

    @pytest.mark.asyncio
    async def test_scripts_are_stripped_from_pages(self, spec, resolved, design_system):
        html = SIMPLE_PAGE_HTML.replace("</main>", "<script>steal()</script></main>")
        client = FakeModelClient([page_response(html)])

        result = await _agent(client).run("home", spec, resolved, design_system)

        assert "steal()" not in result.html
        assert result.stripped

    @pytest.mark.asyncio
    async def test_injected_registry(self, spec, resolved, design_system):
        registry = PageValidatorRegistry()
        registry.register("contact", lambda html: [] if "contact-form" in html else ["Missing contact form."])
        client = FakeModelClient([page_response(SIMPLE_PAGE_HTML), page_response(SIMPLE_PAGE_HTML)])

        with pytest.raises(PageValidationError) as exc_info:
            await _agent(client, validators=registry).run("contact", spec, resolved, design_system)

        assert exc_info.value.issues == ["Missing contact form."]
