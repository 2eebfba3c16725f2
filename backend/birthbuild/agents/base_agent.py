"""Base class for generation agents that extract one forced tool call"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List, Union

from birthbuild.core.config import settings
from birthbuild.core.model_client import (
    ModelClient,
    ModelRequest,
    ModelResponse,
    ModelProviderError,
    ToolDefinition,
    TokenUsage,
    model_client as default_model_client,
    default_model,
    api_key_for,
)

logger = logging.getLogger(__name__)


class AgentError(Exception):
    """Base exception for agent errors"""
    pass


@dataclass
class ToolCallOk:
    payload: Dict[str, Any]
    response: ModelResponse


@dataclass
class ToolCallStructuralError:
    """The provider answered but without a usable tool payload"""
    issues: List[str]
    response: ModelResponse


@dataclass
class ToolCallProviderError:
    error: ModelProviderError


ToolCallResult = Union[ToolCallOk, ToolCallStructuralError, ToolCallProviderError]


@dataclass
class PromptOverride:
    """Resolved experimentation overrides for a single call"""
    system_prompt: Optional[str] = None
    user_message: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class UsageTotals:
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    by_call: List[Dict[str, Any]] = field(default_factory=list)

    def add(self, label: str, usage: TokenUsage) -> None:
        self.calls += 1
        self.input_tokens += usage.input_tokens
        self.output_tokens += usage.output_tokens
        self.by_call.append({"label": label, "input": usage.input_tokens, "output": usage.output_tokens})


class BaseAgent:
    """Base class for agents that force the model to answer through a single tool"""

    def __init__(
        self,
        client: Optional[ModelClient] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = 8192,
        agent_name: str = "Agent",
        api_key: Optional[str] = None,
    ):
        self.client = client or default_model_client
        self.provider = provider or settings.default_provider
        self.model = model or default_model(self.provider)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.agent_name = agent_name
        self.api_key = api_key
        self.usage = UsageTotals()

    def _build_request(
        self,
        system_prompt: str,
        user_message: str,
        tool: ToolDefinition,
        override: Optional[PromptOverride] = None,
    ) -> ModelRequest:
        override = override or PromptOverride()
        provider = override.provider or self.provider
        model = override.model or (self.model if provider == self.provider else default_model(provider))
        return ModelRequest(
            provider=provider,
            model=model,
            api_key=self.api_key if (self.api_key and provider == self.provider) else api_key_for(provider),
            system_prompt=override.system_prompt or system_prompt,
            user_message=override.user_message or user_message,
            tools=[tool],
            forced_tool=tool.name,
            temperature=override.temperature if override.temperature is not None else self.temperature,
            max_tokens=override.max_tokens or self.max_tokens,
        )

    # Calls the model forced to `tool` and classifies the outcome.
    # Returns Ok only when the payload carries every required field as a non-empty string.
    async def _call_tool(
        self,
        system_prompt: str,
        user_message: str,
        tool: ToolDefinition,
        label: str,
        override: Optional[PromptOverride] = None,
    ) -> ToolCallResult:
        request = self._build_request(system_prompt, user_message, tool, override)
        try:
            response = await self.client.call(request)
        except ModelProviderError as e:
            logger.error(f"[{self.agent_name}] Provider error during {label}: {e}")
            return ToolCallProviderError(error=e)

        self.usage.add(label, response.usage)

        if response.tool_name != tool.name or response.tool_input is None:
            logger.warning(
                f"[{self.agent_name}] {label}: no {tool.name} tool call "
                f"(stop_reason={response.stop_reason}, tool={response.tool_name})"
            )
            if response.tool_name == tool.name:
                issues = [f"The {tool.name} tool arguments were malformed or cut off and could not be decoded."]
            else:
                issues = [f"The response did not call the {tool.name} tool."]
            if response.stop_reason == "max_tokens":
                issues.append("The response was truncated (max_tokens reached) before the tool call completed.")
            return ToolCallStructuralError(issues=issues, response=response)

        required = tool.input_schema.get("required", [])
        missing = [
            name for name in required
            if not isinstance(response.tool_input.get(name), str) or not response.tool_input.get(name).strip()
        ]
        if missing:
            issues = [f"The {tool.name} tool output is missing required field '{name}'." for name in missing]
            if response.stop_reason == "max_tokens":
                issues.append("The response was truncated (max_tokens reached).")
            return ToolCallStructuralError(issues=issues, response=response)

        return ToolCallOk(payload=response.tool_input, response=response)
