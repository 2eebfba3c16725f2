"""Provider-neutral model client for forced single-tool calls"""

import json
import asyncio
import logging
from typing import Dict, Any, Optional, List, Type

import anthropic
import openai
from pydantic import BaseModel, Field

from birthbuild.core.config import settings
from birthbuild.models.errors import ApplicationError, ErrorCode

logger = logging.getLogger(__name__)


class ToolDefinition(BaseModel):
    """Tool schema in Anthropic shape; providers translate as needed"""
    name: str
    description: str
    input_schema: Dict[str, Any]


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ModelRequest(BaseModel):
    provider: str
    model: str
    api_key: str
    system_prompt: str
    user_message: str
    tools: List[ToolDefinition] = Field(default_factory=list)
    forced_tool: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: int = 8192


class ModelResponse(BaseModel):
    """Normalised response: stop reasons use the end_turn/tool_use/max_tokens vocabulary"""
    tool_name: Optional[str] = None
    tool_input: Optional[Dict[str, Any]] = None
    text_content: str = ""
    stop_reason: str = "end_turn"
    usage: TokenUsage = Field(default_factory=TokenUsage)


class ModelProviderError(Exception):
    """Non-2xx response, network failure or timeout from a model provider"""
    def __init__(self, provider: str, detail: str, status_code: Optional[int] = None):
        self.provider = provider
        self.detail = detail
        self.status_code = status_code
        status = f"HTTP {status_code}" if status_code else "no response"
        super().__init__(f"{provider} request failed ({status}): {detail}")


class ModelProvider:
    """Base class for a provider capability; subclasses translate the request shape"""

    name = "base"
    stop_reason_map: Dict[str, str] = {}

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.model_timeout_seconds
        self._clients: Dict[str, Any] = {}

    def _client(self, api_key: str) -> Any:
        raise NotImplementedError

    # Get or create the SDK client for a key
    # One connection pool per key, reused across calls
    def _get_client(self, api_key: str) -> Any:
        client = self._clients.get(api_key)
        if client is None:
            client = self._client(api_key)
            self._clients[api_key] = client
        return client

    async def close(self):
        """Close every cached SDK client"""
        clients, self._clients = list(self._clients.values()), {}
        for client in clients:
            await client.close()
        if clients:
            logger.info(f"[MODEL] Closed {len(clients)} {self.name} client(s)")

    def normalise_stop_reason(self, reason: Optional[str]) -> str:
        if not reason:
            return "end_turn"
        return self.stop_reason_map.get(reason, reason)

    async def complete(self, request: ModelRequest) -> ModelResponse:
        raise NotImplementedError


class AnthropicProvider(ModelProvider):
    """Anthropic Messages API"""

    name = "anthropic"

    def _client(self, api_key: str) -> anthropic.AsyncAnthropic:
        # SDK retries disabled: retry policy belongs to the callers
        return anthropic.AsyncAnthropic(api_key=api_key, max_retries=0, timeout=self.timeout)

    def build_payload(self, request: ModelRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "system": request.system_prompt,
            "messages": [{"role": "user", "content": request.user_message}],
        }
        if request.tools:
            payload["tools"] = [tool.model_dump() for tool in request.tools]
            if request.forced_tool:
                payload["tool_choice"] = {"type": "tool", "name": request.forced_tool}
            else:
                payload["tool_choice"] = {"type": "auto"}
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        return payload

    def parse_response(self, message: Any) -> ModelResponse:
        tool_name = None
        tool_input = None
        texts: List[str] = []
        for block in message.content or []:
            if block.type == "tool_use" and tool_name is None:
                tool_name = block.name
                tool_input = block.input if isinstance(block.input, dict) else None
            elif block.type == "text":
                texts.append(block.text)

        usage = TokenUsage()
        if getattr(message, "usage", None) is not None:
            usage = TokenUsage(
                input_tokens=message.usage.input_tokens or 0,
                output_tokens=message.usage.output_tokens or 0,
            )

        return ModelResponse(
            tool_name=tool_name,
            tool_input=tool_input,
            text_content="".join(texts),
            stop_reason=self.normalise_stop_reason(message.stop_reason),
            usage=usage,
        )

    async def complete(self, request: ModelRequest) -> ModelResponse:
        client = self._get_client(request.api_key)
        try:
            message = await client.messages.create(**self.build_payload(request))
        except anthropic.APIStatusError as e:
            raise ModelProviderError(self.name, str(e.message), status_code=e.status_code) from e
        except anthropic.APIConnectionError as e:
            raise ModelProviderError(self.name, f"connection error: {e}") from e
        return self.parse_response(message)


class OpenAIProvider(ModelProvider):
    """OpenAI Chat Completions API"""

    name = "openai"
    stop_reason_map = {
        "tool_calls": "tool_use",
        "function_call": "tool_use",
        "stop": "end_turn",
        "length": "max_tokens",
    }

    def _client(self, api_key: str) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(api_key=api_key, max_retries=0, timeout=self.timeout)

    def build_payload(self, request: ModelRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": request.model,
            "max_completion_tokens": request.max_tokens,
            "messages": [
                {"role": "system", "content": request.system_prompt},
                {"role": "user", "content": request.user_message},
            ],
        }
        if request.tools:
            payload["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.input_schema,
                    },
                }
                for tool in request.tools
            ]
            if request.forced_tool:
                payload["tool_choice"] = {"type": "function", "function": {"name": request.forced_tool}}
            else:
                payload["tool_choice"] = "auto"
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        return payload

    def parse_response(self, completion: Any) -> ModelResponse:
        if not completion.choices:
            return ModelResponse(stop_reason="end_turn")
        choice = completion.choices[0]
        message = choice.message

        tool_name = None
        tool_input = None
        if message.tool_calls:
            call = message.tool_calls[0]
            tool_name = call.function.name
            try:
                decoded = json.loads(call.function.arguments or "")
                tool_input = decoded if isinstance(decoded, dict) else None
            except json.JSONDecodeError:
                # Truncated arguments are common when the token budget runs out
                logger.warning(f"[MODEL] {self.name} tool arguments for {tool_name} are not valid JSON")
                tool_input = None

        usage = TokenUsage()
        if getattr(completion, "usage", None) is not None:
            usage = TokenUsage(
                input_tokens=completion.usage.prompt_tokens or 0,
                output_tokens=completion.usage.completion_tokens or 0,
            )

        return ModelResponse(
            tool_name=tool_name,
            tool_input=tool_input,
            text_content=message.content or "",
            stop_reason=self.normalise_stop_reason(choice.finish_reason),
            usage=usage,
        )

    async def complete(self, request: ModelRequest) -> ModelResponse:
        client = self._get_client(request.api_key)
        try:
            completion = await client.chat.completions.create(**self.build_payload(request))
        except openai.APIStatusError as e:
            raise ModelProviderError(self.name, str(e.message), status_code=e.status_code) from e
        except openai.APIConnectionError as e:
            raise ModelProviderError(self.name, f"connection error: {e}") from e
        return self.parse_response(completion)


PROVIDERS: Dict[str, Type[ModelProvider]] = {
    AnthropicProvider.name: AnthropicProvider,
    OpenAIProvider.name: OpenAIProvider,
}


def default_model(provider: str) -> str:
    return settings.openai_model if provider == OpenAIProvider.name else settings.anthropic_model


def api_key_for(provider: str) -> str:
    """Look up the server-side API key for a provider"""
    key = settings.openai_api_key if provider == OpenAIProvider.name else settings.anthropic_api_key
    if not key:
        raise ApplicationError(
            code=ErrorCode.CONFIGURATION_ERROR,
            message="The AI service is not configured. Please contact support.",
            detail=f"No API key configured for provider '{provider}'",
        )
    return key


class ModelClient:
    """Routes a ModelRequest to its provider, bounded by a timeout; performs no retries"""

    def __init__(self, providers: Optional[Dict[str, ModelProvider]] = None, timeout: Optional[float] = None):
        self.timeout = timeout or settings.model_timeout_seconds
        self.providers = providers or {
            name: provider_cls(timeout=self.timeout) for name, provider_cls in PROVIDERS.items()
        }

    def get_provider(self, name: str) -> ModelProvider:
        provider = self.providers.get(name)
        if provider is None:
            raise ApplicationError(
                code=ErrorCode.CONFIGURATION_ERROR,
                message="The AI service is not configured. Please contact support.",
                detail=f"Unknown model provider '{name}'. Must be one of: {', '.join(self.providers)}",
            )
        return provider

    async def close(self):
        for provider in self.providers.values():
            await provider.close()

    async def call(self, request: ModelRequest) -> ModelResponse:
        provider = self.get_provider(request.provider)
        logger.info(
            f"[MODEL] Calling {provider.name} | model={request.model} | "
            f"forced_tool={request.forced_tool} | max_tokens={request.max_tokens}"
        )
        try:
            response = await asyncio.wait_for(provider.complete(request), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ModelProviderError(provider.name, f"timed out after {self.timeout}s") from e

        logger.info(
            f"[MODEL] {provider.name} responded | stop_reason={response.stop_reason} | "
            f"tool={response.tool_name} | tokens={response.usage.total_tokens}"
        )
        return response


# Global model client instance
model_client = ModelClient()
