"""Base classes for completion provider abstraction.

A provider accepts a CompletionRequest (chat messages, optionally a set of
callable capabilities and the name of the one the service must invoke)
and returns a Completion carrying either the invocation's raw arguments
or free text, plus token usage when the service reports it.

Providers never parse the arguments themselves: deciding whether a
structured result was produced is the caller's job, so a malformed
payload can fall through to the text path instead of raising.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel

from ..errors import TranslationError


@dataclass(frozen=True)
class LLMUsage:
    """Token usage and cost tracking for completion calls.

    Attributes:
        input_tokens: Number of tokens in the prompt
        output_tokens: Number of tokens in the response
        total_tokens: Total tokens used (input + output)
        estimated_cost_usd: Estimated cost in USD
    """
    input_tokens: int
    output_tokens: int
    total_tokens: int
    estimated_cost_usd: float = 0.0

    def __add__(self, other: "LLMUsage") -> "LLMUsage":
        return LLMUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            estimated_cost_usd=self.estimated_cost_usd + other.estimated_cost_usd
        )


def combine_usage(*usages: Optional[LLMUsage]) -> Optional[LLMUsage]:
    """Sum usages, ignoring missing ones. None when nothing was reported."""
    total: Optional[LLMUsage] = None
    for usage in usages:
        if usage is None:
            continue
        total = usage if total is None else total + usage
    return total


@dataclass(frozen=True)
class ToolSpec:
    """A callable capability declared to the completion service."""
    name: str
    description: str
    parameters: Dict[str, Any]

    @classmethod
    def from_model(cls, name: str, description: str, model: Type[BaseModel]) -> "ToolSpec":
        """Declare a capability whose parameters are a pydantic model's JSON schema."""
        return cls(
            name=name,
            description=description,
            parameters=model.model_json_schema(by_alias=True)
        )

    def to_openai(self) -> Dict[str, Any]:
        """OpenAI-compatible `tools` entry."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class CompletionRequest:
    """Structured request to the completion service.

    Attributes:
        messages: Chat messages ({"role": ..., "content": ...})
        tools: Capabilities the service may invoke
        forced_tool: Name of the capability the service must invoke
    """
    messages: tuple[Dict[str, str], ...]
    tools: tuple[ToolSpec, ...] = ()
    forced_tool: Optional[str] = None


@dataclass(frozen=True)
class Completion:
    """What the completion service returned.

    tool_arguments is the raw JSON string of the invocation when the
    service invoked a capability; text is the free-text content otherwise.
    """
    text: Optional[str] = None
    tool_name: Optional[str] = None
    tool_arguments: Optional[str] = None
    usage: Optional[LLMUsage] = None


class LLMError(TranslationError):
    """Transport or API failure talking to the completion service."""
    pass


class LLMTimeoutError(LLMError):
    """Raised when a completion request exceeds its timeout."""

    def __init__(self, message: str, timeout_seconds: Optional[float] = None):
        details = {}
        if timeout_seconds is not None:
            details["timeout_seconds"] = timeout_seconds
        super().__init__(message=message, retryable=True, details=details)


class LLMProvider(ABC):
    """Abstract base class for completion providers.

    Key Requirements:
    - Must honor forced_tool when the backend supports function calling
    - Must report token usage when the backend returns it
    - Must raise LLMError/LLMTimeoutError for service-level failures
    - Must not log raw prompts or responses above debug level
    """

    @abstractmethod
    def complete(
        self,
        request: CompletionRequest,
        timeout: float = 60.0
    ) -> Completion:
        """Send a request to the completion service.

        Args:
            request: Messages plus optional capabilities to invoke
            timeout: Maximum time to wait for the response in seconds

        Returns:
            Completion with tool arguments or text, and usage if reported

        Raises:
            LLMTimeoutError: If the request exceeds the timeout
            LLMError: For network, quota and malformed-response failures
        """
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model identifier being used."""
        pass
