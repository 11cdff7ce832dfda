"""Abstract base class for capability providers.

A capability provider is the connector for one external domain (a task
tracker, a calendar). The core only relies on the contract below.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field


class ToolDescriptor(BaseModel):
    """An operation advertised by a capability provider."""

    name: str
    description: str = ""
    parameters: dict[str, str] = Field(
        default_factory=dict,
        description="Parameter name mapped to a human-readable constraint",
    )


class CapabilityResponse(BaseModel):
    """Result of executing one tool."""

    success: bool
    data: Any = None
    error: str | None = None
    code: str | None = None


class CapabilityProvider(ABC):
    """Abstract base class for capability providers."""

    @abstractmethod
    async def execute(self, tool: str, params: dict[str, Any]) -> CapabilityResponse:
        """Run one tool against the external service.

        Args:
            tool: Tool name as advertised by :meth:`list_tools`.
            params: JSON-compatible parameters.

        Returns:
            The service response. Service-side failures are reported with
            ``success=False``; transport failures raise.
        """
        pass

    @abstractmethod
    async def list_tools(self) -> list[ToolDescriptor]:
        """Return the tools currently offered by the service.

        The list is fetched fresh for every request and must not be cached
        beyond a single workflow invocation.
        """
        pass

    @abstractmethod
    def describe(self) -> str:
        """Return a natural-language summary injected into selection prompts."""
        pass

    async def aclose(self) -> None:
        """Release network resources held by the provider."""
        return None
