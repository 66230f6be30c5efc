"""Protocol interfaces for the external collaborators.

The engine talks to the LLM text API and the blob store only through these
protocols, so tests and alternative deployments can swap in their own
implementations without inheritance.

Example:
    >>> from recipeshare.interfaces import ILLMClient
    >>> class CannedClient:
    ...     async def generate(self, prompt):
    ...         return '[{"title": "Toast"}]'
    ...     async def close(self):
    ...         pass
    >>> isinstance(CannedClient(), ILLMClient)
    True
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ILLMClient(Protocol):
    """Free-form text generation API.

    Implementations handle authentication, timeouts and retries. The engine
    treats the model as a black box: prompt in, text out.
    """

    async def generate(self, prompt: str) -> str:
        """Generate text for a prompt.

        Raises:
            UpstreamFailure: If the API is unreachable or answers with an error
        """
        ...

    async def close(self) -> None:
        """Release connections held by the client."""
        ...


@runtime_checkable
class IBlobStore(Protocol):
    """Image storage addressed by opaque references."""

    def store(self, data: bytes, content_type: str) -> str:
        """Persist bytes and return the new reference.

        Raises:
            ValidationFailed: If the content type is not an accepted image type
            UpstreamFailure: If the bytes could not be written
        """
        ...

    def get_url(self, ref: str) -> str | None:
        """Resolve a reference to a URL, or None if nothing is stored under it."""
        ...


__all__ = ["ILLMClient", "IBlobStore"]
