from typing import Optional

from starlette.requests import Request

from llm_quota_gate.strategy.extractor.base import (
    TokenExtractorStrategy,
)


class HeaderExtractor(TokenExtractorStrategy[Optional[str]]):
    """
    Extract a value from a named request header.

    Surrounding whitespace is stripped. A missing or blank header yields None.
    """

    def __init__(self, header_name: str):
        """Initialize the extractor.

        Args:
            header_name: Name of the header to read (case-insensitive).
        """
        self.header_name = header_name

    async def __call__(self, request: Request) -> Optional[str]:
        """Extract the header value from the request.

        Args:
            request: The incoming HTTP request.

        Returns:
            The header value, or None if it is missing or blank.
        """
        value = request.headers.get(self.header_name)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def __str__(self) -> str:
        return f"HeaderExtractor(header_name='{self.header_name}')"
