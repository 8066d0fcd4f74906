"""Error types raised along the chat pipeline

Remote failures are absorbed by the component that made the call and turned into safe
defaults, only ValidationError and unexpected errors ever reach the HTTP layer
"""

from __future__ import annotations
from typing import Optional


class ShopBotError(Exception):
    pass


class ValidationError(ShopBotError):
    """The inbound request is unusable (empty message)"""


class UpstreamCallError(ShopBotError):
    """Network or HTTP failure talking to a remote model API"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamParseError(ShopBotError):
    """The chat model replied with something that is not a valid intent"""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class EmbeddingFormatError(ShopBotError):
    """The embedding endpoint answered without a usable vector"""


class InternalError(ShopBotError):
    """Unexpected failure inside the pipeline"""
