"""
Error taxonomy for sevensons.

Only ValidationError is meant to reach a caller as a failed request.
Everything else is contained per role or per store call.
"""

from typing import Optional


class SevenSonsError(Exception):
    pass


class ConfigurationError(SevenSonsError):
    """Missing or unusable credential / provider configuration."""


class ProviderError(SevenSonsError):
    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class CompletionTimeout(SevenSonsError):
    def __init__(self, timeout_ms: int):
        super().__init__(f"角色生成超时 ({timeout_ms}ms)")
        self.timeout_ms = timeout_ms


class StorageError(SevenSonsError):
    pass


class ValidationError(SevenSonsError):
    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code
