"""Exception hierarchy for media extras."""


class ExtrasError(Exception):
    """Base exception for all media extras errors."""


class ConfigError(ExtrasError):
    """Invalid or missing configuration."""


class StoreError(ExtrasError):
    """Extra file store read/write error."""


class ParseError(ExtrasError):
    """A filename could not be matched to an episode."""


class DownloadError(ExtrasError):
    """A remote image could not be fetched."""

    def __init__(self, url: str, status_code: int | None, reason: str) -> None:
        if status_code is None:
            super().__init__(f"Download of {url} failed: {reason}")
        else:
            super().__init__(f"Download of {url} failed with HTTP {status_code}: {reason}")
        self.url = url
        self.status_code = status_code
        self.reason = reason
