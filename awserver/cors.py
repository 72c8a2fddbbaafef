"""Cross-origin resource sharing policy of the server."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from awserver.config import AWConfig

# Every version of a Mozilla extension has its own ID to avoid fingerprinting,
# so all extensions have to be allowed.
_BASE_REGEX_ORIGINS = (
    "chrome-extension://nglaklhklhcoonedhgnpgddginnjdadi",
    "moz-extension://.*",
)
_TESTING_EXACT_ORIGINS = ("http://127.0.0.1:27180", "http://localhost:27180")
_TESTING_REGEX_ORIGINS = ("chrome-extension://.*",)


@dataclass
class CorsPolicy:
    """Allowed origins and methods; every request header is allowed."""

    exact_origins: list[str]
    regex_origins: list[str]
    allowed_methods: frozenset[str] = frozenset({"GET", "POST", "DELETE"})
    allow_credentials: bool = False
    _patterns: list[re.Pattern[str]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        try:
            self._patterns = [re.compile(p) for p in self.regex_origins]
        except re.error as exc:
            raise ValueError(f"Failed to set up CORS: {exc}") from exc

    def allows(self, origin: str | None) -> bool:
        """Return whether cross-origin requests from ``origin`` are allowed."""
        if origin is None:
            return False
        if origin in self.exact_origins:
            return True
        return any(p.search(origin) for p in self._patterns)


def cors_policy(config: AWConfig) -> CorsPolicy:
    """Build the CORS policy for a server configuration."""
    exact = [f"http://127.0.0.1:{config.port}", f"http://localhost:{config.port}"]
    exact.extend(config.cors)
    if config.testing:
        exact.extend(_TESTING_EXACT_ORIGINS)

    regex = list(_BASE_REGEX_ORIGINS)
    regex.extend(config.cors_regex)
    if config.testing:
        regex.extend(_TESTING_REGEX_ORIGINS)

    return CorsPolicy(exact_origins=exact, regex_origins=regex)