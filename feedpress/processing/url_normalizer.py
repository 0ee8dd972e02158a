"""
URL Normalizer
==============

Resolves and cleans URLs found in feed markup:
- rejects script-capable schemes (javascript:, data:, vbscript:)
- resolves relative and protocol-relative references against base URLs
- lower-cases the host and gives empty paths a ``/``
- strips ``utm_*`` and known tracker query parameters
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Sequence
from urllib.parse import SplitResult, parse_qsl, quote, urlencode, urljoin, urlsplit, urlunsplit

from ..config.settings import DEFAULT_TRACKER_PARAMS

HTTP_SCHEMES: FrozenSet[str] = frozenset({"http", "https"})
LINK_SCHEMES: FrozenSet[str] = frozenset({"http", "https", "mailto"})
EMBED_SCHEMES: FrozenSet[str] = frozenset({"https"})

UNSAFE_PREFIXES = ("javascript:", "data:", "vbscript:")
TRACKER_PREFIX = "utm_"
DEFAULT_PORTS = {"http": 80, "https": 443}

# Characters left alone when re-quoting a path
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"


@dataclass(frozen=True)
class NormalizedUrl:
    """A URL that passed normalization."""

    value: str
    scheme: str
    host: Optional[str] = None
    path: str = ""
    removed_params: int = 0

    @property
    def is_http(self) -> bool:
        return self.scheme in HTTP_SCHEMES


def is_http_url(value: Optional[str]) -> bool:
    """True for absolute http/https URLs with a host."""
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return parts.scheme.lower() in HTTP_SCHEMES and bool(parts.hostname)


class UrlNormalizer:
    """Normalize URLs relative to an ordered list of base URLs.

    Args:
        base_urls: Absolute URLs tried in order for relative references
        tracker_params: Query parameter names removed in addition to ``utm_*``
    """

    def __init__(
        self,
        base_urls: Sequence[str] = (),
        tracker_params: Optional[Iterable[str]] = None,
    ):
        self.base_urls = [url for url in base_urls if is_http_url(url)]
        names = {name.strip().lower() for name in (tracker_params or ()) if name and name.strip()}
        self.tracker_params = frozenset(names or DEFAULT_TRACKER_PARAMS)

    def is_tracker_param(self, name: str) -> bool:
        lowered = name.lower()
        return lowered.startswith(TRACKER_PREFIX) or lowered in self.tracker_params

    def normalize(
        self, raw_value: Optional[str], allowed_schemes: FrozenSet[str] = HTTP_SCHEMES
    ) -> Optional[NormalizedUrl]:
        """Normalize ``raw_value`` or return None when it is unusable."""
        if not isinstance(raw_value, str):
            return None
        trimmed = raw_value.strip()
        if not trimmed:
            return None

        lowered = trimmed.lower()
        if lowered.startswith(UNSAFE_PREFIXES):
            return None

        if lowered.startswith("mailto:"):
            if "mailto" not in allowed_schemes:
                return None
            return NormalizedUrl(value=trimmed, scheme="mailto")

        candidates = [trimmed]
        if trimmed.startswith("//"):
            candidates = [f"https:{trimmed}", trimmed, f"http:{trimmed}"]

        parts = None
        for candidate in candidates:
            parts = self._resolve(candidate)
            if parts is not None:
                break
        if parts is None:
            return None

        scheme = parts.scheme.lower()
        if scheme not in allowed_schemes:
            return None
        if scheme not in HTTP_SCHEMES:
            return NormalizedUrl(value=trimmed, scheme=scheme)

        return self._clean_http(parts, scheme)

    def _resolve(self, value: str) -> Optional[SplitResult]:
        for base in [None, *self.base_urls]:
            try:
                if base is None:
                    parts = urlsplit(value)
                    if not parts.scheme:
                        continue
                else:
                    parts = urlsplit(urljoin(base, value))
            except ValueError:
                continue
            return parts
        return None

    def _clean_http(self, parts: SplitResult, scheme: str) -> Optional[NormalizedUrl]:
        try:
            host = parts.hostname
            port = parts.port
        except ValueError:
            return None
        if not host:
            return None

        netloc = host
        if ":" in host:
            netloc = f"[{host}]"
        if port is not None and port != DEFAULT_PORTS[scheme]:
            netloc = f"{netloc}:{port}"
        if "@" in parts.netloc:
            userinfo = parts.netloc.rsplit("@", 1)[0]
            netloc = f"{userinfo}@{netloc}"

        path = quote(parts.path, safe=_PATH_SAFE) or "/"

        query = parts.query
        removed = 0
        if query:
            pairs = parse_qsl(query, keep_blank_values=True)
            kept = [(name, value) for name, value in pairs if not self.is_tracker_param(name)]
            removed = len(pairs) - len(kept)
            if removed:
                query = urlencode(kept)

        value = urlunsplit((scheme, netloc, path, query, parts.fragment))
        return NormalizedUrl(
            value=value,
            scheme=scheme,
            host=host,
            path=path,
            removed_params=removed,
        )
