"""
TMDB poster lookup for cover artwork

This module resolves a poster image URL from The Movie Database (TMDB) v3 API,
either directly by TMDB id or by searching for a title. The result is a URL on
TMDB's image CDN at a fixed rendition size (w500), which the tag embedder then
downloads.

Lookup strategies:
1. By id:    GET /3/{movie|tv}/{id}?api_key=...            -> poster_path
2. By title: GET /3/search/{movie|tv}?api_key=...&query=... -> results[0].poster_path

Error contract:
Every failure is raised as ResolutionError; a missing API key is reported as
NotConfiguredError before any request is made. The pipeline treats all of
them as "no artwork available", so callers never need to handle network
exceptions from this module directly.
"""

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from ..config.settings import CatalogConfig, NetworkConfig
from ..models import ByCatalogId, ByTitle, EnrichmentQuery, MediaType, NoEnrichment
from ..utils.exceptions import NotConfiguredError, ResolutionError
from ..utils.logger import get_logger


class TMDBArtworkResolver:
    """
    Resolve TMDB poster URLs for movies and TV shows

    The resolver keeps no per-request state and can be shared by concurrent
    jobs. An aiohttp session may be injected so that lookups reuse the web
    application's connection pool; otherwise each lookup opens its own session.
    """

    NOT_CONFIGURED_MESSAGE = "TMDB API key not configured. Set TMDB_API_KEY environment variable."

    def __init__(
        self,
        config: Optional[CatalogConfig] = None,
        network: Optional[NetworkConfig] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.config = config or CatalogConfig()
        self.network = network or NetworkConfig()
        self.session = session
        self.logger = get_logger(__name__)

    @property
    def is_configured(self) -> bool:
        """True when an API key is available"""
        return bool(self.config.tmdb_api_key)

    def poster_url(self, poster_path: str) -> str:
        """Build the CDN URL for a poster_path at the configured rendition size"""
        return f"{self.config.image_base_url.rstrip('/')}/{self.config.poster_size}{poster_path}"

    async def resolve(self, query: EnrichmentQuery) -> Optional[str]:
        """
        Dispatch a lookup variant to the matching strategy

        Args:
            query: ByCatalogId, ByTitle or NoEnrichment

        Returns:
            Poster URL, or None for NoEnrichment

        Raises:
            ResolutionError: If the lookup fails
        """
        if isinstance(query, ByCatalogId):
            return await self.resolve_by_id(query.catalog_id, query.media_type)
        if isinstance(query, ByTitle):
            return await self.resolve_by_title(query.title, query.media_type)
        if isinstance(query, NoEnrichment):
            return None
        raise TypeError(f"Unknown enrichment query: {query!r}")

    async def resolve_by_id(self, catalog_id: str, media_type: MediaType = MediaType.MOVIE) -> str:
        """
        Look up a poster directly by TMDB id

        Args:
            catalog_id: TMDB movie or TV id
            media_type: Which TMDB collection the id belongs to

        Returns:
            Poster URL on the TMDB image CDN

        Raises:
            NotConfiguredError: If no API key is configured
            ResolutionError: On HTTP errors, transport errors or a record without poster
        """
        self._require_api_key()
        kind = media_type.value

        self.logger.info(f"Fetching TMDB {kind} by ID: {catalog_id}")
        data = await self._get_json(f"/{kind}/{catalog_id}", {})

        poster_path = data.get('poster_path')
        if not poster_path:
            raise ResolutionError(
                f'TMDB {kind} ID "{catalog_id}" has no poster.',
                details={'catalog_id': catalog_id, 'media_type': kind}
            )
        return self.poster_url(poster_path)

    async def resolve_by_title(self, title: str, media_type: MediaType = MediaType.MOVIE) -> str:
        """
        Look up a poster by searching for a title and taking the first result

        Args:
            title: Free-text title
            media_type: Which TMDB collection to search

        Returns:
            Poster URL on the TMDB image CDN

        Raises:
            NotConfiguredError: If no API key is configured
            ResolutionError: On HTTP errors, transport errors, no results or no poster
        """
        self._require_api_key()
        kind = media_type.value

        self.logger.info(f"Searching TMDB {kind} for: {title}")
        data = await self._get_json(f"/search/{kind}", {'query': title})

        results = data.get('results') or []
        poster_path = results[0].get('poster_path') if results else None
        if not poster_path:
            raise ResolutionError(
                f'TMDB {kind} "{title}" not found or has no poster.',
                details={'title': title, 'media_type': kind, 'result_count': len(results)}
            )
        return self.poster_url(poster_path)

    def _require_api_key(self) -> None:
        if not self.is_configured:
            raise NotConfiguredError(self.NOT_CONFIGURED_MESSAGE)

    async def _get_json(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        """GET an API path with the api_key parameter and decode the JSON body"""
        url = f"{self.config.api_base_url.rstrip('/')}{path}"
        query = {'api_key': self.config.tmdb_api_key, **params}
        timeout = aiohttp.ClientTimeout(total=self.network.request_timeout)
        headers = {'User-Agent': self.network.user_agent, 'Accept': 'application/json'}

        try:
            if self.session is not None:
                return await self._request(self.session, url, query, timeout, headers)
            async with aiohttp.ClientSession() as session:
                return await self._request(session, url, query, timeout, headers)
        except ResolutionError:
            raise
        except asyncio.TimeoutError:
            raise ResolutionError(f"TMDB request timed out after {self.network.request_timeout}s", details={'path': path})
        except (aiohttp.ClientError, ValueError) as e:
            raise ResolutionError(f"TMDB request failed: {e}", details={'path': path, 'original_error': e})

    async def _request(
        self,
        session: aiohttp.ClientSession,
        url: str,
        query: Dict[str, str],
        timeout: aiohttp.ClientTimeout,
        headers: Dict[str, str]
    ) -> Dict[str, Any]:
        async with session.get(url, params=query, timeout=timeout, headers=headers) as response:
            if response.status >= 400:
                raise ResolutionError(
                    f"TMDB API error: {response.status} - {response.reason}",
                    status_code=response.status
                )
            data = await response.json(content_type=None)

        if not isinstance(data, dict):
            raise ResolutionError("TMDB returned an unexpected response body")
        return data
