"""
Freesound API client.

Synchronous wrapper around the two endpoints the kit builder needs:
- GET /search                  (text search with a duration filter)
- GET /sounds/<id>/download    (original file, OAuth2 bearer token required)

No retries: a failed call is reported and the builder moves on.
"""

import logging
from pathlib import Path
from typing import List, Optional

import requests
from pydantic import ValidationError

from ..errors import FreesoundError
from ..schemas import SearchResponse, Sound

logger = logging.getLogger(__name__)

FREESOUND_BASE_URL = "https://freesound.org/apiv2"
SEARCH_FIELDS = "id,name,duration,tags,username,license"
PAGE_SIZE = 150


class FreesoundClient:
    """
    HTTP client for the Freesound v2 API.

    ARGS:
        access_token: OAuth2 access token from the authorization-code flow
        base_url: API root (default: https://freesound.org/apiv2)
        timeout: Default request timeout in seconds
        session: requests.Session to reuse (a new one by default)
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = FREESOUND_BASE_URL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers["Authorization"] = f"Bearer {access_token}"

    def search(self, query: str, max_duration: float) -> List[Sound]:
        """
        Search sounds no longer than max_duration seconds.

        Raises:
            FreesoundError: On transport errors, non-2xx status or bad JSON
        """
        params = {
            "query": query,
            "page_size": str(PAGE_SIZE),
            "fields": SEARCH_FIELDS,
            "filter": f"duration:[0 TO {max_duration:f}]",
        }
        url = f"{self.base_url}/search"
        logger.info(f"[FREESOUND] Searching: {query!r} (max duration {max_duration:.1f}s)")

        try:
            r = self._session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise FreesoundError(f"search request failed: {e}") from e

        if not r.ok:
            raise FreesoundError(f"search failed: HTTP {r.status_code}", status=r.status_code)

        try:
            return list(SearchResponse.model_validate(r.json()).results)
        except (ValueError, ValidationError) as e:
            raise FreesoundError(f"there was an error parsing the response body: {e}") from e

    def download(self, sound_id: int, target: Path, timeout: Optional[float] = None) -> int:
        """
        Stream a sound's original file to target.

        Returns:
            Bytes written

        Raises:
            FreesoundError: On transport errors or a non-200 status
        """
        url = f"{self.base_url}/sounds/{sound_id}/download"
        try:
            with self._session.get(url, stream=True, timeout=timeout or self.timeout) as r:
                if r.status_code != 200:
                    raise FreesoundError(f"bad status: {r.status_code} {r.reason}", status=r.status_code)
                written = 0
                with open(target, "wb") as out:
                    for chunk in r.iter_content(chunk_size=64 * 1024):
                        if chunk:
                            out.write(chunk)
                            written += len(chunk)
        except requests.exceptions.RequestException as e:
            raise FreesoundError(f"download of sound {sound_id} failed: {e}") from e
        except OSError as e:
            raise FreesoundError(f"could not write {target}: {e}") from e

        logger.info(f"[FREESOUND] Downloaded: {target.stem} (to {target})")
        return written

    def close(self) -> None:
        self._session.close()
