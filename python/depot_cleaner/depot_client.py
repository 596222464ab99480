"""
Client for the Depot API.

Depot exposes its services over the Connect protocol: every RPC is a JSON
``POST`` to ``{api_url}/{package.Service}/{Method}``. Failed calls answer with
a non-2xx status and a JSON body ``{"code": "...", "message": "..."}``.
"""

from typing import Any, Dict, List, Optional

import requests

from depot_cleaner.config_manager import ConfigManager, config_manager as default_config_manager
from depot_cleaner.error_utils import create_depot_auth_error
from depot_cleaner.logging_utils import get_logger
from depot_cleaner.retry_utils import retry_with_backoff

PROJECT_SERVICE = "depot.core.v1.ProjectService"
REGISTRY_SERVICE = "depot.build.v1.RegistryService"


class DepotAPIError(Exception):
    """Raised when a Depot API call fails"""

    def __init__(self, method: str, status_code: Optional[int], code: Optional[str], message: str):
        self.method = method
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{method} failed ({status_code} {code or 'unknown'}): {message}")


def _error_from_response(method: str, response: requests.Response) -> DepotAPIError:
    code = None
    message = response.text or response.reason or ""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        message = body.get("message") or message
    return DepotAPIError(method, response.status_code, code, message)


class DepotClient:
    """Thin Depot API client used by the cleaner.

    Transient failures (network errors, 5xx, 429, Connect ``unavailable``) are
    retried with exponential backoff; everything else is raised as-is.
    """

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or default_config_manager
        self.api_url = (api_url or self.config.get_api_url()).rstrip("/")
        self.timeout = self.config.get_timeout()
        self.logger = get_logger(__name__)

        token = token or self.config.get_token()
        if not token:
            raise create_depot_auth_error(self.api_url)

        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
                "Connect-Protocol-Version": "1",
            }
        )
        self._call = retry_with_backoff(**self.config.get_retry_settings())(self._post)

    def __enter__(self) -> "DepotClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def _post(self, service: str, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_url}/{service}/{method}"
        self.logger.debug(f"POST {url}")
        response = self.session.post(url, json=payload, timeout=self.timeout)
        if not response.ok:
            raise _error_from_response(method, response)
        if not response.content:
            return {}
        return response.json()

    def list_projects(self, page_size: Optional[int] = None, page_token: Optional[str] = None) -> Dict[str, Any]:
        """List projects visible to the token.

        Returns:
            Decoded response: {"projects": [...], "nextPageToken": "..."}
        """
        payload: Dict[str, Any] = {}
        if page_size:
            payload["pageSize"] = page_size
        if page_token:
            payload["pageToken"] = page_token
        return self._call(PROJECT_SERVICE, "ListProjects", payload)

    def list_images(
        self, project_id: str, page_size: Optional[int] = None, page_token: Optional[str] = None
    ) -> Dict[str, Any]:
        """List one page of a project's registry images.

        Returns:
            Decoded response: {"images": [...], "nextPageToken": "..."}
        """
        payload: Dict[str, Any] = {"projectId": project_id}
        if page_size:
            payload["pageSize"] = page_size
        if page_token:
            payload["pageToken"] = page_token
        return self._call(REGISTRY_SERVICE, "ListImages", payload)

    def delete_image(self, project_id: str, image_tags: List[str]) -> None:
        """Delete images by tag.

        ``image_tags`` may mix tag names and digest-derived tags ("sha256-abc...").
        Raises DepotAPIError (or a requests exception) on failure.
        """
        self._call(REGISTRY_SERVICE, "DeleteImage", {"projectId": project_id, "imageTags": list(image_tags)})
