"""
Pytest configuration file.

Sets up the Python path so test files can import from the python/ directory,
and provides an in-memory stand-in for the Depot API.
"""
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add python directory to path for all tests
_python_dir = Path(__file__).parent.parent / 'python'
_python_dir_abs = str(_python_dir.absolute())
if _python_dir_abs not in sys.path:
    sys.path.insert(0, _python_dir_abs)

os.environ.setdefault("SKIP_CONFIG_VALIDATION", "true")


@pytest.fixture(autouse=True)
def clean_depot_env(monkeypatch):
    """Keep the developer's environment from leaking into configuration"""
    for name in ("DEPOT_TOKEN", "DEPOT_API_URL", "DEPOT_PAGE_SIZE", "DAYS_OLD", "EXCLUDED_TAGS", "CONFIG_FILE", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


class FakeDepotClient:
    """In-memory Depot API: pages images per project and records deletions"""

    def __init__(
        self,
        images: Optional[Dict[str, List[dict]]] = None,
        projects: Optional[List[dict]] = None,
        failing_projects: Optional[set] = None,
        failing_deletes: Optional[set] = None,
    ):
        self.images = images or {}
        self.projects = projects or []
        self.failing_projects = failing_projects or set()
        self.failing_deletes = failing_deletes or set()
        self.list_calls: List[dict] = []
        self.delete_calls: List[tuple] = []

    def list_projects(self, page_size=None, page_token=None):
        return {"projects": list(self.projects)}

    def list_images(self, project_id, page_size=None, page_token=None):
        self.list_calls.append({"project_id": project_id, "page_size": page_size, "page_token": page_token})
        if project_id in self.failing_projects:
            raise ConnectionError(f"connection reset while listing {project_id}")
        items = self.images.get(project_id, [])
        start = int(page_token or 0)
        end = start + page_size
        response = {"images": items[start:end]}
        if end < len(items):
            response["nextPageToken"] = str(end)
        return response

    def delete_image(self, project_id, image_tags):
        self.delete_calls.append((project_id, list(image_tags)))
        if any(tag in self.failing_deletes for tag in image_tags):
            raise RuntimeError(f"DeleteImage failed for {project_id}")


@pytest.fixture
def fake_client_factory():
    return FakeDepotClient
