"""Tests for depot_cleaner/depot_client.py"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from depot_cleaner.config_manager import ConfigManager
from depot_cleaner.depot_client import DepotAPIError, DepotClient
from depot_cleaner.error_utils import ActionableError, ErrorCategory


def _response(status_code=200, json_body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = "Error" if status_code >= 400 else "OK"
    response.text = text
    response.content = b"{}" if json_body is not None else b""
    if json_body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = json_body
    return response


@pytest.fixture
def config():
    cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
    cm.config["retry"]["max_retries"] = 0
    return cm


@pytest.fixture
def session():
    s = MagicMock(spec=requests.Session)
    s.headers = {}
    return s


class TestDepotClientInit:
    def test_requires_token(self, config):
        with pytest.raises(ActionableError) as exc_info:
            DepotClient(config)

        assert exc_info.value.category == ErrorCategory.AUTHENTICATION

    def test_sets_bearer_header(self, config, session):
        DepotClient(config, token="secret", session=session)

        assert session.headers["Authorization"] == "Bearer secret"
        assert session.headers["Content-Type"] == "application/json"

    def test_token_from_environment(self, config, session, monkeypatch):
        monkeypatch.setenv("DEPOT_TOKEN", "env-token")

        DepotClient(config, session=session)

        assert session.headers["Authorization"] == "Bearer env-token"


class TestDepotClientCalls:
    @pytest.fixture
    def client(self, config, session):
        return DepotClient(config, token="secret", session=session)

    def test_list_images_request(self, client, session):
        session.post.return_value = _response(json_body={"images": [{"tag": "p1:v1"}], "nextPageToken": "n"})

        result = client.list_images("p1", page_size=100, page_token="abc")

        assert result == {"images": [{"tag": "p1:v1"}], "nextPageToken": "n"}
        session.post.assert_called_once_with(
            "https://api.depot.dev/depot.build.v1.RegistryService/ListImages",
            json={"projectId": "p1", "pageSize": 100, "pageToken": "abc"},
            timeout=30,
        )

    def test_list_images_first_page_has_no_token(self, client, session):
        session.post.return_value = _response(json_body={"images": []})

        client.list_images("p1", page_size=50)

        assert session.post.call_args.kwargs["json"] == {"projectId": "p1", "pageSize": 50}

    def test_list_projects_request(self, client, session):
        session.post.return_value = _response(json_body={"projects": [{"projectId": "p1"}]})

        assert client.list_projects() == {"projects": [{"projectId": "p1"}]}
        assert session.post.call_args.args[0].endswith("/depot.core.v1.ProjectService/ListProjects")
        assert session.post.call_args.kwargs["json"] == {}

    def test_delete_image_request(self, client, session):
        session.post.return_value = _response(json_body={})

        client.delete_image("p1", ["v1", "sha256-abc"])

        session.post.assert_called_once_with(
            "https://api.depot.dev/depot.build.v1.RegistryService/DeleteImage",
            json={"projectId": "p1", "imageTags": ["v1", "sha256-abc"]},
            timeout=30,
        )

    def test_connect_error_body_is_decoded(self, client, session):
        session.post.return_value = _response(
            status_code=404, json_body={"code": "not_found", "message": "project not found"}
        )

        with pytest.raises(DepotAPIError) as exc_info:
            client.list_images("missing")

        error = exc_info.value
        assert error.status_code == 404
        assert error.code == "not_found"
        assert error.message == "project not found"

    def test_non_json_error_body(self, client, session):
        session.post.return_value = _response(status_code=502, text="Bad Gateway")

        with pytest.raises(DepotAPIError) as exc_info:
            client.delete_image("p1", ["v1"])

        assert exc_info.value.code is None
        assert exc_info.value.message == "Bad Gateway"

    @patch("depot_cleaner.retry_utils.time.sleep")
    def test_transient_errors_are_retried(self, mock_sleep, config, session):
        config.config["retry"]["max_retries"] = 2
        session.post.side_effect = [
            _response(status_code=503, json_body={"code": "unavailable", "message": "busy"}),
            _response(json_body={"images": []}),
        ]
        client = DepotClient(config, token="secret", session=session)

        assert client.list_images("p1") == {"images": []}
        assert session.post.call_count == 2

    def test_context_manager_closes_session(self, config, session):
        with DepotClient(config, token="secret", session=session):
            pass

        session.close.assert_called_once()
