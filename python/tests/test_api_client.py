"""Tests for the remote tree and vulnerability clients."""

import pytest
import requests
from unittest.mock import Mock, patch
from depsight.api_client import DependencyTreeClient, VulnerabilityClient
from depsight.config import Settings
from depsight.errors import ResolutionError, VulnerabilityCheckError

TREE_URL = "https://tools.example/api/dependency-tree"
VULN_URL = "https://tools.example/api/vulnerability-check"


def _mock_session(mock_session_class, status=200, body=None):
    mock_session = Mock()
    mock_response = Mock()
    mock_response.status_code = status
    mock_response.json.return_value = body
    mock_session.post.return_value = mock_response
    mock_session_class.return_value = mock_session
    return mock_session


class TestDependencyTreeClient:

    @patch('depsight.api_client.requests.Session')
    def test_posts_packages_and_returns_trees(self, mock_session_class):
        tree = {"name": "react", "version": "18.2.0", "dependencies": [], "depth": 0}
        mock_session = _mock_session(mock_session_class, body={"dependencyTrees": [tree]})

        client = DependencyTreeClient(Settings(tree_url=TREE_URL, request_timeout=12))
        packages = [{"name": "react", "version": "^18.2.0", "isDev": False, "isPeer": False}]
        result = client.fetch_trees(packages)

        assert result == [tree]
        mock_session.post.assert_called_once()
        args, kwargs = mock_session.post.call_args
        assert args[0] == TREE_URL
        assert kwargs["json"] == {"packages": packages}
        assert kwargs["timeout"] == 12

    @patch('depsight.api_client.requests.Session')
    def test_http_error_raises(self, mock_session_class):
        _mock_session(mock_session_class, status=500, body={"error": "Failed to build dependency tree"})
        client = DependencyTreeClient(Settings(tree_url=TREE_URL))

        with pytest.raises(ResolutionError, match="HTTP 500"):
            client.fetch_trees([{"name": "react"}])

    @patch('depsight.api_client.requests.Session')
    def test_transport_error_raises(self, mock_session_class):
        mock_session = _mock_session(mock_session_class)
        mock_session.post.side_effect = requests.ConnectionError("refused")
        client = DependencyTreeClient(Settings(tree_url=TREE_URL))

        with pytest.raises(ResolutionError, match="Could not reach"):
            client.fetch_trees([{"name": "react"}])

    @patch('depsight.api_client.requests.Session')
    def test_missing_trees_key_raises(self, mock_session_class):
        _mock_session(mock_session_class, body={"trees": []})
        client = DependencyTreeClient(Settings(tree_url=TREE_URL))

        with pytest.raises(ResolutionError, match="dependencyTrees"):
            client.fetch_trees([{"name": "react"}])

    @patch('depsight.api_client.requests.Session')
    def test_non_json_body_raises(self, mock_session_class):
        mock_session = _mock_session(mock_session_class)
        mock_session.post.return_value.json.side_effect = ValueError("not json")
        client = DependencyTreeClient(Settings(tree_url=TREE_URL))

        with pytest.raises(ResolutionError, match="non-JSON"):
            client.fetch_trees([{"name": "react"}])

    def test_unconfigured_endpoint_raises(self):
        client = DependencyTreeClient(Settings(), session=Mock())
        with pytest.raises(ResolutionError):
            client.fetch_trees([{"name": "react"}])

    def test_context_manager_closes_session(self):
        session = Mock()
        with DependencyTreeClient(Settings(tree_url=TREE_URL), session=session):
            pass
        session.close.assert_called_once()


class TestVulnerabilityClient:

    @patch('depsight.api_client.requests.Session')
    def test_returns_vulnerability_entries(self, mock_session_class):
        entries = [{"package": "lodash", "vulnerabilities": [{"severity": "high", "title": "Prototype pollution"}]}]
        mock_session = _mock_session(mock_session_class, body={"vulnerabilities": entries})

        client = VulnerabilityClient(Settings(vulnerability_url=VULN_URL))
        result = client.check([{"name": "lodash", "version": "4.17.20"}])

        assert result == entries
        assert mock_session.post.call_args[1]["json"] == {"packages": [{"name": "lodash", "version": "4.17.20"}]}

    @patch('depsight.api_client.requests.Session')
    def test_failure_raises_vulnerability_error(self, mock_session_class):
        _mock_session(mock_session_class, status=503)
        client = VulnerabilityClient(Settings(vulnerability_url=VULN_URL))

        with pytest.raises(VulnerabilityCheckError):
            client.check([{"name": "lodash", "version": "1.0.0"}])

    def test_unconfigured_endpoint_raises(self):
        client = VulnerabilityClient(Settings(), session=Mock())
        with pytest.raises(VulnerabilityCheckError, match="No endpoint configured"):
            client.check([])
