"""
Unit tests for manifest maintenance helpers.
"""

import hashlib
import io
import zipfile

import requests
import responses

from portenv.config.manifest import Manifest, ToolSpec
from portenv.config.manifest_tools import check_urls, refresh_tool

NEW_URL = "https://example.com/dist/node-v23.0.0-win-x64.zip"


def _zip_bytes(entries):
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


class TestRefreshTool:
    """Test refresh_tool."""

    @responses.activate
    def test_updates_version_url_and_hash(self, node_tool, tmp_path):
        body = _zip_bytes({"node-v23.0.0-win-x64/node.exe": b"node"})
        responses.add(responses.GET, NEW_URL, body=body, status=200)

        result = refresh_tool(node_tool, "23.0.0", NEW_URL, work_dir=tmp_path)

        assert result.tool.version == "23.0.0"
        assert result.tool.source_url == NEW_URL
        assert result.tool.content_hash == hashlib.sha256(body).hexdigest()
        assert result.marker_found is True
        assert result.size_bytes == len(body)
        assert list(tmp_path.iterdir()) == []

    @responses.activate
    def test_marker_missing(self, node_tool, tmp_path, caplog):
        body = _zip_bytes({"README.md": b"nothing here"})
        responses.add(responses.GET, NEW_URL, body=body, status=200)

        result = refresh_tool(node_tool, "23.0.0", NEW_URL, work_dir=tmp_path)

        assert result.marker_found is False
        assert "node.exe was not found" in caplog.text

    @responses.activate
    def test_installer_not_inspected(self, tmp_path):
        """Test installers are hashed but not opened as archives."""
        git = ToolSpec.create("git", "2.47.0", "https://example.com/old.7z.exe", "git-bash.exe")
        url = "https://example.com/PortableGit-2.47.1-64-bit.7z.exe"
        responses.add(responses.GET, url, body=b"MZ self extractor", status=200)

        result = refresh_tool(git, "2.47.1", url, work_dir=tmp_path)

        assert result.marker_found is None
        assert result.tool.content_hash == hashlib.sha256(b"MZ self extractor").hexdigest()


class TestCheckUrls:
    """Test check_urls."""

    @responses.activate
    def test_reports_each_tool(self, sample_manifest):
        responses.add(responses.HEAD, "https://example.com/dist/node-v22.12.0-win-x64.zip", status=200)
        responses.add(
            responses.HEAD,
            "https://example.com/dist/winlibs-x86_64.zip",
            body=requests.ConnectionError("unreachable"),
        )

        checks = check_urls(sample_manifest)

        assert [check.name for check in checks] == ["node", "mingw64"]
        assert checks[0].ok is True
        assert checks[0].status == 200
        assert checks[1].ok is False
        assert "unreachable" in checks[1].error

    @responses.activate
    def test_not_found_status(self, node_tool):
        responses.add(responses.HEAD, node_tool.source_url, status=404)

        checks = check_urls(Manifest(tools=(node_tool,)))

        assert checks[0].status == 404
        assert checks[0].ok is False
