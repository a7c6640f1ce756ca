"""
Tests for CLI command implementations.

Each test runs the real CLI against a manifest written to tmp_path, with
HOME and the XDG directories pointed at tmp_path so the file-based search
path store and the install base stay inside the test directory.
"""

import json
import os
import subprocess
from unittest.mock import patch

import pytest
import responses

from portenv.cli import prompts
from portenv.cli.parser import CLI

pytestmark = pytest.mark.skipif(os.name == "nt", reason="uses the file-based PATH store")

NODE_URL = "https://example.com/dist/node-v22.12.0-win-x64.zip"
PWSH_URL = "https://example.com/dist/PowerShell-7.4.6-win-x64.zip"


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Isolated home, data and config directories; cwd without settings."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.delenv("CARGO_HOME", raising=False)
    monkeypatch.delenv("XDG_DESKTOP_DIR", raising=False)
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return tmp_path


@pytest.fixture
def manifest_file(home):
    path = home / "tools.json"
    path.write_text(
        json.dumps(
            {
                "tools": [
                    {"name": "node", "version": "22.12.0", "url": NODE_URL, "check_file": "node.exe"},
                    {"name": "pwsh", "version": "7.4.6", "url": PWSH_URL, "check_file": "pwsh.exe"},
                ]
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def portenv(home, manifest_file):
    """Run the CLI with the test manifest and cache."""

    def run(*args):
        return CLI().run(
            ["--manifest", str(manifest_file), "--cache-dir", str(home / "cache"), *args]
        )

    return run


@pytest.fixture
def target(home):
    return home / "data" / "portenv"


@pytest.fixture
def path_file(home):
    return home / "config" / "portenv" / "path"


@pytest.fixture
def serve_node(node_zip):
    responses.add(responses.GET, NODE_URL, body=node_zip.read_bytes(), status=200)


class TestSetupCommand:
    """Test 'portenv setup'."""

    @responses.activate
    def test_installs_named_tool(self, portenv, serve_node, target, path_file, capsys):
        assert portenv("setup", "node") == 0

        assert (target / "node" / "node.exe").exists()
        assert str(target / "node") in path_file.read_text(encoding="utf-8")
        out = capsys.readouterr().out
        assert "✓ node: installed" in out
        assert "Open a new terminal" in out

    @responses.activate
    def test_failed_tool_reported(self, portenv, serve_node, target, capsys):
        responses.add(responses.GET, PWSH_URL, status=404)

        assert portenv("setup", "--all") == 0

        captured = capsys.readouterr()
        assert "✓ node: installed" in captured.out
        assert "✗ pwsh: failed while resolving" in captured.out
        assert "1 tool(s) failed" in captured.err
        assert not (target / "pwsh").exists()

    def test_unknown_tool(self, portenv, capsys):
        assert portenv("setup", "python") == 1
        assert "Unknown tool(s): python" in capsys.readouterr().err

    def test_interactive_cancel(self, portenv, target, capsys):
        with patch.object(prompts, "select_tools", return_value=prompts.CANCELLED):
            assert portenv("setup") == 0

        assert "Setup cancelled." in capsys.readouterr().out
        assert not target.exists() or list(target.iterdir()) == []

    @responses.activate
    def test_interactive_selection(self, portenv, serve_node, target):
        with patch.object(prompts, "select_tools", return_value=["node"]):
            assert portenv("setup") == 0

        assert (target / "node" / "node.exe").exists()

    def test_from_folder(self, portenv, home, target, capsys):
        source = home / "usb" / "pwsh-7"
        source.mkdir(parents=True)
        (source / "pwsh.exe").write_bytes(b"pwsh")

        assert portenv("setup", "--from-folder", str(home / "usb")) == 0

        assert (target / "pwsh" / "pwsh.exe").exists()
        out = capsys.readouterr().out
        assert "✓ pwsh: installed" in out
        assert "✗ node: failed" in out

    def test_from_missing_folder(self, portenv, home, capsys):
        assert portenv("setup", "--from-folder", str(home / "nowhere")) == 1
        assert "Not a directory" in capsys.readouterr().err


class TestStatusAndList:
    """Test 'portenv status' and 'portenv list'."""

    @responses.activate
    def test_status(self, portenv, serve_node, capsys):
        portenv("setup", "node")
        capsys.readouterr()

        assert portenv("status") == 0

        lines = capsys.readouterr().out.splitlines()
        node_line = next(line for line in lines if line.strip().startswith("node"))
        pwsh_line = next(line for line in lines if line.strip().startswith("pwsh"))
        assert "installed" in node_line and "on PATH" in node_line
        assert "missing" in pwsh_line and "not on PATH" in pwsh_line

    def test_list(self, portenv, manifest_file, capsys):
        assert portenv("list") == 0

        out = capsys.readouterr().out
        assert f"Manifest: {manifest_file}" in out
        assert NODE_URL in out
        assert "unverified" in out


class TestCleanCommand:
    """Test 'portenv clean'."""

    @responses.activate
    def test_clean_yes(self, portenv, serve_node, target, path_file, home):
        portenv("setup", "node")

        assert portenv("clean", "--yes") == 0

        assert not (target / "node").exists()
        assert not (home / "cache").exists()
        assert str(target / "node") not in path_file.read_text(encoding="utf-8")

    @responses.activate
    def test_clean_keep_cache(self, portenv, serve_node, home):
        portenv("setup", "node")

        portenv("clean", "-y", "--keep-cache")

        assert (home / "cache" / "node.zip").exists()

    @responses.activate
    def test_clean_declined(self, portenv, serve_node, target, capsys):
        portenv("setup", "node")

        with patch.object(prompts, "confirm", return_value=False):
            assert portenv("clean") == 0

        assert (target / "node" / "node.exe").exists()
        assert "Clean cancelled." in capsys.readouterr().out


class TestRunAndShell:
    """Test 'portenv run' and 'portenv shell'."""

    @responses.activate
    def test_run_passes_environment(self, portenv, serve_node, target):
        portenv("setup", "node")

        with patch("portenv.runner.subprocess.run") as run:
            run.return_value = subprocess.CompletedProcess(args=[], returncode=5)
            assert portenv("run", "node", "--version") == 5

        command = run.call_args[0][0]
        environ = run.call_args[1]["env"]
        assert command[1:] == ["--version"]
        assert environ["PATH"].split(os.pathsep)[0] == str(target / "node")
        assert environ["NODE_PATH"] == str(target / "node" / "node_modules")

    def test_shell_falls_back_to_pwsh(self, portenv):
        with patch("portenv.runner.subprocess.run") as run:
            run.return_value = subprocess.CompletedProcess(args=[], returncode=0)
            assert portenv("shell") == 0

        assert run.call_args[0][0][-1] == "-NoLogo"


class TestManifestCommand:
    """Test 'portenv manifest' sub-commands."""

    @responses.activate
    def test_check(self, portenv, capsys):
        responses.add(responses.HEAD, NODE_URL, status=200)
        responses.add(responses.HEAD, PWSH_URL, status=404)

        assert portenv("manifest", "check") == 1

        captured = capsys.readouterr()
        assert "✓ node" in captured.out
        assert "✗ pwsh" in captured.out
        assert "1 URL(s) did not answer" in captured.err

    @responses.activate
    def test_update_writes_hash(self, portenv, home, make_zip, capsys):
        new_url = "https://example.com/dist/node-v23.0.0-win-x64.zip"
        archive = make_zip("node23.zip", {"node-v23.0.0-win-x64/node.exe": b"node 23"})
        responses.add(responses.GET, new_url, body=archive.read_bytes(), status=200)
        output = home / "updated.json"

        assert portenv(
            "-q", "manifest", "update", "node", "--version", "23.0.0",
            "--url", new_url, "--output", str(output),
        ) == 0

        data = json.loads(output.read_text(encoding="utf-8"))
        node = data["tools"][0]
        assert node["version"] == "23.0.0"
        assert node["url"] == new_url
        assert len(node["sha256"]) == 64
        assert data["tools"][1]["name"] == "pwsh"
        assert "22.12.0 -> 23.0.0" in capsys.readouterr().out

    @responses.activate
    def test_update_defaults_to_source_file(self, portenv, manifest_file, make_zip):
        new_url = "https://example.com/dist/PowerShell-7.5.0-win-x64.zip"
        archive = make_zip("pwsh75.zip", {"pwsh.exe": b"pwsh"})
        responses.add(responses.GET, new_url, body=archive.read_bytes(), status=200)

        portenv("-q", "manifest", "update", "pwsh", "--version", "7.5.0", "--url", new_url)

        data = json.loads(manifest_file.read_text(encoding="utf-8"))
        assert data["tools"][1]["version"] == "7.5.0"

    def test_update_unknown_tool(self, portenv, capsys):
        assert portenv(
            "manifest", "update", "python", "--version", "3.13", "--url", "https://x/py.zip"
        ) == 1
        assert "Unknown tool 'python'" in capsys.readouterr().err
