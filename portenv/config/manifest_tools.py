"""
Manifest maintenance helpers.

``refresh_tool`` produces the manifest entry for a new release of a tool
(downloading it once to compute its hash and to check the marker file is
in the archive). ``check_urls`` verifies every download URL still answers.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import requests

from portenv.config.manifest import InstallKind, Manifest, ToolSpec
from portenv.core.cache import artifact_suffix
from portenv.core.download import ProgressCallback, download_file
from portenv.core.exceptions import ArchiveError
from portenv.core.filesystem import archive_contains, temporary_directory

logger = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    tool: ToolSpec
    """Updated tool entry"""
    marker_found: Optional[bool]
    """Whether the archive holds the marker file (None: not an archive)"""
    size_bytes: int


def refresh_tool(
    tool: ToolSpec,
    version: str,
    url: str,
    work_dir: Optional[Path] = None,
    progress_callback: Optional[ProgressCallback] = None,
    session: Optional[requests.Session] = None,
) -> RefreshResult:
    """
    Download a new release of ``tool`` and build its updated manifest entry.

    The download goes to a temporary directory that is removed afterwards.

    Raises:
        NetworkError: If the download fails
    """
    with temporary_directory(prefix=f"portenv_refresh_{tool.name}_", parent=work_dir) as tmp:
        destination = tmp / f"{tool.name}{artifact_suffix(url)}"
        result = download_file(
            url, destination, progress_callback=progress_callback, session=session
        )

        marker_found: Optional[bool] = None
        if tool.kind in (InstallKind.GENERIC_ARCHIVE, InstallKind.PORTABLE_EDITOR):
            try:
                marker_found = archive_contains(destination, tool.marker_file)
            except ArchiveError as e:
                logger.warning(f"Cannot inspect {url}: {e}")
                marker_found = False

    if marker_found is False:
        logger.warning(f"{tool.marker_file} was not found in the {tool.name} {version} archive")

    return RefreshResult(
        tool=tool.with_release(version, url, result.sha256),
        marker_found=marker_found,
        size_bytes=result.size_bytes,
    )


@dataclass
class UrlCheck:
    name: str
    url: str
    status: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status is not None and self.status < 400


def check_urls(
    manifest: Manifest, session: Optional[requests.Session] = None, timeout: int = 10
) -> List[UrlCheck]:
    """Send a HEAD request to every tool URL and record the answer."""
    head = session.head if session is not None else requests.head
    checks = []
    for tool in manifest:
        check = UrlCheck(name=tool.name, url=tool.source_url)
        try:
            response = head(tool.source_url, timeout=timeout, allow_redirects=True)
            check.status = response.status_code
        except requests.RequestException as e:
            check.error = str(e)
        logger.debug(f"{tool.name}: {check.status or check.error}")
        checks.append(check)
    return checks
