"""
Output Paths
============
Maps a page URL onto its on-disk locations: the raw HTML capture and the
skill document written next to it.

Three layouts are supported:

- **hierarchical** (default) — ``<out>/<host>/<path>/index.html`` with the
  skill document beside it as ``index.md``
- **flat** — one directory per page named ``<host>_<path>`` with
  underscores, e.g. ``docs_flutter_dev_get-started_install/SKILL.md``
- **bundled** — every page under a bundle rule's URL lands in one directory
  named after the rule; the rule's own page is the primary ``SKILL.md`` and
  deeper pages become ``references/<relative_path>.md``

Everything here is a pure function of its inputs.  Re-running a crawl with
the same rules overwrites files in place instead of creating duplicates,
and the conditional refetch relies on finding the previous skill document
at the same path.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

DEFAULT_SKILL_FILE = "SKILL.md"
RAW_CAPTURE_FILE = "index.html"
REFERENCES_DIR = "references"

# only these suffixes mark a URL path as a file, so /versions/1.1.0 is a directory
_DOCUMENT_SUFFIXES = (".html", ".htm")


@dataclass(frozen=True)
class OutputLocation:
    """Where one URL's raw capture and skill document are written."""
    raw_path: Path
    skill_path: Path

    @property
    def directory(self) -> Path:
        return self.skill_path.parent


def flat_dir_name(url: str) -> str:
    """
    Collapse host and path into one directory name.

    ``https://docs.flutter.dev/get-started/install`` →
    ``docs_flutter_dev_get-started_install``
    """
    parsed = urlparse(url)
    segment = parsed.path
    segment = segment.removesuffix(".html")
    segment = segment.removesuffix("/index")
    segment = segment.removesuffix("/")
    segment = segment.removeprefix("/")
    segment = segment.replace("%20", "_")
    segment = segment.replace("/", "_")

    clean_host = (parsed.hostname or "").replace(".", "_")
    if not segment:
        return clean_host
    return f"{clean_host}_{segment}"


def _with_trailing_slash(path: str) -> str:
    return path if path.endswith("/") else path + "/"


def bundle_relative_path(url: str, bundle_url: str) -> str:
    """
    Path of *url* relative to *bundle_url*, ``""`` for the bundle root.

    Both paths are compared in trailing-slash form so that
    ``/pkg/v1`` and ``/pkg/v1/`` are both the root while ``/pkg/v10``
    is not under ``/pkg/v1``.  A URL outside the bundle falls back to its
    last path segment.
    """
    target_path = _with_trailing_slash(urlparse(url).path or "/")
    rule_path = _with_trailing_slash(urlparse(bundle_url).path or "/")

    if target_path.startswith(rule_path):
        relative = target_path[len(rule_path):]
    else:
        relative = posixpath.basename(target_path.rstrip("/"))

    return relative.strip("/")


def _hierarchical(url: str, out_dir: Path, rename: Optional[str]) -> OutputLocation:
    parsed = urlparse(url)
    path = parsed.path or "/"
    # dot-segments must not escape the output root
    trailing = path.endswith("/")
    path = posixpath.normpath(path)
    if trailing and not path.endswith("/"):
        path += "/"
    if path.endswith("/"):
        path = path + RAW_CAPTURE_FILE
    elif posixpath.splitext(path)[1].lower() not in _DOCUMENT_SUFFIXES:
        path = path + "/" + RAW_CAPTURE_FILE

    raw_path = out_dir / (parsed.hostname or "") / path.lstrip("/")
    if rename:
        skill_path = raw_path.parent / rename
    else:
        skill_path = raw_path.with_suffix(".md")
    return OutputLocation(raw_path=raw_path, skill_path=skill_path)


def _flat(url: str, out_dir: Path, rename: Optional[str]) -> OutputLocation:
    directory = out_dir / flat_dir_name(url)
    return OutputLocation(
        raw_path=directory / RAW_CAPTURE_FILE,
        skill_path=directory / (rename or DEFAULT_SKILL_FILE),
    )


def _bundled(url: str, out_dir: Path, rename: Optional[str], bundle_url: str) -> OutputLocation:
    directory = out_dir / flat_dir_name(bundle_url.rstrip("/"))
    relative = bundle_relative_path(url, bundle_url)
    if not relative:
        return OutputLocation(
            raw_path=directory / RAW_CAPTURE_FILE,
            skill_path=directory / (rename or DEFAULT_SKILL_FILE),
        )

    ref_name = relative.replace("/", "_")
    references = directory / REFERENCES_DIR
    return OutputLocation(
        raw_path=references / f"{ref_name}.html",
        skill_path=references / f"{ref_name}.md",
    )


def derive_output_location(
    url: str,
    output_dir: Union[str, Path],
    *,
    flat: bool = False,
    rename: Optional[str] = None,
    bundle_url: Optional[str] = None,
) -> OutputLocation:
    """
    Compute the raw-capture and skill-document paths for *url*.

    Args:
        url: Normalized page URL (query and fragment are ignored)
        output_dir: Output root (``.skillscache`` by default)
        flat: Use the flat layout
        rename: Fixed skill file name overriding the default
        bundle_url: URL of the bundle rule the page was discovered under

    Bundle wins over flat, flat over hierarchical.
    """
    out_dir = Path(output_dir)
    if bundle_url:
        return _bundled(url, out_dir, rename, bundle_url)
    if flat:
        return _flat(url, out_dir, rename)
    return _hierarchical(url, out_dir, rename)


def skill_name_for(location: OutputLocation, *, flat: bool, bundled: bool) -> Optional[str]:
    """
    Frontmatter ``name`` override for folder-based layouts.

    Flat and bundled skills are named after their directory; for bundle
    reference files that is the bundle directory.  Hierarchical output
    returns None so the title slug is used.
    """
    if bundled:
        directory = location.skill_path.parent
        if directory.name == REFERENCES_DIR:
            directory = directory.parent
        return directory.name
    if flat:
        return location.skill_path.parent.name
    return None
