"""
Skill Document Frontmatter
==========================
Builds the Markdown skill document written for every extracted page and
recovers the ``last_modified`` marker from a previously written one.

Document shape::

    ---
    name: getting-started
    description: How to install the SDK.
    metadata:
      url: https://docs.example.com/start
      last_modified: Wed, 21 Oct 2015 07:28:00 GMT
    ---

    # Getting Started

    <markdown body>

Public API
----------
- ``SkillDocument``              — the values that go into one document
- ``render_skill_document(doc)`` — serialise to text
- ``slugify_name(title)`` / ``sanitize_description(text)``
- ``read_last_modified(path)``   — stored marker used for conditional refetch
- ``http_date_now()``            — current time as an HTTP-date
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from email.utils import formatdate
from pathlib import Path
from typing import Optional, Union

import yaml

from .extractor import DEFAULT_DESCRIPTION, DEFAULT_TITLE

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 1024

FALLBACK_NAME = "untitled"

_NAME_INVALID_RE = re.compile(r"[^a-z0-9]+")
_FRONTMATTER_RE = re.compile(r"(?s)^---\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|$)")


@dataclass
class SkillDocument:
    """Everything needed to render one skill document."""
    name: str
    description: str
    source_url: str
    last_modified: str
    title: str = DEFAULT_TITLE
    body_markdown: str = ""


def slugify_name(title: str) -> str:
    """
    Turn a page title into a skill name.

    ``"Getting Started: Install!"`` → ``"getting-started-install"``
    """
    name = _NAME_INVALID_RE.sub("-", (title or "").lower()).strip("-")
    if len(name) > MAX_NAME_LENGTH:
        name = name[:MAX_NAME_LENGTH].rstrip("-")
    return name or FALLBACK_NAME


def sanitize_description(text: str) -> str:
    text = (text or "").strip()
    if not text:
        return DEFAULT_DESCRIPTION
    if len(text) > MAX_DESCRIPTION_LENGTH:
        return text[:MAX_DESCRIPTION_LENGTH] + "..."
    return text


def http_date_now() -> str:
    """Current time formatted like ``Wed, 21 Oct 2015 07:28:00 GMT``."""
    return formatdate(usegmt=True)


def render_skill_document(doc: SkillDocument) -> str:
    """Serialise *doc* to the frontmatter + Markdown text written to disk."""
    header = {
        "name": doc.name,
        "description": doc.description,
        "metadata": {
            "url": doc.source_url,
            "last_modified": doc.last_modified,
        },
    }
    frontmatter = yaml.safe_dump(
        header,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=float("inf"),
    )
    title = " ".join((doc.title or DEFAULT_TITLE).split())
    body = doc.body_markdown.strip()
    return f"---\n{frontmatter}---\n\n# {title}\n\n{body}\n"


def parse_frontmatter(text: str) -> Optional[dict]:
    """
    Parse the leading ``---`` block of *text*.

    Returns None when there is no block or it is not a mapping.

    Raises:
        yaml.YAMLError: if the block is not valid YAML
    """
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return None
    data = yaml.safe_load(match.group(1))
    return data if isinstance(data, dict) else None


def read_last_modified(path: Union[str, Path]) -> Optional[str]:
    """
    Stored ``metadata.last_modified`` of an existing skill document.

    Missing file, missing frontmatter or a missing key yield None; so does
    invalid YAML, which is logged.
    """
    path = Path(path)
    if not path.is_file():
        return None

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"[WRITE] Could not read existing document {path}: {e}")
        return None

    try:
        data = parse_frontmatter(text)
    except yaml.YAMLError as e:
        logger.warning(f"[WRITE] Invalid frontmatter in {path}: {e}")
        return None

    if not data:
        return None
    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        return None
    value = metadata.get("last_modified")
    if value is None:
        return None
    return str(value).strip() or None
