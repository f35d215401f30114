"""
Dependency Rule Generator
=========================
Derives crawl rules from a project's dependency manifests so the
documentation of every direct dependency can be crawled at the version the
project actually uses.

Supported manifests (read when present in the project root):

- ``package.json``  → ``https://www.npmjs.com/package/<name>/v/<version>``
- ``pubspec.yaml``  → ``https://pub.dev/packages/<name>/versions/<version>``
- ``go.mod``        → ``https://pkg.go.dev/<module>@<version>``

Every rule is an include rule with ``subpaths`` and ``bundle`` set, so each
dependency ends up as one skill directory with its sub-pages as references.

Public API
----------
- ``scan(project_root)``     — rules for all manifests found
- ``clean_version(version)`` — strip range operators, drop complex specifiers
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

import yaml

from .rules import RuleConfig

logger = logging.getLogger(__name__)

NPM_URL = "https://www.npmjs.com/package/{name}/v/{version}"
PUB_URL = "https://pub.dev/packages/{name}/versions/{version}"
GO_URL = "https://pkg.go.dev/{module}@{version}"

_NPM_SECTIONS = ("dependencies", "devDependencies", "peerDependencies")
_PUB_SECTIONS = ("dependencies", "dev_dependencies")
_PUB_SDK_PACKAGES = {"flutter", "flutter_test"}

_RANGE_OPERATORS_RE = re.compile(r"[\^~>=<]")
_NON_REGISTRY_PREFIXES = ("git+", "git:", "github:", "file:", "link:", "workspace:")
_COMPLEX_SPEC_RE = re.compile(r"[\s|*,]")


def clean_version(version: Optional[str]) -> Optional[str]:
    """
    Sanitise a manifest version string.

    ``"^1.2.0"`` → ``"1.2.0"``, empty → ``"latest"``.  Paths, VCS references
    and specifiers that still contain ranges after stripping yield None.
    """
    if version is None:
        return "latest"
    version = str(version).strip()
    if not version:
        return "latest"

    cleaned = _RANGE_OPERATORS_RE.sub("", version).strip()
    if cleaned.startswith(_NON_REGISTRY_PREFIXES) or "/" in cleaned:
        return None
    if _COMPLEX_SPEC_RE.search(cleaned):
        return None
    return cleaned or "latest"


def _bundle_rule(url: str) -> RuleConfig:
    return RuleConfig(url=url, subpaths=True, action="include", bundle=True)


# ---------------------------------------------------------------------------
# npm
# ---------------------------------------------------------------------------

def scan_package_json(path: Path) -> List[RuleConfig]:
    with open(path, "r", encoding="utf-8") as f:
        manifest = json.load(f)
    if not isinstance(manifest, dict):
        raise ValueError("package.json root is not an object")

    deps: Dict[str, Any] = {}
    for section in _NPM_SECTIONS:
        entries = manifest.get(section) or {}
        if isinstance(entries, dict):
            deps.update(entries)

    rules = []
    for name, spec in deps.items():
        version = clean_version(spec) if isinstance(spec, str) else None
        if version:
            rules.append(_bundle_rule(NPM_URL.format(name=name, version=version)))
        else:
            logger.debug(f"[SCAN] Skipping npm dependency {name} ({spec!r})")
    return rules


# ---------------------------------------------------------------------------
# pub
# ---------------------------------------------------------------------------

def _pub_version(spec: Any) -> Optional[str]:
    if spec is None:
        return "latest"
    if isinstance(spec, (str, int, float)):
        return clean_version(str(spec))
    if isinstance(spec, dict):
        if "sdk" in spec or "path" in spec or "git" in spec:
            return None
        if "version" in spec:
            return clean_version(str(spec["version"]))
        return "latest"
    return None


def scan_pubspec(path: Path) -> List[RuleConfig]:
    with open(path, "r", encoding="utf-8") as f:
        manifest = yaml.safe_load(f) or {}
    if not isinstance(manifest, dict):
        raise ValueError("pubspec.yaml root is not a mapping")

    rules = []
    for section in _PUB_SECTIONS:
        entries = manifest.get(section) or {}
        if not isinstance(entries, dict):
            continue
        for name, spec in entries.items():
            if name in _PUB_SDK_PACKAGES:
                continue
            version = _pub_version(spec)
            if version:
                rules.append(_bundle_rule(PUB_URL.format(name=name, version=version)))
            else:
                logger.debug(f"[SCAN] Skipping pub dependency {name} ({spec!r})")
    return rules


# ---------------------------------------------------------------------------
# Go modules
# ---------------------------------------------------------------------------

def _go_requirements(text: str) -> Iterator[Tuple[str, str]]:
    """Yield (module, version) for direct ``require`` entries."""
    in_block = False
    for line in text.splitlines():
        entry, _, comment = line.partition("//")
        entry = entry.strip()
        indirect = "indirect" in comment

        if in_block:
            if entry == ")":
                in_block = False
                continue
        elif entry.startswith("require"):
            rest = entry[len("require"):].strip()
            if rest == "(":
                in_block = True
                continue
            if not rest:
                continue
            entry = rest
        else:
            continue

        parts = entry.split()
        if len(parts) >= 2 and not indirect:
            yield parts[0], parts[1]


def scan_go_mod(path: Path) -> List[RuleConfig]:
    text = path.read_text(encoding="utf-8")
    rules = []
    for module, raw_version in _go_requirements(text):
        version = clean_version(raw_version)
        if version:
            rules.append(_bundle_rule(GO_URL.format(module=module, version=version)))
    return rules


_SCANNERS = (
    ("package.json", scan_package_json),
    ("pubspec.yaml", scan_pubspec),
    ("go.mod", scan_go_mod),
)


def scan(project_root: Union[str, Path]) -> List[RuleConfig]:
    """
    Scan *project_root* for dependency manifests.

    A malformed manifest is logged and skipped; the others are still read.
    """
    root = Path(project_root)
    rules: List[RuleConfig] = []

    for filename, scanner in _SCANNERS:
        manifest = root / filename
        if not manifest.is_file():
            continue
        try:
            found = scanner(manifest)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"[SCAN] Error scanning {manifest}: {e}")
            continue
        logger.info(f"[SCAN] {filename}: {len(found)} dependency rule(s)")
        rules.extend(found)

    return rules
