"""
Rule Engine
============
Compiles declarative scope rules into allow/deny matchers and decides, per
URL, whether the crawler may visit it.

Rules come in two shapes and collapse into the same ``ScopeRule``:

- plain pattern lines (``https://docs.example.com/*``, ``!*/changelog*``)
  from the rule file or the ``patterns`` list, where ``!`` means deny
- structured ``RuleConfig`` objects (``url``, ``subpaths``, ``action``,
  ``bundle``) from the ``rules`` list

Matching is shell-style globbing over the full URL string:

- ``*``       any run of characters, ``/`` included
- ``?``       exactly one character
- ``[abc]``   character class, ``[!abc]`` negated
- ``{a,b}``   alternatives

Deny rules are always checked first, so a deny match wins over any allow
match regardless of declaration order.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .exceptions import ConfigError, RuleCompileError
from .scope_filter import is_within_scope

logger = logging.getLogger(__name__)

_WILDCARD_CHARS = "*?[{"

_ACTIONS = ("include", "ignore")


class RuleKind(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


# ---------------------------------------------------------------------------
# Structured rule (configuration shape)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleConfig:
    """A structured rule as written in the ``rules`` list of ``skills.yaml``."""
    url: str
    subpaths: bool = False
    action: str = "include"
    bundle: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleConfig":
        """Validate a mapping from the configuration document."""
        if not isinstance(data, dict):
            raise ConfigError(f"rule must be a mapping, got {type(data).__name__}")

        url = data.get("url")
        if not isinstance(url, str) or not url.strip():
            raise ConfigError(f"rule is missing a 'url': {data!r}")

        action = str(data.get("action", "include")).strip().lower()
        if action not in _ACTIONS:
            raise ConfigError(f"rule action must be one of {_ACTIONS}, got '{action}'")

        return cls(
            url=url.strip(),
            subpaths=bool(data.get("subpaths", False)),
            action=action,
            bundle=bool(data.get("bundle", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "url": self.url,
            "subpaths": self.subpaths,
            "action": self.action,
        }
        if self.bundle:
            data["bundle"] = True
        return data


# ---------------------------------------------------------------------------
# Compiled rule
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScopeRule:
    """
    One compiled allow or deny rule.

    ``url`` is the rule's scope root: the structured rule's URL, or the
    literal prefix of a wildcard pattern.  Link discovery from pages seeded
    by this rule never leaves that root.
    """
    pattern: str
    kind: RuleKind
    applies_to_subpaths: bool = False
    bundle: bool = False
    url: str = ""
    matches_root: bool = False
    _regex: re.Pattern = field(default=None, repr=False, compare=False)

    @classmethod
    def compile(
        cls,
        pattern: str,
        kind: RuleKind,
        *,
        applies_to_subpaths: bool = False,
        bundle: bool = False,
        url: str = "",
        matches_root: bool = False,
    ) -> "ScopeRule":
        return cls(
            pattern=pattern,
            kind=kind,
            applies_to_subpaths=applies_to_subpaths,
            bundle=bundle,
            url=url or pattern,
            matches_root=matches_root,
            _regex=compile_glob(pattern),
        )

    @property
    def is_deny(self) -> bool:
        return self.kind is RuleKind.DENY

    def matches(self, url: str) -> bool:
        if self.matches_root and url == self.url:
            return True
        return self._regex.match(url) is not None


@dataclass
class RuleSet:
    """Allow and deny rules in declaration order."""
    allow: List[ScopeRule] = field(default_factory=list)
    deny: List[ScopeRule] = field(default_factory=list)

    def is_denied(self, url: str) -> bool:
        return any(rule.matches(url) for rule in self.deny)

    def is_visitable(self, url: str) -> bool:
        return is_visitable(url, self.allow, self.deny)

    def governing_rule(self, url: str) -> Optional[ScopeRule]:
        """
        The allow rule that owns *url*, independent of how it was reached.

        Candidates are allow rules that match *url* and whose scope root
        contains it.  Bundle rules win, then the most specific scope root,
        then subpath rules; remaining ties go to declaration order.  The
        owner decides the output location and the scope links are followed
        in.
        """
        candidates = [
            (index, rule) for index, rule in enumerate(self.allow)
            if rule.matches(url) and is_within_scope(url, rule.url)
        ]
        if not candidates:
            return None
        _, rule = min(candidates, key=lambda c: (
            not c[1].bundle,
            -len(c[1].url.rstrip("/")),
            not c[1].applies_to_subpaths,
            c[0],
        ))
        return rule

    def seeds(self) -> List[Tuple[str, ScopeRule]]:
        """(seed URL, originating rule) pairs for every allow rule."""
        out = []
        for rule in self.allow:
            seed = seed_url(rule)
            if seed:
                out.append((seed, rule))
        return out

    def __len__(self) -> int:
        return len(self.allow) + len(self.deny)


# ---------------------------------------------------------------------------
# Glob compilation
# ---------------------------------------------------------------------------

def compile_glob(pattern: str) -> re.Pattern:
    """
    Translate a shell-style glob into an anchored regular expression.

    Raises:
        RuleCompileError: on an unclosed ``[`` or ``{`` or an invalid class
    """
    if not pattern:
        raise RuleCompileError(pattern, "empty pattern")

    out: List[str] = []
    brace_depth = 0
    i, n = 0, len(pattern)

    while i < n:
        c = pattern[i]
        if c == "*":
            while i + 1 < n and pattern[i + 1] == "*":
                i += 1
            out.append(".*")
        elif c == "?":
            out.append(".")
        elif c == "[":
            j = i + 1
            negate = j < n and pattern[j] in "!^"
            if negate:
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            end = pattern.find("]", j)
            if end == -1:
                raise RuleCompileError(pattern, "unclosed '['")
            body = pattern[i + 1 + (1 if negate else 0):end].replace("\\", "\\\\")
            out.append(f"[{'^' if negate else ''}{body}]")
            i = end
        elif c == "{":
            brace_depth += 1
            out.append("(?:")
        elif c == "}" and brace_depth:
            brace_depth -= 1
            out.append(")")
        elif c == "," and brace_depth:
            out.append("|")
        elif c == "\\" and i + 1 < n:
            i += 1
            out.append(re.escape(pattern[i]))
        else:
            out.append(re.escape(c))
        i += 1

    if brace_depth:
        raise RuleCompileError(pattern, "unclosed '{'")

    try:
        return re.compile("(?s:" + "".join(out) + r")\Z")
    except re.error as exc:
        raise RuleCompileError(pattern, str(exc)) from exc


def literal_prefix(pattern: str) -> str:
    """Everything before the first wildcard metacharacter."""
    for idx, c in enumerate(pattern):
        if c in _WILDCARD_CHARS:
            return pattern[:idx]
    return pattern


def subpath_pattern(url: str) -> str:
    """``https://x/docs`` → ``https://x/docs/*``."""
    if url.endswith("*"):
        return url
    if not url.endswith("/"):
        url += "/"
    return url + "*"


def seed_url(rule: ScopeRule) -> str:
    """
    The URL a crawl starts from for *rule*.

    Subpath rules seed from their exact URL; wildcard patterns from the
    literal prefix before the first wildcard.
    """
    if rule.is_deny:
        return ""
    if rule.matches_root:
        return rule.url
    return literal_prefix(rule.pattern)


# ---------------------------------------------------------------------------
# Rule loading
# ---------------------------------------------------------------------------

def compile_pattern(line: str) -> Optional[ScopeRule]:
    """
    Compile one plain pattern line.

    Returns None for blank and ``#`` comment lines.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None

    kind = RuleKind.ALLOW
    if line.startswith("!"):
        kind = RuleKind.DENY
        line = line[1:].strip()

    prefix = literal_prefix(line)
    wildcard = prefix != line
    return ScopeRule.compile(
        line,
        kind,
        applies_to_subpaths=wildcard,
        url=prefix if wildcard else line,
    )


def compile_structured(rule: RuleConfig) -> ScopeRule:
    """Compile a structured rule; ``subpaths`` also admits the root URL itself."""
    kind = RuleKind.DENY if rule.action == "ignore" else RuleKind.ALLOW
    if rule.subpaths:
        return ScopeRule.compile(
            subpath_pattern(rule.url),
            kind,
            applies_to_subpaths=True,
            bundle=rule.bundle,
            url=rule.url,
            matches_root=True,
        )
    return ScopeRule.compile(rule.url, kind, bundle=rule.bundle, url=rule.url)


def compile_rules(raw_rules: Iterable[Union[str, RuleConfig, Dict[str, Any]]]) -> RuleSet:
    """
    Compile plain patterns and structured rules into a ``RuleSet``.

    Malformed entries are logged and skipped; they never abort loading.
    """
    rule_set = RuleSet()
    for raw in raw_rules:
        try:
            if isinstance(raw, str):
                rule = compile_pattern(raw)
            elif isinstance(raw, RuleConfig):
                rule = compile_structured(raw)
            else:
                rule = compile_structured(RuleConfig.from_dict(raw))
        except (RuleCompileError, ConfigError) as exc:
            logger.warning(f"[RULES] Skipping rule: {exc}")
            continue

        if rule is None:
            continue
        if rule.is_deny:
            rule_set.deny.append(rule)
        else:
            rule_set.allow.append(rule)

    logger.info(
        f"[RULES] Loaded {len(rule_set.allow)} allowed patterns "
        f"and {len(rule_set.deny)} ignored patterns"
    )
    return rule_set


def is_visitable(url: str, allow: Iterable[ScopeRule], deny: Iterable[ScopeRule]) -> bool:
    """Deny first (any match rejects), then allow (any match accepts), else reject."""
    for rule in deny:
        if rule.matches(url):
            return False
    for rule in allow:
        if rule.matches(url):
            return True
    return False


def load_rule_file(path: Union[str, Path]) -> List[str]:
    """
    Read a plain-text rule file, one pattern per line.

    A missing file yields no patterns; an unreadable one is warned about.
    Blank and ``#`` lines are filtered later by ``compile_pattern``.
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"[RULES] No rule file at {path}")
        return []
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning(f"[RULES] Could not read rule file {path}: {exc}")
        return []
