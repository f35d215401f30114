"""
Tests for scope_filter.py.

Covers:
  1. Canonical normalisation parity (percent-encoding, dot-segments, default ports)
  2. Strict subtree boundary enforcement (/posts ≠ /posts-extra)
  3. Explicit scheme policy (allow_cross_scheme flag)
"""

from skills_crawler.scope_filter import _canonicalize, _decode_unreserved, is_within_scope


# ====================================================================
# 1. Canonical normalisation parity
# ====================================================================

class TestCanonicalise:
    """Ensure _canonicalize produces identical output for semantically equal URLs."""

    def test_percent_encoding_parity(self):
        """Unreserved characters decoded identically regardless of encoding."""
        a = _canonicalize("https://example.com/p%61th")
        b = _canonicalize("https://example.com/path")
        assert a is not None and b is not None
        assert a.path == b.path
        assert a.raw == b.raw

    def test_reserved_chars_preserved(self):
        """%2F (/) should NOT be decoded."""
        c = _canonicalize("https://example.com/a%2Fb")
        assert c is not None
        assert "%2F" in c.path

    def test_dot_segment_resolution(self):
        c = _canonicalize("https://example.com/a/b/../c")
        assert c is not None
        assert c.path == "/a/c"

    def test_dot_segment_cannot_escape_root(self):
        c = _canonicalize("https://example.com/../../etc")
        assert c is not None
        assert c.path == "/etc"

    def test_default_ports_stripped(self):
        assert _canonicalize("http://example.com:80/path").raw == "http://example.com/path"
        assert _canonicalize("https://example.com:443/path").raw == "https://example.com/path"

    def test_non_default_port_kept(self):
        c = _canonicalize("https://example.com:8080/path")
        assert c is not None
        assert "8080" in c.host

    def test_www_stripping(self):
        a = _canonicalize("https://www.example.com/docs")
        b = _canonicalize("https://example.com/docs")
        assert a.host == b.host

    def test_trailing_slash_stripped(self):
        a = _canonicalize("https://example.com/docs/")
        b = _canonicalize("https://example.com/docs")
        assert a.path == b.path == "/docs"

    def test_root_trailing_slash_kept(self):
        c = _canonicalize("https://example.com/")
        assert c.path == "/"

    def test_empty_path_is_root(self):
        c = _canonicalize("https://example.com")
        assert c.path == "/"

    def test_query_and_fragment_dropped(self):
        c = _canonicalize("https://example.com/docs?tab=1#section")
        assert "?" not in c.raw
        assert "#" not in c.raw

    def test_path_case_preserved(self):
        c = _canonicalize("https://EXAMPLE.COM/Docs")
        assert c.host == "example.com"
        assert c.path == "/Docs"

    def test_invalid_url_returns_none(self):
        assert _canonicalize("") is None
        assert _canonicalize("javascript:void(0)") is None
        assert _canonicalize("mailto:test@test.com") is None
        assert _canonicalize("ftp://example.com") is None
        assert _canonicalize("#") is None


# ====================================================================
# 2. Strict subtree boundary enforcement
# ====================================================================

class TestStrictBoundary:
    """A rule URL covers itself and paths below it, nothing else."""

    def test_posts_vs_posts_extra(self):
        assert is_within_scope("https://blog.com/posts/1", "https://blog.com/posts") is True
        assert is_within_scope("https://blog.com/posts-extra", "https://blog.com/posts") is False

    def test_exact_scope_match(self):
        assert is_within_scope("https://e.com/docs", "https://e.com/docs") is True
        assert is_within_scope("https://e.com/docs/", "https://e.com/docs") is True

    def test_child_paths(self):
        assert is_within_scope("https://e.com/docs/sub/page", "https://e.com/docs/") is True

    def test_sibling_paths(self):
        assert is_within_scope("https://e.com/blog", "https://e.com/docs") is False
        assert is_within_scope("https://e.com/docstring", "https://e.com/docs") is False

    def test_parent_rejected(self):
        assert is_within_scope("https://e.com/", "https://e.com/docs") is False

    def test_root_scope_allows_all(self):
        assert is_within_scope("https://e.com/anything", "https://e.com/") is True
        assert is_within_scope("https://e.com/deep/nested/path", "https://e.com") is True

    def test_different_host_rejected(self):
        assert is_within_scope("https://other.com/docs", "https://e.com/docs") is False

    def test_dot_segments_cannot_leave_scope(self):
        assert is_within_scope("https://e.com/docs/../admin", "https://e.com/docs") is False


# ====================================================================
# 3. Scheme policy
# ====================================================================

class TestSchemePolicy:

    def test_cross_scheme_allowed_by_default(self):
        assert is_within_scope("http://e.com/docs/page", "https://e.com/docs") is True

    def test_cross_scheme_rejected_when_strict(self):
        assert is_within_scope(
            "http://e.com/docs/page", "https://e.com/docs",
            allow_cross_scheme=False,
        ) is False

    def test_same_scheme_passes_strict(self):
        assert is_within_scope(
            "https://e.com/docs/page", "https://e.com/docs",
            allow_cross_scheme=False,
        ) is True


# ====================================================================
# 4. RFC 3986 decode_unreserved edge cases
# ====================================================================

class TestDecodeUnreserved:
    def test_unreserved_decoded(self):
        assert _decode_unreserved("%7E") == "~"

    def test_reserved_kept(self):
        assert _decode_unreserved("%2F") == "%2F"

    def test_mixed(self):
        assert _decode_unreserved("/p%61th/%2Fsub") == "/path/%2Fsub"

    def test_hex_uppercased(self):
        assert _decode_unreserved("%2f") == "%2F"
