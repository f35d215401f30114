"""
Tests for paths.py: hierarchical, flat and bundled output layouts.
"""

from pathlib import Path

import pytest

from skills_crawler.paths import (
    OutputLocation, bundle_relative_path, derive_output_location,
    flat_dir_name, skill_name_for,
)

OUT = Path(".skillscache")


class TestHierarchical:

    def test_extensionless_path_expands_to_index(self):
        loc = derive_output_location("https://docs.x.com/guide/start", OUT)
        assert loc.raw_path == OUT / "docs.x.com" / "guide" / "start" / "index.html"
        assert loc.skill_path == OUT / "docs.x.com" / "guide" / "start" / "index.md"

    def test_trailing_slash_expands_to_index(self):
        loc = derive_output_location("https://docs.x.com/guide/", OUT)
        assert loc.raw_path == OUT / "docs.x.com" / "guide" / "index.html"

    def test_empty_path_is_host_index(self):
        loc = derive_output_location("https://docs.x.com", OUT)
        assert loc.raw_path == OUT / "docs.x.com" / "index.html"
        assert loc.skill_path == OUT / "docs.x.com" / "index.md"

    def test_html_file_gets_md_sibling(self):
        loc = derive_output_location("https://docs.x.com/a/page.html", OUT)
        assert loc.raw_path == OUT / "docs.x.com" / "a" / "page.html"
        assert loc.skill_path == OUT / "docs.x.com" / "a" / "page.md"

    def test_htm_file_gets_md_sibling(self):
        loc = derive_output_location("https://docs.x.com/a/page.htm", OUT)
        assert loc.skill_path == OUT / "docs.x.com" / "a" / "page.md"

    @pytest.mark.parametrize("path", ["/packages/http/versions/1.1.0", "/docs/v2.0", "/a/page.php"])
    def test_dotted_segment_is_a_directory(self, path):
        loc = derive_output_location("https://docs.x.com" + path, OUT)
        base = OUT / "docs.x.com" / path.lstrip("/")
        assert loc.raw_path == base / "index.html"
        assert loc.skill_path == base / "index.md"

    def test_versioned_page_and_child_do_not_collide(self):
        parent = derive_output_location("https://pub.dev/packages/http/versions/1.1.0", OUT)
        child = derive_output_location("https://pub.dev/packages/http/versions/1.1.0/changelog", OUT)
        assert child.raw_path.parent.parent == parent.raw_path.parent

    def test_rename_placed_beside_raw_capture(self):
        loc = derive_output_location("https://docs.x.com/guide", OUT, rename="SKILL.md")
        assert loc.skill_path == OUT / "docs.x.com" / "guide" / "SKILL.md"

    def test_query_and_fragment_ignored(self):
        a = derive_output_location("https://docs.x.com/guide?lang=en#top", OUT)
        b = derive_output_location("https://docs.x.com/guide", OUT)
        assert a == b

    def test_dot_segments_stay_inside_output(self):
        loc = derive_output_location("https://docs.x.com/../../etc/passwd", OUT)
        assert loc.raw_path == OUT / "docs.x.com" / "etc" / "passwd" / "index.html"


class TestFlat:

    def test_flat_naming(self):
        loc = derive_output_location("https://docs.flutter.dev/get-started/install", OUT, flat=True)
        assert loc.skill_path == OUT / "docs_flutter_dev_get-started_install" / "SKILL.md"
        assert loc.raw_path == OUT / "docs_flutter_dev_get-started_install" / "index.html"

    @pytest.mark.parametrize("url, expected", [
        ("https://docs.x.com/", "docs_x_com"),
        ("https://docs.x.com", "docs_x_com"),
        ("https://docs.x.com/guide/index.html", "docs_x_com_guide"),
        ("https://docs.x.com/guide/page.html", "docs_x_com_guide_page"),
        ("https://docs.x.com/guide/", "docs_x_com_guide"),
        ("https://docs.x.com/my%20guide/a", "docs_x_com_my_guide_a"),
    ])
    def test_flat_dir_name(self, url, expected):
        assert flat_dir_name(url) == expected

    def test_rename_override(self):
        loc = derive_output_location("https://docs.x.com/a", OUT, flat=True, rename="README.md")
        assert loc.skill_path == OUT / "docs_x_com_a" / "README.md"


class TestBundled:
    RULE = "https://pub.dev/packages/http/versions/1.1.0"

    def test_root_is_primary_skill(self):
        loc = derive_output_location(self.RULE, OUT, bundle_url=self.RULE)
        bundle_dir = OUT / "pub_dev_packages_http_versions_1.1.0"
        assert loc.skill_path == bundle_dir / "SKILL.md"
        assert loc.raw_path == bundle_dir / "index.html"

    def test_root_with_trailing_slash_is_primary(self):
        loc = derive_output_location(self.RULE + "/", OUT, bundle_url=self.RULE)
        assert loc.skill_path.name == "SKILL.md"

    def test_subpage_becomes_reference(self):
        loc = derive_output_location(self.RULE + "/changelog", OUT, bundle_url=self.RULE)
        bundle_dir = OUT / "pub_dev_packages_http_versions_1.1.0"
        assert loc.skill_path == bundle_dir / "references" / "changelog.md"
        assert loc.raw_path == bundle_dir / "references" / "changelog.html"

    def test_nested_reference_uses_underscores(self):
        loc = derive_output_location(self.RULE + "/example/usage", OUT, bundle_url=self.RULE)
        assert loc.skill_path.name == "example_usage.md"

    def test_bundle_wins_over_flat(self):
        a = derive_output_location(self.RULE + "/changelog", OUT, flat=True, bundle_url=self.RULE)
        b = derive_output_location(self.RULE + "/changelog", OUT, bundle_url=self.RULE)
        assert a == b

    def test_outside_prefix_falls_back_to_last_segment(self):
        assert bundle_relative_path("https://pub.dev/documentation/http/latest/", self.RULE) == "latest"

    def test_similar_prefix_is_not_under_bundle(self):
        assert bundle_relative_path("https://x.com/pkg/v10/a", "https://x.com/pkg/v1") == "a"


class TestDeterminism:

    @pytest.mark.parametrize("kwargs", [
        {},
        {"flat": True},
        {"rename": "SKILL.md"},
        {"bundle_url": "https://x.com/pkg"},
    ])
    def test_same_inputs_same_paths(self, kwargs):
        url = "https://x.com/pkg/guide/intro"
        assert derive_output_location(url, OUT, **kwargs) == derive_output_location(url, str(OUT), **kwargs)


class TestSkillName:

    def test_flat_uses_directory(self):
        loc = derive_output_location("https://docs.x.com/a", OUT, flat=True)
        assert skill_name_for(loc, flat=True, bundled=False) == "docs_x_com_a"

    def test_bundle_reference_uses_bundle_directory(self):
        loc = derive_output_location("https://x.com/pkg/guide", OUT, bundle_url="https://x.com/pkg")
        assert skill_name_for(loc, flat=False, bundled=True) == "x_com_pkg"

    def test_hierarchical_has_no_override(self):
        loc = OutputLocation(raw_path=OUT / "a" / "index.html", skill_path=OUT / "a" / "index.md")
        assert skill_name_for(loc, flat=False, bundled=False) is None
