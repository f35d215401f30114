"""
Tests for dependency_scanner.py using manifests written to tmp_path.
"""

import json
import logging

import pytest

from skills_crawler.dependency_scanner import clean_version, scan
from skills_crawler.rules import RuleConfig


def _urls(rules):
    return [rule.url for rule in rules]


class TestCleanVersion:

    @pytest.mark.parametrize("raw, expected", [
        ("^1.0.0", "1.0.0"),
        ("~2.3.4", "2.3.4"),
        (">=3.0.0", "3.0.0"),
        (" 4.17.21 ", "4.17.21"),
        ("v1.9.1", "v1.9.1"),
        ("1.0.0-digital", "1.0.0-digital"),
        ("^2.0.0-legit.1", "2.0.0-legit.1"),
        ("", "latest"),
        (None, "latest"),
    ])
    def test_sanitised(self, raw, expected):
        assert clean_version(raw) == expected

    @pytest.mark.parametrize("raw", [
        "git+https://github.com/a/b.git",
        "file:../local",
        "link:../local",
        "workspace:*",
        "github:user/repo",
        "git://github.com/a/b.git",
        "user/repo",
        ">=1.0.0 <2.0.0",
        "1.x || 2.x",
        "*",
    ])
    def test_dropped(self, raw):
        assert clean_version(raw) is None


class TestNpm:

    def test_dependencies(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({
            "dependencies": {"axios": "^1.0.0", "lodash": "4.17.21"},
            "devDependencies": {"jest": "~29.7.0"},
            "peerDependencies": {"react": ">=18.2.0"},
        }), encoding="utf-8")
        assert _urls(scan(tmp_path)) == [
            "https://www.npmjs.com/package/axios/v/1.0.0",
            "https://www.npmjs.com/package/lodash/v/4.17.21",
            "https://www.npmjs.com/package/jest/v/29.7.0",
            "https://www.npmjs.com/package/react/v/18.2.0",
        ]

    def test_rules_are_bundled_subpath_includes(self, tmp_path):
        (tmp_path / "package.json").write_text('{"dependencies": {"axios": "1.0.0"}}', encoding="utf-8")
        assert scan(tmp_path) == [RuleConfig(
            url="https://www.npmjs.com/package/axios/v/1.0.0",
            subpaths=True, action="include", bundle=True,
        )]

    def test_local_and_git_dependencies_skipped(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({
            "dependencies": {"local": "file:../local", "fork": "git+https://x/y.git", "ok": "1.2.3"},
        }), encoding="utf-8")
        assert _urls(scan(tmp_path)) == ["https://www.npmjs.com/package/ok/v/1.2.3"]


class TestPub:

    def test_dependencies(self, tmp_path):
        (tmp_path / "pubspec.yaml").write_text(
            "name: app\n"
            "dependencies:\n"
            "  flutter:\n"
            "    sdk: flutter\n"
            "  http: ^1.1.0\n"
            "  provider:\n"
            "    version: ^6.0.0\n"
            "  local_pkg:\n"
            "    path: ../local_pkg\n"
            "  forked:\n"
            "    git: https://github.com/a/forked.git\n"
            "dev_dependencies:\n"
            "  flutter_test:\n"
            "    sdk: flutter\n"
            "  mockito: 5.4.4\n",
            encoding="utf-8",
        )
        assert _urls(scan(tmp_path)) == [
            "https://pub.dev/packages/http/versions/1.1.0",
            "https://pub.dev/packages/provider/versions/6.0.0",
            "https://pub.dev/packages/mockito/versions/5.4.4",
        ]

    def test_unversioned_dependency_is_latest(self, tmp_path):
        (tmp_path / "pubspec.yaml").write_text("dependencies:\n  path:\n", encoding="utf-8")
        assert _urls(scan(tmp_path)) == ["https://pub.dev/packages/path/versions/latest"]


class TestGoMod:
    GO_MOD = """
module example.com/foo

go 1.21

require (
    github.com/gin-gonic/gin v1.9.1
    golang.org/x/net v0.10.0 // indirect
)

require github.com/stretchr/testify v1.8.4
require golang.org/x/text v0.14.0 // indirect
"""

    def test_direct_requirements(self, tmp_path):
        (tmp_path / "go.mod").write_text(self.GO_MOD, encoding="utf-8")
        assert _urls(scan(tmp_path)) == [
            "https://pkg.go.dev/github.com/gin-gonic/gin@v1.9.1",
            "https://pkg.go.dev/github.com/stretchr/testify@v1.8.4",
        ]


class TestScan:

    def test_empty_project(self, tmp_path):
        assert scan(tmp_path) == []

    def test_all_ecosystems_in_order(self, tmp_path):
        (tmp_path / "package.json").write_text('{"dependencies": {"axios": "1.0.0"}}', encoding="utf-8")
        (tmp_path / "pubspec.yaml").write_text("dependencies:\n  http: 1.1.0\n", encoding="utf-8")
        (tmp_path / "go.mod").write_text("module m\n\nrequire github.com/a/b v1.0.0\n", encoding="utf-8")
        assert _urls(scan(tmp_path)) == [
            "https://www.npmjs.com/package/axios/v/1.0.0",
            "https://pub.dev/packages/http/versions/1.1.0",
            "https://pkg.go.dev/github.com/a/b@v1.0.0",
        ]

    def test_malformed_manifest_skipped(self, tmp_path, caplog):
        (tmp_path / "package.json").write_text("{not json", encoding="utf-8")
        (tmp_path / "go.mod").write_text("require github.com/a/b v1.0.0\n", encoding="utf-8")
        with caplog.at_level(logging.ERROR, logger="skills_crawler.dependency_scanner"):
            rules = scan(tmp_path)
        assert _urls(rules) == ["https://pkg.go.dev/github.com/a/b@v1.0.0"]
        assert "package.json" in caplog.text
