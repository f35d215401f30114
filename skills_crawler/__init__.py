"""
Agent Skills Crawler Package
Crawls documentation sites according to declarative scope rules and writes
each page as a Markdown skill document with YAML frontmatter.

CLI Usage:
    python -m skills_crawler [crawl|clean|scan] [options]

    Options:
        --settings            Configuration document (default: skills.yaml)
        --config              Plain-text rule file (default: .skillscontext)
        --output              Output directory (default: .skillscache)
        --flat                One directory per page
        --rename              Fixed skill file name
        --workers             Concurrent workers (default: 4)
        --scan-dependencies   Add rules for a project's dependencies
"""

from .crawler import CrawlContext, CrawlResult, CrawlTarget, SkillsCrawler, TargetResult, TargetState, crawl_skills
from .dependency_scanner import scan
from .extractor import ContentExtractor, ExtractedPage, extract_content, extract_links, render_markdown
from .frontmatter import SkillDocument, read_last_modified, render_skill_document
from .paths import OutputLocation, derive_output_location
from .rules import RuleConfig, RuleSet, ScopeRule, compile_rules, is_visitable
from .run_config import SkillsRunConfig, load_run_config
from .scope_filter import is_within_scope

__all__ = [
    'SkillsCrawler',
    'CrawlContext',
    'CrawlResult',
    'CrawlTarget',
    'TargetResult',
    'TargetState',
    'crawl_skills',
    # Rules
    'RuleConfig',
    'RuleSet',
    'ScopeRule',
    'compile_rules',
    'is_visitable',
    'is_within_scope',
    # Output
    'OutputLocation',
    'derive_output_location',
    'SkillDocument',
    'render_skill_document',
    'read_last_modified',
    # Extraction
    'ContentExtractor',
    'ExtractedPage',
    'extract_content',
    'extract_links',
    'render_markdown',
    # Configuration
    'SkillsRunConfig',
    'load_run_config',
    'scan',
]

__version__ = '1.0.0'
