"""Tests for content domain models."""

from datetime import date
from pathlib import Path

from quire.content.models import (
    MORE_MARKER,
    BundleResource,
    ContentEntry,
    EntryKind,
    PublishPolicy,
)


def _entry(**kwargs) -> ContentEntry:
    defaults = {"title": "Hello", "slug": "hello", "rel_dir": "posts", "section": "posts"}
    defaults.update(kwargs)
    return ContentEntry(**defaults)


class TestEntryKind:
    def test_enum_values(self):
        assert EntryKind.HOME == "home"
        assert EntryKind.SECTION == "section"
        assert EntryKind.PAGE == "page"


class TestOutputPath:
    def test_page_uses_pretty_url(self):
        entry = _entry()
        assert entry.output_path == "posts/hello/index.html"
        assert entry.permalink == "/posts/hello/"

    def test_top_level_page(self):
        entry = _entry(slug="about", rel_dir="", section="")
        assert entry.output_path == "about/index.html"
        assert entry.permalink == "/about/"

    def test_home(self):
        entry = _entry(kind=EntryKind.HOME, slug="", rel_dir="", section="")
        assert entry.output_path == "index.html"
        assert entry.permalink == "/"

    def test_section(self):
        entry = _entry(kind=EntryKind.SECTION, slug="posts")
        assert entry.output_path == "posts/index.html"
        assert entry.permalink == "/posts/"

    def test_url_override_directory(self):
        entry = _entry(url="/custom/place/")
        assert entry.output_dir == "custom/place"
        assert entry.output_path == "custom/place/index.html"

    def test_url_override_file(self):
        entry = _entry(url="/legacy/page.html")
        assert entry.output_path == "legacy/page.html"
        assert entry.permalink == "/legacy/page.html"
        assert entry.output_dir == "legacy"


class TestSummary:
    def test_front_matter_summary_wins(self):
        entry = _entry(summary="Given.", body=f"Intro.\n\n{MORE_MARKER}\n\nRest.")
        assert entry.summary_markdown == "Given."

    def test_more_marker(self):
        entry = _entry(body=f"First part.\n\nSecond part.\n{MORE_MARKER}\nHidden.")
        assert entry.summary_markdown == "First part.\n\nSecond part."

    def test_first_paragraph_skips_headings(self):
        entry = _entry(body="# Title\n\nOpening paragraph.\n\nMore.")
        assert entry.summary_markdown == "Opening paragraph."

    def test_empty_body(self):
        assert _entry(body="").summary_markdown == ""


class TestReadingTime:
    def test_empty_body_is_zero(self):
        assert _entry(body="   ").reading_time == 0

    def test_short_body_is_one_minute(self):
        assert _entry(body="just a few words").reading_time == 1

    def test_rounds_up(self):
        body = " ".join(["word"] * 401)
        entry = _entry(body=body)
        assert entry.word_count == 401
        assert entry.reading_time == 3


class TestAuthorsAndTerms:
    def test_author_joins_authors(self):
        entry = _entry(authors=("Ada", "Grace"))
        assert entry.author == "Ada, Grace"

    def test_terms_for_tags_and_categories(self):
        entry = _entry(tags=("python",), categories=("notes",))
        assert entry.terms("tags") == ("python",)
        assert entry.terms("categories") == ("notes",)

    def test_terms_from_params(self):
        entry = _entry(params={"series": "Intro", "topics": ["a", "b"]})
        assert entry.terms("series") == ("Intro",)
        assert entry.terms("topics") == ("a", "b")
        assert entry.terms("missing") == ()

    def test_terms_from_scalar_params(self):
        entry = _entry(params={"series": 3, "featured": True, "empty": None})
        assert entry.terms("series") == ("3",)
        assert entry.terms("featured") == ("True",)
        assert entry.terms("empty") == ()


class TestBundle:
    def test_is_bundle(self):
        entry = _entry(source_path=Path("content/posts/hello/index.md"))
        assert entry.is_bundle is True

    def test_plain_file_is_not_bundle(self):
        entry = _entry(source_path=Path("content/posts/hello.md"))
        assert entry.is_bundle is False

    def test_resource_model(self):
        res = BundleResource(source=Path("/x/cover.jpg"), name="cover.jpg")
        assert res.name == "cover.jpg"


class TestPublishPolicy:
    def test_drafts_excluded_by_default(self):
        policy = PublishPolicy()
        assert policy.is_published(_entry(draft=True)) is False
        assert policy.is_published(_entry()) is True

    def test_drafts_included_when_enabled(self):
        policy = PublishPolicy(include_drafts=True)
        assert policy.is_published(_entry(draft=True)) is True

    def test_future_included_by_default(self):
        policy = PublishPolicy(now=date(2024, 1, 1))
        assert policy.is_published(_entry(date=date(2030, 1, 1))) is True

    def test_future_excluded_when_disabled(self):
        policy = PublishPolicy(include_future=False, now=date(2024, 1, 1))
        assert policy.is_published(_entry(date=date(2030, 1, 1))) is False
        assert policy.is_published(_entry(date=date(2024, 1, 1))) is True
        assert policy.is_published(_entry()) is True
