"""Tests for shortcode parsing and expansion."""

from pathlib import Path

import pytest
from jinja2 import DictLoader, Environment, FileSystemLoader

from quire.render.markup import markdown_to_html
from quire.render.services import BUILTIN_LAYOUTS
from quire.render.shortcodes import ShortcodeProcessor, find_tags, parse_args
from quire.shared.errors import ShortcodeError


@pytest.fixture
def processor() -> ShortcodeProcessor:
    env = Environment(
        loader=DictLoader(
            {
                "shortcodes/figure.html": '<figure><img src="{{ args.src }}"></figure>',
                "shortcodes/box.html": '<div class="box">{{ inner | safe }}</div>',
                "shortcodes/raw.html": "<pre>{{ inner }}</pre>",
                "shortcodes/first.html": "<b>{{ positional[0] }}</b>",
                "shortcodes/whoami.html": "<i>{{ page.title }}</i>",
            }
        ),
        autoescape=True,
    )
    return ShortcodeProcessor(env, markdown_to_html)


class TestParseArgs:
    def test_named(self):
        named, positional = parse_args(' src="a b.jpg" caption=\'Hi\' width=300 ')
        assert named == {"src": "a b.jpg", "caption": "Hi", "width": "300"}
        assert positional == []

    def test_positional(self):
        named, positional = parse_args('"one two" three')
        assert named == {}
        assert positional == ["one two", "three"]

    def test_escaped_quote(self):
        named, _ = parse_args(r'title="say \"hi\""')
        assert named == {"title": 'say "hi"'}

    def test_mixed_is_rejected(self):
        with pytest.raises(ShortcodeError, match="cannot mix"):
            parse_args('src="a.jpg" extra')


class TestFindTags:
    def test_open_close_and_self_closing(self):
        tags = find_tags('{{< box >}}x{{< /box >}} {{% figure src="a" /%}}')
        assert [(t.name, t.closing, t.self_closing, t.markdown) for t in tags] == [
            ("box", False, False, False),
            ("box", True, False, False),
            ("figure", False, True, True),
        ]

    def test_escaped_tag_is_literal(self):
        (tag,) = find_tags('{{</* figure src="a" */>}}')
        assert tag.literal == '{{< figure src="a" >}}'

    def test_mismatched_delimiters(self):
        with pytest.raises(ShortcodeError, match="mismatched"):
            find_tags("{{< box %}}")

    def test_invalid_name(self):
        with pytest.raises(ShortcodeError, match="invalid shortcode name"):
            find_tags("{{< b@d >}}")


class TestExpand:
    def test_standalone_shortcode_replaces_paragraph(self, processor: ShortcodeProcessor):
        html = processor.expand('Intro.\n\n{{< figure src="me.jpg" >}}\n\nOutro.', {})
        assert '<figure><img src="me.jpg"></figure>' in html
        assert "<p><figure>" not in html
        assert "QSC" not in html

    def test_angle_inner_is_verbatim(self, processor: ShortcodeProcessor):
        html = processor.expand("{{< box >}}*not emphasis*{{< /box >}}", {})
        assert '<div class="box">*not emphasis*</div>' in html

    def test_percent_inner_is_markdown(self, processor: ShortcodeProcessor):
        html = processor.expand("{{% box %}}*emphasis*{{% /box %}}", {})
        assert "<em>emphasis</em>" in html

    def test_inner_is_escaped_by_template(self, processor: ShortcodeProcessor):
        html = processor.expand("{{< raw >}}<b>{{< /raw >}}", {})
        assert "<pre>&lt;b&gt;</pre>" in html

    def test_positional_args(self, processor: ShortcodeProcessor):
        html = processor.expand('{{< first "hello" >}}', {})
        assert "<b>hello</b>" in html

    def test_nested_shortcodes(self, processor: ShortcodeProcessor):
        html = processor.expand('{{< box >}}{{< figure src="a.jpg" >}}{{< /box >}}', {})
        assert '<div class="box"><figure><img src="a.jpg"></figure></div>' in html

    def test_same_name_nesting(self, processor: ShortcodeProcessor):
        html = processor.expand("{{% box %}}a{{% box %}}b{{% /box %}}{{% /box %}}", {})
        assert html.count('class="box"') == 2
        assert "QSC" not in html

    def test_context_is_passed(self, processor: ShortcodeProcessor):
        page = {"title": "Hello"}
        assert "<i>Hello</i>" in processor.expand("{{< whoami >}}", {"page": page})

    def test_escaped_shortcode_is_not_rendered(self, processor: ShortcodeProcessor):
        html = processor.expand('{{</* figure src="a.jpg" */>}}', {})
        assert "<figure>" not in html
        assert "figure src=" in html

    def test_unknown_shortcode(self, processor: ShortcodeProcessor):
        with pytest.raises(ShortcodeError, match="unknown shortcode 'nope'"):
            processor.expand("{{< nope >}}", {})

    def test_stray_closing_tag(self, processor: ShortcodeProcessor):
        with pytest.raises(ShortcodeError, match="without an opening tag"):
            processor.expand("{{< /box >}}", {})

    def test_unclosed_tag_renders_without_inner(self, processor: ShortcodeProcessor):
        html = processor.expand('{{< figure src="x.png" >}} trailing', {})
        assert '<img src="x.png">' in html
        assert "trailing" in html

    def test_text_without_shortcodes(self, processor: ShortcodeProcessor):
        protected = processor.protect("plain *text*", {})
        assert protected.text == "plain *text*"
        assert protected.blocks == {}


class TestBuiltinShortcodes:
    @pytest.fixture
    def builtin(self) -> ShortcodeProcessor:
        env = Environment(loader=FileSystemLoader(str(BUILTIN_LAYOUTS)), autoescape=True)
        return ShortcodeProcessor(env, markdown_to_html)

    def test_figure(self, builtin: ShortcodeProcessor):
        html = builtin.expand('{{< figure src="me.jpg" caption="Hello" >}}', {})
        assert '<img src="me.jpg" alt="Hello">' in html
        assert "<figcaption>Hello</figcaption>" in html

    def test_figure_positional_src(self, builtin: ShortcodeProcessor):
        html = builtin.expand('{{< figure "me.jpg" >}}', {})
        assert '<img src="me.jpg" alt="">' in html
        assert "figcaption" not in html

    def test_profile(self, builtin: ShortcodeProcessor):
        html = builtin.expand(
            '{{% profile name="Ada" image="ada.png" %}}Writes *code*.{{% /profile %}}', {}
        )
        assert '<div class="profile">' in html
        assert '<img src="ada.png" alt="Ada">' in html
        assert "<h2>Ada</h2>" in html
        assert "<em>code</em>" in html

    def test_builtin_dir_exists(self):
        assert (Path(BUILTIN_LAYOUTS) / "shortcodes" / "figure.html").is_file()
