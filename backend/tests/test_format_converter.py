"""
Quillpost Backend — Format Converter Tests
===========================================

What we test:
    ✅ HTML → structured → HTML round-trip (attribute-order insensitive)
    ✅ HTML → Markdown → HTML keeps code languages, links, image metadata
    ✅ Embed tokens in both directions, including the YouTube scenario
    ✅ convert() identity, empty input, unknown formats, malformed JSON
    ✅ Word count and reading time
"""

import json

import pytest
from bs4 import BeautifulSoup

from quillpost.exceptions import FormatError
from quillpost.services import format_converter as fc
from quillpost.services.embeds import EmbedType, render_embed
from quillpost.services.format_converter import ContentFormat


def same_html(a: str, b: str) -> bool:
    return BeautifulSoup(a, "html.parser") == BeautifulSoup(b, "html.parser")


YOUTUBE_BLOCK = (
    '<div class="media-embed youtube-embed">'
    '<iframe src="https://www.youtube.com/embed/abc123" frameborder="0" allowfullscreen></iframe>'
    "</div>"
)

RICH_HTML = (
    "<h2>Title</h2>"
    '<p>Hello <strong>bold <em>both</em></strong> and <a href="https://x.io" title="X">link</a></p>'
    "<ul><li><p>one</p></li><li><p>two</p></li></ul>"
    '<ol start="3"><li><p>three</p></li></ol>'
    "<blockquote><p>quoted</p></blockquote>"
    '<pre data-language="python"><code class="language-python">print(1)</code></pre>'
    '<p><img src="a.png" alt="A" width="300" height="200" style="float: left;"></p>'
    "<hr>"
    + YOUTUBE_BLOCK
)


class TestContentFormat:

    def test_parse_known_formats(self):
        assert ContentFormat.parse("html") is ContentFormat.HTML
        assert ContentFormat.parse("json") is ContentFormat.JSON
        assert ContentFormat.parse(ContentFormat.MARKDOWN) is ContentFormat.MARKDOWN

    def test_parse_unknown_format_raises(self):
        with pytest.raises(FormatError) as exc_info:
            ContentFormat.parse("docx")
        assert exc_info.value.context["format"] == "docx"


class TestStructuredRoundTrip:

    def test_rich_document_round_trips(self):
        structured = fc.to_structured(RICH_HTML)
        assert structured["type"] == "doc"
        assert same_html(fc.to_html(structured), RICH_HTML)

    def test_meta_block(self):
        structured = fc.to_structured("<p>one two three</p>")
        meta = structured["meta"]
        assert meta["version"] == "1.0"
        assert meta["wordCount"] == 3
        assert meta["readingTime"] == 1
        assert meta["timestamp"]

    def test_empty_html_gives_empty_doc(self):
        assert fc.to_structured("") == {"type": "doc", "content": []}

    def test_to_html_unwraps_doc_key(self):
        wrapped = {"doc": {"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "hi"}]}]}}
        assert fc.to_html(wrapped) == "<p>hi</p>"

    def test_to_html_fails_soft_on_unknown_node(self):
        assert fc.to_html({"type": "doc", "content": [{"type": "table"}]}) == ""


class TestMarkdown:

    def test_headings_are_atx_and_bullets_dashes(self):
        markdown = fc.to_markdown("<h2>Title</h2><ul><li>one</li><li>two</li></ul>")
        assert markdown.startswith("## Title")
        assert "- one" in markdown
        assert "- two" in markdown

    def test_code_block_language_from_class(self):
        markdown = fc.to_markdown('<pre><code class="language-python">print(1)\n</code></pre>')
        assert markdown == "```python\nprint(1)\n```"

    def test_code_block_language_from_data_attribute(self):
        markdown = fc.to_markdown('<pre data-language="rust"><code>fn main() {}</code></pre>')
        assert markdown.startswith("```rust\n")

    def test_plaintext_language_is_dropped(self):
        markdown = fc.to_markdown('<pre><code class="language-plaintext">x</code></pre>')
        assert markdown == "```\nx\n```"

    def test_image_metadata_comment(self):
        markdown = fc.to_markdown(
            '<p><img src="a.png" alt="A" width="300" height="200" style="float: left;"></p>'
        )
        assert markdown == '![A](a.png) <!-- width="300" height="200" position="left" -->'

    def test_centered_image_position(self):
        markdown = fc.to_markdown(
            '<p><img src="a.png" alt="" style="display:block; margin-left:auto; margin-right:auto"></p>'
        )
        assert 'position="center"' in markdown

    def test_image_without_metadata_has_no_comment(self):
        assert fc.to_markdown('<p><img src="a.png" alt="A"></p>') == "![A](a.png)"

    def test_link_with_title(self):
        markdown = fc.to_markdown('<p><a href="https://x.io" title="X">site</a></p>')
        assert markdown == '[site](https://x.io "X")'

    def test_from_markdown_restores_image_metadata(self):
        html = fc.from_markdown('![A](a.png) <!-- width="300" height="200" position="right" -->')
        img = BeautifulSoup(html, "html.parser").find("img")
        assert img["width"] == "300"
        assert img["height"] == "200"
        assert "float: right" in img["style"]

    def test_markdown_round_trip_preserves_metadata(self):
        html = (
            '<pre><code class="language-js">let a = 1;\n</code></pre>'
            '<p><a href="https://x.io">site</a></p>'
            '<p><img src="a.png" alt="A" width="300" height="200" '
            'style="display: block; margin-left: auto; margin-right: auto;"></p>'
        )
        first = fc.to_markdown(html)
        second = fc.to_markdown(fc.from_markdown(first))
        assert first == second
        assert "```js" in second
        assert "(https://x.io)" in second
        assert 'width="300" height="200" position="center"' in second

    def test_from_markdown_empty(self):
        assert fc.from_markdown("") == ""


class TestEmbeds:

    def test_youtube_token_to_iframe(self):
        html = fc.from_markdown("@[youtube](https://youtu.be/abc123)")
        iframe = BeautifulSoup(html, "html.parser").find("iframe")
        assert iframe["src"] == "https://www.youtube.com/embed/abc123"
        assert "youtube-embed" in iframe.parent["class"]

    def test_youtube_block_back_to_token(self):
        markdown = fc.to_markdown(YOUTUBE_BLOCK)
        assert markdown == "@[youtube](https://www.youtube.com/embed/abc123)"

        # The embed URL resolves to the same video again
        html = fc.from_markdown(markdown)
        assert 'src="https://www.youtube.com/embed/abc123"' in html

    def test_twitter_embed_uses_anchor_href(self):
        html = fc.from_markdown("@[twitter](https://twitter.com/q/status/1)")
        assert "twitter-tweet" in html
        assert fc.to_markdown(html) == "@[twitter](https://twitter.com/q/status/1)"

    def test_vimeo_round_trip(self):
        html = fc.from_markdown("@[vimeo](https://vimeo.com/12345)")
        assert "https://player.vimeo.com/video/12345" in html
        assert fc.to_markdown(html) == "@[vimeo](https://player.vimeo.com/video/12345)"

    @pytest.mark.parametrize(
        "embed_type, url, canonical_url",
        [
            (EmbedType.YOUTUBE, "https://youtu.be/abc123", "https://www.youtube.com/embed/abc123"),
            (EmbedType.VIMEO, "https://vimeo.com/12345", "https://player.vimeo.com/video/12345"),
            (EmbedType.TWITTER, "https://twitter.com/q/status/1", "https://twitter.com/q/status/1"),
            (EmbedType.INSTAGRAM, "https://instagram.com/p/xyz", "https://instagram.com/p/xyz"),
            (EmbedType.GENERIC, "https://maps.example.com/e", "https://maps.example.com/e"),
        ],
    )
    def test_every_provider_round_trips(self, embed_type, url, canonical_url):
        block = render_embed(embed_type, url)

        structured = fc.to_structured(block)
        assert structured["content"][0]["type"] == "mediaEmbed"
        assert same_html(fc.to_html(structured), block)

        token = f"@[{embed_type.value}]({canonical_url})"
        assert fc.to_markdown(fc.from_markdown(f"@[{embed_type.value}]({url})")) == token
        assert fc.to_markdown(fc.from_markdown(token)) == token

    def test_token_in_fenced_code_stays_literal(self):
        html = fc.from_markdown("```\n@[youtube](https://youtu.be/abc123)\n```")
        assert "media-embed" not in html
        assert BeautifulSoup(html, "html.parser").find("code").get_text() == (
            "@[youtube](https://youtu.be/abc123)\n"
        )

    def test_token_in_inline_code_stays_literal(self):
        html = fc.from_markdown("Write `@[youtube](https://youtu.be/abc123)` to embed a video.")
        assert "media-embed" not in html
        assert "<code>@[youtube](https://youtu.be/abc123)</code>" in html

    def test_code_block_mentioning_token_survives_markdown_round_trip(self):
        html = "<pre><code>see @[youtube](https://youtu.be/abc123) here</code></pre>"
        restored = fc.from_markdown(fc.to_markdown(html))
        assert "media-embed" not in restored
        assert "see @[youtube](https://youtu.be/abc123) here" in restored

    def test_token_after_code_still_expands(self):
        html = fc.from_markdown("`inline`\n\n@[generic](https://maps.example.com/e)")
        assert "<code>inline</code>" in html
        assert 'class="media-embed generic-embed"' in html

    def test_embed_without_url_kept_as_raw_html(self):
        html = '<div class="media-embed generic-embed"><p>nothing</p></div>'
        markdown = fc.to_markdown(html)
        assert "media-embed" in markdown
        assert "<p>nothing</p>" in markdown

    def test_structured_doc_recovers_embed_and_code_language(self):
        doc = {
            "type": "doc",
            "content": [
                {"type": "mediaEmbed", "attrs": {"provider": "youtube", "html": YOUTUBE_BLOCK}},
                {
                    "type": "codeBlock",
                    "attrs": {"language": "js"},
                    "content": [{"type": "text", "text": "let a = 1;"}],
                },
            ],
        }
        markdown = fc.to_markdown(fc.to_html(doc))
        assert "@[youtube](https://www.youtube.com/embed/abc123)" in markdown
        assert "```js\nlet a = 1;\n```" in markdown


class TestConvert:

    @pytest.mark.parametrize("fmt", ["html", "json", "markdown"])
    def test_identity(self, fmt):
        content = {"type": "doc", "content": []} if fmt == "json" else "<p>x</p>"
        assert fc.convert(content, fmt, fmt) is content

    def test_unknown_target_format(self):
        with pytest.raises(FormatError):
            fc.convert("<p>x</p>", "html", "rtf")

    def test_unknown_format_checked_before_identity(self):
        with pytest.raises(FormatError):
            fc.convert("x", "rtf", "rtf")

    def test_empty_content_yields_empty_target(self):
        assert fc.convert("", "html", "json") == {"type": "doc", "content": []}
        assert fc.convert("", "markdown", "html") == ""
        assert fc.convert({}, "json", "markdown") == ""

    def test_markdown_to_html(self):
        assert fc.convert("# Hi", "markdown", "html").strip() == "<h1>Hi</h1>"

    def test_json_text_is_decoded(self):
        doc = {"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "hi"}]}]}
        assert fc.convert(json.dumps(doc), "json", "markdown") == "hi"

    def test_malformed_json_text_raises(self):
        with pytest.raises(FormatError):
            fc.convert("{not json", "json", "html")

    def test_non_text_html_raises(self):
        with pytest.raises(FormatError):
            fc.convert({"type": "doc"}, "html", "markdown")

    def test_html_to_json_to_html(self):
        structured = fc.convert("<p>a <em>b</em></p>", ContentFormat.HTML, ContentFormat.JSON)
        assert fc.convert(structured, "json", "html") == "<p>a <em>b</em></p>"


class TestTextStatistics:

    def test_word_count_separates_blocks(self):
        assert fc.word_count("<p>Hello <b>world</b></p><p>again</p>") == 3

    def test_word_count_empty(self):
        assert fc.word_count("") == 0
        assert fc.word_count(None) == 0

    def test_reading_time_rounds_up(self):
        html = "<p>" + " ".join(["word"] * 201) + "</p>"
        assert fc.reading_time(html) == 2
        assert fc.reading_time(html, words_per_minute=300) == 1
        assert fc.reading_time("") == 0
