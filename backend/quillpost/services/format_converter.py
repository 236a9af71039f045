"""
Quillpost Backend — Format Converter
=====================================

What:  Conversion between the three content representations the editor uses
       at rest and in transit: HTML, the structured document tree ("json"),
       and Markdown.
How:   HTML is the canonical intermediate. HTML → Markdown runs markdownify
       with editor-specific rules; Markdown → HTML runs markdown-it-py with
       raw HTML passthrough; the tree side lives in document_tree.
Who:   The convert route, TiptapEditor-style import/export on the editor side,
       and the auto-save controller when recovering structured content.

Failure policy:
    to_structured / to_html / to_markdown / from_markdown never raise; they
    log and return an empty value. convert() raises FormatError only for an
    unknown format name, non-text input to a text format, or malformed JSON text.

HTML → Markdown rules (first match wins):
    1. <pre><code>      → fenced block, language from data-language or language-xxx
    2. <img>            → ![alt](src) <!-- width="W" height="H" position="P" -->
    3. <a href>         → [text](href) / [text](href "title")
    4. .media-embed     → @[type](url), or the original markup as raw HTML
"""

import json
import logging
import math
import re
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

from bs4 import BeautifulSoup
from markdown_it import MarkdownIt
from markdownify import ATX, MarkdownConverter, chomp

from quillpost.config import settings
from quillpost.exceptions import FormatError
from quillpost.services.document_tree import empty_doc, parse_html, render_html
from quillpost.services.embeds import (
    embed_source,
    embed_token,
    embed_type_for,
    expand_embed_tokens,
    is_media_embed,
)

logger = logging.getLogger(__name__)

STRUCTURED_VERSION = "1.0"

Content = Union[str, Dict[str, Any]]


class ContentFormat(str, Enum):
    """Closed set of content representations."""
    HTML = "html"
    JSON = "json"
    MARKDOWN = "markdown"

    @classmethod
    def parse(cls, value: Union[str, "ContentFormat"]) -> "ContentFormat":
        try:
            return cls(value)
        except ValueError:
            raise FormatError(
                message=f"Unsupported content format '{value}'. Use html, json or markdown.",
                fmt=str(value),
            )


# ══════════════════════════════════════════════════════════════════════════
# Text Statistics
# ══════════════════════════════════════════════════════════════════════════


def word_count(html: Optional[str]) -> int:
    """Words in the tag-stripped text of an HTML fragment."""
    if not html:
        return 0
    text = BeautifulSoup(html, "html.parser").get_text(separator=" ")
    return len([token for token in text.split() if token])


def reading_time(html: Optional[str], words_per_minute: Optional[int] = None) -> int:
    """Reading time in whole minutes, rounded up."""
    wpm = words_per_minute or settings.reading_words_per_minute
    return math.ceil(word_count(html) / wpm)


# ══════════════════════════════════════════════════════════════════════════
# HTML ⇄ Structured Tree
# ══════════════════════════════════════════════════════════════════════════


def to_structured(html: Optional[str]) -> Dict[str, Any]:
    """
    Parse HTML into a structured doc with a `meta` block attached.

    Returns an empty doc (no meta) for empty input or on any parse error.
    """
    if not html:
        return empty_doc()
    try:
        doc = parse_html(html)
        doc["meta"] = {
            "version": STRUCTURED_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "wordCount": word_count(html),
            "readingTime": reading_time(html),
        }
        return doc
    except Exception as e:
        logger.error("Error converting HTML to structured document: %s", str(e), exc_info=True)
        return empty_doc()


def to_html(structured: Optional[Dict[str, Any]]) -> str:
    """Render a structured doc, or a wrapper holding it under `doc`, to HTML."""
    if not structured:
        return ""
    try:
        document = structured
        if "type" not in document and isinstance(document.get("doc"), dict):
            document = document["doc"]
        return render_html(document)
    except Exception as e:
        logger.error("Error converting structured document to HTML: %s", str(e), exc_info=True)
        return ""


# ══════════════════════════════════════════════════════════════════════════
# HTML → Markdown
# ══════════════════════════════════════════════════════════════════════════


def _style_declarations(style: str) -> Dict[str, str]:
    declarations = {}
    for part in style.split(";"):
        if ":" not in part:
            continue
        key, _, value = part.partition(":")
        declarations[key.strip().lower()] = value.strip().lower()
    return declarations


def image_position(style: Optional[str]) -> Optional[str]:
    """left / right / center from an inline style, or None."""
    if not style:
        return None
    declarations = _style_declarations(style)
    if declarations.get("float") == "left":
        return "left"
    if declarations.get("float") == "right":
        return "right"
    if declarations.get("margin-left") == "auto" and declarations.get("margin-right") == "auto":
        return "center"
    return None


def _code_language(pre) -> str:
    language = pre.get("data-language") or ""
    if not language:
        code = pre.find("code")
        for cls in (code.get("class") or []) if code is not None else []:
            match = re.match(r"language-(\w+)", cls)
            if match:
                language = match.group(1)
                break
    if language == "plaintext":
        return ""
    return language


class EditorMarkdownConverter(MarkdownConverter):
    """markdownify converter carrying the editor's code, image and link rules."""

    def __init__(self, **options):
        options.setdefault("heading_style", ATX)
        options.setdefault("bullets", "-")
        options.setdefault("strong_em_symbol", "*")
        super().__init__(**options)

    def convert_pre(self, el, text, parent_tags=None):
        if not text:
            return ""
        return f"\n\n```{_code_language(el)}\n{text.rstrip(chr(10))}\n```\n\n"

    def convert_img(self, el, text, parent_tags=None):
        markdown = f"![{el.get('alt') or ''}]({el.get('src') or ''})"

        attributes = []
        if el.get("width"):
            attributes.append(f'width="{el.get("width")}"')
        if el.get("height"):
            attributes.append(f'height="{el.get("height")}"')
        position = image_position(el.get("style"))
        if position:
            attributes.append(f'position="{position}"')

        if attributes:
            markdown += f" <!-- {' '.join(attributes)} -->"
        return markdown

    def convert_a(self, el, text, parent_tags=None):
        href = el.get("href")
        if not href:
            return text
        prefix, suffix, text = chomp(text)
        if not text:
            return ""
        title = el.get("title")
        if title:
            escaped = title.replace('"', r"\"")
            return f'{prefix}[{text}]({href} "{escaped}"){suffix}'
        return f"{prefix}[{text}]({href}){suffix}"


def _replace_embeds(soup: BeautifulSoup) -> Dict[str, str]:
    """
    Swap every outermost .media-embed element for a placeholder paragraph.

    Returns placeholder → Markdown replacement. Placeholders are plain
    alphanumerics so markdownify passes them through unescaped.
    """
    replacements: Dict[str, str] = {}
    embeds = soup.find_all(is_media_embed)
    for index, el in enumerate(embeds):
        if any(is_media_embed(parent) for parent in el.parents if parent.name):
            continue
        url = embed_source(el)
        if url:
            replacement = embed_token(embed_type_for(el.get("class") or []), url)
        else:
            replacement = str(el)
        placeholder = f"QUILLPOSTEMBED{index}X"
        replacements[placeholder] = replacement

        paragraph = soup.new_tag("p")
        paragraph.string = placeholder
        el.replace_with(paragraph)
    return replacements


def to_markdown(html: Optional[str]) -> str:
    """Render HTML to Markdown; returns "" on error."""
    if not html:
        return ""
    try:
        soup = BeautifulSoup(html, "html.parser")
        replacements = _replace_embeds(soup)
        markdown = EditorMarkdownConverter().convert_soup(soup)
        for placeholder, replacement in replacements.items():
            markdown = markdown.replace(placeholder, replacement)
        return re.sub(r"\n{3,}", "\n\n", markdown).strip()
    except Exception as e:
        logger.error("Error converting HTML to Markdown: %s", str(e), exc_info=True)
        return ""


# ══════════════════════════════════════════════════════════════════════════
# Markdown → HTML
# ══════════════════════════════════════════════════════════════════════════

_IMAGE_METADATA_RE = re.compile(r"<img([^>]*?)\s*/?>\s*<!--(.*?)-->", re.S)
_METADATA_ATTR_RE = re.compile(r'(\w+)="([^"]*)"')

_POSITION_STYLES = {
    "left": "float: left; margin-right: 1rem; margin-bottom: 0.5rem;",
    "right": "float: right; margin-left: 1rem; margin-bottom: 0.5rem;",
    "center": "display: block; margin-left: auto; margin-right: auto;",
}


@lru_cache(maxsize=1)
def markdown_parser() -> MarkdownIt:
    """Built on first use and reused afterwards."""
    logger.debug("Initializing Markdown parser")
    return MarkdownIt("commonmark", {"html": True}).enable(["table", "strikethrough"])


def _expand_image_metadata(html: str) -> str:
    def _replace(match: re.Match) -> str:
        img_attrs, metadata = match.group(1), match.group(2)
        attributes = dict(_METADATA_ATTR_RE.findall(metadata))

        tag = f"<img{img_attrs}"
        if attributes.get("width"):
            tag += f' width="{attributes["width"]}"'
        if attributes.get("height"):
            tag += f' height="{attributes["height"]}"'

        position = attributes.get("position")
        if position:
            style = _POSITION_STYLES.get(position, _POSITION_STYLES["center"])
            if 'style="' in img_attrs:
                tag = re.sub(r'style="([^"]*)"', lambda m: f'style="{m.group(1)}; {style}"', tag, count=1)
            else:
                tag += f' style="{style}"'
        return f"{tag}>"

    return _IMAGE_METADATA_RE.sub(_replace, html)


def from_markdown(markdown: Optional[str]) -> str:
    """
    Render Markdown (with embed tokens and image metadata comments) to HTML.

    Returns "" on error.
    """
    if not markdown:
        return ""
    try:
        expanded = expand_embed_tokens(markdown)
        html = markdown_parser().render(expanded)
        return _expand_image_metadata(html)
    except Exception as e:
        logger.error("Error converting Markdown to HTML: %s", str(e), exc_info=True)
        return ""


# ══════════════════════════════════════════════════════════════════════════
# Generic Entry Point
# ══════════════════════════════════════════════════════════════════════════


def _empty(fmt: ContentFormat) -> Content:
    if fmt is ContentFormat.JSON:
        return empty_doc()
    return ""


def _decode_structured(content: Content) -> Dict[str, Any]:
    if isinstance(content, dict):
        return content
    try:
        decoded = json.loads(content)
    except (TypeError, ValueError) as e:
        raise FormatError(message="Structured content is not valid JSON", fmt="json", context={"error": str(e)})
    if not isinstance(decoded, dict):
        raise FormatError(message="Structured content must be a JSON object", fmt="json")
    return decoded


def _require_text(content: Content, fmt: ContentFormat) -> str:
    if not isinstance(content, str):
        raise FormatError(message=f"{fmt.value} content must be text", fmt=fmt.value)
    return content


def convert(
    content: Content,
    from_format: Union[str, ContentFormat],
    to_format: Union[str, ContentFormat],
) -> Content:
    """
    Convert content between formats, going through HTML.

    Identity when both formats are equal. Empty content yields the empty
    value of the target format.
    """
    source = ContentFormat.parse(from_format)
    target = ContentFormat.parse(to_format)

    if source is target:
        return content
    if not content:
        return _empty(target)

    if source is ContentFormat.HTML:
        intermediate = _require_text(content, source)
    elif source is ContentFormat.JSON:
        intermediate = to_html(_decode_structured(content))
    elif source is ContentFormat.MARKDOWN:
        intermediate = from_markdown(_require_text(content, source))
    else:
        raise FormatError(fmt=source.value)

    if target is ContentFormat.HTML:
        return intermediate
    if target is ContentFormat.JSON:
        return to_structured(intermediate)
    if target is ContentFormat.MARKDOWN:
        return to_markdown(intermediate)
    raise FormatError(fmt=target.value)


def supported_formats() -> List[str]:
    return [fmt.value for fmt in ContentFormat]
