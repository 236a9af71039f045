"""
Quillpost Backend — Media Embed Syntax
=======================================

What:  The `@[type](url)` Markdown embed token and its HTML block form.
How:   Markdown → HTML expands each token into a `div.media-embed.<type>-embed`
       block; HTML → Markdown reads the provider back from the secondary class
       and the URL from the nested iframe or anchor.
Who:   format_converter (both directions) and document_tree (mediaEmbed nodes).

Providers:
    youtube    → iframe https://www.youtube.com/embed/<id>
    vimeo      → iframe https://player.vimeo.com/video/<id>
    twitter    → blockquote.twitter-tweet + widgets.js
    instagram  → blockquote.instagram-media + embed.js
    generic    → bare iframe on the given URL
"""

import html
import re
from enum import Enum
from typing import Iterable, Optional
from urllib.parse import parse_qs, urlparse

from bs4 import Tag


class EmbedType(str, Enum):
    YOUTUBE = "youtube"
    VIMEO = "vimeo"
    TWITTER = "twitter"
    INSTAGRAM = "instagram"
    GENERIC = "generic"


EMBED_CLASS = "media-embed"

# @[youtube](https://youtu.be/abc123) tokens, plus fenced blocks and backtick
# spans matched ahead of them so tokens inside code are consumed verbatim
_CODE_OR_TOKEN_RE = re.compile(
    r"(?P<fence>^ {0,3}(?P<marker>`{3,}|~{3,})[^\n]*\n.*?(?:^ {0,3}(?P=marker)[ \t]*$|\Z))"
    r"|(?P<span>(?P<ticks>`+)[^`](?:(?!\n[ \t]*\n).)*?(?<!`)(?P=ticks)(?!`))"
    r"|@\[(?P<type>youtube|vimeo|twitter|instagram|generic)\]\((?P<url>[^)\s]+)\)",
    re.M | re.S,
)

_YOUTUBE_ID_RE = re.compile(r"(?:v=|youtu\.be/|/embed/|/shorts/)([^&?/#]+)")


def embed_type_for(classes: Iterable[str]) -> EmbedType:
    """Provider named by the secondary `<type>-embed` class, else generic."""
    names = set(classes)
    for embed_type in (EmbedType.YOUTUBE, EmbedType.VIMEO, EmbedType.TWITTER, EmbedType.INSTAGRAM):
        if f"{embed_type.value}-embed" in names:
            return embed_type
    return EmbedType.GENERIC


def is_media_embed(el: Tag) -> bool:
    return EMBED_CLASS in (el.get("class") or [])


def embed_source(el: Tag) -> Optional[str]:
    """URL of an embed block: nested iframe src first, then nested anchor href."""
    iframe = el.find("iframe")
    if iframe is not None and iframe.get("src"):
        return iframe["src"]
    anchor = el.find("a")
    if anchor is not None and anchor.get("href"):
        return anchor["href"]
    return None


def youtube_video_id(url: str) -> Optional[str]:
    """
    Resolve a YouTube video id.

    Accepts watch URLs (`v=` query parameter), youtu.be short links, and
    /embed/ or /shorts/ paths. Returns None when no id can be found.
    """
    try:
        parsed = urlparse(url)
        host = parsed.hostname or ""
    except ValueError:
        parsed, host = None, ""

    if parsed is not None:
        if "youtu.be" in host:
            video_id = parsed.path.lstrip("/").split("/")[0]
            if video_id:
                return video_id
        elif "youtube.com" in host:
            ids = parse_qs(parsed.query).get("v")
            if ids and ids[0]:
                return ids[0]

    match = _YOUTUBE_ID_RE.search(url)
    return match.group(1) if match else None


def vimeo_video_id(url: str) -> Optional[str]:
    video_id = url.split("/")[-1]
    return video_id or None


def render_embed(embed_type: EmbedType, url: str) -> Optional[str]:
    """
    HTML block for one embed token, or None when the URL cannot be resolved.

    Blocks are emitted without blank lines inside so Markdown treats each one
    as a single raw HTML block.
    """
    src = html.escape(url, quote=True)

    if embed_type is EmbedType.YOUTUBE:
        video_id = youtube_video_id(url)
        if not video_id:
            return None
        return (
            '<div class="media-embed youtube-embed">\n'
            f'<iframe src="https://www.youtube.com/embed/{html.escape(video_id, quote=True)}" '
            'frameborder="0" allow="accelerometer; autoplay; clipboard-write; '
            'encrypted-media; gyroscope; picture-in-picture" allowfullscreen></iframe>\n'
            "</div>"
        )

    if embed_type is EmbedType.VIMEO:
        video_id = vimeo_video_id(url)
        if not video_id:
            return None
        return (
            '<div class="media-embed vimeo-embed">\n'
            f'<iframe src="https://player.vimeo.com/video/{html.escape(video_id, quote=True)}" '
            'frameborder="0" allow="autoplay; fullscreen; picture-in-picture" allowfullscreen></iframe>\n'
            "</div>"
        )

    if embed_type is EmbedType.TWITTER:
        return (
            '<div class="media-embed twitter-embed">\n'
            f'<blockquote class="twitter-tweet"><a href="{src}"></a></blockquote>\n'
            '<script async src="https://platform.twitter.com/widgets.js" charset="utf-8"></script>\n'
            "</div>"
        )

    if embed_type is EmbedType.INSTAGRAM:
        return (
            '<div class="media-embed instagram-embed">\n'
            f'<blockquote class="instagram-media" data-instgrm-permalink="{src}"><a href="{src}"></a></blockquote>\n'
            '<script async src="//www.instagram.com/embed.js"></script>\n'
            "</div>"
        )

    return (
        '<div class="media-embed generic-embed">\n'
        f'<iframe src="{src}" frameborder="0" allowfullscreen></iframe>\n'
        "</div>"
    )


def expand_embed_tokens(markdown: str) -> str:
    """
    Replace every resolvable `@[type](url)` token with its HTML block.

    Tokens inside fenced code blocks or backtick code spans are left as text.
    """

    def _replace(match: re.Match) -> str:
        if match.group("type") is None:
            return match.group(0)
        block = render_embed(EmbedType(match.group("type")), match.group("url"))
        if block is None:
            return match.group(0)
        return f"\n\n{block}\n\n"

    return _CODE_OR_TOKEN_RE.sub(_replace, markdown)


def embed_token(embed_type: EmbedType, url: str) -> str:
    return f"@[{embed_type.value}]({url})"
