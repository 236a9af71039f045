"""
Quillpost Backend — Structured Document Tree
=============================================

What:  Parses editor HTML into a typed node tree and renders the tree back.
How:   BeautifulSoup walks the HTML; block elements become block nodes, inline
       formatting becomes marks on text, image and hardBreak nodes. Rendering
       re-opens marks only where adjacent inline nodes stop sharing them, so
       nested markup such as <strong>a<em>b</em></strong> or a linked image
       comes back unchanged.
Who:   format_converter.to_structured / to_html.

Tree shape (ProseMirror-style):
    {"type": "doc", "content": [
        {"type": "heading", "attrs": {"level": 2}, "content": [...]},
        {"type": "paragraph", "content": [
            {"type": "text", "text": "Hello "},
            {"type": "text", "text": "world", "marks": [{"type": "bold"}]},
        ]},
    ]}

Block nodes:  paragraph, heading, blockquote, bulletList, orderedList,
              listItem, codeBlock, horizontalRule, image, mediaEmbed
Inline nodes: text, hardBreak, image
Marks:        bold, italic, strike, code, link
"""

import html
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from quillpost.services.embeds import embed_source, embed_type_for, is_media_embed

Node = Dict[str, Any]
Mark = Dict[str, Any]

_HEADINGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}

_MARK_TAGS = {
    "strong": "bold",
    "b": "bold",
    "em": "italic",
    "i": "italic",
    "s": "strike",
    "del": "strike",
    "strike": "strike",
    "code": "code",
}

_MARK_RENDER = {"bold": "strong", "italic": "em", "strike": "s", "code": "code"}

_IMAGE_ATTRS = ("src", "alt", "title", "width", "height", "style")
_LINK_ATTRS = ("href", "title", "target")

# Containers whose children are lifted into the surrounding block list
_BLOCK_CONTAINERS = {
    "div", "section", "article", "main", "header", "footer", "aside",
    "figure", "body", "html", "nav",
}


def empty_doc() -> Node:
    return {"type": "doc", "content": []}


# ══════════════════════════════════════════════════════════════════════════
# HTML → Tree
# ══════════════════════════════════════════════════════════════════════════


def parse_html(source: str) -> Node:
    """Parse an HTML fragment into a doc node."""
    soup = BeautifulSoup(source, "html.parser")
    return {"type": "doc", "content": _parse_blocks(soup.children)}


def _parse_blocks(children) -> List[Node]:
    blocks: List[Node] = []
    pending: List[Node] = []

    def flush() -> None:
        if pending:
            blocks.append({"type": "paragraph", "content": list(pending)})
            pending.clear()

    for child in children:
        if isinstance(child, Comment):
            continue
        if isinstance(child, NavigableString):
            if str(child).strip() or pending:
                pending.append(_text(str(child), []))
            continue
        if not isinstance(child, Tag):
            continue

        block = _parse_block(child)
        if block is not None:
            flush()
            blocks.append(block)
        elif child.name in _BLOCK_CONTAINERS:
            flush()
            blocks.extend(_parse_blocks(child.children))
        else:
            pending.extend(_parse_inline(child, []))

    flush()
    return blocks


def _parse_block(el: Tag) -> Optional[Node]:
    name = el.name

    if is_media_embed(el):
        return {
            "type": "mediaEmbed",
            "attrs": {
                "provider": embed_type_for(el.get("class") or []).value,
                "src": embed_source(el),
                "html": str(el),
            },
        }
    if name == "p":
        return {"type": "paragraph", "content": _parse_inline_children(el, [])}
    if name in _HEADINGS:
        return {
            "type": "heading",
            "attrs": {"level": _HEADINGS[name]},
            "content": _parse_inline_children(el, []),
        }
    if name == "blockquote":
        return {"type": "blockquote", "content": _parse_blocks(el.children)}
    if name == "ul":
        return {"type": "bulletList", "content": _parse_list_items(el)}
    if name == "ol":
        try:
            start = int(el.get("start", 1))
        except (TypeError, ValueError):
            start = 1
        return {"type": "orderedList", "attrs": {"start": start}, "content": _parse_list_items(el)}
    if name == "pre":
        return _parse_code_block(el)
    if name == "hr":
        return {"type": "horizontalRule"}
    if name == "img":
        return _image(el)
    return None


def _parse_list_items(el: Tag) -> List[Node]:
    items = []
    for child in el.children:
        if isinstance(child, Tag) and child.name == "li":
            items.append({"type": "listItem", "content": _parse_blocks(child.children)})
    return items


def _parse_code_block(el: Tag) -> Node:
    code = el.find("code")
    language = el.get("data-language") or ""
    if not language and code is not None:
        for cls in code.get("class") or []:
            if cls.startswith("language-"):
                language = cls[len("language-"):]
                break
    text = (code if code is not None else el).get_text()
    node: Node = {"type": "codeBlock", "attrs": {"language": language or None}}
    if text:
        node["content"] = [{"type": "text", "text": text}]
    return node


def _image(el: Tag) -> Node:
    attrs = {key: el.get(key) for key in _IMAGE_ATTRS if el.get(key) is not None}
    return {"type": "image", "attrs": attrs}


def _with_marks(node: Node, marks: List[Mark]) -> Node:
    if marks:
        node["marks"] = [dict(mark) for mark in marks]
    return node


def _text(value: str, marks: List[Mark]) -> Node:
    return _with_marks({"type": "text", "text": value}, marks)


def _parse_inline_children(el: Tag, marks: List[Mark]) -> List[Node]:
    nodes: List[Node] = []
    for child in el.children:
        nodes.extend(_parse_inline(child, marks))
    return nodes


def _parse_inline(node, marks: List[Mark]) -> List[Node]:
    if isinstance(node, Comment):
        return []
    if isinstance(node, NavigableString):
        return [_text(str(node), marks)] if str(node) else []
    if not isinstance(node, Tag):
        return []

    name = node.name
    if name == "br":
        return [_with_marks({"type": "hardBreak"}, marks)]
    if name == "img":
        return [_with_marks(_image(node), marks)]
    if name in _MARK_TAGS:
        return _parse_inline_children(node, marks + [{"type": _MARK_TAGS[name]}])
    if name == "a" and node.get("href") is not None:
        attrs = {key: node.get(key) for key in _LINK_ATTRS if node.get(key) is not None}
        return _parse_inline_children(node, marks + [{"type": "link", "attrs": attrs}])
    return _parse_inline_children(node, marks)


# ══════════════════════════════════════════════════════════════════════════
# Tree → HTML
# ══════════════════════════════════════════════════════════════════════════


def render_html(node: Node) -> str:
    """Render a doc node (or any block node) to an HTML fragment."""
    kind = node.get("type")
    attrs = node.get("attrs") or {}
    content = node.get("content") or []

    if kind == "doc":
        return "".join(render_html(child) for child in content)
    if kind == "paragraph":
        return f"<p>{_render_inline(content)}</p>"
    if kind == "heading":
        level = int(attrs.get("level", 1))
        return f"<h{level}>{_render_inline(content)}</h{level}>"
    if kind == "blockquote":
        return f"<blockquote>{_render_blocks(content)}</blockquote>"
    if kind == "bulletList":
        return f"<ul>{_render_blocks(content)}</ul>"
    if kind == "orderedList":
        start = int(attrs.get("start", 1) or 1)
        opening = "<ol>" if start == 1 else f'<ol start="{start}">'
        return f"{opening}{_render_blocks(content)}</ol>"
    if kind == "listItem":
        return f"<li>{_render_blocks(content)}</li>"
    if kind == "codeBlock":
        language = attrs.get("language")
        text = "".join(child.get("text", "") for child in content)
        if language:
            # Same markup the editor emits for a code block with a language
            opening = f'<pre data-language="{_attr(language)}"><code class="language-{_attr(language)}">'
        else:
            opening = "<pre><code>"
        return f"{opening}{html.escape(text, quote=False)}</code></pre>"
    if kind == "horizontalRule":
        return "<hr>"
    if kind == "mediaEmbed":
        return attrs.get("html") or ""
    if kind in ("image", "hardBreak", "text"):
        return _render_inline([node])
    raise ValueError(f"Unknown node type: {kind!r}")


def _render_blocks(nodes: List[Node]) -> str:
    return "".join(render_html(child) for child in nodes)


def _attr(value: Any) -> str:
    return html.escape(str(value), quote=True)


def _open_mark(mark: Mark) -> str:
    if mark["type"] == "link":
        attrs = mark.get("attrs") or {}
        rendered = "".join(
            f' {key}="{_attr(attrs[key])}"' for key in _LINK_ATTRS if attrs.get(key) is not None
        )
        return f"<a{rendered}>"
    return f"<{_MARK_RENDER[mark['type']]}>"


def _close_mark(mark: Mark) -> str:
    if mark["type"] == "link":
        return "</a>"
    return f"</{_MARK_RENDER[mark['type']]}>"


def _render_inline(nodes: List[Node]) -> str:
    out: List[str] = []
    active: List[Mark] = []

    def close_from(index: int) -> None:
        while len(active) > index:
            out.append(_close_mark(active.pop()))

    def apply(marks: List[Mark]) -> None:
        shared = 0
        while shared < min(len(active), len(marks)) and active[shared] == marks[shared]:
            shared += 1
        close_from(shared)
        for mark in marks[shared:]:
            out.append(_open_mark(mark))
            active.append(mark)

    for node in nodes:
        kind = node.get("type")
        if kind == "text":
            apply(node.get("marks") or [])
            out.append(html.escape(node.get("text", ""), quote=False))
        elif kind == "hardBreak":
            apply(node.get("marks") or [])
            out.append("<br>")
        elif kind == "image":
            apply(node.get("marks") or [])
            attrs = node.get("attrs") or {}
            rendered = "".join(
                f' {key}="{_attr(attrs[key])}"' for key in _IMAGE_ATTRS if attrs.get(key) is not None
            )
            out.append(f"<img{rendered}>")
        else:
            close_from(0)
            out.append(render_html(node))

    close_from(0)
    return "".join(out)
