from __future__ import annotations

import html
import re
from html.parser import HTMLParser
from urllib.parse import urlsplit

"""Allow-list HTML sanitizer for post content, and plain-text cleanup.

Policy for post content:
- tags outside ALLOWED_TAGS are removed, their text is kept
- the whole content of DROP_CONTENT_TAGS (script, style, ...) is removed
- only per-tag attributes plus GLOBAL_ATTRS survive, never ``on*`` handlers
- URL attributes must be relative or use a SAFE_SCHEMES scheme
- comments, doctypes and processing instructions are dropped
"""

__all__ = [
    "ALLOWED_TAGS",
    "sanitize_html",
    "sanitize_text",
]

ALLOWED_TAGS: dict[str, frozenset[str]] = {
    "a": frozenset({"href", "target", "rel", "name"}),
    "abbr": frozenset(),
    "b": frozenset(),
    "blockquote": frozenset({"cite"}),
    "br": frozenset(),
    "caption": frozenset(),
    "cite": frozenset(),
    "code": frozenset(),
    "del": frozenset({"datetime"}),
    "div": frozenset({"align"}),
    "em": frozenset(),
    "figcaption": frozenset(),
    "figure": frozenset(),
    "h1": frozenset(),
    "h2": frozenset(),
    "h3": frozenset(),
    "h4": frozenset(),
    "h5": frozenset(),
    "h6": frozenset(),
    "hr": frozenset(),
    "i": frozenset(),
    "img": frozenset({"src", "alt", "width", "height", "loading"}),
    "ins": frozenset({"datetime"}),
    "li": frozenset(),
    "ol": frozenset({"start", "reversed"}),
    "p": frozenset({"align"}),
    "pre": frozenset(),
    "s": frozenset(),
    "small": frozenset(),
    "span": frozenset(),
    "strong": frozenset(),
    "sub": frozenset(),
    "sup": frozenset(),
    "table": frozenset(),
    "tbody": frozenset(),
    "td": frozenset({"colspan", "rowspan"}),
    "tfoot": frozenset(),
    "th": frozenset({"colspan", "rowspan", "scope"}),
    "thead": frozenset(),
    "tr": frozenset(),
    "u": frozenset(),
    "ul": frozenset(),
}
GLOBAL_ATTRS = frozenset({"class", "id", "title", "lang", "dir"})
DROP_CONTENT_TAGS = frozenset(
    {"script", "style", "iframe", "object", "embed", "noscript", "template", "textarea"}
)
VOID_TAGS = frozenset({"br", "hr", "img"})
URL_ATTRS = frozenset({"href", "src", "cite"})
SAFE_SCHEMES = frozenset({"http", "https", "mailto", "tel"})

_CONTROL_AND_SPACE_RE = re.compile(r"[\x00-\x20\x7f]+")
_WHITESPACE_RE = re.compile(r"\s+")


def _is_safe_url(value: str) -> bool:
    cleaned = _CONTROL_AND_SPACE_RE.sub("", value)
    if not cleaned:
        return False
    try:
        scheme = urlsplit(cleaned).scheme.lower()
    except ValueError:
        return False
    return scheme == "" or scheme in SAFE_SCHEMES


def _render_attrs(tag: str, attrs: list[tuple[str, str | None]]) -> str:
    allowed = ALLOWED_TAGS[tag] | GLOBAL_ATTRS
    parts: list[str] = []
    for name, value in attrs:
        lname = name.lower()
        if lname.startswith("on") or lname not in allowed:
            continue
        val = (value or "").strip()
        if lname in URL_ATTRS and not _is_safe_url(val):
            continue
        parts.append(f' {lname}="{html.escape(val, quote=True)}"')
    return "".join(parts)


class _SanitizingParser(HTMLParser):
    def __init__(self) -> None:
        # keep entity references as written; text is re-escaped on output
        super().__init__(convert_charrefs=False)
        self.out: list[str] = []
        self._skip_depth = 0

    def _start(self, tag: str, attrs: list[tuple[str, str | None]], self_closing: bool) -> None:
        if tag in DROP_CONTENT_TAGS:
            if not self_closing:
                self._skip_depth += 1
            return
        if self._skip_depth or tag not in ALLOWED_TAGS:
            return
        close = " /" if self_closing and tag in VOID_TAGS else ""
        self.out.append(f"<{tag}{_render_attrs(tag, attrs)}{close}>")

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._start(tag, attrs, self_closing=False)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._start(tag, attrs, self_closing=True)

    def handle_endtag(self, tag: str) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if self._skip_depth or tag not in ALLOWED_TAGS or tag in VOID_TAGS:
            return
        self.out.append(f"</{tag}>")

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self.out.append(html.escape(data, quote=False))

    def handle_entityref(self, name: str) -> None:
        if not self._skip_depth:
            self.out.append(f"&{name};")

    def handle_charref(self, name: str) -> None:
        if not self._skip_depth:
            self.out.append(f"&#{name};")


class _TextParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.chunks: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._skip_depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self.chunks.append(data)


def sanitize_html(value: str) -> str:
    """Filter HTML through the post-content allow-list."""
    if not value:
        return ""
    parser = _SanitizingParser()
    parser.feed(value)
    parser.close()
    return "".join(parser.out)


def sanitize_text(value: str) -> str:
    """Reduce a cell to single-line plain text (titles, category names).

    Tags are stripped, whitespace runs (including line breaks) collapse to one
    space and the result is trimmed.
    """
    if not value:
        return ""
    parser = _TextParser()
    parser.feed(value)
    parser.close()
    return _WHITESPACE_RE.sub(" ", "".join(parser.chunks)).strip()
