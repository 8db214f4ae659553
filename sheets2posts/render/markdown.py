from __future__ import annotations

import html
import re

"""Markdown subset used by simple-mode sheets.

Block rules are line oriented, one line at a time:
- ``#``, ``##``, ``###`` + whitespace -> h1..h3
- ``-`` + whitespace -> list item; consecutive items share one <ul>
- blank line -> closes an open list, emits a line break
- anything else -> its own <p> (lines are never merged into one paragraph)

Inline bold/italic run afterwards over the assembled HTML. Links, images,
code spans, nested and ordered lists are not supported.
"""

__all__ = [
    "markdown_to_html",
]

_HEADING_RE = re.compile(r"^(#{1,3})\s+(.*)$")
_BULLET_RE = re.compile(r"^-\s+(.*)$")
# bold must run before italic or "**" would be read as two single stars
_BOLD_RE = re.compile(r"\*\*(.+?)\*\*", re.DOTALL)
_ITALIC_RE = re.compile(r"\*(.+?)\*", re.DOTALL)


def _esc(text: str) -> str:
    return html.escape(text, quote=True)


def markdown_to_html(text: str) -> str:
    lines = (text or "").replace("\r\n", "\n").replace("\r", "\n").split("\n")

    out: list[str] = []
    in_list = False

    for line in lines:
        trimmed = line.strip()

        if trimmed == "":
            if in_list:
                out.append("</ul>\n")
                in_list = False
            out.append("\n")
            continue

        m = _HEADING_RE.match(trimmed)
        if m:
            if in_list:
                out.append("</ul>\n")
                in_list = False
            level = len(m.group(1))
            out.append(f"<h{level}>{_esc(m.group(2))}</h{level}>\n")
            continue

        m = _BULLET_RE.match(trimmed)
        if m:
            if not in_list:
                out.append("<ul>\n")
                in_list = True
            out.append(f"<li>{_esc(m.group(1))}</li>\n")
            continue

        if in_list:
            out.append("</ul>\n")
            in_list = False
        out.append(f"<p>{_esc(trimmed)}</p>\n")

    if in_list:
        out.append("</ul>\n")

    result = "".join(out)
    result = _BOLD_RE.sub(r"<strong>\1</strong>", result)
    result = _ITALIC_RE.sub(r"<em>\1</em>", result)
    return result
