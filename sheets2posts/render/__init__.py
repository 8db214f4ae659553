from .markdown import markdown_to_html
from .sanitize import sanitize_html, sanitize_text
from .template import apply_template

__all__ = [
    "apply_template",
    "markdown_to_html",
    "sanitize_html",
    "sanitize_text",
]
