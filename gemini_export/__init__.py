"""
Gemini Chat Export - turn a rendered Gemini chat page into Markdown or HTML.
"""

from .markdown import extract_markdown_from_node, html_to_markdown
from .sanitize import sanitize, strip_message_actions

__all__ = [
    "extract_markdown_from_node",
    "html_to_markdown",
    "sanitize",
    "strip_message_actions",
]
