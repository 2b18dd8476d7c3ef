"""
Page extraction layer: locate conversation turns on a rendered Gemini page
and pull out the user prompt, the optional thought process, and the answer.

The page is a BeautifulSoup tree. It may be "live": a caller can pass a
``toggle`` callable that clicks the thoughts header button and mutates the
tree in place (expanding or collapsing the reasoning trace). Without one,
collapsed thoughts are simply not available.
"""

import copy
import re
import time
from typing import Callable, Optional

from bs4 import BeautifulSoup, Tag

from .config import load_profile
from .documents import build_html, build_markdown
from .errors import ConversationNotFound
from .log import log_debug
from .markdown import extract_markdown_from_node
from .sanitize import strip_message_actions

Toggle = Callable[[Tag], None]

HTML_OPTIONS = ("lang", "title")

THOUGHTS_POLL_ATTEMPTS = 10
THOUGHTS_POLL_INTERVAL = 0.05  # seconds

_SELECTORS = None


def default_selectors() -> dict:
    global _SELECTORS
    if _SELECTORS is None:
        _SELECTORS = load_profile("gemini")["selectors"]
    return _SELECTORS


def clean_text(text: str) -> str:
    text = text.replace("\u00a0", " ")
    text = re.sub(r"[\t\f\r]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def get_visible_text(node: Optional[Tag], selectors: dict = None) -> str:
    if node is None:
        return ""
    selectors = selectors or default_selectors()
    clone = copy.copy(node)
    for hidden in clone.select(selectors["hidden"]):
        hidden.decompose()
    lines = [re.sub(r"[ \t\u00a0]+", " ", line).strip() for line in clone.get_text().split("\n")]
    return clean_text("\n".join(lines))


def _is_inside(node: Tag, containers: list[Tag]) -> bool:
    # Tag equality is structural, so compare identities
    ids = {id(c) for c in containers}
    return any(id(parent) in ids for parent in node.parents)


def get_user_text(container: Tag, selectors: dict = None) -> str:
    selectors = selectors or default_selectors()
    return get_visible_text(container.select_one(selectors["user_text"]), selectors)


def _thought_nodes(container: Tag, selectors: dict) -> list[Tag]:
    nodes = []
    for thoughts in container.select(selectors["thoughts_container"]):
        nodes.extend(thoughts.select(selectors["thoughts_markdown"]))
    return nodes


def _answer_nodes(container: Tag, selectors: dict) -> list[Tag]:
    thoughts = container.select(selectors["thoughts_container"])
    return [
        node for node in container.select(selectors["model_markdown"])
        if not _is_inside(node, thoughts)
    ]


def get_model_thoughts(container: Tag, selectors: dict = None) -> str:
    selectors = selectors or default_selectors()
    chunks = []
    for node in _thought_nodes(container, selectors):
        text = extract_markdown_from_node(node)
        if text.strip():
            chunks.append(clean_text(text))
    if not chunks:
        return ""
    return clean_text("\n\n".join(chunks))


def get_model_thoughts_html(container: Tag, selectors: dict = None) -> str:
    selectors = selectors or default_selectors()
    chunks = []
    for node in _thought_nodes(container, selectors):
        html = strip_message_actions(node).decode_contents().strip()
        if html:
            chunks.append(html)
    return "\n".join(chunks)


def get_model_text(container: Tag, selectors: dict = None) -> str:
    """Markdown of the first non-empty answer block, skipping thoughts."""
    selectors = selectors or default_selectors()
    for node in _answer_nodes(container, selectors):
        text = extract_markdown_from_node(node)
        if text.strip():
            return clean_text(text)
    fallback = container.select_one(selectors["model_fallback"])
    if fallback is None:
        return ""
    return get_visible_text(strip_message_actions(fallback), selectors)


def get_model_html(container: Tag, selectors: dict = None) -> str:
    selectors = selectors or default_selectors()
    for node in _answer_nodes(container, selectors):
        html = strip_message_actions(node).decode_contents().strip()
        if html:
            return html
    fallback = container.select_one(selectors["model_fallback"])
    if fallback is None:
        return ""
    return strip_message_actions(fallback).decode_contents().strip()


# --- Thoughts expand / collapse ---

def has_expanded_thoughts(container: Tag, selectors: dict = None) -> bool:
    return bool(get_model_thoughts(container, selectors))


def get_thoughts_toggle_button(container: Tag, selectors: dict = None) -> Optional[Tag]:
    selectors = selectors or default_selectors()
    return container.select_one(selectors["thoughts_toggle_button"])


def ensure_thoughts_expanded(container: Tag, toggle: Optional[Toggle], selectors: dict = None,
                             attempts: int = THOUGHTS_POLL_ATTEMPTS,
                             interval: float = THOUGHTS_POLL_INTERVAL) -> bool:
    """Click the thoughts header open if needed.

    Returns True when this call expanded the thoughts, i.e. the caller should
    collapse them again afterwards. Gives up quietly after ``attempts`` polls.
    """
    if has_expanded_thoughts(container, selectors):
        return False
    button = get_thoughts_toggle_button(container, selectors)
    if button is None or toggle is None:
        return False

    toggle(button)
    for attempt in range(attempts):
        if has_expanded_thoughts(container, selectors):
            log_debug(f"Thoughts expanded after {attempt} polls")
            return True
        time.sleep(interval)

    log_debug("Thoughts did not expand, continuing without them")
    return False


def restore_thoughts_state(container: Tag, toggle: Optional[Toggle], should_collapse: bool,
                           selectors: dict = None):
    if not should_collapse or toggle is None:
        return
    button = get_thoughts_toggle_button(container, selectors)
    if button is None:
        return
    toggle(button)


# --- Turns ---

def pick_conversations(soup: BeautifulSoup, scope: str, turn_index: Optional[int] = None,
                       selectors: dict = None) -> list[Tag]:
    selectors = selectors or default_selectors()
    nodes = soup.select(selectors["conversation"])
    if not nodes:
        return []
    if scope == "current":
        return [nodes[-1]]
    if scope == "select" and isinstance(turn_index, int) and not isinstance(turn_index, bool):
        if 0 <= turn_index < len(nodes):
            return [nodes[turn_index]]
        return []
    return nodes


def extract_turn(container: Tag, selectors: dict = None) -> dict[str, str]:
    return {
        "user": get_user_text(container, selectors),
        "thoughts": get_model_thoughts(container, selectors),
        "thoughts_html": get_model_thoughts_html(container, selectors),
        "model": get_model_text(container, selectors),
        "model_html": get_model_html(container, selectors),
    }


def extract(soup: BeautifulSoup, scope: str = "all", turn_index: Optional[int] = None,
            markdown_style: str = "legacy", include_thoughts: bool = True,
            toggle: Optional[Toggle] = None, selectors: dict = None,
            labels: dict = None, html_options: dict = None) -> dict:
    containers = pick_conversations(soup, scope, turn_index, selectors)
    if not containers:
        raise ConversationNotFound(f"No conversation found for scope={scope!r} turn={turn_index!r}")
    log_debug(f"Extracting {len(containers)} conversation container(s)")
    page_options = {k: v for k, v in (html_options or {}).items() if k in HTML_OPTIONS}

    turns = []
    for container in containers:
        should_restore = ensure_thoughts_expanded(container, toggle, selectors) if include_thoughts else False
        try:
            turns.append(extract_turn(container, selectors))
        finally:
            restore_thoughts_state(container, toggle, should_restore, selectors)

    return {
        "turns": turns,
        "html": build_html(turns, include_thoughts, labels, **page_options),
        "markdown": build_markdown(turns, markdown_style, include_thoughts, labels),
    }


def build_turn_list(soup: BeautifulSoup, selectors: dict = None) -> list[dict]:
    selectors = selectors or default_selectors()
    turns = []
    for index, container in enumerate(soup.select(selectors["conversation"])):
        user = get_user_text(container, selectors)
        hint = user[:20] if user else "(no text)"
        turns.append({"index": index, "label": f"{index + 1}. {hint}"})
    return turns
