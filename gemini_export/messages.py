"""
Request/response boundary between a UI surface and the page.

Every request gets a ``{"ok": bool, ...}`` answer; nothing raises past here.
"""

from bs4 import BeautifulSoup

from .errors import ExportError
from .extract import Toggle, build_turn_list, extract
from .log import log_debug

EXPORT_GEMINI_CHAT = "EXPORT_GEMINI_CHAT"
LIST_GEMINI_TURNS = "LIST_GEMINI_TURNS"


def normalize_export_request(message: dict) -> dict:
    scope = message.get("scope")
    turn_index = message.get("turnIndex")
    return {
        "scope": scope if scope in ("current", "select") else "all",
        "turn_index": turn_index if isinstance(turn_index, int) and not isinstance(turn_index, bool) else None,
        "markdown_style": "gemini" if message.get("markdownStyle") == "gemini" else "legacy",
        "include_thoughts": message.get("includeThoughts") is not False,
    }


def handle_message(message: dict, soup: BeautifulSoup, toggle: Toggle = None,
                   selectors: dict = None, labels: dict = None, html_options: dict = None) -> dict:
    if not message or not message.get("type"):
        return {"ok": False, "error": "message has no type"}

    message_type = message["type"]
    log_debug(f"Handling {message_type}")
    try:
        if message_type == EXPORT_GEMINI_CHAT:
            request = normalize_export_request(message)
            result = extract(
                soup,
                toggle=toggle,
                selectors=selectors,
                labels=labels,
                html_options=html_options,
                **request,
            )
            return {"ok": True, "data": result}
        if message_type == LIST_GEMINI_TURNS:
            return {"ok": True, "data": {"turns": build_turn_list(soup, selectors)}}
    except ExportError as e:
        return {"ok": False, "error": str(e)}

    return {"ok": False, "error": f"unsupported message type: {message_type}"}
