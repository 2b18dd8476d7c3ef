#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Gemini Chat Export - Export a rendered Gemini conversation to Markdown or HTML

This script reads the page HTML from a saved file or from the clipboard
(supporting the Windows HTML clipboard format), extracts every conversation
turn (prompt, thought process, answer) and writes the result as a Markdown or
a self-contained HTML document. The result is copied back to the clipboard if
configured.
"""

import sys
import re
import json
import argparse
import datetime as dt
from pathlib import Path
from bs4 import BeautifulSoup
import pyperclip

from gemini_export.config import load_config
from gemini_export.log import log_debug, log_warn, set_debug
from gemini_export.messages import EXPORT_GEMINI_CHAT, LIST_GEMINI_TURNS, handle_message

_FRAGMENT_RE = re.compile(r'<!--StartFragment-->(.*)<!--EndFragment-->', re.DOTALL)


def strip_clipboard_fragment(raw: str) -> str:
    """Keep only the fragment of a Windows CF_HTML payload, if it is one."""
    if "StartFragment:" in raw:
        match = _FRAGMENT_RE.search(raw)
        if match:
            return match.group(1)
    return raw


def read_input(path: str = None) -> str:
    if path:
        return Path(path).read_text(encoding="utf-8")
    return strip_clipboard_fragment(pyperclip.paste() or "")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export a Gemini chat page to Markdown or HTML.")
    parser.add_argument("--input", help="Saved page HTML. Reads the clipboard when omitted.")
    parser.add_argument("--scope", choices=("all", "current", "select"), help="Which turns to export.")
    parser.add_argument("--turn", type=int, help="0-based turn index for --scope select.")
    parser.add_argument("--style", choices=("gemini", "legacy"), help="Markdown heading style.")
    parser.add_argument("--format", choices=("md", "html"), help="Output document format.")
    parser.add_argument("--no-thoughts", action="store_true", help="Leave out the thought process.")
    parser.add_argument("--list", action="store_true", help="List the turns on the page and exit.")
    parser.add_argument("--out", help="Write the document here instead of the configured output dir.")
    parser.add_argument("--no-clip", action="store_true", help="Do not copy the result to the clipboard.")
    parser.add_argument("--debug", action="store_true", help="Show debug information.")
    return parser


def build_request(args, config: dict) -> dict:
    export_cfg = config.get("export", {})
    include_thoughts = export_cfg.get("include_thoughts", True) and not args.no_thoughts
    return {
        "type": EXPORT_GEMINI_CHAT,
        "scope": args.scope or export_cfg.get("scope", "all"),
        "turnIndex": args.turn,
        "markdownStyle": args.style or export_cfg.get("markdown_style", "legacy"),
        "includeThoughts": bool(include_thoughts),
    }


def resolve_output_path(config: dict, scope: str, ext: str, now: dt.datetime = None) -> Path:
    now = now or dt.datetime.now()
    date_str = now.strftime("%Y%m%d")
    time_str = now.strftime(config["time_format"])

    out_dir = Path(config["output"]["dir"].replace("{year}", now.strftime("%Y")).replace("{date}", date_str))
    filename = config["output"]["filename"]
    filename = filename.replace("{scope}", scope).replace("{time}", time_str)
    filename = filename.replace("{date}", date_str).replace("{ext}", ext)
    return out_dir / filename


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    set_debug(args.debug)

    # Fix Windows console encoding
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding='utf-8')
        except AttributeError:
            pass

    config = load_config()

    try:
        content = read_input(args.input)
    except (OSError, pyperclip.PyperclipException) as e:
        print(f"Cannot read input: {e}")
        return 1
    if not content.strip():
        print("Clipboard or input file is empty.")
        return 1

    soup = BeautifulSoup(content, "html.parser")

    if args.list:
        response = handle_message({"type": LIST_GEMINI_TURNS}, soup)
        for turn in response["data"]["turns"]:
            print(turn["label"])
        return 0

    request = build_request(args, config)
    log_debug(f"Request: {json.dumps(request, ensure_ascii=False)}")
    response = handle_message(
        request,
        soup,
        labels=config.get("labels"),
        html_options=config.get("html"),
    )
    if not response["ok"]:
        print(f"Export failed: {response['error']}")
        return 1

    data = response["data"]
    fmt = args.format or config.get("export", {}).get("format", "md")
    is_html = fmt == "html"
    document = data["html"] if is_html else data["markdown"]
    ext = "html" if is_html else "md"

    print(f"Extracted {len(data['turns'])} turn(s).")

    filepath = None
    if args.out:
        filepath = Path(args.out)
    elif config["output"]["enabled"]:
        filepath = resolve_output_path(config, request["scope"], ext)

    if filepath:
        try:
            filepath.parent.mkdir(parents=True, exist_ok=True)
            filepath.write_text(document, encoding="utf-8-sig")
            print(f"Saved to: {filepath}")
        except OSError as e:
            print(f"Error saving file: {e}")

    if config["clip"]["enabled"] and not args.no_clip:
        try:
            pyperclip.copy(document)
            print("Result has been copied to clipboard.")
        except pyperclip.PyperclipException as e:
            log_warn(f"Error copying to clipboard: {e}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
