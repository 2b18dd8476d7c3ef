"""
Assemble extracted turns into the final Markdown or HTML document.
"""

DEFAULT_LABELS = {"user": "User", "model": "Gemini", "thoughts": "Thought Process"}

HTML_STYLE = [
    "body{font-family:system-ui, -apple-system, sans-serif;line-height:1.6;margin:24px;background:#f8f9fb;color:#111;}",
    ".turn{background:#fff;border:1px solid #e5e7eb;border-radius:12px;padding:16px;margin-bottom:16px;}",
    ".role{padding:8px 12px;border-radius:10px;margin-bottom:12px;}",
    ".role.user{background:#eef2ff;}",
    ".role.thoughts{background:#fff4e6;}",
    ".role.model{background:#ecfeff;}",
    ".content{white-space:normal;}",
    "pre, code{white-space:pre-wrap;}",
]


def _labels(labels: dict = None) -> dict:
    return {**DEFAULT_LABELS, **(labels or {})}


def escape_html(text: str) -> str:
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _text_as_html(text: str) -> str:
    return escape_html(text).replace("\n", "<br>")


def _role_block(role: str, heading: str, content: str) -> list[str]:
    return [
        f'  <div class="role {role}">',
        f"    <h3>{heading}</h3>",
        f'    <div class="content">{content}</div>',
        "  </div>",
    ]


def build_html(turns: list[dict], include_thoughts: bool, labels: dict = None,
               lang: str = "ja", title: str = "Gemini Export") -> str:
    labels = _labels(labels)
    sections = []
    for index, turn in enumerate(turns):
        user_html = _text_as_html(turn.get("user") or "")
        model_html = turn.get("model_html") or _text_as_html(turn.get("model") or "")
        thoughts_html = turn.get("thoughts_html") or _text_as_html(turn.get("thoughts") or "")

        parts = [
            '<section class="turn">',
            f"  <h2>Turn {index + 1}</h2>",
            *_role_block("user", labels["user"], user_html),
        ]
        if include_thoughts and thoughts_html:
            parts += _role_block("thoughts", labels["thoughts"], thoughts_html)
        parts += _role_block("model", labels["model"], model_html)
        parts.append("</section>")
        sections.append("\n".join(parts))

    return "\n".join([
        "<!doctype html>",
        f'<html lang="{lang}">',
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{escape_html(title)}</title>",
        "<style>",
        *HTML_STYLE,
        "</style>",
        "</head>",
        "<body>",
        "\n\n".join(sections),
        "</body>",
        "</html>",
    ])


def build_gemini_style_markdown(turns: list[dict], include_thoughts: bool, labels: dict = None) -> str:
    labels = _labels(labels)
    lines = []
    for index, turn in enumerate(turns):
        lines += ["", f"## Turn {index + 1}", "", f"### {labels['user']}", "", turn.get("user") or ""]
        if include_thoughts and turn.get("thoughts"):
            lines += ["", f"### {labels['thoughts']}", "", turn["thoughts"]]
        lines += ["", f"### {labels['model']}", "", turn.get("model") or ""]
    return "\n".join(lines)


def build_legacy_style_markdown(turns: list[dict], include_thoughts: bool, labels: dict = None) -> str:
    labels = _labels(labels)
    lines = []
    for index, turn in enumerate(turns):
        n = index + 1
        lines += ["", f"## Turn {n}-1: {labels['user']}", "", turn.get("user") or ""]
        if include_thoughts and turn.get("thoughts"):
            lines += ["", f"## Turn {n}-1.5: {labels['thoughts']}", "", turn["thoughts"]]
        lines += ["", f"## Turn {n}-2: {labels['model']}", "", turn.get("model") or ""]
    return "\n".join(lines)


def build_markdown(turns: list[dict], markdown_style: str, include_thoughts: bool, labels: dict = None) -> str:
    if markdown_style == "gemini":
        return build_gemini_style_markdown(turns, include_thoughts, labels)
    return build_legacy_style_markdown(turns, include_thoughts, labels)
