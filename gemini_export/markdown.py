"""
HTML to Markdown renderer for Gemini answer markup.

Two cooperating walks over a BeautifulSoup tree:

- block mode appends whole lines (paragraphs, headings, lists, tables, quotes,
  code fences) to the renderer's line buffer and usually returns "";
- inline mode returns a text fragment for embedding inside a line.

Both are dispatched through per-tag rule tables and carry an immutable
RenderContext down the recursion. Elements carrying ``data-md-raw`` are
emitted verbatim in either mode (see sanitize.py for where they come from).
"""

import re
from typing import NamedTuple

from bs4 import NavigableString, Tag
from bs4.element import PreformattedString

from .sanitize import RAW_ATTR, sanitize

BLOCK_TAGS = frozenset({
    "p", "div", "ul", "ol", "pre",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "table", "blockquote", "hr",
})

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")

# A bold-only paragraph shorter than this becomes a "### " heading
BOLD_HEADING_MAX_LEN = 200

_WHITESPACE_RE = re.compile(r"\s+")
_ESCAPE_RE = re.compile(r"([\\`*_])")
_MARKDOWN_MARKERS_RE = re.compile(r"(\*\*|__|~~|`)")
_BOLD_EDGES_RE = re.compile(r"^\*\*|\*\*$")
_EXTRA_BLANKS_RE = re.compile(r"\n{3,}")


class RenderContext(NamedTuple):
    in_pre: bool = False
    in_list: bool = False
    # "tag" renders <br> as a literal <br>, "newline" as "\n"
    inline_break: str = "tag"
    allow_markdown: bool = False


def _tag_name(node) -> str:
    return node.name.lower() if isinstance(node, Tag) and node.name else ""


def has_markdown_markers(text: str) -> bool:
    return bool(_MARKDOWN_MARKERS_RE.search(text))


def escape_markdown_text(text: str, context: RenderContext) -> str:
    if context.allow_markdown:
        return text
    return _ESCAPE_RE.sub(r"\\\1", text)


def escape_table_cell(text: str) -> str:
    return text.replace("|", "\\|")


def strip_trailing_newline(text: str) -> str:
    return text[:-1] if text.endswith("\n") else text


class MarkdownRenderer:
    """Accumulates output lines for a single render call."""

    def __init__(self):
        self.lines: list[str] = []
        self._block_rules = {
            "br": lambda node, ctx: "\n",
            "p": self._paragraph,
            "div": self._div,
            "pre": self._pre,
            "ul": self._list,
            "ol": self._list,
            "li": lambda node, ctx: self._children(node, ctx, self.render_block),
            "table": self._table,
            "blockquote": self._blockquote,
            "hr": self._hr,
            "code-block": self._code_block,
        }
        for tag in HEADING_TAGS:
            self._block_rules[tag] = self._heading
        self._inline_rules = {
            "br": lambda node, ctx: "\n" if ctx.inline_break == "newline" else "<br>",
        }
        # Rules shared by both modes recurse in whichever mode called them
        for tag, rule in (
            ("b", self._strong),
            ("strong", self._strong),
            ("i", self._emphasis),
            ("em", self._emphasis),
            ("code", self._code),
            ("a", self._link),
            ("img", self._image),
        ):
            self._block_rules[tag] = lambda node, ctx, rule=rule: rule(node, ctx, self.render_block)
            self._inline_rules[tag] = lambda node, ctx, rule=rule: rule(node, ctx, self.render_inline)

    # --- Line buffer ---

    def append_blank_line(self):
        if not self.lines:
            return
        if self.lines[-1] != "":
            self.lines.append("")

    def append_line(self, text: str):
        if text == "":
            self.append_blank_line()
            return
        if not text:
            return
        self.lines.append(text)

    def append_blocks(self, nodes, context: RenderContext):
        for node in nodes:
            rendered = self.render_block(node, context)
            # Collapsed indentation between block elements is not content;
            # a <br> still is
            if rendered.strip() or "\n" in rendered:
                self.append_line(rendered)

    def joined(self, collapse: bool = True) -> str:
        text = "\n".join(self.lines)
        if collapse:
            text = _EXTRA_BLANKS_RE.sub("\n\n", text)
        return text.strip()

    # --- Dispatch ---

    def render(self, root) -> str:
        result = self.render_block(root, RenderContext())
        if result:
            self.append_line(result)
        return self.joined()

    def render_block(self, node, context: RenderContext) -> str:
        return self._dispatch(node, context, self._block_rules, self.render_block)

    def render_inline(self, node, context: RenderContext) -> str:
        return self._dispatch(node, context, self._inline_rules, self.render_inline)

    def _dispatch(self, node, context, rules, mode) -> str:
        if isinstance(node, NavigableString):
            # Comments, doctypes, CDATA and friends carry no visible text
            if isinstance(node, PreformattedString):
                return ""
            return self._text(node, context)
        if not isinstance(node, Tag):
            return ""
        raw = node.get(RAW_ATTR)
        if raw:
            return raw
        rule = rules.get(_tag_name(node))
        if rule is None:
            return self._children(node, context, mode)
        return rule(node, context)

    def _children(self, node: Tag, context: RenderContext, mode) -> str:
        return "".join(mode(child, context) for child in node.contents)

    @staticmethod
    def _text(node: NavigableString, context: RenderContext) -> str:
        return escape_markdown_text(_WHITESPACE_RE.sub(" ", str(node)), context)

    # --- Block rules ---

    def _paragraph(self, node: Tag, context: RenderContext) -> str:
        allow_markdown = has_markdown_markers(node.get_text())
        children = node.contents
        bold_only = len(children) == 1 and _tag_name(children[0]) in ("b", "strong")

        inline_context = context._replace(allow_markdown=allow_markdown)
        content = "".join(self.render_inline(child, inline_context) for child in children).strip()

        if bold_only and 0 < len(content) < BOLD_HEADING_MAX_LEN:
            self.append_line(f"### {_BOLD_EDGES_RE.sub('', content)}")
            self.append_line("")
            return ""

        self.append_line(content)
        self.append_line("")
        return ""

    def _div(self, node: Tag, context: RenderContext) -> str:
        self.append_blocks(node.contents, context)
        return ""

    def _pre(self, node: Tag, context: RenderContext) -> str:
        self.append_line("```")
        self.append_line(strip_trailing_newline(node.get_text()))
        self.append_line("```")
        self.append_line("")
        return ""

    def _code_block(self, node: Tag, context: RenderContext) -> str:
        # Gemini wraps <pre> in <code-block> with a language label header
        code = node.find(attrs={"data-test-id": "code-content"}) or node.find("code")
        if code is None:
            return self._children(node, context, self.render_block)
        language = ""
        decoration = node.select_one(".code-block-decoration")
        if decoration is not None:
            label = next((span for span in decoration.find_all("span") if span.get_text().strip()), None)
            if label is not None:
                language = _WHITESPACE_RE.sub(" ", label.get_text()).strip()
        self.append_line(f"```{language}")
        self.append_line(strip_trailing_newline(code.get_text()))
        self.append_line("```")
        self.append_line("")
        return ""

    def _heading(self, node: Tag, context: RenderContext) -> str:
        level = int(_tag_name(node)[1])
        content = self._children(node, context, self.render_block).strip()
        self.append_line(f"{'#' * level} {content}")
        self.append_line("")
        return ""

    def _list(self, node: Tag, context: RenderContext) -> str:
        ordered = _tag_name(node) == "ol"
        for index, item in enumerate(node.find_all("li", recursive=False)):
            self.lines.append(self._list_item(item, context, ordered, index))
        self.append_line("")
        return ""

    def _list_item(self, node: Tag, context: RenderContext, ordered: bool, index: int) -> str:
        marker = f"{index + 1}. " if ordered else "- "
        item_context = context._replace(in_list=True, inline_break="newline")
        raw = "".join(self.render_inline(child, item_context) for child in node.contents).strip()
        item_lines = [line for line in raw.split("\n") if line]
        if not item_lines:
            return marker.rstrip()
        indent = " " * len(marker)
        first, rest = item_lines[0], item_lines[1:]
        return "\n".join([marker + first] + [indent + line for line in rest])

    def _table(self, node: Tag, context: RenderContext) -> str:
        self.lines.extend(self._table_lines(node, context))
        self.append_line("")
        return ""

    def _table_lines(self, table: Tag, context: RenderContext) -> list[str]:
        head = table.find("thead", recursive=False)
        body = table.find("tbody", recursive=False)

        head_rows = self._collect_rows(head, context) if head is not None else []
        body_rows = self._collect_rows(body if body is not None else table, context)

        header = head_rows[0] if head_rows else None
        rows = body_rows
        if header is None and body_rows:
            header, rows = body_rows[0], body_rows[1:]
        if not header:
            return []

        column_count = len(header)
        lines = [
            f"| {' | '.join(header)} |",
            f"| {' | '.join('---' for _ in header)} |",
        ]
        for row in rows:
            cells = row[:column_count]
            cells += [""] * (column_count - len(cells))
            lines.append(f"| {' | '.join(cells)} |")
        return lines

    def _collect_rows(self, section: Tag, context: RenderContext) -> list[list[str]]:
        collected = []
        for row in section.find_all("tr", recursive=False):
            cells = row.find_all(["td", "th"], recursive=False)
            if not cells:
                continue
            collected.append([
                escape_table_cell(self.render_inline(cell, context).strip())
                for cell in cells
            ])
        return collected

    def _blockquote(self, node: Tag, context: RenderContext) -> str:
        has_block_child = any(
            _tag_name(child) in BLOCK_TAGS for child in node.find_all(recursive=False)
        )

        if has_block_child:
            inner = render_fragment(node.contents)
        else:
            quote_context = context._replace(
                inline_break="newline",
                allow_markdown=has_markdown_markers(node.get_text()),
            )
            inner = "".join(self.render_inline(child, quote_context) for child in node.contents).strip()

        if not inner:
            return ""
        quoted = "\n".join(f"> {line}" if line else ">" for line in inner.split("\n"))
        self.append_line(quoted)
        self.append_line("")
        return ""

    def _hr(self, node: Tag, context: RenderContext) -> str:
        self.append_line("---")
        self.append_line("")
        return ""

    # --- Rules shared by both modes ---

    def _strong(self, node: Tag, context: RenderContext, mode) -> str:
        return f"**{self._children(node, context, mode)}**"

    def _emphasis(self, node: Tag, context: RenderContext, mode) -> str:
        return f"*{self._children(node, context, mode)}*"

    def _code(self, node: Tag, context: RenderContext, mode) -> str:
        text = node.get_text()
        if context.in_pre:
            return text
        return "`" + text.replace("`", "\\`") + "`"

    def _link(self, node: Tag, context: RenderContext, mode) -> str:
        href = node.get("href") or ""
        text = self._children(node, context, mode).strip() or href
        return f"[{text}]({href})" if href else text

    def _image(self, node: Tag, context: RenderContext, mode) -> str:
        alt = node.get("alt") or ""
        src = node.get("src") or ""
        return f"![{alt}]({src})" if src else ""


def render_fragment(nodes) -> str:
    """Render a run of sibling nodes as a standalone document.

    Blank lines are kept as they are; only the outermost document collapses
    runs of them.
    """
    renderer = MarkdownRenderer()
    renderer.append_blocks(nodes, RenderContext())
    return renderer.joined(collapse=False)


def html_to_markdown(root) -> str:
    return MarkdownRenderer().render(root)


def extract_markdown_from_node(node: Tag) -> str:
    """Sanitize a copy of node and render it to Markdown."""
    return html_to_markdown(sanitize(node))
