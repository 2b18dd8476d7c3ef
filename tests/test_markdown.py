from conftest import load_fixture, parse

from gemini_export.markdown import MarkdownRenderer, RenderContext, extract_markdown_from_node, html_to_markdown
from gemini_export.sanitize import raw_node


def md(html: str) -> str:
    return html_to_markdown(parse(html).find())


def test_bold_in_paragraph():
    assert md("<div><p>hello <b>world</b></p></div>") == "hello **world**"


def test_unordered_list_with_bold_label():
    html = "<div><ul><li><b>Label</b> text</li><li>second</li></ul></div>"
    assert md(html) == "- **Label** text\n- second"


def test_list_item_with_line_break():
    assert md("<div><ul><li>line1<br>line2</li></ul></div>") == "- line1\n  line2"


def test_ordered_list_continuation_indent_matches_marker():
    assert md("<div><ol><li>a<br>b</li></ol></div>") == "1. a\n   b"


def test_empty_list_items_keep_trimmed_marker():
    assert md("<div><ol><li></li><li> </li></ol></div>") == "1.\n2."


def test_blockquote_and_heading():
    html = "<div><blockquote>note<br>second line</blockquote><h2>Title</h2></div>"
    assert md(html) == "> note\n> second line\n\n## Title"


def test_heading_with_emoji_and_hr_between_paragraphs():
    html = "<div><p>intro</p><hr><h2>🍅 トマト（Tomato）とは？</h2><p>説明</p></div>"
    assert md(html) == "intro\n\n---\n\n## 🍅 トマト（Tomato）とは？\n\n説明"


def test_blockquote_with_block_children():
    html = "<div><blockquote><p><b>豆知識：</b> 内容です。</p></blockquote></div>"
    assert md(html) == "> **豆知識：** 内容です。"


def test_blockquote_with_several_paragraphs_keeps_bare_separator():
    html = "<div><blockquote><p>one</p><p>two</p></blockquote><p>after</p></div>"
    assert md(html) == "> one\n>\n> two\n\nafter"


def test_empty_blockquote_renders_nothing():
    assert md("<div><p>a</p><blockquote> </blockquote><p>b</p></div>") == "a\n\nb"


def test_table_with_bold_cells():
    html = (
        "<div><table>"
        "<thead><tr><td>栄養素</td><td>主な効果・効能</td></tr></thead>"
        "<tbody>"
        "<tr><td><b>リコピン</b></td><td>強力な抗酸化作用。</td></tr>"
        "<tr><td><b>ビタミンC</b></td><td>免疫力アップ。</td></tr>"
        "</tbody></table></div>"
    )
    assert md(html) == "\n".join([
        "| 栄養素 | 主な効果・効能 |",
        "| --- | --- |",
        "| **リコピン** | 強力な抗酸化作用。 |",
        "| **ビタミンC** | 免疫力アップ。 |",
    ])


def test_table_without_head_uses_first_row_and_pads_rows():
    html = (
        "<table>"
        "<tr><th>a</th><th>b</th></tr>"
        "<tr><td>x|y</td></tr>"
        "<tr><td>1</td><td>2</td><td>3</td></tr>"
        "</table>"
    )
    assert md(html) == "\n".join([
        "| a | b |",
        "| --- | --- |",
        "| x\\|y |  |",
        "| 1 | 2 |",
    ])


def test_table_without_rows_renders_nothing():
    assert md("<div><p>a</p><table></table></div>") == "a"


def test_ordered_list_with_paragraph_items():
    html = (
        "<div><ol>"
        "<li><p><b>加熱して食べる</b> リコピンは吸収率がアップ。</p></li>"
        "<li><p><b>油と一緒に摂る</b> 脂溶性なので効率的。</p></li>"
        "</ol></div>"
    )
    assert md(html) == "1. **加熱して食べる** リコピンは吸収率がアップ。\n2. **油と一緒に摂る** 脂溶性なので効率的。"


def test_raw_node_is_emitted_verbatim():
    soup = parse("<div></div>")
    raw = raw_node("$$\\nE=mc^2\\n$$")
    raw.string = "ignored"
    soup.div.append(raw)
    assert html_to_markdown(soup.div) == "$$\\nE=mc^2\\n$$"


def test_raw_node_bypasses_escaping_inline():
    soup = parse("<p>see </p>")
    soup.p.append(raw_node("$a_b * c$"))
    assert html_to_markdown(soup.p) == "see $a_b * c$"


class TestParagraphs:

    def test_bold_only_paragraph_becomes_heading(self):
        assert md("<div><p><strong>Overview</strong></p><p>body</p></div>") == "### Overview\n\nbody"

    def test_long_bold_only_paragraph_stays_bold(self):
        text = "x" * 200
        assert md(f"<div><p><b>{text}</b></p></div>") == f"**{text}**"

    def test_mixed_paragraph_is_plain_text(self):
        assert md("<div><p><b>Note</b>: read this</p><p>next</p></div>") == "**Note**: read this\n\nnext"

    def test_markdown_characters_are_escaped(self):
        assert md("<p>a_b*c `d` \\e</p>") == "a_b*c `d` \\e"
        assert md("<p>snake_case and 2*3</p>") == "snake\\_case and 2\\*3"

    def test_existing_markdown_passes_through(self):
        assert md("<p>**already** bold_ish</p>") == "**already** bold_ish"

    def test_inline_break_in_paragraph_is_literal_tag(self):
        assert md("<p>a<br>b</p>") == "a<br>b"


def test_whitespace_and_nbsp_collapse():
    assert md("<p>a\u00a0\u00a0\t\r\f b</p>") == "a b"


def test_three_or_more_newlines_collapse_to_two():
    assert md("<div>a<br><br><br>b</div>") == "a\n\nb"


def test_code_block_strips_one_trailing_newline():
    assert md("<div><pre><code>x = 1\n\n</code></pre></div>") == "```\nx = 1\n\n```"


def test_inline_code_escapes_backticks():
    assert md("<div><p>use <code>a`b</code> here</p></div>") == "use `a\\`b` here"


def test_code_in_pre_context_is_literal():
    soup = parse("<code>*x*</code>")
    renderer = MarkdownRenderer()
    assert renderer.render_inline(soup.code, RenderContext(in_pre=True)) == "*x*"


def test_gemini_code_block_uses_language_label():
    html = (
        "<div><code-block>"
        '<div class="code-block-decoration"><span>Python</span></div>'
        '<pre><code data-test-id="code-content">print("hi")\n</code></pre>'
        "</code-block></div>"
    )
    assert md(html) == '```Python\nprint("hi")\n```'


def test_links_and_images():
    html = '<p><a href="https://example.com">site</a> <img src="i.png" alt="pic"></p>'
    assert md(html) == "[site](https://example.com) ![pic](i.png)"
    assert md('<p><a href="https://example.com"></a></p>') == "[https://example.com](https://example.com)"
    assert md("<p><a>plain</a><img alt='none'></p>") == "plain"


def test_headings_keep_level():
    assert md("<div><h4>Deep</h4><h1>Top</h1></div>") == "#### Deep\n\n# Top"


def test_unknown_tags_and_comments_are_transparent():
    assert md("<p><span>x</span> <custom-el>y</custom-el><!-- hidden --></p>") == "x y"


def test_indentation_between_blocks_is_dropped():
    html = "<div>\n  <p>one</p>\n  <p>two</p>\n</div>"
    assert md(html) == "one\n\ntwo"


def test_formula_answer_keeps_order():
    soup = parse(load_fixture("gemini-svm-response.html"))
    markdown = extract_markdown_from_node(soup.select_one(".markdown"))

    expected_in_order = [
        "SVM（サポートベクターマシン）は、境界線",
        "その数式的な核心は**マージン最大化**",
        "---",
        "### 1. 線形モデルの基本形",
        "まず、データを分類する超平面",
        "$$\nf(x) = w^T x + b\n$$",
        "- $w$:",
        "- $b$:",
        "- $x$:",
        "このとき、ラベル $y$ を $1$ または $-1$",
        "$$\ny_i (w^T x_i + b) \\geq 1\n$$",
        "### 2. マージンの最大化",
        "$\\frac{2}{\\|w\\|}$",
    ]
    last_index = -1
    for snippet in expected_in_order:
        index = markdown.find(snippet)
        assert index != -1, f"missing snippet: {snippet}"
        assert index > last_index, f"order mismatch for: {snippet}"
        last_index = index


def test_code_block_without_code_is_transparent():
    assert md("<div><code-block><span>just text</span></code-block></div>") == "just text"


def test_quoted_code_keeps_its_blank_lines():
    html = "<div><blockquote><pre>a\n\n\n\nb</pre></blockquote><p>after</p></div>"
    assert md(html) == "> ```\n> a\n>\n>\n>\n> b\n> ```\n\nafter"
