"""
Clone-and-strip pass run before rendering.

The caller's tree is never touched: everything happens on a deep copy, which
loses its UI chrome (copy/export buttons, table footers) and has its KaTeX
nodes swapped for raw placeholders the renderer emits verbatim.
"""

import copy

from bs4 import BeautifulSoup, Tag

RAW_ATTR = "data-md-raw"
TEX_ANNOTATION = "annotation[encoding='application/x-tex']"

# Detached factory for placeholder nodes
_factory = BeautifulSoup("", "html.parser")


def is_message_action(element: Tag) -> bool:
    if element.name.lower() == "button":
        return True
    if element.has_attr("hide-from-message-actions"):
        return True
    return "table-footer" in element.get_attribute_list("class")


def _collect_action_nodes(element: Tag, collected: list[Tag]):
    if is_message_action(element):
        collected.append(element)
        return
    for child in element.find_all(recursive=False):
        _collect_action_nodes(child, collected)


def strip_message_actions(node: Tag) -> Tag:
    """Return a deep copy of node without message-action subtrees."""
    clone = copy.copy(node)
    collected: list[Tag] = []
    _collect_action_nodes(clone, collected)
    for element in collected:
        # The clone root has no parent to be removed from
        if element is clone:
            continue
        element.decompose()
    return clone


def extract_tex(element: Tag) -> str:
    direct = element.get("data-math")
    if direct:
        return direct
    annotation = element.select_one(TEX_ANNOTATION)
    if annotation is None:
        return ""
    return annotation.get_text().strip()


def raw_node(text: str) -> Tag:
    raw = _factory.new_tag("span", attrs={RAW_ATTR: text})
    raw.string = text
    return raw


def _replace_math(root: Tag, class_name: str, wrap):
    nodes = root.select(f".{class_name}[data-math]") + root.select(f".{class_name}:not([data-math])")
    for element in nodes:
        tex = extract_tex(element)
        if not tex:
            continue
        element.replace_with(raw_node(wrap(tex)))


def sanitize(node: Tag) -> Tag:
    clone = strip_message_actions(node)
    _replace_math(clone, "math-block", lambda tex: f"$$\n{tex}\n$$")
    _replace_math(clone, "math-inline", lambda tex: f"${tex}$")
    return clone
