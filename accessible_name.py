"""
accessible_name.py - Accessible names, element locators and visibility on parsed HTML.

Works on BeautifulSoup tags. The rendered-page detector (keyboard_audit.py)
carries the same logic in JavaScript.

Usage:
    soup = BeautifulSoup(html, "html.parser")
    name = accessible_name(soup.find("button"))
    selector = css_path(soup.find("button"))
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, Tag

MAX_PATH_DEPTH = 10

NON_RENDERED_TAGS = {"head", "script", "style", "template", "noscript", "title", "meta", "link"}
VALUE_NAMED_INPUTS = {"submit", "button", "reset"}

_STYLE_HIDDEN = re.compile(r"(?:^|;)\s*(display\s*:\s*none|visibility\s*:\s*hidden)\s*(?:!important)?\s*(?:;|$)", re.I)


def clean_text(value: object) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip()


def attr(el: Tag, name: str) -> str:
    """Attribute as a plain string (bs4 returns lists for class-like attributes)."""
    value = el.get(name)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def document_root(el: Tag) -> Tag:
    root = el
    for parent in el.parents:
        root = parent
    return root


def text_content(el: Tag) -> str:
    return clean_text(el.get_text())


def labelled_by_text(el: Tag) -> str:
    ids = clean_text(attr(el, "aria-labelledby"))
    if not ids:
        return ""
    root = document_root(el)
    chunks = []
    for ref in ids.split(" "):
        source = root.find(id=ref)
        if isinstance(source, Tag):
            text = text_content(source)
            if text:
                chunks.append(text)
    return clean_text(" ".join(chunks))


def _explicit_label(el: Tag) -> str:
    control_id = clean_text(attr(el, "id"))
    if not control_id:
        return ""
    root = document_root(el)
    for label in root.find_all("label"):
        if attr(label, "for") == control_id:
            text = text_content(label)
            if text:
                return text
    return ""


def _wrapping_label(el: Tag) -> str:
    label = el.find_parent("label")
    if label is None:
        return ""
    return text_content(label)


def control_label_text(el: Tag) -> str:
    """Programmatic label of a form control (labelled-by, aria-label, <label>)."""
    via_labelled_by = labelled_by_text(el)
    if via_labelled_by:
        return via_labelled_by
    aria_label = clean_text(attr(el, "aria-label"))
    if aria_label:
        return aria_label
    return _explicit_label(el) or _wrapping_label(el)


def accessible_name(el: Tag | None) -> str:
    """
    Name announced by assistive technology, first non-empty source wins:
    aria-labelledby, aria-label, element rules (img alt, input value),
    associated <label>, nested img alt for links, title, text content.
    """
    if not isinstance(el, Tag):
        return ""

    labelled_by = labelled_by_text(el)
    if labelled_by:
        return labelled_by

    aria_label = clean_text(attr(el, "aria-label"))
    if aria_label:
        return aria_label

    tag = el.name.lower()
    if tag == "img":
        return clean_text(attr(el, "alt"))

    if tag == "input":
        input_type = clean_text(attr(el, "type")).lower()
        if input_type == "image":
            alt = clean_text(attr(el, "alt"))
            if alt:
                return alt
        if input_type in VALUE_NAMED_INPUTS:
            value = clean_text(attr(el, "value"))
            if value:
                return value

    label = _explicit_label(el) or _wrapping_label(el)
    if label:
        return label

    if tag == "a":
        nested = el.find("img", alt=True)
        if nested is not None:
            nested_alt = clean_text(attr(nested, "alt"))
            if nested_alt:
                return nested_alt

    title = clean_text(attr(el, "title"))
    if title:
        return title

    return text_content(el)


def css_escape(ident: str) -> str:
    """CSS.escape() for identifiers."""
    out = []
    length = len(ident)
    for i, ch in enumerate(ident):
        code = ord(ch)
        if code == 0:
            out.append("\ufffd")
        elif 0x1 <= code <= 0x1F or code == 0x7F:
            out.append(f"\\{code:x} ")
        elif i == 0 and "0" <= ch <= "9":
            out.append(f"\\{code:x} ")
        elif i == 1 and "0" <= ch <= "9" and ident[0] == "-":
            out.append(f"\\{code:x} ")
        elif i == 0 and ch == "-" and length == 1:
            out.append("\\-")
        elif code >= 0x80 or ch in "-_" or ch.isascii() and ch.isalnum():
            out.append(ch)
        else:
            out.append("\\" + ch)
    return "".join(out)


def _element_children(el: Tag) -> list[Tag]:
    return [child for child in el.children if isinstance(child, Tag)]


def css_path(el: Tag | None) -> str:
    """
    Structural locator: ancestor > ... > element. Stops at the first ancestor
    carrying an id; at most MAX_PATH_DEPTH fragments.
    """
    if not isinstance(el, Tag) or isinstance(el, BeautifulSoup):
        return ""

    parts: list[str] = []
    node: Tag | None = el
    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup) and len(parts) < MAX_PATH_DEPTH:
        part = node.name.lower()
        node_id = attr(node, "id")
        if node_id:
            parts.insert(0, f"{part}#{css_escape(node_id)}")
            break

        classes = [name for name in attr(node, "class").split() if name][:2]
        if classes:
            part += "".join(f".{css_escape(name)}" for name in classes)

        parent = node.parent
        if isinstance(parent, Tag):
            siblings = [child for child in _element_children(parent) if child.name == node.name]
            if len(siblings) > 1:
                position = next(i for i, child in enumerate(siblings) if child is node) + 1
                part += f":nth-of-type({position})"

        parts.insert(0, part)
        node = parent

    return " > ".join(parts)


def outer_html(el: Tag, limit: int = 400) -> str:
    return clean_text(str(el))[:limit]


def _hidden_by_style(el: Tag) -> bool:
    return bool(_STYLE_HIDDEN.search(attr(el, "style")))


def _declared_size(el: Tag, name: str) -> float | None:
    raw = clean_text(attr(el, name)).lower().removesuffix("px")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def is_visible(el: Tag) -> bool:
    """
    Static approximation of rendered visibility: no hidden / aria-hidden,
    no inline display:none or visibility:hidden up the tree, and not
    declared as a 1x1 box (tracking pixels).
    """
    if not isinstance(el, Tag):
        return False
    if el.has_attr("hidden") or attr(el, "aria-hidden") == "true":
        return False
    if _hidden_by_style(el):
        return False
    for ancestor in el.parents:
        if isinstance(ancestor, BeautifulSoup):
            break
        if ancestor.name in NON_RENDERED_TAGS:
            return False
        if ancestor.has_attr("hidden") or _hidden_by_style(ancestor):
            return False
    if el.name in NON_RENDERED_TAGS:
        return False
    width = _declared_size(el, "width")
    height = _declared_size(el, "height")
    if width is not None and width <= 1:
        return False
    if height is not None and height <= 1:
        return False
    return True
