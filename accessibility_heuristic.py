"""
accessibility_heuristic.py - Lightweight A11y checks on raw HTML.

Same rule set and codes as the in-page detector (keyboard_audit.py), evaluated
on the fetched document without a browser. Keyboard checks only see inline
on* attributes since no listener table exists here.

Usage:
    issues = audit_a11y(html_content)
"""

from __future__ import annotations

import re
from urllib.parse import unquote

from bs4 import BeautifulSoup, Tag

from a11y_models import ISSUE_TYPE_CODES, STATIC_RUNNER, Issue, dedupe_issues
from accessible_name import (
    accessible_name,
    attr,
    clean_text,
    control_label_text,
    css_path,
    is_visible,
    outer_html,
)
from keyboard_audit import (
    CODES,
    EARLY_FOCUS_WINDOW,
    GENERIC_LINK_TEXTS,
    INTERACTIVE_ARIA_STATES,
    INTERACTIVE_ROLES,
    KEYBOARD_EVENTS,
    MESSAGES,
    POINTER_EVENTS,
)

NATIVE_FOCUSABLE = 'a[href], button, input:not([type="hidden"]), select, textarea, summary'
FOCUSABLE_ANCESTOR = NATIVE_FOCUSABLE + ', [tabindex]:not([tabindex="-1"]), [contenteditable]'
CANDIDATES = NATIVE_FOCUSABLE + ", [role], [tabindex], [contenteditable]"
FOCUSABLE_CHILD = 'a[href], button, input:not([type="hidden"]), select, textarea, [tabindex]:not([tabindex="-1"])'
SEARCH_HINTS = 'form[role="search"], [role="search"], input[type="search"], [aria-label*="search" i], [class*="search"]'
BREADCRUMB_HINTS = '[aria-label*="breadcrumb" i], .breadcrumb, .breadcrumbs'

CONTEXT_CHANGE_RE = re.compile(r"location\.|window\.open|submit\(")
NON_WORD_RE = re.compile(r"[^\w\s]")


class _Collector:
    def __init__(self):
        self.issues: list[Issue] = []

    def push(self, el: Tag, rule: str, message_key: str, issue_type: str) -> None:
        self.issues.append(Issue(
            code=CODES[rule],
            type=issue_type,
            type_code=ISSUE_TYPE_CODES[issue_type],
            message=MESSAGES[message_key],
            selector=css_path(el),
            context=outer_html(el),
            runner=STATIC_RUNNER,
        ))


def _has_inline_handler(el: Tag, events) -> bool:
    return any(el.has_attr("on" + name) for name in events)


def _is_native_keyboard(el: Tag) -> bool:
    tag = el.name.lower()
    if tag == "a" and el.has_attr("href"):
        return True
    if tag in ("button", "select", "textarea", "summary"):
        return True
    if tag == "input" and attr(el, "type").lower() != "hidden":
        return True
    return el.has_attr("contenteditable")


def _tabindex(el: Tag) -> int | None:
    if not el.has_attr("tabindex"):
        return None
    try:
        return int(attr(el, "tabindex").strip())
    except ValueError:
        return None


def _is_keyboard_focusable(el: Tag) -> bool:
    if _is_native_keyboard(el):
        return True
    value = _tabindex(el)
    return value is not None and value >= 0


def _has_interactive_role(el: Tag) -> bool:
    return clean_text(attr(el, "role")).lower() in INTERACTIVE_ROLES


def _has_interactive_aria(el: Tag) -> bool:
    return any(el.has_attr(name) for name in INTERACTIVE_ARIA_STATES)


def _is_interactive(el: Tag) -> bool:
    if el.css.match(NATIVE_FOCUSABLE) or el.has_attr("contenteditable"):
        return True
    value = _tabindex(el)
    if value is not None and value >= 0:
        return True
    return _has_interactive_role(el) or _has_interactive_aria(el)


def _is_container_only(el: Tag) -> bool:
    if el.name in ("html", "body"):
        return True
    if el.css.match(".swiper, .swiper-container, .swiper-wrapper"):
        return True
    has_focusable_child = el.select_one(FOCUSABLE_CHILD) is not None
    return has_focusable_child and not el.has_attr("role") and not el.has_attr("tabindex")


def _is_decorative(img: Tag) -> bool:
    if clean_text(attr(img, "role")).lower() in ("presentation", "none"):
        return True
    if attr(img, "aria-hidden") == "true":
        return True
    return img.find_parent(attrs={"aria-hidden": "true"}) is not None


def _is_focus_candidate(el: Tag) -> bool:
    if not is_visible(el) or el.has_attr("disabled"):
        return False
    if attr(el, "tabindex").strip() == "-1":
        return False
    return _is_interactive(el)


def _body_elements(soup: BeautifulSoup) -> list[Tag]:
    if soup.body is not None:
        return soup.body.find_all(True)
    return [el for el in soup.find_all(True) if el.name not in ("html", "head")]


def _check_keyboard(soup: BeautifulSoup, out: _Collector, strict: bool) -> None:
    for el in _body_elements(soup):
        if not is_visible(el) or _is_keyboard_focusable(el):
            continue
        if el.css.closest(FOCUSABLE_ANCESTOR) is not None:
            continue

        pointer = _has_inline_handler(el, POINTER_EVENTS)
        keyboard = _has_inline_handler(el, KEYBOARD_EVENTS)
        role_or_state = _has_interactive_role(el) or _has_interactive_aria(el)

        if strict:
            if not (pointer or role_or_state):
                continue
        elif not pointer or keyboard:
            continue
        if _is_container_only(el):
            continue

        if not strict:
            out.push(el, "keyboard_only", "keyboard_pointer_only", "error")
        elif pointer and not keyboard:
            out.push(el, "keyboard_only", "keyboard_pointer_only", "warning")
        elif role_or_state:
            out.push(el, "keyboard_only", "keyboard_aria_only", "warning")
        else:
            out.push(el, "keyboard_only", "keyboard_not_focusable", "warning")


def _check_images(soup: BeautifulSoup, out: _Collector) -> None:
    for img in soup.find_all("img"):
        if img.css.match(".lb-image, .lazyload-placeholder") or not is_visible(img):
            continue
        if not img.has_attr("alt"):
            out.push(img, "image_alt_missing", "image_alt_missing", "error")
            continue
        if clean_text(attr(img, "alt")) == "" and not _is_decorative(img):
            parent = img.css.closest("a[href], button")
            if not (parent is not None and accessible_name(parent)):
                out.push(img, "image_alt_empty", "image_alt_empty", "warning")


def _check_names(soup: BeautifulSoup, out: _Collector) -> None:
    for el in soup.select(CANDIDATES):
        if not is_visible(el) or not _is_interactive(el):
            continue
        if not accessible_name(el):
            out.push(el, "name_missing", "name_missing", "error")
        if el.name in ("input", "select", "textarea") and attr(el, "type").lower() != "hidden":
            if clean_text(attr(el, "type")).lower() in ("submit", "button", "reset", "image"):
                continue
            if not control_label_text(el):
                out.push(el, "form_label_missing", "form_label_missing", "warning")


def _check_links(soup: BeautifulSoup, out: _Collector) -> None:
    for link in soup.select("a[href]"):
        if not is_visible(link):
            continue
        name = accessible_name(link).lower()
        if not name:
            out.push(link, "link_purpose_missing", "link_purpose_missing", "error")
            continue
        normalized = clean_text(NON_WORD_RE.sub("", name))
        if normalized in GENERIC_LINK_TEXTS:
            out.push(link, "link_purpose_weak", "link_purpose_weak", "warning")


def _check_bypass(soup: BeautifulSoup, out: _Collector, early_window: int) -> None:
    page = soup.body or soup
    skip_links = [
        a for a in soup.select('a[href^="#"]')
        if "skip" in clean_text(a.get_text()).lower() or "skip-link" in attr(a, "class").lower()
    ]
    if not skip_links:
        out.push(page, "skip_link_missing", "skip_link_missing", "error")
        return

    valid_target = False
    for link in skip_links:
        target_id = unquote(clean_text(attr(link, "href"))[1:])
        if target_id and soup.find(id=target_id) is not None:
            valid_target = True
        else:
            out.push(link, "skip_target_missing", "skip_target_missing", "error")
    if not valid_target:
        out.push(page, "skip_no_valid_target", "skip_no_valid_target", "error")

    early = [el for el in soup.select(CANDIDATES) if _is_focus_candidate(el)][:early_window]
    if not any(link is el for link in skip_links for el in early):
        out.push(skip_links[0], "skip_late_in_order", "skip_late_in_order", "warning")


def _check_context_change(soup: BeautifulSoup, out: _Collector) -> None:
    for el in soup.select("[onchange], [onblur]"):
        if not is_visible(el):
            continue
        source = f"{clean_text(attr(el, 'onchange'))};{clean_text(attr(el, 'onblur'))}".lower()
        if CONTEXT_CHANGE_RE.search(source):
            out.push(el, "context_change", "context_change", "warning")


def _check_multiple_ways(soup: BeautifulSoup, out: _Collector) -> None:
    has_search = soup.select_one(SEARCH_HINTS) is not None
    has_sitemap = any(
        "sitemap" in f"{attr(a, 'href')} {a.get_text()}".lower() for a in soup.select("a[href]")
    )
    has_breadcrumbs = soup.select_one(BREADCRUMB_HINTS) is not None
    nav_links = len(soup.select('nav a[href], [role="navigation"] a[href]'))
    if not (has_search or has_sitemap or has_breadcrumbs) and nav_links < 5:
        out.push(soup.body or soup, "multiple_ways", "multiple_ways", "warning")


def audit_a11y(html: str, strict_keyboard: bool = True, early_focus_window: int = EARLY_FOCUS_WINDOW) -> list[Issue]:
    soup = BeautifulSoup(html or "", "html.parser")
    out = _Collector()

    _check_keyboard(soup, out, strict_keyboard)
    _check_images(soup, out)
    _check_names(soup, out)
    _check_links(soup, out)
    _check_bypass(soup, out, early_focus_window)
    _check_context_change(soup, out)
    _check_multiple_ways(soup, out)

    return dedupe_issues(out.issues)
