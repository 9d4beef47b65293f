"""
In-page detector rules, evaluated in headless Chromium.
Skipped when no browser can be launched.
"""
from __future__ import annotations

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from keyboard_audit import CODES, MESSAGES, install_listener_probe, run_keyboard_audit
from page_scanner import CHROMIUM_ARGS, VIEWPORT

NAV = "<nav>" + "".join(f"<a href='/s{i}'>Section {i}</a>" for i in range(5)) + "</nav>"
SKIP = "<a id='skip' class='skip-link' href='#main'>Skip to content</a>"
BOX = "display:block;width:40px;height:40px"
GIF = "data:image/gif;base64,R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7"


@pytest.fixture(scope="module")
def browser():
    try:
        pw = sync_playwright().start()
    except PlaywrightError as e:
        pytest.skip(f"Playwright is not available: {e}")
    try:
        chromium = pw.chromium.launch(headless=True, args=CHROMIUM_ARGS)
    except PlaywrightError as e:
        pw.stop()
        pytest.skip(f"Chromium is not available: {e}")
    yield chromium
    chromium.close()
    pw.stop()


@pytest.fixture
def detect(browser):
    context = browser.new_context(viewport=VIEWPORT)

    def _detect(body: str, **kwargs):
        page = context.new_page()
        install_listener_probe(page)
        page.set_content(f"<html><head><title>t</title></head><body>{body}</body></html>")
        return run_keyboard_audit(page, **kwargs)

    yield _detect
    context.close()


def _selectors(issues, code_key: str) -> list[str]:
    return [issue.selector for issue in issues if issue.code == CODES[code_key]]


def test_image_alt_rules_and_decorative_images(detect) -> None:
    issues = detect(
        SKIP + NAV
        + f"<img src='{GIF}' id='no-alt' style='{BOX}'>"
        + f"<img src='{GIF}' id='blank' alt='' style='{BOX}'>"
        + f"<img src='{GIF}' id='presentational' alt='' role='presentation' style='{BOX}'>"
        + f"<div aria-hidden='true'><img src='{GIF}' id='hidden-branch' alt='' style='{BOX}'></div>"
        + f"<a href='/home'>Home <img src='{GIF}' id='in-named-link' alt='' style='{BOX}'></a>"
        + "<main id='main'>Body</main>"
    )
    assert _selectors(issues, "image_alt_missing") == ["img#no-alt"]
    assert _selectors(issues, "image_alt_empty") == ["img#blank"]
    (empty,) = [issue for issue in issues if issue.code == CODES["image_alt_empty"]]
    assert empty.type == "warning"


def test_visibility_gate_skips_tiny_and_hidden_elements(detect) -> None:
    issues = detect(
        SKIP + NAV
        + f"<img src='{GIF}' id='pixel' style='display:block;width:1px;height:1px'>"
        + f"<img src='{GIF}' id='ghost-img' style='{BOX};visibility:hidden'>"
        + "<div id='tiny' onclick='go()' style='width:1px;height:1px'></div>"
        + "<div id='ghost' onclick='go()' style='visibility:hidden;width:80px;height:20px'>Ghost</div>"
        + "<div id='shown' onclick='go()' style='width:80px;height:20px'>Shown</div>"
        + "<main id='main'>Body</main>",
        strict_keyboard=False,
    )
    assert _selectors(issues, "image_alt_missing") == []
    assert _selectors(issues, "keyboard_only") == ["div#shown"]


def test_keyboard_rule_severity_follows_strict_mode(detect) -> None:
    body = (
        SKIP + NAV
        + "<div id='pointer' onclick='go()' style='width:80px;height:20px'>Pointer</div>"
        + "<div id='both' onclick='go()' onkeydown='go()' style='width:80px;height:20px'>Both</div>"
        + "<div id='role' role='button' style='width:80px;height:20px'>Role</div>"
        + "<button id='native' onclick='go()'>Native</button>"
        + "<main id='main'>Body</main>"
    )
    relaxed = [i for i in detect(body, strict_keyboard=False) if i.code == CODES["keyboard_only"]]
    assert [(i.selector, i.type) for i in relaxed] == [("div#pointer", "error")]

    strict = {i.selector: i for i in detect(body, strict_keyboard=True) if i.code == CODES["keyboard_only"]}
    assert set(strict) == {"div#pointer", "div#both", "div#role"}
    assert {i.type for i in strict.values()} == {"warning"}
    assert strict["div#pointer"].message == MESSAGES["keyboard_pointer_only"]
    assert strict["div#both"].message == MESSAGES["keyboard_not_focusable"]
    assert strict["div#role"].message == MESSAGES["keyboard_aria_only"]


def test_form_labels_and_names(detect) -> None:
    issues = detect(
        SKIP + NAV
        + "<label>Email <input id='wrapped' type='text'></label>"
        + "<label for='explicit'>Phone</label><input id='explicit' type='tel'>"
        + "<span id='hint'>Postcode</span><input id='labelled' aria-labelledby='hint'>"
        + "<input id='bare' type='text'>"
        + "<input id='send' type='submit' value='Send'>"
        + "<button id='empty-button' style='width:40px;height:20px'></button>"
        + "<main id='main'>Body</main>"
    )
    assert _selectors(issues, "form_label_missing") == ["input#bare"]
    assert _selectors(issues, "name_missing") == ["input#bare", "button#empty-button"]


def test_link_purpose(detect) -> None:
    issues = detect(
        SKIP + NAV
        + "<a id='more' href='/a'>Read more</a>"
        + "<a id='click' href='/b'>Click here!</a>"
        + "<a id='plans' href='/c'>Pricing plans</a>"
        + "<a id='blank' href='/d' style='display:inline-block;width:30px;height:20px'></a>"
        + "<a id='logo' href='/'><img src='" + GIF + "' alt='Company home' style='" + BOX + "'></a>"
        + "<main id='main'>Body</main>"
    )
    assert _selectors(issues, "link_purpose_weak") == ["a#more", "a#click"]
    assert _selectors(issues, "link_purpose_missing") == ["a#blank"]


def test_skip_link_with_valid_target(detect) -> None:
    issues = detect(SKIP + NAV + "<main id='main'>Body</main>")
    for key in ("skip_link_missing", "skip_target_missing", "skip_no_valid_target", "skip_late_in_order"):
        assert _selectors(issues, key) == []


def test_skip_link_with_missing_target(detect) -> None:
    issues = detect("<a id='skip' href='#nowhere'>Skip navigation</a>" + NAV + "<main>Body</main>")
    assert _selectors(issues, "skip_target_missing") == ["a#skip"]
    assert _selectors(issues, "skip_no_valid_target") == ["html > body"]
    assert _selectors(issues, "skip_link_missing") == []


def test_skip_link_outside_early_focus_window(detect) -> None:
    buttons = "".join(f"<button>Action {i}</button>" for i in range(10))
    body = buttons + SKIP + NAV + "<main id='main'>Body</main>"

    late = detect(body, early_focus_window=8)
    assert _selectors(late, "skip_late_in_order") == ["a#skip"]
    assert _selectors(late, "skip_no_valid_target") == []

    assert _selectors(detect(body, early_focus_window=20), "skip_late_in_order") == []


def test_context_change_handlers(detect) -> None:
    issues = detect(
        SKIP + NAV
        + "<select id='jump' aria-label='Jump' onchange='window.location.href = this.value'><option>One</option></select>"
        + "<form><input id='auto' aria-label='Code' onblur='this.form.submit()'></form>"
        + "<select id='popup' aria-label='Popup' onchange='window.open(this.value)'><option>One</option></select>"
        + "<select id='quiet' aria-label='Quiet' onchange='console.log(this.value)'><option>One</option></select>"
        + "<main id='main'>Body</main>"
    )
    assert _selectors(issues, "context_change") == ["select#jump", "input#auto", "select#popup"]


@pytest.mark.parametrize(
    "body, flagged",
    [
        ("<nav><a href='/a'>A</a><a href='/b'>B</a></nav>", True),
        (NAV, False),
        ("<form role='search'><input type='search' aria-label='Search'></form>", False),
        ("<a href='/sitemap.xml'>All pages</a>", False),
        ("<ol class='breadcrumb'><li><a href='/'>Home</a></li></ol>", False),
    ],
)
def test_multiple_ways(detect, body: str, flagged: bool) -> None:
    issues = detect(SKIP + body + "<main id='main'>Body</main>")
    assert _selectors(issues, "multiple_ways") == (["html > body"] if flagged else [])
