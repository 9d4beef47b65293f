"""
keyboard_audit.py - Heuristic accessibility detector evaluated inside a rendered page.

Usage:
    # Inside a Playwright session, before navigation
    page.add_init_script(script=LISTENER_PROBE_SNIPPET)
    page.goto(url)
    issues = run_keyboard_audit(page)
"""

from __future__ import annotations

import logging
from typing import Any

from a11y_models import DETECTOR_RUNNER, Issue, dedupe_issues

logger = logging.getLogger(__name__)

POINTER_EVENTS = (
    "click", "dblclick", "mousedown", "mouseup", "mouseover", "mouseout",
    "mousemove", "pointerdown", "pointerup", "touchstart", "touchend",
)
KEYBOARD_EVENTS = ("keydown", "keyup", "keypress", "focus", "blur")

INTERACTIVE_ROLES = (
    "button", "checkbox", "combobox", "link", "menuitem", "menuitemcheckbox",
    "menuitemradio", "option", "radio", "searchbox", "slider", "spinbutton",
    "switch", "tab", "textbox", "treeitem",
)
INTERACTIVE_ARIA_STATES = ("aria-expanded", "aria-controls", "aria-haspopup", "aria-pressed")

GENERIC_LINK_TEXTS = (
    "click here", "here", "read more", "learn more", "more", "details", "view", "go", "link",
)

# Focusable candidates considered when checking where the skip link sits in tab order
EARLY_FOCUS_WINDOW = 8

CODES = {
    "keyboard_only": "WCAG2AAA.Principle2.Guideline2_1.2_1_1.Custom.KeyboardOnly",
    "image_alt_missing": "WCAG2AAA.Principle1.Guideline1_1.1_1_1.Custom.ImageAltMissing",
    "image_alt_empty": "WCAG2AAA.Principle1.Guideline1_1.1_1_1.Custom.ImageAltEmpty",
    "name_missing": "WCAG2AAA.Principle4.Guideline4_1.4_1_2.Custom.NameMissing",
    "form_label_missing": "WCAG2AAA.Principle1.Guideline1_3.1_3_1.Custom.FormLabelMissing",
    "link_purpose_missing": "WCAG2AAA.Principle2.Guideline2_4.2_4_4.Custom.LinkPurposeMissing",
    "link_purpose_weak": "WCAG2AAA.Principle2.Guideline2_4.2_4_4.Custom.LinkPurposeWeak",
    "skip_link_missing": "WCAG2AAA.Principle2.Guideline2_4.2_4_1.Custom.SkipLinkMissing",
    "skip_target_missing": "WCAG2AAA.Principle2.Guideline2_4.2_4_1.Custom.SkipTargetMissing",
    "skip_no_valid_target": "WCAG2AAA.Principle2.Guideline2_4.2_4_1.Custom.SkipNoValidTarget",
    "skip_late_in_order": "WCAG2AAA.Principle2.Guideline2_4.2_4_1.Custom.SkipLateInOrder",
    "context_change": "WCAG2AAA.Principle3.Guideline3_2.3_2_2.Custom.UnexpectedContextChange",
    "multiple_ways": "WCAG2AAA.Principle2.Guideline2_4.2_4_5.Custom.MultipleWaysHeuristic",
}

MESSAGES = {
    "keyboard_pointer_only": "Potential keyboard-only issue: pointer interaction detected without keyboard handler on non-focusable element.",
    "keyboard_aria_only": "Potential keyboard-only issue: interactive role/ARIA state on non-focusable element.",
    "keyboard_not_focusable": "Potential keyboard-only issue: interactive element is not keyboard focusable.",
    "image_alt_missing": "Image is missing an alt attribute.",
    "image_alt_empty": "Image has empty alt text but does not appear decorative.",
    "name_missing": "Interactive element is missing an accessible name.",
    "form_label_missing": "Form control is missing a label or equivalent programmatic description.",
    "link_purpose_missing": "Link has no discernible descriptive text.",
    "link_purpose_weak": "Link text is generic and may not be descriptive enough out of context.",
    "skip_link_missing": "No skip link was found to bypass repeated navigation.",
    "skip_target_missing": "Skip link target does not exist in the document.",
    "skip_no_valid_target": "Skip links exist but none point to a valid target.",
    "skip_late_in_order": "Skip link is not among the first focusable controls in tab order.",
    "context_change": "Element appears to trigger a context change on input/blur without an explicit user request.",
    "multiple_ways": "Page does not appear to expose multiple navigation methods (search, sitemap, breadcrumbs, or robust navigation).",
}

# Installed with page.add_init_script() so it runs before any page script.
# Records every event type registered per element in a WeakMap keyed by the element.
LISTENER_PROBE_SNIPPET = r"""
(() => {
    if (window.__a11yListenerTypes) return;
    const table = new WeakMap();
    Object.defineProperty(window, '__a11yListenerTypes', {
        value: table,
        enumerable: false,
        configurable: false,
        writable: false
    });
    const original = EventTarget.prototype.addEventListener;
    EventTarget.prototype.addEventListener = function (type, listener, options) {
        try {
            if (this && this.nodeType === 1 && typeof type === 'string') {
                const seen = table.get(this) || [];
                seen.push(type.toLowerCase());
                table.set(this, seen);
            }
        } catch (e) {}
        return original.call(this, type, listener, options);
    };
})();
"""

DETECTOR_SNIPPET = r"""
(options) => {
    const codes = options.codes;
    const messages = options.messages;
    const pointerEvents = new Set(options.pointerEvents);
    const keyboardEvents = new Set(options.keyboardEvents);
    const interactiveRoles = new Set(options.interactiveRoles);
    const ariaStates = options.ariaStates;
    const genericLinkTexts = new Set(options.genericLinkTexts);
    const listenerTable = window.__a11yListenerTypes || null;

    const NATIVE_FOCUSABLE = 'a[href], button, input:not([type="hidden"]), select, textarea, summary';
    const FOCUSABLE_ANCESTOR = NATIVE_FOCUSABLE + ', [tabindex]:not([tabindex="-1"]), [contenteditable]';
    const CANDIDATES = NATIVE_FOCUSABLE + ', [role], [tabindex], [contenteditable]';

    function cleanText(value) {
        return String(value || '').replace(/\s+/g, ' ').trim();
    }

    function cssPath(el) {
        if (!(el instanceof Element)) return '';
        const parts = [];
        let node = el;
        while (node && node.nodeType === 1 && parts.length < 10) {
            let part = node.tagName.toLowerCase();
            if (node.id) {
                parts.unshift(part + '#' + CSS.escape(node.id));
                break;
            }
            const classes = String(node.getAttribute('class') || '')
                .split(/\s+/)
                .filter(Boolean)
                .slice(0, 2);
            if (classes.length) {
                part += classes.map((name) => '.' + CSS.escape(name)).join('');
            }
            const parent = node.parentElement;
            if (parent) {
                const siblings = Array.from(parent.children).filter((child) => child.tagName === node.tagName);
                if (siblings.length > 1) {
                    part += ':nth-of-type(' + (siblings.indexOf(node) + 1) + ')';
                }
            }
            parts.unshift(part);
            node = node.parentElement;
        }
        return parts.join(' > ');
    }

    function isVisible(el) {
        if (!(el instanceof Element)) return false;
        if (el.hidden || el.getAttribute('aria-hidden') === 'true') return false;
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') return false;
        const rect = el.getBoundingClientRect();
        return rect.width > 1 && rect.height > 1;
    }

    function hasHandlerOfAnyType(el, types) {
        for (const type of types) {
            if (el.hasAttribute('on' + type)) return true;
            if (typeof el['on' + type] === 'function') return true;
        }
        const registered = listenerTable ? listenerTable.get(el) : null;
        return Array.isArray(registered) && registered.some((type) => types.has(type));
    }

    function isNativeKeyboardElement(el) {
        const tag = el.tagName.toLowerCase();
        if (tag === 'a' && el.hasAttribute('href')) return true;
        if (['button', 'select', 'textarea', 'summary'].includes(tag)) return true;
        if (tag === 'input' && String(el.getAttribute('type') || '').toLowerCase() !== 'hidden') return true;
        return el.hasAttribute('contenteditable');
    }

    function isKeyboardFocusable(el) {
        if (isNativeKeyboardElement(el)) return true;
        const tabindex = el.getAttribute('tabindex');
        if (tabindex === null) return false;
        const value = Number(tabindex);
        return Number.isFinite(value) && value >= 0;
    }

    function hasInteractiveRole(el) {
        const role = cleanText(el.getAttribute('role')).toLowerCase();
        return Boolean(role) && interactiveRoles.has(role);
    }

    function hasInteractiveAria(el) {
        return ariaStates.some((name) => el.hasAttribute(name));
    }

    function isInteractiveElement(el) {
        if (el.matches(NATIVE_FOCUSABLE)) return true;
        if (el.hasAttribute('contenteditable')) return true;
        const tabindex = el.getAttribute('tabindex');
        if (tabindex !== null && Number(tabindex) >= 0) return true;
        return hasInteractiveRole(el) || hasInteractiveAria(el);
    }

    function isLikelyContainerOnly(el) {
        if (el.matches('html, body')) return true;
        if (el.matches('.swiper, .swiper-container, .swiper-wrapper')) return true;
        const focusableChild = el.querySelector('a[href], button, input:not([type="hidden"]), select, textarea, [tabindex]:not([tabindex="-1"])');
        return Boolean(focusableChild) && !el.hasAttribute('role') && !el.hasAttribute('tabindex');
    }

    function labelledByText(el) {
        const ids = cleanText(el.getAttribute('aria-labelledby'));
        if (!ids) return '';
        const chunks = ids.split(' ').map((id) => {
            const source = document.getElementById(id);
            return source ? cleanText(source.textContent) : '';
        }).filter(Boolean);
        return cleanText(chunks.join(' '));
    }

    function associatedLabelText(el) {
        if ('labels' in el && el.labels && el.labels.length) {
            const text = cleanText(Array.from(el.labels).map((label) => label.textContent).join(' '));
            if (text) return text;
        }
        const id = cleanText(el.getAttribute('id'));
        if (id) {
            const explicit = document.querySelector('label[for="' + CSS.escape(id) + '"]');
            if (explicit) {
                const text = cleanText(explicit.textContent);
                if (text) return text;
            }
        }
        const wrapping = el.closest('label');
        return wrapping ? cleanText(wrapping.textContent) : '';
    }

    function controlLabelText(el) {
        return labelledByText(el)
            || cleanText(el.getAttribute('aria-label'))
            || associatedLabelText(el);
    }

    function accessibleName(el) {
        if (!(el instanceof Element)) return '';
        const labelledBy = labelledByText(el);
        if (labelledBy) return labelledBy;
        const ariaLabel = cleanText(el.getAttribute('aria-label'));
        if (ariaLabel) return ariaLabel;
        const tag = el.tagName.toLowerCase();
        if (tag === 'img') return cleanText(el.getAttribute('alt'));
        if (tag === 'input') {
            const type = cleanText(el.getAttribute('type')).toLowerCase();
            if (type === 'image') {
                const alt = cleanText(el.getAttribute('alt'));
                if (alt) return alt;
            }
            if (['submit', 'button', 'reset'].includes(type)) {
                const value = cleanText(el.getAttribute('value'));
                if (value) return value;
            }
        }
        const label = associatedLabelText(el);
        if (label) return label;
        if (tag === 'a') {
            const nested = el.querySelector('img[alt]');
            const nestedAlt = nested ? cleanText(nested.getAttribute('alt')) : '';
            if (nestedAlt) return nestedAlt;
        }
        const title = cleanText(el.getAttribute('title'));
        if (title) return title;
        return cleanText(el.textContent);
    }

    function isDecorativeImage(img) {
        const role = cleanText(img.getAttribute('role')).toLowerCase();
        if (role === 'presentation' || role === 'none') return true;
        if (img.getAttribute('aria-hidden') === 'true') return true;
        return Boolean(img.closest('[aria-hidden="true"]'));
    }

    function isFocusableCandidate(el) {
        if (!isVisible(el)) return false;
        if (el.hasAttribute('disabled')) return false;
        if (el.getAttribute('tabindex') === '-1') return false;
        return isInteractiveElement(el);
    }

    const issues = [];
    const seen = new Set();

    function push(el, codeKey, messageKey, type) {
        const selector = cssPath(el);
        const message = messages[messageKey];
        const code = codes[codeKey];
        const key = code + '::' + selector + '::' + message;
        if (seen.has(key)) return;
        seen.add(key);
        issues.push({
            code: code,
            type: type,
            typeCode: type === 'error' ? 1 : (type === 'warning' ? 2 : 3),
            message: message,
            context: cleanText((el && el.outerHTML) || '').slice(0, 400),
            selector: selector,
            runner: options.runner,
            runnerExtras: {}
        });
    }

    // keyboard reachability
    for (const el of document.querySelectorAll('body *')) {
        if (!isVisible(el)) continue;
        const focusable = isKeyboardFocusable(el);
        if (focusable) continue;
        if (el.closest(FOCUSABLE_ANCESTOR)) continue;

        const pointer = hasHandlerOfAnyType(el, pointerEvents);
        const keyboard = hasHandlerOfAnyType(el, keyboardEvents);
        const roleOrState = hasInteractiveRole(el) || hasInteractiveAria(el);

        if (options.strictKeyboard) {
            if (!(pointer || roleOrState)) continue;
        } else if (!pointer || keyboard) {
            continue;
        }
        if (isLikelyContainerOnly(el)) continue;

        if (!options.strictKeyboard) {
            push(el, 'keyboard_only', 'keyboard_pointer_only', 'error');
        } else if (pointer && !keyboard) {
            push(el, 'keyboard_only', 'keyboard_pointer_only', 'warning');
        } else if (roleOrState) {
            push(el, 'keyboard_only', 'keyboard_aria_only', 'warning');
        } else {
            push(el, 'keyboard_only', 'keyboard_not_focusable', 'warning');
        }
    }

    // non-text content
    for (const img of document.querySelectorAll('img')) {
        if (img.matches('.lb-image, .lazyload-placeholder')) continue;
        if (!isVisible(img)) continue;
        const alt = img.getAttribute('alt');
        if (alt === null) {
            push(img, 'image_alt_missing', 'image_alt_missing', 'error');
            continue;
        }
        if (cleanText(alt) === '' && !isDecorativeImage(img)) {
            const parent = img.closest('a[href], button');
            if (!(parent && accessibleName(parent))) {
                push(img, 'image_alt_empty', 'image_alt_empty', 'warning');
            }
        }
    }

    // names and labels
    for (const el of document.querySelectorAll(CANDIDATES)) {
        if (!isVisible(el) || !isInteractiveElement(el)) continue;
        if (!accessibleName(el)) {
            push(el, 'name_missing', 'name_missing', 'error');
        }
        if (el.matches('input:not([type="hidden"]), select, textarea')) {
            const type = cleanText(el.getAttribute('type')).toLowerCase();
            if (['submit', 'button', 'reset', 'image'].includes(type)) continue;
            if (!controlLabelText(el)) {
                push(el, 'form_label_missing', 'form_label_missing', 'warning');
            }
        }
    }

    // link purpose
    for (const link of document.querySelectorAll('a[href]')) {
        if (!isVisible(link)) continue;
        const name = accessibleName(link).toLowerCase();
        if (!name) {
            push(link, 'link_purpose_missing', 'link_purpose_missing', 'error');
            continue;
        }
        const normalized = name.replace(/[^\w\s]/g, '').replace(/\s+/g, ' ').trim();
        if (genericLinkTexts.has(normalized)) {
            push(link, 'link_purpose_weak', 'link_purpose_weak', 'warning');
        }
    }

    // bypass blocks
    const skipLinks = Array.from(document.querySelectorAll('a[href^="#"]')).filter((a) => {
        const text = cleanText(a.textContent).toLowerCase();
        const klass = cleanText(a.getAttribute('class')).toLowerCase();
        return text.includes('skip') || klass.includes('skip-link');
    });
    if (!skipLinks.length) {
        push(document.body, 'skip_link_missing', 'skip_link_missing', 'error');
    } else {
        let validTarget = false;
        for (const link of skipLinks) {
            const href = cleanText(link.getAttribute('href'));
            let id = '';
            try {
                id = href.startsWith('#') ? decodeURIComponent(href.slice(1)) : '';
            } catch (e) {
                id = href.slice(1);
            }
            if (id && document.getElementById(id)) {
                validTarget = true;
            } else {
                push(link, 'skip_target_missing', 'skip_target_missing', 'error');
            }
        }
        if (!validTarget) {
            push(document.body, 'skip_no_valid_target', 'skip_no_valid_target', 'error');
        }
        const early = Array.from(document.querySelectorAll(CANDIDATES))
            .filter(isFocusableCandidate)
            .slice(0, options.earlyFocusWindow);
        if (!skipLinks.some((link) => early.includes(link))) {
            push(skipLinks[0], 'skip_late_in_order', 'skip_late_in_order', 'warning');
        }
    }

    // context change on input
    for (const el of document.querySelectorAll('[onchange], [onblur]')) {
        if (!isVisible(el)) continue;
        const source = (cleanText(el.getAttribute('onchange')) + ';' + cleanText(el.getAttribute('onblur'))).toLowerCase();
        if (/location\.|window\.open|submit\(/.test(source)) {
            push(el, 'context_change', 'context_change', 'warning');
        }
    }

    // multiple ways
    const hasSearch = Boolean(document.querySelector('form[role="search"], [role="search"], input[type="search"], [aria-label*="search" i], [class*="search"]'));
    const hasSitemap = Array.from(document.querySelectorAll('a[href]'))
        .some((a) => /sitemap/i.test((a.getAttribute('href') || '') + ' ' + (a.textContent || '')));
    const hasBreadcrumbs = Boolean(document.querySelector('[aria-label*="breadcrumb" i], .breadcrumb, .breadcrumbs'));
    const navLinks = document.querySelectorAll('nav a[href], [role="navigation"] a[href]').length;
    if (!hasSearch && !hasSitemap && !hasBreadcrumbs && navLinks < 5) {
        push(document.body, 'multiple_ways', 'multiple_ways', 'warning');
    }

    return issues;
}
"""


def detector_options(strict_keyboard: bool = True, early_focus_window: int = EARLY_FOCUS_WINDOW) -> dict[str, Any]:
    """JSON-safe argument handed to DETECTOR_SNIPPET."""
    return {
        "codes": dict(CODES),
        "messages": dict(MESSAGES),
        "pointerEvents": list(POINTER_EVENTS),
        "keyboardEvents": list(KEYBOARD_EVENTS),
        "interactiveRoles": list(INTERACTIVE_ROLES),
        "ariaStates": list(INTERACTIVE_ARIA_STATES),
        "genericLinkTexts": list(GENERIC_LINK_TEXTS),
        "strictKeyboard": bool(strict_keyboard),
        "earlyFocusWindow": int(early_focus_window),
        "runner": DETECTOR_RUNNER,
    }


def install_listener_probe(page) -> None:
    """Must be called before navigation so the probe sees every registration."""
    page.add_init_script(script=LISTENER_PROBE_SNIPPET)


def run_keyboard_audit(page, strict_keyboard: bool = True, early_focus_window: int = EARLY_FOCUS_WINDOW) -> list[Issue]:
    """
    Evaluates the detector in the page and returns deduplicated issues.
    An evaluation failure yields no issues instead of failing the page.
    """
    try:
        raw = page.evaluate(DETECTOR_SNIPPET, detector_options(strict_keyboard, early_focus_window))
    except Exception as e:
        logger.warning(f"Keyboard audit evaluation failed: {e}")
        return []

    if not isinstance(raw, list):
        logger.warning("Keyboard audit returned a non-list result, ignoring it.")
        return []

    issues = [Issue.from_dict(item) for item in raw if isinstance(item, dict)]
    return dedupe_issues(issues)


def merge_issues(base: list[Issue], extra: list[Issue]) -> list[Issue]:
    """Appends issues from ``extra`` whose (code, selector, message) is not already in ``base``."""
    return dedupe_issues(list(base) + list(extra))
