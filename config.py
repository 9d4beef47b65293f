import json
import logging
import os

from compliance import NOT_RUN_POLICIES
from wcag_criteria import SCAN_STANDARDS

logger = logging.getLogger(__name__)

# Logging
LOG_LEVEL = os.getenv("A11Y_LOG_LEVEL", "INFO").upper()

# Output
OUTPUT_DIR = os.getenv("A11Y_OUTPUT_DIR", "a11y/reports")
AUDIT_OUTPUT_DIR = os.getenv("A11Y_AUDIT_OUTPUT_DIR", "a11y/audits")

# Scanning (milliseconds)
TIMEOUT_MS = int(os.getenv("A11Y_TIMEOUT", "120000"))
WAIT_MS = int(os.getenv("A11Y_WAIT", "1000"))
WORKERS = int(os.getenv("A11Y_WORKERS", "1"))

# Paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
ASSETS_DIR = os.path.join(BASE_DIR, "assets")
FONTS_DIR = os.path.join(ASSETS_DIR, "fonts")

# Per-project settings file, looked up in the working directory
CONFIG_NAME = ".a11y-scanner.json"

DETECTORS = ("rendered", "static")

DEFAULTS = {
    "outputDir": OUTPUT_DIR,
    "auditOutputDir": AUDIT_OUTPUT_DIR,
    "timeout": TIMEOUT_MS,
    "wait": WAIT_MS,
    "includeWarnings": True,
    "includeNotices": False,
    "includeAll": False,
    "hideElements": [
        "#cmplz-cookiebanner-container",
        "#cmplz-manage-consent",
        ".grecaptcha-badge",
        "#lightbox",
    ],
    "detector": "rendered",
    "useLinter": True,
    "strictKeyboard": True,
    "earlyFocusWindow": 8,
    "workers": WORKERS,
    "notRunPolicy": "any_error",
    "standard": None,
    "allowPrivateHosts": True,
}


def _read_user_config(path: str) -> dict:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Ignoring unreadable config {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config {path}: top-level value is not an object")
        return {}
    return data


def validate_config(cfg: dict) -> dict:
    if cfg.get("detector") not in DETECTORS:
        raise ValueError(f"detector must be one of {', '.join(DETECTORS)}, got {cfg.get('detector')!r}")
    if cfg.get("notRunPolicy") not in NOT_RUN_POLICIES:
        raise ValueError(f"notRunPolicy must be one of {', '.join(NOT_RUN_POLICIES)}, got {cfg.get('notRunPolicy')!r}")

    workers = cfg.get("workers")
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise ValueError(f"workers must be a positive integer, got {workers!r}")

    for key in ("timeout", "wait", "earlyFocusWindow"):
        value = cfg.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"{key} must be a non-negative integer, got {value!r}")

    standard = cfg.get("standard")
    if standard is not None and standard not in SCAN_STANDARDS:
        raise ValueError(f"standard must be one of {', '.join(SCAN_STANDARDS)}, got {standard!r}")

    if not isinstance(cfg.get("hideElements"), list):
        raise ValueError("hideElements must be a list of CSS selectors")
    return cfg


def load_config(cwd: str, cli: dict | None = None) -> dict:
    """
    Effective settings: DEFAULTS, then .a11y-scanner.json in ``cwd``,
    then CLI values (None means "not given").
    """
    config_path = os.path.join(os.path.abspath(cwd), CONFIG_NAME)
    cfg = dict(DEFAULTS)
    cfg["hideElements"] = list(DEFAULTS["hideElements"])
    cfg.update(_read_user_config(config_path))
    cfg.update({k: v for k, v in (cli or {}).items() if v is not None})

    if cfg.get("includeAll"):
        cfg["includeWarnings"] = True
        cfg["includeNotices"] = True

    cfg["configPath"] = config_path
    return validate_config(cfg)


def write_init_config(cwd: str, overrides: dict | None = None) -> str:
    config_path = os.path.join(os.path.abspath(cwd), CONFIG_NAME)
    data = dict(DEFAULTS)
    data.update({k: v for k, v in (overrides or {}).items() if v is not None})
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.write("\n")
    logger.info(f"Wrote {config_path}")
    return config_path
