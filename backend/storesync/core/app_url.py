"""
Resolution of the public app URL that webhook callbacks point at.

SHOPIFY_APP_URL wins; otherwise the `application_url` of the Shopify app
config file (shopify.app.toml) is used.
"""
import re
import tomllib
from pathlib import Path
from typing import Optional

from storesync.core.config import settings
from storesync.core.exceptions import AppUrlNotConfiguredError
from storesync.core.logging import get_logger

logger = get_logger(__name__)

_APPLICATION_URL_LINE = re.compile(
    r"^application_url[ \t]*=[ \t]*(?:\"[^\"\n]*\"|'[^'\n]*')[ \t]*(?P<comment>#[^\n]*)?$",
    re.MULTILINE,
)


def _config_path(config_path: Optional[str] = None) -> Path:
    return Path(config_path or settings.shopify_app_config_path)


def read_config_app_url(config_path: Optional[str] = None) -> Optional[str]:
    """`application_url` from the app config file, or None if unreadable."""
    path = _config_path(config_path)
    try:
        with path.open("rb") as f:
            config = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Could not read app URL from config", path=str(path), error=str(e))
        return None

    url = config.get("application_url")
    return url if isinstance(url, str) and url else None


def resolve_app_url(config_path: Optional[str] = None) -> str:
    """
    Base URL for webhook callbacks, without a trailing slash.

    Raises:
        AppUrlNotConfiguredError: neither the env var nor the config file has one
    """
    url = settings.shopify_app_url or read_config_app_url(config_path)
    if not url:
        raise AppUrlNotConfiguredError(
            "Could not determine the app URL. Set SHOPIFY_APP_URL or add "
            f"application_url to {_config_path(config_path)}."
        )
    return url.rstrip("/")


def validate_app_url(url: str) -> str:
    """Normalize a new base URL; only absolute https URLs are accepted."""
    url = url.strip().rstrip("/")
    if not re.fullmatch(r"https://[^\s/]+(/[^\s]*)?", url):
        raise ValueError(f"App URL must be an absolute https URL: {url!r}")
    return url


def persist_app_url(url: str, config_path: Optional[str] = None) -> None:
    """
    Make `url` the app URL for this process and for future processes.

    The in-process settings are updated first; the config file's
    `application_url` line is then rewritten (or prepended when the file has
    none). A file whose existing `application_url` cannot be located line by
    line is left untouched rather than given a duplicate key.
    """
    settings.shopify_app_url = url

    path = _config_path(config_path)
    line = f'application_url = "{url}"'
    try:
        content = path.read_text(encoding="utf-8") if path.exists() else ""
        match = _APPLICATION_URL_LINE.search(content)
        if match:
            comment = match.group("comment")
            replacement = f"{line} {comment}" if comment else line
            content = content[: match.start()] + replacement + content[match.end() :]
        elif _has_application_url(content):
            logger.warning(
                "Config file has an application_url that cannot be rewritten",
                path=str(path),
            )
            return
        else:
            # Top-level keys must precede any [table] header
            content = f"{line}\n{content}"
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        logger.warning("Could not persist app URL to config", path=str(path), error=str(e))
        return

    logger.info("App URL updated", url=url, path=str(path))


def _has_application_url(content: str) -> bool:
    try:
        return "application_url" in tomllib.loads(content)
    except tomllib.TOMLDecodeError:
        return False
