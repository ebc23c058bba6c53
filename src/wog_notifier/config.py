from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from wog_notifier.errors import ConfigurationError

DEFAULT_FEED_URLS = [
    "https://ted.europa.eu/udl?uri=TED:NOTICE:feed:EN:RSS&searchText=camp%20OR%20tent"
    "%20OR%20container%20OR%20generator%20OR%20%22lighting%20mast%22%20OR%20HVAC%20OR"
    "%20%22air%20conditioning%22%20OR%20heater&country=DE&country=PL&country=CZ"
    "&country=SK&country=RO&country=LT",
    "https://api.sam.gov/opportunities/v2/search?limit=50&q=camp%20OR%20tent%20OR"
    "%20container%20OR%20generator%20OR%20%22lighting%20mast%22%20OR%20HVAC%20OR"
    "%20%22air%20conditioning%22%20OR%20heater"
    "&placeOfPerformanceLocations=PL%2CDE%2CCZ%2CSK%2CRO%2CLT",
]

DEFAULT_KEYWORDS = [
    "camp",
    "base camp",
    "tent",
    "namiot",
    "container",
    "kontener",
    "generator",
    "agregat",
    "power generator",
    "lighting mast",
    "maszt oświetleniowy",
    "floodlight",
    "hvac",
    "air conditioning",
    "klimatyzacja",
    "heater",
    "heating",
    "nagrzewnica",
]

DEFAULT_FRESH_WINDOW_MIN = 90
DEFAULT_TIMEZONE = "Europe/Warsaw"
DEFAULT_LOCALE_FORMAT = "%d.%m.%Y, %H:%M:%S"


def _positive_int(value: Any, default: int) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _ensure_list(value: Any, default: list[str]) -> list[str]:
    if value is None:
        return list(default)
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return list(default)


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = (os.getenv(name) or "").strip()
    return _ensure_list(raw, default) if raw else list(default)


def get_repo_root() -> Path:
    env_root = os.getenv("WOG_NOTIFIER_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve()
    cwd = Path.cwd().resolve()
    for parent in [cwd, *cwd.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return cwd


def get_config_path(repo_root: Optional[Path] = None) -> Path:
    env_path = os.getenv("WOG_NOTIFIER_CONFIG")
    if env_path:
        return Path(env_path).expanduser().resolve()
    repo_root = repo_root or get_repo_root()
    return repo_root / "config.yaml"


@dataclass
class PathsConfig:
    repo_root: Path
    log_dir: Path

    def to_dict(self) -> dict:
        try:
            log_dir = str(self.log_dir.relative_to(self.repo_root))
        except ValueError:
            log_dir = str(self.log_dir)
        return {"log_dir": log_dir}


@dataclass
class FeedsConfig:
    urls: list[str] = field(default_factory=lambda: list(DEFAULT_FEED_URLS))

    def to_dict(self) -> dict:
        return {"urls": list(self.urls)}


@dataclass
class FilterConfig:
    keywords: list[str] = field(default_factory=lambda: list(DEFAULT_KEYWORDS))
    fresh_window_min: int = DEFAULT_FRESH_WINDOW_MIN

    def to_dict(self) -> dict:
        return {
            "keywords": list(self.keywords),
            "fresh_window_min": self.fresh_window_min,
        }


@dataclass
class HttpConfig:
    user_agent: str = "wog-notifier/1.3 (+https://github.com/wog-notifier)"
    timeout_s: int = 30
    max_workers: int = 4

    def to_dict(self) -> dict:
        return {
            "user_agent": self.user_agent,
            "timeout_s": self.timeout_s,
            "max_workers": self.max_workers,
        }


@dataclass
class NotificationsConfig:
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    mail_from: str = ""
    mail_to: list[str] = field(default_factory=list)
    subject_prefix: str = "[WOG]"

    def missing_keys(self) -> list[str]:
        required = {
            "SMTP_HOST": self.smtp_host,
            "SMTP_USER": self.smtp_user,
            "SMTP_PASS": self.smtp_pass,
            "MAIL_FROM": self.mail_from,
            "MAIL_TO": self.mail_to,
        }
        return [name for name, value in required.items() if not value]

    def require_complete(self) -> None:
        missing = self.missing_keys()
        if missing:
            raise ConfigurationError(
                "Missing SMTP/MAIL configuration: " + ", ".join(missing)
            )

    def to_dict(self) -> dict:
        return {
            "smtp_host": self.smtp_host,
            "smtp_port": self.smtp_port,
            "smtp_user": self.smtp_user,
            "smtp_pass": self.smtp_pass,
            "mail_from": self.mail_from,
            "mail_to": list(self.mail_to),
            "subject_prefix": self.subject_prefix,
        }


@dataclass
class AppConfig:
    app_env: str = "dev"
    timezone: str = DEFAULT_TIMEZONE
    locale_format: str = DEFAULT_LOCALE_FORMAT
    paths: PathsConfig = field(
        default_factory=lambda: build_paths(get_repo_root(), {})
    )
    feeds: FeedsConfig = field(default_factory=FeedsConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)

    def to_dict(self) -> dict:
        return {
            "app": {
                "env": self.app_env,
                "timezone": self.timezone,
                "locale_format": self.locale_format,
            },
            "paths": self.paths.to_dict(),
            "feeds": self.feeds.to_dict(),
            "filter": self.filter.to_dict(),
            "http": self.http.to_dict(),
            "notifications": self.notifications.to_dict(),
        }


def build_paths(repo_root: Path, data: dict) -> PathsConfig:
    log_dir = Path((data or {}).get("log_dir") or "logs")
    if not log_dir.is_absolute():
        log_dir = repo_root / log_dir
    return PathsConfig(repo_root=repo_root, log_dir=log_dir)


def default_config_dict() -> dict:
    return {
        "app": {
            "env": "dev",
            "timezone": DEFAULT_TIMEZONE,
            "locale_format": DEFAULT_LOCALE_FORMAT,
        },
        "paths": {"log_dir": "logs"},
        "feeds": FeedsConfig().to_dict(),
        "filter": FilterConfig().to_dict(),
        "http": HttpConfig().to_dict(),
        "notifications": NotificationsConfig().to_dict(),
    }


def config_from_dict(repo_root: Path, data: dict) -> AppConfig:
    app = data.get("app", {}) if isinstance(data, dict) else {}
    paths_data = data.get("paths", {}) if isinstance(data, dict) else {}
    feeds_data = data.get("feeds", {}) if isinstance(data, dict) else {}
    filter_data = data.get("filter", {}) if isinstance(data, dict) else {}
    http_data = data.get("http", {}) if isinstance(data, dict) else {}
    notifications_data = data.get("notifications", {}) if isinstance(data, dict) else {}

    return AppConfig(
        app_env=str(app.get("env", "dev")),
        timezone=str(app.get("timezone", DEFAULT_TIMEZONE)),
        locale_format=str(app.get("locale_format", DEFAULT_LOCALE_FORMAT)),
        paths=build_paths(repo_root, paths_data),
        feeds=FeedsConfig(
            urls=_ensure_list(feeds_data.get("urls"), DEFAULT_FEED_URLS),
        ),
        filter=FilterConfig(
            keywords=_ensure_list(filter_data.get("keywords"), DEFAULT_KEYWORDS),
            fresh_window_min=_positive_int(
                filter_data.get("fresh_window_min"), DEFAULT_FRESH_WINDOW_MIN
            ),
        ),
        http=HttpConfig(
            user_agent=str(http_data.get("user_agent", HttpConfig.user_agent)),
            timeout_s=_positive_int(http_data.get("timeout_s"), 30),
            max_workers=_positive_int(http_data.get("max_workers"), 4),
        ),
        notifications=NotificationsConfig(
            smtp_host=str(notifications_data.get("smtp_host", "")),
            smtp_port=_positive_int(notifications_data.get("smtp_port"), 587),
            smtp_user=str(notifications_data.get("smtp_user", "")),
            smtp_pass=str(notifications_data.get("smtp_pass", "")),
            mail_from=str(notifications_data.get("mail_from", "")),
            mail_to=_ensure_list(notifications_data.get("mail_to"), []),
            subject_prefix=str(notifications_data.get("subject_prefix", "[WOG]")),
        ),
    )


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    content = path.read_text(encoding="utf-8").strip()
    if not content:
        return {}
    data = yaml.safe_load(content)
    return data if isinstance(data, dict) else {}


def load_config(
    path: Optional[Path] = None,
    apply_env: bool = True,
    load_env_file: bool = True,
) -> AppConfig:
    repo_root = get_repo_root()
    config_path = path or get_config_path(repo_root)

    if load_env_file:
        env_path = repo_root / ".env"
        if env_path.exists():
            load_dotenv(env_path)

    merged = default_config_dict()
    for section, values in _load_yaml(config_path).items():
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    config = config_from_dict(repo_root, merged)

    if apply_env:
        apply_env_overrides(config)

    return config


def apply_env_overrides(config: AppConfig) -> AppConfig:
    config.app_env = os.getenv("APP_ENV", config.app_env)
    config.timezone = os.getenv("WOG_NOTIFIER_TIMEZONE", config.timezone)

    log_dir = os.getenv("WOG_NOTIFIER_LOG_DIR")
    if log_dir:
        config.paths = build_paths(config.paths.repo_root, {"log_dir": log_dir})

    config.feeds.urls = _env_list("FEED_URLS", config.feeds.urls)
    config.filter.keywords = _env_list("KEYWORDS", config.filter.keywords)
    config.filter.fresh_window_min = _positive_int(
        os.getenv("FRESH_WINDOW_MIN", config.filter.fresh_window_min),
        DEFAULT_FRESH_WINDOW_MIN,
    )

    config.http.timeout_s = _positive_int(
        os.getenv("WOG_NOTIFIER_HTTP_TIMEOUT", config.http.timeout_s),
        config.http.timeout_s,
    )
    config.http.max_workers = _positive_int(
        os.getenv("WOG_NOTIFIER_MAX_WORKERS", config.http.max_workers),
        config.http.max_workers,
    )

    config.notifications.smtp_host = os.getenv("SMTP_HOST", config.notifications.smtp_host)
    config.notifications.smtp_port = _positive_int(
        os.getenv("SMTP_PORT", config.notifications.smtp_port),
        config.notifications.smtp_port,
    )
    config.notifications.smtp_user = os.getenv("SMTP_USER", config.notifications.smtp_user)
    config.notifications.smtp_pass = os.getenv("SMTP_PASS", config.notifications.smtp_pass)
    config.notifications.mail_from = os.getenv("MAIL_FROM", config.notifications.mail_from)
    config.notifications.mail_to = _env_list("MAIL_TO", config.notifications.mail_to)
    config.notifications.subject_prefix = os.getenv(
        "MAIL_SUBJECT_PREFIX",
        config.notifications.subject_prefix,
    )

    return config
