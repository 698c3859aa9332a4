"""docstash configuration loader.

Priority (high → low):
  1. CLI flags           (--root; applied by the commands)
  2. Environment variables  (DOCSTASH_ROOT, GITHUB_REPO, DOCSTASH_LOG_LEVEL)
  3. Per-project docstash.yaml  (current directory)
  4. Global ~/.docstash/config.yaml
  5. Hardcoded defaults

Config files must never contain credentials; FIRECRAWL_API_KEY and
GITHUB_TOKEN are read from the environment only.
Files are parsed with yaml.safe_load only.
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from docstash.errors import DocstashError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".docstash"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "docstash.yaml"

DEFAULT_ROOT = "~/scraped-docs"

FIRECRAWL_KEY_ENV = "FIRECRAWL_API_KEY"
GITHUB_TOKEN_ENV = "GITHUB_TOKEN"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s).
# Does NOT match legitimate keys like max_retries or poll_interval_ms.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(["storage", "crawl", "retry", "backup", "search"])

_LOG_LEVELS: frozenset[str] = frozenset(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(DocstashError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""

    code = "CONFIG_ERROR"


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Local corpus location (docstash.yaml: storage:)."""

    root: str = DEFAULT_ROOT


@dataclass
class CrawlCfg:
    """Crawl defaults (docstash.yaml: crawl:).

    Attributes:
        limit: Default page limit per crawl (1–500).
        poll_interval_ms: Wait between status polls.
        max_poll_attempts: Polls before the crawl times out.
        timeout_s: Optional wall-clock limit for the poll phase.
    """

    limit: int = 100
    poll_interval_ms: int = 5_000
    max_poll_attempts: int = 120
    timeout_s: float | None = None


@dataclass
class RetryCfg:
    """Backoff for provider calls (docstash.yaml: retry:)."""

    max_retries: int = 3
    base_delay_ms: int = 1_000
    max_delay_ms: int = 30_000


@dataclass
class BackupCfg:
    """GitHub backup target (docstash.yaml: backup:)."""

    enabled: bool = True
    repo: str | None = None  # owner/repo
    branch: str | None = None  # None → repository default branch


@dataclass
class SearchCfg:
    """Search defaults (docstash.yaml: search:)."""

    limit: int = 20


@dataclass
class DocstashConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    crawl: CrawlCfg = field(default_factory=CrawlCfg)
    retry: RetryCfg = field(default_factory=RetryCfg)
    backup: BackupCfg = field(default_factory=BackupCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    log_level: str = "WARNING"

    @property
    def root_path(self) -> Path:
        return Path(self.storage.root).expanduser()


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Config '{source}' contains a forbidden key '{full}'.\n"
                        f"  Credentials must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"Config '{path}' must be a mapping at the top level.")
    return raw


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _cfg_from_dict(data: dict[str, Any]) -> DocstashConfig:
    """Build a *DocstashConfig* from a merged raw YAML dict."""
    cfg = DocstashConfig()

    try:
        if "storage" in data:
            s = data["storage"] or {}
            cfg.storage = StorageCfg(root=str(s.get("root", cfg.storage.root)))

        if "crawl" in data:
            c = data["crawl"] or {}
            cfg.crawl = CrawlCfg(
                limit=int(c.get("limit", cfg.crawl.limit)),
                poll_interval_ms=int(c.get("poll_interval_ms", cfg.crawl.poll_interval_ms)),
                max_poll_attempts=int(c.get("max_poll_attempts", cfg.crawl.max_poll_attempts)),
                timeout_s=_optional_float(c.get("timeout_s", cfg.crawl.timeout_s)),
            )

        if "retry" in data:
            r = data["retry"] or {}
            cfg.retry = RetryCfg(
                max_retries=int(r.get("max_retries", cfg.retry.max_retries)),
                base_delay_ms=int(r.get("base_delay_ms", cfg.retry.base_delay_ms)),
                max_delay_ms=int(r.get("max_delay_ms", cfg.retry.max_delay_ms)),
            )

        if "backup" in data:
            b = data["backup"] or {}
            cfg.backup = BackupCfg(
                enabled=bool(b.get("enabled", cfg.backup.enabled)),
                repo=b.get("repo") or cfg.backup.repo,
                branch=b.get("branch") or cfg.backup.branch,
            )

        if "search" in data:
            q = data["search"] or {}
            cfg.search = SearchCfg(limit=int(q.get("limit", cfg.search.limit)))
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    if not 1 <= cfg.crawl.limit <= 500:
        raise ConfigError(f"crawl.limit must be between 1 and 500, got {cfg.crawl.limit}")
    if cfg.retry.max_retries < 1:
        raise ConfigError(f"retry.max_retries must be >= 1, got {cfg.retry.max_retries}")

    return cfg


def _apply_env_overrides(cfg: DocstashConfig) -> DocstashConfig:
    """Apply environment variable overrides (layer 2)."""
    if root := os.environ.get("DOCSTASH_ROOT"):
        cfg.storage.root = root
    if repo := os.environ.get("GITHUB_REPO"):
        cfg.backup.repo = repo
    if level := os.environ.get("DOCSTASH_LOG_LEVEL"):
        level = level.upper()
        if level not in _LOG_LEVELS:
            raise ConfigError(
                f"DOCSTASH_LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}, got '{level}'"
            )
        cfg.log_level = level
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DocstashConfig:
    """Load and return a merged *DocstashConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *docstash.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a config file contains credential-like keys, is not a
            YAML mapping, or holds an out-of-range value.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _check_no_api_keys(raw_project, project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)

    # Layer 3: env var overrides
    return _apply_env_overrides(cfg)


def firecrawl_api_key() -> str | None:
    """Return FIRECRAWL_API_KEY from the environment, or None."""
    return os.environ.get(FIRECRAWL_KEY_ENV) or None


def github_token() -> str | None:
    """Return GITHUB_TOKEN from the environment, or None."""
    return os.environ.get(GITHUB_TOKEN_ENV) or None


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.docstash/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# docstash global configuration.\n"
            "# NEVER store credentials here; use environment variables:\n"
            "#   export FIRECRAWL_API_KEY=fc-...\n"
            "#   export GITHUB_TOKEN=ghp_...\n"
            "\n"
            "storage:\n"
            f"  root: {DEFAULT_ROOT}\n"
            "\n"
            "crawl:\n"
            "  limit: 100\n"
            "  poll_interval_ms: 5000\n"
            "  max_poll_attempts: 120\n"
            "\n"
            "backup:\n"
            "  enabled: true\n"
            "  # repo: owner/docs-backup\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
