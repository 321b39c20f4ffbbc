"""Application configuration defaults."""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List

from noteviews.errors import TrackerError, TrackerErrorKind

DEFAULT_FIELD = "view_count"
VAULT_ENV = "NOTEVIEWS_VAULT"
FIELD_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
MAX_PATH_RULES = 100


def _get_default_vault_path() -> Path:
    """Vault from the environment, or the current directory."""
    env_vault = os.environ.get(VAULT_ENV)
    if env_vault:
        return Path(env_vault).expanduser()
    return Path(".")


@dataclass(slots=True)
class TrackerConfig:
    vault_path: Path | None = None
    counter_field: str = DEFAULT_FIELD
    include_paths: List[str] = field(default_factory=list)
    exclude_paths: List[str] = field(default_factory=list)
    min_interval_ms: int = 1000
    max_batch_size: int = 10
    flush_interval_ms: int = 5000
    cache_capacity: int = 1000
    cache_cleanup_interval_ms: int = 60_000
    debounce_ms: int = 500

    def __post_init__(self) -> None:
        if self.vault_path is None:
            self.vault_path = _get_default_vault_path()

    def resolve_vault_path(self, base_dir: Path | None = None) -> Path:
        if self.vault_path is None:
            self.vault_path = _get_default_vault_path()
        if Path(self.vault_path).is_absolute() or base_dir is None:
            return Path(self.vault_path)
        return base_dir / self.vault_path

    def validate(self) -> None:
        """Raise a config error listing every invalid setting."""
        problems: List[str] = []

        if not FIELD_NAME_RE.match(self.counter_field or ""):
            problems.append(
                "counter_field must start with a letter or underscore and contain "
                "only letters, digits and underscores"
            )
        elif len(self.counter_field) > 100:
            problems.append("counter_field must be at most 100 characters")

        for name in ("include_paths", "exclude_paths"):
            patterns = getattr(self, name)
            if len(patterns) > MAX_PATH_RULES:
                problems.append(f"{name} can contain at most {MAX_PATH_RULES} entries")
            for index, pattern in enumerate(patterns):
                if not isinstance(pattern, str) or not pattern.strip():
                    problems.append(f"{name}[{index}] cannot be empty")

        _check_range(problems, "min_interval_ms", self.min_interval_ms, 0, 3_600_000)
        _check_range(problems, "max_batch_size", self.max_batch_size, 1, 1000)
        _check_range(problems, "cache_capacity", self.cache_capacity, 10, 10_000)
        _check_range(problems, "flush_interval_ms", self.flush_interval_ms, 1000, 3_600_000)
        _check_range(problems, "debounce_ms", self.debounce_ms, 0, 60_000)
        _check_range(
            problems, "cache_cleanup_interval_ms", self.cache_cleanup_interval_ms, 1000, 86_400_000
        )

        if problems:
            raise TrackerError(
                TrackerErrorKind.CONFIG,
                "Invalid configuration: " + "; ".join(problems),
                details={"problems": problems},
            )

    @classmethod
    def from_toml(cls, path: Path, **overrides: Any) -> "TrackerConfig":
        """Load the ``[noteviews]`` table of a TOML file.

        Relative ``vault_path`` values are resolved against the file's folder.
        ``overrides`` that are not None win over file values.
        """
        try:
            with Path(path).open("rb") as handle:
                document = tomllib.load(handle)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise TrackerError(
                TrackerErrorKind.CONFIG, f"Cannot read config {path}: {exc}"
            ) from exc

        table: Dict[str, Any] = dict(document.get("noteviews", document))
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(table) - known)
        if unknown:
            raise TrackerError(
                TrackerErrorKind.CONFIG,
                f"Unknown config keys in {path}: {', '.join(unknown)}",
                details={"unknown": unknown},
            )

        if "vault_path" in table:
            vault = Path(table["vault_path"]).expanduser()
            table["vault_path"] = vault if vault.is_absolute() else Path(path).parent / vault
        table.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**table)


def _check_range(problems: List[str], name: str, value: Any, low: int, high: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        problems.append(f"{name} must be an integer")
    elif not low <= value <= high:
        problems.append(f"{name} must be between {low} and {high}")
