"""Configuration models and helpers for the post scraper."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping

from pydantic import BaseModel, Field, HttpUrl, PositiveInt, ValidationError

__all__ = [
    "DEFAULT_POSTS_NUM",
    "DEFAULT_SCRAPPING_URL",
    "DEFAULT_SETTINGS_PATH",
    "DEFAULT_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "RunConfig",
    "SettingsStore",
]

DEFAULT_SETTINGS_PATH = Path(
    os.environ.get(
        "POSTSCRAPER_SETTINGS",
        Path(__file__).resolve().parents[2] / "data" / "settings.json",
    )
)

DEFAULT_SCRAPPING_URL = "https://www.theguardian.com/world/natural-disasters/"
DEFAULT_POSTS_NUM = 20
DEFAULT_TIMEOUT = 60.0
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_12_1) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/54.0.2840.71 Safari/537.36"
)


class RunConfig(BaseModel):
    """Settings for one scraping run."""

    scrapping_url: HttpUrl = Field(
        default=DEFAULT_SCRAPPING_URL,
        validate_default=True,
        description="First listing page to crawl",
    )
    posts_num: PositiveInt = Field(
        default=DEFAULT_POSTS_NUM, description="Maximum number of new articles per run"
    )
    schedule: str | None = Field(
        default=None,
        description="Opaque schedule expression consumed by whatever triggers runs",
    )
    timeout: float = Field(default=DEFAULT_TIMEOUT, ge=0, description="Per-request timeout in seconds")
    verify_tls: bool = Field(
        default=False,
        description=(
            "Whether TLS certificates are verified. Disabled by default for "
            "compatibility with the sites this scraper was first written for."
        ),
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    temp_dir: Path | None = Field(
        default=None,
        description="Directory media is downloaded into before import. Defaults to <store>/tmp",
    )
    store_root: Path | None = Field(
        default=None, description="Location of the file backed content store"
    )


class SettingsStore:
    """Key/value settings persisted as a JSON object.

    Values missing from the file fall back to the :class:`RunConfig` defaults;
    keys the scraper does not know about are preserved on :meth:`dump`.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else DEFAULT_SETTINGS_PATH
        self._values: Dict[str, Any] = self._read()

    @classmethod
    def defaults(cls) -> Dict[str, Any]:
        return RunConfig().model_dump(mode="json")

    def _read(self) -> Dict[str, Any]:
        values = self.defaults()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return values
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in settings file: {self.path}") from exc

        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a JSON object: {self.path}")

        # Empty strings come from blank form fields and mean "use the default".
        values.update({key: value for key, value in data.items() if value != ""})
        return values

    def get(self, key: str = "", default: Any = None) -> Any:
        """Return a single setting, or every setting when ``key`` is empty."""

        if not key:
            return dict(self._values)
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def update(self, values: Mapping[str, Any]) -> None:
        """Merge ``values`` into the settings after validating the result."""

        merged = {**self._values, **values}
        config = self._validate(merged)
        # Store the validated form so numbers entered as text are saved as numbers.
        merged.update(config.model_dump(mode="json", include=set(values) & set(RunConfig.model_fields)))
        self._values = merged

    def load_config(self) -> RunConfig:
        """Build the :class:`RunConfig` for a run from the stored settings."""

        return self._validate(self._values)

    def _validate(self, values: Mapping[str, Any]) -> RunConfig:
        known = {
            key: value
            for key, value in values.items()
            if key in RunConfig.model_fields and value != ""
        }
        try:
            return RunConfig.model_validate(known)
        except ValidationError as exc:
            raise ValueError(f"Settings are invalid: {self.path}\n{exc}") from exc

    def dump(self) -> None:
        """Persist the settings back to disk as JSON."""

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(self._values, ensure_ascii=False, indent=2, default=str),
            encoding="utf-8",
        )
