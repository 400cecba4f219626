from __future__ import annotations

import os
from configparser import ConfigParser
from pathlib import Path

import yaml

_DEFAULT_LAYOUT: dict[str, object] = {
    "canvasSize": {"width": 1200, "height": 800},
    "zoom": 1,
    "pan": {"x": 0, "y": 0},
    "gridSize": 20,
    "snapToGrid": True,
}


class AppConfig:
    def __init__(self, config_path: Path | None = None, defaults_path: Path | None = None) -> None:
        parser = ConfigParser()
        package_root = Path(__file__).resolve().parent.parent
        parser.read(config_path or package_root / "config.ini")
        if not parser.sections():
            parser.read(Path("config.ini"))
        self._parser = parser
        self._defaults = self._load_defaults(defaults_path or package_root / "defaults.yaml")

    def db_path(self) -> str:
        override = os.getenv("FLOWDESK_DB_PATH")
        if override:
            return override
        return self._get_str("storage", "db_path", "data/flowdesk.db")

    def change_log_limit(self) -> int:
        return self._get_int("flowchart", "change_log_limit", 50)

    def export_version(self) -> str:
        return self._get_str("flowchart", "export_version", "1.0")

    def api_settings(self) -> dict[str, object]:
        return {
            "title": self._get_str("api", "title", "Flowdesk"),
            "cors_origins": self._get_csv(
                "api",
                "cors_origins",
                ["http://localhost:3000", "http://127.0.0.1:3000"],
            ),
        }

    def log_level(self) -> str:
        return self._get_str("logging", "level", "INFO").upper()

    def layout_defaults(self) -> dict[str, object]:
        layout = self._defaults.get("layout")
        merged = dict(_DEFAULT_LAYOUT)
        if isinstance(layout, dict):
            merged.update({key: value for key, value in layout.items() if key in _DEFAULT_LAYOUT})
        return merged

    def metadata_defaults(self) -> dict[str, object]:
        metadata = self._defaults.get("metadata")
        fallback: dict[str, object] = {
            "description": "Agent execution flowchart",
            "layoutVersion": "v2.0",
            "tags": [],
        }
        if isinstance(metadata, dict):
            for key in fallback:
                if key in metadata:
                    fallback[key] = metadata[key]
        return fallback

    def _get_str(self, section: str, key: str, fallback: str) -> str:
        return self._parser.get(section, key, fallback=fallback)

    def _get_int(self, section: str, key: str, fallback: int) -> int:
        return self._parser.getint(section, key, fallback=fallback)

    def _get_csv(self, section: str, key: str, fallback: list[str]) -> list[str]:
        value = self._parser.get(section, key, fallback="")
        if not value:
            return list(fallback)
        return [part.strip() for part in value.split(",") if part.strip()]

    def _load_defaults(self, path: Path) -> dict[str, object]:
        if not path.exists():
            return {}
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError):
            return {}
        return raw if isinstance(raw, dict) else {}


app_config = AppConfig()
