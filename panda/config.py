from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import os


def _parse_csv(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    items = [item.strip().lower() for item in value.split(",")]
    return tuple(item for item in items if item)


def _parse_allowed_apps(value: str | None) -> dict[str, str]:
    default = {
        "com.google.android.youtube": "xdg-open https://www.youtube.com",
        "com.whatsapp": "xdg-open https://web.whatsapp.com",
        "com.instagram.android": "xdg-open https://www.instagram.com",
        "camera": "cheese",
        "music": "rhythmbox",
        "calculator": "gnome-calculator",
    }
    if not value:
        return default

    mapping: dict[str, str] = {}
    pairs = [item.strip() for item in value.split(";") if item.strip()]
    for pair in pairs:
        if "=" not in pair:
            continue
        name, command = pair.split("=", 1)
        if name.strip() and command.strip():
            mapping[name.strip().lower()] = command.strip()
    return mapping or default


@dataclass(frozen=True)
class Settings:
    app_name: str = "Panda AI"
    db_path: Path = Path("data/sqlite/panda.db")
    assistant_name: str = "Panda"
    assistant_voice: str = "Default"
    granted_capabilities: tuple[str, ...] = ()
    allowed_apps: dict[str, str] = field(default_factory=lambda: _parse_allowed_apps(None))
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        base = cls()
        return cls(
            app_name=os.getenv("PANDA_APP_NAME", base.app_name),
            db_path=Path(os.getenv("PANDA_DB_PATH", str(base.db_path))),
            assistant_name=os.getenv("PANDA_ASSISTANT_NAME", base.assistant_name).strip()
            or base.assistant_name,
            assistant_voice=os.getenv("PANDA_ASSISTANT_VOICE", base.assistant_voice),
            granted_capabilities=_parse_csv(
                os.getenv("PANDA_GRANTED_CAPABILITIES"),
                base.granted_capabilities,
            ),
            allowed_apps=_parse_allowed_apps(os.getenv("PANDA_ALLOWED_APPS")),
            host=os.getenv("PANDA_HOST", base.host),
            port=int(os.getenv("PANDA_PORT", str(base.port))),
        )
