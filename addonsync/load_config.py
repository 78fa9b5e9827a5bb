from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

import toml

from .installation import DEFAULT_ADDON_SUBPATH, InstallationLocator

GAME_ROOT_ENV = "ADDONSYNC_GAME_ROOT"
DEFAULT_VARIANTS = ["_retail_"]
DEFAULT_CACHE_FILE = ".addonsync-cache.toml"
DEFAULT_MANIFEST_FILE = "downloads.toml"
DEFAULT_CHECK_INTERVAL_MINUTES = 10
DEFAULT_WORKERS = 4


@dataclass(slots=True)
class ProgramConfig:
    archive_root: Path
    game_root: Path | None
    variants: List[str] = field(default_factory=lambda: list(DEFAULT_VARIANTS))
    addon_subpath: Path = DEFAULT_ADDON_SUBPATH
    install_roots: Dict[str, Path] = field(default_factory=dict)
    cache_file: Path = Path(DEFAULT_CACHE_FILE)
    manifest_file: Path = Path(DEFAULT_MANIFEST_FILE)
    check_interval_minutes: float = DEFAULT_CHECK_INTERVAL_MINUTES
    workers: int = DEFAULT_WORKERS

    @property
    def cache_path(self) -> Path:
        return self.archive_root / self.cache_file

    @property
    def manifest_path(self) -> Path:
        return self.archive_root / self.manifest_file

    def locator(self) -> InstallationLocator:
        return InstallationLocator(
            game_root=self.game_root,
            addon_subpath=self.addon_subpath,
            overrides=self.install_roots,
        )


def _resolve(base: Path, raw: str) -> Path:
    path = Path(raw).expanduser()
    return path if path.is_absolute() else base / path


def load_program_config(config_path: Path) -> ProgramConfig:
    """Load the archive location, game root and variants from a TOML file.

    Relative paths are taken relative to the configuration file. The game
    root may also come from the ``ADDONSYNC_GAME_ROOT`` environment variable,
    which wins over the file.
    """

    if not config_path.exists():
        raise ValueError(f"Configuration file {config_path} not found.")

    raw_text = config_path.read_text(encoding="utf-8")
    try:
        config = toml.loads(raw_text)
    except toml.TomlDecodeError as exc:
        raise ValueError(f"Invalid TOML in configuration file: {config_path}") from exc

    base = config_path.parent
    if "archive_root" not in config:
        raise ValueError(f"'archive_root' is missing from {config_path}")
    archive_root = _resolve(base, str(config["archive_root"]))

    raw_game_root = os.environ.get(GAME_ROOT_ENV) or config.get("game_root")
    game_root = _resolve(base, str(raw_game_root)) if raw_game_root else None

    variants = config.get("variants", DEFAULT_VARIANTS)
    if isinstance(variants, str):
        variants = [variants]
    if not variants or not all(isinstance(variant, str) and variant for variant in variants):
        raise ValueError(f"'variants' must be a non-empty list of names in {config_path}")

    install_roots = {
        str(variant): _resolve(base, str(path))
        for variant, path in config.get("install_roots", {}).items()
    }
    if game_root is None:
        missing = [variant for variant in variants if variant not in install_roots]
        if missing:
            raise ValueError(
                f"No game_root configured (set it in {config_path} or {GAME_ROOT_ENV}) "
                f"and no install_roots entry for: {', '.join(missing)}"
            )

    try:
        check_interval = float(config.get("check_interval_minutes", DEFAULT_CHECK_INTERVAL_MINUTES))
        workers = int(config.get("workers", DEFAULT_WORKERS))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid number in configuration file {config_path}: {exc}") from exc

    return ProgramConfig(
        archive_root=archive_root,
        game_root=game_root,
        variants=list(variants),
        addon_subpath=Path(config.get("addon_subpath", str(DEFAULT_ADDON_SUBPATH))),
        install_roots=install_roots,
        cache_file=Path(config.get("cache_file", DEFAULT_CACHE_FILE)),
        manifest_file=Path(config.get("manifest_file", DEFAULT_MANIFEST_FILE)),
        check_interval_minutes=check_interval,
        workers=max(workers, 1),
    )
