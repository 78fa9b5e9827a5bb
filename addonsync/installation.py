from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Sequence

from .errors import InstallationNotFound

DEFAULT_ADDON_SUBPATH = Path("Interface") / "AddOns"


@dataclass(slots=True)
class InstallationLocator:
    """Maps a variant name to the directory its addons are installed in.

    The variant's own directory has to exist; the addon directory below it
    may not exist yet and is created by the first install.
    """

    game_root: Path | None
    addon_subpath: Path = DEFAULT_ADDON_SUBPATH
    overrides: Mapping[str, Path] = field(default_factory=dict)

    def resolve(self, variant: str) -> Path:
        override = self.overrides.get(variant)
        if override is not None:
            if not override.parent.is_dir():
                raise InstallationNotFound(variant, override)
            return override

        if self.game_root is None:
            raise InstallationNotFound(variant, Path(variant))
        variant_dir = self.game_root / variant
        if not variant_dir.is_dir():
            raise InstallationNotFound(variant, variant_dir)
        return variant_dir / self.addon_subpath

    def resolve_all(self, variants: Sequence[str]) -> Dict[str, Path]:
        return {variant: self.resolve(variant) for variant in variants}
