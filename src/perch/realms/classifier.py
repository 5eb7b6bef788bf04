"""Realm classification and import legality.

Every module path belongs to exactly one realm, decided by the realm
root it lives under. Roots may nest (``backend/frontend_assets``); the
deepest matching root wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from perch.errors import IllegalRealmImportError, UnresolvableRealmError

if TYPE_CHECKING:
    from perch.config import AppConfig


class Realm(Enum):
    FRONTEND = "frontend"
    BACKEND = "backend"
    COMMON = "common"


@dataclass(frozen=True, slots=True)
class RealmLayout:
    """Configured realm roots, as absolute resolved paths."""

    roots: tuple[tuple[Path, Realm], ...]

    @classmethod
    def from_config(cls, config: AppConfig) -> RealmLayout:
        roots: list[tuple[Path, Realm]] = []
        for realm, dirs in (
            (Realm.FRONTEND, config.frontend_dirs),
            (Realm.BACKEND, config.backend_dirs),
            (Realm.COMMON, config.common_dirs),
        ):
            roots.extend((config.resolve_dir(d), realm) for d in dirs)
        return cls(tuple(roots))

    def root_of(self, path: str | Path) -> tuple[Path, Realm] | None:
        resolved = Path(path).resolve()
        best: tuple[Path, Realm] | None = None
        for root, realm in self.roots:
            if resolved == root or resolved.is_relative_to(root):
                if best is None or len(root.parts) > len(best[0].parts):
                    best = (root, realm)
        return best

    def classify(self, path: str | Path) -> Realm:
        """Return the realm of *path*.

        Raises:
            UnresolvableRealmError: *path* is outside every realm root.
        """
        match = self.root_of(path)
        if match is None:
            raise UnresolvableRealmError(path, (root for root, _ in self.roots))
        return match[1]

    def check_import(self, importer: str | Path, imported: str | Path) -> tuple[Realm, Realm]:
        """Classify both ends of an import and enforce legality.

        Frontend modules run only in the client. Common and backend code
        importing one would break on the server, so both are rejected.

        Returns:
            ``(importer_realm, imported_realm)``.
        """
        importer_realm = self.classify(importer)
        imported_realm = self.classify(imported)
        if imported_realm is Realm.FRONTEND and importer_realm is not Realm.FRONTEND:
            raise IllegalRealmImportError(importer, imported, importer_realm.value)
        return importer_realm, imported_realm
