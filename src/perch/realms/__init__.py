"""Realms: where code runs, what it may import, and the stubs between them."""

from perch.realms.access import LocalModuleAccess, RemoteValueAccess
from perch.realms.classifier import Realm, RealmLayout
from perch.realms.discovery import find_entrypoint_file, load_entrypoint
from perch.realms.generator import ExposedModule, ProxyGenerator
from perch.realms.runtime import RemoteExport, use_access
from perch.realms.stubs import StubRenderer
from perch.realms.virtual import ImportMap, VirtualFiles

__all__ = [
    "ExposedModule",
    "ImportMap",
    "LocalModuleAccess",
    "ProxyGenerator",
    "Realm",
    "RealmLayout",
    "RemoteExport",
    "RemoteValueAccess",
    "StubRenderer",
    "VirtualFiles",
    "find_entrypoint_file",
    "load_entrypoint",
    "use_access",
]
