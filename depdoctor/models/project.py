"""
Project snapshot models for depdoctor.

A :class:`ProjectSnapshot` is the raw fact sheet a caller hands to
depdoctor: the root ``package.json``, the workspace members of a monorepo,
the installed dependency tree (as listed by ``npm ls --json``,
``pnpm list --json`` or an equivalent), and the current runtime version.

Parsing is lenient. Entries that do not have the expected shape are
skipped and logged at DEBUG level; only a document that is not a JSON
object at all is rejected.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from depdoctor.exceptions import ParseError
from depdoctor.utils.logger import get_logger
from depdoctor.constants import LOCK_FILES, OVERRIDE_FIELDS
from depdoctor.models.graph import DependencyKind, DependencyNode, child_location

logger = get_logger("models.project")


class PackageManager(Enum):
    """Supported package managers and their on-disk conventions."""

    NPM = "npm"
    PNPM = "pnpm"
    YARN = "yarn"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PackageManager":
        """Parse ``"pnpm"`` or a ``packageManager`` field like ``"pnpm@8.6.0"``.

        Unknown or missing values fall back to npm.
        """
        if not value:
            return cls.NPM
        name = value.strip().split("@", 1)[0].lower()
        for member in cls:
            if member.value == name:
                return member
        logger.debug("Unknown package manager %r, assuming npm", value)
        return cls.NPM

    @property
    def lock_file(self) -> str:
        return LOCK_FILES[self.value]

    @property
    def override_field(self) -> str:
        return OVERRIDE_FIELDS[self.value]

    def install_command(self) -> str:
        return f"{self.value} install"

    def dedupe_command(self) -> str:
        return f"{self.value} dedupe"

    def add_command(self, name: str, version: str, *, dev: bool = False) -> str:
        """Return the command that installs ``name@version`` as a direct dependency."""
        spec = f"{name}@{version}"
        if self is PackageManager.NPM:
            return f"npm install {spec} {'--save-dev' if dev else '--save'}"
        command = f"{self.value} add {spec}"
        return f"{command} -D" if dev else command

    def update_all_command(self) -> str:
        return "npx npm-check-updates -u"


def _string_map(value: Any) -> Dict[str, str]:
    """Keep only ``str → str`` entries of a mapping."""
    if not isinstance(value, Mapping):
        return {}
    return {
        str(k): v for k, v in value.items() if isinstance(k, str) and isinstance(v, str)
    }


def _optional_map(value: Any) -> Dict[str, bool]:
    """Parse ``peerDependenciesMeta`` into ``name → optional``."""
    if not isinstance(value, Mapping):
        return {}
    result: Dict[str, bool] = {}
    for name, meta in value.items():
        if isinstance(meta, Mapping):
            result[str(name)] = bool(meta.get("optional", False))
    return result


@dataclass
class RootManifest:
    """The parts of the root ``package.json`` depdoctor reasons about.

    Attributes:
        name: Project name.
        version: Project version.
        dependencies: ``dependencies`` section.
        dev_dependencies: ``devDependencies`` section.
        peer_dependencies: ``peerDependencies`` section.
        optional_dependencies: ``optionalDependencies`` section.
        engines: ``engines`` section (``node``, ``npm``, ...).
        overrides: Raw npm ``overrides`` map (may be nested).
        pnpm_overrides: Raw ``pnpm.overrides`` map.
        resolutions: Raw yarn ``resolutions`` map.
        package_manager: Raw ``packageManager`` field.
    """

    name: str = ""
    version: str = ""
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)
    peer_dependencies: Dict[str, str] = field(default_factory=dict)
    optional_dependencies: Dict[str, str] = field(default_factory=dict)
    engines: Dict[str, str] = field(default_factory=dict)
    overrides: Dict[str, Any] = field(default_factory=dict)
    pnpm_overrides: Dict[str, Any] = field(default_factory=dict)
    resolutions: Dict[str, Any] = field(default_factory=dict)
    package_manager: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RootManifest":
        pnpm_section = data.get("pnpm")
        pnpm_overrides = (
            pnpm_section.get("overrides") if isinstance(pnpm_section, Mapping) else None
        )
        package_manager = data.get("packageManager")
        return cls(
            name=str(data.get("name") or ""),
            version=str(data.get("version") or ""),
            dependencies=_string_map(data.get("dependencies")),
            dev_dependencies=_string_map(data.get("devDependencies")),
            peer_dependencies=_string_map(data.get("peerDependencies")),
            optional_dependencies=_string_map(data.get("optionalDependencies")),
            engines=_string_map(data.get("engines")),
            overrides=dict(data.get("overrides") or {})
            if isinstance(data.get("overrides"), Mapping)
            else {},
            pnpm_overrides=dict(pnpm_overrides) if isinstance(pnpm_overrides, Mapping) else {},
            resolutions=dict(data.get("resolutions") or {})
            if isinstance(data.get("resolutions"), Mapping)
            else {},
            package_manager=package_manager if isinstance(package_manager, str) else None,
        )

    def requirement_for(self, name: str) -> Optional[str]:
        """Return the range the root declares for *name*, production first."""
        return self.dependencies.get(name) or self.dev_dependencies.get(name)

    def is_dev_dependency(self, name: str) -> bool:
        return name in self.dev_dependencies and name not in self.dependencies


@dataclass
class WorkspaceMember:
    """One package of a monorepo.

    Attributes:
        name: Member package name.
        version: Member's declared version.
        relative_path: Location relative to the repository root.
        requirements: ``dependencies`` and ``devDependencies`` merged; a
            production entry wins over a dev entry for the same name.
    """

    name: str
    version: str = ""
    relative_path: str = ""
    requirements: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> Optional["WorkspaceMember"]:
        """Build a member, or return ``None`` when it has no usable manifest."""
        if not isinstance(data, Mapping):
            return None

        manifest = data.get("packageJson") or data.get("manifest") or data
        if not isinstance(manifest, Mapping):
            return None

        name = data.get("name") or manifest.get("name")
        if not isinstance(name, str) or not name:
            return None

        requirements = _string_map(manifest.get("devDependencies"))
        requirements.update(_string_map(manifest.get("dependencies")))

        return cls(
            name=name,
            version=str(data.get("version") or manifest.get("version") or ""),
            relative_path=str(data.get("relativePath") or data.get("path") or ""),
            requirements=requirements,
        )


def _requirement_from(name: str, raw_from: Any) -> Optional[str]:
    """Extract the range from an ``npm ls`` style ``from`` field (``"a@^1"``)."""
    if not isinstance(raw_from, str):
        return None
    prefix = f"{name}@"
    if raw_from.startswith(prefix):
        return raw_from[len(prefix):] or None
    return None


def parse_node(
    name: str,
    data: Any,
    parent_location: Optional[str] = None,
    kind: Optional[DependencyKind] = None,
) -> Optional[DependencyNode]:
    """Build a :class:`DependencyNode` (and its subtree) from a listing entry.

    Args:
        name: Package name (the key the entry was listed under).
        data: Listing entry with ``version``, ``path``/``location``,
            ``requirement``/``specifier``/``from``, ``dev``, ``optional``,
            ``dependencies``, ``peerDependencies`` and ``peerDependenciesMeta``.
        parent_location: Install path of the parent, used when the entry has
            no explicit location.
        kind: Kind forced by the enclosing section (e.g. pnpm's
            ``devDependencies``); otherwise derived from ``dev``/``optional``.

    Returns:
        The node, or ``None`` if *data* is not a mapping.
    """
    if not isinstance(data, Mapping):
        logger.debug("Skipping malformed tree entry for %s", name)
        return None

    version = data.get("version")
    location = data.get("path") or data.get("location")
    if not isinstance(location, str) or not location:
        location = child_location(parent_location, name)

    requirement = data.get("requirement") or data.get("specifier")
    if not isinstance(requirement, str):
        requirement = _requirement_from(name, data.get("from"))

    if kind is None:
        if data.get("dev"):
            kind = DependencyKind.DEV
        elif data.get("optional"):
            kind = DependencyKind.OPTIONAL
        else:
            kind = DependencyKind.PROD

    node = DependencyNode(
        name=name,
        version=version if isinstance(version, str) and version else None,
        location=location,
        requirement=requirement,
        kind=kind,
        peer_dependencies=_string_map(data.get("peerDependencies")),
        peer_dependencies_meta=_optional_map(data.get("peerDependenciesMeta")),
    )

    children = data.get("dependencies")
    if isinstance(children, Mapping):
        for child_name, child_data in children.items():
            child = parse_node(str(child_name), child_data, location)
            if child is not None:
                node.children.append(child)

    return node


_TREE_SECTIONS = (
    ("dependencies", None),
    ("devDependencies", DependencyKind.DEV),
    ("optionalDependencies", DependencyKind.OPTIONAL),
)


def parse_tree(data: Any) -> List[DependencyNode]:
    """Parse the top level of an installed-tree listing.

    Accepts an ``npm ls --json`` root object, a ``pnpm list --json`` array
    of project roots, or a bare ``name → entry`` mapping.
    """
    if isinstance(data, list):
        nodes: List[DependencyNode] = []
        for item in data:
            nodes.extend(parse_tree(item))
        return nodes

    if not isinstance(data, Mapping):
        return []

    sections = [
        (data[key], kind)
        for key, kind in _TREE_SECTIONS
        if isinstance(data.get(key), Mapping)
    ]
    if not sections:
        sections = [(data, None)]

    nodes = []
    for section, kind in sections:
        for name, entry in section.items():
            node = parse_node(str(name), entry, None, kind)
            if node is not None:
                nodes.append(node)
    return nodes


@dataclass
class ProjectSnapshot:
    """Everything depdoctor knows about one project.

    Attributes:
        manifest: Root ``package.json`` facts.
        workspaces: Monorepo members (empty for single-package projects).
        tree: Top-level nodes of the installed dependency tree.
        runtime_version: Current Node.js version (``"18.19.0"``), if known.
        package_manager: Package manager in use.
    """

    manifest: RootManifest = field(default_factory=RootManifest)
    workspaces: List[WorkspaceMember] = field(default_factory=list)
    tree: List[DependencyNode] = field(default_factory=list)
    runtime_version: Optional[str] = None
    package_manager: PackageManager = PackageManager.NPM

    @classmethod
    def from_dict(
        cls,
        data: Any,
        *,
        source: Optional[str] = None,
    ) -> "ProjectSnapshot":
        """Build a snapshot from a decoded JSON document.

        Raises:
            ParseError: *data* is not a JSON object.
        """
        if not isinstance(data, Mapping):
            raise ParseError("Snapshot must be a JSON object", file_path=source)

        raw_manifest = data.get("manifest") or data.get("packageJson") or {}
        if not isinstance(raw_manifest, Mapping):
            logger.debug("Ignoring non-object manifest in snapshot")
            raw_manifest = {}
        manifest = RootManifest.from_dict(raw_manifest)

        workspaces: List[WorkspaceMember] = []
        raw_workspaces = data.get("workspaces") or []
        if isinstance(raw_workspaces, list):
            for entry in raw_workspaces:
                member = WorkspaceMember.from_dict(entry)
                if member is None:
                    logger.debug("Skipping workspace entry without a manifest: %r", entry)
                    continue
                workspaces.append(member)

        runtime = data.get("runtimeVersion")
        package_manager = PackageManager.parse(
            data.get("packageManager")
            if isinstance(data.get("packageManager"), str)
            else manifest.package_manager
        )

        return cls(
            manifest=manifest,
            workspaces=workspaces,
            tree=parse_tree(data.get("tree")),
            runtime_version=runtime.lstrip("v") if isinstance(runtime, str) else None,
            package_manager=package_manager,
        )
