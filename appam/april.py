"""Parser and action planner for APRIL (AOSC Package Reconstruction Information Listing)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Union


class AprilError(ValueError):
    """Raised when APRIL data is malformed or invalid."""


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise AprilError(f"{what} must be an object")
    return data


def _opt_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise AprilError(f"Field '{key}' must be a string")
    return value


def _req_str(data: Mapping[str, Any], key: str) -> str:
    if key not in data:
        raise AprilError(f"Missing field '{key}'")
    value = data[key]
    if not isinstance(value, str):
        raise AprilError(f"Field '{key}' must be a string")
    return value


def _opt_bool(data: Mapping[str, Any], key: str) -> Optional[bool]:
    value = data.get(key)
    if value is not None and not isinstance(value, bool):
        raise AprilError(f"Field '{key}' must be a boolean")
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _opt_uint(data: Mapping[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if not _is_int(value) or not 0 <= value < 2**64:
        raise AprilError(f"Field '{key}' must be a non-negative integer")
    return value


def _opt_str_list(data: Mapping[str, Any], key: str) -> Optional[list[str]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise AprilError(f"Field '{key}' must be a list of strings")
    return list(value)


@dataclass
class ScriptOverrides:
    """Replacement contents for maintainer scripts; an empty string removes one."""

    prerm: Optional[str] = None
    postrm: Optional[str] = None
    preinst: Optional[str] = None
    postinst: Optional[str] = None
    triggers: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ScriptOverrides":
        data = _require_mapping(data, "scripts")
        return cls(
            prerm=_opt_str(data, "prerm"),
            postrm=_opt_str(data, "postrm"),
            preinst=_opt_str(data, "preinst"),
            postinst=_opt_str(data, "postinst"),
            triggers=_opt_str(data, "triggers"),
        )


_LIST_FIELDS = (
    "depends",
    "recommends",
    "suggests",
    "enhances",
    "pre_depends",
    "breaks",
    "conflicts",
    "replaces",
    "provides",
    "conffiles",
)


@dataclass
class PackageOverrides:
    """Control-field and script overrides for a package."""

    name: Optional[str] = None
    version: Optional[str] = None
    arch: Optional[str] = None
    essential: Optional[bool] = None
    installed_size: Optional[int] = None
    section: Optional[str] = None
    description: Optional[str] = None
    depends: Optional[list[str]] = None
    recommends: Optional[list[str]] = None
    suggests: Optional[list[str]] = None
    enhances: Optional[list[str]] = None
    pre_depends: Optional[list[str]] = None
    breaks: Optional[list[str]] = None
    conflicts: Optional[list[str]] = None
    replaces: Optional[list[str]] = None
    provides: Optional[list[str]] = None
    scripts: Optional[ScriptOverrides] = None
    conffiles: Optional[list[str]] = None

    @classmethod
    def from_dict(cls, data: Any) -> "PackageOverrides":
        data = _require_mapping(data, "overrides")
        scripts = data.get("scripts")
        return cls(
            name=_opt_str(data, "name"),
            version=_opt_str(data, "version"),
            arch=_opt_str(data, "arch"),
            essential=_opt_bool(data, "essential"),
            installed_size=_opt_uint(data, "installed_size"),
            section=_opt_str(data, "section"),
            description=_opt_str(data, "description"),
            scripts=None if scripts is None else ScriptOverrides.from_dict(scripts),
            **{name: _opt_str_list(data, name) for name in _LIST_FIELDS},
        )


class FileOperationPhase(Enum):
    """When a file operation runs."""

    UNPACK = "unpack"
    POSTINST = "postinst"


class FileOperationKind(Enum):
    """The operation applied to a file."""

    REMOVE = "remove"
    MOVE = "move"
    COPY = "copy"
    LINK = "link"
    PATCH = "patch"
    BINARY_PATCH = "binary-patch"
    DIVERT = "divert"
    TRACK = "track"
    OVERWRITE = "overwrite"
    ADD = "add"
    CHMOD = "chmod"
    MKDIR = "mkdir"

    @property
    def takes_arg(self) -> bool:
        return self not in _UNIT_KINDS


_UNIT_KINDS = frozenset(
    {FileOperationKind.REMOVE, FileOperationKind.TRACK, FileOperationKind.MKDIR}
)


@dataclass(frozen=True)
class FileOperation:
    """A file operation: its kind, its argument (if any) and its phase."""

    kind: FileOperationKind
    arg: Union[str, int, None] = None
    phase: FileOperationPhase = FileOperationPhase.UNPACK

    @classmethod
    def from_dict(cls, data: Any) -> "FileOperation":
        data = _require_mapping(data, "file operation")

        raw_phase = data.get("phase", FileOperationPhase.UNPACK.value)
        try:
            phase = FileOperationPhase(raw_phase)
        except ValueError:
            raise AprilError(f"Unknown file operation phase: {raw_phase!r}") from None

        if "action" not in data:
            raise AprilError("Missing field 'action'")
        try:
            kind = FileOperationKind(data["action"])
        except ValueError:
            raise AprilError(f"Unknown file operation: {data['action']!r}") from None

        arg = data.get("arg")
        if not kind.takes_arg:
            if arg is not None:
                raise AprilError(f"File operation '{kind.value}' takes no argument")
        elif arg is None:
            raise AprilError(f"Missing field 'arg' for file operation '{kind.value}'")
        elif kind is FileOperationKind.CHMOD:
            if not _is_int(arg) or not 0 <= arg <= 0xFFFF:
                raise AprilError("chmod argument must be an integer between 0 and 65535")
        elif not isinstance(arg, str):
            raise AprilError(f"Argument of '{kind.value}' must be a string")

        return cls(kind=kind, arg=arg, phase=phase)


@dataclass
class AprilPackage:
    """One APRIL package entry."""

    schema: str
    name: str
    compatible_versions: str
    overrides: PackageOverrides
    total_conversion: bool = False
    files: Optional[dict[str, FileOperation]] = None

    @classmethod
    def from_dict(cls, data: Any) -> "AprilPackage":
        data = _require_mapping(data, "package")
        if "overrides" not in data:
            raise AprilError("Missing field 'overrides'")
        total_conversion = data.get("total_conversion", False)
        if not isinstance(total_conversion, bool):
            raise AprilError("Field 'total_conversion' must be a boolean")

        raw_files = data.get("files")
        files = None
        if raw_files is not None:
            raw_files = _require_mapping(raw_files, "files")
            files = {
                str(path): FileOperation.from_dict(op) for path, op in raw_files.items()
            }

        return cls(
            schema=_req_str(data, "schema"),
            name=_req_str(data, "name"),
            compatible_versions=_req_str(data, "compatible_versions"),
            overrides=PackageOverrides.from_dict(data["overrides"]),
            total_conversion=total_conversion,
            files=files,
        )


class ActionType(Enum):
    APPEND = "append"
    REPLACE = "replace"
    REMOVE = "remove"


class Step(Enum):
    """Package-manager stages of an installation."""

    PRECONFIG = "preconfig"
    UNPACK = "unpack"
    EXTRACT = "extract"
    CONFIGURE = "configure"
    INSTALL = "install"


@dataclass(frozen=True)
class StepAction:
    """Run one package-manager stage."""

    step: Step


@dataclass(frozen=True)
class PatchField:
    """Patch a control field with a value."""

    field: str
    value: str
    action: ActionType


@dataclass(frozen=True)
class DropControlData:
    """Clear all control fields and scripts."""


@dataclass(frozen=True)
class PutControlChunk:
    """Replace the control data with a deb822 paragraph."""

    data: str


@dataclass(frozen=True)
class PatchScript:
    """Patch a control script (preinst, postinst, prerm, postrm, conffiles, triggers)."""

    file: str
    content: Optional[str]
    action: ActionType


@dataclass(frozen=True)
class PatchFile:
    """Apply a file operation to a path inside the package."""

    path: str
    operation: FileOperation = field(compare=True)


Action = Union[StepAction, PatchField, DropControlData, PutControlChunk, PatchScript, PatchFile]


def parse_april_packages(text: str) -> list[AprilPackage]:
    """Parse a JSON array of APRIL package entries."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise AprilError(f"Invalid JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise AprilError("APRIL configuration must be a list of packages")
    return [AprilPackage.from_dict(item) for item in raw]


def validate_april_data(data: AprilPackage) -> None:
    """Raise AprilError if the package entry is not acceptable."""
    if data.schema != "0":
        raise AprilError("Invalid schema version, expected 0")

    if data.total_conversion:
        o = data.overrides
        mandatory = (o.name, o.version, o.arch, o.installed_size, o.section, o.description, o.depends)
        if any(value is None for value in mandatory):
            raise AprilError("Missing mandatory fields in total_conversion package")


def _list_field_actions(values: Optional[list[str]], name: str) -> list[PatchField]:
    if values is None:
        return []
    if not values:
        return [PatchField(name, "", ActionType.REPLACE)]
    actions = []
    for entry in values:
        if not entry:
            continue
        modifier, rest = entry[0], entry[1:]
        if modifier == "+":
            actions.append(PatchField(name, rest, ActionType.APPEND))
        elif modifier == "-":
            actions.append(PatchField(name, rest, ActionType.REMOVE))
        else:
            actions.append(PatchField(name, entry, ActionType.APPEND))
    return actions


def _field_action(value: Optional[str], name: str) -> list[PatchField]:
    if value is None:
        return []
    return [PatchField(name, value, ActionType.REPLACE)]


def _script_action(content: Optional[str], file: str) -> list[PatchScript]:
    if content is None:
        return []
    if not content:
        return [PatchScript(file, None, ActionType.REMOVE)]
    return [PatchScript(file, content, ActionType.REPLACE)]


def _file_actions(data: AprilPackage, phase: FileOperationPhase) -> list[PatchFile]:
    return [
        PatchFile(path, op)
        for path, op in (data.files or {}).items()
        if op.phase is phase
    ]


def plan_actions_from_april_data(data: AprilPackage) -> list[Action]:
    """Return the ordered list of actions needed to apply the package entry."""
    o = data.overrides
    scripts = o.scripts or ScriptOverrides()
    actions: list[Action] = []

    if data.total_conversion:
        actions.append(DropControlData())

    # Pre-install/pre-remove scripts and triggers come before everything else.
    actions += _script_action(scripts.preinst, "preinst")
    actions += _script_action(scripts.prerm, "prerm")
    actions += _script_action(scripts.triggers, "triggers")

    # Fields needed before the pre-configure phase.
    actions += _list_field_actions(o.pre_depends, "Pre-Depends")
    actions += _field_action(o.arch, "Architecture")
    actions += _field_action(o.name, "Package")
    actions += _field_action(
        None if o.installed_size is None else str(o.installed_size), "Installed-Size"
    )

    actions.append(StepAction(Step.PRECONFIG))

    if o.conffiles is not None:
        new_list = "\n".join(o.conffiles)
        if new_list:
            actions.append(PatchScript("conffiles", new_list, ActionType.REPLACE))
        else:
            actions.append(PatchScript("conffiles", None, ActionType.REMOVE))

    actions.append(StepAction(Step.EXTRACT))

    actions += _list_field_actions(o.depends, "Depends")
    actions += _list_field_actions(o.recommends, "Recommends")
    actions += _list_field_actions(o.conflicts, "Conflicts")
    actions += _list_field_actions(o.suggests, "Suggests")
    actions += _list_field_actions(o.breaks, "Breaks")
    actions += _list_field_actions(o.replaces, "Replaces")
    actions += _list_field_actions(o.provides, "Provides")
    actions += _field_action(o.version, "Version")
    actions += _field_action(o.description, "Description")
    actions += _field_action(o.section, "Section")
    actions += _field_action(
        None if o.essential is None else ("yes" if o.essential else "no"), "Essential"
    )

    actions += _file_actions(data, FileOperationPhase.UNPACK)

    actions += _script_action(scripts.postinst, "postinst")
    actions += _script_action(scripts.postrm, "postrm")

    actions.append(StepAction(Step.CONFIGURE))

    actions += _file_actions(data, FileOperationPhase.POSTINST)

    return actions