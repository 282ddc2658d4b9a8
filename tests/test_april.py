import json

import pytest

from appam.april import (
    ActionType,
    AprilError,
    AprilPackage,
    DropControlData,
    FileOperation,
    FileOperationKind,
    FileOperationPhase,
    PackageOverrides,
    PatchField,
    PatchFile,
    PatchScript,
    PutControlChunk,
    ScriptOverrides,
    Step,
    StepAction,
    parse_april_packages,
    plan_actions_from_april_data,
    validate_april_data,
)


def _package(**extra):
    data = {
        "schema": "0",
        "name": "libfoo",
        "compatible_versions": ">=1.0 && <2.0",
        "overrides": {},
    }
    data.update(extra)
    return AprilPackage.from_dict(data)


def test_april_package_parsing_simple():
    text = """{
        "schema": "0",
        "name": "libfoo",
        "compatible_versions": ">=1.0 && <2.0",
        "total_conversion": false,
        "overrides": {}
    }"""
    pkg = AprilPackage.from_dict(json.loads(text))
    assert pkg.compatible_versions == ">=1.0 && <2.0"
    assert pkg.total_conversion is False
    assert pkg.files is None


def test_parse_april_packages_list():
    text = json.dumps([{"schema": "0", "name": "a", "compatible_versions": "*", "overrides": {}}])
    packages = parse_april_packages(text)
    assert [p.name for p in packages] == ["a"]


def test_parse_april_packages_requires_list():
    with pytest.raises(AprilError):
        parse_april_packages('{"schema": "0"}')


def test_parse_invalid_json():
    with pytest.raises(AprilError):
        parse_april_packages("[")


def test_missing_required_field():
    with pytest.raises(AprilError):
        AprilPackage.from_dict({"schema": "0", "name": "a", "overrides": {}})


def test_wrong_type_field():
    with pytest.raises(AprilError):
        PackageOverrides.from_dict({"installed_size": "12"})
    with pytest.raises(AprilError):
        PackageOverrides.from_dict({"depends": "foo"})
    with pytest.raises(AprilError):
        PackageOverrides.from_dict({"essential": 1})


def test_script_overrides_from_dict():
    scripts = ScriptOverrides.from_dict({"preinst": "echo hi", "postrm": ""})
    assert scripts.preinst == "echo hi"
    assert scripts.postrm == ""
    assert scripts.prerm is None


def test_file_operation_defaults_and_args():
    op = FileOperation.from_dict({"action": "remove"})
    assert op.kind is FileOperationKind.REMOVE
    assert op.phase is FileOperationPhase.UNPACK
    assert op.arg is None

    op = FileOperation.from_dict({"action": "binary-patch", "arg": "x", "phase": "postinst"})
    assert op.kind is FileOperationKind.BINARY_PATCH
    assert op.arg == "x"
    assert op.phase is FileOperationPhase.POSTINST

    op = FileOperation.from_dict({"action": "chmod", "arg": 0o755})
    assert op.arg == 0o755


@pytest.mark.parametrize(
    "data",
    [
        {"action": "explode"},
        {"action": "move"},
        {"action": "chmod", "arg": 70000},
        {"action": "chmod", "arg": "755"},
        {"action": "copy", "arg": 5},
        {"action": "mkdir", "arg": "x"},
        {"action": "remove", "phase": "later"},
        {"arg": "x"},
    ],
)
def test_file_operation_errors(data):
    with pytest.raises(AprilError):
        FileOperation.from_dict(data)


def test_validate_schema():
    with pytest.raises(AprilError, match="Invalid schema version"):
        validate_april_data(_package(schema="1"))
    assert validate_april_data(_package()) is None


def test_validate_total_conversion_missing_fields():
    pkg = _package(total_conversion=True, overrides={"name": "foo"})
    with pytest.raises(AprilError, match="Missing mandatory fields"):
        validate_april_data(pkg)


def test_validate_total_conversion_complete():
    pkg = _package(
        total_conversion=True,
        overrides={
            "name": "foo",
            "version": "1.0",
            "arch": "amd64",
            "installed_size": 10,
            "section": "utils",
            "description": "d",
            "depends": [],
        },
    )
    assert validate_april_data(pkg) is None


def test_plan_minimal():
    plan = plan_actions_from_april_data(_package())
    assert plan == [
        StepAction(Step.PRECONFIG),
        StepAction(Step.EXTRACT),
        StepAction(Step.CONFIGURE),
    ]


def test_plan_full_order():
    pkg = _package(
        total_conversion=True,
        overrides={
            "name": "foo",
            "arch": "amd64",
            "installed_size": 42,
            "version": "2.0",
            "essential": False,
            "pre_depends": ["+libc"],
            "depends": ["+bar", "-baz (>= 1)", "qux", ""],
            "conffiles": ["/etc/a", "/etc/b"],
            "scripts": {"preinst": "", "prerm": "x", "triggers": "t", "postinst": "p", "postrm": ""},
        },
        files={
            "usr/bin/a": {"action": "remove"},
            "etc/b": {"action": "chmod", "arg": 420, "phase": "postinst"},
        },
    )
    plan = plan_actions_from_april_data(pkg)
    assert plan == [
        DropControlData(),
        PatchScript("preinst", None, ActionType.REMOVE),
        PatchScript("prerm", "x", ActionType.REPLACE),
        PatchScript("triggers", "t", ActionType.REPLACE),
        PatchField("Pre-Depends", "libc", ActionType.APPEND),
        PatchField("Architecture", "amd64", ActionType.REPLACE),
        PatchField("Package", "foo", ActionType.REPLACE),
        PatchField("Installed-Size", "42", ActionType.REPLACE),
        StepAction(Step.PRECONFIG),
        PatchScript("conffiles", "/etc/a\n/etc/b", ActionType.REPLACE),
        StepAction(Step.EXTRACT),
        PatchField("Depends", "bar", ActionType.APPEND),
        PatchField("Depends", "baz (>= 1)", ActionType.REMOVE),
        PatchField("Depends", "qux", ActionType.APPEND),
        PatchField("Version", "2.0", ActionType.REPLACE),
        PatchField("Essential", "no", ActionType.REPLACE),
        PatchFile("usr/bin/a", FileOperation(FileOperationKind.REMOVE)),
        PatchScript("postinst", "p", ActionType.REPLACE),
        PatchScript("postrm", None, ActionType.REMOVE),
        StepAction(Step.CONFIGURE),
        PatchFile(
            "etc/b",
            FileOperation(FileOperationKind.CHMOD, 420, FileOperationPhase.POSTINST),
        ),
    ]


def test_plan_empty_list_and_empty_string_replace():
    pkg = _package(overrides={"depends": [], "section": "", "essential": True, "conffiles": []})
    plan = plan_actions_from_april_data(pkg)
    assert PatchField("Depends", "", ActionType.REPLACE) in plan
    assert PatchField("Section", "", ActionType.REPLACE) in plan
    assert PatchField("Essential", "yes", ActionType.REPLACE) in plan
    assert PatchScript("conffiles", None, ActionType.REMOVE) in plan


def test_plan_list_field_order():
    pkg = _package(
        overrides={
            "provides": ["p"],
            "recommends": ["r"],
            "breaks": ["b"],
            "conflicts": ["c"],
            "replaces": ["rp"],
            "suggests": ["s"],
        }
    )
    fields = [a.field for a in plan_actions_from_april_data(pkg) if isinstance(a, PatchField)]
    assert fields == ["Recommends", "Conflicts", "Suggests", "Breaks", "Replaces", "Provides"]


def test_put_control_chunk_holds_data():
    chunk = PutControlChunk("Package: foo\n")
    assert chunk.data == "Package: foo\n"
    assert chunk == PutControlChunk("Package: foo\n")