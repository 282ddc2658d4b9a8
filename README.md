# appam

`appam` reads APRIL (package reconstruction information listing) files. It
applies the changes they describe to a `.deb` package:

- control field edits;
- maintainer script replacements;
- file operations inside the package tree.

## Installation

```
pip install .
```

Reconstruction needs `dpkg-deb` on the `PATH`. Text patches also need
`patch`, and binary patches need `xdelta3`.

## Command line

```
appam path/to/package.deb -c path/to/april.json -r
```

- `package_path`: the `.deb` file to work on.
- `-c`, `--config` (required): the APRIL file, a JSON array of package
  entries. Only the first entry is used.
- `-r`, `--reconstruct`: unpack the package and apply the planned actions.
  The result is repacked next to the original. For `foo.deb` the result is
  `foo.repacked.deb`.

The command exits with status 0 on success. On failure it prints a message
prefixed with `appam:` to standard error and exits with status 1. The command
does not call `validate_april_data`.

## What is not available

- There is no direct installation into the running system. Without `-r` the
  command stops with an error.
- The file operations `divert` and `track` are parsed and planned. Applying
  them during reconstruction raises `ReconstructError`.

## Library use

```python
from pathlib import Path

from appam.april import (
    parse_april_packages,
    validate_april_data,
    plan_actions_from_april_data,
)
from appam.reconstruct import apply_actions_for_reconstruct

packages = parse_april_packages(Path("april.json").read_text())
validate_april_data(packages[0])
actions = plan_actions_from_april_data(packages[0])
new_deb = apply_actions_for_reconstruct("foo_1.0_amd64.deb", actions)
```

### Modules

- `appam.april`
  - `AprilPackage.from_dict` and `parse_april_packages` turn entries into
    dataclasses.
  - `plan_actions_from_april_data` returns an ordered list of action objects:
    `StepAction`, `PatchField`, `DropControlData`, `PutControlChunk`,
    `PatchScript` and `PatchFile`.
- `appam.control`: `Deb822` and `Paragraph` read and write deb822 control
  data. Field names are case-insensitive.
- `appam.reconstruct`
  - `apply_actions_for_reconstruct` runs `dpkg-deb -R`, applies the actions,
    writes `DEBIAN/control` and runs `dpkg-deb -b`. It returns the path of the
    new package.
  - It is built on these helpers: `apply_field_patch`, `apply_script_action`,
    `apply_file_operation`, `resolve_path`, `resolve_resource_uri` and
    `fetch_resource_uri`.

### Errors

`parse_april_packages` and `AprilPackage.from_dict` raise `AprilError` (a
`ValueError`) for malformed input.

`validate_april_data` raises `AprilError` in two cases:

- the schema is not `"0"`;
- a total-conversion entry lacks a mandatory override.

The functions in `appam.reconstruct` raise `ReconstructError` when:

- a path escapes the unpacked package root;
- a resource URI is invalid or unsupported;
- a download's SHA-256 sum does not match;
- an external tool fails.

`Deb822.parse` raises `ValueError` on malformed lines.

### Resource URIs

Resources for patches and added files are written in one of two forms:

- `file::<url>`
- `file::sha256=<hex>::<url>`

`http` and `https` URLs must carry a SHA-256 sum. `data:` URLs are decoded
inline. The payload may be base64 or percent-encoded.

## Development

```
pip install -e ".[test]"
pytest
```