"""Apply planned APRIL actions to a package by unpacking and repacking it."""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
import shutil
import subprocess
import tempfile
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from .april import (
    ActionType,
    DropControlData,
    FileOperation,
    FileOperationKind,
    PatchField,
    PatchFile,
    PatchScript,
    PutControlChunk,
    StepAction,
)
from .control import Deb822, Paragraph

PathLike = Union[str, "os.PathLike[str]"]


class ReconstructError(RuntimeError):
    """Raised when a package cannot be reconstructed."""


@dataclass(frozen=True)
class InlineResource:
    """A resource whose content is embedded in its URI."""

    content: bytes


@dataclass(frozen=True)
class ExternalResource:
    """A resource fetched over HTTP(S) and checked against a SHA-256 sum."""

    url: str
    sha256: str


def remove_item_from_string_list(items: str, item: str) -> str:
    """Remove ``item`` (with or without a version constraint) from a comma-separated list."""
    prefix = f"{item} ("
    kept = [
        entry
        for entry in (part.strip() for part in items.split(","))
        if entry != item and not entry.startswith(prefix)
    ]
    return ", ".join(kept)


def apply_field_patch(action: PatchField, paragraph: Paragraph) -> None:
    """Apply a field patch to a control paragraph."""
    if not isinstance(action, PatchField):
        raise TypeError(f"expected a PatchField action, got {type(action).__name__}")
    current = paragraph.get(action.field, "")
    if action.action is ActionType.REMOVE:
        paragraph.set(action.field, remove_item_from_string_list(current, action.value))
    elif action.action is ActionType.APPEND:
        paragraph.set(action.field, f"{current}, {action.value}" if current else action.value)
    elif not action.value:
        paragraph.remove(action.field)
    else:
        paragraph.set(action.field, action.value)


def resolve_path(root: PathLike, path: str) -> Path:
    """Resolve ``path`` under ``root``, refusing anything that escapes it."""
    root_path = Path(root).resolve()
    file_path = (root_path / path).resolve()
    if not file_path.is_relative_to(root_path):
        raise ReconstructError(f"Invalid file path: {path}")
    return file_path


def resolve_resource_uri(uri: str) -> Union[InlineResource, ExternalResource]:
    """Parse a ``type::[options::]url`` resource URI."""
    parts = uri.split("::", 2)
    sha256sum: Optional[str] = None
    if len(parts) == 2:
        resource_type, url = parts
    elif len(parts) == 3:
        resource_type, options, url = parts
        for option in options.split(";"):
            if option.startswith("sha256="):
                sha256sum = option.split("=")[-1]
    else:
        raise ReconstructError(f"Invalid resource URI: {uri}")

    if resource_type != "file":
        raise ReconstructError(f"Unsupported resource type: {resource_type}")

    parsed = urllib.parse.urlsplit(url)
    scheme = parsed.scheme.lower()
    if not scheme:
        raise ReconstructError(f"Invalid URL in resource URI: {url}")

    if scheme in ("http", "https"):
        if sha256sum is None:
            raise ReconstructError(f"Missing or invalid SHA256 sum in resource URI: {url}")
        return ExternalResource(url=url, sha256=sha256sum)

    if scheme == "data":
        data = parsed.path
        payload_start = data.find(",")
        if payload_start < 0:
            raise ReconstructError(f"Invalid data URI: {url}")
        payload = data[payload_start + 1 :]
        if payload_start > 6 and data[payload_start - 6 : payload_start] == "base64":
            try:
                content = base64.b64decode(payload, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ReconstructError(f"Invalid base64 payload in data URI: {url}") from exc
        else:
            content = urllib.parse.unquote_to_bytes(payload)
        return InlineResource(content=content)

    raise ReconstructError(f"Unsupported scheme in resource URI: {url}")


def fetch_resource_uri(uri: str) -> bytes:
    """Return the content of a resource, downloading and verifying it if external."""
    resource = resolve_resource_uri(uri)
    if isinstance(resource, InlineResource):
        return resource.content

    url = resource.url
    try:
        with urllib.request.urlopen(url) as response:
            status = response.status
            body = response.read()
    except urllib.error.HTTPError as exc:
        raise ReconstructError(f"Failed to fetch resource: {url} (HTTP {exc.code})") from exc
    if not 200 <= status < 300:
        raise ReconstructError(f"Failed to fetch resource: {url} (HTTP {status})")

    calculated = hashlib.sha256(body).hexdigest()
    if calculated != resource.sha256:
        raise ReconstructError(
            f"SHA256 sum mismatch for resource: {url}, expected {resource.sha256}, got {calculated}"
        )
    return body


def _run_with_input(command: list, content: bytes, what: str) -> None:
    result = subprocess.run(command, input=content, check=False)
    if result.returncode != 0:
        raise ReconstructError(f"Failed to apply {what}: exit status {result.returncode}")


def apply_file_operation(root: PathLike, path: str, operation: FileOperation) -> None:
    """Apply one file operation to ``path`` inside the tree at ``root``."""
    file_path = resolve_path(root, path)
    kind = operation.kind

    if kind is FileOperationKind.REMOVE:
        os.remove(file_path)
    elif kind is FileOperationKind.MOVE:
        os.rename(file_path, resolve_path(root, operation.arg))
    elif kind is FileOperationKind.COPY:
        dst_path = resolve_path(root, operation.arg)
        shutil.copyfile(file_path, dst_path)
        shutil.copymode(file_path, dst_path)
    elif kind is FileOperationKind.LINK:
        os.symlink(file_path, resolve_path(root, operation.arg))
    elif kind is FileOperationKind.PATCH:
        content = fetch_resource_uri(operation.arg)
        _run_with_input(["patch", "-Nt", "-r-", str(file_path)], content, "patch")
    elif kind is FileOperationKind.BINARY_PATCH:
        content = fetch_resource_uri(operation.arg)
        _run_with_input(
            ["xdelta3", "-d", "-f", "-s", str(file_path), "/dev/stdin", str(file_path)],
            content,
            "binary patch",
        )
    elif kind is FileOperationKind.OVERWRITE:
        file_path.write_bytes(fetch_resource_uri(operation.arg))
    elif kind is FileOperationKind.ADD:
        content = fetch_resource_uri(operation.arg)
        with open(file_path, "xb") as handle:
            handle.write(content)
    elif kind is FileOperationKind.CHMOD:
        os.chmod(file_path, operation.arg)
    elif kind is FileOperationKind.MKDIR:
        os.makedirs(file_path, exist_ok=True)
    else:
        raise ReconstructError(
            f"File operation '{kind.value}' is not supported when reconstructing a package"
        )


def apply_script_action(
    root: PathLike,
    file: str,
    content: Optional[str],
    action: ActionType,
    installed_name: Optional[str] = None,
) -> None:
    """Replace, append to or remove a control script under ``root/DEBIAN``."""
    filename = f"{installed_name}.{file}" if installed_name is not None else file
    file_path = resolve_path(Path(root) / "DEBIAN", filename)

    if action is ActionType.REMOVE:
        os.remove(file_path)
    elif action is ActionType.APPEND:
        if content is not None:
            with open(file_path, "ab") as handle:
                handle.write(content.encode("utf-8"))
    else:
        if content is None:
            raise ReconstructError("Missing content for replace action")
        file_path.write_bytes(content.encode("utf-8"))


def apply_actions_for_reconstruct(deb_path: PathLike, actions: Iterable) -> Path:
    """Unpack the package, apply ``actions`` and repack it; return the new package path."""
    deb_path = Path(deb_path)
    with tempfile.TemporaryDirectory(dir=deb_path.parent) as tmp:
        tmp_root = Path(tmp)
        result = subprocess.run(["dpkg-deb", "-R", str(deb_path), str(tmp_root)], check=False)
        if result.returncode != 0:
            raise ReconstructError(f"Failed to extract package: exit status {result.returncode}")

        control_file_path = tmp_root / "DEBIAN" / "control"
        control = Deb822.from_file(control_file_path)

        for action in actions:
            if isinstance(action, StepAction):
                continue
            if isinstance(action, PatchField):
                for paragraph in control.paragraphs():
                    apply_field_patch(action, paragraph)
            elif isinstance(action, DropControlData):
                control = Deb822()
            elif isinstance(action, PutControlChunk):
                control = Deb822.parse(action.data)
            elif isinstance(action, PatchScript):
                apply_script_action(tmp_root, action.file, action.content, action.action, None)
            elif isinstance(action, PatchFile):
                apply_file_operation(tmp_root, action.path, action.operation)
            else:
                raise TypeError(f"unknown action: {action!r}")

        control_file_path.write_text(str(control), encoding="utf-8")
        new_deb_path = deb_path.with_suffix(".repacked.deb")
        result = subprocess.run(["dpkg-deb", "-b", str(tmp_root), str(new_deb_path)], check=False)
        if result.returncode != 0:
            raise ReconstructError(f"Failed to repack package: exit status {result.returncode}")

    return new_deb_path