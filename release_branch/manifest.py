"""Package manifest (package.json) reading, validation and writing.

The raw JSON object is kept alongside the validated model so that writing
a new version back only touches the "version" field and preserves every
other key (scripts, repository, etc.) in its existing order.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StringConstraints,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from .errors import ManifestFieldError, ManifestReadError
from .versions import is_valid_version

MANIFEST_FILE_NAME = "package.json"

NonEmptyStr = Annotated[str, StringConstraints(strict=True, min_length=1)]
DependencyMap = dict[NonEmptyStr, NonEmptyStr]

DEPENDENCY_FIELDS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
    "bundledDependencies",
)

_FAILURE_REASONS = {
    "name": "must be a non-empty string",
    "version": "must be a valid SemVer version string",
    "workspaces": "must be an array of non-empty strings (if present)",
    "private": "must be true or false (if present)",
    **{
        field: "must be an object with non-empty string keys and non-empty string values"
        for field in DEPENDENCY_FIELDS
    },
}


class PackageManifest(BaseModel):
    """Validated subset of a package.json.

    Field names follow Python conventions; aliases match the JSON keys.
    Validate with context={"strict_version": True} to require a SemVer
    version (workspace packages); without it any non-empty string passes
    (root package).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    name: NonEmptyStr
    version: NonEmptyStr
    private: StrictBool = False
    workspaces: list[NonEmptyStr] = Field(default_factory=list)
    dependencies: DependencyMap = Field(default_factory=dict)
    dev_dependencies: DependencyMap = Field(default_factory=dict, alias="devDependencies")
    peer_dependencies: DependencyMap = Field(
        default_factory=dict, alias="peerDependencies"
    )
    optional_dependencies: DependencyMap = Field(
        default_factory=dict, alias="optionalDependencies"
    )
    bundled_dependencies: DependencyMap = Field(
        default_factory=dict, alias="bundledDependencies"
    )

    @field_validator("version")
    @classmethod
    def _check_semver(cls, value: str, info: ValidationInfo) -> str:
        strict = bool(info.context and info.context.get("strict_version"))
        if strict and not is_valid_version(value):
            raise ValueError("not a valid SemVer version")
        return value


def _json_key(loc_head: object) -> str:
    """Map a pydantic error location back to the package.json key."""
    key = str(loc_head)
    field = PackageManifest.model_fields.get(key)
    if field is not None and field.alias:
        return field.alias
    return key


def validate_manifest(
    raw: dict[str, Any], directory: Path, *, strict_version: bool
) -> PackageManifest:
    """Validate a parsed package.json.

    Args:
        raw: The JSON object read from disk.
        directory: Directory holding the manifest, used in error messages
                   when the package name itself is unusable.
        strict_version: Require "version" to be a valid SemVer string.

    Raises:
        ManifestFieldError: Naming the first offending field.
    """
    try:
        return PackageManifest.model_validate(
            raw, context={"strict_version": strict_version}
        )
    except ValidationError as exc:
        error = exc.errors()[0]
        field = _json_key(error["loc"][0]) if error["loc"] else "name"
        name = raw.get("name")
        by_name = isinstance(name, str) and bool(name)
        raise ManifestFieldError(
            field,
            name if by_name else str(directory),
            raw.get(field),
            _FAILURE_REASONS.get(field, "is invalid"),
            by_name=by_name,
        ) from None


def read_json_object(path: Path) -> dict[str, Any]:
    """Read a JSON file that must contain an object.

    Raises:
        ManifestReadError: If the file is missing, unparseable, or not an
                           object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ManifestReadError(f"Could not find {path}", path) from None
    except json.JSONDecodeError as exc:
        raise ManifestReadError(f"Could not parse {path}: {exc}", path) from None
    if not isinstance(data, dict):
        raise ManifestReadError(f"{path} does not contain a JSON object", path)
    return data


def write_json_object(path: Path, data: dict[str, Any]) -> None:
    """Write a JSON object with two-space indentation and a trailing newline."""
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def read_manifest(
    directory: Path, *, strict_version: bool
) -> tuple[dict[str, Any], PackageManifest]:
    """Read and validate the package.json in a directory.

    Returns:
        Tuple of (raw JSON object, validated manifest).
    """
    raw = read_json_object(directory / MANIFEST_FILE_NAME)
    return raw, validate_manifest(raw, directory, strict_version=strict_version)


def write_manifest_version(path: Path, raw: dict[str, Any], new_version: str) -> None:
    """Write a manifest back with only its version replaced."""
    write_json_object(path, {**raw, "version": new_version})
