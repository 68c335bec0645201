"""apicompat output schema: Pydantic v2 models."""

from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel


class ChangeOut(BaseModel):
    """A single API change."""

    message: str
    compatible: bool
    path: str | None = None


class PackageReportOut(BaseModel):
    """Changes and load errors for one package."""

    path: str
    old_errors: list[str] = []
    new_errors: list[str] = []
    changes: list[ChangeOut] = []


class VersionVerdict(BaseModel):
    """Outcome of the version policy.

    ``mode`` is ``validate`` when a release version was proposed and
    ``suggest`` otherwise; ``suggested_version`` is only set in suggest mode.
    """

    mode: Literal["suggest", "validate"]
    base_version: str | None = None
    release_version: str | None = None
    suggested_version: str | None = None
    tag_prefix: str = ""
    valid: bool
    message: str


class ReportOutput(BaseModel):
    """Top-level apicompat output."""

    schema_version: str = "1.0"
    module_path: str
    packages: list[PackageReportOut] = []
    diagnostics: list[str] = []
    has_compatible_changes: bool = False
    has_incompatible_changes: bool = False
    has_errors: bool = False
    verdict: VersionVerdict


def export_json_schema() -> str:
    """Export the JSON schema as a string."""
    return json.dumps(ReportOutput.model_json_schema(), indent=2)
