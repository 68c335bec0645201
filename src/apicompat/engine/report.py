"""Report model: per-package changes, aggregate flags, and text rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from apicompat import semver
from apicompat.engine._types import Change
from apicompat.engine.policy import VersionPolicy

if TYPE_CHECKING:
    from apicompat.schema import ReportOutput


@dataclass
class PackageReport:
    """Changes and load errors for one package path."""

    path: str
    changes: list[Change] = field(default_factory=list)
    old_errors: list[str] = field(default_factory=list)
    new_errors: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.changes or self.old_errors or self.new_errors)

    @property
    def incompatible(self) -> list[Change]:
        return [c for c in self.changes if not c.compatible]

    @property
    def compatible(self) -> list[Change]:
        return [c for c in self.changes if c.compatible]

    def text(self) -> str:
        """Render the package block, or ``""`` when there is nothing to show."""
        if self.empty:
            return ""
        lines = [self.path, "-" * len(self.path)]
        for title, errors in (
            ("errors in old version:", self.old_errors),
            ("errors in new version:", self.new_errors),
        ):
            if errors:
                lines.append(title)
                lines.extend(f"\t{e}" for e in errors)
                lines.append("")
        if self.changes:
            groups = []
            for title, changes in (
                ("Incompatible changes:", self.incompatible),
                ("Compatible changes:", self.compatible),
            ):
                if changes:
                    groups.append("\n".join([title, *(f"- {c.message}" for c in changes)]))
            lines.append("\n\n".join(groups))
            lines.append("")
        return "\n".join(lines) + "\n"


@dataclass
class Report:
    """All package reports of one comparison plus the aggregate flags.

    The flags are only ever updated by :meth:`add_package`.
    """

    module_path: str
    base_version: str = ""
    release_version: str = ""
    tag_prefix: str = ""
    packages: list[PackageReport] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)
    has_compatible_changes: bool = False
    has_incompatible_changes: bool = False
    has_errors: bool = False

    def add_package(self, pr: PackageReport) -> None:
        self.packages.append(pr)
        for c in pr.changes:
            if c.compatible:
                self.has_compatible_changes = True
            else:
                self.has_incompatible_changes = True
        if pr.old_errors or pr.new_errors:
            self.has_errors = True

    @property
    def policy(self) -> VersionPolicy:
        return VersionPolicy(self.module_path, self.base_version, self.release_version)

    def validation_message(self) -> str | None:
        """Return why the release version is invalid, or None if it is valid."""
        violation = self.policy.validate(
            has_compatible=self.has_compatible_changes,
            has_incompatible=self.has_incompatible_changes,
            has_errors=self.has_errors,
        )
        return violation.message if violation is not None else None

    def suggested_version(self) -> str:
        return self.policy.suggest(
            has_compatible=self.has_compatible_changes,
            has_incompatible=self.has_incompatible_changes,
        )

    def is_successful(self) -> bool:
        if self.has_errors or self.diagnostics:
            return False
        return self.policy.is_acceptable(
            has_compatible=self.has_compatible_changes,
            has_incompatible=self.has_incompatible_changes,
        )

    def _with_tag(self, version: str) -> str:
        if not self.tag_prefix:
            return version
        return f"{version} (with tag {self.tag_prefix}{version})"

    def summary(self) -> str:
        if self.diagnostics:
            return "\n".join(self.diagnostics)
        if self.release_version:
            message = self.validation_message()
            if message is not None:
                return message
            return f"{self._with_tag(self.release_version)} is a valid semantic version for this release."
        if self.has_errors:
            return "Errors were detected, so no version will be suggested."
        if not self.base_version:
            return "No base version; no version will be suggested."
        suggested = self.suggested_version()
        if self.has_incompatible_changes and semver.major(self.base_version) != "v0":
            return (
                "Incompatible changes detected, so no version will be suggested.\n"
                f"Use --version={suggested} to verify a new major version.\n"
                "Avoid creating new major versions if possible though."
            )
        return f"Suggested version: {self._with_tag(suggested)}"

    def text(self) -> str:
        """Render every non-empty package block followed by the summary."""
        return "".join(p.text() for p in self.packages) + self.summary() + "\n"

    def to_output(self) -> ReportOutput:
        from apicompat.schema import ChangeOut, PackageReportOut, ReportOutput, VersionVerdict

        verdict = VersionVerdict(
            mode=self.policy.mode,
            base_version=self.base_version or None,
            release_version=self.release_version or None,
            suggested_version=(self.suggested_version() or None) if not self.release_version else None,
            tag_prefix=self.tag_prefix,
            valid=self.is_successful(),
            message=self.summary(),
        )
        return ReportOutput(
            module_path=self.module_path,
            packages=[
                PackageReportOut(
                    path=p.path,
                    old_errors=p.old_errors,
                    new_errors=p.new_errors,
                    changes=[
                        ChangeOut(message=c.message, compatible=c.compatible, path=c.path)
                        for c in p.changes
                    ],
                )
                for p in self.packages
                if not p.empty
            ],
            diagnostics=self.diagnostics,
            has_compatible_changes=self.has_compatible_changes,
            has_incompatible_changes=self.has_incompatible_changes,
            has_errors=self.has_errors,
            verdict=verdict,
        )
