from __future__ import annotations

from typing import TYPE_CHECKING

from skills_supply.core.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from skills_supply.packages.types import ExtractedPackage


def validate_extracted_packages(packages: Sequence[ExtractedPackage]) -> None:
    """Check that every package yields skills and that install names are unique."""
    targets: dict[str, str] = {}
    for package in packages:
        prefix = package.prefix.strip()
        if not prefix:
            raise ValidationError("Package alias must not be empty.")
        if not package.skills:
            raise ValidationError(f'Package "{prefix}" has no skills.')
        for skill in package.skills:
            target = f"{prefix}-{skill.name}"
            owner = targets.get(target)
            if owner is not None:
                raise ValidationError(
                    f'Skill name collision: "{target}" is provided by both "{owner}" and "{prefix}".'
                )
            targets[target] = prefix
