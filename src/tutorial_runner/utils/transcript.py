"""Markdown walkthrough generated from a tutorial run.

The transcript lists every AWS command the run executed, in order, as
copy-pasteable CLI commands, followed by the values the tutorial produced and
the resources it created.
"""

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Final

from tutorial_runner.models.resources import StepRecord, TrackedResource

logger: Final = logging.getLogger(__name__)


def _format_output(value: Any) -> str:
    if isinstance(value, list | tuple):
        return ", ".join(str(item) for item in value)
    return str(value)


def render_transcript(
    title: str,
    description: str,
    steps: Iterable[StepRecord],
    resources: Iterable[TrackedResource] = (),
    outputs: Mapping[str, Any] | None = None,
) -> str:
    """Render a run as markdown.

    Args:
        title: Tutorial title.
        description: Tutorial description.
        steps: Recorded steps, in execution order.
        resources: Resources the run created.
        outputs: Named values produced by the run.

    Returns:
        Markdown document.
    """
    lines = [f"# {title}", "", description.strip(), "", "## Steps", ""]

    number = 0
    for step in steps:
        number += 1
        heading = step.description or f"{step.service} {step.operation}"
        status = "" if step.success else " (failed)"
        lines.append(f"{number}. {heading}{status}")
        lines.append("")
        lines.append("   ```bash")
        lines.append(f"   {step.command}")
        lines.append("   ```")
        if step.error:
            lines.append("")
            lines.append(f"   Error: {step.error}")
        lines.append("")

    if number == 0:
        lines.extend(["No AWS commands were run.", ""])

    if outputs:
        lines.extend(["## Outputs", ""])
        for key, value in outputs.items():
            lines.append(f"- **{key}**: `{_format_output(value)}`")
        lines.append("")

    resources = list(resources)
    if resources:
        lines.extend(["## Resources", ""])
        lines.append("| Type | Name | Identifier | Deleted |")
        lines.append("| --- | --- | --- | --- |")
        for resource in resources:
            deleted = "yes" if resource.deleted else "no"
            lines.append(
                f"| {resource.resource_type} | {resource.label} | "
                f"`{resource.identifier}` | {deleted} |"
            )
        lines.append("")

    return "\n".join(lines)


def write_transcript(
    path: str | Path,
    title: str,
    description: str,
    steps: Iterable[StepRecord],
    resources: Iterable[TrackedResource] = (),
    outputs: Mapping[str, Any] | None = None,
) -> Path:
    """Render a run and write it to a file, creating parent directories.

    Returns:
        Path of the written file.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        render_transcript(title, description, steps, resources, outputs), encoding="utf-8"
    )
    logger.info(f"Transcript written to {target}")
    return target
