"""JSON manifest schema: one conversion described as data, for the CLI."""

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path

from clipwizard.models import TrimRange
from clipwizard.resolver import Selections

_SELECTION_FIELDS = {f.name for f in fields(Selections)} - {"input_path", "trim", "output_dir", "output_filename"}


@dataclass
class ConversionManifest:
    """Top-level conversion manifest."""

    input: Path
    output_dir: str = ""
    output_filename: str | None = None
    version: str = "1"
    selections: dict | None = None
    trim: TrimRange | None = None

    def to_selections(self, defaults: Selections) -> Selections:
        """Overlay this manifest on *defaults* (usually ``default_selections``)."""
        overrides = dict(self.selections or {})
        if self.output_dir:
            overrides["output_dir"] = self.output_dir
        if self.output_filename:
            overrides["output_filename"] = self.output_filename
        if self.trim is not None:
            overrides["trim"] = self.trim
        return replace(defaults, **overrides)


def load_manifest(path: str | Path) -> ConversionManifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "input" not in data:
        raise ValueError("Manifest must contain an 'input' field")

    selections = data.get("selections", {})
    unknown = set(selections) - _SELECTION_FIELDS
    if unknown:
        raise ValueError(f"Unknown selection fields: {', '.join(sorted(unknown))}")

    trim = None
    if "trim" in data:
        t = data["trim"]
        if "start_ms" not in t or "end_ms" not in t:
            raise ValueError("Manifest trim needs 'start_ms' and 'end_ms'")
        trim = TrimRange(int(t["start_ms"]), int(t["end_ms"]))

    return ConversionManifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output_dir=data.get("output_dir", ""),
        output_filename=data.get("output_filename"),
        selections=selections,
        trim=trim,
    )
