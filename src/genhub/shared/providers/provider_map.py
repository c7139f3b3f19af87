"""Provider map documentation: JSON export and a Markdown rendering."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson

from genhub.shared.providers.registry import ProviderRegistry


def build_provider_map(registry: ProviderRegistry, *, generated_at: datetime | None = None) -> dict[str, Any]:
    return {
        "generated_at": (generated_at or datetime.now(timezone.utc)).isoformat(),
        "model_constants": registry.model_constants(),
        "capabilities": registry.export(),
    }


def render_markdown(data: dict[str, Any]) -> str:
    lines = [
        "# AI Provider Map (Generated)",
        "",
        f"Generated at: {data['generated_at']}",
        "",
        "## Model Constants",
        "",
    ]
    lines += [f"- {name}: `{value}`" for name, value in data["model_constants"].items()]
    lines.append("")

    for entry in data["capabilities"]:
        lines += [f"## {entry['capability']}", ""]
        for p in entry["providers"]:
            state = "implemented" if p["implemented"] else "not implemented"
            lines.append(f"- {p['priority']}. {p['name']} ({state}) model=`{p['model']}`")
        lines.append("")
    return "\n".join(lines)


def write_provider_map(registry: ProviderRegistry, out_dir: Path) -> tuple[Path, Path]:
    """Write ``ai-provider-map.generated.{json,md}`` into ``out_dir``."""
    data = build_provider_map(registry)
    out_dir.mkdir(parents=True, exist_ok=True)
    json_path = out_dir / "ai-provider-map.generated.json"
    md_path = out_dir / "ai-provider-map.generated.md"
    json_path.write_bytes(orjson.dumps(data, option=orjson.OPT_INDENT_2))
    md_path.write_text(render_markdown(data), encoding="utf-8")
    return json_path, md_path
