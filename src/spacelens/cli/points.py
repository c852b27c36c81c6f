"""Points command - Build the aggregated point set from raw rows."""
import json
from pathlib import Path
from typing import List, Optional
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from spacelens.config import settings
from spacelens.cli.io import load_fields, load_records
from spacelens.core.exceptions import DataLoadError
from spacelens.core.models import point_list_adapter
from spacelens.geometry.bbox import build_bbox, pad_bbox
from spacelens.pipeline import build_points
from spacelens.utils.logger import logger

console = Console()


def points(
    rows_file: Path = typer.Argument(
        ...,
        help="Rows as JSON list, {\"rows\": [...]} or JSONL",
    ),
    entity_fields: Optional[List[str]] = typer.Option(
        None,
        "--entity-field", "-e",
        help="Entity field to group rows by (repeatable)",
    ),
    axis_x: str = typer.Option(settings.DEFAULT_AXES[0], "--x", help="Metric for the X axis"),
    axis_y: str = typer.Option(settings.DEFAULT_AXES[1], "--y", help="Metric for the Y axis"),
    axis_z: str = typer.Option(settings.DEFAULT_AXES[2], "--z", help="Metric for the Z axis"),
    fields_file: Optional[Path] = typer.Option(
        None,
        "--fields",
        help="Field metadata JSON (code/name/kind/roles)",
    ),
    detail: float = typer.Option(
        settings.LOD_DETAIL,
        "--detail", "-d",
        min=0.0, max=1.0,
        help="Level of detail: 0 keeps every point, 1 merges each group into one",
    ),
    min_count: int = typer.Option(
        settings.LOD_MIN_COUNT,
        "--min-count",
        min=1,
        help="Cell occupancy that triggers merging mid-range",
    ),
    lod: bool = typer.Option(
        settings.LOD_ENABLED,
        "--lod/--no-lod",
        help="Apply voxel level-of-detail aggregation",
    ),
    search: Optional[str] = typer.Option(
        None,
        "--search", "-s",
        help="Keep entities whose label contains this text",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Output JSON file (default: points_<rows file>.json)",
    ),
) -> Path:
    """Group rows into entity points and apply level-of-detail aggregation."""
    console.print("[bold blue]SpaceLens[/bold blue] - Points")
    console.print()

    if not rows_file.exists():
        console.print(f"[red]Error:[/red] Rows file not found: {rows_file}")
        raise typer.Exit(1)

    entity_fields = entity_fields or [settings.DEFAULT_ENTITY_FIELD]

    try:
        rows = load_records(rows_file, "rows")
        fields = load_fields(fields_file) if fields_file else None
    except DataLoadError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Loaded {len(rows)} rows[/green]")
    logger.info("Building points", rows=str(rows_file), entity_fields=entity_fields, detail=detail)

    result = build_points(
        rows,
        entity_fields,
        axis_x,
        axis_y,
        axis_z,
        fields=fields,
        search=search,
        lod_enabled=lod,
        lod_detail=detail,
        lod_min_count=min_count,
    )

    clusters = [p for p in result if p.is_cluster]
    table = Table(title="Point Set")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Output points", str(len(result)))
    table.add_row("Cluster points", str(len(clusters)))
    table.add_row("Merged entities", str(sum(p.cluster_count for p in clusters)))
    table.add_row("Source groups", str(len({p.source_field for p in result})))
    console.print(table)

    if output is None:
        output = rows_file.with_name(f"points_{rows_file.stem}.json")
    output.parent.mkdir(parents=True, exist_ok=True)

    output_data = {
        "points": point_list_adapter.dump_python(result, mode="json"),
        "bbox": pad_bbox(build_bbox(result)).model_dump(),
        "axes": {"x": axis_x, "y": axis_y, "z": axis_z},
        "detail": detail if lod else None,
        "source_rows_file": str(rows_file),
        "created_at": datetime.now().isoformat(),
    }
    with open(output, "w") as f:
        json.dump(output_data, f, indent=2, default=str)

    console.print(f"[green]Saved points to: {output}[/green]")
    logger.info("Points complete", output=str(output), points=len(result))
    return output
