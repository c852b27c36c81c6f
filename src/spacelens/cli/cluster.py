"""Cluster command - Run density grouping on a point set."""
import json
from pathlib import Path
from typing import List, Optional, Tuple
from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from spacelens.config import settings
from spacelens.cli.io import load_points
from spacelens.clustering.dbscan import DBSCANClusterer
from spacelens.core.exceptions import DataLoadError
from spacelens.core.models import GroupingConfig, GroupingPrinciple
from spacelens.utils.logger import logger

console = Console()


def cluster(
    points_file: Path = typer.Argument(
        ...,
        help="Points JSON file from the points step",
    ),
    principle: GroupingPrinciple = typer.Option(
        GroupingPrinciple.PROXIMITY,
        "--principle", "-p",
        help="Feature space: proximity, efficiency or behavior",
    ),
    feature_fields: Optional[List[str]] = typer.Option(
        None,
        "--field", "-f",
        help="Metric (efficiency) or text (behavior) field, up to 3",
    ),
    detail: float = typer.Option(
        settings.GROUPING_DETAIL,
        "--detail", "-d",
        min=0.0, max=1.0,
        help="0 = many small groups, 1 = few large groups",
    ),
    weights: Optional[Tuple[float, float, float]] = typer.Option(
        None,
        "--weights",
        help="Custom X Y Z distance weights (proximity only)",
    ),
    min_cluster_size: int = typer.Option(
        settings.MIN_CLUSTER_SIZE,
        "--min-cluster-size",
        min=1,
        help="Clusters smaller than this are reported as noise",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Output JSON file (default: clusters_<points file>.json)",
    ),
) -> Path:
    """Group points with grid-accelerated DBSCAN."""
    console.print("[bold blue]SpaceLens[/bold blue] - Clustering")
    console.print()

    if not points_file.exists():
        console.print(f"[red]Error:[/red] Points file not found: {points_file}")
        raise typer.Exit(1)

    feature_fields = feature_fields or []
    if len(feature_fields) > 3:
        console.print("[red]Error:[/red] At most 3 feature fields are supported")
        raise typer.Exit(1)

    try:
        space_points = load_points(points_file)
    except DataLoadError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Loaded {len(space_points)} points[/green]")

    custom = weights is not None and all(w is not None for w in weights)
    w_x, w_y, w_z = weights if custom else (1.0, 1.0, 1.0)

    config = GroupingConfig(
        principle=principle,
        feature_fields=feature_fields,
        detail=detail,
        custom_weights=custom,
        w_x=w_x,
        w_y=w_y,
        w_z=w_z,
        min_cluster_size=min_cluster_size,
    )
    logger.info("Starting clustering", points=str(points_file), principle=principle.value, detail=detail)

    clusterer = DBSCANClusterer.from_config(config)
    assignments, stats = clusterer.cluster_points(space_points, config)

    table = Table(title="Clustering Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("eps", f"{clusterer.params.eps:.3f}")
    table.add_row("minPts", str(clusterer.params.min_pts))
    table.add_row("Total clusters", str(stats.num_clusters))
    table.add_row("Noise points", str(stats.num_noise_points))
    table.add_row("Noise fraction", f"{stats.noise_fraction:.1%}")
    table.add_row("Average cluster size", f"{stats.avg_cluster_size:.1f}")
    table.add_row("Largest cluster", str(stats.largest_cluster_size))
    table.add_row("Smallest cluster", str(stats.smallest_cluster_size))
    console.print(table)

    if output is None:
        output = points_file.with_name(f"clusters_{points_file.stem}.json")
    output.parent.mkdir(parents=True, exist_ok=True)

    output_data = {
        "config": config.model_dump(mode="json"),
        "eps": clusterer.params.eps,
        "min_pts": clusterer.params.min_pts,
        "labels": [a.cluster_id for a in assignments],
        "assignments": [a.model_dump(mode="json") for a in assignments],
        "total_clusters": stats.num_clusters,
        "noise_points": stats.num_noise_points,
        "cluster_sizes": stats.cluster_sizes,
        "source_points_file": str(points_file),
        "created_at": datetime.now().isoformat(),
    }
    with open(output, "w") as f:
        json.dump(output_data, f, indent=2, default=str)

    console.print(f"[green]Clustering complete![/green] Saved to: {output}")
    logger.info("Clustering complete", output=str(output), num_clusters=stats.num_clusters)
    return output
