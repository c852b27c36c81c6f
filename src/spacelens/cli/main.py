"""Main CLI application."""
import typer

from spacelens.cli.points import points
from spacelens.cli.cluster import cluster

app = typer.Typer(
    name="spacelens",
    help="Level-of-detail aggregation and density grouping for entity point clouds.",
    add_completion=False,
)

app.command()(points)
app.command()(cluster)


if __name__ == "__main__":
    app()
