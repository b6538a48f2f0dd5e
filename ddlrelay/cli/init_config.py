"""Config template initialization command."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from ddlrelay.config.loader import DEFAULT_FILENAMES

console = Console()

TEMPLATE_PATH = Path(__file__).resolve().parents[1] / "templates" / "ddlrelay.yaml"


def init_config_command(path: str = ".", force: bool = False) -> Path:
    """Create ddlrelay.yaml from the packaged template."""
    if not TEMPLATE_PATH.exists():
        raise FileNotFoundError(f"Template not found: {TEMPLATE_PATH}")

    target_dir = Path(path).resolve()
    target_dir.mkdir(parents=True, exist_ok=True)
    output_path = target_dir / DEFAULT_FILENAMES[0]
    if output_path.exists() and not force:
        raise FileExistsError(f"Config already exists: {output_path}")
    output_path.write_text(TEMPLATE_PATH.read_text(encoding="utf-8"), encoding="utf-8")
    console.print(f"[green]Created[/green] {output_path}")
    return output_path
