"""``gravyload init``: write a sample config file."""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console

from gravyload._internal.config import DEFAULT_TOKEN_PATH

console = Console(stderr=True)

SAMPLE_CONFIG = {
    "baseUrl": "https://dev.api.sportsgravy.com",
    "users": [
        {"email": "loadtest@mailinator.com", "password": "change-me"},
    ],
    "vus": 1,
    "duration": "5m",
    "thresholds": {
        "http_req_duration": ["p(95)<5000"],
        "errors": ["rate<0.01"],
    },
    "tokenPath": DEFAULT_TOKEN_PATH,
    "timeout": 30,
    "projectID": "",
}


def init_cmd(
    path: Path = typer.Argument(
        Path("config.json"),
        help="Where to write the config file.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Overwrite an existing file.",
    ),
) -> None:
    """Write a sample config file to edit before the first run."""
    if path.exists() and not force:
        console.print(f"[red]File already exists:[/red] {path}")
        raise typer.Exit(code=1)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(SAMPLE_CONFIG, indent=2) + "\n", encoding="utf-8")
    console.print(f"[green]Created config:[/green] {path}")
    console.print("Add your users, then run: gravyload run combined --config " + str(path))
