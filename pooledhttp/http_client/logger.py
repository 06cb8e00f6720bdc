import logging
import time
from typing import Optional

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

# Configure Custom Trace Theme
custom_theme = Theme({
    "step": "bold cyan",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "subtle": "dim white",
    "key": "bold blue",
    "value": "default"
})

console = Console(theme=custom_theme, stderr=True)

logger = logging.getLogger("pooledhttp.http_client")


class RequestTrace:
    """
    Renders one request's lifecycle as a panel with embedded stats.
    Used by HttpClient when debug mode is on. Styles are resolved from
    custom_theme directly, so any Console can be passed as `out`.
    """
    def __init__(self, method: str, url: str, out: Optional[Console] = None):
        self.method = method
        self.url = url
        self.out = out or console
        self._start_time = time.monotonic()

    def elapsed(self) -> str:
        return f"{time.monotonic() - self._start_time:.4f}s"

    def render(self, title: str, details: dict = None, style: str = "step", subtitle: str = ""):
        items = [Text(title, style="bold")]

        grid = Table.grid(padding=(0, 2))
        grid.add_column(style=custom_theme.styles["key"], justify="right")
        grid.add_column(style=custom_theme.styles["value"], justify="left")
        grid.add_row("URL:", Text(self.url))
        for k, v in (details or {}).items():
            grid.add_row(f"{k}:", Text(str(v)))
        grid.add_row("Elapsed:", self.elapsed())

        items.append(Text("──────", style="dim"))
        items.append(grid)

        self.out.print(Panel(
            Group(*items),
            style=custom_theme.styles[style],
            subtitle=Text(subtitle) if subtitle else None,
            expand=False,
            padding=(0, 2)
        ))

    def success(self, status: int, size: int, encoding: str = ""):
        details = {"Status": status, "Bytes": size}
        if encoding:
            details["Encoding"] = encoding
        self.render(f"{self.method} (OK)", details, style="success", subtitle="[Done]")

    def swallowed(self, status: int):
        self.render(f"{self.method} (Server Error)", {"Status": status}, style="warning", subtitle="[Empty]")

    def failure(self, error: Exception):
        self.render(f"{self.method} (Failed)", {"Error": f"{type(error).__name__}: {error}"},
                    style="error", subtitle="[Error]")
