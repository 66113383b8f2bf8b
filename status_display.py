#!/usr/bin/env python3
"""
Console status output for Linear Kanban Metrics
Wraps a rich console so that status messages go to stderr and reports stay clean on stdout
"""

from typing import Optional

from rich.console import Console
from rich.live import Live
from rich.text import Text


class StatusDisplay:
    """Handle status updates with rich UI, honouring debug and quiet modes"""

    def __init__(self, debug: bool = False, quiet: bool = False, console: Optional[Console] = None):
        self.debug_mode = debug
        self.quiet = quiet
        self.console = console or Console(stderr=True)
        self.live = None
        self.current_status = ""

    @classmethod
    def from_config(cls, config) -> 'StatusDisplay':
        """Create a display from a MetricsConfig"""
        return cls(debug=config.debug, quiet=config.quiet)

    def start(self, initial_message: str = "Starting..."):
        """Start the live status line (only on an interactive terminal)"""
        if self.quiet:
            return
        self.current_status = initial_message
        if self.console.is_terminal:
            text = Text(initial_message, style="cyan")
            self.live = Live(text, console=self.console, refresh_per_second=4)
            self.live.start()

    def update(self, message: str, style: str = "cyan"):
        """Update the live status message"""
        self.current_status = message
        if self.live:
            self.live.update(Text(message, style=style))

    def stop(self, final_message: str = None):
        """Stop the live status line"""
        if self.live:
            self.live.stop()
            self.live = None
        self.current_status = ""
        if final_message and not self.quiet:
            self.console.print(final_message)

    def print(self, message: str, style: str = None):
        """Print a message without disrupting the live status line"""
        if self.live:
            self.live.console.print(message, style=style, markup=False, highlight=False)
        else:
            self.console.print(message, style=style, markup=False, highlight=False)

    def info(self, message: str, style: str = None):
        """Print unless quiet mode is on"""
        if self.debug_mode or not self.quiet:
            self.print(message, style=style)

    def debug(self, message: str):
        """Print only in debug mode"""
        if self.debug_mode:
            self.print(message, style="dim")

    def warning(self, message: str):
        """Always print, highlighted"""
        self.print(f"⚠️  {message}", style="yellow")

    def error(self, message: str):
        """Always print, in red"""
        self.print(f"❌ {message}", style="red")
