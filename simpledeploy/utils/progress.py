"""
Upload progress bar
"""
import os

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    ProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.text import Text

from .logging import is_verbose

BAR_WIDTH = 28


class CharBarColumn(ProgressColumn):
    """Bar drawn from fixed characters, for the koala bar and non-unicode consoles."""

    def __init__(self, bar_char: str, empty_char: str, progress_char: str = "",
                 width: int = BAR_WIDTH):
        super().__init__()
        self.bar_char = bar_char
        self.empty_char = empty_char
        self.progress_char = progress_char
        self.width = width

    def bar(self, ratio: float) -> str:
        done = int(ratio * self.width)
        if done >= self.width:
            return self.bar_char * self.width
        head = self.progress_char
        fill = self.bar_char * done + head
        return fill + self.empty_char * max(self.width - done - (1 if head else 0), 0)

    def render(self, task) -> Text:
        ratio = task.completed / task.total if task.total else 0.0
        return Text(f"[{self.bar(min(ratio, 1.0))}]")


def _bar_column(cinereus: bool) -> ProgressColumn:
    unix = os.sep == "/"
    if unix and cinereus:
        return CharBarColumn(".", " ", "🐨")
    if unix:
        return BarColumn(bar_width=BAR_WIDTH)
    return CharBarColumn("=", "-", ">")


class UploadProgress:
    """
    Progress bar for the upload stage, drawn with rich.

    Normal:   ━━━━━━━━━━━━━━────────────── 50% 0:00:12 (Uploading app/)
    Verbose:  120/240 ━━━━━━━━━━━━━━────────────── 50% 0:00:12 0:00:12 (Uploading app/)

    *stream* replaces the terminal (tests hand in a StringIO). A stream that
    is not a terminal only receives the final state of the bar.
    """

    def __init__(self, stream=None, cinereus: bool = False):
        self.console = Console(file=stream) if stream is not None else Console()
        self.cinereus = cinereus
        self.max = 0
        self._progress = None
        self._task = None

    def _columns(self) -> list:
        columns = [
            _bar_column(self.cinereus),
            TextColumn("{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
        ]
        if is_verbose():
            columns.insert(0, MofNCompleteColumn())
            columns.append(TimeRemainingColumn())
        columns.append(TextColumn("({task.fields[message]} {task.fields[filename]})", markup=False))
        return columns

    def start(self, total: int):
        self.max = total
        self._progress = Progress(*self._columns(), console=self.console)
        self._task = self._progress.add_task("upload", total=total, message="", filename="")
        self._progress.start()

    def advance(self, message: str = "", filename: str = ""):
        self._progress.update(self._task, advance=1, message=message, filename=filename)

    def finish(self):
        self._progress.update(self._task, completed=self.max,
                              message="Finished", filename="transfer")
        self._progress.stop()
        self.console.print()

    def stop(self):
        """Take the bar down without completing it (safe to call twice)."""
        if self._progress is not None:
            self._progress.stop()
