"""Rich-based sync progress display."""

from __future__ import annotations

from types import TracebackType
from typing import ClassVar

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.progress import TaskID as RichTaskID

from tripsync.core.progress import SyncProgress


class RichSyncProgress(SyncProgress):
    """One Rich task per store, advanced as its subscriptions load.

    The trailing column names the subscriptions that have delivered so far::

        with RichSyncProgress() as progress:
            await client.wait_until_synced()
    """

    _STORE_COLORS: ClassVar[dict[str, str]] = {
        "User": "cyan",
        "Trip": "green",
        "Bills": "magenta",
    }

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(stderr=True)
        self._progress = Progress(
            SpinnerColumn(finished_text="[green]✓[/green]"),
            TextColumn("{task.description:>8}"),
            BarColumn(bar_width=20),
            MofNCompleteColumn(),
            TextColumn("[dim]{task.fields[streams]}"),
            TimeElapsedColumn(),
            console=self._console,
            transient=False,
        )
        self._task_ids: dict[str, RichTaskID] = {}
        self._loaded: dict[str, list[str]] = {}

    def __enter__(self) -> RichSyncProgress:
        self._progress.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._progress.stop()

    def loaded_streams(self, phase: str) -> list[str]:
        return list(self._loaded.get(phase, []))

    def phase_start(self, phase: str, total: int | None = None) -> None:
        color = self._STORE_COLORS.get(phase, "white")
        self._loaded[phase] = []
        # A store without subscriptions still shows as a single finished step.
        self._task_ids[phase] = self._progress.add_task(f"[{color}]{phase}[/]", total=total or 1, streams="")

    def item_done(self, phase: str, stream: str) -> None:
        task_id = self._task_ids.get(phase)
        if task_id is None:
            return
        self._loaded[phase].append(stream)
        self._progress.update(task_id, advance=1, streams=", ".join(self._loaded[phase]))

    def phase_done(self, phase: str) -> None:
        task_id = self._task_ids.get(phase)
        if task_id is None:
            return
        task = self._progress.tasks[task_id]
        self._progress.update(task_id, completed=task.total)

    def phase_error(self, phase: str, error: BaseException) -> None:
        task_id = self._task_ids.get(phase)
        if task_id is None:
            return
        self._progress.update(task_id, description=f"[red]{phase}[/]", streams=f"[red]{type(error).__name__}[/]")
