"""Terminal reporting for plans, outcomes and errors.

Read-only: formats what the plan and receipt already know, never decides.
"""

from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.tree import Tree

from provisionkit.actions.errors import ActionError, MultipleErrors
from provisionkit.plan import FailedRevertsError, InstallPlan
from provisionkit.receipt import Receipt, RevertFailedError


def _error_label(error: BaseException) -> Text:
    if isinstance(error, ActionError):
        label = Text(f"{error.tag}: ", style="bold")
        if isinstance(error.kind, MultipleErrors):
            label.append(f"{len(error.kind.errors)} errors")
        else:
            label.append(str(error.kind))
        return label
    return Text(str(error))


def _add_error(tree: Tree, error: BaseException) -> None:
    node = tree.add(_error_label(error))
    if isinstance(error, ActionError) and isinstance(error.kind, MultipleErrors):
        for sub in error.kind.errors:
            node.add(Text(str(sub)))


def error_tree(error: BaseException) -> Tree:
    """Render an error and everything aggregated inside it."""
    if isinstance(error, FailedRevertsError):
        tree = Tree(Text("Install failed and could not be fully rolled back", style="bold red"))
        _add_error(tree, error.original)
        reverts = tree.add(Text("Rollback failures", style="yellow"))
        for revert_error in error.revert_errors:
            _add_error(reverts, revert_error)
        return tree

    if isinstance(error, RevertFailedError):
        tree = Tree(Text("Revert failed", style="bold red"))
        for revert_error in error.errors:
            _add_error(tree, revert_error)
        return tree

    tree = Tree(Text("Error", style="bold red"))
    _add_error(tree, error)
    return tree


class PlanReporter:
    """Print plans and their results with rich."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def report_plan(self, plan: InstallPlan, explain: bool | None = None) -> None:
        text = plan.describe_execute(explain)
        if not text:
            self.console.print("[green]Nothing to do.[/]")
            return
        self.console.print(Panel(Text(text), title="Install plan", style="cyan"))

    def report_revert_plan(self, receipt: Receipt, explain: bool | None = None) -> None:
        text = receipt.describe_revert(explain)
        if not text:
            self.console.print("[green]Nothing to revert.[/]")
            return
        self.console.print(Panel(Text(text), title="Revert plan", style="yellow"))

    def report_outcome(self, plan: InstallPlan) -> None:
        """One line per action: done, reverted, revert failed, failed or not run."""
        for index, stateful in enumerate(plan.actions):
            synopsis = stateful.action.tracing_synopsis()
            rolled_back = plan.failed_index is not None and index < plan.failed_index
            if index == plan.failed_index:
                self.console.print(f"   [red][bold]FAILED:[/] {synopsis}[/]")
            elif stateful.completed and rolled_back:
                # Rollback could not undo it; it is still in the partial receipt
                self.console.print(f"   [red][bold]REVERT FAILED:[/] {synopsis}[/]")
            elif stateful.completed:
                self.console.print(f"   [green][bold]DONE:[/] {synopsis}[/]")
            elif rolled_back:
                self.console.print(f"   [yellow][bold]REVERTED:[/] {synopsis}[/]")
            else:
                self.console.print(f"   [dim]NOT RUN: {synopsis}[/]")

    def report_error(self, error: BaseException) -> None:
        self.console.print(error_tree(error))
