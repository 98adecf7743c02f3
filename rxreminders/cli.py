"""Command Line Interface for rx-reminders.

This module provides a Typer CLI around the reminder pipeline: generate
drafts from medical records, review and adjust them, commit them, and
manage the persisted reminders afterwards.

Security Impact:
    - Provider API keys come from the environment or .env, never from arguments
    - Inputs are validated (records, times, recurrences) before anything is persisted
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from rxreminders.domain.enums import AnalysisAdvisory, AnalysisStrategy, DoseStatus, Recurrence
from rxreminders.domain.models import CommitResult, ReminderDraft
from rxreminders.domain.ports import InvalidTransitionError, PersistenceStorePort
from rxreminders.domain.services import ReminderWorkflow, is_recognized
from rxreminders.infrastructure.logging_config import setup_logging
from rxreminders.infrastructure.settings import settings

# Initialize Typer app and Rich console
app = typer.Typer(
    name="rxreminders",
    help="Turn prescriptions into scheduled medication reminders",
    add_completion=False
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """rx-reminders command line."""
    setup_logging(use_json=settings.log_json, log_level="DEBUG" if verbose else settings.log_level)


def create_store_cli() -> PersistenceStorePort:
    """Create the reminder store (CLI wrapper)."""
    try:
        from rxreminders.main import create_reminder_store
        return create_reminder_store()
    except Exception as e:
        console.print(f"[red]✗[/red] Failed to open reminder store: {str(e)}")
        raise typer.Exit(code=1)


def parse_edit_option(value: str) -> tuple[str, str, Optional[Recurrence]]:
    """Parse "ID=HH:MM" or "ID=HH:MM/recurrence".

    Raises:
        typer.BadParameter: If the value is malformed
    """
    draft_id, sep, change = value.rpartition("=")
    if not sep or not draft_id or not change:
        raise typer.BadParameter(f"Expected ID=HH:MM[/recurrence], got {value!r}")

    time_of_day, _, recurrence_text = change.partition("/")
    recurrence = None
    if recurrence_text:
        try:
            recurrence = Recurrence(recurrence_text.lower())
        except ValueError:
            raise typer.BadParameter(
                f"Unknown recurrence {recurrence_text!r}. Use one of: {[r.value for r in Recurrence]}"
            )
    return draft_id, time_of_day, recurrence


def print_drafts(drafts: tuple[ReminderDraft, ...]) -> None:
    table = Table(title="Reminder preview")
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Record")
    table.add_column("Medication", style="bold")
    table.add_column("Dosage")
    table.add_column("Time")
    table.add_column("Recurrence")
    table.add_column("Strategy")

    for draft in drafts:
        frequency = draft.frequency_text
        if draft.analysis_strategy == AnalysisStrategy.BASIC and frequency and not is_recognized(frequency):
            frequency = f"{frequency} [yellow](default times)[/yellow]"
        table.add_row(
            draft.id,
            draft.source_record_id,
            f"{draft.medication_name}\n[dim]{frequency}[/dim]" if frequency else draft.medication_name,
            draft.dosage,
            draft.time_of_day,
            draft.recurrence.value,
            draft.analysis_strategy.value,
        )
    console.print(table)


def print_commit_result(result: CommitResult) -> None:
    console.print("\n[bold]Commit Summary:[/bold]")
    summary_table = Table(show_header=False, box=None, padding=(0, 2))
    summary_table.add_row("Reminders persisted:", f"[green]{result.persisted_count:,}[/green]")
    summary_table.add_row(
        "Failed record groups:",
        f"[red]{len(result.failed_groups)}[/red]" if result.failed_groups else "0"
    )
    if result.skipped_groups:
        summary_table.add_row("Skipped record groups:", f"[yellow]{len(result.skipped_groups)}[/yellow]")
    console.print(summary_table)

    for group in result.failed_groups:
        console.print(f"[red]✗[/red] Record {group.source_record_id}: {group.error}")


def apply_edits(workflow: ReminderWorkflow, edits: list[str]) -> None:
    for value in edits:
        draft_id, time_of_day, recurrence = parse_edit_option(value)
        opened = workflow.begin_edit(draft_id)
        if opened.is_failure():
            console.print(f"[yellow]⚠[/yellow] {opened.error}")
            continue
        try:
            workflow.apply_edit(draft_id, time_of_day, recurrence or opened.value.recurrence)
        except ValueError as e:
            workflow.discard_edit()
            console.print(f"[yellow]⚠[/yellow] Edit of {draft_id} ignored: {str(e)}")


@app.command()
def generate(
    records_file: Path = typer.Argument(..., help="JSON file with one record or a list of records", exists=True),
    strategy: Optional[AnalysisStrategy] = typer.Option(None, "--strategy", "-s", help="basic or advanced analysis"),
    edit: Optional[list[str]] = typer.Option(None, "--edit", "-e", help="Change a draft: ID=HH:MM[/recurrence]"),
    delete: Optional[list[str]] = typer.Option(None, "--delete", "-d", help="Drop a draft before commit"),
    commit: bool = typer.Option(False, "--commit", help="Persist and schedule the drafts"),
) -> None:
    """Generate reminder drafts from medical records.

    Examples:
        rxreminders generate records.json
        rxreminders generate records.json --strategy advanced --commit
        rxreminders generate records.json -e "preview_rec-1_Amoxicillin_08:00=09:30/weekly" --commit
    """
    from rxreminders.main import create_analysis_provider, create_workflow, load_records

    strategy = strategy or settings.default_strategy
    try:
        records = load_records(records_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]✗[/red] {str(e)}")
        raise typer.Exit(code=1)

    console.print(f"\n[bold blue]rx-reminders[/bold blue]")
    console.print(f"[dim]Records:[/dim] {len(records)}")
    console.print(f"[dim]Strategy:[/dim] {strategy.value}")
    console.print()

    provider = create_analysis_provider() if strategy == AnalysisStrategy.ADVANCED else None
    store = create_store_cli()

    try:
        workflow = create_workflow(store, provider=provider)

        with console.status("[bold green]Analyzing records..."):
            outcome = asyncio.run(workflow.generate(records, strategy))

        if AnalysisAdvisory.FULL_FALLBACK in outcome.advisories:
            console.print("[yellow]⚠[/yellow] Advanced analysis unavailable; basic analysis was used for all records")
        elif outcome.fallback_record_ids:
            console.print(
                f"[yellow]⚠[/yellow] Basic analysis used for record(s): {', '.join(outcome.fallback_record_ids)}"
            )
        if AnalysisAdvisory.NO_PRESCRIPTIONS in outcome.advisories:
            console.print("[yellow]⚠[/yellow] No prescriptions found in the selected records")
            raise typer.Exit(code=0)

        apply_edits(workflow, edit or [])
        for draft_id in delete or []:
            if not workflow.delete(draft_id):
                console.print(f"[yellow]⚠[/yellow] Draft not found: {draft_id}")

        print_drafts(workflow.drafts())

        if not commit:
            workflow.cancel()
            console.print("[dim]Preview only; rerun with --commit to save these reminders[/dim]")
            return

        result = workflow.commit()
        print_commit_result(result)
        if not result.is_complete:
            raise typer.Exit(code=1)
        console.print(f"\n[green]✓[/green] Reminders created successfully")

    except KeyboardInterrupt:
        console.print("\n[yellow]⚠[/yellow] Interrupted by user")
        raise typer.Exit(code=130)
    except InvalidTransitionError as e:
        console.print(f"[red]✗[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        store.close()


@app.command(name="list")
def list_reminders() -> None:
    """Show active reminders."""
    store = create_store_cli()
    try:
        reminders = store.list_active()
    finally:
        store.close()

    if not reminders:
        console.print("[dim]No active reminders[/dim]")
        return

    table = Table(title="Active reminders")
    table.add_column("ID", style="dim", overflow="fold")
    table.add_column("Medication", style="bold")
    table.add_column("Dosage")
    table.add_column("Times")
    table.add_column("Recurrence")
    table.add_column("Since")
    table.add_column("Last fired")
    for reminder in reminders:
        table.add_row(
            reminder.id,
            reminder.medication_name,
            reminder.dosage,
            ", ".join(reminder.times),
            reminder.recurrence.value,
            reminder.anchor_date.isoformat(),
            reminder.last_fired_at.strftime("%Y-%m-%d %H:%M") if reminder.last_fired_at else "-",
        )
    console.print(table)


@app.command()
def delete(reminder_id: str = typer.Argument(..., help="Reminder ID")) -> None:
    """Delete a persisted reminder."""
    store = create_store_cli()
    try:
        result = store.delete(reminder_id)
    finally:
        store.close()

    if result.is_failure():
        console.print(f"[red]✗[/red] {result.error}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Deleted reminder {reminder_id}")


@app.command()
def toggle(
    reminder_id: str = typer.Argument(..., help="Reminder ID"),
    enable: bool = typer.Option(..., "--enable/--disable", help="Turn the reminder on or off"),
) -> None:
    """Enable or disable a persisted reminder."""
    store = create_store_cli()
    try:
        result = store.set_enabled(reminder_id, enable)
    finally:
        store.close()

    if result.is_failure():
        console.print(f"[red]✗[/red] {result.error}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Reminder {reminder_id} {'enabled' if enable else 'disabled'}")


@app.command()
def reschedule(
    reminder_id: str = typer.Argument(..., help="Reminder ID"),
    times: list[str] = typer.Option(..., "--time", "-t", help="Time of day HH:MM (repeatable)"),
    recurrence: Recurrence = typer.Option(Recurrence.DAILY, "--recurrence", "-r", help="Repetition policy"),
) -> None:
    """Change the times of day and recurrence of a persisted reminder."""
    store = create_store_cli()
    try:
        result = store.update_schedule(reminder_id, times, recurrence)
    finally:
        store.close()

    if result.is_failure():
        console.print(f"[red]✗[/red] {result.error}")
        raise typer.Exit(code=1)
    console.print(
        f"[green]✓[/green] Reminder {reminder_id} now {result.value.recurrence.value} at {', '.join(result.value.times)}"
    )


@app.command()
def taken(
    reminder_id: str = typer.Argument(..., help="Reminder ID"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Note to keep with the dose"),
    side_effects: Optional[str] = typer.Option(None, "--side-effects", help="Side effects noticed"),
) -> None:
    """Record that a dose was taken."""
    _record_dose(reminder_id, DoseStatus.TAKEN, notes=notes, side_effects=side_effects)


@app.command()
def skip(
    reminder_id: str = typer.Argument(..., help="Reminder ID"),
    reason: Optional[str] = typer.Option(None, "--reason", help="Why the dose was skipped"),
) -> None:
    """Record that a dose was skipped."""
    _record_dose(reminder_id, DoseStatus.SKIPPED, notes=reason)


def _record_dose(reminder_id: str, status: DoseStatus, **fields) -> None:
    store = create_store_cli()
    try:
        result = store.record_dose(reminder_id, status, **fields)
    finally:
        store.close()

    if result.is_failure():
        console.print(f"[red]✗[/red] {result.error}")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] Dose {status.value} for reminder {reminder_id}")


@app.command()
def history(
    reminder_id: Optional[str] = typer.Argument(None, help="Only show this reminder"),
    limit: int = typer.Option(50, "--limit", "-l", min=1, help="Maximum number of events"),
) -> None:
    """Show taken and skipped doses, newest first."""
    store = create_store_cli()
    try:
        events = store.dose_history(reminder_id, limit=limit)
    finally:
        store.close()

    if not events:
        console.print("[dim]No doses recorded[/dim]")
        return

    table = Table(title="Dose history")
    table.add_column("When")
    table.add_column("Reminder", style="dim", overflow="fold")
    table.add_column("Status")
    table.add_column("Notes")
    table.add_column("Side effects")
    for event in events:
        status_style = "green" if event.status == DoseStatus.TAKEN else "yellow"
        table.add_row(
            event.recorded_at.strftime("%Y-%m-%d %H:%M"),
            event.reminder_id,
            f"[{status_style}]{event.status.value}[/{status_style}]",
            event.notes or "-",
            event.side_effects or "-",
        )
    console.print(table)


@app.command()
def compliance() -> None:
    """Show adherence across active reminders."""
    store = create_store_cli()
    try:
        summary = store.compliance()
    finally:
        store.close()

    table = Table(title="Medication compliance")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Recorded doses", f"{summary.total_reminders:,}")
    table.add_row("Taken", f"{summary.completed:,}")
    table.add_row("Skipped", f"{summary.missed:,}")
    table.add_row("Compliance rate", f"{summary.compliance_rate}%")
    console.print(table)


@app.command()
def export(
    output_file: Path = typer.Argument(..., help="CSV file to write"),
    include_disabled: bool = typer.Option(False, "--all", help="Include disabled reminders"),
) -> None:
    """Export reminders to CSV."""
    store = create_store_cli()
    try:
        df = store.reminders_dataframe(active_only=not include_disabled)
    finally:
        store.close()

    df.to_csv(output_file, index=False)
    console.print(f"[green]✓[/green] Exported {len(df):,} reminder(s) to {output_file}")


if __name__ == "__main__":
    app()
