#!/usr/bin/env python3
"""Interactive CLI for the driver sentiment engine.

This allows users to:
1. Submit driver feedback directly in the terminal
2. See the sentiment score and the driver's updated reputation immediately
3. See alert notifications when a driver drops below the threshold
4. Browse drivers and alerts without making HTTP requests
"""
import asyncio
import logging
import sys
from datetime import date

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from driver_sentiment.alerting import AlertNotifier
from driver_sentiment.config import config
from driver_sentiment.database import Database
from driver_sentiment.errors import CapacityExceeded, TransientStorageError
from driver_sentiment.processor import build_pipeline
from driver_sentiment.schemas import FeedbackSubmission

console = Console()

DEMO_DRIVERS = [
    ("DRV-1001", "Arjun Mehta"),
    ("DRV-1002", "Sara Khan"),
    ("DRV-1003", "Vikram Rao"),
    ("DRV-1004", "Meera Iyer"),
    ("DRV-1005", "Rahul Das"),
]

RISK_STYLES = {"HIGH": "bold red", "MEDIUM": "yellow", "LOW": "green"}


class InteractiveFeedbackSystem:
    """Interactive driver feedback console."""

    def __init__(self, db: Database):
        self.pipeline = build_pipeline(
            db,
            config.pipeline_settings(),
            AlertNotifier(config.ALERT_WEBHOOK_URL, config.ALERT_ENABLED)
        )

    async def submit(self, submission: FeedbackSubmission):
        """Submit feedback and process it straight away.

        Returns:
            Tuple of (receipt, updated driver, newest alert or None)
        """
        alerts_before = await self.pipeline.alert_gate.get_alerts(submission.driver_id)
        receipt = await self.pipeline.submit_feedback(submission)

        # Drain the queue now instead of waiting for a worker tick
        while not self.pipeline.queue.is_empty():
            await self.pipeline.process_next_item()

        driver = await self.pipeline.tracker.get_driver(submission.driver_id)
        alerts_after = await self.pipeline.alert_gate.get_alerts(submission.driver_id)
        new_alert = alerts_after[0] if len(alerts_after) > len(alerts_before) else None
        return receipt, driver, new_alert

    def display_result(self, receipt, driver):
        """Display the sentiment result and the driver's new standing."""
        sentiment = receipt.sentiment
        table = Table(
            title="📊 Sentiment Result",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold magenta"
        )

        table.add_column("Attribute", style="cyan", width=20)
        table.add_column("Value", style="green")

        table.add_row("Score", f"{sentiment.score}")
        table.add_row("Label", sentiment.label)
        table.add_row("Matched Words", ", ".join(sentiment.matched_words) or "-")
        if driver:
            table.add_row("Driver Average", f"{driver.average_score} over {driver.total_count} ratings")
            table.add_row(
                "Risk Tier",
                f"[{RISK_STYLES[driver.risk_tier]}]{driver.risk_tier}[/{RISK_STYLES[driver.risk_tier]}]"
            )

        console.print(table)

    def display_alert(self, alert):
        """Display alert notification."""
        alert_content = f"""
[bold red] DRIVER ALERT![/bold red]

{alert.message}

[bold]Driver:[/bold] {alert.driver_name} ({alert.driver_id})
[bold]Average score:[/bold] {alert.current_score}
[bold]Threshold:[/bold] {alert.threshold}

[bold yellow]Action Required:[/bold yellow]
→ Review the driver's recent trips
→ Contact the driver within 24 hours
        """

        panel = Panel(
            alert_content,
            title="🚨 ALERT 🚨",
            border_style="bold red",
            box=box.DOUBLE,
            padding=(1, 2)
        )

        console.print()
        console.print(panel)
        console.print()

    async def display_drivers(self):
        drivers = await self.pipeline.tracker.list_drivers()
        table = Table(title="🚗 Drivers", box=box.ROUNDED, header_style="bold magenta")
        table.add_column("Driver ID", style="cyan")
        table.add_column("Name")
        table.add_column("Average", justify="right")
        table.add_column("Ratings", justify="right")
        table.add_column("Risk")

        for driver in drivers:
            style = RISK_STYLES[driver.risk_tier]
            table.add_row(
                driver.driver_id,
                driver.name,
                f"{driver.average_score:.2f}",
                str(driver.total_count),
                f"[{style}]{driver.risk_tier}[/{style}]"
            )

        console.print(table)

    async def display_alerts(self):
        alerts = await self.pipeline.alert_gate.get_alerts()
        if not alerts:
            console.print("[green]No alerts raised[/green]")
            return

        table = Table(title="🚨 Alerts", box=box.ROUNDED, header_style="bold red")
        table.add_column("When", style="dim")
        table.add_column("Driver", style="cyan")
        table.add_column("Score", justify="right")
        table.add_column("Threshold", justify="right")

        for alert in alerts:
            table.add_row(
                alert.created_at.strftime("%Y-%m-%d %H:%M"),
                f"{alert.driver_name} ({alert.driver_id})",
                f"{alert.current_score}",
                f"{alert.threshold}"
            )

        console.print(table)

    async def seed(self):
        """Create the demo driver roster if it is missing."""
        for driver_id, name in DEMO_DRIVERS:
            await self.pipeline.tracker.find_or_create_driver(driver_id, name)
        console.print(f"[green]✓ {len(DEMO_DRIVERS)} demo drivers ready[/green]")

    def display_welcome(self):
        """Display welcome message."""
        welcome = f"""
[bold cyan]Driver Sentiment Engine[/bold cyan]
[dim]Interactive CLI Mode[/dim]

Commands:
  [green]submit[/green]   score feedback for a driver
  [green]drivers[/green]  list drivers by average score
  [green]alerts[/green]   list raised alerts
  [green]seed[/green]     create demo drivers
  [green]quit[/green]     exit

Alert threshold: {self.pipeline.alert_gate.threshold}, cooldown: {self.pipeline.alert_gate.cooldown_seconds}s
        """

        panel = Panel(
            welcome,
            border_style="bold blue",
            box=box.DOUBLE,
            padding=(1, 2)
        )

        console.print(panel)
        console.print()

    def prompt_submission(self) -> FeedbackSubmission:
        driver_id = Prompt.ask("Driver ID")
        driver_name = Prompt.ask("Driver name", default=dict(DEMO_DRIVERS).get(driver_id, driver_id))
        feedback_text = Prompt.ask("Your feedback", default="")
        rating = IntPrompt.ask("Star rating (1-5, 0 to skip)", default=0)
        user_name = Prompt.ask("Your name", default="cli-user")

        return FeedbackSubmission(
            driver_id=driver_id,
            driver_name=driver_name,
            feedback_text=feedback_text,
            driver_rating=rating if 1 <= rating <= 5 else None,
            user_name=user_name,
            feedback_date=date.today().isoformat()
        )

    async def run_interactive(self):
        """Run the interactive CLI loop."""
        self.display_welcome()

        while True:
            console.print()
            command = Prompt.ask(
                "Command",
                choices=["submit", "drivers", "alerts", "seed", "quit"],
                default="submit"
            )

            if command == "quit":
                console.print("\n[cyan]Goodbye![/cyan]\n")
                break
            if command == "drivers":
                await self.display_drivers()
                continue
            if command == "alerts":
                await self.display_alerts()
                continue
            if command == "seed":
                await self.seed()
                continue

            try:
                submission = self.prompt_submission()
            except ValueError as e:
                console.print(f"[red]⚠️  Invalid feedback: {e}[/red]")
                continue

            if await self.pipeline.is_duplicate(submission):
                console.print("[yellow]⚠️  You already rated this driver today[/yellow]")
                continue

            console.print()
            console.print("[bold]Processing your feedback...[/bold]")
            console.print()

            try:
                receipt, driver, alert = await self.submit(submission)
            except (CapacityExceeded, TransientStorageError) as e:
                console.print(f"\n[yellow]⚠️  Feedback rejected: {e}[/yellow]")
                continue

            self.display_result(receipt, driver)
            if alert:
                self.display_alert(alert)

            stats = self.pipeline.stats()
            console.print(
                f"\n[dim]Queue: {stats['queue_size']} waiting, "
                f"{stats['processed']} processed, "
                f"{stats['failed']} failed[/dim]"
            )


async def main():
    """Main entry point."""
    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    console.print("[cyan]Initializing database...[/cyan]")
    db = Database()
    await db.init()

    system = InteractiveFeedbackSystem(db)

    try:
        await system.run_interactive()
    finally:
        await db.dispose()


def run():
    """Console-script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("\n\n[cyan] Goodbye![/cyan]\n")
        sys.exit(0)


if __name__ == "__main__":
    run()
