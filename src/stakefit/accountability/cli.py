"""Command-line interface for stakefit.

Built with Typer for commands and Rich for output.
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .bootstrap import Services, build_services
from .challenges.lifecycle import ProgressUpdateResult
from .challenges.schemas import (
    Challenge,
    ChallengeCreate,
    ChallengeGroupCreate,
    ChallengeType,
    ChallengeVisibility,
    OwnedChallenge,
    UserChallenge,
)
from .config import LOG_LEVELS, get_config
from .db import get_db
from .errors import AccountabilityError, ValidationError
from .log import configure_logging
from .scheduler import ProgressScheduler

logger = logging.getLogger(__name__)

# Create the main app
app = typer.Typer(
    name="stakefit",
    help="Stake tokens on fitness challenges and earn them back.",
    no_args_is_help=True,
)

# Create sub-apps for command groups
user_app = typer.Typer(help="Manage the signed-in user.")
app.add_typer(user_app, name="user")

challenge_app = typer.Typer(help="Create, join and settle challenges.")
app.add_typer(challenge_app, name="challenge")

group_app = typer.Typer(help="Take on challenges as a group.")
app.add_typer(group_app, name="group")

ledger_app = typer.Typer(help="Inspect the staking ledger.")
app.add_typer(ledger_app, name="ledger")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


@contextmanager
def handle_errors() -> Iterator[None]:
    """Print accountability errors for the user and exit with status 1."""
    try:
        yield
    except ValidationError as e:
        print_error("Please fix the following:")
        for violation in e.violations:
            console.print(f"  - {violation}")
        raise typer.Exit(1)
    except AccountabilityError as e:
        logger.debug("Command failed: %s", e)
        print_error(e.user_message)
        raise typer.Exit(1)


def get_services(ctx: typer.Context) -> Services:
    """Build services for the user selected on the command line."""
    config = get_config()
    return build_services(config, user_id=ctx.obj)


def format_challenge_table(challenges: list[Challenge], title: str = "Challenges") -> Table:
    """Create a rich table for displaying challenges."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Title", style="cyan", max_width=30)
    table.add_column("Type", style="green")
    table.add_column("Goal", justify="right")
    table.add_column("Stake", justify="right")
    table.add_column("Pool", justify="right")
    table.add_column("Ends", style="yellow")
    table.add_column("Status")

    for c in challenges:
        table.add_row(
            c.id,
            c.title,
            c.challenge_type.value,
            f"{c.goal:g}",
            f"{c.stake:g}",
            f"{c.prize_pool:g}",
            c.end_date.strftime("%Y-%m-%d %H:%M"),
            c.status.value,
        )

    return table


def _show_challenge(challenge: Challenge) -> None:
    lines = [
        f"[bold]{challenge.title}[/bold]",
        f"{challenge.description}",
        "",
        f"ID: {challenge.id}",
        f"Type: {challenge.challenge_type.value}  Goal: {challenge.goal:g}",
        f"Stake: {challenge.stake:g}  Prize pool: {challenge.prize_pool:g}",
        f"Runs: {challenge.start_date:%Y-%m-%d %H:%M} to {challenge.end_date:%Y-%m-%d %H:%M}",
        f"Status: {challenge.status.value}  Visibility: {challenge.visibility.value}",
        f"Participants: {len(challenge.participants)}",
        f"Category: {challenge.category or '-'}  Group: {challenge.group_id or '-'}",
        f"Ledger account: {challenge.ledger_address or '-'}",
    ]
    console.print(Panel("\n".join(lines), title="Challenge Details"))


def _print_progress_result(result: ProgressUpdateResult) -> None:
    if result.already_running:
        print_warning("A progress update is already running.")
        return
    console.print(
        f"Updated [bold]{result.updated}[/bold], "
        f"completion checks [bold]{result.completion_checked}[/bold], "
        f"skipped [bold]{result.skipped}[/bold]"
    )
    for challenge_id, error in result.errors:
        print_warning(f"{challenge_id}: {error}")


# ============================================================================
# App Setup
# ============================================================================


@app.callback()
def main_callback(
    ctx: typer.Context,
    user: Optional[str] = typer.Option(
        None, "--user", "-u", envvar="STAKEFIT_USER_ID", help="Signed-in user id"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level"),
) -> None:
    """Stake tokens on fitness challenges."""
    config = get_config()
    level = config.log_level if config.log_level in LOG_LEVELS else "WARNING"
    configure_logging("INFO" if verbose else level)
    ctx.obj = user


@app.command()
def init() -> None:
    """Create the database and check configuration."""
    config = get_config()
    problems = config.validate()
    for problem in problems:
        print_warning(problem)

    get_db(str(config.db_path))
    print_success(f"Database ready at {config.db_path}")
    if not config.has_fitbit_config():
        print_info("No FITBIT_ACCESS_TOKEN set; progress uses logged metrics.")
    if problems:
        raise typer.Exit(1)


# ============================================================================
# User Commands
# ============================================================================


@user_app.command("register")
def user_register(
    ctx: typer.Context,
    email: str = typer.Argument(..., help="Email address"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name"),
    tokens: float = typer.Option(0.0, "--tokens", "-t", help="Starting token balance"),
) -> None:
    """Register a new user."""
    services = get_services(ctx)
    with handle_errors():
        account = services.auth.register(email, name or email, token_balance=tokens)
    print_success(f"Registered {account.display_name} ({account.id})")
    print_info(f"Use --user {account.id} or set STAKEFIT_USER_ID to act as this user.")


@user_app.command("show")
def user_show(ctx: typer.Context) -> None:
    """Show the signed-in user."""
    services = get_services(ctx)
    account = services.auth.get_current_user()
    if not account:
        print_error("No signed-in user. Pass --user or set STAKEFIT_USER_ID.")
        raise typer.Exit(1)

    lines = [
        f"[bold]{account.display_name}[/bold] <{account.email}>",
        f"ID: {account.id}",
        f"Token balance: {account.token_balance:g}",
        f"Member since: {account.created_at:%Y-%m-%d}",
    ]
    console.print(Panel("\n".join(lines), title="User"))


@user_app.command("log")
def user_log(
    ctx: typer.Context,
    steps: int = typer.Option(0, "--steps", "-s", min=0, help="Steps walked"),
    minutes: int = typer.Option(0, "--minutes", "-m", min=0, help="Active minutes"),
    day: Optional[datetime] = typer.Option(
        None, "--date", "-d", formats=["%Y-%m-%d"], help="Day (default today)"
    ),
) -> None:
    """Record the day's activity totals."""
    services = get_services(ctx)
    if not services.auth.get_current_user():
        print_error("No signed-in user. Pass --user or set STAKEFIT_USER_ID.")
        raise typer.Exit(1)

    with handle_errors():
        metrics = services.metrics.record(
            steps, minutes, day=day.date() if day else None
        )
    print_success(
        f"Logged {metrics.steps} steps, {metrics.active_minutes} active minutes "
        f"for {metrics.day.isoformat()}"
    )


# ============================================================================
# Challenge Commands
# ============================================================================


@challenge_app.command("create")
def challenge_create(
    ctx: typer.Context,
    title: str = typer.Option(..., "--title", "-t", help="Challenge title"),
    description: str = typer.Option(..., "--description", "-d", help="What to do"),
    challenge_type: ChallengeType = typer.Option(
        ChallengeType.STEPS, "--type", help="Metric measured"
    ),
    goal: float = typer.Option(..., "--goal", "-g", help="Daily target"),
    stake: float = typer.Option(..., "--stake", "-s", help="Tokens staked per participant"),
    days: int = typer.Option(7, "--days", help="Duration in days from now"),
    visibility: ChallengeVisibility = typer.Option(
        ChallengeVisibility.PUBLIC, "--visibility", help="Who can find it"
    ),
    group: Optional[str] = typer.Option(None, "--group", help="Existing group to run it"),
    new_group: Optional[str] = typer.Option(
        None, "--new-group", help="Name of a new group to run it"
    ),
    max_participants: Optional[int] = typer.Option(
        None, "--max-participants", help="Size limit of the new group"
    ),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Category label"),
) -> None:
    """Create a challenge and join it as its first participant."""
    services = get_services(ctx)
    start = datetime.now(timezone.utc)
    params = ChallengeCreate(
        title=title,
        description=description,
        challenge_type=challenge_type,
        goal=goal,
        stake=stake,
        start_date=start,
        end_date=start + timedelta(days=days),
        visibility=visibility,
        group_id=group,
        category=category,
    )
    with handle_errors():
        if new_group:
            group_params = ChallengeGroupCreate(
                name=new_group, visibility=visibility, max_participants=max_participants
            )
            challenge, created_group = services.lifecycle.create_group_challenge(
                params, group_params
            )
            print_success(f"Created group {created_group.id}")
        else:
            challenge = services.lifecycle.create_challenge(params)
    print_success(f"Created challenge {challenge.id}")
    _show_challenge(challenge)


@challenge_app.command("join")
def challenge_join(
    ctx: typer.Context,
    challenge_id: str = typer.Argument(..., help="Challenge id"),
) -> None:
    """Join a challenge, staking tokens."""
    services = get_services(ctx)
    with handle_errors():
        record = services.lifecycle.join_challenge(challenge_id)
    print_success(f"Joined '{record.title}', staked {record.stake:g} tokens")


@challenge_app.command("leave")
def challenge_leave(
    ctx: typer.Context,
    challenge_id: str = typer.Argument(..., help="Challenge id"),
) -> None:
    """Leave a challenge and get the stake back."""
    services = get_services(ctx)
    with handle_errors():
        services.lifecycle.leave_challenge(challenge_id)
    print_success(f"Left challenge {challenge_id}")


@challenge_app.command("show")
def challenge_show(
    ctx: typer.Context,
    challenge_id: str = typer.Argument(..., help="Challenge id"),
) -> None:
    """Show challenge details."""
    services = get_services(ctx)
    with handle_errors():
        challenge = services.lifecycle.get_challenge(challenge_id)
    if not challenge:
        print_error(f"Challenge not found: {challenge_id}")
        raise typer.Exit(1)
    _show_challenge(challenge)


@challenge_app.command("edit")
def challenge_edit(
    ctx: typer.Context,
    challenge_id: str = typer.Argument(..., help="Challenge id"),
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    goal: Optional[float] = typer.Option(None, "--goal", "-g"),
    extend_days: Optional[int] = typer.Option(
        None, "--extend", help="Push the end date back by this many days"
    ),
    visibility: Optional[ChallengeVisibility] = typer.Option(None, "--visibility"),
) -> None:
    """Edit a challenge you created."""
    services = get_services(ctx)
    fields = {}
    if title is not None:
        fields["title"] = title
    if description is not None:
        fields["description"] = description
    if goal is not None:
        fields["goal"] = goal
    if visibility is not None:
        fields["visibility"] = visibility

    with handle_errors():
        if extend_days:
            current = services.lifecycle.get_challenge(challenge_id)
            if current:
                fields["end_date"] = current.end_date + timedelta(days=extend_days)
        if not fields:
            print_warning("Nothing to change.")
            raise typer.Exit(0)
        challenge = services.lifecycle.update_challenge(challenge_id, fields)
    print_success(f"Updated challenge {challenge.id}")
    _show_challenge(challenge)


@challenge_app.command("list")
def challenge_list(
    ctx: typer.Context,
    public: bool = typer.Option(False, "--public", "-p", help="Newest public challenges"),
    limit: int = typer.Option(10, "--limit", "-l", help="Max public challenges"),
) -> None:
    """List your challenges and ones you can join."""
    services = get_services(ctx)

    with handle_errors():
        if public:
            challenges = services.lifecycle.get_public_challenges(limit)
            if not challenges:
                print_info("No public challenges.")
                return
            console.print(format_challenge_table(challenges, title="Public Challenges"))
            return
        listings = services.lifecycle.get_all_challenges()

    owned = [item.challenge for item in listings if isinstance(item, OwnedChallenge)]
    available = [item.challenge for item in listings if not isinstance(item, OwnedChallenge)]

    if owned:
        table = Table(title="Your Challenges", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Title", style="cyan", max_width=30)
        table.add_column("Progress", justify="right")
        table.add_column("Stake", justify="right")
        table.add_column("Ends", style="yellow")
        for record in owned:
            table.add_row(
                record.challenge_id,
                record.title,
                f"{record.progress:.0f}%",
                f"{record.stake:g}",
                record.end_date.strftime("%Y-%m-%d %H:%M"),
            )
        console.print(table)
    else:
        print_info("You haven't joined any active challenges.")

    if available:
        console.print(format_challenge_table(available, title="Available Challenges"))


@challenge_app.command("progress")
def challenge_progress(
    ctx: typer.Context,
    challenge_id: str = typer.Argument(..., help="Challenge id"),
) -> None:
    """Show today's progress towards a challenge goal."""
    services = get_services(ctx)
    with handle_errors():
        challenge = services.lifecycle.get_challenge(challenge_id)
        if not challenge:
            print_error(f"Challenge not found: {challenge_id}")
            raise typer.Exit(1)
        progress = services.lifecycle.get_challenge_progress(
            challenge.challenge_type, challenge.goal
        )
    console.print(f"[bold]{challenge.title}[/bold]: {progress:.0f}% of {challenge.goal:g}")


@challenge_app.command("complete")
def challenge_complete(
    ctx: typer.Context,
    challenge_id: str = typer.Argument(..., help="Challenge id"),
) -> None:
    """Settle a challenge if your goal is reached."""
    services = get_services(ctx)
    with handle_errors():
        completed = services.lifecycle.check_challenge_completion(challenge_id)
    if completed:
        print_success("Challenge completed, stake returned.")
    else:
        print_info("Goal not reached yet, or the challenge is already settled.")


@challenge_app.command("sync")
def challenge_sync(ctx: typer.Context) -> None:
    """Refresh progress of all your active challenges."""
    services = get_services(ctx)
    with handle_errors():
        result = services.lifecycle.update_all_challenges_progress()
    _print_progress_result(result)
    if not result.success:
        raise typer.Exit(1)


@challenge_app.command("checkin")
def challenge_checkin(
    ctx: typer.Context,
    challenge_id: str = typer.Argument(..., help="Challenge id"),
) -> None:
    """Check in for today on a challenge you joined."""
    services = get_services(ctx)
    with handle_errors():
        result = services.lifecycle.check_in(UserChallenge.make_id(ctx.obj or "", challenge_id))
    print_success(f"{result.message}. Progress: {result.progress:.0f}%")


@challenge_app.command("browse")
def challenge_browse(
    ctx: typer.Context,
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Only this category"),
) -> None:
    """List public challenges that are still running."""
    services = get_services(ctx)
    with handle_errors():
        challenges = services.lifecycle.get_challenges(category)
    if not challenges:
        print_info("No open challenges.")
        return
    console.print(format_challenge_table(challenges, title="Open Challenges"))


# ============================================================================
# Group Commands
# ============================================================================


@group_app.command("create")
def group_create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Group name"),
    description: str = typer.Option("", "--description", "-d"),
    visibility: ChallengeVisibility = typer.Option(ChallengeVisibility.PUBLIC, "--visibility"),
    max_participants: Optional[int] = typer.Option(None, "--max-participants", "-m"),
) -> None:
    """Create a group; start its challenge with `challenge create --group`."""
    services = get_services(ctx)
    params = ChallengeGroupCreate(
        name=name,
        description=description,
        visibility=visibility,
        max_participants=max_participants,
    )
    with handle_errors():
        group = services.lifecycle.create_challenge_group(params)
    print_success(f"Created group {group.id}")


@group_app.command("list")
def group_list(ctx: typer.Context) -> None:
    """List public groups and groups you belong to."""
    services = get_services(ctx)
    with handle_errors():
        groups = services.lifecycle.get_challenge_groups()
    if not groups:
        print_info("No groups yet.")
        return

    table = Table(title="Groups", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan", max_width=30)
    table.add_column("Members", justify="right")
    table.add_column("Challenge", style="dim")
    table.add_column("Status", style="yellow")
    for group in groups:
        limit = f"/{group.max_participants}" if group.max_participants else ""
        table.add_row(
            group.id,
            group.name,
            f"{len(group.members)}{limit}",
            group.challenge_id or "-",
            group.status.value,
        )
    console.print(table)


@group_app.command("join")
def group_join(
    ctx: typer.Context,
    group_id: str = typer.Argument(..., help="Group id"),
) -> None:
    """Join a group and stake on its challenge."""
    services = get_services(ctx)
    with handle_errors():
        record = services.lifecycle.join_group_challenge(group_id)
    print_success(f"Joined group challenge '{record.title}', staked {record.stake:g} tokens")


# ============================================================================
# Ledger Commands
# ============================================================================


@ledger_app.command("balance")
def ledger_balance(
    ctx: typer.Context,
    challenge_id: Optional[str] = typer.Option(
        None, "--challenge", "-c", help="Show a challenge's stake account instead"
    ),
) -> None:
    """Show ledger balances."""
    services = get_services(ctx)
    with handle_errors():
        if challenge_id:
            challenge = services.lifecycle.get_challenge(challenge_id)
            account = (
                services.ledger.get_account(challenge.ledger_address)
                if challenge and challenge.ledger_address
                else None
            )
            if not account:
                print_error(f"No ledger account for challenge {challenge_id}")
                raise typer.Exit(1)
            console.print(f"Stake account {account['id']}: [bold]{account['balance']:g}[/bold]")
            return
        services.ledger.init_wallet()
        balance = services.ledger.get_balance()
    console.print(f"Wallet balance: [bold]{balance:g}[/bold]")


@ledger_app.command("reconcile")
def ledger_reconcile(ctx: typer.Context) -> None:
    """List ledger calls whose settlement never finished."""
    config = get_config()
    services = get_services(ctx)
    stuck = services.intents.find_stuck(timedelta(seconds=config.intent_stale_after))
    if not stuck:
        print_success("All ledger intents are settled.")
        return

    table = Table(title="Unsettled Ledger Intents", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Operation", style="cyan")
    table.add_column("User")
    table.add_column("Challenge")
    table.add_column("Amount", justify="right")
    table.add_column("Status", style="yellow")
    table.add_column("Created")
    for intent in stuck:
        table.add_row(
            intent.id,
            intent.operation,
            intent.user_id,
            intent.challenge_id or "-",
            f"{intent.amount:g}",
            intent.status.value,
            intent.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)
    raise typer.Exit(1)


# ============================================================================
# Background Sync
# ============================================================================


@app.command()
def watch(
    ctx: typer.Context,
    interval: Optional[int] = typer.Option(
        None, "--interval", "-i", help="Seconds between passes (default from config)"
    ),
) -> None:
    """Refresh progress periodically until interrupted."""
    config = get_config()
    services = get_services(ctx)
    if not services.auth.get_current_user():
        print_error("No signed-in user. Pass --user or set STAKEFIT_USER_ID.")
        raise typer.Exit(1)

    scheduler = ProgressScheduler(services.lifecycle, interval or config.progress_interval)
    task = scheduler.start()
    console.print(f"[dim]Refreshing every {scheduler.interval}s. Ctrl+C to stop.[/dim]")
    try:
        while task.running:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("[dim]Stopping...[/dim]")
    finally:
        task.cancel()


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
