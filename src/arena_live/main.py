import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console

from arena_live.binding import SessionBinding
from arena_live.config import ArenaLiveConfig, Identity, load_identity
from arena_live.dependencies import create_coordinator, provide_coordinator, use_session
from arena_live.exceptions import ConfigurationException
from arena_live.logging_config import setup_logging
from arena_live.models import ChallengeConfig


app = typer.Typer(help="Developer tools for the arena_live session runtime.")
console = Console()
logger = logging.getLogger(__name__)


def _require_identity() -> Identity:
    identity = load_identity()
    if identity is None:
        console.print("[red]ARENA_LIVE_USER_ID and ARENA_LIVE_TOKEN must be set.[/red]")
        raise typer.Exit(code=1)
    return identity


def _load_config() -> ArenaLiveConfig:
    try:
        return ArenaLiveConfig.from_env()
    except ConfigurationException as e:
        console.print(e.message, style="red", markup=False)
        raise typer.Exit(code=1)


@app.command()
def watch(
    room: str = typer.Option(..., "--room", "-r", help="The room to join."),
    duration: Optional[float] = typer.Option(
        None,
        "--duration",
        "-d",
        help="Stop after this many seconds (default: run until interrupted).",
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level for the runtime (default: ARENA_LIVE_LOG_LEVEL)."
    ),
    trace_socketio: bool = typer.Option(False, "--trace-socketio", help="Show Socket.IO packet logs."),
):
    """
    Join a room and print presence, duel and team changes as they arrive.
    """
    identity = _require_identity()
    config = _load_config()
    setup_logging(level=log_level or config.log_level, trace_socketio=trace_socketio)
    try:
        asyncio.run(watch_async(config, identity, room, duration))
    except KeyboardInterrupt:
        console.print("Stopped.")


async def watch_async(config: ArenaLiveConfig, identity: Identity, room: str, duration: Optional[float]) -> None:
    coordinator = create_coordinator(config)
    coordinator.start()

    with provide_coordinator(coordinator):
        binding = use_session(identity)
        binding.subscribe(render)
        with binding:
            binding.join_room(room, identity.user_id, {"name": identity.user_id})
            console.print(f"Watching room [bold]{room}[/bold] on {config.server_url}")
            try:
                if duration is None:
                    await asyncio.Event().wait()
                else:
                    await asyncio.sleep(duration)
            finally:
                coordinator.stop()


def render(binding: SessionBinding) -> None:
    """Print a one-line summary of the binding's current state."""
    if binding.connected.value:
        status = "[green]connected[/green]"
    elif binding.reconnecting.value:
        status = "[yellow]reconnecting[/yellow]"
    else:
        status = "[red]offline[/red]"

    names = ", ".join(p.name or p.user_id for p in binding.participants.value) or "-"
    line = f"{status} | room: {names}"

    duel = binding.duel.value
    if duel is not None:
        scores = " vs ".join(f"{p.name or p.user_id} {p.progress:.0f}%" for p in duel.participants)
        line += f" | duel {duel.challenge_name or duel.id}: {scores}"

    team = binding.team.value
    if team is not None and team.active_mission is not None:
        mission = team.active_mission
        line += f" | mission {mission.name or mission.id}: {mission.overall_progress:.0f}%"

    if binding.invitations.value:
        line += f" | {len(binding.invitations.value)} pending invitation(s)"

    console.print(line)


@app.command()
def challenge(
    target_user_id: str = typer.Argument(..., help="The user to challenge."),
    challenge_type: Optional[str] = typer.Option(None, "--challenge-type", "-t", help="Kind of challenge."),
    duration: Optional[int] = typer.Option(None, "--duration", "-d", help="Duel duration in seconds."),
    timeout: float = typer.Option(10.0, "--timeout", help="Seconds to wait for the connection."),
):
    """
    Connect, send a single duel challenge and exit.
    """
    identity = _require_identity()
    config = _load_config()
    setup_logging(level=config.log_level)
    challenge_config = ChallengeConfig(challenge_type=challenge_type, duration=duration)
    sent = asyncio.run(challenge_async(config, identity, target_user_id, challenge_config, timeout))
    if not sent:
        console.print("[red]Could not connect; challenge not sent.[/red]")
        raise typer.Exit(code=1)
    console.print(f"Challenge sent to {target_user_id}.")


async def challenge_async(
    config: ArenaLiveConfig,
    identity: Identity,
    target_user_id: str,
    challenge_config: ChallengeConfig,
    timeout: float,
) -> bool:
    coordinator = create_coordinator(config)
    coordinator.start()
    connected = asyncio.Event()

    with provide_coordinator(coordinator):
        binding = use_session(identity)
        binding.connected.watch(lambda value: connected.set() if value else None)
        with binding:
            try:
                await asyncio.wait_for(connected.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.error(f"No connection after {timeout:.0f}s")
                coordinator.stop()
                return False

            binding.challenge_to_duel(target_user_id, challenge_config)
            # Sends are fire-and-forget; give the emit task a moment to flush
            await asyncio.sleep(0.5)
    coordinator.stop()
    return True


if __name__ == "__main__":
    app()
