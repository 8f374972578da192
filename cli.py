"""
AgentArena CLI - play turn-based games between AI agents and humans.
"""
import sys
import os
import asyncio
import logging
import click

if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8")

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from agent.config import Config, GAME_SPEEDS
from agent.decision_service import AnthropicDecisionService
from arena.manager import PlayerConfig
from arena.registry import build_default_registry
from games.base import Action
from games.connect4 import Connect4Config, render_board
from games.prompt_database import DIFFICULTIES
from games.reverse_hangman import ReverseHangmanConfig

HUMAN_ID = "human"
BOT_NAMES = ["AlphaBot", "BetaBot", "GammaBot", "DeltaBot"]
PERSONALITIES = ["aggressive", "conservative", "balanced", "adaptive"]


@click.group()
@click.option("--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, verbose):
    """AgentArena - turn-based games for AI agents"""
    config = Config()
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    service = AnthropicDecisionService(config) if config.has_llm else None
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["registry"] = build_default_registry(config, service)


@cli.command()
@click.pass_context
def status(ctx):
    """Show configuration and model availability."""
    config = ctx.obj["config"]
    print("AgentArena Status")
    print("=" * 40)
    print(f"Default model: {config.default_model}")
    print(f"Models: {', '.join(config.models)}")
    print(f"LLM: {'enabled' if config.has_llm else 'disabled (heuristic agents)'}")
    print(f"Thinking time: {config.thinking_time}s")
    print(f"Speed: {config.game_speed}")

    errors = config.validate()
    if errors:
        print(f"\nWarnings: {', '.join(errors)}")


@cli.command()
@click.pass_context
def games(ctx):
    """List the registered games."""
    registry = ctx.obj["registry"]
    for game in registry.get_all():
        players = f"{game.min_players}" if game.min_players == game.max_players else f"{game.min_players}-{game.max_players}"
        print(f"  {game.id:<16} {game.name} ({game.category}, {players} players)")
        print(f"  {'':<16} {game.description}")


@cli.group()
def play():
    """Play a match."""


def _ai_players(ctx, models: tuple[str, ...], count: int) -> list[PlayerConfig]:
    config = ctx.obj["config"]
    default = config.default_model if config.has_llm else "heuristic"
    models = list(models) or [default]
    players = []
    for i in range(count):
        model = models[i % len(models)]
        players.append(PlayerConfig(
            id=f"ai{i + 1}",
            name=f"{BOT_NAMES[i % len(BOT_NAMES)]} ({model})",
            ai_model=model,
            personality=PERSONALITIES[i % len(PERSONALITIES)],
        ))
    return players


def _print_leaderboard(bundle):
    print("\nLeaderboard:")
    for entry in bundle.scoring.get_leaderboard():
        print(f"  {entry.rank}. {entry.player_name}: {entry.score:g}")


async def _run(bundle, ask_human, start_round: bool = False):
    manager = bundle.manager
    loop = asyncio.get_running_loop()

    async def human_turn():
        action = await asyncio.to_thread(ask_human)
        manager.submit_human_action(action)

    def on_invalid(event):
        print(f"  Invalid: {', '.join(event.data['errors'])}")
        loop.create_task(human_turn())

    manager.on("human:turn:start", lambda event: loop.create_task(human_turn()))
    manager.on("human:action:invalid", on_invalid)

    await manager.start_game()
    if start_round:
        await manager.start_new_round()
    await manager.join()
    if manager.loop_error:
        print(f"Game stopped: {manager.loop_error}")
    await manager.end_game()


@play.command()
@click.option("--ai", "models", multiple=True, help="AI model id or 'heuristic' (repeatable)")
@click.option("--human", default=None, help="Play against the AI under this name")
@click.option("--speed", type=click.Choice(GAME_SPEEDS), default=None)
@click.option("--seed", type=int, default=None)
@click.pass_context
def connect4(ctx, models, human, speed, seed):
    """Play Connect 4."""
    config = ctx.obj["config"]
    players = _ai_players(ctx, models, 1 if human else 2)
    if human:
        players.insert(0, PlayerConfig(id=HUMAN_ID, name=human))

    bundle = ctx.obj["registry"].create_game(
        "connect4",
        Connect4Config(player_configs=players, thinking_time=config.thinking_time, speed=speed or config.game_speed),
        seed=seed if seed is not None else config.random_seed,
    )
    engine = bundle.engine

    def show_move(event):
        action = event.data["action"]
        player = event.data["new_state"].get_player(action.player_id)
        move = f"column {action.get('column')}" if action.type == "place" else action.type
        print(f"{player.name}: {move}")

    def ask_human() -> Action:
        print(render_board(engine.state.board))
        column = click.prompt("Your column", type=int)
        return Action(HUMAN_ID, "place", {"column": column})

    bundle.manager.on("action:executed", show_move)
    asyncio.run(_run(bundle, ask_human))

    state = engine.get_state()
    print(render_board(state.board))
    if state.winner:
        print(f"\nWinner: {state.get_player(state.winner).name}")
    else:
        print("\nNo winner")
    _print_leaderboard(bundle)


@play.command()
@click.option("--ai", "models", multiple=True, help="AI model id or 'heuristic' (repeatable)")
@click.option("--human", default=None, help="Guess yourself under this name")
@click.option("--rounds", default=3, help="Number of rounds")
@click.option("--difficulty", type=click.Choice(DIFFICULTIES + ["mixed"]), default="medium")
@click.option("--speed", type=click.Choice(GAME_SPEEDS), default=None)
@click.option("--seed", type=int, default=None)
@click.pass_context
def hangman(ctx, models, human, rounds, difficulty, speed, seed):
    """Play Reverse Hangman: guess the prompt behind an AI output."""
    config = ctx.obj["config"]
    players = [PlayerConfig(id=HUMAN_ID, name=human)] if human else _ai_players(ctx, models, max(1, len(models)))

    bundle = ctx.obj["registry"].create_game(
        "reverse-hangman",
        ReverseHangmanConfig(
            player_configs=players,
            thinking_time=config.thinking_time,
            speed=speed or config.game_speed,
            max_rounds=rounds,
            difficulty=difficulty,
        ),
        seed=seed if seed is not None else config.random_seed,
    )
    engine = bundle.engine
    manager = bundle.manager

    def show_round(event):
        print(f"\n=== Round {event.data['round_number']} ({event.data['difficulty']}, {event.data['category']}) ===")
        print(engine.get_output())

    def show_guess(event):
        attempt = event.data["attempt"]
        print(f"  {attempt.guess!r}: {attempt.match_percentage:.0f}% {attempt.match_type}")
        if attempt.match_details:
            print(f"  {attempt.match_details.position_template}")

    def ask_human() -> Action:
        guess = click.prompt("Your guess (or 'skip')")
        if guess.strip().lower() == "skip":
            return Action(HUMAN_ID, "skip")
        return Action(HUMAN_ID, "guess", {"guess": guess})

    manager.on("round:started", show_round)
    manager.on("guess:made", show_guess)
    manager.on("round:won", lambda e: print(f"Solved for {e.data['points']} points"))
    manager.on("round:lost", lambda e: print(f"Out of attempts. The prompt was: {e.data['correct_prompt']}"))
    asyncio.run(_run(bundle, ask_human, start_round=True))
    _print_leaderboard(bundle)


if __name__ == "__main__":
    cli()
