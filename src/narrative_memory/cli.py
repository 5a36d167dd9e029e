"""Terminal game loop.

Plays one session against the configured memory runtime. Type ``quit`` (or
send EOF) to end the session; memories persist in the vector store.
"""

import argparse
import asyncio
import logging
import sys

from narrative_memory.core.base import ApplicationError
from narrative_memory.core.config import settings
from narrative_memory.core.logging import get_logger, setup_logging
from narrative_memory.services.game_master import GameSession
from narrative_memory.services.runtime import create_runtime

logger = get_logger(__name__)

QUIT_WORDS = {"quit", "exit", "sair"}


async def _read_line(prompt: str) -> str | None:
    try:
        return (await asyncio.to_thread(input, prompt)).strip()
    except EOFError:
        return None


async def play(session: GameSession) -> None:
    while True:
        player_input = await _read_line("> ")
        if player_input is None or player_input.lower() in QUIT_WORDS:
            print("\nSession ended.")
            return
        if not player_input:
            continue

        print(f"\n--- [Turn {session.turn + 1}] The game master is thinking... ---\n")
        try:
            update = await session.handle_player_action(player_input)
        except ApplicationError as e:
            print(f"[error] {e.message}\n")
            continue

        print(update.master_response)
        if update.memory_results:
            print(f"\n({len(update.memory_results)} memories recalled)")
        print()


async def main() -> int:
    parser = argparse.ArgumentParser(description="Play a narrative game with long-term memory")
    parser.add_argument(
        "--collection",
        default=settings.collection_name,
        help="Memory collection (campaign) to play in",
    )
    parser.add_argument(
        "--backend",
        choices=["neo4j", "memory"],
        default=settings.vector_backend,
        help="Vector store backend",
    )
    parser.add_argument("--verbose", action="store_true", help="Show debug logs")
    args = parser.parse_args()

    setup_logging(level=logging.DEBUG if args.verbose else logging.WARNING)
    config = settings.model_copy(update={"collection_name": args.collection, "vector_backend": args.backend})

    print("--- Narrative game with long-term memory ---")
    print(f"Loading campaign: {config.collection_name}")
    try:
        runtime = await create_runtime(config)
    except ApplicationError as e:
        logger.error("Could not start the game", error=e.message, error_code=e.code.value)
        print(f"Could not start the game: {e.message}", file=sys.stderr)
        return 1

    try:
        await play(runtime.new_session())
    finally:
        await runtime.close()
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
