"""
PairPlay CLI - Command-line interface for the sync engine.

Usage:
    pairplay serve [--host H] [--port P]     Run the sync API
    pairplay demo [--game G] [--seed N]      Play a scripted round between two
                                             in-process partners
"""

import argparse
import asyncio
import logging
import random
import sys

from .config import SyncSettings


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="PairPlay - Partner game session sync",
        prog="pairplay",
    )
    parser.add_argument("--log-level", help="Override PAIRPLAY_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the sync API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Play a scripted round")
    demo_parser.add_argument(
        "--game",
        choices=["two_truths", "this_or_that"],
        default="two_truths",
        help="Which game to play",
    )
    demo_parser.add_argument("--seed", type=int, default=None, help="Seed for prompt draws")

    args = parser.parse_args(argv)

    settings = SyncSettings.from_env()
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        cmd_serve(args, settings)
    elif args.command == "demo":
        cmd_demo(args, settings)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args, settings: SyncSettings):
    """Run the sync API with uvicorn."""
    import uvicorn
    from .api import create_app

    app = create_app(settings=settings)
    print(f"Serving PairPlay Sync API on http://{args.host}:{args.port} ({settings.env})")
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())


def cmd_demo(args, settings: SyncSettings):
    """Play one round between two in-process partners."""
    outcome = asyncio.run(_run_demo(args.game, args.seed, settings))
    if outcome is None:
        print("Round did not finish")
        sys.exit(1)

    print(f"\nScore: {outcome.score}")
    for key, value in outcome.details.items():
        print(f"  {key}: {value}")


async def _run_demo(game: str, seed, settings: SyncSettings):
    from .engine_core.action import Action
    from .engine_core.reducer import Reducer
    from .engine_core.state import GameKind, PartnerLink
    from .session import ChangeFeed, InMemoryHistoryRecorder, InMemorySessionStore, SessionCoordinator

    feed = ChangeFeed()
    store = InMemorySessionStore(feed=feed)
    history = InMemoryHistoryRecorder()
    link = PartnerLink(link_id="demo-link", user_a="alex", user_b="sam")
    kind = GameKind(game)
    rng = random.Random(seed)
    reducer = Reducer(rng=rng)

    def coordinator(user_id: str) -> SessionCoordinator:
        return SessionCoordinator(
            store, link, kind, user_id,
            feed=feed, history=history, reducer=reducer, settings=settings,
        )

    async with coordinator("alex") as alex, coordinator("sam") as sam:
        if kind == GameKind.TWO_TRUTHS_ONE_LIE:
            await alex.start({
                "statements": ["I skied once", "I hate coffee", "I have a twin"],
                "lie_index": 1,
            })
            await sam.refresh()
            print(f"alex wrote: {sam.view.state.statements}")
            _show(await sam.apply(Action.guess(2)), "sam guesses statement 3")
            await alex.refresh()
            _show(await alex.apply(Action.mark_ready("alex", index=alex.view.current_index)), "alex ready")
            _show(await sam.apply(Action.mark_ready("sam", index=sam.view.current_index)), "sam ready")
            await alex.refresh()
            _show(await alex.apply(Action.reveal()), "reveal")
        else:
            await alex.start({"question_count": 5})
            await sam.refresh()
            for index, question in enumerate(alex.view.state.questions):
                print(f"Q{index + 1}: {question['text']} ({' / '.join(question['options'])})")
                _show(await alex.apply(Action.answer(index, rng.choice("AB"))), "alex answers")
                _show(await sam.apply(Action.answer(index, rng.choice("AB"))), "sam answers")

        await alex.refresh()
        result = await alex.consume_terminal()
        _show(result, "save outcome")
        return result.outcome


def _show(result, label: str):
    if result.success:
        changes = "; ".join(result.state_changes) or "no change"
        print(f"{label}: {changes}")
    else:
        print(f"{label}: rejected ({result.error_code.value}) {result.error}")


if __name__ == "__main__":
    main()
