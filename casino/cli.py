"""
Casino CLI - Command-line interface for the engine.

Usage:
    casino deal [--seed N] [--json]     Shuffle and deal a new game
    casino score <captures.json>        Score two capture piles
    casino serve [--host H] [--port P]  Run the API server
"""

import argparse
import json
import logging
import os
import sys


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Casino - two-player card game engine",
        prog="casino",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("CASINO_LOG_LEVEL", "INFO"),
        help="Logging level (default: $CASINO_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Deal command
    deal_parser = subparsers.add_parser("deal", help="Shuffle and deal a new game")
    deal_parser.add_argument("--seed", type=int, help="Shuffle seed")
    deal_parser.add_argument("--starting-player", type=int, choices=(0, 1), default=0)
    deal_parser.add_argument("--json", action="store_true", help="Print the state as JSON")

    # Score command
    score_parser = subparsers.add_parser("score", help="Score two capture piles")
    score_parser.add_argument(
        "captures_file",
        help='JSON file: [[["10D", "AS"], ...], [["2S"], ...]] (card ids per capture group)',
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")

    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "deal":
        cmd_deal(args)
    elif args.command == "score":
        cmd_score(args)
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


def _cards(cards) -> str:
    return " ".join(str(c) for c in cards) or "-"


def cmd_deal(args):
    """Shuffle and deal a new game."""
    from .engine_core import initialize_game

    state = initialize_game(random_seed=args.seed, starting_player=args.starting_player)

    if args.json:
        from .api.service import state_to_response
        print(state_to_response("local", state).model_dump_json(indent=2))
        return

    print(f"Round {state.round}, player {state.current_player} to play")
    for player, hand in enumerate(state.player_hands):
        print(f"Player {player}: {_cards(hand)}")
    print(f"Table: {_cards(state.loose_cards)}")
    print(f"Deck: {len(state.deck)} cards")


def cmd_score(args):
    """Score two capture piles."""
    from pydantic import ValidationError

    from .api.schemas import ErrorResponse, ScorePreviewRequest
    from .api.service import APIService

    try:
        with open(args.captures_file, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except FileNotFoundError:
        print(f"Error: File not found: {args.captures_file}")
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON: {e}")
        sys.exit(1)

    if isinstance(payload, list):
        payload = {"captures": payload}

    try:
        request = ScorePreviewRequest.model_validate(payload)
    except ValidationError as e:
        print(f"Error: {e}")
        sys.exit(1)

    response = APIService().preview_scores(request)
    if isinstance(response, ErrorResponse):
        print(f"Error: {response.error}")
        sys.exit(1)

    for player, (score, detail) in enumerate(zip(response.scores, response.details)):
        print(
            f"Player {player}: {score} points "
            f"({detail.card_count} cards, {detail.spade_count} spades, {detail.aces} aces)"
        )
    if response.winner is None:
        print("Result: tie")
    else:
        print(f"Winner: player {response.winner}")


def cmd_serve(args):
    """Run the API server."""
    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn not installed. Install with: pip install uvicorn")
        sys.exit(1)

    uvicorn.run(
        "casino.api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
