"""Executable entrypoint for SquadGuessr."""

from __future__ import annotations

from pathlib import Path
import argparse
import asyncio
import logging

from .errors import RoundFetchFailed
from .game import SquadGuessrGame
from .maps import MapRegistry
from .rounds import HttpRoundSource, RoundSource, StaticRoundSource
from .settings import SettingsManager


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="squadguessr", description="Guess where a map snippet was taken.")
    parser.add_argument("--api-url", help="Base URL of the round API (overrides settings)")
    parser.add_argument("--rounds-file", type=Path, help="Play offline from a local JSON round batch")
    parser.add_argument("--maps-file", type=Path, help="JSON map catalogue replacing the built-in one")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: list[str] | None = None) -> None:
    """Launch the game."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    root = Path(__file__).resolve().parents[2]
    settings_manager = SettingsManager()
    settings = settings_manager.settings
    display_size = settings.display.minimap_pixels

    if args.maps_file:
        maps = MapRegistry.from_json(args.maps_file, display_size=display_size)
    else:
        maps = MapRegistry.builtin(display_size=display_size)

    source: RoundSource
    if args.rounds_file:
        try:
            source = StaticRoundSource.from_file(args.rounds_file)
        except RoundFetchFailed as exc:
            parser.error(f"cannot use --rounds-file: {exc}")
    else:
        source = HttpRoundSource(args.api_url or settings.network.api_base_url, settings.network.request_timeout)

    game = SquadGuessrGame(root=root, round_source=source, maps=maps, settings_manager=settings_manager)
    asyncio.run(game.run())


if __name__ == "__main__":
    main()
