"""Main entry point for VocabAI."""
import argparse
import asyncio
import logging

from vocabai import __version__
from vocabai.app import VocabAIApp
from vocabai.config import ensure_directories, load_settings
from vocabai.logging_config import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="vocabai", description="Conversational vocabulary quiz")
    parser.add_argument("--level", help="CEFR level to practise: A1, A2, B1, B2 or any")
    parser.add_argument("--mode", help="Speech mode: full, concise or silent")
    parser.add_argument("--log-level", help="Override LOG_LEVEL")
    return parser.parse_args(argv)


def main(argv=None) -> None:
    """Run the quiz in the terminal."""
    args = parse_args(argv)
    settings = load_settings()

    # Ensure all required directories exist
    ensure_directories(settings.paths)

    setup_logging(settings.logging, f"Starting VocabAI v{__version__} ...", level=args.log_level)

    app = VocabAIApp(settings, level=args.level, speech_mode=args.mode)
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    main()
