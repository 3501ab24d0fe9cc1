#!/usr/bin/env python3
"""
fetch_subtitles.py - Batch subtitle downloader with IMDb resolution and NFO caching

For every movie directory under the given folders:
1. Resolve the IMDb ID (directory name → .nfo → manual map → OMDb → ddgr)
2. Cache ID and metadata in a Kodi-compatible .nfo sidecar
3. Download subtitles (subdownloader → subliminal → OpenSubtitles)

OMDb usage is held under the free tier's daily quota (UTC day). With
--survey the tool keeps running: it waits for the quota to reset when it
runs out and rescans the collection every hour.
"""

import sys
import logging
import argparse
from pathlib import Path

from sublingual import __version__
from sublingual.config import DEFAULT_CONFIG_PATH, build_config, load_config
from sublingual.errors import ConfigError
from sublingual.pipeline import MoviePipeline
from sublingual.survey import SurveyScheduler
from sublingual.survey_state import SurveyState

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Download subtitles for movie directories (IMDb-aware, quota-safe)',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python fetch_subtitles.py --folder /Volumes/Movies
  python fetch_subtitles.py --folder /Volumes/Movies --language EN,RO
  python fetch_subtitles.py --folder /Volumes/Movies --dry-run --debug
  python fetch_subtitles.py --folder /Volumes/Movies --survey

Manual IMDb mappings ("Movie Name|tt1234567" per line) are read from
~/.sublingual_imdb_map.
        """
    )
    parser.add_argument('--folder', '-f', action='append', dest='roots', metavar='DIR',
                        help='Movie folder to process (repeatable)')
    parser.add_argument('--language', '-l', dest='languages', metavar='CODES',
                        help='Comma-separated subtitle languages (default: EN)')
    parser.add_argument('--pause', '-p', type=int,
                        help='Seconds to pause between directories (default: 1)')
    parser.add_argument('--omdb-key', dest='omdb_api_key',
                        help='OMDb API key (default: $OMDB_API_KEY)')
    parser.add_argument('--workers', '-w', type=int,
                        help='Accepted for compatibility; processing is sequential')
    parser.add_argument('--dry-run', action='store_true', default=None,
                        help='Resolve identifiers but write nothing and download nothing')
    parser.add_argument('--survey', action='store_true', default=None,
                        help='Run continuously, waiting for API resets between cycles')
    parser.add_argument('--no-web-search', action='store_false', dest='web_search', default=None,
                        help='Never fall back to ddgr web search')
    parser.add_argument('--debug', '-d', action='store_true', default=None,
                        help='Verbose logging')
    parser.add_argument('--config', type=Path, default=DEFAULT_CONFIG_PATH,
                        help=f'YAML configuration file (default: {DEFAULT_CONFIG_PATH})')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser.parse_args(argv)


def log_banner(config, pipeline: MoviePipeline) -> None:
    budget = pipeline.budget
    used = budget.current_count()
    logger.info("=" * 60)
    logger.info(f"Sublingual v{__version__}")
    logger.info("=" * 60)
    for root in config.roots:
        logger.info(f"Folder:      {root}")
    logger.info(f"Languages:   {','.join(config.languages)}")
    logger.info(f"Mode:        {'survey (continuous)' if config.survey else 'single run'}"
                f"{' [DRY-RUN]' if config.dry_run else ''}")
    logger.info(f"API usage:   {used}/{budget.api_limit} used, {budget.remaining()} remaining "
                f"(stops at {budget.budget_limit})")
    logger.info("=" * 60)


def main(argv=None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    overrides = {
        'roots': args.roots,
        'languages': args.languages,
        'pause': args.pause,
        'omdb_api_key': args.omdb_api_key,
        'workers': args.workers,
        'dry_run': args.dry_run,
        'survey': args.survey,
        'web_search': args.web_search,
        'debug': args.debug,
    }
    try:
        config = build_config(load_config(args.config), overrides)
    except ConfigError as e:
        logger.error(str(e))
        return EXIT_CONFIG_ERROR

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    pipeline = MoviePipeline.from_config(config)
    log_banner(config, pipeline)

    scheduler = SurveyScheduler(
        pipeline,
        config.roots,
        pipeline.budget,
        state=SurveyState(config.survey_state_path) if config.survey else None,
        continuous=config.survey,
        pause=config.pause,
    )
    try:
        scheduler.run()
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        scheduler.stats.log_summary("SUMMARY (interrupted)")
        return EXIT_INTERRUPTED

    return 0


if __name__ == '__main__':
    sys.exit(main())
