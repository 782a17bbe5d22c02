import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

from .errors import ParsesmError
from .extractor import SourceMapExtractor
from .fetcher import HttpFetcher

logger = logging.getLogger(__name__)

PIPED_WIDTH = 4096


def configure_logging(level=logging.INFO):
    """Send progress to stderr; rich drops styling when it is not a TTY."""
    console = Console(stderr=True)
    if not console.is_terminal:
        # one progress record per line when piped
        console = Console(stderr=True, width=PIPED_WIDTH)
    handler = RichHandler(
        console=console,
        show_time=False,
        show_path=False,
    )
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)
    # urllib3 is chatty about every pooled connection
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def main(argv=None):
    """CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog='parsesm',
        description='Recover original sources from the sourcemaps of a deployed web app.')
    parser.add_argument('origin', type=str, help='origin URL including scheme, e.g. https://example.com')
    args = parser.parse_args(argv)

    configure_logging()

    options = {
        'origin': args.origin,
    }

    try:
        with HttpFetcher() as fetcher:
            extractor = SourceMapExtractor(options, fetcher=fetcher)
            extractor.run()
    except ParsesmError as err:
        logger.error(err.message)
        sys.exit(1)


if __name__ == "__main__":
    main()
