import logging
from dataclasses import dataclass

from rich.console import Console

from .decoder import load_sourcemap
from .discover import find_scripts
from .errors import BadPathError, ParsesmError, UnsupportedSourceMap
from .fetcher import HttpFetcher
from .writer import OUTPUT_ROOT, OutputWriter

logger = logging.getLogger(__name__)


@dataclass
class ExtractionSummary:
    scripts: int = 0
    maps_fetched: int = 0
    maps_decoded: int = 0
    maps_rejected: int = 0
    files_written: int = 0
    missing_contents: int = 0
    write_errors: int = 0
    origin_reachable: bool = True


class SourceMapExtractor(object):
    """Primary SourceMapExtractor class. Feed this options."""

    def __init__(self, options, fetcher=None, writer=None, console=None):
        if not options.get('origin'):
            raise ParsesmError("origin must be set in options.")
        self._origin = options['origin']
        self._load_local_source_contents = options.get('load_local_source_contents', True)
        self._fetcher = fetcher if fetcher is not None else HttpFetcher()
        self._writer = writer if writer is not None else OutputWriter(
            options.get('output_directory', OUTPUT_ROOT))
        self._console = console if console is not None else Console()

    def run(self) -> ExtractionSummary:
        """Run the extraction pipeline for the configured origin."""
        summary = ExtractionSummary()
        logger.info(f"attempting to find sourcemaps for {self._origin}")

        body = self._fetcher.get(self._origin)
        if body is None:
            summary.origin_reachable = False
            return summary

        map_urls = find_scripts(self._origin, body)
        summary.scripts = len(map_urls)
        logger.info(f"found {summary.scripts} relative javascript files")

        js_maps = self.fetch_map_files(map_urls)
        summary.maps_fetched = len(js_maps)
        if not js_maps:
            self._report_no_sourcemaps(summary.scripts)
            return summary

        logger.info(f"found {summary.maps_fetched}/{summary.scripts} sourcemaps for javascript files")

        for map_url, map_body in js_maps:
            try:
                sourcemap = load_sourcemap(
                    map_body.encode('utf-8'),
                    load_local_source_contents=self._load_local_source_contents,
                )
            except UnsupportedSourceMap as e:
                summary.maps_rejected += 1
                logger.debug(f"Skipping {map_url}: {e.message}")
                continue

            summary.maps_decoded += 1
            self._write_sources(sourcemap, summary)

        return summary

    def fetch_map_files(self, map_urls):
        """GET each map URL in document order, keeping the successful ones."""
        bodies = []
        for map_url in map_urls:
            map_body = self._fetcher.get(map_url)
            if map_body is not None:
                bodies.append((map_url, map_body))
        return bodies

    def _write_sources(self, sourcemap, summary):
        for source, content in sourcemap.iter_sources():
            if content is None:
                summary.missing_contents += 1
                continue
            try:
                self._writer.write(self._origin, source, content)
            except BadPathError as e:
                summary.write_errors += 1
                logger.error(e.message)
            except (OSError, ValueError) as e:
                summary.write_errors += 1
                logger.error(f"Could not write source {source}: {e}")
            else:
                summary.files_written += 1

    def _report_no_sourcemaps(self, script_count):
        self._console.print(
            f"no sourcemaps found for [bold]{script_count}[/bold] javascript files. exiting"
        )
