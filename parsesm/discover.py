import logging

from bs4 import BeautifulSoup, SoupStrainer

logger = logging.getLogger(__name__)


def is_host_relative(src: str) -> bool:
    """True for `/path` style references, false for `//cdn/...` and absolute URLs."""
    return src.startswith("/") and not src.startswith("//")


def map_url_for(origin: str, src: str) -> str:
    # purely textual, every ".js" occurrence is rewritten
    return origin + src.replace(".js", ".js.map")


def find_scripts(origin: str, body: str):
    """Return source map URLs for the same-origin scripts in an HTML document.

    Only `<script src>` values that are host-relative are kept; order follows
    the document and duplicates are preserved.
    """
    script_strainer = SoupStrainer("script", src=True)
    soup = BeautifulSoup(body, "html.parser", parse_only=script_strainer)

    map_urls = []
    for script in soup.find_all("script"):
        source = script.get("src")
        if not source:
            continue
        if is_host_relative(source):
            map_urls.append(map_url_for(origin, source))
        else:
            logger.debug(f"Ignoring non-relative script {source}")
    return map_urls
