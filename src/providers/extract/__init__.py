"""Page extractors.

HtmlPageExtractor parses an episode page with BeautifulSoup and pulls out
the title, poster URL and embedded syncData blob.
"""

from src.providers.extract.html_extractor import HtmlPageExtractor

__all__ = ["HtmlPageExtractor"]
