# veritas/url_extractor.py
import asyncio
import ipaddress
import logging
import re
import socket
from dataclasses import dataclass
from typing import List, Optional, Tuple

import httpx
from bs4 import BeautifulSoup

from .utils import ContentExtractionError, get_hostname, is_valid_url, sanitize_url

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"

UNWANTED_TAGS = ["script", "style", "nav", "header", "footer", "aside", "noscript"]
UNWANTED_SELECTORS = ".ad, .advertisement, .sidebar, .menu, .navigation, .comments, .comment"
MAIN_CONTENT_SELECTORS = [
    "article",
    "main",
    ".content",
    ".post-content",
    ".article-content",
    ".entry-content",
    ".main-content",
    '[role="main"]',
]
MIN_MAIN_CONTENT_CHARS = 200
# A sentence end must lie past this fraction of the cut text to be used as the cut point
SENTENCE_CUT_RATIO = 0.7
DEFAULT_MAX_CONTENT_BYTES = 2 * 1024 * 1024
DEFAULT_MAX_REDIRECTS = 5

_SENTENCE_END_RE = re.compile(r"[.!?]")


@dataclass
class UrlContent:
    url: str
    title: str
    description: str
    content: str
    source: str
    word_count: int


def trim_content(content: str, max_words: int) -> str:
    """Limits text to ``max_words`` words, preferring to stop at a sentence end."""
    if not content or not isinstance(content, str):
        return ""
    words = content.split()
    if len(words) <= max_words:
        return content

    truncated = " ".join(words[:max_words])
    sentence_ends = [m.start() for m in _SENTENCE_END_RE.finditer(truncated)]
    last_sentence_end = sentence_ends[-1] if sentence_ends else -1
    if last_sentence_end > 0 and last_sentence_end > len(truncated) * SENTENCE_CUT_RATIO:
        return truncated[:last_sentence_end + 1]
    return truncated.strip() + "..."


def _meta_content(soup: BeautifulSoup, **attrs) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return tag["content"].strip()
    return None


def extract_title(soup: BeautifulSoup) -> Optional[str]:
    title = _meta_content(soup, property="og:title") or _meta_content(soup, name="twitter:title")
    if title:
        return title
    if soup.title and soup.title.get_text(strip=True):
        return soup.title.get_text(strip=True)
    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        return h1.get_text(strip=True)
    return None


def extract_description(soup: BeautifulSoup) -> Optional[str]:
    return (
        _meta_content(soup, property="og:description")
        or _meta_content(soup, name="twitter:description")
        or _meta_content(soup, name="description")
    )


def extract_main_text(soup: BeautifulSoup) -> str:
    """Text of the first main-content container with real content, else the whole body. Mutates ``soup``."""
    for tag in soup(UNWANTED_TAGS):
        tag.decompose()
    for element in soup.select(UNWANTED_SELECTORS):
        element.decompose()

    for selector in MAIN_CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        text = element.get_text(" ", strip=True)
        if len(text) > MIN_MAIN_CONTENT_CHARS:
            return text

    body = soup.body or soup
    return body.get_text(" ", strip=True)


def parse_html(html: str, url: str, max_words: int) -> UrlContent:
    soup = BeautifulSoup(html, "html.parser")
    # Title and description come from <head>, read them before content cleanup removes anything
    title = extract_title(soup)
    description = extract_description(soup)
    content = trim_content(extract_main_text(soup), max_words)
    return UrlContent(
        url=url,
        title=title or "Untitled",
        description=description or "",
        content=content,
        source=get_hostname(url),
        word_count=len(content.split()) if content else 0,
    )


async def resolve_host(hostname: str, port: int) -> List[str]:
    """All addresses ``hostname`` resolves to, via the event loop's resolver."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, port, type=socket.SOCK_STREAM)
    # IPv6 results may carry a zone suffix ("fe80::1%eth0")
    return [info[4][0].split("%")[0] for info in infos]


def is_public_address(address: str) -> bool:
    """False for loopback, private, link-local, reserved, multicast and unspecified addresses."""
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return not (
        ip.is_private or ip.is_loopback or ip.is_link_local
        or ip.is_reserved or ip.is_multicast or ip.is_unspecified
    )


async def ensure_public_host(url: str):
    """
    Refuses URLs whose host is, or resolves to, a non-public address.

    Raises:
        ContentExtractionError: If the host is missing, cannot be resolved or is not public.
    """
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ContentExtractionError(f"Invalid URL format: {e}")
    host = parsed.host
    if not host:
        raise ContentExtractionError(f"Invalid URL format: {url}")

    try:
        addresses = [str(ipaddress.ip_address(host))]
    except ValueError:
        port = parsed.port or (443 if parsed.scheme == "https" else 80)
        try:
            addresses = await resolve_host(host, port)
        except OSError as e:
            logger.warning(f"Could not resolve {host}: {e}")
            raise ContentExtractionError(f"Web page extraction failed: could not resolve host {host}")

    if not addresses or not all(is_public_address(address) for address in addresses):
        logger.warning(f"Refusing to fetch {url}: {host} resolves to non-public address(es) {addresses}")
        raise ContentExtractionError(f"Web page extraction failed: {host} is not a public address")


async def _read_capped(response: httpx.Response, max_bytes: int) -> bytes:
    body = bytearray()
    async for chunk in response.aiter_bytes():
        body.extend(chunk)
        if len(body) >= max_bytes:
            logger.info(f"Stopped reading {response.url} at {max_bytes} bytes.")
            return bytes(body[:max_bytes])
    return bytes(body)


async def _fetch_page(client: httpx.AsyncClient, url: str, timeout: float, max_bytes: int, max_redirects: int) -> Tuple[str, str]:
    """GETs ``url`` following redirects by hand so every hop is host-checked. Returns ``(final_url, html)``."""
    current_url = url
    for _ in range(max_redirects + 1):
        await ensure_public_host(current_url)
        async with client.stream(
            "GET",
            current_url,
            headers={"User-Agent": BROWSER_USER_AGENT, "Accept": "text/html,application/xhtml+xml"},
            timeout=timeout,
            follow_redirects=False,
        ) as response:
            if response.is_redirect:
                next_url = str(response.url.join(response.headers["Location"]))
                if not is_valid_url(next_url):
                    raise ContentExtractionError(f"Web page extraction failed: redirect to unsupported URL {next_url}")
                logger.debug(f"Redirect {response.status_code}: {current_url} -> {next_url}")
                current_url = next_url
                continue
            response.raise_for_status()
            body = await _read_capped(response, max_bytes)
            return current_url, body.decode(response.charset_encoding or "utf-8", errors="replace")
    raise ContentExtractionError(f"Web page extraction failed: more than {max_redirects} redirects")


async def extract_url_content(
    client: httpx.AsyncClient,
    url: str,
    max_words: int = 500,
    timeout: float = 30.0,
    max_bytes: int = DEFAULT_MAX_CONTENT_BYTES,
    max_redirects: int = DEFAULT_MAX_REDIRECTS,
) -> UrlContent:
    """
    Fetches a web page and extracts its title, description and main text.

    Only public hosts are fetched, on the first request and on every redirect
    hop. At most ``max_bytes`` of the body are read.

    Raises:
        ContentExtractionError: If the URL is invalid or not public, the page
            cannot be fetched or the response is empty.
    """
    if not url or not isinstance(url, str):
        raise ContentExtractionError("Invalid URL format")
    clean_url = sanitize_url(url)
    if not is_valid_url(clean_url):
        raise ContentExtractionError(f"Invalid URL format: {url}")

    logger.info(f"Extracting content from {clean_url}")
    try:
        final_url, html = await _fetch_page(client, clean_url, timeout, max_bytes, max_redirects)
    except httpx.TimeoutException:
        logger.warning(f"Timed out fetching {clean_url} after {timeout}s")
        raise ContentExtractionError(f"Web page extraction failed: request timed out after {timeout}s")
    except httpx.HTTPStatusError as e:
        logger.warning(f"HTTP {e.response.status_code} fetching {clean_url}")
        raise ContentExtractionError(f"Web page extraction failed: HTTP {e.response.status_code}")
    except (httpx.RequestError, httpx.InvalidURL) as e:
        logger.warning(f"Network error fetching {clean_url}: {e}")
        raise ContentExtractionError(f"Web page extraction failed: {e}")

    if not html or not html.strip():
        raise ContentExtractionError("Web page extraction failed: Empty response from server")

    extracted = parse_html(html, final_url, max_words)
    logger.info(f"Extracted {extracted.word_count} words from {extracted.source} ('{extracted.title[:60]}')")
    return extracted


def build_url_analysis_text(extracted: UrlContent, original_url: Optional[str] = None) -> str:
    return (
        f"URL: {original_url or extracted.url}\n"
        f"Title: {extracted.title or 'Unknown'}\n"
        f"Source: {extracted.source or 'Unknown'}\n"
        f"\n"
        f"Content:\n"
        f"{extracted.content or 'No content extracted'}"
    )
