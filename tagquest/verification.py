"""
External Verification Module
Discogs and Deezer lookups used as an advisory second opinion on vendor questions

Nothing here writes to a CertaintyStore. Results are shown to the operator,
who still has to answer "yes" for a rule to be created.
"""
import logging
import re
import time
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import requests

from .exceptions import VerificationError
from .models import MetaQuestion, Product, VendorGroup
from .question_generator import percent
from .vendor_aggregator import find_group


USER_AGENT = 'TagQuest/1.0'


class LookupCache:
    """
    Time-limited lookup cache with least-recently-used eviction.

    Owned by whoever creates the clients. Keys carry the source name, so one
    instance can back both clients.
    """

    def __init__(self, ttl_seconds: float = 86400, max_entries: int = 5000,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.clock = clock
        self._entries: 'OrderedDict[str, Tuple[object, float]]' = OrderedDict()

    def _fresh(self, key: str) -> bool:
        item = self._entries.get(key)
        if item is None:
            return False
        if self.clock() - item[1] >= self.ttl_seconds:
            del self._entries[key]
            return False
        return True

    def get(self, key: str, default=None):
        if not self._fresh(key):
            return default
        self._entries.move_to_end(key)
        return self._entries[key][0]

    def set(self, key: str, value):
        self._entries[key] = (value, self.clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self):
        self._entries.clear()

    def __contains__(self, key):
        return self._fresh(key)

    def __len__(self):
        return len(self._entries)


class RateLimiter:
    """Enforces a minimum interval between consecutive requests"""

    def __init__(self, min_interval: float, clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self._last_request: Optional[float] = None

    def wait(self):
        if self._last_request is not None and self.min_interval > 0:
            elapsed = self.clock() - self._last_request
            if elapsed < self.min_interval:
                self.sleep(self.min_interval - elapsed)
        self._last_request = self.clock()


def _cache_key(source: str, artist: str, title: str) -> str:
    return f"{source}:{(artist or '').lower()}::{(title or '').lower()}"


@dataclass(frozen=True)
class ReleaseInfo:
    year: Optional[int] = None
    genre: Optional[str] = None
    style: Optional[str] = None
    genres: Tuple[str, ...] = ()
    styles: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.year is None and not self.genres and not self.genre

    @classmethod
    def from_discogs(cls, data: Dict, genres_key: str = 'genres', styles_key: str = 'styles') -> 'ReleaseInfo':
        genres = tuple(data.get(genres_key) or ())
        styles = tuple(data.get(styles_key) or ())
        return cls(
            year=data.get('year') or None,
            genre=genres[0] if genres else None,
            style=styles[0] if styles else None,
            genres=genres,
            styles=styles,
        )


class DiscogsClient:
    """Release metadata lookups against the Discogs database API"""

    def __init__(self, config: Dict, logger=None, cache: Optional[LookupCache] = None, session=None):
        """
        Initialize the client

        Args:
            config: Dictionary from Config.get_discogs_config()
            logger: Logger instance
            cache: Shared lookup cache, a private one when omitted
            session: requests session, created when omitted
        """
        self.token = config.get('token') or ''
        if not self.token:
            raise VerificationError("Discogs token not configured (set DISCOGS_TOKEN)")
        self.base_url = (config.get('base_url') or 'https://api.discogs.com').rstrip('/')
        self.timeout = config.get('timeout', 15)
        self.logger = logger or logging.getLogger('tagquest.verification')
        self.cache = cache if cache is not None else LookupCache()
        self.limiter = RateLimiter(config.get('rate_limit', 1.0))
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Discogs token={self.token}',
            'User-Agent': USER_AGENT,
        })

    def _get(self, path: str, params: Optional[Dict] = None) -> Optional[Dict]:
        self.limiter.wait()
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            self.logger.warning(f"Discogs request failed for {path}: {e}")
            return None

    def _search(self, query: str, kind: str) -> Optional[List[Dict]]:
        data = self._get('/database/search', {'q': query, 'type': kind, 'per_page': 5})
        if data is None:
            return None
        return data.get('results') or []

    def lookup_release(self, artist: str, title: str) -> ReleaseInfo:
        """
        Find the original release for an artist and album title

        Searches master releases first and reads the master's full record;
        falls back to the release search when no master matches. Request
        failures give an empty ReleaseInfo and are not cached.

        Args:
            artist: Artist name (the product vendor)
            title: Album title

        Returns:
            ReleaseInfo: Year, genres and styles, empty when nothing matched
        """
        key = _cache_key('discogs', artist, title)
        if key in self.cache:
            return self.cache.get(key)

        query = f"{artist} {title}"
        masters = self._search(query, 'master')
        if masters is None:
            return ReleaseInfo()

        if not masters:
            releases = self._search(query, 'release')
            if releases is None:
                return ReleaseInfo()
            info = ReleaseInfo.from_discogs(releases[0], 'genre', 'style') if releases else ReleaseInfo()
            self.cache.set(key, info)
            return info

        master = masters[0]
        info = None
        if master.get('id'):
            detail = self._get(f"/masters/{master['id']}")
            if detail is not None:
                info = ReleaseInfo.from_discogs(detail)
        if info is None:
            info = ReleaseInfo.from_discogs(master, 'genre', 'style')

        self.cache.set(key, info)
        self.logger.debug(f"Discogs: {artist} - {title} -> {info.year} {list(info.genres)}")
        return info


class DeezerClient:
    """Release year lookups against the public Deezer search API"""

    def __init__(self, config: Dict, logger=None, cache: Optional[LookupCache] = None, session=None):
        self.base_url = (config.get('base_url') or 'https://api.deezer.com').rstrip('/')
        self.timeout = config.get('timeout', 15)
        self.logger = logger or logging.getLogger('tagquest.verification')
        self.cache = cache if cache is not None else LookupCache()
        self.limiter = RateLimiter(config.get('rate_limit', 0.1))
        self.session = session or requests.Session()
        self.session.headers.update({'Accept': 'application/json', 'User-Agent': USER_AGENT})

    def _search_year(self, query: str) -> Tuple[bool, Optional[int]]:
        self.limiter.wait()
        try:
            response = self.session.get(f"{self.base_url}/search", params={'q': query, 'limit': 5},
                                        timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            self.logger.warning(f"Deezer request failed for '{query}': {e}")
            return False, None

        for track in data.get('data') or []:
            release_date = (track.get('album') or {}).get('release_date')
            if release_date:
                year = release_date.split('-')[0]
                if year.isdigit():
                    return True, int(year)
        return True, None

    def lookup_year(self, artist: str, title: str) -> Optional[int]:
        """
        Release year for an album, trying an artist/album qualified query
        before a plain one.
        """
        key = _cache_key('deezer', artist, title)
        if key in self.cache:
            return self.cache.get(key)

        ok, year = self._search_year(f'artist:"{artist}" album:"{title}"')
        if ok and year is None:
            ok, year = self._search_year(f"{artist} {title}")
        if not ok:
            return None

        self.cache.set(key, year)
        return year


def decade_of(year: int) -> int:
    return year // 10 * 10


def decade_code_year(code: str) -> Optional[int]:
    """Starting year of a decade code: "80C" -> 1980, "2010c" -> 2010."""
    digits = re.sub(r'\D', '', code or '')
    if not digits:
        return None
    number = int(digits)
    return 1900 + number if number < 100 else number


def genres_agree(suggested: str, found: str) -> bool:
    a, b = (suggested or '').lower(), (found or '').lower()
    if not a or not b:
        return False
    return a == b or a in b or b in a


@dataclass
class VendorAnalysis:
    vendor: str
    sample_size: int
    releases: List[Tuple[Product, ReleaseInfo]] = field(default_factory=list)
    genre_counts: Counter = field(default_factory=Counter)
    style_counts: Counter = field(default_factory=Counter)
    decade_counts: Counter = field(default_factory=Counter)
    genre_confidence: int = 0
    decade_confidence: int = 0

    @property
    def top_genre(self) -> Optional[Tuple[str, int]]:
        top = self.genre_counts.most_common(1)
        return top[0] if top else None

    @property
    def top_style(self) -> Optional[Tuple[str, int]]:
        top = self.style_counts.most_common(1)
        return top[0] if top else None

    @property
    def top_decade(self) -> Optional[Tuple[int, int]]:
        top = self.decade_counts.most_common(1)
        return top[0] if top else None


@dataclass(frozen=True)
class VerificationResult:
    top_value: str
    confidence_percent: int

    @property
    def agrees(self) -> bool:
        return self.confidence_percent > 0


def _result(analysis: VendorAnalysis, tag_type: str) -> Optional[VerificationResult]:
    if tag_type == 'genre':
        top = analysis.top_genre
        return VerificationResult(top[0], analysis.genre_confidence) if top else None
    top = analysis.top_decade
    return VerificationResult(f"{top[0]}s", analysis.decade_confidence) if top else None


class VerificationAdapter:
    """
    Samples a vendor's products against Discogs and reports whether the
    external data agrees with a suggested value.
    """

    def __init__(self, discogs: DiscogsClient, logger=None, sample_size: int = 5,
                 deezer: Optional[DeezerClient] = None, meta_vendors: int = 5, meta_products: int = 3):
        self.discogs = discogs
        self.deezer = deezer
        self.logger = logger or logging.getLogger('tagquest.verification')
        self.sample_size = sample_size
        self.meta_vendors = meta_vendors
        self.meta_products = meta_products

    def analyze_vendor(self, vendor: str, products: List[Product], tag_type: str,
                       suggested_value: str, sample_size: Optional[int] = None) -> VendorAnalysis:
        """
        Look up a sample of a vendor's products and tally what Discogs says

        Each release's genres count once per release. Confidence is the share
        of sampled products carrying the top genre (or decade), and is only
        reported when that top value agrees with the suggestion.

        Args:
            vendor: Vendor (artist) name
            products: Products to sample from, in order
            tag_type: "genre" or "decade"
            suggested_value: Value the question proposes
            sample_size: Override for the adapter's sample size

        Returns:
            VendorAnalysis: Tallies, top values and confidence
        """
        sample = list(products)[:sample_size or self.sample_size]
        analysis = VendorAnalysis(vendor=vendor, sample_size=len(sample))

        for product in sample:
            info = self.discogs.lookup_release(vendor, product.title)
            analysis.releases.append((product, info))

            for genre in set(info.genres) | ({info.genre} if info.genre else set()):
                analysis.genre_counts[genre] += 1
            for style in set(info.styles) | ({info.style} if info.style else set()):
                analysis.style_counts[style] += 1

            year = info.year
            if year is None and self.deezer is not None:
                year = self.deezer.lookup_year(vendor, product.title)
            if year:
                analysis.decade_counts[decade_of(int(year))] += 1

        if tag_type == 'genre' and analysis.top_genre:
            genre, count = analysis.top_genre
            if genres_agree(suggested_value, genre):
                analysis.genre_confidence = min(100, percent(count, analysis.sample_size))

        if tag_type == 'decade' and analysis.top_decade:
            decade, count = analysis.top_decade
            if decade_code_year(suggested_value) == decade:
                analysis.decade_confidence = min(100, percent(count, analysis.sample_size))

        self.logger.info(
            f"Discogs sample for {vendor}: {analysis.sample_size} products, "
            f"top genre {analysis.top_genre}, top decade {analysis.top_decade}"
        )
        return analysis

    def verify(self, vendor: str, value: str, tag_type: str, products: List[Product]) -> Optional[VerificationResult]:
        """
        Advisory check of one vendor/value pair

        Returns:
            VerificationResult or None when Discogs had no data for the tag type
        """
        return _result(self.analyze_vendor(vendor, products, tag_type, value), tag_type)

    def verify_meta_question(self, meta: MetaQuestion,
                             vendor_groups: Dict[str, VendorGroup]) -> Dict[str, Optional[VerificationResult]]:
        """Spot-check the first few vendors of a meta-question with a few products each."""
        results: Dict[str, Optional[VerificationResult]] = {}
        for vendor in meta.vendors[:self.meta_vendors]:
            group = find_group(vendor_groups, vendor)
            if group is None:
                continue
            analysis = self.analyze_vendor(vendor, group.products, meta.tag_type, meta.value,
                                           sample_size=self.meta_products)
            results[vendor] = _result(analysis, meta.tag_type)
        return results
