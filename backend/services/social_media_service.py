"""
Social Media Service - mock social feed per disaster

There is no live social media integration; the feed is a fixed set of mock
posts served through the TTL cache (5 minutes by default).
"""
import logging
from typing import Callable, Dict, List, Optional

from services.cache_manager import CacheManager

logger = logging.getLogger(__name__)


def generate_mock_posts(disaster_id: str) -> List[Dict[str, str]]:
    """Canned earthquake chatter; the disaster id does not change the content."""
    logger.info(f"Generating mock social media posts for {disaster_id}")
    return [
        {'user': 'citizen_jane', 'post': 'Just felt a huge tremor near downtown! Everyone okay? #earthquake'},
        {'user': 'helper_bot', 'post': 'Official Update: An earthquake of magnitude 5.8 has been reported. '
                                       'Stay clear of damaged structures.'},
        {'user': 'local_news', 'post': "We're getting reports of power outages in the western suburbs "
                                       "following the quake."},
        {'user': 'concerned_sam', 'post': 'My building was shaking like crazy. Is there a shelter nearby? Need info!'},
    ]


class SocialMediaService:
    """Serves cached social feeds for disasters"""

    def __init__(self, cache_manager: CacheManager,
                 generator: Optional[Callable[[str], List[Dict]]] = None,
                 ttl_minutes: int = CacheManager.CACHE_DURATIONS['social-media']):
        """
        Args:
            cache_manager: CacheManager instance for Firebase caching
            generator: Produces the posts for a disaster id on a cache miss
            ttl_minutes: Cache window
        """
        self.cache_manager = cache_manager
        self.generator = generator or generate_mock_posts
        self.ttl_minutes = ttl_minutes

    def get_posts(self, disaster_id: str) -> List[Dict]:
        cache_key = CacheManager.build_key('social-media', disaster_id)
        return self.cache_manager.get_or_compute(
            cache_key,
            lambda: self.generator(disaster_id),
            self.ttl_minutes
        )
