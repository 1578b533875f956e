"""
Tests for SocialMediaService (cached mock feed)
"""
import pytest

from services.cache_manager import CacheManager
from services.social_media_service import SocialMediaService, generate_mock_posts


@pytest.fixture
def service(fake_db, clock, social_generator):
    return SocialMediaService(CacheManager(fake_db, clock=clock), generator=social_generator, ttl_minutes=5)


class TestSocialMediaService:

    def test_generator_runs_once_inside_window(self, service, social_generator, clock):
        first = service.get_posts('d1')
        clock.advance(minutes=4)
        second = service.get_posts('d1')

        assert first == second
        social_generator.assert_called_once_with('d1')

    def test_generator_runs_again_after_window(self, service, social_generator, clock):
        service.get_posts('d1')
        clock.advance(minutes=5)
        service.get_posts('d1')

        assert social_generator.call_count == 2

    def test_disasters_are_cached_separately(self, service, social_generator):
        service.get_posts('d1')
        service.get_posts('d2')

        assert social_generator.call_count == 2

    def test_default_generator_shape(self):
        posts = generate_mock_posts('d1')

        assert len(posts) == 4
        assert all(set(post) == {'user', 'post'} for post in posts)
