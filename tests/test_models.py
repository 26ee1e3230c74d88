import pytest
from pydantic import ValidationError

from models import ChannelProfile, Subscription, User, Video


def make_user(**overrides):
    fields = {
        "id": "65f0c0ffee0000000000beef",
        "username": "janed",
        "email": "jane@x.com",
        "full_name": "Jane Doe",
        "password_hash": "$2b$04$hash",
        "avatar_url": "https://media.test/a",
        "refresh_token": "token",
    }
    fields.update(overrides)
    return User(**fields)


def make_video(**overrides):
    fields = {
        "video_url": "https://media.test/v.mp4",
        "thumbnail_url": "https://media.test/t.png",
        "title": "First upload",
        "description": "Hello",
        "duration_seconds": 12.5,
        "owner": "65f0c0ffee0000000000beef",
    }
    fields.update(overrides)
    return Video(**fields)


class TestUser:
    def test_profile_drops_secrets(self):
        profile = make_user().to_profile()

        assert not hasattr(profile, "password_hash")
        assert not hasattr(profile, "refresh_token")
        assert profile.cover_image_url == ""

    def test_has_session(self):
        assert make_user().has_session
        assert not make_user(refresh_token=None).has_session

    def test_channel_profile_defaults(self):
        channel = ChannelProfile.model_validate(make_user().model_dump())

        assert channel.subscribers_count == 0
        assert channel.is_subscribed is False


class TestVideo:
    def test_defaults(self):
        video = make_video()

        assert video.view_count == 0
        assert video.is_published is True

    @pytest.mark.parametrize("field,value", [
        ("view_count", -1),
        ("duration_seconds", -0.5),
        ("title", ""),
    ])
    def test_rejects_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            make_video(**{field: value})


def test_subscription_pairs_are_not_unique():
    first = Subscription(subscriber="a", channel="b")
    second = Subscription(subscriber="a", channel="b")

    assert (first.subscriber, first.channel) == (second.subscriber, second.channel)
    assert first.created_at <= second.created_at
