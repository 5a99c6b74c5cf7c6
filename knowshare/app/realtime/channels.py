"""Per-user private channel naming and subscription authorization."""

from uuid import UUID

from knowshare.app.db.context import RequestContext
from knowshare.app.errors import ChannelAuthorizationError

CHANNEL_PREFIX = "private-user-"


def user_channel(user_id: UUID) -> str:
    """Channel name carrying one user's events."""
    return f"{CHANNEL_PREFIX}{user_id}"


def authorize_channel(ctx: RequestContext, channel: str) -> UUID:
    """Allow a subscription only to the caller's own channel.

    Args:
        ctx: Subscriber identity
        channel: Requested channel name

    Returns:
        The user id embedded in the channel

    Raises:
        ChannelAuthorizationError: On a malformed channel or a different user's channel
    """
    if not channel.startswith(CHANNEL_PREFIX):
        raise ChannelAuthorizationError()

    try:
        channel_user_id = UUID(channel[len(CHANNEL_PREFIX) :])
    except ValueError as e:
        raise ChannelAuthorizationError() from e

    if channel_user_id != ctx.user_id:
        raise ChannelAuthorizationError()

    return channel_user_id
