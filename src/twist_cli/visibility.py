from __future__ import annotations

import os
import sys
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import TYPE_CHECKING

from .errors import PRIVATE_CHANNELS_ENV, PRIVATE_CHANNELS_FLAG, PrivateChannelAccess
from .logging import get_logger

if TYPE_CHECKING:
    from .client import Channel

logger = get_logger(__name__)

_TRUTHY = {"1", "true"}

ChannelFetcher = Callable[[int], Awaitable[Sequence["Channel"]]]


def include_private_channels(
    argv: Sequence[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> bool:
    argv = sys.argv if argv is None else argv
    environ = os.environ if environ is None else environ
    if PRIVATE_CHANNELS_FLAG in argv:
        return True
    return environ.get(PRIVATE_CHANNELS_ENV) in _TRUTHY


class PublicChannelCache:
    """Per-workspace set of public channel IDs, filled once per process."""

    def __init__(self, fetch_channels: ChannelFetcher) -> None:
        self._fetch_channels = fetch_channels
        self._by_workspace: dict[int, set[int]] = {}

    async def get_public_channel_ids(self, workspace_id: int) -> set[int]:
        cached = self._by_workspace.get(workspace_id)
        if cached is not None:
            return cached
        channels = await self._fetch_channels(workspace_id)
        public_ids = {channel.id for channel in channels if channel.public}
        self._by_workspace[workspace_id] = public_ids
        logger.debug(
            "visibility.public_channels_loaded",
            workspace_id=workspace_id,
            total=len(channels),
            public=len(public_ids),
        )
        return public_ids

    def clear(self) -> None:
        self._by_workspace.clear()

    async def assert_channel_is_public(
        self, channel_id: int, workspace_id: int
    ) -> None:
        # Missing and private channels are reported the same way.
        if include_private_channels():
            return
        public_ids = await self.get_public_channel_ids(workspace_id)
        if channel_id not in public_ids:
            raise PrivateChannelAccess()
