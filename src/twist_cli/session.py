from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .auth import get_api_token
from .client import Channel, TwistClient, User, Workspace, WorkspaceUser, gather
from .config import load_settings, resolve_config_path, update_config
from .errors import NotFound, TwistCliError
from .logging import get_logger
from .refs import resolve_workspace_ref
from .visibility import PublicChannelCache

logger = get_logger(__name__)


class Session:
    """Per-invocation state: the API client and the process-lifetime caches.

    Nothing here is persisted; every ``tw`` run starts with empty caches
    apart from the token and current workspace stored in the config file.
    """

    def __init__(
        self,
        client: Any | None = None,
        *,
        config_path: Path | None = None,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self.config_path = config_path or resolve_config_path()
        self._workspaces: list[Workspace] | None = None
        self._session_user: User | None = None
        self.public_channels = PublicChannelCache(self._fetch_channels)

    @property
    def client(self) -> Any:
        if self._client is None:
            settings = load_settings(self.config_path)
            token = get_api_token(self.config_path)
            self._client = TwistClient(token, base_url=settings.base_url)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()

    async def _fetch_channels(self, workspace_id: int) -> list[Channel]:
        return await self.client.get_channels(workspace_id)

    async def fetch_workspaces(self) -> list[Workspace]:
        if self._workspaces is None:
            self._workspaces = await self.client.get_workspaces()
        return self._workspaces

    def clear_workspace_cache(self) -> None:
        self._workspaces = None

    async def get_session_user(self) -> User:
        if self._session_user is None:
            self._session_user = await self.client.get_session_user()
        return self._session_user

    def clear_user_cache(self) -> None:
        self._session_user = None

    async def get_workspace_users(self, workspace_id: int) -> list[WorkspaceUser]:
        return await self.client.get_workspace_users(workspace_id)

    async def get_user_names(
        self, workspace_id: int, user_ids: Iterable[int]
    ) -> dict[int, str]:
        users = await gather(
            *(
                self.client.get_workspace_user(workspace_id=workspace_id, user_id=uid)
                for uid in sorted(set(user_ids))
            )
        )
        return {u.id: u.name for u in users}

    async def get_current_workspace_id(self, flag_value: int | None = None) -> int:
        if flag_value:
            return flag_value

        settings = load_settings(self.config_path)
        if settings.current_workspace:
            return settings.current_workspace

        user = await self.get_session_user()
        if user.default_workspace:
            update_config(self.config_path, current_workspace=user.default_workspace)
            logger.info(
                "session.current_workspace_from_user",
                workspace_id=user.default_workspace,
            )
            return user.default_workspace

        workspaces = await self.fetch_workspaces()
        if not workspaces:
            raise NotFound("No workspaces found for this user")
        workspace_id = workspaces[0].id
        update_config(self.config_path, current_workspace=workspace_id)
        logger.info("session.current_workspace_defaulted", workspace_id=workspace_id)
        return workspace_id

    async def resolve_workspace_id(
        self, workspace_arg: str | None, workspace_option: str | None
    ) -> int:
        if workspace_arg and workspace_option:
            raise TwistCliError(
                "Cannot specify workspace both as argument and --workspace flag"
            )
        ref = workspace_arg or workspace_option
        if ref:
            workspace = await resolve_workspace_ref(self, ref)
            return workspace.id
        return await self.get_current_workspace_id()
