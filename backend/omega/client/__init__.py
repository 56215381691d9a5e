"""Client-side chat state synchronised with the API by polling."""

from .api import ChatReply, OmegaClient
from .store import ChatStore
from .sync import ChatSync

__all__ = ["ChatReply", "ChatStore", "ChatSync", "OmegaClient"]
