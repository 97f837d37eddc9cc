from __future__ import annotations

from typing import Callable, Dict

from streamkeeper.auth.health import AuthProvider
from streamkeeper.auth.providers.youtube import YouTubeOAuthProvider

_FACTORIES: Dict[str, Callable[..., AuthProvider]] = {
    "youtube": YouTubeOAuthProvider,
}


def get_provider(name: str, **kwargs) -> AuthProvider:
    key = (name or "").strip().lower()
    if key not in _FACTORIES:
        raise ValueError(f"Unknown auth provider: {name}")
    return _FACTORIES[key](**kwargs)
