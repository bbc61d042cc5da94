"""服务端凭证隐藏网关。"""

from companion_core.gateway.app import create_app

__all__ = ["create_app"]
