"""凭证隐藏网关（服务端）。

客户端只发 {messages, model}，网关在服务端附加 DashScope 凭证、施加独立于
客户端的超时，并把上游结果或错误规整为稳定的响应形状：

- 200 {"reply": "..."}
- 405 非 POST
- 500 凭证缺失、请求体无法解析或未分类错误
- 504 服务端超时
- 上游状态码 + {"error", "details"}，details 为上游原始错误体

凭证只在这里读取，从不下发给客户端。
"""

import asyncio
from typing import Callable, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from companion_core.config.settings import settings
from companion_core.domain.exceptions import (
    MissingCredentialError,
    ProviderError,
    RequestTimeout,
)
from companion_core.infrastructure.logging.logger import logger
from companion_core.providers.qwen_client import QwenClient


DEFAULT_MODEL = "qwen-turbo"


class GatewayMessage(BaseModel):
    role: str
    content: str


class ChatPayload(BaseModel):
    messages: List[GatewayMessage]
    model: str = DEFAULT_MODEL


def create_app(cfg=None, provider_factory: Callable = QwenClient) -> FastAPI:
    """创建网关应用。

    cfg 为注入的配置对象（凭证在每次请求时从中读取）；provider_factory(cfg)
    返回带有 generate(messages, model) 协程方法的上游客户端。
    """

    cfg = cfg or settings
    app = FastAPI(title="Companion Gateway")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/api/chat")
    async def chat(request: Request):
        if not getattr(cfg, "qwen_api_key", None):
            return JSONResponse({"error": "QWEN_API_KEY is not configured on server."}, status_code=500)
        # 凭证检查在请求体校验之前
        try:
            payload = ChatPayload.model_validate(await request.json())
        except ValueError as e:
            logger.warning("Gateway rejected request body", extra={"extra": {"error": type(e).__name__}})
            return JSONResponse({"error": "Invalid request body"}, status_code=500)

        client = provider_factory(cfg)
        messages = [m.model_dump() for m in payload.messages]
        try:
            reply, _ = await asyncio.wait_for(
                client.generate(messages, payload.model),
                timeout=cfg.gateway_timeout,
            )
        except (asyncio.TimeoutError, RequestTimeout):
            logger.warning("Gateway upstream timeout", extra={"extra": {"model": payload.model}})
            return JSONResponse({"error": "Request Timeout"}, status_code=504)
        except MissingCredentialError as e:
            return JSONResponse({"error": e.message}, status_code=500)
        except ProviderError as e:
            if e.status is None:
                logger.error("Gateway upstream unreachable", extra={"extra": {"error": e.message}})
                return JSONResponse({"error": e.message or "Internal Server Error"}, status_code=500)
            logger.warning(
                "Gateway upstream error",
                extra={"extra": {"model": payload.model, "status": e.status}},
            )
            return JSONResponse({"error": e.message, "details": e.details}, status_code=e.status)
        except Exception as e:
            logger.exception("Gateway unexpected error")
            return JSONResponse({"error": str(e) or "Internal Server Error"}, status_code=500)
        return {"reply": reply}

    @app.api_route("/api/chat", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
    async def chat_method_not_allowed():
        return JSONResponse({"error": "Method Not Allowed"}, status_code=405, headers={"Allow": "POST"})

    return app


app = create_app()


def run(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """以 uvicorn 启动网关（console script: companion-gateway）。"""

    uvicorn.run(app, host=host or "127.0.0.1", port=port or 8000)
