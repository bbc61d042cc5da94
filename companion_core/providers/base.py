"""Provider 抽象接口。

上层（对话管理、日记流水线）不直接依赖具体厂商的 HTTP SDK，而是依赖此协议：

- 每个厂商实现一个客户端（如 GatewayClient、GeminiClient）。
- 负责：将 CompletionRequest 转成具体 API 请求，并把响应解析为 CompletionResult；
  失败时抛出 domain.exceptions 中的类型化异常，供重试策略分类。

这样可以在不改上层代码的前提下接入更多厂商。
"""

from typing import Optional, Protocol

from companion_core.domain.models import CompletionRequest, CompletionResult, GeneratedImage


class CompletionClient(Protocol):
    """文本补全客户端协议。

    - name: Provider 名称，用于日志/统计。
    - complete(req): 执行一次非流式调用，返回统一的 CompletionResult。
    """

    name: str

    async def complete(self, req: CompletionRequest) -> CompletionResult:
        ...


class ImageClient(Protocol):
    """图片生成客户端协议。Provider 拒绝生成时返回 None。"""

    name: str

    async def generate_image(self, prompt: str, aspect_ratio: str = "1:1") -> Optional[GeneratedImage]:
        ...
