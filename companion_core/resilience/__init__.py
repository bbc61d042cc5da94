"""调用弹性层。

- retry: 纯函数式重试判定（RetryPolicy）。
- executor: 带时限、按策略重发的执行器（BoundedExecutor）。
"""

from companion_core.resilience.executor import BoundedExecutor
from companion_core.resilience.retry import RetryPolicy

__all__ = ["BoundedExecutor", "RetryPolicy"]
