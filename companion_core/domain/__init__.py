"""领域层模型与协议。

包含：
- models: ChatMessage / CompletionRequest / CompletionResult / DiaryEntry 等统一模型。
- diary: 日记持久化协作方的 DiaryStore 抽象。
- exceptions: 业务异常类型定义。
"""
