"""Book Agent 顶层包。

该包提供读书问答助手的流式查询网关，
包括配置加载、领域模型、Provider 路由与缓存、
流式问答编排、会话标题生成与会话持久化等能力。
"""

from book_agent.api.service import QueryRequest, ask, list_models

__all__ = ["QueryRequest", "ask", "list_models"]
