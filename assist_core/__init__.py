"""Assist Core 顶层包。

该包提供智能客服 / 文档问答助手的检索与应答核心，
包括配置加载、领域模型、关键词检索与片段抽取、Provider 适配、
流式输出分流落库与持久化存储等能力。
"""

from assist_core.agents.assistant import AssistantConfig, AssistantEngine

__all__ = ["AssistantConfig", "AssistantEngine"]
