"""领域层模型与协议。

包含：
- models: KnowledgeItem / Message / Document / ChatRequest 等数据模型。
- stores: 历史记录、文档与知识库来源的存储协议（KeyedStore 等）。
- exceptions: 业务异常类型定义。
"""
