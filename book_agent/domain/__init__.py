"""领域层模型与协议。

包含：
- models: ModelDescriptor / BackendOutput / ThreadInfo / ChatRecord / ResponseEvent。
- exceptions: 业务异常类型定义。
"""
