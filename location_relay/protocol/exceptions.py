"""Location Relay 协议异常定义

本模块定义了协议层面的异常体系。
"""


class ProtocolException(Exception):
    """协议基础异常

    所有帧编解码相关异常的基类。
    """

    pass


class SerializationException(ProtocolException):
    """序列化/反序列化错误

    当帧不是合法 JSON 或无法序列化时抛出。
    """

    pass


class MessageFormatException(ProtocolException):
    """消息格式错误

    当帧结构不正确时抛出（缺少 event 字段、载荷类型错误等）。
    """

    pass
