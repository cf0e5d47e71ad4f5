"""LAN Messenger 协议异常定义

本模块定义了协议解析层面的异常。
"""


class ProtocolException(Exception):
    """协议基础异常"""

    pass


class MessageFormatException(ProtocolException):
    """消息格式错误

    当服务端下发的带标签消息无法解析时抛出。
    """

    pass
