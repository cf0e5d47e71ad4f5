"""Hub 广播路由器"""

from typing import Optional

from ..monitor import HubMetrics
from ..protocol import format_user_list
from ..utils import get_logger
from .registry import SessionRegistry
from .session import Session


class BroadcastRouter:
    """广播路由器

    广播只把消息放入各接收方的出站队列。某个接收方投递失败时，
    只请求它关闭，清理交给它自己的生命周期管理器，不在遍历中修改注册表。
    """

    def __init__(self, registry: SessionRegistry, metrics: Optional[HubMetrics] = None):
        self.registry = registry
        self.metrics = metrics or HubMetrics()
        self.logger = get_logger("lan_messenger.hub.router")

    def broadcast(self, message: str, exclude_id: Optional[str] = None) -> int:
        """广播给除 exclude_id 以外的所有在线会话

        Args:
            message: 消息文本
            exclude_id: 不接收的会话（通常是发送者），None 表示发给所有人

        Returns:
            成功投递的会话数
        """
        sent_count = 0
        failed_count = 0

        for session in self.registry.snapshot():
            if session.session_id == exclude_id:
                continue
            if session.send(message):
                sent_count += 1
            else:
                failed_count += 1
                # send() 失败时会话已被标记为待关闭
                session.request_close("delivery failed")

        self.metrics.record_broadcast(sent_count, failed_count)
        if failed_count:
            self.logger.debug(
                f"Broadcast finished: {sent_count} delivered, {failed_count} failed"
            )
        return sent_count

    def send_to(self, session: Session, message: str) -> bool:
        """只回复给一个会话"""
        if session.send(message):
            return True
        self.metrics.record_reply_dropped()
        self.logger.debug(f"Reply to {session.label} dropped")
        return False

    def notify_user_list_changed(self) -> int:
        """把最新用户列表发给所有会话（包括新加入者）"""
        message = format_user_list(self.registry.all_display_names())
        return self.broadcast(message, exclude_id=None)
