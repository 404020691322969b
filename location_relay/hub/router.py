"""Hub 消息路由器"""

from typing import List, Optional, Tuple

from .manager import SessionManager
from .session import Session
from ..protocol import Frame
from ..utils import get_logger


class MessageRouter:
    """消息路由器

    把一帧扇出到注册表中的会话。只做非阻塞入队，真正的发送由
    各会话自己的发送任务完成，慢客户端不会拖住广播方。
    """

    def __init__(self, session_manager: SessionManager):
        self.session_manager = session_manager
        self.logger = get_logger("location_relay.hub.router")

    def broadcast(
        self, frame: Frame, exclude: Optional[str] = None
    ) -> Tuple[int, List[Session]]:
        """广播帧

        Args:
            frame: 要广播的帧
            exclude: 不发送的会话ID（通常是发送者）

        Returns:
            (成功入队的会话数, 发送队列溢出的会话列表)

        Raises:
            SerializationException: 帧无法序列化
        """
        text = frame.to_json()
        targets = self.session_manager.snapshot()

        queued = 0
        overflowed: List[Session] = []

        for session_id, session in targets.items():
            # 不发送给自己
            if session_id == exclude or session.disconnected:
                continue

            if session.enqueue(text):
                queued += 1
            else:
                overflowed.append(session)

        self.logger.debug(
            f"广播 {frame.event.value}: 入队 {queued}，溢出 {len(overflowed)}"
        )
        return queued, overflowed

    def send_to(self, session: Session, frame: Frame) -> bool:
        """单独发送一帧给指定会话

        Returns:
            是否成功入队
        """
        return session.enqueue(frame.to_json())
