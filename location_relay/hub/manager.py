"""Hub 会话管理器"""

import itertools
import secrets
import threading
from typing import Dict, List, Optional

from .session import Session
from ..utils import get_logger


class SessionManager:
    """会话注册表

    session_id -> Session 的映射是 Hub 唯一的共享可变状态。
    插入、删除和广播枚举都在同一把锁内完成，枚举返回快照副本。
    """

    def __init__(self):
        # 会话映射：session_id -> Session
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.RLock()

        # 进程内单调递增序号，保证ID永不复用
        self._sequence = itertools.count(1)

        self.logger = get_logger("location_relay.hub.manager")

    def generate_session_id(self) -> str:
        """生成新的会话ID

        Returns:
            形如 "<16位十六进制>-<序号>" 的不透明ID
        """
        with self._lock:
            seq = next(self._sequence)
        return f"{secrets.token_hex(8)}-{seq}"

    def add_session(self, session: Session) -> bool:
        """添加会话

        Args:
            session: 新会话

        Returns:
            是否添加成功（ID 重复时失败）
        """
        with self._lock:
            if session.session_id in self._sessions:
                self.logger.warning(f"会话 {session.session_id} 已存在，拒绝重复注册")
                return False
            self._sessions[session.session_id] = session
            total = len(self._sessions)

        self.logger.info(f"会话连接: {session.session_id} (当前 {total})")
        return True

    def remove_session(self, session_id: str) -> Optional[Session]:
        """移除会话

        Args:
            session_id: 会话ID

        Returns:
            被移除的会话，不存在时返回 None
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
            total = len(self._sessions)

        if session is not None:
            self.logger.info(f"会话断开: {session_id} (剩余 {total})")
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        """获取会话"""
        with self._lock:
            return self._sessions.get(session_id)

    def snapshot(self) -> Dict[str, Session]:
        """获取所有会话的快照副本"""
        with self._lock:
            return self._sessions.copy()

    def get_all_session_ids(self) -> List[str]:
        """获取所有会话ID"""
        with self._lock:
            return list(self._sessions.keys())

    def get_session_count(self) -> int:
        """获取会话总数"""
        with self._lock:
            return len(self._sessions)

    def get_stats(self) -> Dict[str, int]:
        """获取会话统计"""
        with self._lock:
            sessions = list(self._sessions.values())
        return {
            "total": len(sessions),
            "queued_frames": sum(s.queue.qsize() for s in sessions),
        }
