"""
LAN Messenger 会话注册表

在线会话的权威索引：主索引 session_id -> Session，
以及按显示名（大小写不敏感）查找的二级索引。
"""

import threading
from typing import Dict, List, Optional

from ..exceptions import DuplicateIdentityError
from ..protocol import User
from ..utils import get_logger
from .session import Session


def _name_key(name: str) -> str:
    return name.casefold()


class SessionRegistry:
    """会话注册表

    所有读写都在同一把锁下完成，临界区内只做字典操作，不做任何 I/O。
    会话在注册表中当且仅当它可以接收广播。
    """

    def __init__(self):
        self._lock = threading.Lock()
        # 主索引：session_id -> Session（保持加入顺序）
        self._sessions: Dict[str, Session] = {}
        # 名称索引：规范化显示名 -> [session_id, ...]，显示名允许重复
        self._names: Dict[str, List[str]] = {}
        self.logger = get_logger("lan_messenger.hub.registry")

    def register(self, session: Session) -> None:
        """注册会话

        Raises:
            DuplicateIdentityError: 同一 session_id 重复注册
        """
        with self._lock:
            if session.session_id in self._sessions:
                raise DuplicateIdentityError(session.session_id)
            self._sessions[session.session_id] = session
            if session.display_name is not None:
                key = _name_key(session.display_name)
                self._names.setdefault(key, []).append(session.session_id)

        self.logger.debug(f"Registered session {session.session_id} ({session.label})")

    def unregister(self, session_id: str) -> Optional[Session]:
        """注销会话，重复注销不报错

        Returns:
            被移除的会话，不存在时返回 None
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return None
            if session.display_name is not None:
                key = _name_key(session.display_name)
                ids = self._names.get(key)
                if ids is not None:
                    ids.remove(session_id)
                    if not ids:
                        del self._names[key]

        self.logger.debug(f"Unregistered session {session_id} ({session.label})")
        return session

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def snapshot(self) -> List[Session]:
        """当前在线会话的快照（按加入顺序）"""
        with self._lock:
            return list(self._sessions.values())

    def find_by_name(self, name: str) -> Optional[Session]:
        """按显示名查找，大小写不敏感，重名时返回最早加入的会话"""
        if name is None:
            return None
        with self._lock:
            ids = self._names.get(_name_key(name))
            if not ids:
                return None
            return self._sessions.get(ids[0])

    def all_display_names(self) -> List[str]:
        with self._lock:
            return [
                session.display_name
                for session in self._sessions.values()
                if session.display_name is not None
            ]

    def users(self) -> List[User]:
        """带坐标的在线用户列表，随会话离开自动消失"""
        return [user for user in (s.to_user() for s in self.snapshot()) if user]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "sessions": len(self._sessions),
                "distinct_names": len(self._names),
                "geo_sessions": sum(
                    1 for s in self._sessions.values() if s.location is not None
                ),
            }
