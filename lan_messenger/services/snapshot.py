"""用户快照持久化服务"""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence

from ..exceptions import PersistenceError
from ..protocol import User
from ..utils import get_logger


class SnapshotStore(ABC):
    """快照持久化接口"""

    @abstractmethod
    def persist(self, users: Sequence[User]) -> None:
        """保存用户快照

        Raises:
            PersistenceError: 保存失败
        """
        pass


class JsonSnapshotStore(SnapshotStore):
    """JSON 文件快照

    每次保存整体覆盖文件：先写临时文件再原子替换，读者不会看到半个文件。
    """

    def __init__(self, file_path: str = "users.json"):
        self.file_path = Path(file_path)
        self.logger = get_logger("lan_messenger.services.snapshot")

    def persist(self, users: Sequence[User]) -> None:
        data = [user.to_dict() for user in users]
        tmp_path = self.file_path.with_name(self.file_path.name + ".tmp")

        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.file_path)
        except OSError as e:
            self.logger.error(f"Error saving users to {self.file_path}: {e}")
            raise PersistenceError(
                f"Cannot write {self.file_path}", details={"reason": str(e)}
            ) from e

        self.logger.info(f"User data saved to {self.file_path} ({len(data)} users)")

    def load(self) -> List[User]:
        """读取上一次保存的快照，文件不存在时返回空列表"""
        if not self.file_path.exists():
            return []
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(
                f"Cannot read {self.file_path}", details={"reason": str(e)}
            ) from e
        return [User.from_dict(item) for item in data]
