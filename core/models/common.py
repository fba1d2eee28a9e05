from pydantic import BaseModel
from typing import Literal
import uuid

NoticeLevel = Literal["success", "error", "info"]


def gen_id() -> str:
    return str(uuid.uuid4())


class Notice(BaseModel):
    """Notification transitoire renvoyée à l'interface (toast / barre d'état)."""
    level: NoticeLevel = "info"
    title: str = ""
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.level != "error"
