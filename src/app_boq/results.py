"""
Результаты операций переноса и состояние запроса переноса.

Конфликт — штатный исход операции хранилища, а не исключение:
API-слой сопоставляет Applied | Conflict | Failed явно.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union


class TransferMode(str, Enum):
    MOVE = "move"
    COPY = "copy"


class ConflictStrategy(str, Enum):
    SUM = "sum"
    REPLACE = "replace"


class TransferState(str, Enum):
    IDLE = "idle"
    REQUESTED = "requested"
    APPLIED = "applied"
    CONFLICT_REPORTED = "conflict_reported"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class Applied:
    """Операция применена. affected_positions — позиции для пересчёта итогов."""

    link_id: Optional[int] = None
    material_id: Optional[int] = None
    affected_positions: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class Conflict:
    """
    Целевая работа уже потребляет тот же материал.

    tgt_link_id может быть None: материал, считавшийся непривязанным,
    успел попасть в другую работу (src_link_id — занявшая его связь).
    src_version / tgt_version — версии связей на момент обнаружения;
    если к разрешению они изменились, конфликт неактуален.
    """

    src_link_id: int
    tgt_link_id: Optional[int]
    material_id: int
    material_name: str = ""
    source_work_name: str = ""
    target_work_name: str = ""
    src_version: Optional[int] = None
    tgt_version: Optional[int] = None


@dataclass(frozen=True)
class Failed:
    reason: str
    details: Dict = field(default_factory=dict)


TransferResult = Union[Applied, Conflict, Failed]


@dataclass
class TransferRequest:
    """Запрос переноса материала. source_work_id=None — материал не привязан."""

    material_id: int
    source_work_id: Optional[int]
    target_work_id: int
    mode: TransferMode = TransferMode.MOVE
    state: TransferState = TransferState.IDLE
    conflict: Optional["ConflictDetails"] = None
    result: Optional[TransferResult] = None


@dataclass(frozen=True)
class ConflictDetails:
    """Данные конфликта для показа пользователю и последующего разрешения."""

    src_link_id: int
    tgt_link_id: Optional[int]
    material_id: int
    material_name: str
    source_work_name: str
    target_work_name: str
    target_work_id: int
    mode: TransferMode
    src_version: Optional[int] = None
    tgt_version: Optional[int] = None

    @classmethod
    def from_conflict(
        cls, conflict: Conflict, target_work_id: int, mode: TransferMode
    ) -> "ConflictDetails":
        return cls(
            src_link_id=conflict.src_link_id,
            tgt_link_id=conflict.tgt_link_id,
            material_id=conflict.material_id,
            material_name=conflict.material_name,
            source_work_name=conflict.source_work_name,
            target_work_name=conflict.target_work_name,
            target_work_id=target_work_id,
            mode=mode,
            src_version=conflict.src_version,
            tgt_version=conflict.tgt_version,
        )

    def to_dict(self) -> Dict:
        return {
            "src_link_id": self.src_link_id,
            "tgt_link_id": self.tgt_link_id,
            "material_id": self.material_id,
            "material_name": self.material_name,
            "source_work_name": self.source_work_name,
            "target_work_name": self.target_work_name,
            "target_work_id": self.target_work_id,
            "mode": self.mode.value,
            "src_version": self.src_version,
            "tgt_version": self.tgt_version,
        }
