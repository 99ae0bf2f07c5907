"""
槽位分配器

按Solidity存储规则为单个状态变量分配存储范围:
1. 当前槽位剩余空间足够时, 紧接着当前偏移打包 (packed storage)
2. 剩余空间不足时, 从下一个槽位的偏移0开始, 不跨槽位拆分
3. 结构体不直接分配, 按声明顺序递归展开成员, 共用同一个游标

所有函数都是纯函数: 输入游标, 返回新的游标与分配结果, 不修改任何输入。
"""

import logging
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple, Union
from dataclasses import dataclass

from ..artifacts.ast_nodes import ReferenceDeclaration, StructDefinition
from ..exceptions import UnresolvedDeclarationError
from .type_sizes import SLOT_WIDTH, StorageSizer, TypeClass

logger = logging.getLogger(__name__)


class StructAlignment(Enum):
    """
    结构体成员的起始对齐策略

    CONTINUE: 成员从当前游标继续打包, 不对齐到新槽位 (默认)
    SLOT_BOUNDARY: 结构体从新槽位开始, 其后的变量也从新槽位开始 (solc规则)
    """
    CONTINUE = "continue"
    SLOT_BOUNDARY = "slot_boundary"


@dataclass(frozen=True)
class StoragePosition:
    """存储地址: 槽位号 + 槽内字节偏移 (0为低位起点)"""
    slot: int
    offset: int

    def to_dict(self) -> Dict[str, int]:
        return {"slot": self.slot, "offset": self.offset}


@dataclass(frozen=True)
class SlotCursor:
    """分配游标, 指向下一个可用的存储地址"""
    slot: int = 0
    offset: int = 0

    def __post_init__(self):
        if self.slot < 0 or self.offset < 0:
            raise ValueError(f"非法游标: slot={self.slot}, offset={self.offset}")

    @property
    def position(self) -> StoragePosition:
        return StoragePosition(self.slot, self.offset)

    def next_slot(self) -> "SlotCursor":
        return SlotCursor(self.slot + 1, 0)

    def align(self) -> "SlotCursor":
        """对齐到槽位起点 (已在起点则不变)"""
        return self.next_slot() if self.offset else self


@dataclass(frozen=True)
class StorageRange:
    """
    存储范围 [start, end)

    end为开区间端点: 占满槽位末尾的值, end.offset 等于槽位宽度且与最后一个字节同槽。
    """
    start: StoragePosition
    end: StoragePosition

    @property
    def slot(self) -> int:
        return self.start.slot

    @property
    def offset(self) -> int:
        return self.start.offset

    @property
    def slots(self) -> range:
        """范围涉及的所有槽位"""
        return range(self.start.slot, self.end.slot + 1)

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {"from": self.start.to_dict(), "to": self.end.to_dict()}


@dataclass(frozen=True)
class PathSegment:
    """所属结构体实例: 结构体变量的声明及其起始地址"""
    declaration_id: int
    name: str
    start: StoragePosition


Path = Tuple[PathSegment, ...]

# 顶层变量以声明id为键; 结构体成员以 (外层结构体变量id..., 成员id) 为键,
# 同一结构体类型被多个变量使用时成员不会互相覆盖
PointerKey = Union[int, Tuple[int, ...]]


@dataclass(frozen=True)
class StoragePointer:
    """变量声明及其分配到的存储范围"""
    declaration: object
    range: StorageRange
    path: Path = ()

    @property
    def label(self) -> str:
        """带结构体前缀的变量名, 如 config.owner"""
        return ".".join([segment.name for segment in self.path] + [self.declaration.name])

    @property
    def key(self) -> PointerKey:
        if not self.path:
            return self.declaration.id
        return tuple(segment.declaration_id for segment in self.path) + (self.declaration.id,)


def allocate_value(
    cursor: SlotCursor,
    width: int,
    slot_width: int = SLOT_WIDTH
) -> Tuple[StorageRange, SlotCursor]:
    """
    为宽度为width字节的值分配存储范围

    Args:
        cursor: 当前游标
        width: 值的字节宽度
        slot_width: 槽位宽度

    Returns:
        (分配到的范围, 下一个游标)

    Raises:
        ValueError: width不为正数, 或游标偏移不小于槽位宽度
    """
    if width <= 0:
        raise ValueError(f"存储宽度必须为正数: {width}")
    if cursor.offset >= slot_width:
        raise ValueError(f"游标偏移 {cursor.offset} 超出槽位宽度 {slot_width}")

    start = cursor
    if cursor.offset and width > slot_width - cursor.offset:
        # 剩余空间不足, 移到下一个槽位
        start = cursor.next_slot()

    total = start.offset + width
    end = StoragePosition(
        slot=start.slot + (total - 1) // slot_width,
        offset=(total - 1) % slot_width + 1
    )

    if total < slot_width:
        next_cursor = SlotCursor(start.slot, total)
    else:
        # 正好占满或跨越多个槽位, 下一个值从新槽位开始
        next_cursor = SlotCursor(end.slot + 1, 0)

    return StorageRange(start.position, end), next_cursor


def allocate_declaration(
    node,
    cursor: SlotCursor,
    declarations: Mapping[int, ReferenceDeclaration],
    sizer: Optional[StorageSizer] = None,
    struct_alignment: StructAlignment = StructAlignment.CONTINUE,
    path: Path = ()
) -> Tuple[SlotCursor, Dict[PointerKey, StoragePointer]]:
    """
    为一个变量声明分配存储 (结构体递归展开成员)

    Args:
        node: ElementaryVariable 或 StructVariable
        cursor: 分配前的游标
        declarations: 声明表 (声明id -> 结构体/枚举声明)
        sizer: 类型大小计算器
        struct_alignment: 结构体对齐策略
        path: 所属的外层结构体链

    Returns:
        (分配后的游标, PointerKey -> StoragePointer)

    Raises:
        UnresolvedDeclarationError: 结构体声明不在声明表中
    """
    if sizer is None:
        sizer = StorageSizer(dict(declarations))

    if sizer.type_class(node) is not TypeClass.STRUCT:
        storage_range, next_cursor = allocate_value(cursor, sizer.storage_size(node), sizer.slot_width)
        pointer = StoragePointer(declaration=node, range=storage_range, path=path)
        logger.debug(
            f"分配 {pointer.label}: slot {storage_range.start.slot} offset {storage_range.start.offset}"
            f" -> slot {storage_range.end.slot} offset {storage_range.end.offset}"
        )
        return next_cursor, {pointer.key: pointer}

    definition = declarations.get(node.referenced_declaration)
    if not isinstance(definition, StructDefinition):
        raise UnresolvedDeclarationError(node.referenced_declaration, node.name)

    if struct_alignment is StructAlignment.SLOT_BOUNDARY:
        cursor = cursor.align()

    member_path = path + (PathSegment(node.id, node.name, cursor.position),)
    pointers: Dict[PointerKey, StoragePointer] = {}
    for member in definition.members:
        cursor, member_pointers = allocate_declaration(
            member, cursor, declarations, sizer, struct_alignment, member_path
        )
        pointers.update(member_pointers)

    if struct_alignment is StructAlignment.SLOT_BOUNDARY:
        cursor = cursor.align()

    return cursor, pointers
