"""
类型分类与存储大小

根据Solidity存储规则, 由变量的typeString计算其存储占用字节数,
并区分"按值分配"的类型与需要展开成员的结构体。

规则:
- 值类型按自身宽度 (bool/uintN/intN/bytesN/address/enum/function)
- 用户定义值类型按底层类型, 枚举按成员数 (超过256个成员需要2字节)
- mapping、动态数组、string、bytes 在声明位置占用一个完整槽位
- 静态数组按元素打包后向上取整到完整槽位
- 结构体变量由分配器逐成员展开; 仅静态结构体数组在此按结构体占用的完整槽位计算
"""

import re
import logging
from enum import Enum
from typing import Dict, Optional

from ..artifacts.ast_nodes import (
    EnumDefinition,
    ReferenceDeclaration,
    StructDefinition,
    StructVariable,
    UserDefinedValueTypeDefinition,
)

logger = logging.getLogger(__name__)

SLOT_WIDTH = 32

INTEGER_PATTERN = re.compile(r"^u?int(\d+)$")
FIXED_BYTES_PATTERN = re.compile(r"^bytes(\d+)$")
FIXED_POINT_PATTERN = re.compile(r"^u?fixed(\d+)x\d+$")


class TypeClass(Enum):
    """分配方式: 作为单个值分配, 或展开结构体成员"""
    ELEMENTARY = "elementary"
    STRUCT = "struct"


class StorageSizer:
    """
    存储大小计算器

    持有声明表, 用于计算静态结构体数组的占用大小;
    未知类型记录警告并按一个完整槽位处理。
    """

    # 固定宽度的值类型 (字节)
    TYPE_SIZES = {
        "bool": 1,
        "address": 20,
        "address payable": 20,
        "string": SLOT_WIDTH,
        "bytes": SLOT_WIDTH,
    }

    def __init__(
        self,
        declarations: Optional[Dict[int, ReferenceDeclaration]] = None,
        slot_width: int = SLOT_WIDTH
    ):
        self.declarations = declarations or {}
        self.slot_width = slot_width
        self.logger = logging.getLogger(__name__ + '.StorageSizer')

    def type_class(self, node) -> TypeClass:
        """结构体变量 (非数组) 需要展开成员, 其余按值分配"""
        if isinstance(node, StructVariable):
            return TypeClass.STRUCT
        return TypeClass.ELEMENTARY

    def storage_size(self, node) -> int:
        """变量在存储中占用的字节数"""
        return self.type_size(node.type_string, getattr(node, "referenced_declaration", None))

    def type_size(self, type_string: str, referenced_declaration: Optional[int] = None) -> int:
        """获取类型大小"""
        type_string = type_string.strip()

        if type_string.endswith("]"):
            return self._array_size(type_string, referenced_declaration)

        if type_string.startswith("mapping("):
            return self.slot_width

        definition = self.declarations.get(referenced_declaration) if referenced_declaration is not None else None
        if isinstance(definition, UserDefinedValueTypeDefinition):
            return self.type_size(definition.underlying_type)

        if type_string in self.TYPE_SIZES:
            return self.TYPE_SIZES[type_string]

        match = INTEGER_PATTERN.match(type_string)
        if match:
            return int(match.group(1)) // 8

        match = FIXED_BYTES_PATTERN.match(type_string)
        if match:
            return int(match.group(1))

        match = FIXED_POINT_PATTERN.match(type_string)
        if match:
            return int(match.group(1)) // 8

        if type_string.startswith("enum "):
            if isinstance(definition, EnumDefinition):
                return enum_width(len(definition.members))
            return 1

        # 合约和接口类型按地址存储
        if type_string.startswith("contract ") or type_string.startswith("interface "):
            return 20

        # 外部函数 = 地址 + 选择器, 内部函数 = 8字节跳转位置
        if type_string.startswith("function "):
            return 24 if " external" in type_string else 8

        if type_string.startswith("struct "):
            return self._struct_width(referenced_declaration, type_string)

        self.logger.warning(f"未知类型 {type_string}, 默认使用{self.slot_width}字节")
        return self.slot_width

    def _array_size(self, type_string: str, referenced_declaration: Optional[int]) -> int:
        """静态数组: 元素打包后取整到槽位; 动态数组: 一个槽位"""
        bracket = type_string.rfind("[")
        base_type = type_string[:bracket].strip()
        length = type_string[bracket + 1:-1].strip()

        if not length:
            return self.slot_width

        count = int(length)
        element_size = self.type_size(base_type, referenced_declaration)

        if element_size <= self.slot_width:
            per_slot = self.slot_width // element_size
            slots = -(-count // per_slot)
        else:
            slots = count * -(-element_size // self.slot_width)

        return slots * self.slot_width

    def _struct_width(self, struct_id: Optional[int], type_string: str) -> int:
        """结构体按成员从新槽位开始打包后占用的完整槽位字节数"""
        # 延迟导入, slot_allocator 依赖本模块
        from .slot_allocator import SlotCursor, allocate_value

        definition = self.declarations.get(struct_id) if struct_id is not None else None
        if not isinstance(definition, StructDefinition):
            self.logger.warning(f"结构体 {type_string} 的声明不在声明表中, 默认使用{self.slot_width}字节")
            return self.slot_width

        cursor = SlotCursor(0, 0)
        for member in definition.members:
            width = self.storage_size(member)
            _, cursor = allocate_value(cursor, width, self.slot_width)

        slots = cursor.slot + (1 if cursor.offset else 0)
        return max(slots, 1) * self.slot_width


def enum_width(member_count: int) -> int:
    """容纳 member_count 个取值所需的最小字节数"""
    width = 1
    while member_count > 256 ** width:
        width += 1
    return width

