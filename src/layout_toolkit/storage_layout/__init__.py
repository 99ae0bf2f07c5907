"""
存储布局分析模块

提供Solidity合约存储槽位分配能力:
- 索引结构体/枚举/用户定义值类型声明
- 递归分配状态变量(含结构体成员)的存储范围
- 沿继承链计算完整存储布局
- 计算mapping/动态数组的派生槽位
"""

from .declaration_indexer import get_reference_declarations
from .type_sizes import StorageSizer, TypeClass, SLOT_WIDTH, enum_width
from .slot_allocator import (
    SlotCursor,
    StoragePosition,
    StorageRange,
    StoragePointer,
    PathSegment,
    StructAlignment,
    allocate_value,
    allocate_declaration,
)
from .layout_calculator import (
    ContractStateInfo,
    StorageLayout,
    StorageLayoutCalculator,
    get_state_variables,
    get_contract_state_variables,
    allocate_inheritance_chain,
)
from .slot_derivation import mapping_value_slot, dynamic_array_data_slot, array_element_position

__all__ = [
    "get_reference_declarations",
    "StorageSizer",
    "TypeClass",
    "SLOT_WIDTH",
    "enum_width",
    "SlotCursor",
    "StoragePosition",
    "StorageRange",
    "StoragePointer",
    "PathSegment",
    "StructAlignment",
    "allocate_value",
    "allocate_declaration",
    "ContractStateInfo",
    "StorageLayout",
    "StorageLayoutCalculator",
    "get_state_variables",
    "get_contract_state_variables",
    "allocate_inheritance_chain",
    "mapping_value_slot",
    "dynamic_array_data_slot",
    "array_element_position",
]
