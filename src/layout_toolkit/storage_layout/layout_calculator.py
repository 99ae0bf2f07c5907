"""
存储布局计算器

根据Solidity存储规则计算合约状态变量的槽位布局。

支持:
- 基础类型的连续分配和packed storage
- Struct成员的递归展开
- 继承链中的槽位继承: 按线性化继承链从最基础的合约开始分配,
  游标在合约之间传递, 派生合约的变量排在所有父合约之后
"""

import logging
from typing import Dict, List, Mapping, Optional, Union
from dataclasses import dataclass, field

from ..artifacts.ast_nodes import ContractDefinition, ElementaryVariable, StructVariable, ReferenceDeclaration
from .declaration_indexer import get_reference_declarations
from .slot_allocator import (
    PointerKey,
    SlotCursor,
    StoragePointer,
    StructAlignment,
    allocate_declaration,
)
from .type_sizes import SLOT_WIDTH, StorageSizer

logger = logging.getLogger(__name__)


@dataclass
class ContractStateInfo:
    """单个合约(或整条继承链)的分配结果及结束时的游标"""
    variables: Dict[PointerKey, StoragePointer] = field(default_factory=dict)
    cursor: SlotCursor = field(default_factory=SlotCursor)


def _lookup_contract(contracts, ref, compilation: Optional[str] = None) -> Optional[ContractDefinition]:
    """contracts 可以是 ContractSet (按编译批次查找), 也可以是普通的 id/名称 -> 合约 映射"""
    if hasattr(contracts, "get_contract_node"):
        return contracts.get_contract_node(ref, compilation=compilation)
    return contracts.get(ref)


def get_state_variables(
    contract: ContractDefinition,
    initial_cursor: SlotCursor,
    declarations: Mapping[int, ReferenceDeclaration],
    sizer: Optional[StorageSizer] = None,
    struct_alignment: StructAlignment = StructAlignment.CONTINUE
) -> ContractStateInfo:
    """
    按声明顺序为合约自身声明的状态变量分配存储

    常量、immutable和transient变量不占用存储槽位, 直接跳过。
    """
    if sizer is None:
        sizer = StorageSizer(dict(declarations))

    state = ContractStateInfo(cursor=initial_cursor)

    for node in contract.nodes:
        if not isinstance(node, (ElementaryVariable, StructVariable)):
            continue
        if not node.occupies_storage:
            continue

        state.cursor, pointers = allocate_declaration(
            node, state.cursor, declarations, sizer, struct_alignment
        )
        state.variables.update(pointers)

    return state


def allocate_inheritance_chain(
    contract: Optional[ContractDefinition],
    contracts,
    declarations: Mapping[int, ReferenceDeclaration],
    sizer: Optional[StorageSizer] = None,
    struct_alignment: StructAlignment = StructAlignment.CONTINUE
) -> ContractStateInfo:
    """
    沿线性化继承链分配存储

    linearized_base_contracts 最派生者在前, 这里倒序处理(最基础的合约先分配),
    游标从 slot 0 offset 0 开始依次传递。找不到的父合约记录警告后跳过,
    不影响游标和其余合约。
    父合约只在派生合约所属的编译批次内查找。
    """
    result = ContractStateInfo()

    if contract is None:
        return result

    if sizer is None:
        sizer = StorageSizer(dict(declarations))

    chain = contract.linearized_base_contracts or (contract.id,)

    for ref in reversed(chain):
        base = contract if ref == contract.id else _lookup_contract(contracts, ref, contract.compilation)
        if base is None:
            logger.warning(f"合约 {contract.name} 的父合约 {ref} 不在合约集合中, 跳过其状态变量")
            continue

        state = get_state_variables(base, result.cursor, declarations, sizer, struct_alignment)
        result.cursor = state.cursor
        result.variables.update(state.variables)

    return result


def get_contract_state_variables(
    contract: Optional[ContractDefinition],
    contracts,
    declarations: Mapping[int, ReferenceDeclaration],
    sizer: Optional[StorageSizer] = None,
    struct_alignment: StructAlignment = StructAlignment.CONTINUE
) -> Dict[PointerKey, StoragePointer]:
    """合约(含所有父合约)的 变量 -> 存储指针 映射"""
    return allocate_inheritance_chain(contract, contracts, declarations, sizer, struct_alignment).variables


@dataclass
class StorageLayout:
    """合约的完整存储布局"""
    contract_name: str
    pointers: Dict[PointerKey, StoragePointer]
    cursor: SlotCursor
    slot_width: int = SLOT_WIDTH

    @property
    def slots_used(self) -> int:
        return self.cursor.slot + (1 if self.cursor.offset else 0)

    def sorted_pointers(self) -> List[StoragePointer]:
        """按存储地址排序 (即分配顺序)"""
        return sorted(
            self.pointers.values(),
            key=lambda p: (p.range.start.slot, p.range.start.offset)
        )

    def width_of(self, pointer: StoragePointer) -> int:
        start, end = pointer.range.start, pointer.range.end
        return (end.slot - start.slot) * self.slot_width + end.offset - start.offset

    def find(self, label: str) -> Optional[StoragePointer]:
        """按变量标签查找, 如 'owner' 或 'config.fee'"""
        for pointer in self.pointers.values():
            if pointer.label == label:
                return pointer
        return None

    def to_dict(self) -> Dict:
        storage = []
        for pointer in self.sorted_pointers():
            storage.append({
                "label": pointer.label,
                "id": list(pointer.key) if isinstance(pointer.key, tuple) else pointer.key,
                "type": pointer.declaration.type_string,
                "slot": pointer.range.start.slot,
                "offset": pointer.range.start.offset,
                "size": self.width_of(pointer),
                "range": pointer.range.to_dict(),
                "path": [
                    {"id": segment.declaration_id, "name": segment.name, **segment.start.to_dict()}
                    for segment in pointer.path
                ],
            })
        return {
            "contract": self.contract_name,
            "slot_width": self.slot_width,
            "slots_used": self.slots_used,
            "storage": storage,
        }


class StorageLayoutCalculator:
    """
    存储布局计算器

    实现Solidity存储布局规则:
    1. 状态变量按声明顺序分配槽位
    2. 小于槽位宽度的变量尝试packed storage
    3. Mapping和dynamic array单独占用槽位
    4. Struct展开成员
    5. 继承的父合约变量优先分配

    声明表按编译批次建立 (AST id 只在批次内唯一), 建立后只读;
    每次计算使用独立的游标。
    """

    def __init__(
        self,
        contracts,
        slot_width: int = SLOT_WIDTH,
        struct_alignment: StructAlignment = StructAlignment.CONTINUE
    ):
        """
        Args:
            contracts: ContractSet
            slot_width: 槽位宽度(字节)
            struct_alignment: 结构体对齐策略
        """
        self.logger = logging.getLogger(__name__ + '.StorageLayoutCalculator')
        self.contracts = contracts
        self.slot_width = slot_width
        self.struct_alignment = struct_alignment
        self._declarations: Dict[str, Dict[int, ReferenceDeclaration]] = {}
        self._sizers: Dict[str, StorageSizer] = {}

    def declarations_for(self, compilation: str = "") -> Dict[int, ReferenceDeclaration]:
        """编译批次内的声明表, 首次使用时建立"""
        if compilation not in self._declarations:
            self._declarations[compilation] = get_reference_declarations(
                self.contracts.containers_for(compilation)
            )
        return self._declarations[compilation]

    def sizer_for(self, compilation: str = "") -> StorageSizer:
        if compilation not in self._sizers:
            self._sizers[compilation] = StorageSizer(self.declarations_for(compilation), self.slot_width)
        return self._sizers[compilation]

    @classmethod
    def from_config(cls, contracts, config) -> "StorageLayoutCalculator":
        return cls(contracts, slot_width=config.slot_width, struct_alignment=config.struct_alignment)

    def calculate_layout(self, contract: Union[str, int, ContractDefinition]) -> StorageLayout:
        """
        计算存储布局

        Args:
            contract: 合约名、AST id 或合约声明

        Returns:
            StorageLayout, 合约不存在时为空布局
        """
        if isinstance(contract, ContractDefinition):
            node = contract
        else:
            node = _lookup_contract(self.contracts, contract)
            if node is None:
                self.logger.warning(f"未找到合约 {contract}, 返回空布局")
                return StorageLayout(str(contract), {}, SlotCursor(), self.slot_width)

        state = allocate_inheritance_chain(
            node,
            self.contracts,
            self.declarations_for(node.compilation),
            self.sizer_for(node.compilation),
            self.struct_alignment
        )
        layout = StorageLayout(node.name, state.variables, state.cursor, self.slot_width)

        self.logger.info(
            f"{node.name} 计算完成: {len(layout.pointers)} 个变量, 使用 {layout.slots_used} 个槽位"
        )
        return layout
