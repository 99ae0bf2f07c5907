"""
声明节点模型

将编译器输出的AST节点(compact JSON, 按 nodeType 区分)收敛为一组封闭的
带标签变体, 在加载阶段一次性解析完成, 后续布局计算不再临时探测字典字段:

- ElementaryVariable: 非结构体类型的变量(值类型、mapping、数组、string等)
- StructVariable: 类型为结构体本身的变量
- StructDefinition / EnumDefinition: 复合类型声明
- UserDefinedValueTypeDefinition: 用户定义值类型 (type Price is uint128)
- ContractDefinition / SourceUnit: 声明容器
"""

from enum import Enum
from typing import Optional, Tuple, Union
from dataclasses import dataclass, field


class NodeKind(Enum):
    """AST节点类型 (与solc的nodeType取值一致)"""
    VARIABLE_DECLARATION = "VariableDeclaration"
    STRUCT_DEFINITION = "StructDefinition"
    ENUM_DEFINITION = "EnumDefinition"
    USER_DEFINED_VALUE_TYPE_DEFINITION = "UserDefinedValueTypeDefinition"
    CONTRACT_DEFINITION = "ContractDefinition"
    SOURCE_UNIT = "SourceUnit"


@dataclass(frozen=True)
class ElementaryVariable:
    """非结构体类型的变量声明"""
    id: int
    name: str
    type_string: str
    state_variable: bool = False
    constant: bool = False
    mutability: str = "mutable"  # mutable, immutable, constant, transient
    # 引用的用户定义类型 (枚举、结构体数组的元素类型等)
    referenced_declaration: Optional[int] = None

    @property
    def kind(self) -> NodeKind:
        return NodeKind.VARIABLE_DECLARATION

    @property
    def occupies_storage(self) -> bool:
        """是否占用存储槽位 (常量、immutable、transient变量不占用)"""
        return (
            self.state_variable
            and not self.constant
            and self.mutability not in ("constant", "immutable", "transient")
        )


@dataclass(frozen=True)
class StructVariable:
    """类型为结构体的变量声明 (状态变量或结构体成员)"""
    id: int
    name: str
    type_string: str
    referenced_declaration: int
    state_variable: bool = False
    constant: bool = False
    mutability: str = "mutable"

    @property
    def kind(self) -> NodeKind:
        return NodeKind.VARIABLE_DECLARATION

    @property
    def occupies_storage(self) -> bool:
        return (
            self.state_variable
            and not self.constant
            and self.mutability not in ("constant", "immutable", "transient")
        )


VariableNode = Union[ElementaryVariable, StructVariable]


@dataclass(frozen=True)
class StructDefinition:
    """结构体声明, members按声明顺序排列"""
    id: int
    name: str
    canonical_name: str = ""
    members: Tuple[VariableNode, ...] = ()

    @property
    def kind(self) -> NodeKind:
        return NodeKind.STRUCT_DEFINITION


@dataclass(frozen=True)
class EnumDefinition:
    """枚举声明"""
    id: int
    name: str
    canonical_name: str = ""
    members: Tuple[str, ...] = ()

    @property
    def kind(self) -> NodeKind:
        return NodeKind.ENUM_DEFINITION


@dataclass(frozen=True)
class UserDefinedValueTypeDefinition:
    """用户定义值类型, 存储布局与底层类型一致"""
    id: int
    name: str
    canonical_name: str = ""
    underlying_type: str = ""

    @property
    def kind(self) -> NodeKind:
        return NodeKind.USER_DEFINED_VALUE_TYPE_DEFINITION


ReferenceDeclaration = Union[StructDefinition, EnumDefinition, UserDefinedValueTypeDefinition]


@dataclass(frozen=True)
class OtherNode:
    """布局计算不关心的子节点 (函数、事件、修饰器等), 仅保留位置"""
    id: int
    node_type: str
    name: str = ""

    @property
    def kind(self) -> Optional[NodeKind]:
        return None


@dataclass(frozen=True)
class ContractDefinition:
    """
    合约声明

    linearized_base_contracts 为C3线性化后的继承链 (最派生者在前),
    与solc输出一致, 元素为合约的AST id.
    compilation 标识合约所属的编译批次, AST id 只在同一批次内唯一。
    """
    id: int
    name: str
    contract_kind: str = "contract"
    linearized_base_contracts: Tuple[int, ...] = ()
    nodes: Tuple[object, ...] = ()
    compilation: str = ""

    @property
    def kind(self) -> NodeKind:
        return NodeKind.CONTRACT_DEFINITION


@dataclass(frozen=True)
class SourceUnit:
    """源文件: 合约及文件级别的结构体/枚举声明"""
    id: int
    absolute_path: str = ""
    nodes: Tuple[object, ...] = field(default_factory=tuple)
    compilation: str = ""

    @property
    def kind(self) -> NodeKind:
        return NodeKind.SOURCE_UNIT

    @property
    def contracts(self) -> Tuple[ContractDefinition, ...]:
        return tuple(n for n in self.nodes if isinstance(n, ContractDefinition))
