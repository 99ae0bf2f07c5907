"""
编译产物模块

提供编译器AST的加载与声明节点模型:
- 解析solc compact JSON格式的AST
- 按名称/id查找合约声明
"""

from .ast_nodes import (
    NodeKind,
    ElementaryVariable,
    StructVariable,
    StructDefinition,
    EnumDefinition,
    ContractDefinition,
    SourceUnit,
    OtherNode,
    UserDefinedValueTypeDefinition,
)
from .artifact_loader import ContractSet, load_artifact, load_artifacts, parse_source_unit

__all__ = [
    "NodeKind",
    "ElementaryVariable",
    "StructVariable",
    "StructDefinition",
    "EnumDefinition",
    "ContractDefinition",
    "SourceUnit",
    "OtherNode",
    "UserDefinedValueTypeDefinition",
    "ContractSet",
    "load_artifact",
    "load_artifacts",
    "parse_source_unit",
]
