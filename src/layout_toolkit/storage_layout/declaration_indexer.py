"""
类型声明索引

扫描合约(及源文件)的直接子节点, 收集所有结构体、枚举和用户定义值类型声明,
生成 声明id -> 声明节点 的查找表。结构体成员不单独建索引。
"""

import logging
from typing import Dict, Iterable

from ..artifacts.ast_nodes import (
    EnumDefinition,
    ReferenceDeclaration,
    StructDefinition,
    UserDefinedValueTypeDefinition,
)

logger = logging.getLogger(__name__)

REFERENCE_DECLARATION_TYPES = (EnumDefinition, StructDefinition, UserDefinedValueTypeDefinition)


def get_reference_declarations(containers: Iterable[object]) -> Dict[int, ReferenceDeclaration]:
    """
    构建声明表

    Args:
        containers: ContractDefinition 或 SourceUnit (任何带 nodes 属性的声明容器)

    Returns:
        声明id -> StructDefinition/EnumDefinition/UserDefinedValueTypeDefinition
    """
    result: Dict[int, ReferenceDeclaration] = {}

    for container in containers:
        for node in getattr(container, "nodes", None) or ():
            if isinstance(node, REFERENCE_DECLARATION_TYPES):
                result[node.id] = node

    logger.debug(f"声明表: {len(result)} 个类型声明")
    return result
