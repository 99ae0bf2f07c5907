"""
Layout Toolkit - 合约存储布局计算工具

模块:
- artifacts: 编译产物AST加载
- storage_layout: 声明索引、槽位分配、继承链布局、派生槽位
"""

from .artifacts import ContractSet, load_artifacts
from .config import LayoutConfig, load_config
from .exceptions import LayoutError, UnresolvedDeclarationError, ArtifactLoadError, ConfigError
from .storage_layout import (
    StorageLayout,
    StorageLayoutCalculator,
    StructAlignment,
    get_reference_declarations,
    get_contract_state_variables,
)

__version__ = "1.0.0"

__all__ = [
    "ContractSet",
    "load_artifacts",
    "LayoutConfig",
    "load_config",
    "LayoutError",
    "UnresolvedDeclarationError",
    "ArtifactLoadError",
    "ConfigError",
    "StorageLayout",
    "StorageLayoutCalculator",
    "StructAlignment",
    "get_reference_declarations",
    "get_contract_state_variables",
]
