"""
编译产物加载器

读取solc编译产物中的AST (compact JSON格式), 转换为 ast_nodes 中的声明节点。

支持的产物格式:
- solc standard-json 输出: {"sources": {path: {"ast": {...}}}}
- Hardhat build-info: {"output": {"sources": ...}}
- 单合约产物 (Truffle / Foundry out/*.json): {"ast": {...}}
- 裸SourceUnit: {"nodeType": "SourceUnit", ...}
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from ..exceptions import ArtifactLoadError
from .ast_nodes import (
    ContractDefinition,
    ElementaryVariable,
    EnumDefinition,
    NodeKind,
    OtherNode,
    SourceUnit,
    StructDefinition,
    StructVariable,
    UserDefinedValueTypeDefinition,
)

logger = logging.getLogger(__name__)

# typeString中的数据位置后缀, 不影响存储大小
LOCATION_SUFFIXES = (" storage ref", " storage pointer", " memory", " calldata")


def normalize_type_string(type_string: str) -> str:
    """去掉typeString中的数据位置修饰, 如 'struct C.S storage ref[2] storage ref' -> 'struct C.S[2]'"""
    result = type_string or ""
    for suffix in LOCATION_SUFFIXES:
        result = result.replace(suffix, "")
    return result.strip()


def _referenced_declaration(type_name: Optional[dict]) -> Optional[int]:
    """沿数组的baseType找到最内层的用户定义类型引用"""
    while type_name:
        node_type = type_name.get("nodeType")
        if node_type == "UserDefinedTypeName":
            return type_name.get("referencedDeclaration")
        if node_type == "ArrayTypeName":
            type_name = type_name.get("baseType")
            continue
        return None
    return None


def parse_variable(node: dict):
    """解析VariableDeclaration节点"""
    type_string = normalize_type_string(node.get("typeDescriptions", {}).get("typeString", ""))
    type_name = node.get("typeName")
    constant = bool(node.get("constant", False))
    mutability = node.get("mutability") or ("constant" if constant else "mutable")
    if node.get("storageLocation") == "transient":
        mutability = "transient"

    common = dict(
        id=node["id"],
        name=node.get("name", ""),
        type_string=type_string,
        state_variable=bool(node.get("stateVariable", False)),
        constant=constant,
        mutability=mutability,
    )

    if (
        type_name
        and type_name.get("nodeType") == "UserDefinedTypeName"
        and type_string.startswith("struct ")
    ):
        return StructVariable(referenced_declaration=type_name["referencedDeclaration"], **common)

    return ElementaryVariable(referenced_declaration=_referenced_declaration(type_name), **common)


def parse_struct(node: dict) -> StructDefinition:
    members = tuple(parse_variable(member) for member in node.get("members", []))
    return StructDefinition(
        id=node["id"],
        name=node.get("name", ""),
        canonical_name=node.get("canonicalName", ""),
        members=members,
    )


def parse_enum(node: dict) -> EnumDefinition:
    return EnumDefinition(
        id=node["id"],
        name=node.get("name", ""),
        canonical_name=node.get("canonicalName", ""),
        members=tuple(m.get("name", "") for m in node.get("members", [])),
    )


def parse_user_defined_value_type(node: dict) -> UserDefinedValueTypeDefinition:
    """解析 type Price is uint128 这类声明, 保留底层类型"""
    underlying = node.get("underlyingType") or {}
    underlying_type = underlying.get("typeDescriptions", {}).get("typeString") or underlying.get("name", "")
    return UserDefinedValueTypeDefinition(
        id=node["id"],
        name=node.get("name", ""),
        canonical_name=node.get("canonicalName", ""),
        underlying_type=normalize_type_string(underlying_type),
    )


def _parse_child(node: dict, compilation: str = ""):
    node_type = node.get("nodeType")
    if node_type == NodeKind.VARIABLE_DECLARATION.value:
        return parse_variable(node)
    if node_type == NodeKind.STRUCT_DEFINITION.value:
        return parse_struct(node)
    if node_type == NodeKind.ENUM_DEFINITION.value:
        return parse_enum(node)
    if node_type == NodeKind.USER_DEFINED_VALUE_TYPE_DEFINITION.value:
        return parse_user_defined_value_type(node)
    if node_type == NodeKind.CONTRACT_DEFINITION.value:
        return parse_contract(node, compilation)
    return OtherNode(id=node.get("id", -1), node_type=node_type or "", name=node.get("name", ""))


def parse_contract(node: dict, compilation: str = "") -> ContractDefinition:
    children = tuple(
        _parse_child(child)
        for child in node.get("nodes", [])
        if child.get("nodeType") != NodeKind.CONTRACT_DEFINITION.value
    )
    return ContractDefinition(
        id=node["id"],
        name=node.get("name", ""),
        contract_kind=node.get("contractKind", "contract"),
        linearized_base_contracts=tuple(node.get("linearizedBaseContracts", [])),
        nodes=children,
        compilation=compilation,
    )


def parse_source_unit(ast: dict, compilation: str = "") -> SourceUnit:
    """
    解析SourceUnit节点

    Args:
        ast: solc compact JSON格式的SourceUnit
        compilation: 所属编译批次, AST id 只在同一批次内唯一

    Returns:
        SourceUnit对象

    Raises:
        ValueError: 节点不是SourceUnit
    """
    if ast.get("nodeType") != NodeKind.SOURCE_UNIT.value:
        raise ValueError(f"期望SourceUnit节点, 实际为 {ast.get('nodeType')!r}")

    return SourceUnit(
        id=ast.get("id", -1),
        absolute_path=ast.get("absolutePath", ""),
        nodes=tuple(_parse_child(child, compilation) for child in ast.get("nodes", [])),
        compilation=compilation,
    )


def _extract_asts(data: dict) -> Tuple[List[dict], bool]:
    """
    根据产物格式取出所有SourceUnit AST

    Returns:
        (AST列表, 是否为一次完整编译的输出)
        standard-json 和 build-info 各自是独立的编译批次;
        单合约产物同属一次编译, 共用全局id空间
    """
    if data.get("nodeType") == NodeKind.SOURCE_UNIT.value:
        return [data], False

    if isinstance(data.get("output"), dict):
        data = data["output"]

    sources = data.get("sources")
    if isinstance(sources, dict):
        asts = []
        for source in sources.values():
            if isinstance(source, dict) and isinstance(source.get("ast"), dict):
                asts.append(source["ast"])
        return asts, True

    ast = data.get("ast")
    if isinstance(ast, dict):
        return [ast], False

    return [], False


def load_artifact(path: Path) -> List[SourceUnit]:
    """
    加载单个编译产物文件

    Raises:
        ArtifactLoadError: 文件不存在或不是合法JSON
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ArtifactLoadError(f"读取编译产物失败 {path}: {e}") from e

    if not isinstance(data, dict):
        logger.warning(f"跳过 {path}: 顶层不是JSON对象")
        return []

    asts, is_compilation = _extract_asts(data)
    compilation = str(path) if is_compilation else ""

    units = []
    for ast in asts:
        try:
            units.append(parse_source_unit(ast, compilation))
        except (KeyError, ValueError) as e:
            logger.warning(f"跳过 {path} 中无法解析的AST: {e}")

    if not units:
        logger.warning(f"{path} 中没有可用的AST (编译时需要输出ast)")
    return units


def load_artifacts(paths: Iterable[Union[str, Path]]) -> "ContractSet":
    """加载多个产物文件或目录 (目录递归查找*.json)"""
    units: List[SourceUnit] = []
    for item in paths:
        item = Path(item)
        if item.is_dir():
            files = sorted(item.rglob("*.json"))
        else:
            files = [item]
        for file in files:
            units.extend(load_artifact(file))
    return ContractSet(units)


class ContractSet:
    """
    一次布局计算会话中的全部合约

    合约按 (编译批次, AST id) 索引: 不同的build-info / standard-json输出
    会复用相同的id, 父合约只在派生合约所属的批次内查找。
    同一个SourceUnit可能出现在多个产物中 (Truffle每个合约产物都带完整AST),
    按 编译批次/absolutePath/id 去重。
    """

    def __init__(self, source_units: Iterable[SourceUnit] = ()):
        self.logger = logging.getLogger(__name__ + '.ContractSet')
        self.source_units: List[SourceUnit] = []
        self.contracts_by_id: Dict[Tuple[str, int], ContractDefinition] = {}
        self.contracts_by_name: Dict[str, List[ContractDefinition]] = {}

        seen = set()
        for unit in source_units:
            key = (unit.compilation, unit.absolute_path, unit.id)
            if key in seen:
                continue
            seen.add(key)
            self.source_units.append(unit)
            for contract in unit.contracts:
                self.add_contract(contract)

        self.logger.debug(f"加载 {len(self.source_units)} 个源文件, {len(self.contracts_by_id)} 个合约")

    def add_contract(self, contract: ContractDefinition) -> None:
        key = (contract.compilation, contract.id)
        existing = self.contracts_by_id.get(key)
        if existing is not None and existing.name != contract.name:
            self.logger.warning(
                f"AST id {contract.id} 冲突: {existing.name} / {contract.name}, 使用后加载的 {contract.name}"
                f" (不同编译批次的产物请以standard-json或build-info格式加载)"
            )
        self.contracts_by_id[key] = contract

        same_name = self.contracts_by_name.setdefault(contract.name, [])
        same_name[:] = [c for c in same_name if (c.compilation, c.id) != key]
        if same_name:
            self.logger.debug(f"合约名重复: {contract.name}, 按名称查找时使用最后加载的定义")
        same_name.append(contract)

    def get_contract_node(
        self,
        ref: Union[int, str],
        compilation: Optional[str] = None
    ) -> Optional[ContractDefinition]:
        """
        按AST id或合约名查找合约声明, 找不到返回None

        Args:
            ref: AST id 或合约名
            compilation: 限定编译批次; None时按id查找优先全局批次, 按名称查找取最后加载的定义
        """
        if isinstance(ref, int):
            if compilation is not None:
                return self.contracts_by_id.get((compilation, ref))
            found = self.contracts_by_id.get(("", ref))
            if found is not None:
                return found
            for (_, contract_id), contract in self.contracts_by_id.items():
                if contract_id == ref:
                    return contract
            return None

        candidates = self.contracts_by_name.get(ref, [])
        if compilation is not None:
            candidates = [c for c in candidates if c.compilation == compilation]
        return candidates[-1] if candidates else None

    @property
    def contracts(self) -> List[ContractDefinition]:
        return list(self.contracts_by_id.values())

    @property
    def compilations(self) -> List[str]:
        return sorted({unit.compilation for unit in self.source_units})

    def containers_for(self, compilation: str) -> List[object]:
        """某一编译批次内的源文件与合约, 声明索引器的输入"""
        return [
            *(unit for unit in self.source_units if unit.compilation == compilation),
            *(c for c in self.contracts_by_id.values() if c.compilation == compilation),
        ]

    def __contains__(self, ref) -> bool:
        return self.get_contract_node(ref) is not None

    def __len__(self) -> int:
        return len(self.contracts_by_id)
