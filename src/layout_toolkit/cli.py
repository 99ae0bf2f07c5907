#!/usr/bin/env python3
"""根据编译产物中的AST计算合约状态变量的存储布局。

用法示例::

    storage-layout out/Token.sol/Token.json --contract Token
    storage-layout build/contracts --contract Vault --json
    storage-layout artifacts/build-info --contract Pool --config layout.toml

说明：

* 产物需要包含AST (solc 需输出 ``ast``；Foundry 需开启 ``ast = true``)。
* ``--struct-alignment`` 覆盖配置文件中的结构体对齐策略。
"""

import argparse
import json
import logging
import sys
import textwrap
from pathlib import Path
from typing import List, Optional

from .artifacts.artifact_loader import load_artifacts
from .config import load_config, parse_struct_alignment
from .exceptions import LayoutError
from .storage_layout.layout_calculator import StorageLayout, StorageLayoutCalculator
from .storage_layout.slot_allocator import StructAlignment

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def format_layout(layout: StorageLayout) -> str:
    lines = [f"[{layout.contract_name}] 共 {len(layout.pointers)} 个变量, 使用 {layout.slots_used} 个槽位"]
    for pointer in layout.sorted_pointers():
        lines.append(
            f"  slot {pointer.range.start.slot:>4} offset {pointer.range.start.offset:>2}"
            f"  size {layout.width_of(pointer):>3}  {pointer.label}: {pointer.declaration.type_string}"
        )
    return "\n".join(lines)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="storage-layout",
        description="计算合约状态变量的存储槽位布局",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent(
            """
            说明：
              * 可以传入多个产物文件或目录 (目录递归查找 *.json)。
              * 父合约需要在同一批产物中, 缺失的父合约会被跳过并给出警告。
              * 若需机器可读输出，添加 --json。
            """
        ),
    )

    parser.add_argument(
        "artifacts",
        nargs="+",
        type=Path,
        help="编译产物文件或目录",
    )

    parser.add_argument(
        "--contract",
        "-c",
        action="append",
        required=True,
        help="需要计算布局的合约名 (可重复)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="TOML配置文件路径 ([storage_layout] 段)",
    )

    parser.add_argument(
        "--struct-alignment",
        choices=[a.value for a in StructAlignment],
        default=None,
        help="结构体对齐策略, 默认使用配置文件中的值",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="以 JSON 格式输出结果",
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="输出调试日志",
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except LayoutError as exc:
        print(f"加载配置失败: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    if args.struct_alignment:
        config.struct_alignment = parse_struct_alignment(args.struct_alignment)

    log_level = logging.DEBUG if args.verbose else getattr(logging, config.log_level)
    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    try:
        contracts = load_artifacts(args.artifacts)
    except LayoutError as exc:
        print(f"加载编译产物失败: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    missing = [name for name in args.contract if name not in contracts]
    if missing:
        print(f"未找到合约: {', '.join(missing)}", file=sys.stderr)
        raise SystemExit(1)

    calculator = StorageLayoutCalculator.from_config(contracts, config)

    try:
        layouts = [calculator.calculate_layout(name) for name in args.contract]
    except LayoutError as exc:
        print(f"计算存储布局失败: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    if args.json:
        print(json.dumps([layout.to_dict() for layout in layouts], ensure_ascii=False, indent=2))
    else:
        for layout in layouts:
            print(format_layout(layout))
            print()


if __name__ == "__main__":
    main()
