"""
配置读取

从TOML文件的 [storage_layout] 段读取布局计算配置:

    [storage_layout]
    slot_width = 32
    struct_alignment = "continue"   # 或 "slot_boundary"
    log_level = "INFO"

缺少该段时使用默认值。
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass

import toml

from .exceptions import ConfigError
from .storage_layout.slot_allocator import StructAlignment
from .storage_layout.type_sizes import SLOT_WIDTH

logger = logging.getLogger(__name__)

CONFIG_SECTION = "storage_layout"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class LayoutConfig:
    """布局计算配置"""
    slot_width: int = SLOT_WIDTH
    struct_alignment: StructAlignment = StructAlignment.CONTINUE
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LayoutConfig":
        config = cls()

        if "slot_width" in data:
            slot_width = data["slot_width"]
            if isinstance(slot_width, bool) or not isinstance(slot_width, int) or slot_width <= 0:
                raise ConfigError(f"slot_width 必须为正整数, 实际为 {slot_width!r}")
            config.slot_width = slot_width

        if "struct_alignment" in data:
            config.struct_alignment = parse_struct_alignment(data["struct_alignment"])

        if "log_level" in data:
            level = str(data["log_level"]).upper()
            if level not in LOG_LEVELS:
                raise ConfigError(f"未知日志级别: {data['log_level']!r}")
            config.log_level = level

        return config


def parse_struct_alignment(value: str) -> StructAlignment:
    try:
        return StructAlignment(str(value).lower())
    except ValueError as e:
        choices = ", ".join(a.value for a in StructAlignment)
        raise ConfigError(f"struct_alignment 必须为 {choices} 之一, 实际为 {value!r}") from e


def load_config(config_path: Optional[Path] = None) -> LayoutConfig:
    """
    加载配置

    Args:
        config_path: TOML文件路径, None时返回默认配置

    Raises:
        ConfigError: 文件不存在、TOML语法错误或配置值非法
    """
    if config_path is None:
        return LayoutConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"未找到配置文件 ({config_path})")

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = toml.load(fh)
    except toml.TomlDecodeError as e:
        raise ConfigError(f"配置文件解析失败 {config_path}: {e}") from e

    section = data.get(CONFIG_SECTION)
    if section is None:
        logger.debug(f"{config_path} 中没有 [{CONFIG_SECTION}] 配置, 使用默认值")
        return LayoutConfig()
    if not isinstance(section, dict):
        raise ConfigError(f"[{CONFIG_SECTION}] 必须是一个表")

    return LayoutConfig.from_dict(section)
