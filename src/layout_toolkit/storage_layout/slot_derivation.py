"""
派生槽位计算

mapping值和动态数组元素不在声明位置存储, 其地址由keccak256派生:
- mapping: keccak256(h(k) . p), h为键的编码, p为mapping所在槽位
- 动态数组: 元素从 keccak256(p) 开始连续存放, 小元素按槽位打包
"""

import logging
from typing import Tuple, Union

from eth_utils import keccak, to_bytes, is_0x_prefixed, is_hex

from .type_sizes import SLOT_WIDTH

logger = logging.getLogger(__name__)

KeyValue = Union[str, int, bytes, bool]


def _slot_bytes(slot: int) -> bytes:
    return slot.to_bytes(32, byteorder='big')


def encode_mapping_key(key: KeyValue, key_type: str = "address") -> bytes:
    """
    按Solidity规则编码mapping键

    - address/uintN/bool/enum: 左填充0到32字节
    - intN: 32字节补码
    - bytesN: 右填充0到32字节
    - string/bytes: 原始字节, 不填充; bytes键只有带0x前缀的字符串按十六进制解码
    """
    key_type = key_type.strip()

    if key_type in ("string", "bytes"):
        if isinstance(key, bytes):
            return key
        if key_type == "bytes" and isinstance(key, str) and is_0x_prefixed(key) and is_hex(key):
            return to_bytes(hexstr=key)
        return str(key).encode('utf-8')

    if key_type.startswith("bytes"):
        raw = key if isinstance(key, bytes) else to_bytes(hexstr=key)
        return raw.ljust(32, b'\0')

    if isinstance(key, bytes):
        return key.rjust(32, b'\0')

    if isinstance(key, str):
        key_int = int(key, 16) if key.startswith(("0x", "0X")) else int(key)
    else:
        key_int = int(key)

    signed = key_type.startswith("int")
    return key_int.to_bytes(32, byteorder='big', signed=signed)


def mapping_value_slot(key: KeyValue, base_slot: int, key_type: str = "address") -> int:
    """
    计算mapping派生槽位

    Args:
        key: mapping的key (如地址 "0x123...")
        base_slot: mapping变量的槽位
        key_type: key的类型 (默认address)

    Returns:
        派生槽位号 (十进制整数)
    """
    slot = int.from_bytes(keccak(encode_mapping_key(key, key_type) + _slot_bytes(base_slot)), byteorder='big')
    logger.debug(f"Mapping slot计算: key={str(key)[:10]}..., base_slot={base_slot} -> {slot}")
    return slot


def dynamic_array_data_slot(base_slot: int) -> int:
    """动态数组数据区起始槽位 (数组长度存储在base_slot)"""
    return int.from_bytes(keccak(_slot_bytes(base_slot)), byteorder='big')


def array_element_position(
    base_slot: int,
    index: int,
    element_width: int,
    slot_width: int = SLOT_WIDTH
) -> Tuple[int, int]:
    """
    计算动态数组元素的位置

    Returns:
        (槽位号, 槽内偏移)
    """
    if index < 0:
        raise IndexError(f"数组索引不能为负数: {index}")

    data_slot = dynamic_array_data_slot(base_slot)

    if element_width <= slot_width // 2:
        per_slot = slot_width // element_width
        return data_slot + index // per_slot, (index % per_slot) * element_width

    slots_per_element = -(-element_width // slot_width)
    return data_slot + index * slots_per_element, 0
