#!/usr/bin/env python3
"""派生槽位计算测试 (mapping / 动态数组)"""

import sys
import unittest
from pathlib import Path

# 添加src到路径
sys.path.insert(0, str(Path(__file__).parent / "src"))

from eth_utils import keccak

from layout_toolkit.storage_layout.slot_derivation import (
    array_element_position,
    dynamic_array_data_slot,
    encode_mapping_key,
    mapping_value_slot,
)

# keccak256(uint256(0)), keccak256(uint256(1))
KECCAK_SLOT_0 = 0x290decd9548b62a8d60345a988386fc84ba6bc95484008f6362f93160ef3e563
KECCAK_SLOT_1 = 0xb10e2d527612073b26eecdfd717e6a320cf44b4afac2b0732d9fcbe2b7fa0cf6
# keccak256(abi.encode(uint256(0), uint256(0)))
KECCAK_KEY_0_SLOT_0 = 0xad3228b676f7d3cd4284a5443f17f1962b36e491b30a40b2405849e597ba5fb5


class TestMappingSlot(unittest.TestCase):
    """测试mapping派生槽位"""

    def test_known_vector(self):
        self.assertEqual(mapping_value_slot(0, 0, "uint256"), KECCAK_KEY_0_SLOT_0)
        self.assertEqual(mapping_value_slot("0x" + "00" * 20, 0, "address"), KECCAK_KEY_0_SLOT_0)

    def test_address_key(self):
        holder = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
        expected = keccak(bytes.fromhex(holder[2:].rjust(64, "0")) + (3).to_bytes(32, "big"))

        self.assertEqual(mapping_value_slot(holder, 3), int.from_bytes(expected, "big"))

    def test_nested_mapping(self):
        """allowance[owner][spender]"""
        owner = "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb0"
        spender = "0x1234567890123456789012345678901234567890"

        first_level = mapping_value_slot(owner, 4)
        second_level = mapping_value_slot(spender, first_level)

        self.assertNotEqual(first_level, second_level)
        self.assertLess(second_level, 2 ** 256)

    def test_key_encoding(self):
        self.assertEqual(encode_mapping_key(-1, "int256"), b"\xff" * 32)
        self.assertEqual(encode_mapping_key(True, "bool"), (1).to_bytes(32, "big"))
        self.assertEqual(encode_mapping_key("0xdeadbeef", "bytes4"), bytes.fromhex("deadbeef") + b"\0" * 28)
        self.assertEqual(encode_mapping_key("abc", "string"), b"abc")
        self.assertEqual(encode_mapping_key("0x0102", "bytes"), b"\x01\x02")

    def test_bytes_key_without_prefix_is_text(self):
        """不带0x前缀的bytes键按原文编码, 即使字符都是十六进制数字"""
        self.assertEqual(encode_mapping_key("cafe", "bytes"), b"cafe")
        self.assertEqual(encode_mapping_key("0xcafe", "bytes"), b"\xca\xfe")

        expected = keccak(b"cafe" + (2).to_bytes(32, "big"))
        self.assertEqual(mapping_value_slot("cafe", 2, "bytes"), int.from_bytes(expected, "big"))

    def test_string_key_is_not_padded(self):
        expected = keccak(b"abc" + (1).to_bytes(32, "big"))
        self.assertEqual(mapping_value_slot("abc", 1, "string"), int.from_bytes(expected, "big"))


class TestArraySlot(unittest.TestCase):
    """测试动态数组派生槽位"""

    def test_data_slot(self):
        self.assertEqual(dynamic_array_data_slot(0), KECCAK_SLOT_0)
        self.assertEqual(dynamic_array_data_slot(1), KECCAK_SLOT_1)

    def test_full_slot_elements(self):
        self.assertEqual(array_element_position(0, 5, 32), (KECCAK_SLOT_0 + 5, 0))

    def test_packed_elements(self):
        """uint64元素每个槽位4个"""
        self.assertEqual(array_element_position(1, 5, 8), (KECCAK_SLOT_1 + 1, 8))

    def test_multi_slot_elements(self):
        self.assertEqual(array_element_position(0, 2, 64), (KECCAK_SLOT_0 + 4, 0))

    def test_negative_index(self):
        with self.assertRaises(IndexError):
            array_element_position(0, -1, 32)


if __name__ == "__main__":
    unittest.main()
