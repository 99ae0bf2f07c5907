#!/usr/bin/env python3
"""
命令行与配置测试

1. load_config - TOML配置读取与校验
2. storage-layout 命令 - 文本/JSON输出、错误退出
"""

import io
import sys
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

# 添加src到路径
sys.path.insert(0, str(Path(__file__).parent / "src"))

from layout_toolkit.cli import main
from layout_toolkit.config import LayoutConfig, load_config
from layout_toolkit.exceptions import ConfigError
from layout_toolkit.storage_layout import StructAlignment

from test_artifact_loader import build_source_ast


class TestLoadConfig(unittest.TestCase):
    """测试配置读取"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, text):
        path = self.root / "layout.toml"
        path.write_text(text, encoding="utf-8")
        return path

    def test_defaults(self):
        config = load_config(None)
        self.assertEqual(config, LayoutConfig())
        self.assertEqual(config.slot_width, 32)
        self.assertIs(config.struct_alignment, StructAlignment.CONTINUE)

    def test_section_values(self):
        path = self.write(
            '[storage_layout]\nslot_width = 16\nstruct_alignment = "slot_boundary"\nlog_level = "debug"\n'
        )

        config = load_config(path)

        self.assertEqual(config.slot_width, 16)
        self.assertIs(config.struct_alignment, StructAlignment.SLOT_BOUNDARY)
        self.assertEqual(config.log_level, "DEBUG")

    def test_missing_section_uses_defaults(self):
        path = self.write('[rpc_endpoints]\nmainnet = "http://localhost:8545"\n')
        self.assertEqual(load_config(path), LayoutConfig())

    def test_missing_file(self):
        with self.assertRaises(ConfigError):
            load_config(self.root / "missing.toml")

    def test_invalid_values(self):
        for text in [
            '[storage_layout]\nslot_width = 0\n',
            '[storage_layout]\nslot_width = "32"\n',
            '[storage_layout]\nstruct_alignment = "aligned"\n',
            '[storage_layout]\nlog_level = "LOUD"\n',
        ]:
            with self.assertRaises(ConfigError, msg=text):
                load_config(self.write(text))

    def test_invalid_toml(self):
        with self.assertRaises(ConfigError):
            load_config(self.write("[storage_layout\n"))


class TestCommandLine(unittest.TestCase):
    """测试storage-layout命令"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.artifact = self.root / "Vault.json"
        self.artifact.write_text(json.dumps({"contractName": "Vault", "ast": build_source_ast()}), encoding="utf-8")

    def tearDown(self):
        self.tmp.cleanup()

    def run_cli(self, *argv):
        stdout, stderr = io.StringIO(), io.StringIO()
        code = 0
        with redirect_stdout(stdout), redirect_stderr(stderr):
            try:
                main(list(argv))
            except SystemExit as exc:
                code = exc.code
        return code, stdout.getvalue(), stderr.getvalue()

    def test_text_output(self):
        code, out, _ = self.run_cli(str(self.artifact), "--contract", "Vault")

        self.assertEqual(code, 0)
        self.assertIn("[Vault]", out)
        self.assertIn("position.since", out)
        self.assertIn("mapping(address => uint256)", out)

    def test_json_output(self):
        code, out, _ = self.run_cli(str(self.artifact), "-c", "Vault", "-c", "Base", "--json")

        self.assertEqual(code, 0)
        data = json.loads(out)
        self.assertEqual([layout["contract"] for layout in data], ["Vault", "Base"])
        self.assertEqual(data[1]["slots_used"], 1)
        labels = [row["label"] for row in data[0]["storage"]]
        self.assertEqual(labels, ["owner", "paused", "status", "position.amount", "position.since", "balances"])

    def test_struct_alignment_override(self):
        code, out, _ = self.run_cli(
            str(self.artifact), "-c", "Vault", "--json", "--struct-alignment", "slot_boundary"
        )

        self.assertEqual(code, 0)
        rows = {row["label"]: row for row in json.loads(out)[0]["storage"]}
        self.assertEqual(rows["position.amount"]["slot"], 1)
        self.assertEqual(rows["balances"]["slot"], 2)

    def test_directory_input(self):
        code, out, _ = self.run_cli(str(self.root), "-c", "Base", "--json")

        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)[0]["contract"], "Base")

    def test_unknown_contract(self):
        code, _, err = self.run_cli(str(self.artifact), "-c", "Missing")

        self.assertEqual(code, 1)
        self.assertIn("Missing", err)

    def test_bad_config(self):
        code, _, err = self.run_cli(str(self.artifact), "-c", "Vault", "--config", str(self.root / "nope.toml"))

        self.assertEqual(code, 1)
        self.assertIn("加载配置失败", err)

    def test_broken_artifact(self):
        broken = self.root / "broken.json"
        broken.write_text("{", encoding="utf-8")

        code, _, err = self.run_cli(str(broken), "-c", "Vault")

        self.assertEqual(code, 1)
        self.assertIn("加载编译产物失败", err)


if __name__ == "__main__":
    unittest.main()
