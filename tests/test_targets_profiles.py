from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from restock_monitor.errors import ConfigError, TargetListError
from restock_monitor.models import DEFAULT_PROFILE, SiteProfile, Target
from restock_monitor.profiles import DEFAULT_PROFILES, load_profiles, resolve_profile, resolve_profiles
from restock_monitor.targets import load_targets, parse_target_line, parse_targets, presence_pattern_error


class TestTargetParsing(unittest.TestCase):
    def test_full_line(self) -> None:
        t = parse_target_line("https://shop.test/ps5,Out of stock,button,Add to cart,PS5,In stock")
        self.assertEqual(
            t,
            Target(
                url="https://shop.test/ps5",
                out_of_stock_phrase="Out of stock",
                element_type="button",
                phrase="Add to cart",
                product_label="PS5",
                in_stock_phrase="In stock",
            ),
        )
        self.assertTrue(t.has_presence_check)

    def test_short_line_is_padded(self) -> None:
        t = parse_target_line("https://shop.test/xbox,Sold out,div,Buy")
        self.assertEqual(t.product_label, "")
        self.assertEqual(t.in_stock_phrase, "")

        bare = parse_target_line("https://shop.test/bare")
        self.assertEqual(bare.out_of_stock_phrase, "")
        self.assertFalse(bare.has_presence_check)

    def test_blank_comment_and_missing_url(self) -> None:
        self.assertIsNone(parse_target_line(""))
        self.assertIsNone(parse_target_line("# disabled,foo"))
        self.assertIsNone(parse_target_line(",Sold out,div,Buy,Label"))

    def test_duplicates_keep_first(self) -> None:
        with self.assertLogs("restock_monitor.targets", level="WARNING"):
            targets = parse_targets(
                [
                    "https://shop.test/a,Sold out,,,First",
                    "https://shop.test/a,Sold out,,,Second",
                    "https://shop.test/b,Sold out,,,Other",
                ]
            )
        self.assertEqual([t.product_label for t in targets], ["First", "Other"])

    def test_presence_patterns_must_run_in_the_browser(self) -> None:
        self.assertIsNone(presence_pattern_error(""))
        self.assertIsNone(presence_pattern_error(r"Add to (cart|basket)"))
        self.assertIsNone(presence_pattern_error(r"^Buy\s+now$"))
        self.assertIsNone(presence_pattern_error(r"C:\\Apps"))
        self.assertIn("invalid regex", presence_pattern_error("Add to (cart"))
        for pattern in (r"(?P<btn>Buy)", r"(?#note)Buy", r"\ABuy", r"Buy\Z", r"(?i)buy"):
            with self.subTest(pattern=pattern):
                self.assertIn("not supported by the browser", presence_pattern_error(pattern))

    def test_unusable_presence_pattern_skips_target(self) -> None:
        with self.assertLogs("restock_monitor.targets", level="WARNING") as cm:
            targets = parse_targets(
                [
                    "https://shop.test/a,Sold out,button,(?P<b>Buy),Named",
                    "https://shop.test/b,Sold out,button,Add to (cart,Broken",
                    "https://shop.test/c,Sold out,button,Add to cart,Fine",
                ]
            )
        self.assertEqual([t.product_label for t in targets], ["Fine"])
        self.assertEqual(len(cm.output), 2)
        self.assertIn("line 1 has an unusable presence pattern", cm.output[0])

    def test_missing_file_is_fatal(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            with self.assertRaises(TargetListError):
                load_targets(Path(d) / "urls.csv")

    def test_load_from_file(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            path = Path(d) / "urls.csv"
            path.write_text("https://shop.test/a,Sold out,button,Buy,A\n\nhttps://shop.test/b,Sold out\n", encoding="utf-8")
            targets = load_targets(path)
        self.assertEqual([t.url for t in targets], ["https://shop.test/a", "https://shop.test/b"])


class TestProfiles(unittest.TestCase):
    def test_default_table(self) -> None:
        ms = resolve_profile("https://www.microsoft.com/en-gb/store/xbox", DEFAULT_PROFILES)
        self.assertEqual(ms.source, "microsoft")
        self.assertTrue(ms.wait_for_network_idle)
        self.assertTrue(ms.is_flaky)

        xbox = resolve_profile("https://www.xbox.com/en-GB/consoles", DEFAULT_PROFILES)
        self.assertTrue(xbox.wait_for_network_idle)
        self.assertFalse(xbox.is_flaky)

        self.assertIs(resolve_profile("https://shop.test/a", DEFAULT_PROFILES), DEFAULT_PROFILE)

    def test_resolved_once_per_target(self) -> None:
        targets = [
            Target("https://www.XBOX.com/a", "", "", "", ""),
            Target("https://shop.test/b", "", "", "", ""),
        ]
        resolved = resolve_profiles(targets, DEFAULT_PROFILES)
        self.assertEqual(resolved["https://www.XBOX.com/a"].match, "xbox.com")
        self.assertIs(resolved["https://shop.test/b"], DEFAULT_PROFILE)

    def test_load_json_table(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            path = Path(d) / "profiles.json"
            path.write_text(
                json.dumps(
                    [
                        {"match": "flaky.test", "debounce_threshold": 2},
                        {"match": "slow.test", "wait_for_network_idle": True},
                    ]
                ),
                encoding="utf-8",
            )
            profiles = load_profiles(path)
        self.assertEqual(
            profiles,
            [
                SiteProfile(match="flaky.test", source="flaky.test", debounce_threshold=2),
                SiteProfile(match="slow.test", wait_for_network_idle=True),
            ],
        )
        self.assertEqual(load_profiles(None), DEFAULT_PROFILES)

    def test_invalid_table_is_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            path = Path(d) / "profiles.json"
            for payload in ('{"match": "x"}', '[{"source": "x"}]', '[{"match": "x", "debounce_threshold": -1}]', "not json"):
                path.write_text(payload, encoding="utf-8")
                with self.assertRaises(ConfigError):
                    load_profiles(path)


if __name__ == "__main__":
    unittest.main()
