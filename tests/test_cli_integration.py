"""Integration tests for CLI."""

import json
import os
import subprocess
import sys
from pathlib import Path


def run_monepiceriz(args: list[str], data_dir: Path) -> subprocess.CompletedProcess:
    """Run monepiceriz CLI command with state kept in data_dir."""
    env = dict(os.environ, MONEPICERIZ_DATA_DIR=str(data_dir))
    return subprocess.run(
        [sys.executable, "-m", "monepiceriz.cli"] + args,
        capture_output=True,
        text=True,
        env=env,
    )


class TestStoresCommands:
    def test_list(self, temp_dir):
        result = run_monepiceriz(["stores", "list"], temp_dir)
        assert result.returncode == 0
        assert "COCODY" in result.stdout
        assert "KOUMASSI" in result.stdout

    def test_list_with_position_json(self, temp_dir):
        result = run_monepiceriz(
            ["stores", "list", "--lat", "5.2897949", "--lon", "-3.9208984", "--json"], temp_dir
        )
        assert result.returncode == 0
        data = json.loads(result.stdout)
        assert [s["code"] for s in data] == ["KOUMASSI", "COCODY"]
        assert data[0]["distance"] == 0.0

    def test_list_needs_both_coordinates(self, temp_dir):
        result = run_monepiceriz(["stores", "list", "--lat", "5.3"], temp_dir)
        assert result.returncode == 1
        assert "Error:" in result.stderr

    def test_nearest(self, temp_dir):
        result = run_monepiceriz(["stores", "nearest", "5.3515625", "-3.9936523"], temp_dir)
        assert result.returncode == 0
        assert "Nearest store: COCODY (0m)" in result.stdout
        assert "Delivery: available" in result.stdout

    def test_nearest_json(self, temp_dir):
        result = run_monepiceriz(
            ["stores", "nearest", "5.2897949", "-3.9208984", "--json"], temp_dir
        )
        data = json.loads(result.stdout)
        assert data["code"] == "KOUMASSI"
        assert data["within_delivery_radius"] is True

    def test_open(self, temp_dir):
        result = run_monepiceriz(["stores", "open", "COCODY", "--at", "2026-03-02T21:00"], temp_dir)
        assert result.returncode == 0
        assert "open" in result.stdout
        assert "Hours: 07:00-21:00" in result.stdout

    def test_open_unknown_store(self, temp_dir):
        result = run_monepiceriz(["stores", "open", "PARIS"], temp_dir)
        assert result.returncode == 1
        assert "Magasin introuvable" in result.stderr

    def test_open_bad_timestamp(self, temp_dir):
        result = run_monepiceriz(["stores", "open", "COCODY", "--at", "tomorrow"], temp_dir)
        assert result.returncode == 1
        assert "Invalid --at" in result.stderr


class TestPhoneCommands:
    def test_validate(self, temp_dir):
        result = run_monepiceriz(["phone", "validate", "+2250143215478"], temp_dir)
        assert result.returncode == 0
        assert "Valid (international)" in result.stdout
        assert "National: 0143215478" in result.stdout
        assert "Operator: Moov Money" in result.stdout

    def test_validate_invalid(self, temp_dir):
        result = run_monepiceriz(["phone", "validate", "123"], temp_dir)
        assert result.returncode == 1
        assert "Invalid" in result.stdout

    def test_validate_json(self, temp_dir):
        result = run_monepiceriz(["phone", "validate", "0707080910", "--json"], temp_dir)
        data = json.loads(result.stdout)
        assert data["operator"] == "ORANGE"

    def test_format(self, temp_dir):
        result = run_monepiceriz(["phone", "format", "+2250143215478"], temp_dir)
        assert result.stdout.strip() == "+225 01 43 21 54 78"

    def test_equals(self, temp_dir):
        same = run_monepiceriz(["phone", "equals", "+2250143215478", "0143215478"], temp_dir)
        assert same.returncode == 0
        assert same.stdout.strip() == "equal"

        different = run_monepiceriz(["phone", "equals", "0143215478", "0543215479"], temp_dir)
        assert different.returncode == 1


class TestSelectCommands:
    def test_show_default(self, temp_dir):
        result = run_monepiceriz(["select", "show"], temp_dir)
        assert result.returncode == 0
        assert "Selected store: COCODY" in result.stdout

    def test_set_persists(self, temp_dir):
        result = run_monepiceriz(["select", "set", "KOUMASSI"], temp_dir)
        assert result.returncode == 0
        assert (temp_dir / "store-selection-storage.json").exists()

        result = run_monepiceriz(["select", "show", "--json"], temp_dir)
        assert json.loads(result.stdout)["selected_store"] == "KOUMASSI"

    def test_set_unknown(self, temp_dir):
        result = run_monepiceriz(["select", "set", "PARIS"], temp_dir)
        assert result.returncode == 1
        assert "Magasin introuvable: PARIS" in result.stderr

    def test_data_dir_option(self, temp_dir):
        other = temp_dir / "other"
        result = run_monepiceriz(["--data-dir", str(other), "select", "set", "KOUMASSI"], temp_dir)
        assert result.returncode == 0
        assert (other / "store-selection-storage.json").exists()
        assert not (temp_dir / "store-selection-storage.json").exists()

    def test_locate(self, temp_dir):
        result = run_monepiceriz(["select", "locate", "5.2897949", "-3.9208984"], temp_dir)
        assert result.returncode == 0
        assert "Selected store: KOUMASSI" in result.stdout

        result = run_monepiceriz(["select", "show"], temp_dir)
        assert "Nearest store: KOUMASSI" in result.stdout
        assert "Distance to store: 0m" in result.stdout

    def test_check(self, temp_dir):
        run_monepiceriz(["select", "locate", "5.3515625", "-3.9936523"], temp_dir)

        still = run_monepiceriz(
            ["select", "check", "--lat", "5.3515625", "--lon", "-3.9936523", "--fail-on-stale"],
            temp_dir,
        )
        assert still.returncode == 0
        assert "still valid" in still.stdout

        moved = run_monepiceriz(
            ["select", "check", "--lat", "5.3515625", "--lon", "-3.9208984", "--json",
             "--fail-on-stale"],
            temp_dir,
        )
        assert moved.returncode == 2
        assert json.loads(moved.stdout)["reason"] == "movement"

    def test_reset(self, temp_dir):
        run_monepiceriz(["select", "set", "KOUMASSI"], temp_dir)
        result = run_monepiceriz(["select", "reset"], temp_dir)
        assert result.returncode == 0
        assert "reset to COCODY" in result.stdout


class TestCartCommands:
    def test_add_and_show(self, temp_dir):
        result = run_monepiceriz(["cart", "add", "riz", "18500", "--name", "Riz", "-q", "2"], temp_dir)
        assert result.returncode == 0
        assert "Added 2 x Riz" in result.stdout

        run_monepiceriz(["cart", "add", "riz", "18500", "-q", "3"], temp_dir)

        result = run_monepiceriz(["cart", "show", "--json"], temp_dir)
        data = json.loads(result.stdout)
        assert data["item_count"] == 5
        assert data["total"] == "94500"

    def test_promo_price(self, temp_dir):
        run_monepiceriz(["cart", "add", "huile", "6000", "--promo-price", "5200"], temp_dir)
        result = run_monepiceriz(["cart", "show"], temp_dir)
        assert "Subtotal: 5200" in result.stdout
        assert "Total: 7200" in result.stdout

    def test_show_empty(self, temp_dir):
        result = run_monepiceriz(["cart", "show"], temp_dir)
        assert result.returncode == 0
        assert "Cart is empty." in result.stdout

    def test_invalid_quantity(self, temp_dir):
        result = run_monepiceriz(["cart", "add", "riz", "18500", "-q", "0"], temp_dir)
        assert result.returncode == 1
        assert "Error:" in result.stderr

    def test_invalid_price(self, temp_dir):
        for price in ["cheap", "NaN", "Infinity", "-5"]:
            result = run_monepiceriz(["cart", "add", "riz", price], temp_dir)
            assert result.returncode == 1, price
            assert "prices must be non-negative numbers" in result.stderr

        result = run_monepiceriz(["cart", "add", "riz", "100", "--promo-price", "-1"], temp_dir)
        assert result.returncode == 1

        data = json.loads(run_monepiceriz(["cart", "show", "--json"], temp_dir).stdout)
        assert data["lines"] == []

    def test_update_remove_clear(self, temp_dir):
        run_monepiceriz(["cart", "add", "a", "100"], temp_dir)
        run_monepiceriz(["cart", "add", "b", "200"], temp_dir)

        result = run_monepiceriz(["cart", "update", "a", "4"], temp_dir)
        assert result.stdout.strip() == "a: 4"

        run_monepiceriz(["cart", "remove", "a"], temp_dir)
        data = json.loads(run_monepiceriz(["cart", "show", "--json"], temp_dir).stdout)
        assert [line["product"]["id"] for line in data["lines"]] == ["b"]

        run_monepiceriz(["cart", "clear"], temp_dir)
        data = json.loads(run_monepiceriz(["cart", "show", "--json"], temp_dir).stdout)
        assert data["total"] == "0"


class TestHelp:
    def test_no_command_prints_help(self, temp_dir):
        result = run_monepiceriz([], temp_dir)
        assert result.returncode == 0
        assert "usage:" in result.stdout
