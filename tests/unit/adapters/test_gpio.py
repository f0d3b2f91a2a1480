from __future__ import annotations

from pathlib import Path

import pytest

from gamemachine.adapters.gpio import GROUP_C, SysfsGpio, calculate_gpio_id, sysfs_gpio_factory


def _sysfs(tmp_path: Path, gpio_id: int, exported: bool = True) -> Path:
    root = tmp_path / "gpio"
    root.mkdir(exist_ok=True)
    (root / "export").write_text("")
    (root / "unexport").write_text("")
    if exported:
        line = root / f"gpio{gpio_id}"
        line.mkdir()
        (line / "direction").write_text("in")
        (line / "value").write_text("0")
    return root


def test_gpio_id_numbering() -> None:
    assert calculate_gpio_id(1, GROUP_C, 1) == 49
    assert calculate_gpio_id(1, GROUP_C, 4) == 52
    with pytest.raises(ValueError):
        calculate_gpio_id(5, 0, 0)
    with pytest.raises(ValueError):
        calculate_gpio_id(0, 4, 0)
    with pytest.raises(ValueError):
        calculate_gpio_id(0, 0, 8)


def test_output_line_writes_value(tmp_path: Path) -> None:
    root = _sysfs(tmp_path, 50)
    line = SysfsGpio.from_bank(1, GROUP_C, 2, root=str(root))

    assert line.open("out", 1)
    assert (root / "gpio50" / "direction").read_text() == "out"
    assert (root / "gpio50" / "value").read_text() == "1"

    assert line.toggle()
    assert (root / "gpio50" / "value").read_text() == "0"
    assert line.read() == 0
    assert line.open() is False

    line.close()
    assert (root / "unexport").read_text() == "50"
    assert line.set() is False


def test_input_line_reads_value(tmp_path: Path) -> None:
    root = _sysfs(tmp_path, 49)
    line = sysfs_gpio_factory(str(root))(49)

    assert line.read() is None
    assert line.open("in")
    (root / "gpio49" / "value").write_text("1\n")
    assert line.read() == 1
    assert line.set() is False


def test_export_when_line_missing(tmp_path: Path) -> None:
    root = _sysfs(tmp_path, 52, exported=False)
    line = SysfsGpio(52, root=str(root))

    # the fake kernel never creates gpio52/, so the direction write fails
    assert line.open("out") is False
    assert (root / "export").read_text() == "52"
    assert not line.is_open


def test_invalid_direction(tmp_path: Path) -> None:
    line = SysfsGpio(1, root=str(_sysfs(tmp_path, 1)))
    with pytest.raises(ValueError):
        line.open("sideways")
