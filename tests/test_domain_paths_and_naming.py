from __future__ import annotations

from pathlib import Path

import pytest

from wslenv.domain.disk_paths import join_registry_path, normalize_disk_path, same_disk_path
from wslenv.domain.install_layout import InstallLayout
from wslenv.domain.naming import candidate_name, candidate_names, validate_base_name


@pytest.mark.core
def test_candidate_names_follow_suffix_convention():
    assert list(candidate_names("dev", 4)) == ["dev", "dev_1", "dev_2", "dev_3"]
    assert candidate_name("dev", 0) == "dev"


@pytest.mark.core
def test_candidate_names_reject_non_positive_ceiling():
    with pytest.raises(ValueError):
        list(candidate_names("dev", 0))


@pytest.mark.core
@pytest.mark.parametrize("bad", ["", "  ", "-lead", "has space", "a" * 65, "sl/ash"])
def test_validate_base_name_rejects_invalid_tokens(bad: str):
    with pytest.raises(ValueError):
        validate_base_name(bad)


@pytest.mark.core
def test_validate_base_name_strips_whitespace():
    assert validate_base_name("  Ubuntu-22.04 ") == "Ubuntu-22.04"


@pytest.mark.core
@pytest.mark.parametrize(
    "left,right",
    [
        (r"C:\Apps\Dev\local-data\wsl\ext4.vhdx", "c:/apps/dev/local-data/wsl/EXT4.vhdx"),
        (r"\\?\C:\Apps\Dev\wsl\ext4.vhdx", r"C:\Apps\Dev\wsl\ext4.vhdx"),
        (r"\\?\UNC\server\share\ext4.vhdx", r"\\server\share\ext4.vhdx"),
        ("C:/Apps/Dev/", "c:/apps/dev"),
    ],
)
def test_same_disk_path_ignores_case_separators_and_prefixes(left: str, right: str):
    assert same_disk_path(left, right)


@pytest.mark.core
def test_same_disk_path_never_matches_empty():
    assert not same_disk_path(None, "")
    assert not same_disk_path("", "C:/x")
    assert normalize_disk_path("C:/") == "c:/"


@pytest.mark.core
def test_join_registry_path_uses_windows_separators():
    assert join_registry_path(r"\\?\D:\wsl\dev", "ext4.vhdx") == r"D:\wsl\dev\ext4.vhdx"


@pytest.mark.core
def test_layout_derives_every_path_from_the_root(tmp_path: Path):
    layout = InstallLayout(install_root=tmp_path / "App")
    assert layout.backing_disk == tmp_path / "App" / "local-data" / "wsl" / "ext4.vhdx"
    assert layout.portable_archive.parent == layout.wsl_dir
    assert layout.state_file == tmp_path / "App" / "local-data" / "install_state.json"
    assert set(layout.derived_paths()) == {"installRoot", "localDataRoot", "wslDir", "backingDiskPath"}


@pytest.mark.core
def test_layout_contains_rejects_escape(tmp_path: Path):
    layout = InstallLayout(install_root=tmp_path / "App")
    assert layout.contains(layout.backing_disk)
    assert not layout.contains(tmp_path / "elsewhere.vhdx")
    assert not layout.contains(layout.install_root)
    assert not layout.contains(layout.wsl_dir / ".." / ".." / ".." / "x")
