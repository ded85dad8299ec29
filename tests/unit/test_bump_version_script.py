import importlib.util
from pathlib import Path

import pytest


def _load_bump_version_module():
    script_path = Path(__file__).resolve().parents[2] / "scripts" / "bump_version.py"
    spec = importlib.util.spec_from_file_location("bump_version", script_path)
    assert spec is not None
    module = importlib.util.module_from_spec(spec)
    assert spec.loader is not None
    spec.loader.exec_module(module)
    return module


def _write_repo(root: Path) -> tuple[Path, Path]:
    (root / "webrisk_cache").mkdir(parents=True)
    package_init = root / "webrisk_cache" / "__init__.py"
    package_init.write_text('"""pkg"""\n\n__version__ = "0.1.0"\n', encoding="utf-8")
    pyproject = root / "pyproject.toml"
    pyproject.write_text(
        '[build-system]\nrequires = ["setuptools>=68"]\n\n'
        '[project]\nname = "webrisk-cache"\nversion = "0.1.0"\n'
        'dependencies = ["rich>=13.0"]\n\n'
        '[tool.other]\nversion = "9.9.9"\n',
        encoding="utf-8",
    )
    return package_init, pyproject


def test_bump_version_updates_package_and_pyproject(tmp_path: Path):
    bump = _load_bump_version_module()
    package_init, pyproject = _write_repo(tmp_path)

    updated = bump._run(version="1.2.3", repo_root=tmp_path)

    assert updated == [package_init, pyproject]
    assert '__version__ = "1.2.3"' in package_init.read_text(encoding="utf-8")
    content = pyproject.read_text(encoding="utf-8")
    assert 'name = "webrisk-cache"\nversion = "1.2.3"' in content
    # Tables other than [project] keep their own version keys.
    assert 'version = "9.9.9"' in content


def test_bump_version_rejects_invalid_input(capsys):
    bump = _load_bump_version_module()

    with pytest.raises(SystemExit):
        bump.main(["bump_version.py", "not-a-version"])

    assert bump.main(["bump_version.py"]) == 2
    assert "Usage" in capsys.readouterr().out


def test_bump_version_requires_version_assignment(tmp_path: Path):
    bump = _load_bump_version_module()
    package_init, _ = _write_repo(tmp_path)
    package_init.write_text('"""pkg"""\n', encoding="utf-8")

    with pytest.raises(RuntimeError):
        bump._run(version="1.2.3", repo_root=tmp_path)
