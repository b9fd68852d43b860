from pathlib import Path

import pytest

from yada_engine.core.config import ProjectConfig
from yada_engine.core.errors import DPLoadError
from yada_engine.core.io.load_dps import find_dp_files, load_all, load_by_name, load_dp

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def _write(root: Path, name: str, text: str) -> Path:
    dps = root / "dps"
    dps.mkdir(exist_ok=True)
    p = dps / name
    p.write_text(text, encoding="utf-8")
    return p


def test_load_example_dp():
    dp = load_dp(EXAMPLES / "project" / "dps" / "database.yada")

    assert dp.id == "database"
    assert dp.name == "Database"
    assert dp.nature == "module"
    assert dp.phase == "foundation"
    assert dp.priority == 80
    assert dp.dependencies == []
    assert "schema lives" not in dp.description
    assert dp.description.startswith("Persistent storage")

    assert dp.subdps.order is True
    assert list(dp.subdps.entries.keys()) == [1, 2]
    schema = dp.subdps.entries[1]
    assert schema.name == "schema"
    assert schema.kind == "specification"
    assert schema.workflow == ["Model accounts and sessions", "Write the initial migration"]
    assert schema.intents == ["Single source of truth for user data"]
    driver = dp.subdps.entries[2]
    assert driver.kind == "dependency"
    assert driver.requirement == "required"
    assert driver.dependencies == ["schema"]


def test_load_all_sorted_by_name():
    result = load_all(EXAMPLES / "project")

    assert result.errors == []
    assert [dp.name for dp in result.dps] == ["API", "Authentication", "Database", "Docs", "Logging", "Web UI"]


def test_load_all_missing_dps_dir(tmp_path: Path):
    result = load_all(tmp_path)
    assert result.dps == []
    assert result.errors == []


def test_load_all_collects_errors(tmp_path: Path):
    _write(tmp_path, "good.yada", "name: Good\nnature: module\n")
    _write(tmp_path, "bad.yada", "nature: module\n")
    _write(tmp_path, "notes.txt", "name: ignored\n")

    result = load_all(tmp_path)

    assert [dp.id for dp in result.dps] == ["good"]
    assert [e.code for e in result.errors] == ["E_REQUIRED_FIELD"]
    assert result.errors[0].file.endswith("bad.yada")


def test_find_dp_files_respects_config(tmp_path: Path):
    (tmp_path / "specs").mkdir()
    (tmp_path / "specs" / "a.dp.yaml").write_text("name: A\n", encoding="utf-8")
    config = ProjectConfig(dps_dir="specs", extension=".dp.yaml")

    files = find_dp_files(tmp_path, config)
    assert [f.name for f in files] == ["a.dp.yaml"]
    assert load_dp(files[0], config).id == "a"


def test_subdp_defaults(tmp_path: Path):
    p = _write(
        tmp_path,
        "x.yada",
        "name: X\nsubdps:\n  1:\n    type: specification\n  3:\n    type: dependency\n  note: skipped\n",
    )
    dp = load_dp(p)

    assert dp.priority == 0
    assert dp.subdps.order is False
    assert [s.name for s in dp.subdps.entries.values()] == ["subdp1", "subdp3"]


@pytest.mark.parametrize(
    "text, code",
    [
        ("- just\n- a list\n", "E_INVALID_TOP_LEVEL"),
        ("name: [unclosed\n", "E_YAML_PARSE"),
        ("name: X\nnature: plugin\n", "E_INVALID_ENUM"),
        ("name: X\npriority: high\n", "E_INVALID_TYPE"),
        ("name: X\ndependencies: {a: 1}\n", "E_INVALID_TYPE"),
        ("name: X\nsubdps:\n  1:\n    name: s\n    type: chore\n", "E_INVALID_ENUM"),
        ("name: X\nsubdps:\n  1:\n    name: s\n    type: dependency\n    nature: maybe\n", "E_INVALID_ENUM"),
        ("name: X\nsubdps:\n  1:\n    name: a\n  '1':\n    name: b\n", "E_INVALID_TYPE"),
    ],
)
def test_load_dp_rejects_bad_shapes(tmp_path: Path, text: str, code: str):
    p = _write(tmp_path, "x.yada", text)
    with pytest.raises(DPLoadError) as exc:
        load_dp(p)
    assert exc.value.code == code


def test_load_missing_file(tmp_path: Path):
    with pytest.raises(DPLoadError) as exc:
        load_by_name(tmp_path, "nope")
    assert exc.value.code == "E_FILE_NOT_FOUND"


def test_load_by_name_accepts_extension():
    assert load_by_name(EXAMPLES / "project", "auth.yada").id == "auth"
    assert load_by_name(EXAMPLES / "project", "auth").name == "Authentication"
