from pathlib import Path

from yada_engine.core.io.load_dps import load_all
from yada_engine.core.model import DesignPrescription, SubDP, SubDPs
from yada_engine.core.validate.validate_dps import validate_all, validate_dp

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def _dp(
    dp_id: str,
    name: str | None = None,
    deps: list[str] | None = None,
    subdps: list[SubDP] | None = None,
    order: bool = False,
) -> DesignPrescription:
    return DesignPrescription(
        id=dp_id,
        name=name or dp_id.title(),
        nature="module",
        file_path=f"dps/{dp_id}.yada",
        dependencies=deps or [],
        subdps=SubDPs(order=order, entries={s.index: s for s in subdps or []}),
    )


def _spec(index: int, name: str, deps: list[str] | None = None) -> SubDP:
    return SubDP(index=index, name=name, kind="specification", workflow=["do it"], dependencies=deps or [])


def test_validate_example_project():
    result = validate_all(load_all(EXAMPLES / "project").dps)
    assert result.valid
    assert result.errors == []
    assert result.warnings == []


def test_validate_example_cycle():
    result = validate_all(load_all(EXAMPLES / "cycle").dps)
    assert not result.valid
    assert [e.code for e in result.errors] == ["E_CYCLE_DETECTED"]


def test_validate_empty_warns():
    result = validate_all([])
    assert result.valid
    assert [w.code for w in result.warnings] == ["W_NO_DPS"]


def test_duplicate_display_name_is_error():
    dps = [_dp("a", name="Same"), _dp("b", name="Same")]
    result = validate_all(dps)

    assert not result.valid
    codes = [e.code for e in result.errors]
    assert codes == ["E_DUPLICATE_NAME", "E_DUPLICATE_NAME"]
    assert "duplicated in: b" in result.errors[0].message


def test_unknown_dependency_reported_once():
    result = validate_all([_dp("a", deps=["ghost"])])

    assert not result.valid
    assert [e.code for e in result.errors] == ["E_UNKNOWN_DEPENDENCY"]
    assert result.errors[0].path == "dependencies[0]"


def test_duplicate_subdp_names():
    dp = _dp("a", subdps=[_spec(1, "x"), _spec(2, "x")])
    result = validate_dp(dp, [dp])

    assert not result.valid
    assert [e.code for e in result.errors] == ["E_DUPLICATE_SUBDP"]


def test_subdp_references():
    target = _dp("core", name="Core", subdps=[_spec(1, "schema")])
    dp = _dp(
        "feature",
        deps=["core"],
        subdps=[
            _spec(1, "local"),
            _spec(2, "uses-sibling", ["local"]),
            _spec(3, "uses-dp", ["core"]),
            _spec(4, "uses-cross", ["Core:schema"]),
            _spec(5, "uses-cross-id", ["core:schema"]),
            _spec(6, "broken-cross", ["Core:nothing"]),
            _spec(7, "broken", ["missing"]),
        ],
    )
    result = validate_dp(dp, [target, dp])

    assert not result.valid
    messages = [e.message for e in result.errors]
    assert messages == [
        "Subdp 'broken-cross' in 'feature' depends on non-existent: Core:nothing",
        "Subdp 'broken' in 'feature' depends on non-existent: missing",
    ]


def test_subdp_cross_reference_by_parent_id():
    target = _dp("core", name="Core", subdps=[_spec(1, "schema")])
    dp = _dp("feature", deps=["core"], subdps=[_spec(1, "s", ["core:schema"])])

    result = validate_dp(dp, [target, dp])

    assert result.valid, [str(e) for e in result.errors]


def test_advisory_warnings_do_not_block():
    dp = _dp(
        "a",
        order=True,
        subdps=[
            SubDP(index=1, name="spec", kind="specification"),
            SubDP(index=3, name="dep", kind="dependency"),
        ],
    )
    result = validate_dp(dp, [dp])

    assert result.valid
    assert sorted(w.code for w in result.warnings) == ["W_EMPTY_WORKFLOW", "W_MISSING_REQUIREMENT", "W_ORDER_GAP"]


def test_id_convention_warning():
    dp = DesignPrescription(id="bad id", name="Bad", nature="module", file_path="dps/bad id.yada")
    result = validate_dp(dp, [dp])

    assert result.valid
    assert [w.code for w in result.warnings] == ["W_ID_CONVENTION"]


def test_id_mismatch_warning():
    dp = DesignPrescription(id="renamed", name="R", nature="module", file_path="dps/original.yada")
    result = validate_dp(dp, [dp])
    assert [w.code for w in result.warnings] == ["W_ID_MISMATCH"]
