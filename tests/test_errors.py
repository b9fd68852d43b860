from yada_engine.core.errors import DPLoadError, DPWarning, YadaError


def test_str_includes_file_and_path():
    e = DPLoadError(code="E_INVALID_ENUM", message="bad nature", file="dps/a.yada", path="nature")
    assert str(e) == "dps/a.yada:nature: E_INVALID_ENUM: bad nature"
    assert e.severity == "error"


def test_str_without_location():
    e = DPWarning(code="W_NO_DPS", message="No DPs found")
    assert e.location == "<project>"
    assert str(e) == "<project>: W_NO_DPS: No DPs found"
    assert e.severity == "warning"


def test_location_with_only_path():
    assert YadaError(code="E_X", message="m", path="format").location == "format"
