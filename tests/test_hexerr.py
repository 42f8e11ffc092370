import pytest

from tdexa.hexerr import (
    Code,
    HexagonalError,
    Layer,
    application_layer_error,
    domain_layer_error,
    infrastructure_layer_error,
    interface_layer_error,
)


@pytest.mark.parametrize(
    "factory, layer",
    [
        (interface_layer_error, Layer.INTERFACE),
        (application_layer_error, Layer.APPLICATION),
        (domain_layer_error, Layer.DOMAIN),
        (infrastructure_layer_error, Layer.INFRASTRUCTURE),
    ],
)
def test_factories_set_layer_and_code(factory, layer):
    err = factory(Code.FORBIDDEN, "denied")
    assert err.layer is layer
    assert err.code is Code.FORBIDDEN
    assert str(err) == "denied"


def test_layer_and_code_values_in_details():
    err = infrastructure_layer_error(Code.UNIQUE_CONSTRAINT_VIOLATION, "duplicate")
    assert err.details().startswith("error: duplicate, code: 6, layer: 4, at: ")


def test_thrown_at_points_to_caller():
    err = domain_layer_error(Code.INTERNAL, "boom")
    filename, _, line = err.thrown_at_line.rpartition(":")
    assert filename.endswith("test_hexerr.py")
    assert int(line) > 0


def test_details_format():
    err = interface_layer_error(Code.INVALID_ARGUMENTS, "bad input")
    assert err.details() == f"error: bad input, code: 3, layer: 1, at: {err.thrown_at_line}"


def test_stack_trace_contains_caller():
    err = application_layer_error(Code.ENTITY_NOT_FOUND, "missing")
    trace = err.stack_trace()
    assert trace.startswith("error: missing\n")
    assert "test_stack_trace_contains_caller" in trace
    assert "_new" not in trace


def test_error_can_be_raised_and_caught():
    err = infrastructure_layer_error(Code.INTERNAL, "db down")
    assert isinstance(err, HexagonalError)
    assert err.message == "db down"
    assert err.layer is Layer.INFRASTRUCTURE
    with pytest.raises(HexagonalError) as info:
        raise err
    assert info.value.details() == err.details()