from classplanner.core.exceptions import (
    AppError,
    ApplyConflict,
    ConfigError,
    ResourceNotFoundError,
    ScopeError,
    StateError,
)


def test_error_status_codes():
    assert ConfigError("bad blocks").status_code == 422
    assert ScopeError("empty").status_code == 400
    assert StateError("approved").status_code == 409
    assert ApplyConflict("clash").status_code == 409
    assert AppError("boom").status_code == 500


def test_errors_carry_details():
    error = StateError("approved", details={"status": "approved"})
    assert isinstance(error, AppError)
    assert error.message == "approved"
    assert error.details == {"status": "approved"}
    assert ScopeError("empty").details == {}


def test_not_found_message():
    error = ResourceNotFoundError("Proposal", "p-1")
    assert error.status_code == 404
    assert error.message == "Proposal with id p-1 not found"
