"""Unit tests for capture error classification and upload error placeholders."""

import pytest

from recordrtc.errors import (
    ApplicationError, CapturePermissionError, DeviceUnavailableError, FetchError,
    TransportError, UnknownCaptureError, UploadAborted, classify_capture_error,
)
from tests.conftest import DeviceError


@pytest.mark.unit
@pytest.mark.parametrize("name, reason, error_class", [
    ("NotAllowedError", "permission", CapturePermissionError),
    ("PermissionDeniedError", "permission", CapturePermissionError),
    ("SecurityError", "security", CapturePermissionError),
    ("NotFoundError", "notfound", DeviceUnavailableError),
    ("DevicesNotFoundError", "notfound", DeviceUnavailableError),
    ("NotReadableError", "notreadable", DeviceUnavailableError),
    ("OverconstrainedError", "overconstrained", DeviceUnavailableError),
    ("AbortError", "abort", UnknownCaptureError),
    ("SomethingNewError", "unknown", UnknownCaptureError),
])
def test_classify_named_device_errors(name, reason, error_class):
    original = DeviceError(name)
    error = classify_capture_error(original)

    assert isinstance(error, error_class)
    assert error.reason == reason
    assert error.alert_subject == f"gum{reason}"
    assert error.original is original


@pytest.mark.unit
def test_builtin_permission_error_is_permission():
    error = classify_capture_error(PermissionError("denied by OS"))

    assert isinstance(error, CapturePermissionError)
    assert error.reason == "permission"


@pytest.mark.unit
def test_class_name_used_without_name_attribute():
    error = classify_capture_error(RuntimeError("boom"))

    assert isinstance(error, UnknownCaptureError)
    assert error.alert_subject == "gumunknown"


@pytest.mark.unit
def test_capture_error_passes_through():
    error = DeviceUnavailableError("notfound")

    assert classify_capture_error(error) is error


@pytest.mark.unit
def test_upload_error_placeholders():
    assert TransportError("missing", status=404).placeholder == "uploadfailed404"
    assert TransportError("server error", status=500).placeholder == "uploadfailed"
    assert ApplicationError("rejected", error_code="x").placeholder == "uploadfailed"
    assert FetchError("gone", status=404).placeholder == "uploadfailed"
    assert UploadAborted("stopped").placeholder == "uploadaborted"
