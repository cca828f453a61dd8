"""
领域模型单元测试
"""

import pytest

from shiptrack.domain.models import (
    ErrorCode,
    FetchStatus,
    IdentifierType,
    ResolutionResult,
    ResolutionState,
    TrackingError,
    detect_identifier_type,
)
from tests.conftest import make_result


class TestIdentifierType:
    """追踪号类型推断测试"""

    @pytest.mark.parametrize("identifier,expected", [
        ("ABCD1234567", IdentifierType.CONTAINER),
        ("msku7654321", IdentifierType.CONTAINER),
        ("ABC1234567", IdentifierType.BOOKING),
        ("BK12345678", IdentifierType.BOOKING),
    ])
    def test_detect(self, identifier, expected):
        assert detect_identifier_type(identifier) == expected


class TestTrackingError:

    def test_to_dict(self):
        error = TrackingError(
            code=ErrorCode.RATE_LIMIT,
            message="Rate limit exceeded",
            user_message="请稍候",
            status_code=429,
            retryable=True,
            retry_after=60,
            provider="maersk",
        )
        data = error.to_dict()

        assert data["code"] == "RATE_LIMIT"
        assert data["retry_after"] == 60
        assert data["provider"] == "maersk"

    def test_provider_omitted_when_absent(self):
        error = TrackingError(ErrorCode.NOT_FOUND, "m", "u", 404, False)
        assert "provider" not in error.to_dict()


class TestRawProviderResult:

    @pytest.mark.parametrize("status,usable", [
        (FetchStatus.SUCCESS, True),
        (FetchStatus.PARTIAL, True),
        (FetchStatus.ERROR, False),
    ])
    def test_is_usable(self, status, usable):
        assert make_result("a", status=status).is_usable is usable


class TestResolutionResult:

    def test_failure_to_dict(self):
        result = ResolutionResult(success=False, state=ResolutionState.NO_DATA)
        data = result.to_dict()

        assert data == {
            "success": False,
            "data": None,
            "error": None,
            "from_cache": False,
            "data_age_minutes": None,
            "state": "no_data",
        }
