"""
安全中间件 - 基本安全防护

提供：
- 安全响应头
- 追踪号校验与规范化
"""

import re
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from shiptrack.infrastructure.errors import ValidationError


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    安全头中间件

    添加基本的安全响应头。
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # 追踪数据有自己的缓存分层，HTTP 层不缓存
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
            response.headers["Pragma"] = "no-cache"

        return response


class IdentifierValidator:
    """
    追踪号校验器

    在任何网络访问之前拒绝明显无效的追踪号。
    """

    MIN_LENGTH = 3
    MAX_LENGTH = 50
    ALLOWED_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

    @classmethod
    def validate(cls, identifier: Optional[str]) -> str:
        """
        校验并规范化追踪号

        Args:
            identifier: 用户输入

        Returns:
            str: 去除首尾空白并转为大写的追踪号

        Raises:
            ValidationError: 追踪号缺失、长度不合法或包含非法字符
        """
        if identifier is None:
            raise ValidationError(
                "Tracking number is required",
                "请输入追踪号。",
            )

        value = identifier.strip()
        if not value:
            raise ValidationError(
                "Tracking number cannot be empty",
                "追踪号不能为空。",
            )

        if len(value) < cls.MIN_LENGTH:
            raise ValidationError(
                f"Tracking number too short (minimum {cls.MIN_LENGTH} characters)",
                f"追踪号至少需要 {cls.MIN_LENGTH} 个字符。",
            )

        if len(value) > cls.MAX_LENGTH:
            raise ValidationError(
                f"Tracking number too long (maximum {cls.MAX_LENGTH} characters)",
                f"追踪号不能超过 {cls.MAX_LENGTH} 个字符。",
            )

        if not cls.ALLOWED_PATTERN.match(value):
            raise ValidationError(
                "Tracking number contains invalid characters",
                "追踪号只能包含字母、数字、连字符和下划线。",
            )

        return value.upper()
