#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
shiptrack 命令行入口

查询追踪号、查看数据源健康或启动 HTTP 服务
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from typing import List, Optional

from shiptrack.config import LOGGING_CONFIG
from shiptrack.domain.models import IdentifierType, ResolutionResult
from shiptrack.infrastructure.logging import setup_logging


def print_banner():
    """打印程序横幅"""
    print("=" * 80)
    print("shiptrack - 多数据源货运追踪")
    print(f"启动时间: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 80)


def print_result(identifier: str, result: ResolutionResult):
    """以可读形式打印解析结果"""
    print(f"\n📦 {identifier}  [{result.state.value}]")
    print("─" * 60)

    if result.error:
        marker = "⚠️ " if result.success else "❌"
        print(f"{marker} {result.error.code.value}: {result.error.user_message}")
        if result.error.retry_after:
            print(f"   建议 {result.error.retry_after} 秒后重试")

    if not result.data:
        return

    record = result.data
    print(f"承运人: {record.carrier}    状态: {record.status}    服务: {record.service}")
    print(f"数据源: {record.data_source} (可靠性 {record.reliability:.2f})")
    if len(record.sources) > 1:
        print(f"合并来源: {', '.join(record.sources)}")
    if result.from_cache:
        print(f"缓存数据，{result.data_age_minutes} 分钟前更新")

    if record.timeline:
        print("\n时间线:")
        for event in record.timeline:
            done = "✔" if event.is_completed else " "
            print(f"  {done} {event.timestamp:%Y-%m-%d %H:%M}  {event.status:<24} {event.location}")


async def run_tracking(
    identifiers: List[str],
    identifier_type: Optional[IdentifierType],
    force_refresh: bool,
    as_json: bool,
) -> int:
    """依次查询多个追踪号，全部成功返回 0"""
    from shiptrack.api.dependencies import get_service_container

    container = get_service_container()
    service = container.tracking_service
    exit_code = 0
    try:
        for identifier in identifiers:
            result = await service.track(identifier, identifier_type, force_refresh=force_refresh)
            if not result.success:
                exit_code = 1
            if as_json:
                print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
            else:
                print_result(identifier, result)
    finally:
        await container.aclose()
    return exit_code


def show_health(as_json: bool) -> int:
    """打印数据源健康报告"""
    from shiptrack.api.dependencies import get_tracking_service

    report = get_tracking_service().get_provider_health()
    if as_json:
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(f"\n整体状态: {report.overall_health.value}")
        print("─" * 60)
        for p in report.providers:
            mark = "✔" if p.available else "✘"
            print(f"  {mark} {p.name:<16} 可靠性 {p.reliability:.2f}")
    return 0


def serve():
    """启动 HTTP 服务"""
    import uvicorn
    from shiptrack.api.dependencies import get_settings

    settings = get_settings()
    uvicorn.run(
        "shiptrack.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """主函数"""
    parser = argparse.ArgumentParser(
        description="shiptrack - 多数据源货运追踪",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例用法:
  python main.py ABCD1234567                    # 查询集装箱号
  python main.py BK123456 --type booking        # 指定类型
  python main.py ABCD1234567 --refresh          # 跳过缓存
  python main.py ABCD1234567 EFGH7654321 --json # 批量查询，JSON 输出
  python main.py --health                       # 数据源健康
  python main.py --serve                        # 启动 HTTP 服务
        """
    )

    parser.add_argument("identifiers", nargs="*", help="追踪号（可多个）")
    parser.add_argument(
        "--type",
        choices=[t.value for t in IdentifierType],
        default=None,
        help="追踪号类型（默认自动）",
    )
    parser.add_argument("--refresh", action="store_true", help="跳过缓存强制获取")
    parser.add_argument("--json", action="store_true", help="JSON 输出")
    parser.add_argument("--health", action="store_true", help="显示数据源健康状态")
    parser.add_argument("--serve", action="store_true", help="启动 HTTP 服务")
    parser.add_argument("--verbose", action="store_true", help="详细日志")

    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else LOGGING_CONFIG["level"]
    setup_logging(level=level, json_format=LOGGING_CONFIG["json_format"], log_file=LOGGING_CONFIG["log_file"])

    if args.serve:
        serve()
        return 0

    if not args.json:
        print_banner()

    if args.health:
        return show_health(args.json)

    if not args.identifiers:
        parser.print_help()
        return 2

    identifier_type = IdentifierType(args.type) if args.type else None
    try:
        return asyncio.run(run_tracking(args.identifiers, identifier_type, args.refresh, args.json))
    except KeyboardInterrupt:
        print("\n\n👋 程序被用户中断")
        return 130


if __name__ == "__main__":
    sys.exit(main())
