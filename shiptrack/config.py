import os
from typing import Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from shiptrack.domain.models import (
    CostTier,
    IdentifierType,
    ProviderDescriptor,
    RateLimit,
)

# Load all environment variables from .env
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


# ============================================
# 追踪管道参数
# ============================================
TRACKING_CONFIG = {
    # 缓存命中且年龄小于该值（分钟）直接返回
    "fresh_age_minutes": _env_int("SHIPTRACK_FRESH_AGE_MINUTES", 60),
    # 货运记录视为可用的最长年龄（分钟），超过后只作为极旧数据兜底
    "stale_age_minutes": _env_int("SHIPTRACK_STALE_AGE_MINUTES", 1440),
    # 货运记录保留时长（秒）
    "retention_seconds": _env_int("SHIPTRACK_RETENTION_SECONDS", 7 * 24 * 3600),
    # 原始响应缓存时长（秒）
    "response_cache_ttl": _env_int("SHIPTRACK_RESPONSE_CACHE_TTL", 15 * 60),
    # 主数据源可靠性高于该值时提前停止
    "early_stop_reliability": 0.90,
}

LOGGING_CONFIG = {
    "level": os.getenv("SHIPTRACK_LOG_LEVEL", "INFO"),
    "json_format": os.getenv("SHIPTRACK_LOG_JSON", "false").lower() in ("true", "1", "yes"),
    "log_file": os.getenv("SHIPTRACK_LOG_FILE") or None,
}

# ============================================
# 数据源目录
# ============================================
# family: carrier 使用承运人直连适配器，aggregator 使用聚合商适配器
# timeout 单位为秒
_ALL = ("booking", "container", "bol")
_BC = ("booking", "container")

PROVIDER_CATALOG: List[Dict] = [
    # --- 承运人直连 ---
    {"name": "maersk", "base_url": "https://api.maersk.com/track", "env_key": "MAERSK_API_KEY",
     "rpm": 60, "rph": 1000, "reliability": 0.95, "timeout": 10.0, "retry_attempts": 3,
     "types": _ALL, "coverage": ("global",), "cost": "paid"},
    {"name": "msc", "base_url": "https://api.msc.com/track", "env_key": "MSC_API_KEY",
     "rpm": 40, "rph": 800, "reliability": 0.88, "timeout": 12.0, "retry_attempts": 3,
     "types": _ALL, "coverage": ("global",), "cost": "paid"},
    {"name": "cma-cgm", "base_url": "https://api.cma-cgm.com/tracking", "env_key": "CMA_CGM_API_KEY",
     "rpm": 25, "rph": 400, "reliability": 0.85, "timeout": 9.0, "retry_attempts": 2,
     "types": _BC, "coverage": ("global",), "cost": "paid"},
    {"name": "cosco", "base_url": "https://api.cosco-shipping.com/tracking", "env_key": "COSCO_API_KEY",
     "rpm": 35, "rph": 600, "reliability": 0.87, "timeout": 10.0, "retry_attempts": 3,
     "types": _ALL, "coverage": ("asia-pacific", "global"), "cost": "paid"},
    {"name": "hapag-lloyd", "base_url": "https://api.hapag-lloyd.com/tracking", "env_key": "HAPAG_LLOYD_API_KEY",
     "rpm": 30, "rph": 500, "reliability": 0.90, "timeout": 8.0, "retry_attempts": 2,
     "types": _BC, "coverage": ("global",), "cost": "paid"},
    {"name": "evergreen", "base_url": "https://api.evergreen-line.com/tracking", "env_key": "EVERGREEN_API_KEY",
     "rpm": 30, "rph": 500, "reliability": 0.84, "timeout": 9.0, "retry_attempts": 2,
     "types": _BC, "coverage": ("asia-pacific", "global"), "cost": "paid"},
    {"name": "one-line", "base_url": "https://api.one-line.com/tracking", "env_key": "ONE_LINE_API_KEY",
     "rpm": 30, "rph": 500, "reliability": 0.86, "timeout": 9.0, "retry_attempts": 2,
     "types": _BC, "coverage": ("asia-pacific", "global"), "cost": "paid"},
    {"name": "yang-ming", "base_url": "https://api.yangming.com/tracking", "env_key": "YANG_MING_API_KEY",
     "rpm": 25, "rph": 400, "reliability": 0.82, "timeout": 8.0, "retry_attempts": 2,
     "types": _BC, "coverage": ("asia-pacific",), "cost": "paid"},
    {"name": "zim", "base_url": "https://api.zim.com/tracking", "env_key": "ZIM_API_KEY",
     "rpm": 20, "rph": 300, "reliability": 0.80, "timeout": 8.0, "retry_attempts": 2,
     "types": _BC, "coverage": ("mediterranean", "global"), "cost": "paid"},
    # --- 聚合商 ---
    {"name": "shipsgo", "base_url": "https://api.shipsgo.com/v2/tracking", "env_key": "SHIPSGO_API_KEY",
     "rpm": 100, "rph": 2000, "reliability": 0.88, "timeout": 8.0, "retry_attempts": 2,
     "types": ("container", "booking"), "coverage": ("global",), "cost": "freemium", "aggregator": True},
    {"name": "searates", "base_url": "https://api.searates.com/tracking", "env_key": "SEARATES_API_KEY",
     "rpm": 60, "rph": 1000, "reliability": 0.85, "timeout": 8.0, "retry_attempts": 2,
     "types": ("container", "booking"), "coverage": ("global",), "cost": "freemium", "aggregator": True},
    {"name": "project44", "base_url": "https://api.project44.com/v4/tracking", "env_key": "PROJECT44_API_KEY",
     "rpm": 200, "rph": 5000, "reliability": 0.93, "timeout": 10.0, "retry_attempts": 3,
     "types": _ALL, "coverage": ("global",), "cost": "paid", "aggregator": True},
    # --- 船舶定位 ---
    {"name": "marine-traffic", "base_url": "https://api.marinetraffic.com/v1/tracking", "env_key": "MARINE_TRAFFIC_API_KEY",
     "rpm": 10, "rph": 100, "reliability": 0.70, "timeout": 10.0, "retry_attempts": 2,
     "types": ("vessel", "container"), "coverage": ("global",), "cost": "freemium"},
    {"name": "vessel-finder", "base_url": "https://api.vesselfinder.com/tracking", "env_key": "VESSEL_FINDER_API_KEY",
     "rpm": 15, "rph": 200, "reliability": 0.72, "timeout": 8.0, "retry_attempts": 2,
     "types": ("vessel", "container"), "coverage": ("global",), "cost": "freemium"},
    # --- 免费 ---
    {"name": "track-trace", "base_url": "https://api.track-trace.com/v1/tracking", "env_key": "TRACK_TRACE_API_KEY",
     "rpm": 50, "rph": 500, "reliability": 0.68, "timeout": 8.0, "retry_attempts": 2,
     "types": ("container",), "coverage": ("global",), "cost": "free"},
]


def build_descriptors(
    env: Optional[Mapping[str, str]] = None,
    catalog: Optional[List[Dict]] = None,
) -> Tuple[List[ProviderDescriptor], Dict[str, str]]:
    """
    根据目录和环境变量构建数据源描述

    Returns:
        (descriptors, api_keys): 描述列表和 {数据源名称: 密钥}（只包含已配置的）
    """
    env = os.environ if env is None else env
    descriptors: List[ProviderDescriptor] = []
    api_keys: Dict[str, str] = {}

    for entry in catalog if catalog is not None else PROVIDER_CATALOG:
        api_key = env.get(entry["env_key"], "")
        if api_key:
            api_keys[entry["name"]] = api_key

        descriptors.append(ProviderDescriptor(
            name=entry["name"],
            base_url=entry["base_url"],
            has_credential=bool(api_key),
            rate_limit=RateLimit(entry["rpm"], entry["rph"]),
            reliability=entry["reliability"],
            timeout=entry["timeout"],
            retry_attempts=entry["retry_attempts"],
            supported_types=frozenset(IdentifierType(t) for t in entry["types"]),
            cost_tier=CostTier(entry["cost"]),
            is_aggregator=entry.get("aggregator", False),
            coverage=tuple(entry["coverage"]),
        ))

    return descriptors, api_keys
