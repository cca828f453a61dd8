"""
编排层 - 数据源选择、获取与合并

包含：
- ProviderRegistry: 数据源注册表
- ProviderPrioritizer: 数据源排序
- FetchOrchestrator: 顺序获取编排器
- DataMerger: 多数据源结果合并
"""

from shiptrack.orchestrator.registry import ProviderRegistry
from shiptrack.orchestrator.prioritizer import ProviderPrioritizer
from shiptrack.orchestrator.orchestrator import FetchOrchestrator
from shiptrack.orchestrator.merger import DataMerger

__all__ = [
    "ProviderRegistry",
    "ProviderPrioritizer",
    "FetchOrchestrator",
    "DataMerger",
]
