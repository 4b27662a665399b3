# app/metrics.py
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

try:
    # multiprocess 支持（需在进程启动前设置好 PROMETHEUS_MULTIPROC_DIR）
    from prometheus_client import REGISTRY, CollectorRegistry, multiprocess

    _HAVE_MP = True
except ImportError:  # 兼容无 multiprocess 环境
    from prometheus_client import REGISTRY

    _HAVE_MP = False

# ASN 业务指标
LINES_PROCESSED = Counter(
    "asn_lines_processed_total", "ASN lines processed into inventory", ["mode", "condition"]
)
UNITS_PROCESSED = Counter(
    "asn_units_processed_total", "Units moved from ASN lines into inventory", ["condition"]
)
OP_ERRORS = Counter(
    "asn_operation_errors_total", "ASN operation failures", ["operation", "error_code"]
)
BULK_LINE_FAILURES = Counter(
    "asn_bulk_line_failures_total", "Lines skipped during bulk processing"
)

router = APIRouter()


@router.get("/metrics")
def metrics() -> Response:
    """
    单进程模式直接导出默认 REGISTRY；
    多进程模式下临时建 CollectorRegistry，由 MultiProcessCollector 合并各分片。
    """
    if _HAVE_MP and os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
