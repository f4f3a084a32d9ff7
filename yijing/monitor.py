import json
import logging
import time
import uuid
from contextlib import ContextDecorator
from typing import Any, Dict, Optional

monitor_logger = logging.getLogger("yijing.monitor")


def generate_request_id() -> str:
    """Return a short uuid string to correlate logs."""
    return uuid.uuid4().hex[:8]


def _serialize_extra(extra_data: Optional[Dict[str, Any]]) -> str:
    if not extra_data:
        return ""
    try:
        return json.dumps(extra_data, ensure_ascii=False, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        return str(extra_data)


class StepMonitor(ContextDecorator):
    """上下文监控器，自动记录步骤耗时与结果。"""

    def __init__(
        self,
        step_name: str,
        request_id: Optional[str] = None,
        extra_data: Optional[Dict[str, Any]] = None,
    ):
        self.step_name = step_name
        self.request_id = request_id or generate_request_id()
        self.extra_data = extra_data or {}
        self.start_time: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        monitor_logger.debug(f"req={self.request_id} | step={self.step_name} | 开始")
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        duration = 0.0 if self.start_time is None else time.perf_counter() - self.start_time
        status = "失败" if exc_type else "成功"
        message = f"req={self.request_id} | step={self.step_name} | {status} | 耗时={duration:.3f}s"
        extra = dict(self.extra_data)
        if exc_type:
            extra["error"] = getattr(exc_value, "code", exc_type.__name__)
        serialized_extra = _serialize_extra(extra)
        if serialized_extra:
            message = f"{message} | {serialized_extra}"

        if exc_type:
            monitor_logger.warning(message)
        else:
            monitor_logger.info(message)
        # 不吞异常
        return False


def log_step(
    step_name: str,
    request_id: Optional[str] = None,
    extra_data: Optional[Dict[str, Any]] = None,
    status: str = "成功",
) -> None:
    """在需要时单独记录某个步骤的状态。"""
    rid = request_id or generate_request_id()
    message = f"req={rid} | step={step_name} | {status}"
    serialized_extra = _serialize_extra(extra_data)
    if serialized_extra:
        message = f"{message} | {serialized_extra}"
    monitor_logger.info(message)
