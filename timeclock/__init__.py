"""TimeClock：员工上下班打卡、暂停记录与工时统计。"""

__version__ = "0.1.0"

from .cli import main

__all__ = ["main", "__version__"]
