"""Read-only query selectors."""

from reimburse_kernel.selectors.analytics_selector import AnalyticsSelector
from reimburse_kernel.selectors.base import BaseSelector
from reimburse_kernel.selectors.report_selector import ReportSelector

__all__ = ["AnalyticsSelector", "BaseSelector", "ReportSelector"]
