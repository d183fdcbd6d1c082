from .case_executor import CaseExecutor, build_report, format_duration

__all__ = ["CaseExecutor", "build_report", "format_duration"]
