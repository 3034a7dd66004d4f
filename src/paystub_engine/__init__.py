"""Payroll period processing and pay stub calculation."""

__version__ = "0.1.0"
