"""Plantation payroll deduction and pay calculation engine."""

__version__ = "0.1.0"
