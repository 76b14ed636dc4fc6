"""Payments Module -- installment status tracking for published work orders."""
