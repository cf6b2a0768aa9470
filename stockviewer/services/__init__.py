"""Ingestion, reconciliation and Tally refresh services.

Routes and scripts call into these; storage goes through a StockProvider
passed in explicitly.
"""
