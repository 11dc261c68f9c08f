"""CSV import reconciliation engine.

Pipeline: row_parser -> classifier -> validator -> (user confirmation) ->
executor -> aggregator, orchestrated by ``service.CSVImportService``.
"""
