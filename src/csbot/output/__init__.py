"""Result formatting for workflow runs."""

from csbot.output.formatter import CSV_HEADER, OutputFormat, ResultFormatter, format_seconds

__all__ = ["CSV_HEADER", "OutputFormat", "ResultFormatter", "format_seconds"]
