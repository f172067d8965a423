from clickcheck.input.dump.adapter import JsonDumpFetcher

__all__ = ["JsonDumpFetcher"]
