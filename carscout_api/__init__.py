"""
HTTP API over the carscout search pipeline.
"""
