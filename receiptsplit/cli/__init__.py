"""Unified command-line interface for receiptsplit.

Usage:
    receiptsplit scan <image>
    receiptsplit scan <image> --json
    receiptsplit parse-text <file>
    receiptsplit settle <split.json> [--currency AUD]
    receiptsplit serve [--host] [--port]
"""
