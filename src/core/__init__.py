"""
Core browsing logic.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns, so folder emulation can be tested in
isolation.
"""
